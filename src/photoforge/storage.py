"""Key-value persistence for user credentials.

The credential pool serializes its user-supplied keys to a single raw
string; stores only know how to read, write and clear that string.
"""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from photoforge.logging import get_logger

logger = get_logger("storage")

DEFAULT_CREDENTIALS_PATH = Path("~/.photoforge/credentials.json")
# Owner read/write only.
CREDENTIALS_FILE_MODE = 0o600


class CredentialStore(ABC):
    """Abstract raw storage for the persisted credential list."""

    @abstractmethod
    def read_credentials(self) -> str | None:
        """Return the stored payload, or ``None`` when nothing is stored."""

    @abstractmethod
    def write_credentials(self, raw: str) -> None:
        """Replace the stored payload with *raw*."""

    @abstractmethod
    def clear_credentials(self) -> None:
        """Remove the stored payload (used to discard corrupt records)."""


class InMemoryCredentialStore(CredentialStore):
    """Process-local store, used by tests and embedding callers."""

    def __init__(self, raw: str | None = None) -> None:
        self.raw = raw
        self.writes = 0

    def read_credentials(self) -> str | None:
        return self.raw

    def write_credentials(self, raw: str) -> None:
        self.raw = raw
        self.writes += 1

    def clear_credentials(self) -> None:
        self.raw = None


class JsonFileCredentialStore(CredentialStore):
    """Stores the credential payload in a JSON file.

    Writes go through a same-directory temp file followed by an atomic
    ``replace`` so a crash never leaves a half-written file behind.
    """

    def __init__(self, path: str | Path = DEFAULT_CREDENTIALS_PATH) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.RLock()

    def _atomic_write_text(self, text: str) -> None:
        tmp_path = self.path.with_name(
            f".{self.path.name}.tmp-{os.getpid()}-{threading.get_ident()}"
        )
        tmp_path.write_text(text, encoding="utf-8")
        os.chmod(tmp_path, CREDENTIALS_FILE_MODE)
        tmp_path.replace(self.path)

    def read_credentials(self) -> str | None:
        with self._lock:
            if not self.path.is_file():
                return None
            return self.path.read_text(encoding="utf-8")

    def write_credentials(self, raw: str) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write_text(raw)
        logger.debug("Wrote credentials to %s", self.path)

    def clear_credentials(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)
        logger.debug("Cleared credentials file %s", self.path)
