"""Credential pool: the ordered set of API keys and their health.

The pool is plain data plus status-transition rules.  It never calls the
generation service itself; the executor reports call outcomes back through
:meth:`CredentialPool.set_status`, and :meth:`CredentialPool.validate_all`
delegates the actual probing to a caller-supplied validator.

Every mutation is a locked read-modify-write keyed by credential id, and
every mutation persists the user-supplied credentials through the
configured :class:`~photoforge.storage.CredentialStore`.
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import ValidationError

from photoforge.errors import CredentialError
from photoforge.logging import get_logger
from photoforge.models import (
    Credential,
    CredentialOrigin,
    CredentialStatus,
)
from photoforge.storage import CredentialStore

logger = get_logger("pool")

SYSTEM_CREDENTIAL_ID = "system"

CredentialValidator = Callable[[str], Awaitable[CredentialStatus]]


def split_secrets(raw_secrets: str | Iterable[str]) -> list[str]:
    """Split user input into individual trimmed, non-empty secrets.

    Args:
        raw_secrets: A string or sequence of strings; each may hold several
            secrets separated by line breaks.

    Returns:
        The secrets in input order (duplicates are kept).
    """
    if isinstance(raw_secrets, str):
        raw_secrets = [raw_secrets]
    secrets: list[str] = []
    for chunk in raw_secrets:
        secrets.extend(line.strip() for line in chunk.splitlines())
    return [s for s in secrets if s]


class CredentialPool:
    """Ordered pool of credentials, system credential first.

    Args:
        store: Persistence backend for user credentials.
        system_secret: Optional pre-provisioned key from process
            configuration.  It is placed first, never persisted and never
            removable.
    """

    def __init__(self, store: CredentialStore, system_secret: str | None = None) -> None:
        self._store = store
        self._system_secret = (system_secret or "").strip() or None
        self._credentials: list[Credential] = []
        self._lock = threading.RLock()

    # -- views --------------------------------------------------------------

    @property
    def credentials(self) -> tuple[Credential, ...]:
        """Snapshot of the pool in order."""
        with self._lock:
            return tuple(self._credentials)

    @property
    def exhausted_all(self) -> bool:
        """True when nothing in the pool is usable (or the pool is empty)."""
        with self._lock:
            return not any(c.is_usable for c in self._credentials)

    def usable(self) -> tuple[Credential, ...]:
        """Credentials the executor may try, in pool order."""
        with self._lock:
            return tuple(c for c in self._credentials if c.is_usable)

    def get(self, credential_id: str) -> Credential | None:
        with self._lock:
            for cred in self._credentials:
                if cred.id == credential_id:
                    return cred
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)

    # -- persistence --------------------------------------------------------

    def load(self) -> tuple[Credential, ...]:
        """Rebuild the pool from storage plus the system credential.

        Corrupt storage is logged, cleared and treated as empty.

        Returns:
            The loaded pool.
        """
        loaded: list[Credential] = []
        if self._system_secret:
            loaded.append(
                Credential(
                    id=SYSTEM_CREDENTIAL_ID,
                    secret=self._system_secret,
                    origin=CredentialOrigin.SYSTEM,
                )
            )
        seen = {c.secret for c in loaded}
        for cred in self._read_user_credentials():
            if cred.secret in seen:
                continue
            seen.add(cred.secret)
            loaded.append(cred)

        with self._lock:
            self._credentials = loaded
        logger.info(
            "Loaded %d credential(s) (%d usable)", len(loaded), len(self.usable())
        )
        return self.credentials

    def _read_user_credentials(self) -> list[Credential]:
        raw = self._store.read_credentials()
        if not raw:
            return []
        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise ValueError(
                    f"Expected a JSON array of credentials, got {type(entries).__name__}"
                )
            return self._normalize_entries(entries)
        except (ValueError, ValidationError) as exc:
            logger.error("Stored credentials are corrupt, discarding them: %s", exc)
            self._store.clear_credentials()
            return []

    @staticmethod
    def _normalize_entries(entries: list[Any]) -> list[Credential]:
        stamp = int(time.time() * 1000)
        creds: list[Credential] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            secret = str(entry.get("secret") or "").strip()
            if not secret:
                continue
            try:
                status = CredentialStatus(entry.get("status") or "unvalidated")
            except ValueError:
                status = CredentialStatus.UNVALIDATED
            creds.append(
                Credential(
                    id=str(entry.get("id") or f"key_loaded_{stamp}_{index}"),
                    secret=secret,
                    masked=str(entry.get("masked") or ""),
                    status=status,
                    origin=CredentialOrigin.USER,
                )
            )
        return creds

    def save(self) -> None:
        """Persist user-origin credentials; the system key is never stored."""
        with self._lock:
            payload = [
                c.model_dump(mode="json", include={"id", "secret", "masked", "status"})
                for c in self._credentials
                if c.origin is CredentialOrigin.USER
            ]
            self._store.write_credentials(json.dumps(payload, indent=2))

    # -- mutations ----------------------------------------------------------

    def add(self, raw_secrets: str | Iterable[str]) -> tuple[Credential, ...]:
        """Add user credentials, skipping blanks and duplicates.

        Args:
            raw_secrets: Secrets to add; each string may contain several
                secrets separated by line breaks.

        Returns:
            The updated pool.
        """
        secrets = split_secrets(raw_secrets)
        if not secrets:
            return self.credentials

        with self._lock:
            existing = {c.secret for c in self._credentials}
            added: list[Credential] = []
            for secret in secrets:
                if secret in existing:
                    continue
                existing.add(secret)
                added.append(
                    Credential(
                        id=f"key_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}",
                        secret=secret,
                    )
                )
            self._credentials.extend(added)
            self.save()

        logger.info(
            "Added %d credential(s), skipped %d duplicate(s)",
            len(added),
            len(secrets) - len(added),
        )
        return self.credentials

    def remove(self, credential_id: str) -> bool:
        """Remove a user credential by id.

        Returns:
            True if a credential was removed, False if the id is unknown.

        Raises:
            CredentialError: If the id names the system credential.
        """
        with self._lock:
            for index, cred in enumerate(self._credentials):
                if cred.id != credential_id:
                    continue
                if cred.is_system:
                    raise CredentialError("The system credential cannot be removed")
                del self._credentials[index]
                self.save()
                logger.info("Removed credential %s", cred.masked)
                return True
        return False

    def set_status(
        self, credential_id: str, status: CredentialStatus
    ) -> Credential | None:
        """Atomically update one credential's status and persist.

        Unknown ids are ignored (the credential may have been removed
        while a call was in flight).

        Returns:
            The updated credential, or None if the id is unknown.
        """
        with self._lock:
            updated = self._replace_status(credential_id, status)
            if updated is not None:
                self.save()
        return updated

    def _replace_status(
        self, credential_id: str, status: CredentialStatus
    ) -> Credential | None:
        for index, cred in enumerate(self._credentials):
            if cred.id == credential_id:
                if cred.status is not status:
                    logger.debug(
                        "Credential %s: %s -> %s",
                        cred.masked,
                        cred.status.value,
                        status.value,
                    )
                    cred = cred.model_copy(update={"status": status})
                    self._credentials[index] = cred
                return cred
        return None

    async def validate_all(self, validator: CredentialValidator) -> tuple[Credential, ...]:
        """Probe every credential concurrently and record the verdicts.

        A probe that raises, or reports anything other than ``active``,
        marks its credential ``invalid``.  Results are merged back by id,
        so pool order is preserved even if the pool changed meanwhile.

        Args:
            validator: Async callable mapping a secret to a status.

        Returns:
            The updated pool.
        """
        snapshot = self.credentials
        if not snapshot:
            return snapshot

        async def _probe(cred: Credential) -> CredentialStatus:
            try:
                verdict = await validator(cred.secret)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Validation probe for %s failed: %s", cred.masked, exc)
                return CredentialStatus.INVALID
            if verdict == CredentialStatus.ACTIVE:
                return CredentialStatus.ACTIVE
            return CredentialStatus.INVALID

        verdicts = await asyncio.gather(*(_probe(c) for c in snapshot))

        with self._lock:
            for cred, verdict in zip(snapshot, verdicts):
                self._replace_status(cred.id, verdict)
            self.save()

        active = sum(1 for v in verdicts if v is CredentialStatus.ACTIVE)
        logger.info("Validated %d credential(s): %d active", len(snapshot), active)
        return self.credentials
