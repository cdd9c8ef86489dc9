"""Shared fixtures for photoforge tests."""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest
from dotenv import load_dotenv
from PIL import Image

# Auto-load .env from project root (gitignored).
# This provides PHOTOFORGE_API_KEY for integration tests.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env", override=False)

from photoforge.models import ImageArtifact
from photoforge.pool import CredentialPool
from photoforge.storage import InMemoryCredentialStore

# ---------------------------------------------------------------------------
# Auto-skip integration tests unless explicitly enabled
# ---------------------------------------------------------------------------


def _integration_enabled() -> bool:
    """Integration tests need PHOTOFORGE_RUN_INTEGRATION=1 and a real key."""
    if os.environ.get("PHOTOFORGE_RUN_INTEGRATION", "").strip().lower() not in (
        "1",
        "true",
        "yes",
        "on",
    ):
        return False
    return bool(os.environ.get("PHOTOFORGE_API_KEY", "").strip())


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Auto-skip integration tests when they are not enabled."""
    if _integration_enabled():
        return
    skip_marker = pytest.mark.skip(
        reason=(
            "Integration test skipped: set PHOTOFORGE_RUN_INTEGRATION=1 and "
            "PHOTOFORGE_API_KEY to run against the real Gemini API."
        )
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


# ---------------------------------------------------------------------------
# Image helpers
# ---------------------------------------------------------------------------


def make_image_bytes(fmt: str = "PNG", color: tuple[int, int, int] = (200, 150, 120)) -> bytes:
    """Encode a tiny solid-color image."""
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture()
def reference_image() -> ImageArtifact:
    """A small JPEG standing in for an uploaded reference photo."""
    return ImageArtifact(data=make_image_bytes("JPEG"), mime_type="image/jpeg")


# ---------------------------------------------------------------------------
# Pool and timing fixtures
# ---------------------------------------------------------------------------


class RecordingSleep:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def pool(store: InMemoryCredentialStore) -> CredentialPool:
    """A loaded pool with two user keys, both unvalidated."""
    p = CredentialPool(store)
    p.load()
    p.add(["AIzaFirstKey0000000001", "AIzaSecondKey000000002"])
    return p
