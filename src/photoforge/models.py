"""Pydantic data models for credentials, image artifacts, and sessions."""

from __future__ import annotations

import base64
import binascii
import io
import re
from enum import Enum
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, model_validator

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_MIME_TYPE = "image/jpeg"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?:;[^,]*)?,(?P<payload>.*)$", re.DOTALL)

_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def mask_secret(secret: str) -> str:
    """Return the redacted display form of a credential secret.

    Args:
        secret: The raw credential value.

    Returns:
        First four and last four characters joined by ``...``.
    """
    return f"{secret[:4]}...{secret[-4:]}"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialStatus(str, Enum):
    """Health of a credential as last observed."""

    UNVALIDATED = "unvalidated"
    ACTIVE = "active"
    INVALID = "invalid"
    EXHAUSTED = "exhausted"


class CredentialOrigin(str, Enum):
    """Where a credential came from.

    * **SYSTEM**: provisioned from process configuration; never persisted
      and never removable.
    * **USER**: submitted by the user; persisted and removable.
    """

    SYSTEM = "system"
    USER = "user"


USABLE_STATUSES = frozenset({CredentialStatus.ACTIVE, CredentialStatus.UNVALIDATED})


class Credential(BaseModel):
    """A single API key in the credential pool.

    Attributes:
        id: Stable identifier, unique within the pool.
        secret: The raw key value.  Excluded from ``repr``.
        masked: Redacted display form, derived once from ``secret``.
        status: Last observed health of the key.
        origin: Whether the key is system-provisioned or user-supplied.
    """

    id: str
    secret: str = Field(..., repr=False)
    masked: str = ""
    status: CredentialStatus = CredentialStatus.UNVALIDATED
    origin: CredentialOrigin = CredentialOrigin.USER

    @model_validator(mode="after")
    def _derive_masked(self) -> "Credential":
        if not self.masked and self.secret:
            self.masked = mask_secret(self.secret)
        return self

    @property
    def is_usable(self) -> bool:
        """Whether the executor may try this credential."""
        return self.status in USABLE_STATUSES

    @property
    def is_system(self) -> bool:
        return self.origin is CredentialOrigin.SYSTEM


# ---------------------------------------------------------------------------
# Image artifacts
# ---------------------------------------------------------------------------


class ImageArtifact(BaseModel):
    """Raw image payload plus its MIME type.

    Attributes:
        data: Encoded image bytes (JPEG, PNG, ...).
        mime_type: MIME type of ``data``.
    """

    data: bytes = Field(..., repr=False)
    mime_type: str = DEFAULT_MIME_TYPE

    @classmethod
    def from_data_url(cls, url: str) -> "ImageArtifact":
        """Parse a base64 ``data:`` URL.

        Raises:
            ValueError: If *url* is not a base64 data URL.
        """
        match = _DATA_URL_RE.match(url.strip())
        if match is None:
            raise ValueError("Expected a data: URL")
        try:
            data = base64.b64decode(match.group("payload"), validate=True)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload in data URL: {exc}") from exc
        return cls(data=data, mime_type=match.group("mime") or DEFAULT_MIME_TYPE)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageArtifact":
        """Build an artifact from raw bytes, detecting the MIME type.

        Raises:
            ValueError: If Pillow cannot identify the bytes as an image.
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                fmt = image.format
        except UnidentifiedImageError as exc:
            raise ValueError("Data is not a recognizable image") from exc
        mime_type = Image.MIME.get(fmt or "", DEFAULT_MIME_TYPE)
        return cls(data=data, mime_type=mime_type)

    @classmethod
    def from_file(cls, path: str | Path) -> "ImageArtifact":
        """Load an image file from disk.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the file is not an image.
        """
        return cls.from_bytes(Path(path).read_bytes())

    @property
    def extension(self) -> str:
        """File extension (without dot) matching ``mime_type``."""
        return _EXTENSIONS.get(self.mime_type, "jpeg")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def save(self, path: str | Path) -> Path:
        """Write the raw bytes to *path*, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.data)
        return target


class GeneratedImage(BaseModel):
    """An image produced during a session."""

    id: str
    artifact: ImageArtifact

    @property
    def url(self) -> str:
        return self.artifact.to_data_url()


# ---------------------------------------------------------------------------
# Session data
# ---------------------------------------------------------------------------


class Scenario(BaseModel):
    """The narrative content of one photo: a scene and an emotion."""

    scene: str = Field(..., min_length=1)
    emotion: str = Field(..., min_length=1)


class SessionMode(str, Enum):
    """How the couple's appearance is pinned down for a session."""

    TEXT = "text"
    REFERENCE = "reference"


class SessionOptions(BaseModel):
    """User-facing configuration of a photo session.

    Attributes:
        mode: ``text`` derives the couple from ``prompt``; ``reference``
            uses ``reference_image`` as the visual anchor.
        prompt: Couple description (text mode) or extra notes (reference
            mode).
        reference_image: Uploaded reference photo for reference mode.
        theme: Location theme the scenarios are set in.
        image_count: Images per run.
        delay_seconds: Pause between consecutive images.
        settle_seconds: Pause between preparation and the first image.
        image_model: Image model identifier.
        negative_tags: Selected negative-prompt tags.
        custom_negative: Free-form comma-separated negative prompt.
    """

    mode: SessionMode = SessionMode.TEXT
    prompt: str = ""
    reference_image: ImageArtifact | None = None
    theme: str = "Everyday Life"
    image_count: int = Field(6, ge=1)
    delay_seconds: float = Field(5.0, ge=0)
    settle_seconds: float = Field(2.0, ge=0)
    image_model: str = DEFAULT_IMAGE_MODEL
    negative_tags: list[str] = []
    custom_negative: str = ""

    @model_validator(mode="after")
    def _check_mode_inputs(self) -> "SessionOptions":
        if self.mode is SessionMode.REFERENCE and self.reference_image is None:
            raise ValueError("reference mode requires a reference_image")
        if self.mode is SessionMode.TEXT and not self.prompt.strip():
            raise ValueError("text mode requires a non-empty prompt")
        return self


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class OutcomeStatus(str, Enum):
    """How a run ended."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"
    CREDENTIALS_EXHAUSTED = "credentials_exhausted"


class SessionOutcome(BaseModel):
    """Summary of a finished run, surfaced to the user.

    Attributes:
        status: How the run ended.
        message: Human-readable status line.
        images_produced: Total images held by the session after the run.
        target_count: Target the session was working towards.
    """

    status: OutcomeStatus
    message: str
    images_produced: int = 0
    target_count: int = 0


class SessionSnapshot(BaseModel):
    """Read-only view of a session's state."""

    state: SessionState
    images_produced: int
    target_count: int
    running: bool
    finished: bool
    incomplete: bool
    carried_subject_description: str
    has_carried_reference: bool


class Preview(BaseModel):
    """A one-off outfit preview: the description and the rendered image."""

    text_prompt: str
    image: ImageArtifact
