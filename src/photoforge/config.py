"""YAML configuration loading and validation for photo sessions."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from photoforge.catalog import IMAGE_MODELS, NEGATIVE_PROMPT_TAGS, all_locations
from photoforge.errors import ConfigError
from photoforge.executor import ExecutorConfig
from photoforge.logging import get_logger
from photoforge.models import ImageArtifact, SessionOptions
from photoforge.storage import DEFAULT_CREDENTIALS_PATH

logger = get_logger("config")

DEFAULT_SYSTEM_KEY_ENV = "PHOTOFORGE_API_KEY"


class AppSettings(BaseModel):
    """Application-level settings shared by every command.

    Attributes:
        credentials_path: JSON file holding user-added credentials.
        system_key_env: Environment variable carrying the system key.
        text_model: Model used for descriptions, scenarios and probes.
        max_attempts: Tries per credential before it is marked exhausted.
        backoff_base_seconds: Base of the linear rate-limit backoff.
    """

    credentials_path: Path = DEFAULT_CREDENTIALS_PATH
    system_key_env: str = DEFAULT_SYSTEM_KEY_ENV
    text_model: str = "gemini-2.5-flash"
    max_attempts: int = Field(3, ge=1)
    backoff_base_seconds: float = Field(20.0, ge=0)

    def executor_config(self) -> ExecutorConfig:
        return ExecutorConfig(
            max_attempts=self.max_attempts,
            backoff_base_seconds=self.backoff_base_seconds,
        )


class PhotoForgeConfig(BaseModel):
    """A loaded session config file."""

    session: SessionOptions
    settings: AppSettings = AppSettings()


def validate_config_path(path: str | Path) -> Path:
    """Resolve and validate that a config file path exists.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    resolved = Path(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"Config file not found: {resolved}")
    return resolved


def _parse_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}"
        )
    return data


def _resolve_reference_image(session: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    """Load ``reference_image_path`` (relative to *base_dir*) into ``reference_image``."""
    session = dict(session)
    raw_path = session.pop("reference_image_path", None)
    if not raw_path:
        return session

    image_path = Path(raw_path).expanduser()
    if not image_path.is_absolute():
        image_path = (base_dir / image_path).resolve()
    if not image_path.is_file():
        raise ConfigError(
            f"Reference image does not exist: {raw_path} (resolved to {image_path})"
        )
    try:
        session["reference_image"] = ImageArtifact.from_file(image_path)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Could not read reference image {image_path}: {exc}") from exc
    return session


def load_config(path: str | Path) -> PhotoForgeConfig:
    """Load a session config from a YAML file.

    Expected shape::

        session:
          mode: text
          prompt: "A couple in their late twenties..."
          theme: Bali
          image_count: 6
        settings:
          max_attempts: 3

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The validated config.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the YAML is malformed, not a mapping, has no
            ``session`` section, or names a missing reference image.
        ValidationError: If a field fails validation.
    """
    resolved = validate_config_path(path)
    data = _parse_yaml(resolved)

    session = data.get("session")
    if session is None:
        raise ConfigError("Missing required 'session' section in config")
    if not isinstance(session, dict):
        raise ConfigError("'session' must be a mapping")

    settings = data.get("settings") or {}
    if not isinstance(settings, dict):
        raise ConfigError("'settings' must be a mapping")

    session = _resolve_reference_image(session, resolved.resolve().parent)
    config = PhotoForgeConfig(
        session=SessionOptions(**session),
        settings=AppSettings(**settings),
    )

    logger.info(
        "Loaded config: %s mode, theme %r, %d image(s)",
        config.session.mode.value,
        config.session.theme,
        config.session.image_count,
    )
    return config


def validate_config(path: str | Path) -> list[str]:
    """Validate a session config without running it.

    Runs :func:`load_config` and then checks the values against the
    catalog.  Unknown values are allowed (the provider may accept them),
    so they are reported as warnings.

    Returns:
        Warning strings (empty if none).

    Raises:
        FileNotFoundError, ConfigError, ValidationError: As for
            :func:`load_config`.
    """
    config = load_config(path)
    session = config.session
    warnings: list[str] = []

    if session.image_model not in IMAGE_MODELS:
        warnings.append(f"Unknown image model: {session.image_model}")
    if session.theme not in all_locations():
        warnings.append(f"Theme is not one of the catalog locations: {session.theme}")
    unknown_tags = [t for t in session.negative_tags if t not in NEGATIVE_PROMPT_TAGS]
    if unknown_tags:
        warnings.append(f"Unknown negative prompt tags: {', '.join(unknown_tags)}")
    if session.delay_seconds == 0:
        warnings.append("delay_seconds is 0; consecutive images may hit rate limits")

    return warnings


__all__ = [
    "AppSettings",
    "PhotoForgeConfig",
    "ValidationError",
    "load_config",
    "validate_config",
    "validate_config_path",
]
