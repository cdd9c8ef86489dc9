"""PhotoForge: resilient multi-key prewedding photo sessions on Gemini."""

from typing import Any

from photoforge.catalog import DEFAULT_CATALOG, CreativeCatalog, is_edit_capable
from photoforge.config import AppSettings, PhotoForgeConfig, load_config, validate_config
from photoforge.errors import (
    AllCredentialsFailedError,
    CallCancelledError,
    ConfigError,
    CredentialError,
    PhotoForgeError,
    PolicyRejectedError,
    ProviderError,
    SessionStateError,
)
from photoforge.executor import (
    ErrorKind,
    ExecutorConfig,
    ResilientExecutor,
    classify_error,
    parse_retry_delay,
)
from photoforge.factory import create_executor, create_pool, create_session
from photoforge.logging import get_logger, setup_logging
from photoforge.models import (
    Credential,
    CredentialOrigin,
    CredentialStatus,
    GeneratedImage,
    ImageArtifact,
    OutcomeStatus,
    Preview,
    Scenario,
    SessionMode,
    SessionOptions,
    SessionOutcome,
    SessionSnapshot,
    SessionState,
)
from photoforge.observability import RunMetricsCollector, write_run_summary
from photoforge.pool import CredentialPool
from photoforge.previews import (
    enhance_prompt,
    generate_casual_preview,
    generate_traditional_preview,
)
from photoforge.providers import GenerationService
from photoforge.session import GenerationSession
from photoforge.storage import (
    CredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
)
from photoforge.utils import parse_json_from_llm, strip_code_fences


def __getattr__(name: str) -> Any:
    """Lazy loading for google-genai dependent classes."""
    if name == "GeminiService":
        from photoforge.providers import GeminiService

        return GeminiService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AllCredentialsFailedError",
    "AppSettings",
    "CallCancelledError",
    "ConfigError",
    "CreativeCatalog",
    "Credential",
    "CredentialError",
    "CredentialOrigin",
    "CredentialPool",
    "CredentialStatus",
    "CredentialStore",
    "DEFAULT_CATALOG",
    "ErrorKind",
    "ExecutorConfig",
    "GeminiService",
    "GeneratedImage",
    "GenerationService",
    "GenerationSession",
    "ImageArtifact",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    "OutcomeStatus",
    "PhotoForgeConfig",
    "PhotoForgeError",
    "PolicyRejectedError",
    "Preview",
    "ProviderError",
    "ResilientExecutor",
    "RunMetricsCollector",
    "Scenario",
    "SessionMode",
    "SessionOptions",
    "SessionOutcome",
    "SessionSnapshot",
    "SessionState",
    "SessionStateError",
    "classify_error",
    "create_executor",
    "create_pool",
    "create_session",
    "enhance_prompt",
    "generate_casual_preview",
    "generate_traditional_preview",
    "get_logger",
    "is_edit_capable",
    "load_config",
    "parse_json_from_llm",
    "parse_retry_delay",
    "setup_logging",
    "strip_code_fences",
    "validate_config",
    "write_run_summary",
]
