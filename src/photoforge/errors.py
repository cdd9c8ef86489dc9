"""PhotoForge error hierarchy.

All custom exceptions inherit from PhotoForgeError, enabling callers
to catch the base class for blanket error handling or specific
subclasses for targeted recovery.
"""


class PhotoForgeError(Exception):
    """Base exception for all PhotoForge errors."""


class ConfigError(PhotoForgeError):
    """Raised when configuration loading or validation fails."""


class CredentialError(PhotoForgeError):
    """Raised when a credential pool operation is not allowed."""


class ProviderError(PhotoForgeError):
    """Raised when the generation service fails.

    The message carries the provider's own error text, which the
    executor inspects to decide how to react.
    """


class PolicyRejectedError(PhotoForgeError):
    """Raised when the provider refuses the request content (safety block)."""


class AllCredentialsFailedError(PhotoForgeError):
    """Raised when no credential in the pool can serve a call."""


class CallCancelledError(PhotoForgeError):
    """Raised when a resilient call is abandoned because its run was stopped."""


class SessionStateError(PhotoForgeError):
    """Raised when a session operation is invalid in the current state."""
