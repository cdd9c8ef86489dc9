"""Base class for generation service providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from photoforge.errors import ProviderError
from photoforge.models import CredentialStatus, ImageArtifact, Scenario

__all__ = ["GenerationService", "ProviderError"]


class GenerationService(ABC):
    """Abstract text/image generation backend.

    Every call takes the credential secret to use explicitly; the service
    holds no key of its own, so the executor can rotate keys per call.
    Failures raise :class:`~photoforge.errors.ProviderError` whose message
    keeps the provider's own error text.
    """

    @abstractmethod
    async def generate_text(self, secret: str, prompt: str) -> str:
        """Generate plain text for *prompt*."""

    @abstractmethod
    async def generate_image(
        self,
        secret: str,
        prompt: str,
        model: str,
        anchor: ImageArtifact | None = None,
    ) -> ImageArtifact:
        """Generate one image.

        Args:
            secret: Credential to call the service with.
            prompt: Full image prompt.
            model: Image model identifier.
            anchor: Optional reference image the result must stay
                consistent with (image-edit style call).

        Returns:
            The generated image.

        Raises:
            ProviderError: If generation fails or no image is returned.
        """

    @abstractmethod
    async def generate_consistent_subject_description(
        self, secret: str, user_text: str
    ) -> str:
        """Turn a free-text couple description into a reusable one."""

    @abstractmethod
    async def generate_scenario_batch(
        self, secret: str, theme: str, count: int
    ) -> list[Scenario]:
        """Generate up to *count* scenarios for *theme* (may return fewer)."""

    @abstractmethod
    async def validate_credential(self, secret: str) -> CredentialStatus:
        """Probe *secret*; returns ``active`` or ``invalid``."""

    async def close(self) -> None:
        """Clean up provider resources.

        Default implementation does nothing. Providers that need cleanup
        should override this method.
        """
        pass
