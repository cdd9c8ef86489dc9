"""Generation service providers.

This package contains the abstract :class:`GenerationService` and the
Gemini-backed implementation.
"""

from __future__ import annotations

from typing import Any

from photoforge.providers._base import GenerationService, ProviderError


# Lazy import for the google-genai dependent provider
def __getattr__(name: str) -> Any:
    if name == "GeminiService":
        from photoforge.providers.gemini import GeminiService

        return GeminiService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "GeminiService",
    "GenerationService",
    "ProviderError",
]
