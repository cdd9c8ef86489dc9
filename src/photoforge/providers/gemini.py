"""Gemini/Imagen generation service via the ``google-genai`` SDK.

One ``genai.Client`` is created (and cached) per API key, because the
executor decides per call which key to use.  SDK errors are re-raised as
:class:`~photoforge.errors.ProviderError` with the provider's status and
JSON body intact, so the executor can recognise invalid keys, quota errors
(including the ``RetryInfo`` delay hint) and safety blocks.
"""

from __future__ import annotations

import json
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from photoforge.logging import get_logger
from photoforge.models import CredentialStatus, ImageArtifact, Scenario
from photoforge.prompts.providers import (
    VALIDATION_PROBE_PROMPT,
    build_scenario_batch_prompt,
    build_subject_description_prompt,
)
from photoforge.providers._base import GenerationService, ProviderError
from photoforge.utils import parse_json_from_llm

logger = get_logger("providers")

DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGEN_ASPECT_RATIO = "3:4"

_SAFETY_FINISH_REASONS = frozenset(
    {
        "SAFETY",
        "PROHIBITED_CONTENT",
        "BLOCKLIST",
        "SPII",
        "IMAGE_SAFETY",
        "IMAGE_PROHIBITED_CONTENT",
    }
)


def _enum_name(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _to_provider_error(exc: Exception) -> ProviderError:
    """Wrap an SDK exception, keeping status text and a JSON error body."""
    if isinstance(exc, genai_errors.APIError):
        try:
            body = json.dumps(exc.details)
        except (TypeError, ValueError):
            body = str(exc.details)
        return ProviderError(f"{exc.code} {exc.status}. {body}")
    return ProviderError(f"Gemini request failed: {exc}")


def _raise_if_blocked(response: Any) -> None:
    """Raise a ``SAFETY_BLOCK`` error when the response was filtered."""
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and feedback.block_reason:
        raise ProviderError(
            f"SAFETY_BLOCK: prompt blocked ({_enum_name(feedback.block_reason)})"
        )
    for candidate in response.candidates or []:
        reason = _enum_name(candidate.finish_reason)
        if reason in _SAFETY_FINISH_REASONS:
            raise ProviderError(f"SAFETY_BLOCK: response blocked ({reason})")


class GeminiService(GenerationService):
    """Generation service backed by Gemini text/image models and Imagen.

    Args:
        text_model: Model used for descriptions, scenarios and probes.
        imagen_aspect_ratio: Aspect ratio requested from Imagen models.
    """

    def __init__(
        self,
        text_model: str = DEFAULT_TEXT_MODEL,
        imagen_aspect_ratio: str = DEFAULT_IMAGEN_ASPECT_RATIO,
    ) -> None:
        self._text_model = text_model
        self._imagen_aspect_ratio = imagen_aspect_ratio
        self._clients: dict[str, genai.Client] = {}

    def _get_client(self, secret: str) -> genai.Client:
        client = self._clients.get(secret)
        if client is None:
            client = genai.Client(api_key=secret)
            self._clients[secret] = client
        return client

    # -- text ---------------------------------------------------------------

    async def generate_text(self, secret: str, prompt: str) -> str:
        client = self._get_client(secret)
        try:
            response = await client.aio.models.generate_content(
                model=self._text_model,
                contents=prompt,
            )
        except Exception as exc:
            logger.debug("Text generation failed: %s", exc)
            raise _to_provider_error(exc) from exc

        _raise_if_blocked(response)
        text = (response.text or "").strip()
        if not text:
            raise ProviderError("Gemini returned an empty text response")
        return text

    async def generate_consistent_subject_description(
        self, secret: str, user_text: str
    ) -> str:
        return await self.generate_text(
            secret, build_subject_description_prompt(user_text)
        )

    async def generate_scenario_batch(
        self, secret: str, theme: str, count: int
    ) -> list[Scenario]:
        """Request *count* scenarios as JSON and parse them leniently.

        Entries missing a scene or an emotion are dropped, so the result
        may be shorter than *count*.

        Raises:
            ProviderError: If the call fails or the reply is not JSON.
        """
        client = self._get_client(secret)
        try:
            response = await client.aio.models.generate_content(
                model=self._text_model,
                contents=build_scenario_batch_prompt(theme, count),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                ),
            )
        except Exception as exc:
            raise _to_provider_error(exc) from exc

        _raise_if_blocked(response)
        try:
            data = parse_json_from_llm(response.text or "")
        except ValueError as exc:
            raise ProviderError(f"Unparsable scenario response: {exc}") from exc

        items = data if isinstance(data, list) else data.get("scenarios", [])
        scenarios: list[Scenario] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                scenarios.append(
                    Scenario(
                        scene=str(item.get("scene") or "").strip(),
                        emotion=str(item.get("emotion") or "").strip(),
                    )
                )
            except ValidationError:
                continue
        logger.info("Received %d/%d scenarios for %r", len(scenarios), count, theme)
        return scenarios[:count]

    # -- images -------------------------------------------------------------

    async def generate_image(
        self,
        secret: str,
        prompt: str,
        model: str,
        anchor: ImageArtifact | None = None,
    ) -> ImageArtifact:
        if model.startswith("imagen"):
            if anchor is not None:
                logger.debug("Model %s ignores the reference image", model)
            return await self._generate_imagen(secret, prompt, model)
        return await self._generate_gemini_image(secret, prompt, model, anchor)

    async def _generate_gemini_image(
        self,
        secret: str,
        prompt: str,
        model: str,
        anchor: ImageArtifact | None,
    ) -> ImageArtifact:
        client = self._get_client(secret)
        parts: list[types.Part] = []
        if anchor is not None:
            parts.append(
                types.Part.from_bytes(data=anchor.data, mime_type=anchor.mime_type)
            )
        parts.append(types.Part.from_text(text=prompt))

        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=[types.Content(role="user", parts=parts)],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
        except Exception as exc:
            logger.debug("Image generation failed: %s", exc)
            raise _to_provider_error(exc) from exc

        _raise_if_blocked(response)
        for candidate in response.candidates or []:
            if candidate.content is None:
                continue
            for part in candidate.content.parts or []:
                if part.inline_data is not None and part.inline_data.data:
                    return ImageArtifact(
                        data=part.inline_data.data,
                        mime_type=part.inline_data.mime_type or "image/png",
                    )
        raise ProviderError(f"No image returned by {model}")

    async def _generate_imagen(self, secret: str, prompt: str, model: str) -> ImageArtifact:
        client = self._get_client(secret)
        try:
            response = await client.aio.models.generate_images(
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=self._imagen_aspect_ratio,
                ),
            )
        except Exception as exc:
            logger.debug("Imagen generation failed: %s", exc)
            raise _to_provider_error(exc) from exc

        for generated in response.generated_images or []:
            if generated.image is not None and generated.image.image_bytes:
                return ImageArtifact(
                    data=generated.image.image_bytes,
                    mime_type=generated.image.mime_type or "image/png",
                )
            if generated.rai_filtered_reason:
                raise ProviderError(
                    f"SAFETY_BLOCK: image filtered ({generated.rai_filtered_reason})"
                )
        raise ProviderError(f"No image returned by {model}")

    # -- validation ---------------------------------------------------------

    async def validate_credential(self, secret: str) -> CredentialStatus:
        try:
            await self.generate_text(secret, VALIDATION_PROBE_PROMPT)
        except ProviderError as exc:
            logger.info("Credential probe failed: %s", exc)
            return CredentialStatus.INVALID
        return CredentialStatus.ACTIVE

    async def close(self) -> None:
        """Close every cached client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            try:
                await client.aio.aclose()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Failed to close Gemini client: %s", exc)
