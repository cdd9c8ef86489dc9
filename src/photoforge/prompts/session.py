"""Prompt builders for the per-image loop of a photo session."""

from __future__ import annotations

from collections.abc import Iterable

from photoforge.models import Scenario

ANCHORED_IMAGE_PROMPT = """\
Photorealistic 4k prewedding photo. **Use the reference image for the couple's \
exact appearance (faces, clothes). Maintain their Indonesian ethnicity.**
- New Scene ({theme}): {scene}
- Emotion: {emotion}
- Style: {style}
{notes}- Negative Prompts: {negative}"""

TEXT_IMAGE_PROMPT = """\
Photorealistic 4k cinematic prewedding photo of a young **Indonesian couple with \
authentic Southeast Asian features.**
- **Appearance (Strictly follow):** "{description}"
- **Location:** {theme}
- **Scene:** {scene}
- **Emotion:** {emotion}
- **Style:** {style}
- **Negative Prompts:** {negative}"""


def build_negative_prompt(tags: Iterable[str], custom: str = "") -> str:
    """Union selected tags with comma-separated free-form text.

    Args:
        tags: Selected negative-prompt tags.
        custom: User text such as ``"hats, sunglasses"``.

    Returns:
        The combined list joined by ``", "`` (empty when nothing is set).
    """
    parts = [t.strip() for t in tags if t.strip()]
    parts.extend(p.strip() for p in custom.split(",") if p.strip())
    return ", ".join(parts)


def build_anchored_image_prompt(
    scenario: Scenario,
    theme: str,
    style: str,
    negative: str,
    notes: str = "",
) -> str:
    """Prompt for an image-edit call that carries a reference image."""
    return ANCHORED_IMAGE_PROMPT.format(
        theme=theme,
        scene=scenario.scene,
        emotion=scenario.emotion,
        style=style,
        notes=f"- User Notes: {notes}\n" if notes else "",
        negative=negative or "None",
    )


def build_text_image_prompt(
    description: str,
    scenario: Scenario,
    theme: str,
    style: str,
    negative: str,
) -> str:
    """Prompt for a text-to-image call that relies on the couple description."""
    return TEXT_IMAGE_PROMPT.format(
        description=description,
        theme=theme,
        scene=scenario.scene,
        emotion=scenario.emotion,
        style=style,
        negative=negative or "None",
    )
