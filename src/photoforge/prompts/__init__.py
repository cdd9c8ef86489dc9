"""Prompt constants and builders for PhotoForge generation calls.

All prompts are Python f-string constants or builder functions; no
template engines are used.
"""

from __future__ import annotations

from photoforge.prompts.previews import (
    CASUAL_PREVIEW_PROMPT,
    ENHANCE_PROMPT,
    TRADITIONAL_DESCRIPTION_PROMPT,
    TRADITIONAL_PREVIEW_PROMPT,
    build_casual_description,
    build_casual_preview_prompt,
    build_enhance_prompt,
    build_traditional_description_prompt,
    build_traditional_preview_prompt,
)
from photoforge.prompts.providers import (
    SCENARIO_BATCH_PROMPT,
    SUBJECT_DESCRIPTION_PROMPT,
    VALIDATION_PROBE_PROMPT,
    build_scenario_batch_prompt,
    build_subject_description_prompt,
)
from photoforge.prompts.session import (
    ANCHORED_IMAGE_PROMPT,
    TEXT_IMAGE_PROMPT,
    build_anchored_image_prompt,
    build_negative_prompt,
    build_text_image_prompt,
)

__all__ = [
    "ANCHORED_IMAGE_PROMPT",
    "CASUAL_PREVIEW_PROMPT",
    "ENHANCE_PROMPT",
    "SCENARIO_BATCH_PROMPT",
    "SUBJECT_DESCRIPTION_PROMPT",
    "TEXT_IMAGE_PROMPT",
    "TRADITIONAL_DESCRIPTION_PROMPT",
    "TRADITIONAL_PREVIEW_PROMPT",
    "VALIDATION_PROBE_PROMPT",
    "build_anchored_image_prompt",
    "build_casual_description",
    "build_casual_preview_prompt",
    "build_enhance_prompt",
    "build_negative_prompt",
    "build_scenario_batch_prompt",
    "build_subject_description_prompt",
    "build_text_image_prompt",
    "build_traditional_description_prompt",
    "build_traditional_preview_prompt",
]
