"""Prompts sent by generation services for the text-only steps."""

from __future__ import annotations

SUBJECT_DESCRIPTION_PROMPT = """\
You are preparing a prewedding photo shoot. Rewrite the user's description of \
the couple into ONE precise, reusable English description of their physical \
appearance and outfits (faces, hair, skin tone, body type, clothing, colors, \
accessories). It will be repeated verbatim in every photo prompt, so keep it \
concrete and consistent and do not describe any scene, pose or location. \
The couple is Indonesian. Output only the description.

User description: "{user_text}\""""

SCENARIO_BATCH_PROMPT = """\
Create {count} distinct, romantic prewedding photo scenarios set in \
"{theme}". Each scenario has a "scene" (one sentence: what the couple is \
doing and where, specific to the location) and an "emotion" (one short \
phrase). Avoid repeating scenes.

Respond with a JSON array only, for example:
[{{"scene": "...", "emotion": "..."}}]"""

VALIDATION_PROBE_PROMPT = "Reply with the single word: ok"


def build_subject_description_prompt(user_text: str) -> str:
    return SUBJECT_DESCRIPTION_PROMPT.format(user_text=user_text.strip())


def build_scenario_batch_prompt(theme: str, count: int) -> str:
    return SCENARIO_BATCH_PROMPT.format(theme=theme, count=count)
