"""Prompts for outfit previews and prompt enhancement."""

from __future__ import annotations

from photoforge.catalog import FemaleOutfit

CASUAL_PREVIEW_PROMPT = """\
Photorealistic 4k cinematic preview, 3:4 aspect ratio. A young Indonesian \
couple, their appearance and clothing are described as: "{description}". \
**Must be ethnically Indonesian.** Only one man and one woman. No cartoons."""

TRADITIONAL_DESCRIPTION_PROMPT = """\
Create a concise, culturally rich English description for an AI photo prompt. \
Subject: A couple in complete traditional wedding attire from the {region} \
region of Indonesia. Focus on key visual elements: specific garment names, \
patterns (batik, songket), and accessories (blangkon, sanggul).{hint}"""

TRADITIONAL_PREVIEW_PROMPT = """\
Photorealistic 4k cinematic preview, 3:4 aspect ratio. Description: \
"{description}". **CRITICAL: The couple must be ethnically Indonesian, with \
features authentic to the {region} region.** Culturally accurate attire. \
No cartoons."""

ENHANCE_PROMPT = """\
Enhance this user's description into a rich, detailed, and evocative prompt \
for an AI pre-wedding photo generator. Add cinematic lighting, emotional \
cues, and artistic composition, focusing on Indonesian cultural context. \
Output a single, cohesive paragraph. User description: "{text}\""""


def build_casual_description(
    female: FemaleOutfit,
    male_clothing: str,
    male_pants: str,
    accessory: str,
) -> str:
    """Describe a casual outfit pairing for the couple."""
    bottom = f" paired with {female.bottom}" if female.bottom else ""
    return (
        "A young Indonesian couple. "
        f"The female, {female.style}, wears {female.clothing}{bottom}. "
        f"The male wears {male_clothing} and {male_pants}. "
        "They both share a stylish, serene presence, accessorized with items "
        f"like {accessory}."
    )


def build_casual_preview_prompt(description: str) -> str:
    return CASUAL_PREVIEW_PROMPT.format(description=description)


def build_traditional_description_prompt(region: str, attire_hint: str = "") -> str:
    hint = f" Typical attire: {attire_hint}." if attire_hint else ""
    return TRADITIONAL_DESCRIPTION_PROMPT.format(region=region, hint=hint)


def build_traditional_preview_prompt(description: str, region: str) -> str:
    return TRADITIONAL_PREVIEW_PROMPT.format(description=description, region=region)


def build_enhance_prompt(text: str) -> str:
    return ENHANCE_PROMPT.format(text=text)
