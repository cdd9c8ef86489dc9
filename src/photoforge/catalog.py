"""Static creative catalog: vocabularies used to build photo prompts.

Everything here is plain data.  The session draws photographic styles and
fallback scenarios from it, and the previews draw outfit vocabularies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from photoforge.models import DEFAULT_IMAGE_MODEL

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

IMAGE_MODELS: dict[str, str] = {
    DEFAULT_IMAGE_MODEL: "Gemini Flash (fast and flexible)",
    "imagen-4.0-generate-001": "Imagen 4 (highest quality)",
}

# Models that accept an input image alongside the prompt.
EDIT_CAPABLE_MODELS = frozenset({DEFAULT_IMAGE_MODEL})


def is_edit_capable(model: str) -> bool:
    """Whether *model* can take a reference image as a visual anchor."""
    return model in EDIT_CAPABLE_MODELS


# ---------------------------------------------------------------------------
# Casual outfits
# ---------------------------------------------------------------------------


class FemaleOutfit(NamedTuple):
    style: str
    clothing: str
    bottom: str | None = None


MALE_CLOTHING: tuple[str, ...] = (
    "a crisp white linen shirt with rolled sleeves",
    "a navy knit polo",
    "a light denim shirt",
    "a beige oversized cardigan over a plain tee",
    "a sage green henley",
    "a soft gray crewneck sweater",
    "a short-sleeved batik shirt in muted brown tones",
)

MALE_PANTS: tuple[str, ...] = (
    "tan chinos",
    "dark slim-fit jeans",
    "light gray trousers",
    "cream linen pants",
    "black tapered trousers",
)

FEMALE_CLOTHING_OPTIONS: tuple[FemaleOutfit, ...] = (
    FemaleOutfit("wearing a modest hijab in dusty pink", "a flowing long-sleeved midi dress"),
    FemaleOutfit("with loose wavy hair", "a white eyelet blouse", "a pleated pastel maxi skirt"),
    FemaleOutfit("wearing a cream pashmina hijab", "a soft knit tunic", "wide-leg linen trousers"),
    FemaleOutfit("with hair in a low bun", "a floral wrap dress"),
    FemaleOutfit("with a sleek ponytail", "a fitted ribbed top", "high-waisted denim"),
    FemaleOutfit("wearing a sage satin hijab", "an embroidered kaftan-style dress"),
)

ACCESSORIES: tuple[str, ...] = (
    "a woven rattan bag",
    "delicate gold jewelry",
    "classic leather watches",
    "round sunglasses",
    "a straw hat",
    "a vintage film camera",
    "a bouquet of baby's breath",
)

# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

STORY_SCENES: tuple[str, ...] = (
    "The couple walks hand in hand, laughing at a private joke.",
    "They share an umbrella during a light afternoon drizzle.",
    "The man gently tucks a strand of hair behind her ear.",
    "They sit back to back on the grass, reading the same book.",
    "She rests her head on his shoulder while watching the sunset.",
    "They dance slowly without music in an empty street.",
    "He surprises her with a small bouquet of flowers.",
    "They share a warm drink from street vendors on a cool evening.",
    "The couple looks at an old photo album together.",
    "They ride a bicycle together, she sits on the back seat.",
    "They cook together, flour on their hands and faces.",
    "He lifts her in a joyful spin as she laughs.",
    "They write wishes on paper lanterns.",
    "They steal a glance at each other across a busy market stall.",
    "The couple sits on a wooden pier, feet dangling above the water.",
    "They lean their foreheads together, eyes closed.",
    "She fixes his collar before they step out.",
    "They walk barefoot along the shoreline at golden hour.",
    "They take a playful selfie, pulling silly faces.",
    "The couple shares a quiet breakfast on a sunny balcony.",
)

EMOTIONAL_CUES: tuple[str, ...] = (
    "A feeling of deep connection.",
    "Playful and carefree joy.",
    "Quiet, tender intimacy.",
    "Warm nostalgia.",
    "Shy, blooming romance.",
    "Calm contentment.",
    "Excited anticipation of the future.",
    "Genuine, unposed laughter.",
)

GENERIC_SCENARIO = (
    "The couple shares a quiet, intimate moment.",
    "A feeling of deep connection.",
)

# ---------------------------------------------------------------------------
# Styles and negative prompts
# ---------------------------------------------------------------------------

PHOTOGRAPHIC_STYLES: tuple[str, ...] = (
    "Cinematic, shallow depth of field, soft golden-hour backlight",
    "Film photography, Kodak Portra 400 tones, gentle grain",
    "Candid documentary style, natural light",
    "Fine-art editorial, muted pastel palette",
    "Moody low-key lighting with warm highlights",
    "Bright and airy, high-key exposure",
    "Wide-angle environmental portrait, strong leading lines",
    "Soft-focus dreamy look with lens flare",
)

NEGATIVE_PROMPT_TAGS: tuple[str, ...] = (
    "blurry",
    "deformed hands",
    "extra fingers",
    "distorted faces",
    "cartoon",
    "oversaturated",
    "watermark",
    "text",
    "low resolution",
    "extra people",
)

# ---------------------------------------------------------------------------
# Traditional dress and locations
# ---------------------------------------------------------------------------

TRADITIONAL_DRESS_REGIONS: dict[str, str] = {
    "Java": "Javanese kebaya with batik kain, beskap and blangkon",
    "Bali": "Balinese payas agung with golden headdress and songket",
    "Minangkabau": "Minangkabau suntiang headdress and red-gold songket",
    "Sunda": "Sundanese kebaya with siger crown and beskap",
    "Bugis": "Bugis baju bodo with silk sarong",
    "Betawi": "Betawi kebaya encim and sadariah with peci",
    "Palembang": "Palembang aesan gede with golden songket",
    "Aceh": "Acehnese daro baro with embroidered songket",
}

LOCATION_GROUPS: dict[str, tuple[str, ...]] = {
    "Studio & Concept": ("Professional Photo Studio",),
    "Indonesia": (
        "Everyday Life",
        "Campus Story",
        "Traditional Market",
        "Old Town",
        "Batik Shop",
        "Countryside",
        "Tropical Forest",
        "Street Food",
        "Bali",
        "Yogyakarta",
        "Bromo",
        "Raja Ampat",
        "Sumba",
        "Lake Toba",
    ),
    "Asia Pacific": (
        "Tokyo",
        "Kyoto",
        "Nara (Japan)",
        "Seoul (Korea)",
        "Thailand",
        "Vietnam",
        "Singapore",
        "New Zealand",
        "Australia",
    ),
    "Europe": (
        "Paris",
        "Santorini",
        "Rome",
        "Venice",
        "London",
        "Prague",
        "Tuscany",
        "Switzerland",
        "Iceland",
    ),
    "Americas & Middle East": (
        "New York City",
        "Grand Canyon",
        "California",
        "Cappadocia (Turkey)",
        "Dubai",
        "Morocco",
    ),
}


def all_locations() -> list[str]:
    """Flatten :data:`LOCATION_GROUPS` in display order."""
    return [loc for group in LOCATION_GROUPS.values() for loc in group]


@dataclass(frozen=True)
class CreativeCatalog:
    """Bundle of the vocabularies a session or preview draws from.

    The defaults are this module's constants; tests and callers may pass a
    smaller catalog to make random draws predictable.
    """

    story_scenes: tuple[str, ...] = STORY_SCENES
    emotional_cues: tuple[str, ...] = EMOTIONAL_CUES
    photographic_styles: tuple[str, ...] = PHOTOGRAPHIC_STYLES
    generic_scenario: tuple[str, str] = GENERIC_SCENARIO
    male_clothing: tuple[str, ...] = MALE_CLOTHING
    male_pants: tuple[str, ...] = MALE_PANTS
    female_clothing_options: tuple[FemaleOutfit, ...] = FEMALE_CLOTHING_OPTIONS
    accessories: tuple[str, ...] = ACCESSORIES
    traditional_dress_regions: dict[str, str] = field(
        default_factory=lambda: dict(TRADITIONAL_DRESS_REGIONS)
    )


DEFAULT_CATALOG = CreativeCatalog()
