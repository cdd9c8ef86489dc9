"""One-off outfit previews and prompt enhancement.

Each helper is a short chain of resilient calls (text, then image) that
shares the session's executor, so previews rotate keys and back off the
same way the photo session does.
"""

from __future__ import annotations

import random

from photoforge.catalog import DEFAULT_CATALOG, CreativeCatalog
from photoforge.errors import ConfigError
from photoforge.executor import ResilientExecutor
from photoforge.logging import get_logger
from photoforge.models import DEFAULT_IMAGE_MODEL, Preview
from photoforge.progress import ProgressCallback, emit_progress
from photoforge.prompts import (
    build_casual_description,
    build_casual_preview_prompt,
    build_enhance_prompt,
    build_traditional_description_prompt,
    build_traditional_preview_prompt,
)
from photoforge.providers._base import GenerationService

logger = get_logger("previews")


async def generate_casual_preview(
    executor: ResilientExecutor,
    service: GenerationService,
    *,
    model: str = DEFAULT_IMAGE_MODEL,
    rng: random.Random | None = None,
    catalog: CreativeCatalog | None = None,
    on_progress: ProgressCallback | None = None,
) -> Preview:
    """Render a random casual outfit for the couple.

    The outfit description is assembled locally from the catalog, so only
    the image call goes to the provider.
    """
    source = rng or random.Random()
    vocab = catalog or DEFAULT_CATALOG
    description = build_casual_description(
        source.choice(vocab.female_clothing_options),
        source.choice(vocab.male_clothing),
        source.choice(vocab.male_pants),
        source.choice(vocab.accessories),
    )
    emit_progress(on_progress, "Creating a casual outfit preview...")
    prompt = build_casual_preview_prompt(description)
    image = await executor.execute(
        lambda secret: service.generate_image(secret, prompt, model),
        on_progress,
    )
    logger.info("Casual preview generated")
    return Preview(text_prompt=description, image=image)


async def generate_traditional_preview(
    executor: ResilientExecutor,
    service: GenerationService,
    region: str,
    *,
    model: str = DEFAULT_IMAGE_MODEL,
    catalog: CreativeCatalog | None = None,
    on_progress: ProgressCallback | None = None,
) -> Preview:
    """Describe and render traditional wedding attire from *region*.

    Raises:
        ConfigError: If *region* is blank.
    """
    region = region.strip()
    if not region:
        raise ConfigError("A region is required for a traditional attire preview")

    vocab = catalog or DEFAULT_CATALOG
    emit_progress(on_progress, f"Describing traditional attire from {region}...")
    description_prompt = build_traditional_description_prompt(
        region, vocab.traditional_dress_regions.get(region, "")
    )
    description = await executor.execute(
        lambda secret: service.generate_text(secret, description_prompt),
        on_progress,
    )
    description = description.strip()

    emit_progress(on_progress, "Rendering the traditional attire preview...")
    image_prompt = build_traditional_preview_prompt(description, region)
    image = await executor.execute(
        lambda secret: service.generate_image(secret, image_prompt, model),
        on_progress,
    )
    logger.info("Traditional preview generated for %s", region)
    return Preview(text_prompt=description, image=image)


async def enhance_prompt(
    executor: ResilientExecutor,
    service: GenerationService,
    text: str,
    *,
    on_progress: ProgressCallback | None = None,
) -> str:
    """Rewrite a short couple description into a richer one.

    Raises:
        ConfigError: If *text* is blank.
    """
    if not text.strip():
        raise ConfigError("Nothing to enhance: the description is empty")
    prompt = build_enhance_prompt(text.strip())
    result = await executor.execute(
        lambda secret: service.generate_text(secret, prompt),
        on_progress,
    )
    return result.strip()
