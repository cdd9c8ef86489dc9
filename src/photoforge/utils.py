"""Shared utility functions for PhotoForge.

Contains helpers used across multiple modules to avoid code duplication.
"""

from __future__ import annotations

import json
import random
import re
import string
import time
from typing import Any, Sequence, TypeVar

T = TypeVar("T")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences from text.

    Handles ````` ```json ... ``` `````, ````` ``` ... ``` `````,
    and similar patterns.  Returns the content inside the outermost
    fences, or the original text if no fences are found.

    Args:
        text: Raw text potentially wrapped in code fences.

    Returns:
        Text with outermost code fences stripped.
    """
    fence_pattern = re.compile(r"```(?:\w*)\s*\n?(.*?)\n?\s*```", re.DOTALL)
    match = fence_pattern.search(text)
    if match:
        return match.group(1).strip()
    return text


def parse_json_from_llm(text: str) -> dict[str, Any] | list[Any]:
    """Parse JSON from LLM output, handling common formatting quirks.

    Strips code fences, handles trailing commas, and attempts JSON parsing.

    Args:
        text: Raw LLM response text.

    Returns:
        Parsed JSON object or array.

    Raises:
        ValueError: If the text cannot be parsed as a JSON object or array.
    """
    cleaned = strip_code_fences(text.strip())

    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError:
        # Remove trailing commas before } or ]
        sanitized = re.sub(r",\s*([}\]])", r"\1", cleaned)
        try:
            data = json.loads(sanitized)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Failed to parse JSON: {exc}") from exc

    if not isinstance(data, (dict, list)):
        raise ValueError(f"Expected a JSON object or array, got {type(data).__name__}")
    return data


def shuffled(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a shuffled copy of *items*, leaving the input untouched."""
    copy = list(items)
    (rng or random).shuffle(copy)
    return copy


def generate_random_filename(
    prefix: str = "photo",
    extension: str | None = None,
    rng: random.Random | None = None,
) -> str:
    """Build a unique-looking file name such as ``photo_1718000000000_k3j9x2``.

    Args:
        prefix: Leading name segment.
        extension: Optional extension without the dot.
        rng: Random source for the suffix.

    Returns:
        The generated name.
    """
    source = rng or random
    suffix = "".join(source.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    name = f"{prefix}_{int(time.time() * 1000)}_{suffix}"
    return f"{name}.{extension}" if extension else name
