"""Illustrative herb images from the image model."""

from __future__ import annotations

import logging
from typing import Optional

from grimoire import config
from grimoire.content_services.llm_client import LLMClientError, generate_image
from grimoire.errors import ContentServiceError

logger = logging.getLogger("grimoire.content.images")

DEFAULT_STYLE_HINT = (
    "The plant has a subtle, magical glow. The background is dark and esoteric, with faint, "
    "glowing alchemical symbols. Fantasy art style, high detail, cinematic lighting."
)


def build_image_prompt(subject: str, style_hint: Optional[str] = None) -> str:
    style = (style_hint or "").strip() or DEFAULT_STYLE_HINT
    return f"A mystical, artistic digital painting of the {subject.strip()} plant. {style}"


async def fetch_image(subject: str, style_hint: Optional[str] = None) -> str:
    herb_name = (subject or "").strip()
    if not herb_name:
        raise ContentServiceError("Please enter the name of a herb.")

    try:
        return await generate_image(
            base_url=config.IMAGE_BASE_URL,
            api_key=config.IMAGE_API_KEY,
            model=config.IMAGE_MODEL,
            prompt=build_image_prompt(herb_name, style_hint),
            size=config.IMAGE_SIZE,
            timeout_seconds=config.IMAGE_TIMEOUT_SECONDS,
        )
    except LLMClientError as exc:
        logger.warning("Image generation failed for %r (%s)", herb_name, exc)
        raise ContentServiceError(f'Failed to generate an image for "{herb_name}".') from exc
