"""Herb search: lore and image requested together, combined only when both succeed."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from grimoire.content_services import ContentService
from grimoire.errors import ContentServiceError
from grimoire.models import HerbRecord

logger = logging.getLogger("grimoire.content.search")

EXAMPLE_HERBS: tuple[str, ...] = ("Mugwort", "Rosemary", "Lavender", "Sage", "Yarrow", "Vervain")


@dataclass(frozen=True)
class SearchResult:
    herb: HerbRecord
    image: str


async def search_herb(content: ContentService, query: str) -> SearchResult:
    herb_name = (query or "").strip()
    if not herb_name:
        raise ContentServiceError("Please enter the name of a herb.")

    lore_result, image_result = await asyncio.gather(
        content.fetch_lore(herb_name),
        content.fetch_image(herb_name),
        return_exceptions=True,
    )
    for result in (lore_result, image_result):
        if isinstance(result, ContentServiceError):
            raise result
        if isinstance(result, BaseException):
            logger.error("Unexpected search failure for %r", herb_name, exc_info=result)
            raise ContentServiceError("An unknown error occurred. Please try again.") from result

    return SearchResult(herb=lore_result, image=image_result)
