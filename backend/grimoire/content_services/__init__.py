"""Content generation collaborators (lore and images)."""

from __future__ import annotations

from typing import Optional, Protocol

from grimoire.content_services import images, lore
from grimoire.models import HerbRecord


class ContentService(Protocol):
    async def fetch_lore(self, query: str) -> HerbRecord: ...

    async def fetch_image(self, subject: str, style_hint: Optional[str] = None) -> str: ...


class OpenAIContentService:
    """Lore and images from OpenAI-compatible endpoints configured in the environment."""

    async def fetch_lore(self, query: str) -> HerbRecord:
        return await lore.fetch_lore(query)

    async def fetch_image(self, subject: str, style_hint: Optional[str] = None) -> str:
        return await images.fetch_image(subject, style_hint)
