"""Structured herb lore from the chat model."""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from grimoire import config
from grimoire.content_services.llm_client import LLMClientError, call_openai_compatible
from grimoire.errors import ContentServiceError
from grimoire.models import HerbRecord

logger = logging.getLogger("grimoire.content.lore")

_SYSTEM_PROMPT = (
    "You are an expert herbalist specializing in esoteric and magical lore. "
    "Reply with exactly one JSON object and no introductory or concluding phrases. "
    "Keys: name (common name), scientific_name, magical_properties (list of strings such as "
    "Protection, Love, Prosperity), elemental_association (Fire, Water, Earth or Air), "
    "planetary_association (e.g. Mars, Venus, Moon), deity_association (list of deity names, may be empty), "
    "lore (a paragraph of folklore or history), usage (how it is used in magical practice or ritual), "
    "herbal_oil (object with lore and usage, or null), complementary_essences (list of objects with "
    "name and purpose), external_resources (list of objects with source and url)."
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    return match.group(1) if match else stripped


def parse_herb_record(text: str) -> HerbRecord:
    """Parse the model's JSON reply; raises ValueError when it is empty or malformed."""
    body = _strip_code_fence(text or "")
    if not body:
        raise ValueError("Received an empty response from the model")
    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError("Model response is not a JSON object")
    for optional in ("deity_association", "complementary_essences", "external_resources"):
        if payload.get(optional) == []:
            payload[optional] = None
    return HerbRecord.model_validate(payload)


async def fetch_lore(query: str) -> HerbRecord:
    herb_name = (query or "").strip()
    if not herb_name:
        raise ContentServiceError("Please enter the name of a herb.")

    try:
        reply = await call_openai_compatible(
            base_url=config.LLM_BASE_URL,
            api_key=config.LLM_API_KEY,
            model=config.LLM_MODEL,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": f'Provide the magical significance of the herb "{herb_name}".'},
            ],
            timeout_seconds=config.LLM_TIMEOUT_SECONDS,
            json_mode=True,
        )
        return parse_herb_record(reply)
    except (LLMClientError, ValidationError, ValueError) as exc:
        logger.warning("Lore lookup failed for %r (%s)", herb_name, exc)
        raise ContentServiceError(
            f'Failed to fetch information for "{herb_name}". The plant may be too obscure or the request failed.'
        ) from exc
