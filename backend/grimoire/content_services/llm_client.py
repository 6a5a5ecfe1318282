"""OpenAI-compatible HTTP client for chat completions and image generations."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse, urlunparse

import httpx

from grimoire.log_redact import httpx_event_hooks

logger = logging.getLogger("grimoire.content.llm")

CHAT_COMPLETIONS = "chat/completions"
IMAGE_GENERATIONS = "images/generations"


class LLMClientError(RuntimeError):
    """Raised when an OpenAI-compatible request fails or has no usable output."""


def _with_path(parsed, path: str) -> str:
    clean_path = f"/{path.lstrip('/')}"
    return urlunparse((parsed.scheme, parsed.netloc, clean_path, "", "", ""))


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def build_api_urls(base_url: str, endpoint: str) -> list[str]:
    """Build candidate URLs for *endpoint* from a base URL.

    Local model runners expose the OpenAI API under either ``/v1`` or
    ``/engines/v1``; when the base URL does not say which, both are tried.
    """
    normalized = (base_url or "").strip().rstrip("/")
    if not normalized:
        raise LLMClientError("API base URL is not configured")

    parsed = urlparse(normalized)
    if not parsed.scheme or not parsed.netloc:
        raise LLMClientError(f"Invalid API base URL: {base_url!r}")

    endpoint = endpoint.strip("/")
    path = parsed.path.rstrip("/")
    if path.endswith(f"/{endpoint}"):
        return [normalized]

    if path in {"", "/"}:
        return _dedupe(
            [
                _with_path(parsed, f"/v1/{endpoint}"),
                _with_path(parsed, f"/engines/v1/{endpoint}"),
            ]
        )

    if path.endswith("/engines/v1"):
        prefix = path.removesuffix("/engines/v1")
        return _dedupe(
            [
                _with_path(parsed, f"{path}/{endpoint}"),
                _with_path(parsed, f"{prefix}/v1/{endpoint}"),
            ]
        )

    if path.endswith("/v1"):
        prefix = path.removesuffix("/v1")
        return _dedupe(
            [
                _with_path(parsed, f"{path}/{endpoint}"),
                _with_path(parsed, f"{prefix}/engines/v1/{endpoint}"),
            ]
        )

    return [_with_path(parsed, f"{path}/{endpoint}")]


def build_chat_completion_urls(base_url: str) -> list[str]:
    return build_api_urls(base_url, CHAT_COMPLETIONS)


def _extract_text_content(data: dict) -> str:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first_choice = choices[0]
    if not isinstance(first_choice, dict):
        return ""
    message = first_choice.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str) and text.strip():
                    parts.append(text.strip())
        return "\n".join(parts).strip()
    return ""


def _extract_image_ref(data: dict) -> str:
    items = data.get("data")
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return ""
    first = items[0]
    encoded = first.get("b64_json")
    if isinstance(encoded, str) and encoded.strip():
        return f"data:image/png;base64,{encoded.strip()}"
    url = first.get("url")
    if isinstance(url, str) and url.strip():
        return url.strip()
    return ""


def _normalize_messages(messages: list[dict[str, str]]) -> list[dict[str, str]]:
    if not messages:
        raise LLMClientError("At least one message is required")

    normalized: list[dict[str, str]] = []
    for item in messages:
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", "")).strip()
        if not role or not content:
            continue
        normalized.append({"role": role, "content": content})

    if not normalized:
        raise LLMClientError("No valid messages provided")

    system_indexes = [index for index, item in enumerate(normalized) if item.get("role") == "system"]
    if not system_indexes:
        raise LLMClientError("System message is required and must be first in payload")

    first_system_index = system_indexes[0]
    if first_system_index != 0:
        system_message = normalized.pop(first_system_index)
        normalized.insert(0, system_message)
    return normalized


def _headers(api_key: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key and api_key.strip():
        headers["Authorization"] = f"Bearer {api_key.strip()}"
    return headers


async def _post_json(
    urls: list[str],
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout_seconds: float,
) -> dict:
    """POST *payload* to the first candidate URL that accepts it and return the JSON body."""
    timeout = httpx.Timeout(max(float(timeout_seconds), 1.0))
    last_error: Exception | None = None
    async with httpx.AsyncClient(timeout=timeout, event_hooks=httpx_event_hooks()) as client:
        for index, url in enumerate(urls):
            try:
                response = await client.post(url, json=payload, headers=headers)
            except Exception as exc:
                last_error = exc
                if index < len(urls) - 1:
                    logger.warning("Request transport error on %s, trying next candidate URL", url)
                    continue
                raise LLMClientError(f"Request failed: {exc.__class__.__name__}") from exc

            if response.status_code >= 400:
                body_preview = response.text[:300]
                if response.status_code in {404, 405} and index < len(urls) - 1:
                    logger.warning(
                        "Endpoint candidate rejected status=%d url=%s body=%s; trying fallback URL",
                        response.status_code,
                        url,
                        body_preview,
                    )
                    continue
                raise LLMClientError(f"Request failed status={response.status_code} url={url} body={body_preview}")

            try:
                data = response.json()
            except ValueError as exc:
                raise LLMClientError("Response is not valid JSON") from exc
            return data if isinstance(data, dict) else {}

    if last_error is not None:
        raise LLMClientError(f"Request failed: {last_error.__class__.__name__}") from last_error
    raise LLMClientError("No valid endpoint URL candidates")


async def call_openai_compatible(
    *,
    base_url: str,
    api_key: str | None,
    model: str,
    messages: list[dict[str, str]],
    timeout_seconds: float,
    temperature: float = 0.7,
    max_tokens: int = 1500,
    json_mode: bool = False,
) -> str:
    """Call an OpenAI-compatible chat-completions endpoint and return output text."""
    if not model.strip():
        raise LLMClientError("LLM model is not configured")

    urls = build_chat_completion_urls(base_url)
    payload: dict[str, Any] = {
        "model": model.strip(),
        "messages": _normalize_messages(messages),
        "temperature": max(0.0, min(float(temperature), 2.0)),
        "max_tokens": max(1, min(int(max_tokens), 4000)),
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    data = await _post_json(urls, payload, _headers(api_key), timeout_seconds)
    content = _extract_text_content(data)
    if not content:
        raise LLMClientError("LLM response did not include content")
    return content


async def generate_image(
    *,
    base_url: str,
    api_key: str | None,
    model: str,
    prompt: str,
    size: str,
    timeout_seconds: float,
) -> str:
    """Generate one image and return it as a data URI (or the provider's URL)."""
    if not model.strip():
        raise LLMClientError("Image model is not configured")
    if not prompt.strip():
        raise LLMClientError("Image prompt is empty")

    payload = {
        "model": model.strip(),
        "prompt": prompt.strip(),
        "n": 1,
        "size": size,
        "response_format": "b64_json",
    }
    data = await _post_json(build_api_urls(base_url, IMAGE_GENERATIONS), payload, _headers(api_key), timeout_seconds)
    image_ref = _extract_image_ref(data)
    if not image_ref:
        raise LLMClientError("No image was generated")
    return image_ref
