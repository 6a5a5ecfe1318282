"""Asset loading for page rasterization.

A :class:`ReadyBarrier` collects the images and fonts a page references and
resolves once every one of them has settled. Images that fail or time out
settle as a placeholder so a page is never blocked by a single bad asset.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pymupdf
import httpx
from PIL import Image, ImageDraw

from grimoire.log_redact import httpx_event_hooks, redact_url
from grimoire.models import is_allowed_image_ref

logger = logging.getLogger("grimoire.report.assets")

PLACEHOLDER_SIZE = (480, 480)
MAX_IMAGE_EDGE = 1024


@dataclass(frozen=True)
class FontAsset:
    family: str
    path: str


@dataclass(frozen=True)
class LoadedFont:
    family: str
    filename: str
    data: bytes


@dataclass
class ReadyAssets:
    images: dict[str, bytes] = field(default_factory=dict)
    fonts: list[LoadedFont] = field(default_factory=list)
    placeholders: list[str] = field(default_factory=list)


def parse_font_files(entries: Iterable[str]) -> list[FontAsset]:
    """Parse ``Family=/path/to/font.ttf`` entries; malformed ones are skipped."""
    fonts: list[FontAsset] = []
    for entry in entries:
        family, sep, path = entry.partition("=")
        if not sep or not family.strip() or not path.strip():
            logger.warning("Ignoring malformed font entry %r", entry)
            continue
        fonts.append(FontAsset(family=family.strip(), path=path.strip()))
    return fonts


@lru_cache(maxsize=1)
def placeholder_image() -> bytes:
    """PNG shown in place of an image that could not be loaded."""
    image = Image.new("RGB", PLACEHOLDER_SIZE, "#ece6d6")
    draw = ImageDraw.Draw(image)
    width, height = PLACEHOLDER_SIZE
    draw.rectangle((8, 8, width - 9, height - 9), outline="#b7a98a", width=4)
    draw.line((8, 8, width - 9, height - 9), fill="#d4c9ae", width=2)
    draw.line((8, height - 9, width - 9, 8), fill="#d4c9ae", width=2)
    draw.text((width // 2 - 48, height // 2 - 6), "Image unavailable", fill="#6b5d40")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def normalize_png(data: bytes) -> bytes:
    """Decode any Pillow-readable image and re-encode it as a bounded-size PNG."""
    with Image.open(io.BytesIO(data)) as source:
        source.load()
        image = source if source.mode in {"RGB", "RGBA", "L"} else source.convert("RGBA")
        image.thumbnail((MAX_IMAGE_EDGE, MAX_IMAGE_EDGE))
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def decode_data_uri(ref: str) -> bytes:
    header, sep, payload = ref.partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError("Malformed data URI")
    if ";base64" not in header:
        raise ValueError("Only base64 data URIs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError("Invalid base64 payload") from exc


def _is_http(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


class ReadyBarrier:
    """Tracks page assets and waits until all of them have loaded or failed."""

    def __init__(
        self,
        image_timeout_seconds: float,
        client: Optional[httpx.AsyncClient] = None,
        allowed_hosts: Sequence[str] = (),
    ):
        self.image_timeout_seconds = max(float(image_timeout_seconds), 0.1)
        self._client = client
        self.allowed_hosts = tuple(allowed_hosts)
        self._images: dict[str, str] = {}
        self._fonts: list[FontAsset] = []

    def track_image(self, name: str, ref: str) -> None:
        self._images[name] = ref

    def track_font(self, font: FontAsset) -> None:
        self._fonts.append(font)

    async def wait(self) -> ReadyAssets:
        ready = ReadyAssets()
        needs_client = self._client is None and any(
            _is_http(ref) and is_allowed_image_ref(ref, self.allowed_hosts) for ref in self._images.values()
        )
        if needs_client:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.image_timeout_seconds),
                event_hooks=httpx_event_hooks(),
            ) as client:
                await self._settle_all(ready, client)
        else:
            await self._settle_all(ready, self._client)
        return ready

    async def _settle_all(self, ready: ReadyAssets, client: Optional[httpx.AsyncClient]) -> None:
        names = list(self._images)
        image_results = await asyncio.gather(*(self._settle_image(self._images[name], client) for name in names))
        for name, (data, failed) in zip(names, image_results):
            ready.images[name] = data
            if failed:
                ready.placeholders.append(name)

        font_results = await asyncio.gather(*(self._settle_font(font) for font in self._fonts))
        ready.fonts.extend(font for font in font_results if font is not None)

    async def _settle_image(self, ref: str, client: Optional[httpx.AsyncClient]) -> tuple[bytes, bool]:
        try:
            raw = await asyncio.wait_for(self._read_image(ref, client), timeout=self.image_timeout_seconds)
            return await asyncio.to_thread(normalize_png, raw), False
        except Exception as exc:
            logger.warning(
                "Image %s unavailable (%s); using placeholder",
                _describe_ref(ref),
                exc.__class__.__name__,
            )
            return placeholder_image(), True

    async def _read_image(self, ref: str, client: Optional[httpx.AsyncClient]) -> bytes:
        ref = (ref or "").strip()
        if not is_allowed_image_ref(ref, self.allowed_hosts):
            raise ValueError("Image reference is not a data: URI or an allowed remote host")
        if ref.startswith("data:"):
            return decode_data_uri(ref)
        if client is None:
            raise RuntimeError("No HTTP client available for remote image")
        response = await client.get(ref, follow_redirects=False)
        response.raise_for_status()
        return response.content

    async def _settle_font(self, font: FontAsset) -> Optional[LoadedFont]:
        try:
            data = await asyncio.to_thread(Path(font.path).read_bytes)
            pymupdf.Font(fontbuffer=data)
        except Exception:
            logger.warning("Font %s (%s) could not be loaded; skipping", font.family, font.path, exc_info=True)
            return None
        return LoadedFont(family=font.family, filename=Path(font.path).name, data=data)


def _describe_ref(ref: str) -> str:
    if (ref or "").startswith("data:"):
        return ref.partition(",")[0]
    return redact_url(ref or "")
