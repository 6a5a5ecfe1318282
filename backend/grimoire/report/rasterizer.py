"""Rasterize one :class:`PageLayout` into a PNG sized to the page content area.

Each page is laid out with a PyMuPDF ``Story`` on a scratch single-page PDF
that only sees the layout's own CSS and assets, then rendered to a bitmap.
The scratch surface is created and released per page.
"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import pymupdf
import httpx

from grimoire.errors import PageRenderError
from grimoire.report.assets import FontAsset, LoadedFont, ReadyAssets, ReadyBarrier
from grimoire.report.layout import PageGeometry, PageLayout

logger = logging.getLogger("grimoire.report.rasterizer")

BAND_HEIGHT = 28.0
FIT_SCALES: tuple[float, ...] = (1.0, 1.15, 1.3, 1.45, 1.6)


@dataclass(frozen=True)
class RasterPage:
    png: bytes
    width: int
    height: int
    scale: float
    overflowed: bool = False


def font_face_css(fonts: Sequence[LoadedFont]) -> str:
    return "".join(f'@font-face {{ font-family: "{font.family}"; src: url({font.filename}); }}\n' for font in fonts)


class ScratchSurface:
    """Off-screen single-page PDF used as the drawing target for one capture."""

    def __init__(self, width: float, height: float):
        self.rect = pymupdf.Rect(0, 0, width, height)
        self._buffer = io.BytesIO()
        self._writer: Optional[pymupdf.DocumentWriter] = None
        self.device = None

    def __enter__(self) -> "ScratchSurface":
        self._writer = pymupdf.DocumentWriter(self._buffer)
        self.device = self._writer.begin_page(self.rect)
        return self

    def _close_writer(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        if self.device is not None:
            self.device = None
            writer.end_page()
        writer.close()

    def finish(self) -> bytes:
        self._close_writer()
        return self._buffer.getvalue()

    def __exit__(self, exc_type, exc, tb) -> None:
        self._close_writer()
        self._buffer.close()


class PageRasterizer:
    def __init__(
        self,
        geometry: PageGeometry,
        dpi: int = 144,
        asset_timeout_seconds: float = 5.0,
        fonts: Sequence[FontAsset] = (),
        http_client: Optional[httpx.AsyncClient] = None,
        image_hosts: Sequence[str] = (),
    ):
        self.geometry = geometry
        self.dpi = max(int(dpi), 36)
        self.asset_timeout_seconds = asset_timeout_seconds
        self.fonts = list(fonts)
        self.http_client = http_client
        self.image_hosts = tuple(image_hosts)

    async def rasterize(self, layout: PageLayout) -> RasterPage:
        """Wait for the page's assets to settle, then capture it off the event loop."""
        barrier = ReadyBarrier(self.asset_timeout_seconds, client=self.http_client, allowed_hosts=self.image_hosts)
        for name, ref in layout.images.items():
            barrier.track_image(name, ref)
        for font in self.fonts:
            barrier.track_font(font)

        try:
            ready = await barrier.wait()
            return await asyncio.to_thread(self._capture, layout, ready)
        except PageRenderError:
            raise
        except Exception as exc:
            raise PageRenderError(f"Could not rasterize {layout.label!r}: {exc}") from exc

    def _archive(self, ready: ReadyAssets) -> pymupdf.Archive:
        archive = pymupdf.Archive()
        for name, data in ready.images.items():
            archive.add(data, name)
        for font in ready.fonts:
            archive.add(font.data, font.filename)
        return archive

    def compose(self, layout: PageLayout, ready: ReadyAssets) -> tuple[bytes, float, bool]:
        """Lay out *layout* on a scratch page; returns its PDF bytes, the body scale and whether it overflowed."""
        width = self.geometry.content_width
        height = self.geometry.content_height
        archive = self._archive(ready)
        css = font_face_css(ready.fonts) + layout.css

        top = BAND_HEIGHT if layout.header_html else 0.0
        bottom = height - (BAND_HEIGHT if layout.footer_html else 0.0)

        with ScratchSurface(width, height) as surface:
            if layout.header_html:
                self._draw_band(surface, layout.header_html, css, archive, pymupdf.Rect(0, 0, width, BAND_HEIGHT))
            scale, overflowed = self._draw_body(surface, layout, css, archive, pymupdf.Rect(0, top, width, bottom))
            if layout.footer_html:
                self._draw_band(
                    surface, layout.footer_html, css, archive, pymupdf.Rect(0, height - BAND_HEIGHT, width, height)
                )
            pdf_bytes = surface.finish()
        return pdf_bytes, scale, overflowed

    def _capture(self, layout: PageLayout, ready: ReadyAssets) -> RasterPage:
        pdf_bytes, scale, overflowed = self.compose(layout, ready)
        if overflowed:
            logger.warning("Page %r overflows its content area at scale %.2f; clipping", layout.label, scale)

        scratch = pymupdf.open("pdf", pdf_bytes)
        try:
            pixmap = scratch[0].get_pixmap(dpi=self.dpi, alpha=False)
            png = pixmap.tobytes("png")
            return RasterPage(png=png, width=pixmap.width, height=pixmap.height, scale=scale, overflowed=overflowed)
        finally:
            scratch.close()

    def _draw_band(
        self,
        surface: ScratchSurface,
        html: str,
        css: str,
        archive: pymupdf.Archive,
        rect: pymupdf.Rect,
    ) -> None:
        story = pymupdf.Story(html=html, user_css=css, archive=archive)
        story.place(rect)
        story.draw(surface.device)

    def _draw_body(
        self,
        surface: ScratchSurface,
        layout: PageLayout,
        css: str,
        archive: pymupdf.Archive,
        rect: pymupdf.Rect,
    ) -> tuple[float, bool]:
        """Shrink the body to fit *rect*; past the largest scale it is clipped."""
        story = pymupdf.Story(html=layout.html, user_css=css, archive=archive)
        scale = FIT_SCALES[0]
        more = 0
        for scale in FIT_SCALES:
            story.reset()
            more, _ = story.place(pymupdf.Rect(0, 0, rect.width * scale, rect.height * scale))
            if not more:
                break
        matrix = pymupdf.Matrix(1 / scale, 0, 0, 1 / scale, rect.x0, rect.y0)
        story.draw(surface.device, matrix)
        return scale, bool(more)
