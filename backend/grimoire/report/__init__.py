"""PDF and rich-text reports of the favorites collection."""

from __future__ import annotations

from functools import partial
from typing import Optional

import httpx

from grimoire import config
from grimoire.report.assets import parse_font_files
from grimoire.report.document import ReportDocument
from grimoire.report.engine import ExportResult, PaginationEngine
from grimoire.report.layout import PageGeometry
from grimoire.report.rasterizer import PageRasterizer
from grimoire.report.templates import PageTemplateRenderer

__all__ = ["ExportResult", "PaginationEngine", "build_engine"]


def build_engine(http_client: Optional[httpx.AsyncClient] = None) -> PaginationEngine:
    """Pagination engine configured from the environment."""
    geometry = PageGeometry.from_name(config.REPORT_PAGE_SIZE, config.REPORT_MARGIN_PT)
    fonts = parse_font_files(config.REPORT_FONT_FILES)
    font_family = f'"{fonts[0].family}", sans-serif' if fonts else "sans-serif"
    renderer = PageTemplateRenderer(geometry, config.REPORT_TITLE, font_family=font_family)
    rasterizer = PageRasterizer(
        geometry,
        dpi=config.REPORT_DPI,
        asset_timeout_seconds=config.REPORT_ASSET_TIMEOUT_SECONDS,
        fonts=fonts,
        http_client=http_client,
        image_hosts=config.REPORT_IMAGE_HOSTS,
    )
    return PaginationEngine(renderer, rasterizer, partial(ReportDocument, geometry))
