"""Two-pass pagination of the favorites report.

The first pass appends the title page, reserves page 2 for the table of
contents and then places every chapter and detail page in document order,
recording the physical page of each chapter divider. The second pass renders
the table of contents from those numbers and writes it into the reserved page.
Detail page footers count from the first page after the front matter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from grimoire.errors import PageRenderError
from grimoire.models import FavoriteRecord, Spell
from grimoire.report.document import ReportDocument, safe_filename
from grimoire.report.grouping import alphabetical, group_favorites, spells_for_herb
from grimoire.report.layout import PageLayout, TocEntry
from grimoire.report.rasterizer import RasterPage
from grimoire.report.templates import TOC_FONT_SIZES, PageTemplateRenderer

logger = logging.getLogger("grimoire.report.engine")

DEFAULT_FILENAME = "Esoteric-Herb-Grimoire.pdf"
TOC_LABEL = "Table of contents"


class Rasterizer(Protocol):
    async def rasterize(self, layout: PageLayout) -> RasterPage: ...


class ExportPhase(str, Enum):
    INIT = "init"
    TITLE = "title"
    RESERVE_TOC = "reserve_toc"
    CONTENT = "content"
    TOC = "toc"
    FINALIZE = "finalize"
    DONE = "done"


_TRANSITIONS: dict[ExportPhase, ExportPhase] = {
    ExportPhase.INIT: ExportPhase.TITLE,
    ExportPhase.TITLE: ExportPhase.RESERVE_TOC,
    ExportPhase.RESERVE_TOC: ExportPhase.CONTENT,
    ExportPhase.CONTENT: ExportPhase.TOC,
    ExportPhase.TOC: ExportPhase.FINALIZE,
    ExportPhase.FINALIZE: ExportPhase.DONE,
}


@dataclass(frozen=True)
class ExportResult:
    content: bytes
    filename: str
    page_count: int
    toc_entries: tuple[TocEntry, ...] = ()
    failed_items: tuple[str, ...] = ()


@dataclass
class _ReportRun:
    """Mutable counters for one export; only touched sequentially."""

    phase: ExportPhase = ExportPhase.INIT
    current_page: int = 0
    toc_page_number: Optional[int] = None
    toc_entries: list[TocEntry] = field(default_factory=list)
    failed_items: list[str] = field(default_factory=list)

    def advance(self, phase: ExportPhase) -> None:
        if _TRANSITIONS.get(self.phase) is not phase:
            raise RuntimeError(f"Illegal export transition {self.phase.value} -> {phase.value}")
        self.phase = phase


class PaginationEngine:
    def __init__(
        self,
        renderer: PageTemplateRenderer,
        rasterizer: Rasterizer,
        document_factory: Callable[[], ReportDocument],
        filename: str = DEFAULT_FILENAME,
        category_order: Callable[[Sequence[str]], list[str]] = alphabetical,
    ):
        self.renderer = renderer
        self.rasterizer = rasterizer
        self.document_factory = document_factory
        self.filename = filename
        self.category_order = category_order

    async def _render_into(
        self,
        document: ReportDocument,
        run: _ReportRun,
        page_number: int,
        label: str,
        produce: Callable[[], Awaitable[RasterPage]],
    ) -> None:
        """Write the produced raster onto an existing page, or an error notice if it cannot be rendered."""
        try:
            raster = await produce()
            document.replace_with_image(page_number, raster.png)
        except PageRenderError:
            logger.exception("Failed to render %r for the report", label)
            document.replace_with_text(page_number, f"Could not render: {label}")
            run.failed_items.append(label)

    async def _rasterize_toc(self, entries: Sequence[TocEntry]) -> RasterPage:
        """Shrink the entry text until the whole table of contents fits its single page."""
        for font_size in TOC_FONT_SIZES:
            raster = await self.rasterizer.rasterize(self.renderer.toc_page(entries, font_size=font_size))
            if not raster.overflowed:
                return raster
            logger.info("Table of contents with %d entries overflows at %gpt", len(entries), font_size)
        raise PageRenderError(f"{len(entries)} table of contents entries do not fit on one page")

    async def _place(self, document: ReportDocument, run: _ReportRun, layout: PageLayout) -> None:
        page_number = document.append_blank()
        if page_number != run.current_page:
            raise RuntimeError(f"Page counter out of step: expected {run.current_page}, appended {page_number}")
        await self._render_into(document, run, page_number, layout.label, lambda: self.rasterizer.rasterize(layout))

    async def export_report(
        self,
        favorites: Sequence[FavoriteRecord],
        categories: Sequence[str],
        spells: Sequence[Spell] = (),
    ) -> ExportResult:
        run = _ReportRun()
        groups = group_favorites(favorites, categories, self.category_order)

        with self.document_factory() as document:
            run.advance(ExportPhase.TITLE)
            run.current_page = 1
            await self._place(document, run, self.renderer.title_page())

            run.advance(ExportPhase.RESERVE_TOC)
            run.toc_page_number = document.append_blank()
            if run.toc_page_number != 2:
                raise RuntimeError(f"Table of contents reserved at page {run.toc_page_number}, expected 2")

            run.advance(ExportPhase.CONTENT)
            run.current_page = run.toc_page_number
            for group in groups:
                run.current_page += 1
                await self._place(document, run, self.renderer.chapter_page(group.category))
                run.toc_entries.append(TocEntry(category=group.category, page=run.current_page))

                for record in group.records:
                    run.current_page += 1
                    layout = self.renderer.detail_page(
                        record,
                        spells_for_herb(record.name, spells),
                        page_number=run.current_page - run.toc_page_number,
                        full_report=True,
                    )
                    await self._place(document, run, layout)

            run.advance(ExportPhase.TOC)
            if run.toc_entries:
                entries = tuple(run.toc_entries)
                await self._render_into(
                    document, run, run.toc_page_number, TOC_LABEL, lambda: self._rasterize_toc(entries)
                )
            else:
                document.delete_page(run.toc_page_number)

            run.advance(ExportPhase.FINALIZE)
            if run.toc_entries:
                document.set_outline(run.toc_entries)
            content = document.to_bytes()
            page_count = document.page_count

        run.advance(ExportPhase.DONE)
        logger.info(
            "Exported report pages=%d chapters=%d failed=%d",
            page_count,
            len(run.toc_entries),
            len(run.failed_items),
        )
        return ExportResult(
            content=content,
            filename=self.filename,
            page_count=page_count,
            toc_entries=tuple(run.toc_entries),
            failed_items=tuple(run.failed_items),
        )

    async def export_single(self, favorite: FavoriteRecord, spells: Sequence[Spell] = ()) -> ExportResult:
        """One standalone detail page; render failures propagate to the caller."""
        layout = self.renderer.detail_page(favorite, spells_for_herb(favorite.name, spells), full_report=False)
        raster = await self.rasterizer.rasterize(layout)
        with self.document_factory() as document:
            document.append_image(raster.png)
            content = document.to_bytes()
            page_count = document.page_count
        logger.info("Exported %r as a single page", favorite.name)
        return ExportResult(content=content, filename=safe_filename(favorite.name), page_count=page_count)
