"""Export router: PDF report, single-herb PDF and rich-text clipboard report."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Response

from grimoire import config
from grimoire.dependencies import DOMAIN_ERRORS, get_engine, get_store, http_error
from grimoire.errors import NotFoundError
from grimoire.models import ClipboardReportResponse
from grimoire.report import ExportResult, PaginationEngine
from grimoire.report.clipboard import build_clipboard_report
from grimoire.store import GrimoireStore

logger = logging.getLogger("grimoire.export")

router = APIRouter(prefix="/api/export", tags=["export"])


def _pdf_response(result: ExportResult) -> Response:
    headers = {
        "Content-Disposition": f'attachment; filename="{result.filename}"',
        "X-Report-Pages": str(result.page_count),
    }
    if result.failed_items:
        headers["X-Report-Failed-Items"] = str(len(result.failed_items))
    return Response(content=result.content, media_type="application/pdf", headers=headers)


@router.get("/report.pdf")
async def export_report(
    store: GrimoireStore = Depends(get_store),
    engine: PaginationEngine = Depends(get_engine),
):
    state = await asyncio.to_thread(store.load)
    result = await engine.export_report(state.favorites, state.categories, state.spells)
    return _pdf_response(result)


@router.get("/favorites/{name}.pdf")
async def export_favorite(
    name: str,
    store: GrimoireStore = Depends(get_store),
    engine: PaginationEngine = Depends(get_engine),
):
    state = await asyncio.to_thread(store.load)
    try:
        favorite = state.find_favorite(name)
        if favorite is None:
            raise NotFoundError(f"'{name}' is not in your grimoire")
        result = await engine.export_single(favorite, state.spells)
    except DOMAIN_ERRORS as exc:
        logger.warning("Single export of %r failed: %s", name, exc)
        raise http_error(exc) from exc
    return _pdf_response(result)


@router.get("/clipboard", response_model=ClipboardReportResponse)
async def export_clipboard(store: GrimoireStore = Depends(get_store)):
    state = await asyncio.to_thread(store.load)
    try:
        report = build_clipboard_report(state.favorites, title=config.REPORT_TITLE)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc
    return ClipboardReportResponse(html=report.html, text=report.text)
