"""Paginated PDF assembly with 1-based page addressing."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Sequence

import pymupdf

from grimoire.report.layout import PageGeometry, TocEntry

logger = logging.getLogger("grimoire.report.document")

_FILENAME_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


class ReportDocument:
    """A PDF under construction; pages are appended, replaced and deleted by number."""

    def __init__(self, geometry: PageGeometry):
        self.geometry = geometry
        self._doc = pymupdf.open()

    def __enter__(self) -> "ReportDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def _index(self, page_number: int) -> int:
        if not 1 <= page_number <= self._doc.page_count:
            raise IndexError(f"Page {page_number} is out of range (1..{self._doc.page_count})")
        return page_number - 1

    def _fresh_page(self, page_number: int) -> pymupdf.Page:
        index = self._index(page_number)
        self._doc.delete_page(index)
        pno = index if index < self._doc.page_count else -1
        return self._doc.new_page(pno=pno, width=self.geometry.width, height=self.geometry.height)

    def _content_rect(self) -> pymupdf.Rect:
        return pymupdf.Rect(*self.geometry.content_box)

    def append_blank(self) -> int:
        """Append an empty page and return its 1-based number."""
        self._doc.new_page(width=self.geometry.width, height=self.geometry.height)
        return self._doc.page_count

    def append_image(self, png: bytes) -> int:
        page_number = self.append_blank()
        self.replace_with_image(page_number, png)
        return page_number

    def replace_with_image(self, page_number: int, png: bytes) -> None:
        page = self._fresh_page(page_number)
        page.insert_image(self._content_rect(), stream=png, keep_proportion=True)

    def replace_with_text(self, page_number: int, text: str) -> None:
        """Overwrite a page with a plain red error notice."""
        page = self._fresh_page(page_number)
        margin = self.geometry.margin
        page.insert_text(pymupdf.Point(margin, margin + 14), text, fontname="helv", fontsize=12, color=(1, 0, 0))

    def delete_page(self, page_number: int) -> None:
        self._doc.delete_page(self._index(page_number))

    def set_outline(self, entries: Sequence[TocEntry]) -> None:
        self._doc.set_toc([[1, entry.category, entry.page] for entry in entries])

    def to_bytes(self) -> bytes:
        return self._doc.tobytes(garbage=3, deflate=True)

    def close(self) -> None:
        if not self._doc.is_closed:
            self._doc.close()


def safe_filename(name: str, suffix: str = ".pdf") -> str:
    stem = _FILENAME_PATTERN.sub("-", (name or "").strip()).strip("-.") or "grimoire"
    return f"{stem}{suffix}"


def save_document(content: bytes, filename: str, directory: str | Path) -> Path:
    """Write an exported document under *directory* and return its path."""
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / safe_filename(Path(filename).stem, Path(filename).suffix or ".pdf")
    target.write_bytes(content)
    logger.info("Saved %s (%d bytes)", target, len(content))
    return target
