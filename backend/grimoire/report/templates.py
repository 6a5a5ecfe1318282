"""HTML page templates for the PDF report.

Every template returns a :class:`PageLayout` whose markup is sized to the
content area of one page. User text is always escaped; line breaks in lore
and usage are preserved as ``<br>``.
"""

from __future__ import annotations

import html
import math
from typing import Iterable, Optional, Sequence

import pymupdf

from grimoire.models import FavoriteRecord, Spell
from grimoire.report.layout import PageGeometry, PageKind, PageLayout, TocEntry

HERB_IMAGE_ASSET = "herb-image.png"

TOC_FONT_SIZE = 13.0
# Tried in order until every table of contents entry fits on the single reserved page
TOC_FONT_SIZES: tuple[float, ...] = (TOC_FONT_SIZE, 11.0, 9.0, 7.5, 6.0)
_TOC_MEASURE_FONT = "helv"
_TOC_SAFETY = 0.9

_BASE_CSS = """
* {{ font-family: {font_family}; }}
body {{ font-size: 10pt; line-height: 1.5; color: #222222; }}
h1 {{ font-size: 30pt; color: #4a0e6c; text-align: center; margin: 0; }}
h2 {{ font-size: 20pt; color: #2d6a4f; margin: 0; }}
h3 {{ font-size: 11pt; color: #4a0e6c; margin-top: 12pt; margin-bottom: 3pt; }}
p {{ margin-top: 3pt; margin-bottom: 3pt; }}
.scientific {{ font-style: italic; color: #666666; }}
.centered {{ text-align: center; }}
.chapter {{ font-size: 26pt; color: #2d6a4f; text-align: center; letter-spacing: 2pt; }}
.muted {{ color: #777777; }}
.band {{ font-size: 8pt; color: #777777; text-align: center; }}
.spell-name {{ font-weight: bold; }}
"""


def escape_text(value: Optional[str]) -> str:
    """Escape *value* for HTML and keep its line breaks."""
    text = (value or "").replace("\r\n", "\n").strip()
    return html.escape(text).replace("\n", "<br>")


def _join(values: Iterable[str]) -> str:
    return escape_text(", ".join(item for item in values if item))


def _section(title: str, body: str) -> str:
    return f"<h3>{html.escape(title)}</h3>{body}"


def dot_leader(label: str, page: int, width: float, font_size: float = TOC_FONT_SIZE) -> str:
    """Dots filling the gap between *label* and *page* on a line of *width* points."""
    used = pymupdf.get_text_length(f"{label} {page} ", fontname=_TOC_MEASURE_FONT, fontsize=font_size)
    dot_width = pymupdf.get_text_length(".", fontname=_TOC_MEASURE_FONT, fontsize=font_size)
    available = (width * _TOC_SAFETY) - used
    count = max(3, math.floor(available / dot_width)) if dot_width > 0 else 3
    return "." * count


class PageTemplateRenderer:
    def __init__(self, geometry: PageGeometry, title: str, font_family: str = "sans-serif"):
        self.geometry = geometry
        self.title = title
        self.font_family = font_family
        self.css = _BASE_CSS.format(font_family=font_family)

    def _layout(self, kind: PageKind, label: str, body: str, **kwargs) -> PageLayout:
        return PageLayout(kind=kind, label=label, html=f"<body>{body}</body>", css=self.css, **kwargs)

    def _spacer(self, ratio: float) -> str:
        return f'<div style="height: {self.geometry.content_height * ratio:.0f}pt"></div>'

    def title_page(self) -> PageLayout:
        body = (
            f"{self._spacer(0.35)}"
            f"<h1>{escape_text(self.title)}</h1>"
            '<p class="centered muted">A collection of herbs, lore and spells</p>'
        )
        return self._layout(PageKind.TITLE, "Title page", body)

    def chapter_page(self, category: str) -> PageLayout:
        body = f'{self._spacer(0.4)}<p class="chapter">{escape_text(category.upper())}</p>'
        return self._layout(PageKind.CHAPTER, f"Chapter {category}", body)

    def toc_page(self, entries: Sequence[TocEntry], font_size: float = TOC_FONT_SIZE) -> PageLayout:
        line_style = f"font-size: {font_size:g}pt; margin: {font_size * 0.3:.1f}pt 0"
        lines = []
        for entry in entries:
            leader = dot_leader(entry.category, entry.page, self.geometry.content_width, font_size)
            lines.append(
                f'<p style="{line_style}">{escape_text(entry.category)} '
                f'<span class="muted">{leader}</span> {entry.page}</p>'
            )
        if not lines:
            lines.append('<p class="centered muted">No chapters</p>')
        body = "<h2>Table of Contents</h2>" + "".join(lines)
        return self._layout(PageKind.TOC, "Table of contents", body)

    def detail_page(
        self,
        herb: FavoriteRecord,
        spells: Sequence[Spell] = (),
        page_number: Optional[int] = None,
        full_report: bool = True,
    ) -> PageLayout:
        """One herb on one page; header and footer only appear in the full report."""
        parts = [
            f'<img src="{HERB_IMAGE_ASSET}" width="120" height="120" style="float: right; margin-left: 12pt"/>',
            f"<h2>{escape_text(herb.name)}</h2>",
            f'<p class="scientific">{escape_text(herb.scientific_name)}</p>',
            _section("Magical Properties", f"<p>{_join(herb.magical_properties)}</p>"),
        ]

        associations = (
            f"<p><b>Element:</b> {escape_text(herb.elemental_association)} | "
            f"<b>Planet:</b> {escape_text(herb.planetary_association)}</p>"
        )
        if herb.deity_association:
            associations += f"<p><b>Deities:</b> {_join(herb.deity_association)}</p>"
        parts.append(_section("Associations", associations))
        parts.append(_section("Arcane Lore", f"<p>{escape_text(herb.lore)}</p>"))
        parts.append(_section("Ritual Usage", f"<p>{escape_text(herb.usage)}</p>"))

        oil = herb.herbal_oil
        if oil is not None and (oil.lore.strip() or oil.usage.strip()):
            oil_body = ""
            if oil.lore.strip():
                oil_body += f"<p><b>Lore:</b> {escape_text(oil.lore)}</p>"
            if oil.usage.strip():
                oil_body += f"<p><b>Usage:</b> {escape_text(oil.usage)}</p>"
            parts.append(_section("Herbal Oil", oil_body))

        if herb.complementary_essences:
            items = "".join(
                f"<li><b>{escape_text(essence.name)}:</b> {escape_text(essence.purpose)}</li>"
                for essence in herb.complementary_essences
            )
            parts.append(_section("Complementary Essences", f"<ul>{items}</ul>"))

        if herb.external_resources:
            items = "".join(
                f'<li>{escape_text(resource.source)}: <span class="muted">{escape_text(resource.url)}</span></li>'
                for resource in herb.external_resources
            )
            parts.append(_section("Further Reading", f"<ul>{items}</ul>"))

        if spells:
            items = "".join(
                f'<p class="spell-name">{escape_text(spell.name)}</p>'
                f'<p class="muted">Ingredients: {_join(spell.ingredients)}</p>'
                f"<p>{escape_text(spell.instructions)}</p>"
                for spell in spells
            )
            parts.append(_section("Associated Spells", items))

        header_html = footer_html = None
        if full_report:
            header_html = f'<body><p class="band">{escape_text(self.title)}</p></body>'
            if page_number is not None:
                footer_html = f'<body><p class="band">Page {page_number}</p></body>'

        return self._layout(
            PageKind.DETAIL,
            herb.name,
            "".join(parts),
            header_html=header_html,
            footer_html=footer_html,
            images={HERB_IMAGE_ASSET: herb.image},
        )
