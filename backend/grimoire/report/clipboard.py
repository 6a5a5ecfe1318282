"""Single-pass rich-text report for pasting into word processors."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Sequence

from grimoire.errors import GrimoireValidationError
from grimoire.models import FavoriteRecord

REPORT_TITLE = "My Esoteric Herb Grimoire"


@dataclass(frozen=True)
class ClipboardReport:
    html: str
    text: str


def _esc(value: str) -> str:
    return html.escape(value or "")


def _esc_lines(value: str) -> str:
    return _esc(value).replace("\n", "<br>")


def _plain_text(favorites: Sequence[FavoriteRecord], title: str) -> str:
    lines = [title, "", "---", ""]
    for herb in favorites:
        lines.append(f"## {herb.name}")
        lines.append(f"*{herb.scientific_name}*")
        lines.append("")
        lines.append(f"Magical Properties: {', '.join(herb.magical_properties)}")
        lines.append(f"Elemental Association: {herb.elemental_association}")
        lines.append(f"Planetary Association: {herb.planetary_association}")
        if herb.deity_association:
            lines.append(f"Deity Association: {', '.join(herb.deity_association)}")
        lines.extend(["", "Lore:", herb.lore, "", "Ritual Usage:", herb.usage, "", "---", ""])
    return "\n".join(lines)


def _rich_html(favorites: Sequence[FavoriteRecord], title: str) -> str:
    entries = []
    for herb in favorites:
        deities = ""
        if herb.deity_association:
            deities = f"<p><strong>Deities:</strong> {_esc(', '.join(herb.deity_association))}</p>"
        entries.append(
            '<div style="margin-top: 2em; padding-bottom: 1em; border-bottom: 1px solid #eee;">'
            f'<h2 style="font-size: 1.5em; color: #2d6a4f; margin-bottom: 0;">{_esc(herb.name)}</h2>'
            f'<p style="margin-top: 0; font-style: italic; color: #666;">{_esc(herb.scientific_name)}</p>'
            f"<p><strong>Magical Properties:</strong> {_esc(', '.join(herb.magical_properties))}</p>"
            f"<p><strong>Associations:</strong> Element of {_esc(herb.elemental_association)}, "
            f"Planet of {_esc(herb.planetary_association)}</p>"
            f"{deities}"
            f"<h3>Arcane Lore</h3><p>{_esc_lines(herb.lore)}</p>"
            f"<h3>Ritual Usage</h3><p>{_esc_lines(herb.usage)}</p>"
            "</div>"
        )
    return (
        '<div style="font-family: sans-serif; line-height: 1.6; color: #333;">'
        f'<h1 style="color: #4a0e6c; border-bottom: 2px solid #eee; padding-bottom: 10px;">{_esc(title)}</h1>'
        f"{''.join(entries)}"
        "</div>"
    )


def build_clipboard_report(favorites: Sequence[FavoriteRecord], title: str = REPORT_TITLE) -> ClipboardReport:
    if not favorites:
        raise GrimoireValidationError("There are no favorites to export.")
    return ClipboardReport(html=_rich_html(favorites, title), text=_plain_text(favorites, title))
