import pytest

from grimoire.errors import GrimoireValidationError
from grimoire.models import FavoriteRecord
from grimoire.report.clipboard import build_clipboard_report


def _favorite(name: str, deities=None) -> FavoriteRecord:
    return FavoriteRecord(
        name=name,
        scientific_name="Artemisia vulgaris",
        magical_properties=["Divination", "Dreams"],
        elemental_association="Earth",
        planetary_association="Venus",
        deity_association=deities,
        lore="Line one\nLine <two>",
        usage="Dream pillows.",
        image="data:image/png;base64,AAAA",
    )


def test_plain_text_report_layout():
    report = build_clipboard_report([_favorite("Mugwort", ["Artemis"]), _favorite("Rue")])

    assert report.text.startswith("My Esoteric Herb Grimoire\n\n---\n\n## Mugwort\n*Artemisia vulgaris*\n")
    assert "Magical Properties: Divination, Dreams\n" in report.text
    assert "Deity Association: Artemis\n" in report.text
    assert report.text.count("Deity Association") == 1
    assert "\nRitual Usage:\nDream pillows.\n" in report.text


def test_html_report_escapes_and_keeps_line_breaks():
    report = build_clipboard_report([_favorite("Mugwort")], title="Grimoire & Co")

    assert "Grimoire &amp; Co</h1>" in report.html
    assert "Line one<br>Line &lt;two&gt;" in report.html
    assert "Element of Earth, Planet of Venus" in report.html
    assert "Deities" not in report.html


def test_empty_collection_is_rejected():
    with pytest.raises(GrimoireValidationError):
        build_clipboard_report([])
