"""Page geometry and the layout description handed from templates to the rasterizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

PAGE_SIZES: dict[str, tuple[float, float]] = {
    "a4": (595.28, 841.89),
    "letter": (612.0, 792.0),
}


class PageKind(str, Enum):
    TITLE = "title"
    TOC = "toc"
    CHAPTER = "chapter"
    DETAIL = "detail"


@dataclass(frozen=True)
class PageGeometry:
    """Page size and uniform margin, in PDF points."""

    width: float
    height: float
    margin: float

    @classmethod
    def from_name(cls, name: str, margin: float) -> "PageGeometry":
        try:
            width, height = PAGE_SIZES[name.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown page size {name!r}; expected one of {sorted(PAGE_SIZES)}") from None
        if margin < 0 or margin * 2 >= min(width, height):
            raise ValueError(f"Margin {margin} does not fit a {name} page")
        return cls(width=width, height=height, margin=margin)

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def content_height(self) -> float:
        return self.height - 2 * self.margin

    @property
    def content_box(self) -> tuple[float, float, float, float]:
        return (self.margin, self.margin, self.width - self.margin, self.height - self.margin)


@dataclass(frozen=True)
class PageLayout:
    """Self-contained markup for one page's content area.

    ``images`` maps the names used in ``<img src>`` to opaque image references
    (data URIs, URLs or file paths) that the rasterizer resolves before capture.
    """

    kind: PageKind
    label: str
    html: str
    css: str = ""
    header_html: Optional[str] = None
    footer_html: Optional[str] = None
    images: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TocEntry:
    category: str
    page: int
