"""Record models for herbs, favorites, spells and the API payloads built on them."""

from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator, model_validator

from grimoire import config
from grimoire.errors import GrimoireValidationError

UNCATEGORIZED = "Uncategorized"


def name_key(value: str) -> str:
    """Identity key for herb and category names (case-insensitive)."""
    return (value or "").strip().casefold()


def is_allowed_image_ref(ref: str, allowed_hosts: Iterable[str] = ()) -> bool:
    """Inline base64 images, or http(s) URLs on one of *allowed_hosts*."""
    ref = (ref or "").strip()
    if ref.startswith("data:"):
        return ref.partition(",")[0].endswith(";base64")
    try:
        parsed = urlsplit(ref)
    except ValueError:
        return False
    if parsed.scheme not in {"http", "https"}:
        return False
    return (parsed.hostname or "").lower() in {host.lower() for host in allowed_hosts}


def split_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _clean_string_list(value):
    if value is None:
        return None
    if not isinstance(value, list):
        return value
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class ExternalResource(BaseModel):
    source: str
    url: str


class HerbalOil(BaseModel):
    lore: str = ""
    usage: str = ""


class ComplementaryEssence(BaseModel):
    name: str
    purpose: str


class HerbRecord(BaseModel):
    name: str = Field(min_length=1)
    scientific_name: str
    magical_properties: list[str] = Field(min_length=1)
    elemental_association: str
    planetary_association: str
    deity_association: Optional[list[str]] = None
    lore: str
    usage: str
    herbal_oil: Optional[HerbalOil] = None
    complementary_essences: Optional[list[ComplementaryEssence]] = None
    external_resources: Optional[list[ExternalResource]] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("magical_properties", "deity_association", mode="before")
    @classmethod
    def normalize_string_lists(cls, value):
        return _clean_string_list(value)

    @property
    def key(self) -> str:
        return name_key(self.name)


class FavoriteRecord(HerbRecord):
    image: str
    category: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value


class FavoriteRequest(FavoriteRecord):
    """A favorite submitted by an API client; its image must not point at server resources."""

    @field_validator("image", mode="after")
    @classmethod
    def require_safe_image(cls, value: str):
        if not is_allowed_image_ref(value, config.REPORT_IMAGE_HOSTS):
            raise ValueError("image must be a base64 data: URI or a URL on an allowed image host")
        return value.strip()

    def to_record(self) -> FavoriteRecord:
        return FavoriteRecord(**self.model_dump())


class Spell(BaseModel):
    id: str
    name: str
    ingredients: list[str] = Field(default_factory=list)
    instructions: str


# --- Request / response payloads ---


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=200)

    @field_validator("query", mode="after")
    @classmethod
    def require_text(cls, value: str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("query must not be blank")
        return stripped


class SearchResponse(BaseModel):
    herb: HerbRecord
    image: str
    is_favorite: bool = False


class CategoryRequest(BaseModel):
    name: str = Field(..., max_length=100)


class CategoryAssignment(BaseModel):
    category: Optional[str] = None


class SpellRequest(BaseModel):
    name: str = Field(..., max_length=200)
    ingredients: list[str] = Field(default_factory=list)
    instructions: str = Field(..., max_length=20000)


class ThemeRequest(BaseModel):
    theme: Theme


class ClipboardReportResponse(BaseModel):
    html: str
    text: str


class ManualHerbForm(BaseModel):
    """Hand-authored herb entry; list fields are comma-separated strings."""

    name: str = ""
    scientific_name: str = ""
    magical_properties: str = ""
    elemental_association: str = ""
    planetary_association: str = ""
    deity_association: str = ""
    lore: str = ""
    usage: str = ""
    herbal_oil_lore: str = ""
    herbal_oil_usage: str = ""
    category: Optional[str] = None

    @model_validator(mode="after")
    def strip_fields(self):
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if isinstance(value, str):
                setattr(self, field_name, value.strip())
        return self

    def to_herb_record(self) -> HerbRecord:
        required = (
            "name",
            "scientific_name",
            "magical_properties",
            "elemental_association",
            "planetary_association",
            "lore",
            "usage",
        )
        if any(not getattr(self, field_name) for field_name in required):
            raise GrimoireValidationError("Please fill out all required fields.")

        properties = split_csv(self.magical_properties)
        if not properties:
            raise GrimoireValidationError("Please list at least one magical property.")

        herbal_oil = None
        if self.herbal_oil_lore or self.herbal_oil_usage:
            herbal_oil = HerbalOil(lore=self.herbal_oil_lore, usage=self.herbal_oil_usage)

        return HerbRecord(
            name=self.name,
            scientific_name=self.scientific_name,
            magical_properties=properties,
            elemental_association=self.elemental_association,
            planetary_association=self.planetary_association,
            deity_association=split_csv(self.deity_association) or None,
            lore=self.lore,
            usage=self.usage,
            herbal_oil=herbal_oil,
        )
