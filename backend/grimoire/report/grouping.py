"""Chapter grouping and ordering of favorites for the report."""

from __future__ import annotations

import locale
import unicodedata
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from grimoire.models import UNCATEGORIZED, FavoriteRecord, Spell, name_key


@dataclass(frozen=True)
class CategoryGroup:
    category: str
    records: tuple[FavoriteRecord, ...]


def collation_key(text: str) -> tuple[str, str]:
    """Sort key approximating locale-aware comparison: accents and case are secondary."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    base = "".join(char for char in decomposed if not unicodedata.combining(char)).casefold()
    return locale.strxfrm(base), text or ""


def alphabetical(categories: Sequence[str]) -> list[str]:
    return sorted(categories, key=collation_key)


def resolve_category(favorite: FavoriteRecord, categories: Iterable[str]) -> Optional[str]:
    """Canonical category of *favorite*, or None when absent or no longer defined."""
    if not favorite.category:
        return None
    key = name_key(favorite.category)
    for category in categories:
        if name_key(category) == key:
            return category
    return None


def group_favorites(
    favorites: Iterable[FavoriteRecord],
    categories: Sequence[str],
    order: Callable[[Sequence[str]], list[str]] = alphabetical,
) -> list[CategoryGroup]:
    """Group favorites into chapters: Uncategorized first, then *categories* in *order*.

    Records are sorted by name inside each group and groups without records are dropped.
    """
    canonical: list[str] = []
    # a stored category spelled like the built-in chapter merges into it
    seen: set[str] = {name_key(UNCATEGORIZED)}
    for category in categories:
        key = name_key(category)
        if key and key not in seen:
            seen.add(key)
            canonical.append(category)

    buckets: dict[str, list[FavoriteRecord]] = {name_key(category): [] for category in canonical}
    uncategorized: list[FavoriteRecord] = []
    for favorite in favorites:
        resolved = resolve_category(favorite, canonical)
        if resolved is None:
            uncategorized.append(favorite)
        else:
            buckets[name_key(resolved)].append(favorite)

    def by_name(records: list[FavoriteRecord]) -> tuple[FavoriteRecord, ...]:
        return tuple(sorted(records, key=lambda record: collation_key(record.name)))

    groups = [CategoryGroup(UNCATEGORIZED, by_name(uncategorized))]
    groups.extend(CategoryGroup(category, by_name(buckets[name_key(category)])) for category in order(canonical))
    return [group for group in groups if group.records]


def spells_for_herb(herb_name: str, spells: Iterable[Spell]) -> list[Spell]:
    """Spells listing *herb_name* among their ingredients (case-insensitive)."""
    key = name_key(herb_name)
    return [spell for spell in spells if any(name_key(ingredient) == key for ingredient in spell.ingredients)]
