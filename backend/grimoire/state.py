"""Grimoire application state and the reducer that applies user events to it.

The state is an immutable snapshot. Every user action is expressed as an event
dataclass and applied with :func:`reduce`, which either returns a new snapshot
or raises before anything changes. Herb and category identity is compared
case-insensitively everywhere.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from grimoire.errors import ConfirmationRequiredError, DuplicateError, GrimoireValidationError, NotFoundError
from grimoire.models import UNCATEGORIZED, FavoriteRecord, Spell, Theme, name_key

DEFAULT_HISTORY_LIMIT = 10


@dataclass(frozen=True)
class GrimoireState:
    favorites: tuple[FavoriteRecord, ...] = ()
    categories: tuple[str, ...] = ()
    spells: tuple[Spell, ...] = ()
    history: tuple[str, ...] = ()
    theme: Theme = Theme.DARK

    def find_favorite(self, name: str) -> FavoriteRecord | None:
        key = name_key(name)
        for favorite in self.favorites:
            if favorite.key == key:
                return favorite
        return None

    def is_favorite(self, name: str) -> bool:
        return self.find_favorite(name) is not None

    def find_category(self, name: str) -> str | None:
        key = name_key(name)
        for category in self.categories:
            if name_key(category) == key:
                return category
        return None

    def find_spell(self, spell_id: str) -> Spell | None:
        for spell in self.spells:
            if spell.id == spell_id:
                return spell
        return None


# --- Events ---


@dataclass(frozen=True)
class AddFavorite:
    record: FavoriteRecord


@dataclass(frozen=True)
class RemoveFavorite:
    name: str


@dataclass(frozen=True)
class ToggleFavorite:
    record: FavoriteRecord


@dataclass(frozen=True)
class ClearFavorites:
    confirmed: bool = False


@dataclass(frozen=True)
class AssignCategory:
    name: str
    category: Optional[str]


@dataclass(frozen=True)
class AddCategory:
    name: str


@dataclass(frozen=True)
class RenameCategory:
    old_name: str
    new_name: str


@dataclass(frozen=True)
class DeleteCategory:
    name: str
    confirmed: bool = False


@dataclass(frozen=True)
class AddSpell:
    name: str
    ingredients: tuple[str, ...]
    instructions: str
    spell_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class UpdateSpell:
    spell_id: str
    name: str
    ingredients: tuple[str, ...]
    instructions: str


@dataclass(frozen=True)
class DeleteSpell:
    spell_id: str
    confirmed: bool = False


@dataclass(frozen=True)
class RecordSearch:
    query: str
    limit: int = DEFAULT_HISTORY_LIMIT


@dataclass(frozen=True)
class ClearHistory:
    pass


@dataclass(frozen=True)
class SetTheme:
    theme: Theme


# --- Handlers ---


def _require_confirmation(confirmed: bool, action: str) -> None:
    if not confirmed:
        raise ConfirmationRequiredError(f"{action} requires confirmation")


def _add_favorite(state: GrimoireState, event: AddFavorite) -> GrimoireState:
    if state.is_favorite(event.record.name):
        raise DuplicateError(f"'{event.record.name}' is already in your grimoire")
    return replace(state, favorites=state.favorites + (event.record,))


def _remove_favorite(state: GrimoireState, event: RemoveFavorite) -> GrimoireState:
    key = name_key(event.name)
    remaining = tuple(favorite for favorite in state.favorites if favorite.key != key)
    if len(remaining) == len(state.favorites):
        raise NotFoundError(f"'{event.name}' is not in your grimoire")
    return replace(state, favorites=remaining)


def _toggle_favorite(state: GrimoireState, event: ToggleFavorite) -> GrimoireState:
    if state.is_favorite(event.record.name):
        return _remove_favorite(state, RemoveFavorite(event.record.name))
    return _add_favorite(state, AddFavorite(event.record))


def _clear_favorites(state: GrimoireState, event: ClearFavorites) -> GrimoireState:
    _require_confirmation(event.confirmed, "Clearing all favorites")
    return replace(state, favorites=())


def _assign_category(state: GrimoireState, event: AssignCategory) -> GrimoireState:
    favorite = state.find_favorite(event.name)
    if favorite is None:
        raise NotFoundError(f"'{event.name}' is not in your grimoire")

    category: str | None = None
    if event.category is not None and event.category.strip():
        category = state.find_category(event.category)
        if category is None:
            raise GrimoireValidationError(f"Unknown category '{event.category.strip()}'")

    updated = favorite.model_copy(update={"category": category})
    favorites = tuple(updated if item.key == favorite.key else item for item in state.favorites)
    return replace(state, favorites=favorites)


def _clean_category_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise GrimoireValidationError("Category name must not be empty")
    if name_key(cleaned) == name_key(UNCATEGORIZED):
        raise GrimoireValidationError(f"'{UNCATEGORIZED}' is reserved for favorites without a category")
    return cleaned


def _add_category(state: GrimoireState, event: AddCategory) -> GrimoireState:
    cleaned = _clean_category_name(event.name)
    if state.find_category(cleaned) is not None:
        raise DuplicateError(f"Category '{cleaned}' already exists")
    return replace(state, categories=state.categories + (cleaned,))


def _rename_category(state: GrimoireState, event: RenameCategory) -> GrimoireState:
    existing = state.find_category(event.old_name)
    if existing is None:
        raise NotFoundError(f"Category '{event.old_name}' does not exist")
    cleaned = _clean_category_name(event.new_name)

    collision = state.find_category(cleaned)
    if collision is not None and name_key(collision) != name_key(existing):
        raise DuplicateError(f"Category '{collision}' already exists")

    old_key = name_key(existing)
    categories = tuple(cleaned if name_key(item) == old_key else item for item in state.categories)
    favorites = tuple(
        favorite.model_copy(update={"category": cleaned})
        if favorite.category is not None and name_key(favorite.category) == old_key
        else favorite
        for favorite in state.favorites
    )
    return replace(state, categories=categories, favorites=favorites)


def _delete_category(state: GrimoireState, event: DeleteCategory) -> GrimoireState:
    existing = state.find_category(event.name)
    if existing is None:
        raise NotFoundError(f"Category '{event.name}' does not exist")
    _require_confirmation(event.confirmed, f"Deleting category '{existing}'")

    old_key = name_key(existing)
    categories = tuple(item for item in state.categories if name_key(item) != old_key)
    favorites = tuple(
        favorite.model_copy(update={"category": None})
        if favorite.category is not None and name_key(favorite.category) == old_key
        else favorite
        for favorite in state.favorites
    )
    return replace(state, categories=categories, favorites=favorites)


def _validated_spell(spell_id: str, name: str, ingredients: tuple[str, ...], instructions: str) -> Spell:
    cleaned_ingredients: list[str] = []
    seen: set[str] = set()
    for ingredient in ingredients:
        cleaned = (ingredient or "").strip()
        if not cleaned or name_key(cleaned) in seen:
            continue
        seen.add(name_key(cleaned))
        cleaned_ingredients.append(cleaned)

    if not (name or "").strip() or not (instructions or "").strip() or not cleaned_ingredients:
        raise GrimoireValidationError("Please provide a name, instructions, and at least one ingredient.")
    return Spell(id=spell_id, name=name.strip(), ingredients=cleaned_ingredients, instructions=instructions.strip())


def _add_spell(state: GrimoireState, event: AddSpell) -> GrimoireState:
    spell = _validated_spell(event.spell_id, event.name, event.ingredients, event.instructions)
    if state.find_spell(spell.id) is not None:
        raise DuplicateError(f"Spell '{spell.id}' already exists")
    return replace(state, spells=state.spells + (spell,))


def _update_spell(state: GrimoireState, event: UpdateSpell) -> GrimoireState:
    if state.find_spell(event.spell_id) is None:
        raise NotFoundError(f"Spell '{event.spell_id}' does not exist")
    spell = _validated_spell(event.spell_id, event.name, event.ingredients, event.instructions)
    spells = tuple(spell if item.id == spell.id else item for item in state.spells)
    return replace(state, spells=spells)


def _delete_spell(state: GrimoireState, event: DeleteSpell) -> GrimoireState:
    spell = state.find_spell(event.spell_id)
    if spell is None:
        raise NotFoundError(f"Spell '{event.spell_id}' does not exist")
    _require_confirmation(event.confirmed, f"Deleting spell '{spell.name}'")
    return replace(state, spells=tuple(item for item in state.spells if item.id != spell.id))


def _record_search(state: GrimoireState, event: RecordSearch) -> GrimoireState:
    query = (event.query or "").strip()
    if not query:
        return state
    key = name_key(query)
    history = (query,) + tuple(item for item in state.history if name_key(item) != key)
    return replace(state, history=history[: max(event.limit, 1)])


def _clear_history(state: GrimoireState, event: ClearHistory) -> GrimoireState:
    return replace(state, history=())


def _set_theme(state: GrimoireState, event: SetTheme) -> GrimoireState:
    return replace(state, theme=Theme(event.theme))


_HANDLERS: dict[type, Callable[[GrimoireState, object], GrimoireState]] = {
    AddFavorite: _add_favorite,
    RemoveFavorite: _remove_favorite,
    ToggleFavorite: _toggle_favorite,
    ClearFavorites: _clear_favorites,
    AssignCategory: _assign_category,
    AddCategory: _add_category,
    RenameCategory: _rename_category,
    DeleteCategory: _delete_category,
    AddSpell: _add_spell,
    UpdateSpell: _update_spell,
    DeleteSpell: _delete_spell,
    RecordSearch: _record_search,
    ClearHistory: _clear_history,
    SetTheme: _set_theme,
}


def reduce(state: GrimoireState, event: object) -> GrimoireState:
    """Apply *event* to *state* and return the new snapshot."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unsupported grimoire event: {type(event).__name__}")
    return handler(state, event)
