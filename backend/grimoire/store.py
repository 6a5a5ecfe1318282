"""Persistent grimoire state: loads snapshots from the key-value store and saves reduced ones."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any

from pydantic import TypeAdapter, ValidationError

from grimoire.kv_store import JsonFileStore
from grimoire.models import FavoriteRecord, Spell, Theme
from grimoire.state import GrimoireState, reduce

logger = logging.getLogger("grimoire.store")

FAVORITES_KEY = "favorites"
CATEGORIES_KEY = "categories"
SPELLS_KEY = "spells"
HISTORY_KEY = "searchHistory"
THEME_KEY = "theme"

_FAVORITES_ADAPTER = TypeAdapter(list[FavoriteRecord])
_STRINGS_ADAPTER = TypeAdapter(list[str])
_SPELLS_ADAPTER = TypeAdapter(list[Spell])
_THEME_ADAPTER = TypeAdapter(Theme)


class GrimoireStore:
    def __init__(self, kv: JsonFileStore):
        self.kv = kv
        self._lock = Lock()

    def _load_key(self, key: str, adapter: TypeAdapter, default: Any) -> Any:
        payload = self.kv.load(key)
        if payload is None:
            return default
        try:
            return adapter.validate_python(payload)
        except ValidationError:
            logger.warning("Stored %s failed validation; using default", key)
            return default

    def _load_unlocked(self) -> GrimoireState:
        return GrimoireState(
            favorites=tuple(self._load_key(FAVORITES_KEY, _FAVORITES_ADAPTER, [])),
            categories=tuple(self._load_key(CATEGORIES_KEY, _STRINGS_ADAPTER, [])),
            spells=tuple(self._load_key(SPELLS_KEY, _SPELLS_ADAPTER, [])),
            history=tuple(self._load_key(HISTORY_KEY, _STRINGS_ADAPTER, [])),
            theme=self._load_key(THEME_KEY, _THEME_ADAPTER, Theme.DARK),
        )

    def _save_unlocked(self, previous: GrimoireState | None, state: GrimoireState) -> None:
        if previous is None or previous.favorites != state.favorites:
            self.kv.save(
                FAVORITES_KEY,
                [favorite.model_dump(mode="json", exclude_none=True) for favorite in state.favorites],
            )
        if previous is None or previous.categories != state.categories:
            self.kv.save(CATEGORIES_KEY, list(state.categories))
        if previous is None or previous.spells != state.spells:
            self.kv.save(SPELLS_KEY, [spell.model_dump(mode="json") for spell in state.spells])
        if previous is None or previous.history != state.history:
            self.kv.save(HISTORY_KEY, list(state.history))
        if previous is None or previous.theme != state.theme:
            self.kv.save(THEME_KEY, state.theme.value)

    def load(self) -> GrimoireState:
        with self._lock:
            return self._load_unlocked()

    def save(self, state: GrimoireState) -> None:
        with self._lock:
            self._save_unlocked(None, state)

    def dispatch(self, event: object) -> GrimoireState:
        """Apply *event* to the stored state and persist the collections it changed."""
        with self._lock:
            current = self._load_unlocked()
            updated = reduce(current, event)
            if updated is not current:
                self._save_unlocked(current, updated)
                logger.info("Applied %s", type(event).__name__)
            return updated
