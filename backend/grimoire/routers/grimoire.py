"""Grimoire router: search, favorites, categories, spells, history and theme."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Response, status

from grimoire import config
from grimoire.content_services import ContentService
from grimoire.content_services.search import EXAMPLE_HERBS, search_herb
from grimoire.dependencies import DOMAIN_ERRORS, get_content, get_store, http_error
from grimoire.errors import DuplicateError, GrimoireValidationError
from grimoire.models import (
    CategoryAssignment,
    CategoryRequest,
    FavoriteRecord,
    FavoriteRequest,
    ManualHerbForm,
    SearchRequest,
    SearchResponse,
    Spell,
    SpellRequest,
    ThemeRequest,
)
from grimoire.state import (
    AddCategory,
    AddFavorite,
    AddSpell,
    AssignCategory,
    ClearFavorites,
    ClearHistory,
    DeleteCategory,
    DeleteSpell,
    GrimoireState,
    RecordSearch,
    RemoveFavorite,
    RenameCategory,
    SetTheme,
    ToggleFavorite,
    UpdateSpell,
)
from grimoire.store import GrimoireStore

logger = logging.getLogger("grimoire.api")

router = APIRouter(prefix="/api", tags=["grimoire"])


async def _dispatch(store: GrimoireStore, event: object) -> GrimoireState:
    try:
        return await asyncio.to_thread(store.dispatch, event)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc


async def _load(store: GrimoireStore) -> GrimoireState:
    return await asyncio.to_thread(store.load)


# --- Search ---


@router.post("/search", response_model=SearchResponse)
async def search(
    body: SearchRequest,
    store: GrimoireStore = Depends(get_store),
    content: ContentService = Depends(get_content),
):
    try:
        result = await search_herb(content, body.query)
    except DOMAIN_ERRORS as exc:
        logger.warning("Search for %r failed: %s", body.query, exc)
        raise http_error(exc) from exc

    state = await _dispatch(store, RecordSearch(body.query, limit=config.SEARCH_HISTORY_LIMIT))
    return SearchResponse(herb=result.herb, image=result.image, is_favorite=state.is_favorite(result.herb.name))


@router.get("/examples")
async def examples():
    return {"examples": list(EXAMPLE_HERBS)}


@router.get("/history")
async def get_history(store: GrimoireStore = Depends(get_store)):
    state = await _load(store)
    return {"history": list(state.history)}


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(store: GrimoireStore = Depends(get_store)):
    await _dispatch(store, ClearHistory())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Favorites ---


@router.get("/favorites", response_model=list[FavoriteRecord], response_model_exclude_none=True)
async def list_favorites(store: GrimoireStore = Depends(get_store)):
    state = await _load(store)
    return list(state.favorites)


@router.post(
    "/favorites",
    response_model=FavoriteRecord,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def add_favorite(body: FavoriteRequest, store: GrimoireStore = Depends(get_store)):
    favorite = body.to_record()
    await _dispatch(store, AddFavorite(favorite))
    return favorite


@router.post("/favorites/toggle")
async def toggle_favorite(body: FavoriteRequest, store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, ToggleFavorite(body.to_record()))
    return {"name": body.name, "is_favorite": state.is_favorite(body.name)}


@router.post(
    "/favorites/manual",
    response_model=FavoriteRecord,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def add_manual_favorite(
    body: ManualHerbForm,
    store: GrimoireStore = Depends(get_store),
    content: ContentService = Depends(get_content),
):
    state = await _load(store)
    try:
        herb = body.to_herb_record()
        if state.is_favorite(herb.name):
            raise DuplicateError(f"'{herb.name}' is already in your grimoire")
        category = state.find_category(body.category) if body.category else None
        if body.category and category is None:
            raise GrimoireValidationError(f"Unknown category '{body.category}'")
        image = await content.fetch_image(herb.name)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc) from exc

    favorite = FavoriteRecord(**herb.model_dump(), image=image, category=category)
    await _dispatch(store, AddFavorite(favorite))
    return favorite


@router.delete("/favorites", status_code=status.HTTP_204_NO_CONTENT)
async def clear_favorites(confirm: bool = Query(False), store: GrimoireStore = Depends(get_store)):
    await _dispatch(store, ClearFavorites(confirmed=confirm))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/favorites/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_favorite(name: str, store: GrimoireStore = Depends(get_store)):
    await _dispatch(store, RemoveFavorite(name))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/favorites/{name}/category", response_model=FavoriteRecord, response_model_exclude_none=True)
async def assign_category(name: str, body: CategoryAssignment, store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, AssignCategory(name, body.category))
    return state.find_favorite(name)


# --- Categories ---


@router.get("/categories")
async def list_categories(store: GrimoireStore = Depends(get_store)):
    state = await _load(store)
    return {"categories": list(state.categories)}


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def add_category(body: CategoryRequest, store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, AddCategory(body.name))
    return {"categories": list(state.categories)}


@router.put("/categories/{name}")
async def rename_category(name: str, body: CategoryRequest, store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, RenameCategory(name, body.name))
    return {"categories": list(state.categories)}


@router.delete("/categories/{name}")
async def delete_category(name: str, confirm: bool = Query(False), store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, DeleteCategory(name, confirmed=confirm))
    return {"categories": list(state.categories)}


# --- Spells ---


@router.get("/spells", response_model=list[Spell])
async def list_spells(store: GrimoireStore = Depends(get_store)):
    state = await _load(store)
    return list(state.spells)


@router.post("/spells", response_model=Spell, status_code=status.HTTP_201_CREATED)
async def add_spell(body: SpellRequest, store: GrimoireStore = Depends(get_store)):
    event = AddSpell(body.name, tuple(body.ingredients), body.instructions)
    state = await _dispatch(store, event)
    return state.find_spell(event.spell_id)


@router.put("/spells/{spell_id}", response_model=Spell)
async def update_spell(spell_id: str, body: SpellRequest, store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, UpdateSpell(spell_id, body.name, tuple(body.ingredients), body.instructions))
    return state.find_spell(spell_id)


@router.delete("/spells/{spell_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_spell(spell_id: str, confirm: bool = Query(False), store: GrimoireStore = Depends(get_store)):
    await _dispatch(store, DeleteSpell(spell_id, confirmed=confirm))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Theme ---


@router.get("/theme")
async def get_theme(store: GrimoireStore = Depends(get_store)):
    state = await _load(store)
    return {"theme": state.theme.value}


@router.put("/theme")
async def set_theme(body: ThemeRequest, store: GrimoireStore = Depends(get_store)):
    state = await _dispatch(store, SetTheme(body.theme))
    return {"theme": state.theme.value}
