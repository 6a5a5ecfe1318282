import pytest

from grimoire.errors import ConfirmationRequiredError, DuplicateError, GrimoireValidationError, NotFoundError
from grimoire.models import FavoriteRecord, Theme
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
    reduce,
)


def _favorite(name: str, category: str | None = None) -> FavoriteRecord:
    return FavoriteRecord(
        name=name,
        scientific_name=f"{name} officinalis",
        magical_properties=["Protection"],
        elemental_association="Air",
        planetary_association="Jupiter",
        lore="Old lore.",
        usage="Burn it.",
        image="data:image/png;base64,AAAA",
        category=category,
    )


def test_favorite_identity_is_case_insensitive():
    state = reduce(GrimoireState(), AddFavorite(_favorite("Sage")))
    state = reduce(state, RemoveFavorite("SAGE"))

    assert state.favorites == ()


def test_duplicate_favorite_is_rejected():
    state = reduce(GrimoireState(), AddFavorite(_favorite("Sage")))

    with pytest.raises(DuplicateError):
        reduce(state, AddFavorite(_favorite("sage")))


def test_remove_unknown_favorite_raises_not_found():
    with pytest.raises(NotFoundError):
        reduce(GrimoireState(), RemoveFavorite("Rue"))


def test_toggle_adds_then_removes():
    state = reduce(GrimoireState(), ToggleFavorite(_favorite("Yarrow")))
    assert state.is_favorite("yarrow")

    state = reduce(state, ToggleFavorite(_favorite("Yarrow")))
    assert not state.is_favorite("yarrow")


def test_clear_favorites_requires_confirmation():
    state = reduce(GrimoireState(), AddFavorite(_favorite("Sage")))

    with pytest.raises(ConfirmationRequiredError):
        reduce(state, ClearFavorites())
    assert reduce(state, ClearFavorites(confirmed=True)).favorites == ()


def test_assign_category_uses_canonical_name_and_allows_clearing():
    state = GrimoireState(favorites=(_favorite("Sage"),), categories=("Healing",))

    state = reduce(state, AssignCategory("sage", "HEALING"))
    assert state.find_favorite("Sage").category == "Healing"

    state = reduce(state, AssignCategory("Sage", None))
    assert state.find_favorite("Sage").category is None


def test_assign_unknown_category_is_rejected():
    state = GrimoireState(favorites=(_favorite("Sage"),), categories=("Healing",))

    with pytest.raises(GrimoireValidationError):
        reduce(state, AssignCategory("Sage", "Banishing"))


def test_add_category_rejects_blank_and_duplicates():
    state = reduce(GrimoireState(), AddCategory("  Healing  "))
    assert state.categories == ("Healing",)

    with pytest.raises(GrimoireValidationError):
        reduce(state, AddCategory("   "))
    with pytest.raises(DuplicateError):
        reduce(state, AddCategory("healing"))


def test_uncategorized_is_reserved_for_new_and_renamed_categories():
    state = reduce(GrimoireState(), AddCategory("Healing"))

    for name in ("Uncategorized", " uncategorized ", "UNCATEGORIZED"):
        with pytest.raises(GrimoireValidationError):
            reduce(state, AddCategory(name))
        with pytest.raises(GrimoireValidationError):
            reduce(state, RenameCategory("Healing", name))
    assert state.categories == ("Healing",)


def test_rename_category_keeps_position_and_repoints_favorites():
    state = GrimoireState(
        favorites=(_favorite("Sage", "Healing"), _favorite("Rue", "Banishing")),
        categories=("Healing", "Banishing", "Love"),
    )

    state = reduce(state, RenameCategory("healing", "Cleansing"))

    assert state.categories == ("Cleansing", "Banishing", "Love")
    assert state.find_favorite("Sage").category == "Cleansing"
    assert state.find_favorite("Rue").category == "Banishing"


def test_rename_to_own_name_with_different_case_is_allowed():
    state = GrimoireState(categories=("healing",))

    assert reduce(state, RenameCategory("healing", "Healing")).categories == ("Healing",)


def test_rename_collision_leaves_state_unchanged():
    state = GrimoireState(
        favorites=(_favorite("Sage", "Healing"),),
        categories=("Healing", "Love"),
    )

    with pytest.raises(DuplicateError):
        reduce(state, RenameCategory("Healing", "LOVE"))

    assert state.categories == ("Healing", "Love")
    assert state.find_favorite("Sage").category == "Healing"


def test_delete_category_uncategorizes_favorites_after_confirmation():
    state = GrimoireState(favorites=(_favorite("Sage", "Healing"),), categories=("Healing",))

    with pytest.raises(ConfirmationRequiredError):
        reduce(state, DeleteCategory("Healing"))

    state = reduce(state, DeleteCategory("Healing", confirmed=True))
    assert state.categories == ()
    assert state.find_favorite("Sage").category is None


def test_spell_lifecycle():
    state = reduce(
        GrimoireState(),
        AddSpell("Warding", (" Sage ", "Rue", "sage", ""), "Bundle and burn.", spell_id="s1"),
    )
    assert state.find_spell("s1").ingredients == ["Sage", "Rue"]

    state = reduce(state, UpdateSpell("s1", "Greater Warding", ("Rue",), "Burn at dusk."))
    assert state.find_spell("s1").name == "Greater Warding"

    with pytest.raises(ConfirmationRequiredError):
        reduce(state, DeleteSpell("s1"))
    assert reduce(state, DeleteSpell("s1", confirmed=True)).spells == ()


def test_spell_requires_name_instructions_and_ingredient():
    with pytest.raises(GrimoireValidationError, match="at least one ingredient"):
        reduce(GrimoireState(), AddSpell("Warding", ("  ",), "Burn."))
    with pytest.raises(NotFoundError):
        reduce(GrimoireState(), UpdateSpell("missing", "x", ("Sage",), "y"))


def test_search_history_is_deduplicated_most_recent_first_and_bounded():
    state = GrimoireState()
    for query in ("Sage", "Rue", "Mugwort", "sage"):
        state = reduce(state, RecordSearch(query, limit=3))

    assert state.history == ("sage", "Mugwort", "Rue")

    state = reduce(state, RecordSearch("Yarrow", limit=3))
    assert state.history == ("Yarrow", "sage", "Mugwort")
    assert reduce(state, ClearHistory()).history == ()


def test_set_theme():
    assert reduce(GrimoireState(), SetTheme(Theme.LIGHT)).theme is Theme.LIGHT


def test_unknown_event_type_is_rejected():
    with pytest.raises(TypeError):
        reduce(GrimoireState(), object())
