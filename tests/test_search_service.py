import pytest
from fastapi import HTTPException

from core.cache import NullCache, TTLCache
from recipes.schemas import Difficulty
from search import indexer, service
from search.schemas import SearchFilters, SuggestionField


def _seed(store) -> dict[str, dict]:
    recipes = {
        "carbonara": store.add(
            title="Spaghetti Carbonara",
            description="Roman pasta with eggs and pecorino",
            cuisine="Italian",
            difficulty="MEDIUM",
            tags=["pasta", "quick"],
            prep_time=10,
            cook_time=15,
            ingredients=["spaghetti", "eggs", "pancetta", "pecorino"],
        ),
        "pancakes": store.add(
            title="Fluffy Pancakes",
            description="Weekend breakfast stack",
            cuisine="American",
            tags=["breakfast"],
            prep_time=5,
            cook_time=10,
            ingredients=["flour", "eggs", "milk"],
        ),
        "curry": store.add(
            title="Green Curry",
            description="Coconut and basil",
            cuisine="Thai",
            difficulty="HARD",
            tags=["spicy"],
            prep_time=20,
            cook_time=25,
            ingredients=["coconut milk", "basil", "chicken"],
        ),
        "secret": store.add(
            title="Secret Carbonara",
            is_public=False,
            ingredients=["eggs"],
        ),
    }
    return recipes


@pytest.mark.asyncio
async def test_carbonara_found_then_gone_after_remove(es, store) -> None:
    recipes = _seed(store)
    await indexer.reindex_all()

    page = await service.search("carbonara")
    assert page.total == 1
    assert page.items[0].title == "Spaghetti Carbonara"

    typo = await service.search("carbonra")
    assert typo.items[0].id == recipes["carbonara"]["id"]

    await indexer.remove(recipes["carbonara"]["id"])
    assert (await service.search("carbonara")).total == 0


@pytest.mark.asyncio
async def test_private_recipes_never_returned(es, store) -> None:
    _seed(store)
    await indexer.reindex_all()

    page = await service.search("secret")
    assert page.total == 0

    es.fail = True
    page = await service.search("secret")
    assert page.total == 0


@pytest.mark.parametrize(
    "text,filters",
    (
        ("", SearchFilters()),
        ("", SearchFilters(tags=["quick", "spicy"])),
        ("", SearchFilters(ingredients=["EGGS"])),
        ("", SearchFilters(difficulty=Difficulty.HARD)),
        ("", SearchFilters(cuisine="Italian", max_prep_time=10)),
        ("", SearchFilters(max_cook_time=15)),
    ),
)
@pytest.mark.asyncio
async def test_fallback_matches_index_for_filter_queries(es, store, text, filters) -> None:
    _seed(store)
    await indexer.reindex_all()

    from_index = await service.search(text, filters)
    es.fail = True
    from_database = await service.search(text, filters)

    assert from_database.model_dump().keys() == from_index.model_dump().keys()
    assert from_database.total == from_index.total
    assert [i.id for i in from_database.items] == [i.id for i in from_index.items]
    assert [i.model_dump() for i in from_database.items] == [i.model_dump() for i in from_index.items]


@pytest.mark.asyncio
async def test_fallback_text_search_is_substring(es, store) -> None:
    recipes = _seed(store)
    es.fail = True

    page = await service.search("PASTA")

    assert [i.id for i in page.items] == [recipes["carbonara"]["id"]]
    assert page.total == 1


@pytest.mark.asyncio
async def test_search_fails_with_503_when_both_stores_are_down(es, store) -> None:
    es.fail = True
    store.unavailable = True

    with pytest.raises(HTTPException) as exc:
        await service.search("anything")

    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_deleted_recipe_absent_on_both_paths(es, store) -> None:
    recipes = _seed(store)
    await indexer.reindex_all()
    gone = recipes["pancakes"]["id"]

    store.delete(gone)
    await indexer.remove(gone)

    assert gone not in [i.id for i in (await service.search("")).items]
    es.fail = True
    assert gone not in [i.id for i in (await service.search("")).items]


@pytest.mark.asyncio
async def test_take_is_clamped_and_total_is_true_count(es, store) -> None:
    for n in range(60):
        store.add(title=f"Soup {n}")
    await indexer.reindex_all()

    page = await service.search("", take=1000)
    assert len(page.items) == 50
    assert page.total == 60
    assert es.searches[-1]["size"] == 50

    es.fail = True
    page = await service.search("", take=1000)
    assert len(page.items) == 50
    assert page.total == 60


@pytest.mark.parametrize("skip,take", ((-1, 10), (0, 0)))
@pytest.mark.asyncio
async def test_bad_pagination_is_rejected(es, store, skip, take) -> None:
    with pytest.raises(HTTPException) as exc:
        await service.search("", skip=skip, take=take)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_search_by_ingredients_on_both_paths(es, store) -> None:
    recipes = _seed(store)
    await indexer.reindex_all()

    page = await service.search_by_ingredients(["basil", " "])
    assert [i.id for i in page.items] == [recipes["curry"]["id"]]

    es.fail = True
    page = await service.search_by_ingredients(["basil"])
    assert [i.id for i in page.items] == [recipes["curry"]["id"]]


@pytest.mark.asyncio
async def test_search_by_ingredients_requires_one(es, store) -> None:
    with pytest.raises(HTTPException) as exc:
        await service.search_by_ingredients(["", "  "])
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_suggestions_need_two_characters(store) -> None:
    _seed(store)
    assert await service.get_suggestions("e", SuggestionField.INGREDIENTS) == []
    assert await service.get_suggestions("eg", SuggestionField.INGREDIENTS) == ["eggs"]


@pytest.mark.asyncio
async def test_suggestions_by_field(store) -> None:
    _seed(store)
    assert await service.get_suggestions("ital", "cuisine") == ["Italian"]
    assert await service.get_suggestions("SPI", SuggestionField.TAGS) == ["spicy"]
    assert await service.get_suggestions("milk", SuggestionField.INGREDIENTS) == ["coconut milk", "milk"]


@pytest.mark.asyncio
async def test_unknown_suggestion_field_is_rejected(store) -> None:
    with pytest.raises(HTTPException) as exc:
        await service.get_suggestions("egg", "authors")
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_suggestions_served_from_cache(store) -> None:
    _seed(store)
    cache = TTLCache(ttl_s=60)

    first = await service.get_suggestions("Egg", SuggestionField.INGREDIENTS, cache=cache)
    store.unavailable = True
    second = await service.get_suggestions("egg", SuggestionField.INGREDIENTS, cache=cache)

    assert first == second == ["eggs"]
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_suggestions_degrade_to_empty_without_cache(store) -> None:
    store.unavailable = True
    assert await service.get_suggestions("egg", SuggestionField.INGREDIENTS, cache=NullCache()) == []


@pytest.mark.asyncio
async def test_rebuild_index(es, store) -> None:
    _seed(store)
    assert await service.rebuild_index() == {"index_ready": True, "indexed": 4}

    es.fail = True
    assert await service.rebuild_index() == {"index_ready": False, "indexed": 0}
