"""
Search API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from core.cache import Cache, NullCache
from recipes.schemas import Difficulty

from . import schemas, service

router = APIRouter()


def get_suggestion_cache(request: Request) -> Cache:
    # Empty caches are falsy.
    cache = getattr(request.app.state, "suggestion_cache", None)
    return cache if cache is not None else NullCache()


@router.get("/search")
async def search(
    q: str = Query(default="", max_length=500),
    difficulty: Difficulty | None = None,
    cuisine: str | None = Query(default=None, max_length=100),
    tags: list[str] = Query(default=[]),
    ingredients: list[str] = Query(default=[]),
    max_prep_time: int | None = Query(default=None, ge=0),
    max_cook_time: int | None = Query(default=None, ge=0),
    skip: int = 0,
    take: int = 10,
) -> dict:
    filters = schemas.SearchFilters(
        difficulty=difficulty,
        cuisine=cuisine,
        tags=tags,
        ingredients=ingredients,
        max_prep_time=max_prep_time,
        max_cook_time=max_cook_time,
    )
    page = await service.search(q, filters, skip=skip, take=take)
    return page.model_dump()


@router.get("/search/ingredients")
async def search_by_ingredients(
    ingredients: list[str] = Query(default=[]),
    skip: int = 0,
    take: int = 10,
) -> dict:
    page = await service.search_by_ingredients(ingredients, skip=skip, take=take)
    return page.model_dump()


@router.get("/search/suggestions")
async def suggestions(
    field: schemas.SuggestionField,
    q: str = Query(default="", max_length=100),
    cache: Cache = Depends(get_suggestion_cache),
) -> dict:
    values = await service.get_suggestions(q, field, cache=cache)
    return {"field": field.value, "query": q, "suggestions": values}


@router.post("/search/reindex")
async def reindex() -> dict:
    """
    Recreate the index if needed and repopulate it from the database.
    """
    return await service.rebuild_index()
