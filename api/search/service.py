"""
Search service (orchestration).

Every search tries the Elasticsearch path first. When that returns an error
the same query is answered from Postgres straight away (no retry), so callers
always get a `SearchPage` and never see index errors. The database answer is
unranked (newest first) but has the same item shape and a true total.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable

from fastapi import HTTPException, status

from core.cache import Cache, NullCache
from core.result import Ok

from . import engine, indexer, repository, schemas

MAX_TAKE = 50
MIN_SUGGESTION_CHARS = 2
MAX_SUGGESTIONS = 10

logger = logging.getLogger(__name__)


def clamp_page(skip: int, take: int) -> tuple[int, int]:
    """
    Validate pagination and cap the page size at MAX_TAKE.
    """
    if skip < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="skip must be >= 0.")
    if take < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="take must be >= 1.")
    return skip, min(take, MAX_TAKE)


async def _from_database(query: Awaitable[tuple[list[dict[str, Any]], int]], *, kind: str) -> schemas.SearchPage:
    try:
        rows, total = await query
    except Exception as exc:
        logger.exception("search_fallback_failed kind=%s", kind)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search is temporarily unavailable.",
        ) from exc
    return schemas.SearchPage(
        items=[schemas.RecipeSummary.from_source(row) for row in rows],
        total=total,
    )


async def search(
    query_text: str | None,
    filters: schemas.SearchFilters | None = None,
    *,
    skip: int = 0,
    take: int = 10,
) -> schemas.SearchPage:
    text = (query_text or "").strip()
    clean = (filters or schemas.SearchFilters()).normalized()
    skip, size = clamp_page(skip, take)

    outcome = await engine.run(engine.build_search_request(text, clean, skip=skip, size=size), label="search")
    if isinstance(outcome, Ok):
        return outcome.value

    logger.warning("search_fallback kind=search reason=%s", outcome.reason)
    return await _from_database(
        repository.search_recipes(text, clean, skip=skip, take=size),
        kind="search",
    )


async def search_by_ingredients(
    ingredients: list[str],
    *,
    skip: int = 0,
    take: int = 10,
) -> schemas.SearchPage:
    wanted = [i.strip() for i in ingredients or [] if i and i.strip()]
    if not wanted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one ingredient is required.")
    skip, size = clamp_page(skip, take)

    outcome = await engine.run(engine.build_ingredient_request(wanted, skip=skip, size=size), label="ingredients")
    if isinstance(outcome, Ok):
        return outcome.value

    logger.warning("search_fallback kind=ingredients reason=%s", outcome.reason)
    return await _from_database(
        repository.search_by_ingredients(wanted, skip=skip, take=size),
        kind="ingredients",
    )


_SUGGESTERS = {
    schemas.SuggestionField.INGREDIENTS: "suggest_ingredients",
    schemas.SuggestionField.CUISINE: "suggest_cuisines",
    schemas.SuggestionField.TAGS: "suggest_tags",
}


async def get_suggestions(
    partial_text: str,
    field: schemas.SuggestionField | str,
    *,
    cache: Cache | None = None,
) -> list[str]:
    """
    Autocomplete values for one field, read from Postgres.
    """
    try:
        field = schemas.SuggestionField(field)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported suggestion field '{field}'.",
        ) from exc

    text = (partial_text or "").strip()
    if len(text) < MIN_SUGGESTION_CHARS:
        return []

    cache = cache if cache is not None else NullCache()
    key = (field.value, text.lower())
    cached = await cache.get(key)
    if cached is not None:
        return list(cached)

    try:
        suggest = getattr(repository, _SUGGESTERS[field])
        values = await suggest(text, limit=MAX_SUGGESTIONS)
    except Exception:
        logger.exception("suggestions_failed field=%s", field.value)
        return []

    # Distinct, order kept.
    result = list(dict.fromkeys(values))[:MAX_SUGGESTIONS]
    await cache.put(key, result)
    return list(result)


async def rebuild_index() -> dict[str, Any]:
    """
    Maintenance: make sure the index exists, then repopulate it from Postgres.
    """
    ready = await indexer.ensure_schema()
    indexed = await indexer.reindex_all() if ready else 0
    return {"index_ready": ready, "indexed": indexed}
