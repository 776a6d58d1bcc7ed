"""
Elasticsearch query path.

Builds the ranked retrieval requests and runs them. `run()` never raises:
it returns `Ok(SearchPage)` or `Err(error)` and the service decides whether
to fall back to Postgres.

Ranking (text queries): multi_match over title^3, description^2,
ingredient_text^1.5 with `best_fields`, so a recipe is scored by its best
field rather than the sum, plus single-edit fuzziness. Without text the
filters alone select and results come newest first.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from core import elastic
from core.result import Err, Ok, Result

from . import documents, schemas

TEXT_FIELDS = ["title^3", "description^2", "ingredient_text^1.5"]
INGREDIENT_FIELDS = ["ingredient_text^2", "title^1.5"]

NEWEST_FIRST = {"created_at": {"order": "desc", "missing": "_last"}}

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def slow_search_ms() -> int:
    return _env_int("SEARCH_SLOW_MS", 50)


def filter_clauses(filters: schemas.SearchFilters) -> list[dict[str, Any]]:
    """
    Non-scoring constraints. Public-only is always the first clause.
    """
    clauses: list[dict[str, Any]] = [{"term": {"is_public": True}}]

    if filters.difficulty is not None:
        clauses.append({"term": {"difficulty": filters.difficulty.value}})
    if filters.cuisine:
        clauses.append({"term": {"cuisine": filters.cuisine}})
    if filters.tags:
        clauses.append({"terms": {"tags": list(filters.tags)}})
    if filters.ingredients:
        # ingredient_text is analyzed, so matching is case-insensitive.
        clauses.append(
            {
                "bool": {
                    "should": [{"match_phrase": {"ingredient_text": ing}} for ing in filters.ingredients],
                    "minimum_should_match": 1,
                }
            }
        )
    if filters.max_prep_time is not None:
        clauses.append({"range": {"prep_time": {"lte": filters.max_prep_time}}})
    if filters.max_cook_time is not None:
        clauses.append({"range": {"cook_time": {"lte": filters.max_cook_time}}})
    return clauses


def _request(query: dict[str, Any], sort: list[Any], *, skip: int, size: int) -> dict[str, Any]:
    return {
        "query": query,
        "sort": sort,
        "from_": skip,
        "size": size,
        "track_total_hits": True,
        "source_excludes": list(documents.HEAVY_FIELDS),
    }


def build_search_request(
    query_text: str,
    filters: schemas.SearchFilters,
    *,
    skip: int,
    size: int,
) -> dict[str, Any]:
    bool_query: dict[str, Any] = {"filter": filter_clauses(filters)}
    if query_text:
        bool_query["must"] = [
            {
                "multi_match": {
                    "query": query_text,
                    "fields": TEXT_FIELDS,
                    "type": "best_fields",
                    "fuzziness": "1",
                    "operator": "or",
                }
            }
        ]
        sort: list[Any] = [{"_score": {"order": "desc"}}, NEWEST_FIRST]
    else:
        sort = [NEWEST_FIRST]
    return _request({"bool": bool_query}, sort, skip=skip, size=size)


def build_ingredient_request(ingredients: list[str], *, skip: int, size: int) -> dict[str, Any]:
    query = {
        "bool": {
            "filter": [{"term": {"is_public": True}}],
            "must": [
                {
                    "bool": {
                        "should": [
                            {
                                "multi_match": {
                                    "query": ingredient,
                                    "fields": INGREDIENT_FIELDS,
                                    "type": "best_fields",
                                    "fuzziness": "AUTO",
                                }
                            }
                            for ingredient in ingredients
                        ],
                        "minimum_should_match": 1,
                    }
                }
            ],
        }
    }
    return _request(query, [{"_score": {"order": "desc"}}, NEWEST_FIRST], skip=skip, size=size)


def _total(hits: dict[str, Any]) -> int:
    total = hits.get("total")
    if isinstance(total, dict):
        return int(total.get("value") or 0)
    return int(total or 0)


def parse_response(body: dict[str, Any]) -> schemas.SearchPage:
    hits = body.get("hits") or {}
    items = [
        schemas.RecipeSummary.from_source(hit.get("_source") or {}, fallback_id=hit.get("_id"))
        for hit in hits.get("hits") or []
    ]
    return schemas.SearchPage(items=items, total=_total(hits))


async def run(request: dict[str, Any], *, label: str = "search") -> Result[schemas.SearchPage]:
    try:
        response = await elastic.client().search(index=documents.index_name(), **request)
        body = getattr(response, "body", response)
        page = parse_response(body)
    except Exception as exc:
        return Err(exc)

    took = body.get("took")
    if isinstance(took, int) and took > slow_search_ms():
        logger.info("search_slow kind=%s took_ms=%s total=%s", label, took, page.total)
    return Ok(page)
