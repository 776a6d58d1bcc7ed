"""
Search SQL (raw): the database side of search.

- fallback queries used when Elasticsearch is unavailable; same filters,
  substring matching instead of relevance ranking, newest first
- autocomplete suggestions, which always come from Postgres
"""

from __future__ import annotations

from typing import Any

from core import db

from . import documents, schemas

_SELECT_SUMMARY = ", ".join(f"r.{c}" for c in documents.SUMMARY_FIELDS)


class _Args:
    """
    Collects positional arguments and hands out their $n placeholders.
    """

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def build_search_where(query_text: str, filters: schemas.SearchFilters) -> tuple[str, list[Any]]:
    args = _Args()
    clauses = ["r.is_public = true"]

    if query_text:
        p = args.add(db.like_pattern(query_text))
        clauses.append(f"(r.title ILIKE {p} OR r.description ILIKE {p})")
    if filters.difficulty is not None:
        clauses.append(f"r.difficulty = {args.add(filters.difficulty.value)}")
    if filters.cuisine:
        clauses.append(f"r.cuisine = {args.add(filters.cuisine)}")
    if filters.tags:
        clauses.append(f"r.tags && {args.add(list(filters.tags))}::text[]")
    if filters.ingredients:
        patterns = args.add([db.like_pattern(i) for i in filters.ingredients])
        clauses.append(
            "EXISTS (SELECT 1 FROM ingredients i "
            f"WHERE i.recipe_id = r.id AND i.name ILIKE ANY({patterns}::text[]))"
        )
    if filters.max_prep_time is not None:
        clauses.append(f"r.prep_time <= {args.add(filters.max_prep_time)}")
    if filters.max_cook_time is not None:
        clauses.append(f"r.cook_time <= {args.add(filters.max_cook_time)}")

    return " AND ".join(clauses), args.values


def build_ingredient_where(ingredients: list[str]) -> tuple[str, list[Any]]:
    args = _Args()
    patterns = args.add([db.like_pattern(i) for i in ingredients])
    where = (
        "r.is_public = true AND ("
        f"r.title ILIKE ANY({patterns}::text[]) "
        "OR EXISTS (SELECT 1 FROM ingredients i "
        f"WHERE i.recipe_id = r.id AND i.name ILIKE ANY({patterns}::text[])))"
    )
    return where, args.values


async def _page(where: str, args: list[Any], *, skip: int, take: int) -> tuple[list[dict[str, Any]], int]:
    n = len(args)
    rows = await db.fetch_all(
        f"""
        SELECT {_SELECT_SUMMARY}
        FROM recipes r
        WHERE {where}
        ORDER BY r.created_at DESC, r.id DESC
        LIMIT ${n + 1}
        OFFSET ${n + 2}
        """,
        *args,
        take,
        skip,
    )
    total = await db.fetch_value(
        f"""
        SELECT count(*)
        FROM recipes r
        WHERE {where}
        """,
        *args,
    )
    return rows, int(total or 0)


async def search_recipes(
    query_text: str,
    filters: schemas.SearchFilters,
    *,
    skip: int,
    take: int,
) -> tuple[list[dict[str, Any]], int]:
    where, args = build_search_where(query_text, filters)
    return await _page(where, args, skip=skip, take=take)


async def search_by_ingredients(ingredients: list[str], *, skip: int, take: int) -> tuple[list[dict[str, Any]], int]:
    where, args = build_ingredient_where(ingredients)
    return await _page(where, args, skip=skip, take=take)


async def suggest_ingredients(text: str, *, limit: int = 10) -> list[str]:
    rows = await db.fetch_all(
        """
        SELECT DISTINCT i.name AS value
        FROM ingredients i
        JOIN recipes r ON r.id = i.recipe_id
        WHERE r.is_public = true
          AND i.name ILIKE $1
        ORDER BY value
        LIMIT $2
        """,
        db.like_pattern(text),
        limit,
    )
    return [str(row["value"]) for row in rows]


async def suggest_cuisines(text: str, *, limit: int = 10) -> list[str]:
    rows = await db.fetch_all(
        """
        SELECT DISTINCT r.cuisine AS value
        FROM recipes r
        WHERE r.is_public = true
          AND r.cuisine IS NOT NULL
          AND r.cuisine ILIKE $1
        ORDER BY value
        LIMIT $2
        """,
        db.like_pattern(text),
        limit,
    )
    return [str(row["value"]) for row in rows]


async def suggest_tags(text: str, *, limit: int = 10) -> list[str]:
    rows = await db.fetch_all(
        """
        SELECT DISTINCT t.tag AS value
        FROM recipes r
        CROSS JOIN LATERAL unnest(r.tags) AS t(tag)
        WHERE r.is_public = true
          AND t.tag ILIKE $1
        ORDER BY value
        LIMIT $2
        """,
        db.like_pattern(text),
        limit,
    )
    return [str(row["value"]) for row in rows]
