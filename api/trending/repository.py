"""
Trending SQL (raw).
"""

from __future__ import annotations

from typing import Any

from core import db


async def list_candidates(*, limit: int) -> list[dict[str, Any]]:
    """
    The `limit` most recently created public recipes with their engagement
    counts and average rating (0 when unrated).
    """
    return await db.fetch_all(
        """
        SELECT
          r.id,
          r.title,
          r.description,
          r.difficulty,
          r.cuisine,
          r.prep_time,
          r.cook_time,
          r.tags,
          r.created_at,
          COALESCE(rs.ratings_count, 0)::int AS ratings_count,
          COALESCE(rs.average_rating, 0)::float8 AS average_rating,
          COALESCE(cs.comments_count, 0)::int AS comments_count
        FROM recipes r
        LEFT JOIN LATERAL (
          SELECT count(*) AS ratings_count, avg(rt.value) AS average_rating
          FROM ratings rt
          WHERE rt.recipe_id = r.id
        ) rs ON true
        LEFT JOIN LATERAL (
          SELECT count(*) AS comments_count
          FROM comments c
          WHERE c.recipe_id = r.id
        ) cs ON true
        WHERE r.is_public = true
        ORDER BY r.created_at DESC, r.id DESC
        LIMIT $1
        """,
        limit,
    )
