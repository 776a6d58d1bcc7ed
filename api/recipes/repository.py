"""
Recipe persistence (raw SQL).

Postgres is the authoritative store for recipes and their child rows
(ingredients, instructions, ratings, comments). Writes that touch several
tables run inside one transaction.
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from core import db

RECIPE_COLUMNS = (
    "id",
    "title",
    "description",
    "image_url",
    "difficulty",
    "cuisine",
    "prep_time",
    "cook_time",
    "servings",
    "tags",
    "is_public",
    "author_id",
    "created_at",
    "updated_at",
)

# Columns a PATCH may touch. Anything else in the payload is ignored.
UPDATABLE_COLUMNS = (
    "title",
    "description",
    "image_url",
    "difficulty",
    "cuisine",
    "prep_time",
    "cook_time",
    "servings",
    "tags",
    "is_public",
)

_SELECT_RECIPE = ", ".join(f"r.{c}" for c in RECIPE_COLUMNS)


def new_id() -> str:
    return str(uuid4())


async def _insert_children(
    conn: Any,
    recipe_id: str,
    *,
    ingredients: list[dict[str, Any]],
    instructions: list[dict[str, Any]],
) -> None:
    if ingredients:
        await conn.executemany(
            """
            INSERT INTO ingredients (id, recipe_id, name, amount, unit, notes, position)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            [
                (
                    new_id(),
                    recipe_id,
                    ing["name"],
                    ing.get("amount"),
                    ing.get("unit"),
                    ing.get("notes"),
                    int(ing.get("position") or 0),
                )
                for ing in ingredients
            ],
        )
    if instructions:
        await conn.executemany(
            """
            INSERT INTO instructions (id, recipe_id, step, position, image_url)
            VALUES ($1, $2, $3, $4, $5)
            """,
            [
                (
                    new_id(),
                    recipe_id,
                    inst["step"],
                    int(inst.get("position") or 0),
                    inst.get("image_url"),
                )
                for inst in instructions
            ],
        )


async def create_recipe(
    *,
    author_id: str,
    fields: dict[str, Any],
    ingredients: list[dict[str, Any]],
    instructions: list[dict[str, Any]],
) -> str:
    recipe_id = new_id()
    async with db.transaction() as conn:
        await conn.execute(
            """
            INSERT INTO recipes (
              id, title, description, image_url, difficulty, cuisine,
              prep_time, cook_time, servings, tags, is_public, author_id
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            """,
            recipe_id,
            fields["title"],
            fields.get("description"),
            fields.get("image_url"),
            fields.get("difficulty") or "EASY",
            fields.get("cuisine"),
            fields.get("prep_time"),
            fields.get("cook_time"),
            fields.get("servings"),
            list(fields.get("tags") or []),
            bool(fields.get("is_public", True)),
            author_id,
        )
        await _insert_children(conn, recipe_id, ingredients=ingredients, instructions=instructions)
    return recipe_id


async def get_recipe_row(recipe_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {_SELECT_RECIPE}
        FROM recipes r
        WHERE r.id = $1
        """,
        recipe_id,
    )


async def get_recipe_detail(recipe_id: str) -> dict[str, Any] | None:
    """
    One recipe with ordered ingredients/instructions and rating aggregates.

    This is the snapshot the search index is derived from.
    """
    row = await db.fetch_one(
        f"""
        SELECT
          {_SELECT_RECIPE},
          COALESCE(stats.average_rating, 0)::float8 AS average_rating,
          COALESCE(stats.ratings_count, 0)::int AS ratings_count,
          (SELECT count(*) FROM comments c WHERE c.recipe_id = r.id)::int AS comments_count
        FROM recipes r
        LEFT JOIN LATERAL (
          SELECT avg(rt.value) AS average_rating, count(*) AS ratings_count
          FROM ratings rt
          WHERE rt.recipe_id = r.id
        ) stats ON true
        WHERE r.id = $1
        """,
        recipe_id,
    )
    if row is None:
        return None

    row["ingredients"] = await db.fetch_all(
        """
        SELECT id, name, amount, unit, notes, position
        FROM ingredients
        WHERE recipe_id = $1
        ORDER BY position ASC, id ASC
        """,
        recipe_id,
    )
    row["instructions"] = await db.fetch_all(
        """
        SELECT id, step, position, image_url
        FROM instructions
        WHERE recipe_id = $1
        ORDER BY position ASC, id ASC
        """,
        recipe_id,
    )
    return row


async def list_recipes(
    *,
    author_id: str | None = None,
    text: str = "",
    difficulty: str | None = None,
    cuisine: str | None = None,
    tags: list[str] | None = None,
    include_private: bool = False,
    skip: int = 0,
    take: int = 10,
) -> list[dict[str, Any]]:
    """
    Recipe listing, newest first. Private recipes only when `include_private`
    (an author looking at their own recipes).
    """
    clauses: list[str] = []
    args: list[Any] = []

    def arg(value: Any) -> str:
        args.append(value)
        return f"${len(args)}"

    if not include_private:
        clauses.append("r.is_public = true")
    if author_id:
        clauses.append(f"r.author_id = {arg(author_id)}")
    if text:
        p = arg(db.like_pattern(text))
        clauses.append(f"(r.title ILIKE {p} OR r.description ILIKE {p})")
    if difficulty:
        clauses.append(f"r.difficulty = {arg(difficulty)}")
    if cuisine:
        clauses.append(f"r.cuisine ILIKE {arg(db.like_pattern(cuisine))}")
    if tags:
        clauses.append(f"r.tags && {arg(list(tags))}::text[]")

    where = " AND ".join(clauses) if clauses else "true"
    limit = arg(take)
    offset = arg(skip)
    return await db.fetch_all(
        f"""
        SELECT
          {_SELECT_RECIPE},
          COALESCE(stats.average_rating, 0)::float8 AS average_rating,
          COALESCE(stats.ratings_count, 0)::int AS ratings_count
        FROM recipes r
        LEFT JOIN LATERAL (
          SELECT avg(rt.value) AS average_rating, count(*) AS ratings_count
          FROM ratings rt
          WHERE rt.recipe_id = r.id
        ) stats ON true
        WHERE {where}
        ORDER BY r.created_at DESC, r.id DESC
        LIMIT {limit}
        OFFSET {offset}
        """,
        *args,
    )


async def update_recipe(
    recipe_id: str,
    *,
    fields: dict[str, Any],
    ingredients: list[dict[str, Any]] | None = None,
    instructions: list[dict[str, Any]] | None = None,
) -> None:
    columns = [c for c in UPDATABLE_COLUMNS if c in fields]
    assignments = [f"{c} = ${i}" for i, c in enumerate(columns, start=2)]
    assignments.append("updated_at = now()")
    values = [list(fields[c] or []) if c == "tags" else fields[c] for c in columns]

    async with db.transaction() as conn:
        await conn.execute(
            f"UPDATE recipes SET {', '.join(assignments)} WHERE id = $1",
            recipe_id,
            *values,
        )
        if ingredients is not None:
            await conn.execute("DELETE FROM ingredients WHERE recipe_id = $1", recipe_id)
            await _insert_children(conn, recipe_id, ingredients=ingredients, instructions=[])
        if instructions is not None:
            await conn.execute("DELETE FROM instructions WHERE recipe_id = $1", recipe_id)
            await _insert_children(conn, recipe_id, ingredients=[], instructions=instructions)


async def delete_recipe(recipe_id: str) -> bool:
    # Child rows go with ON DELETE CASCADE.
    status = await db.execute("DELETE FROM recipes WHERE id = $1", recipe_id)
    return status.endswith(" 1")


async def upsert_rating(recipe_id: str, *, user_id: str, value: int, review: str | None) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO ratings (id, recipe_id, user_id, value, review)
        VALUES ($1, $2, $3, $4, $5)
        ON CONFLICT (recipe_id, user_id) DO UPDATE
        SET value = EXCLUDED.value,
            review = EXCLUDED.review,
            updated_at = now()
        RETURNING id, recipe_id, user_id, value, review, created_at, updated_at
        """,
        new_id(),
        recipe_id,
        user_id,
        value,
        review,
    )
    if row is None:
        raise RuntimeError("Failed to store rating.")
    return row


async def insert_comment(recipe_id: str, *, user_id: str, content: str) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        INSERT INTO comments (id, recipe_id, user_id, content)
        VALUES ($1, $2, $3, $4)
        RETURNING id, recipe_id, user_id, content, created_at
        """,
        new_id(),
        recipe_id,
        user_id,
        content,
    )
    if row is None:
        raise RuntimeError("Failed to store comment.")
    return row


async def list_recipes_for_indexing() -> list[dict[str, Any]]:
    """
    Every recipe with its ingredient names and instruction steps, in the same
    shape as `get_recipe_detail` (minus aggregates).
    """
    rows = await db.fetch_all(
        f"""
        SELECT
          {_SELECT_RECIPE},
          COALESCE(
            (SELECT array_agg(i.name ORDER BY i.position, i.id) FROM ingredients i WHERE i.recipe_id = r.id),
            '{{}}'::text[]
          ) AS ingredient_names,
          COALESCE(
            (SELECT array_agg(s.step ORDER BY s.position, s.id) FROM instructions s WHERE s.recipe_id = r.id),
            '{{}}'::text[]
          ) AS instruction_steps
        FROM recipes r
        ORDER BY r.created_at ASC, r.id ASC
        """
    )
    for row in rows:
        row["ingredients"] = [{"name": name} for name in row.pop("ingredient_names") or []]
        row["instructions"] = [{"step": step} for step in row.pop("instruction_steps") or []]
    return rows
