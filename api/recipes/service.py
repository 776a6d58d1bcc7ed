"""
Recipe business logic.

Writes go to Postgres and are final once committed. Keeping the search index
in step is the router's job: it schedules the `search.indexer` hooks as
background tasks after a successful write.
"""

from __future__ import annotations

from typing import Any

import asyncpg
from fastapi import HTTPException, status

from . import repository, schemas

MAX_PAGE_SIZE = 50


def _ordered_rows(items: list[Any]) -> list[dict[str, Any]]:
    """
    Rows in request order. A missing `position` defaults to the list index.
    """
    rows = []
    for index, item in enumerate(items):
        row = item.model_dump()
        if row["position"] is None:
            row["position"] = index
        rows.append(row)
    return rows


def _clean_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for tag in tags:
        t = (tag or "").strip()
        if t and t not in seen:
            seen.add(t)
            out.append(t)
    return out


def _check_page(skip: int, take: int) -> int:
    if skip < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="skip must be >= 0.")
    if take < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="take must be >= 1.")
    return min(take, MAX_PAGE_SIZE)


async def _require_recipe(recipe_id: str) -> dict[str, Any]:
    row = await repository.get_recipe_row(recipe_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found.")
    return row


async def _require_owned_recipe(recipe_id: str, *, user_id: str, action: str) -> dict[str, Any]:
    row = await _require_recipe(recipe_id)
    if str(row["author_id"]) != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can only {action} your own recipes.",
        )
    return row


async def _detail_or_404(recipe_id: str) -> dict[str, Any]:
    detail = await repository.get_recipe_detail(recipe_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found.")
    return detail


async def create_recipe(payload: schemas.RecipeCreate, *, author_id: str) -> dict[str, Any]:
    fields = payload.model_dump(exclude={"ingredients", "instructions"})
    fields["difficulty"] = payload.difficulty.value
    fields["tags"] = _clean_tags(payload.tags)

    try:
        recipe_id = await repository.create_recipe(
            author_id=author_id,
            fields=fields,
            ingredients=_ordered_rows(payload.ingredients),
            instructions=_ordered_rows(payload.instructions),
        )
    except asyncpg.ForeignKeyViolationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Author not found.") from exc

    return await _detail_or_404(recipe_id)


async def get_recipe(recipe_id: str, *, viewer_id: str | None = None) -> dict[str, Any]:
    detail = await _detail_or_404(recipe_id)
    # Private recipes look missing to everyone but their author.
    if not detail["is_public"] and str(detail["author_id"]) != (viewer_id or ""):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found.")
    return detail


async def list_recipes(
    *,
    text: str = "",
    difficulty: schemas.Difficulty | None = None,
    cuisine: str | None = None,
    tags: list[str] | None = None,
    skip: int = 0,
    take: int = 10,
) -> list[dict[str, Any]]:
    take = _check_page(skip, take)
    return await repository.list_recipes(
        text=(text or "").strip(),
        difficulty=difficulty.value if difficulty else None,
        cuisine=(cuisine or "").strip() or None,
        tags=_clean_tags(tags or []),
        skip=skip,
        take=take,
    )


async def list_user_recipes(
    author_id: str,
    *,
    viewer_id: str | None = None,
    skip: int = 0,
    take: int = 10,
) -> list[dict[str, Any]]:
    take = _check_page(skip, take)
    return await repository.list_recipes(
        author_id=author_id,
        include_private=viewer_id == author_id,
        skip=skip,
        take=take,
    )


async def update_recipe(recipe_id: str, payload: schemas.RecipeUpdate, *, user_id: str) -> dict[str, Any]:
    await _require_owned_recipe(recipe_id, user_id=user_id, action="update")

    fields = payload.model_dump(exclude_unset=True, exclude={"ingredients", "instructions"})
    if fields.get("title", "") is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="title cannot be null.")
    if payload.difficulty is not None:
        fields["difficulty"] = payload.difficulty.value
    elif "difficulty" in fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="difficulty cannot be null.")
    if "tags" in fields:
        fields["tags"] = _clean_tags(payload.tags or [])
    if fields.get("is_public", True) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="is_public cannot be null.")

    await repository.update_recipe(
        recipe_id,
        fields=fields,
        ingredients=_ordered_rows(payload.ingredients) if payload.ingredients is not None else None,
        instructions=_ordered_rows(payload.instructions) if payload.instructions is not None else None,
    )
    return await _detail_or_404(recipe_id)


async def delete_recipe(recipe_id: str, *, user_id: str) -> None:
    await _require_owned_recipe(recipe_id, user_id=user_id, action="delete")
    deleted = await repository.delete_recipe(recipe_id)
    if not deleted:
        # Lost a race with another delete.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found.")


async def rate_recipe(recipe_id: str, payload: schemas.RatingInput, *, user_id: str) -> dict[str, Any]:
    await get_recipe(recipe_id, viewer_id=user_id)
    try:
        return await repository.upsert_rating(recipe_id, user_id=user_id, value=payload.rating, review=payload.review)
    except asyncpg.ForeignKeyViolationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.") from exc


async def add_comment(recipe_id: str, payload: schemas.CommentInput, *, user_id: str) -> dict[str, Any]:
    await get_recipe(recipe_id, viewer_id=user_id)
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment is empty.")
    try:
        return await repository.insert_comment(recipe_id, user_id=user_id, content=content)
    except asyncpg.ForeignKeyViolationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.") from exc
