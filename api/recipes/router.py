"""
Recipe API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status

from search import indexer

from . import dependencies, schemas, service

router = APIRouter()


@router.post("/recipes", status_code=status.HTTP_201_CREATED)
async def create_recipe(
    payload: schemas.RecipeCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(dependencies.get_current_user_id),
) -> dict:
    recipe = await service.create_recipe(payload, author_id=user_id)
    background_tasks.add_task(indexer.on_recipe_created, recipe)
    return recipe


@router.get("/recipes")
async def list_recipes(
    q: str = Query(default="", max_length=500),
    difficulty: schemas.Difficulty | None = None,
    cuisine: str | None = Query(default=None, max_length=100),
    tags: list[str] = Query(default=[]),
    skip: int = 0,
    take: int = 10,
) -> dict:
    recipes = await service.list_recipes(
        text=q,
        difficulty=difficulty,
        cuisine=cuisine,
        tags=tags,
        skip=skip,
        take=take,
    )
    return {"recipes": recipes, "skip": skip, "count": len(recipes)}


@router.get("/recipes/{recipe_id}")
async def get_recipe(
    recipe_id: str,
    viewer_id: str | None = Depends(dependencies.get_optional_user_id),
) -> dict:
    return await service.get_recipe(recipe_id, viewer_id=viewer_id)


@router.patch("/recipes/{recipe_id}")
async def update_recipe(
    recipe_id: str,
    payload: schemas.RecipeUpdate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(dependencies.get_current_user_id),
) -> dict:
    recipe = await service.update_recipe(recipe_id, payload, user_id=user_id)
    background_tasks.add_task(indexer.on_recipe_updated, recipe)
    return recipe


@router.delete("/recipes/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
    recipe_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(dependencies.get_current_user_id),
) -> Response:
    await service.delete_recipe(recipe_id, user_id=user_id)
    background_tasks.add_task(indexer.on_recipe_deleted, recipe_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/recipes/{recipe_id}/ratings", status_code=status.HTTP_201_CREATED)
async def rate_recipe(
    recipe_id: str,
    payload: schemas.RatingInput,
    user_id: str = Depends(dependencies.get_current_user_id),
) -> dict:
    return await service.rate_recipe(recipe_id, payload, user_id=user_id)


@router.post("/recipes/{recipe_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    recipe_id: str,
    payload: schemas.CommentInput,
    user_id: str = Depends(dependencies.get_current_user_id),
) -> dict:
    return await service.add_comment(recipe_id, payload, user_id=user_id)


@router.get("/users/{author_id}/recipes")
async def list_user_recipes(
    author_id: str,
    skip: int = 0,
    take: int = 10,
    viewer_id: str | None = Depends(dependencies.get_optional_user_id),
) -> dict:
    recipes = await service.list_user_recipes(author_id, viewer_id=viewer_id, skip=skip, take=take)
    return {"recipes": recipes, "skip": skip, "count": len(recipes)}
