"""
Trending API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter

from . import service

router = APIRouter()


@router.get("/trending")
async def trending(limit: int = 5) -> dict:
    recipes = await service.get_trending(limit)
    return {"recipes": [r.model_dump() for r in recipes], "count": len(recipes)}
