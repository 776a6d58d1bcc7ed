"""
Trending API schemas.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RankedRecipe(BaseModel):
    id: str
    title: str
    description: str = ""
    trend: str
    difficulty: str
    cuisine: str | None = None
    prep_time: int = 0
    cook_time: int = 0
    tags: list[str] = Field(default_factory=list)
    average_rating: float = 0.0
    engagement: int = 0
    trend_score: float
    created_at: datetime
