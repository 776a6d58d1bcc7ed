"""
Recipe API schemas (request models).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class IngredientInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount: float | None = Field(default=None, ge=0)
    unit: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)
    position: int | None = Field(default=None, ge=0)


class InstructionInput(BaseModel):
    step: str = Field(..., min_length=1, max_length=5000)
    position: int | None = Field(default=None, ge=0)
    image_url: str | None = Field(default=None, max_length=2000)


class RecipeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    image_url: str | None = Field(default=None, max_length=2000)
    prep_time: int | None = Field(default=None, ge=0)
    cook_time: int | None = Field(default=None, ge=0)
    servings: int | None = Field(default=None, ge=1)
    difficulty: Difficulty = Difficulty.EASY
    cuisine: str | None = Field(default=None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    is_public: bool = True
    ingredients: list[IngredientInput] = Field(default_factory=list)
    instructions: list[InstructionInput] = Field(default_factory=list)


class RecipeUpdate(BaseModel):
    """
    Partial update. Omitted fields stay as they are; `ingredients` and
    `instructions`, when present, replace the stored lists.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    image_url: str | None = Field(default=None, max_length=2000)
    prep_time: int | None = Field(default=None, ge=0)
    cook_time: int | None = Field(default=None, ge=0)
    servings: int | None = Field(default=None, ge=1)
    difficulty: Difficulty | None = None
    cuisine: str | None = Field(default=None, max_length=100)
    tags: list[str] | None = None
    is_public: bool | None = None
    ingredients: list[IngredientInput] | None = None
    instructions: list[InstructionInput] | None = None


class RatingInput(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: str | None = Field(default=None, max_length=2000)


class CommentInput(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
