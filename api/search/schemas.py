"""
Search API schemas.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from recipes.schemas import Difficulty

from .documents import SUMMARY_FIELDS


class SearchFilters(BaseModel):
    """
    Structured search constraints. Every field is optional and all given
    fields are ANDed. Public-only is always applied on top and is not a field.
    """

    difficulty: Difficulty | None = None
    cuisine: str | None = Field(default=None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    ingredients: list[str] = Field(default_factory=list)
    max_prep_time: int | None = Field(default=None, ge=0)
    max_cook_time: int | None = Field(default=None, ge=0)

    def normalized(self) -> "SearchFilters":
        """
        Copy with blank strings dropped and text trimmed.
        """
        return SearchFilters(
            difficulty=self.difficulty,
            cuisine=(self.cuisine or "").strip() or None,
            tags=[t.strip() for t in self.tags if t and t.strip()],
            ingredients=[i.strip() for i in self.ingredients if i and i.strip()],
            max_prep_time=self.max_prep_time,
            max_cook_time=self.max_cook_time,
        )


class RecipeSummary(BaseModel):
    """
    One search hit. Same shape from the index and from the database fallback;
    fields a document lacks come back as None.
    """

    id: str
    title: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    difficulty: str | None = None
    cuisine: str | None = None
    prep_time: int | None = None
    cook_time: int | None = None
    servings: int | None = None
    author_id: str | None = None
    is_public: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_source(cls, source: dict[str, Any], *, fallback_id: str | None = None) -> "RecipeSummary":
        """
        Build a summary from an index `_source` or a database row.

        A field with an unusable value is blanked instead of failing the
        whole page.
        """
        data: dict[str, Any] = {name: source.get(name) for name in SUMMARY_FIELDS}
        data["id"] = str(data["id"] or fallback_id or "")
        if data["tags"] is None:
            data["tags"] = []
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            for error in exc.errors():
                loc = error.get("loc") or ()
                name = loc[0] if loc else None
                if name in data and name != "id":
                    data[name] = [] if name == "tags" else None
            return cls.model_validate(data)


class SearchPage(BaseModel):
    items: list[RecipeSummary]
    total: int


class SuggestionField(str, Enum):
    INGREDIENTS = "ingredients"
    CUISINE = "cuisine"
    TAGS = "tags"
