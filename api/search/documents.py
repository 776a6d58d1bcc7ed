"""
Search index layout and the recipe -> document projection.

The indexed document is derived data. It is rebuilt in full from a recipe
snapshot (row + ingredients + instructions) on every write and is never
treated as authoritative.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any

ANALYZER = "recipe_analyzer"

INDEX_SETTINGS: dict[str, Any] = {
    "number_of_shards": 1,
    "number_of_replicas": 0,
    "refresh_interval": "1s",
    "max_result_window": 10000,
    "analysis": {
        "analyzer": {
            ANALYZER: {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase", "stop", "snowball"],
            }
        }
    },
}

_TEXT_WITH_KEYWORD = {"type": "text", "analyzer": ANALYZER, "fields": {"keyword": {"type": "keyword"}}}

INDEX_MAPPINGS: dict[str, Any] = {
    "properties": {
        "id": {"type": "keyword"},
        "title": _TEXT_WITH_KEYWORD,
        "description": _TEXT_WITH_KEYWORD,
        "ingredient_text": _TEXT_WITH_KEYWORD,
        "instruction_text": {"type": "text", "analyzer": ANALYZER},
        "tags": {"type": "keyword"},
        "difficulty": {"type": "keyword"},
        "cuisine": {"type": "keyword"},
        "prep_time": {"type": "integer"},
        "cook_time": {"type": "integer"},
        "servings": {"type": "integer"},
        "author_id": {"type": "keyword"},
        "is_public": {"type": "boolean"},
        "created_at": {"type": "date"},
        "updated_at": {"type": "date"},
    }
}

# Fields returned to callers. `instruction_text` is indexed for matching but
# left out of results to keep pages small.
SUMMARY_FIELDS = (
    "id",
    "title",
    "description",
    "tags",
    "difficulty",
    "cuisine",
    "prep_time",
    "cook_time",
    "servings",
    "author_id",
    "is_public",
    "created_at",
    "updated_at",
)
HEAVY_FIELDS = ("instruction_text",)


def index_name() -> str:
    return os.environ.get("SEARCH_INDEX_NAME", "recipes").strip() or "recipes"


def _join_text(items: list[Any] | None, key: str) -> str:
    parts: list[str] = []
    for item in items or []:
        value = item.get(key) if isinstance(item, dict) else item
        text = str(value or "").strip()
        if text:
            parts.append(text)
    return " ".join(parts)


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def to_document(recipe: dict[str, Any]) -> dict[str, Any]:
    """
    Project a recipe snapshot into its index document.

    `recipe["ingredients"]` / `recipe["instructions"]` are lists of rows
    (dicts with `name` / `step`) in display order.
    """
    difficulty = recipe.get("difficulty")
    return {
        "id": str(recipe["id"]),
        "title": recipe.get("title") or "",
        "description": recipe.get("description") or "",
        "ingredient_text": _join_text(recipe.get("ingredients"), "name"),
        "instruction_text": _join_text(recipe.get("instructions"), "step"),
        "tags": [str(t) for t in (recipe.get("tags") or [])],
        "difficulty": str(difficulty).upper() if difficulty else None,
        "cuisine": recipe.get("cuisine"),
        "prep_time": _optional_int(recipe.get("prep_time")),
        "cook_time": _optional_int(recipe.get("cook_time")),
        "servings": _optional_int(recipe.get("servings")),
        "author_id": str(recipe["author_id"]) if recipe.get("author_id") is not None else None,
        "is_public": bool(recipe.get("is_public", False)),
        "created_at": _iso(recipe.get("created_at")),
        "updated_at": _iso(recipe.get("updated_at")),
    }
