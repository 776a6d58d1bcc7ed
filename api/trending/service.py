"""
Trend ranking.

Scores recent public recipes from Postgres data alone (the search index is
not involved):

  recency_score = max(0, 30 - days_since_created) / 30
  rating_score  = avg_rating / 5
  trend_score   = 0.4 * recency_score + 0.3 * rating_score + 0.3 * engagement

`engagement` (ratings + comments) is a raw count, not normalized, so it
dominates the score once a recipe has a handful of interactions.

Scores are computed per request and never stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from fastapi import HTTPException, status

from . import repository, schemas

MIN_LIMIT = 1
MAX_LIMIT = 50
MAX_CANDIDATES = 100
RECENCY_WINDOW_DAYS = 30.0

# First match wins, checked in this order.
TAG_LABELS: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"air-fryer", "air-frying"}), "Air Frying"),
    (frozenset({"sourdough", "fermentation"}), "Sourdough Baking"),
    (frozenset({"plant-based", "vegan"}), "Plant-Based Cooking"),
    (frozenset({"keto", "low-carb"}), "Keto Diet"),
    (frozenset({"instant-pot", "pressure-cooker"}), "Instant Pot Cooking"),
    (frozenset({"meal-prep", "batch-cooking"}), "Meal Prep"),
    (frozenset({"one-pot", "sheet-pan"}), "One-Pot Meals"),
    (frozenset({"gluten-free", "dairy-free"}), "Allergen-Free Cooking"),
    # Unreachable for "fermentation" (Sourdough Baking wins); only "pickling" lands here.
    (frozenset({"fermentation", "pickling"}), "Fermentation"),
    (frozenset({"smoking", "bbq"}), "Smoking & BBQ"),
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrendSignals:
    days_since_created: float
    avg_rating: float
    engagement: int

    @property
    def recency_score(self) -> float:
        return max(0.0, RECENCY_WINDOW_DAYS - self.days_since_created) / RECENCY_WINDOW_DAYS

    @property
    def rating_score(self) -> float:
        return self.avg_rating / 5

    @property
    def trend_score(self) -> float:
        return 0.4 * self.recency_score + 0.3 * self.rating_score + 0.3 * self.engagement


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def signals_for(candidate: dict[str, Any], *, now: datetime) -> TrendSignals:
    created_at = _as_utc(candidate["created_at"])
    days = (now - created_at).total_seconds() / 86400.0
    ratings_count = int(candidate.get("ratings_count") or 0)
    avg_rating = float(candidate.get("average_rating") or 0.0) if ratings_count else 0.0
    engagement = ratings_count + int(candidate.get("comments_count") or 0)
    return TrendSignals(days_since_created=days, avg_rating=avg_rating, engagement=engagement)


def trend_label(tags: Iterable[str], signals: TrendSignals) -> str:
    tag_set = set(tags or ())
    for wanted, label in TAG_LABELS:
        if tag_set & wanted:
            return label
    if signals.avg_rating >= 4.5:
        return "Highly Rated"
    if signals.engagement >= 10:
        return "Popular"
    if signals.days_since_created <= 7:
        return "New & Trending"
    return "Recently Added"


def rank(
    candidates: list[dict[str, Any]],
    *,
    limit: int,
    now: datetime,
) -> list[schemas.RankedRecipe]:
    scored: list[tuple[float, dict[str, Any], TrendSignals]] = []
    for candidate in candidates:
        signals = signals_for(candidate, now=now)
        scored.append((signals.trend_score, candidate, signals))

    # Stable sort keeps the newest-first candidate order among equal scores.
    scored.sort(key=lambda item: item[0], reverse=True)

    ranked: list[schemas.RankedRecipe] = []
    for score, candidate, signals in scored[:limit]:
        tags = [str(t) for t in (candidate.get("tags") or [])]
        ranked.append(
            schemas.RankedRecipe(
                id=str(candidate["id"]),
                title=str(candidate.get("title") or ""),
                description=str(candidate.get("description") or ""),
                trend=trend_label(tags, signals),
                difficulty=str(candidate.get("difficulty") or "EASY").upper(),
                cuisine=candidate.get("cuisine"),
                prep_time=int(candidate.get("prep_time") or 0),
                cook_time=int(candidate.get("cook_time") or 0),
                tags=tags,
                average_rating=signals.avg_rating,
                engagement=signals.engagement,
                trend_score=score,
                created_at=candidate["created_at"],
            )
        )
    return ranked


async def get_trending(
    limit: int = 5,
    *,
    clock: Callable[[], datetime] = _utc_now,
) -> list[schemas.RankedRecipe]:
    if limit < MIN_LIMIT or limit > MAX_LIMIT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}.",
        )

    try:
        candidates = await repository.list_candidates(limit=min(limit * 3, MAX_CANDIDATES))
    except Exception:
        logger.exception("trending_failed limit=%s", limit)
        return []

    if not candidates:
        logger.info("trending_empty limit=%s", limit)
        return []

    return rank(candidates, limit=limit, now=clock())
