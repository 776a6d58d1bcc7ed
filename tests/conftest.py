"""
Shared fixtures: an in-memory Elasticsearch and an in-memory primary store.

`FakeElasticsearch` interprets the query subset the engine emits (bool,
term, terms, range, multi_match, match_phrase, sort). `FakeStore` stands in
for the Postgres repository functions with the same matching rules as the
fallback SQL.
"""

from __future__ import annotations

import copy
import re
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import pytest

from core import elastic, events
from recipes import repository as recipes_repository
from search import documents, indexer
from search import repository as search_repository
from trending import repository as trending_repository

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

_TOKEN = re.compile(r"[a-z0-9]+")


def _tokens(text: Any) -> list[str]:
    return _TOKEN.findall(str(text or "").lower())


def _edit_distance(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + (ca != cb)))
        previous = current
    return previous[-1]


def _allowed_edits(fuzziness: Any, token: str) -> int:
    if fuzziness is None:
        return 0
    if str(fuzziness).upper() == "AUTO":
        if len(token) <= 2:
            return 0
        return 1 if len(token) <= 5 else 2
    return int(fuzziness)


class FakeUnavailable(Exception):
    pass


class FakeIndices:
    def __init__(self, es: "FakeElasticsearch") -> None:
        self._es = es

    async def exists(self, *, index: str) -> bool:
        self._es._check()
        return index in self._es.indices_created

    async def create(self, *, index: str, settings: dict, mappings: dict) -> dict:
        self._es._check()
        if index in self._es.indices_created:
            raise RuntimeError(f"resource_already_exists_exception: {index}")
        self._es.indices_created[index] = {"settings": settings, "mappings": mappings}
        self._es.docs.setdefault(index, {})
        return {"acknowledged": True, "index": index}


class FakeElasticsearch:
    def __init__(self) -> None:
        self.fail = False
        self.indices_created: dict[str, dict[str, Any]] = {}
        self.docs: dict[str, dict[str, dict[str, Any]]] = {}
        self.searches: list[dict[str, Any]] = []
        self.indices = FakeIndices(self)

    def _check(self) -> None:
        if self.fail:
            raise FakeUnavailable("connection refused")

    def options(self, **_: Any) -> "FakeElasticsearch":
        return self

    def documents(self, index: str = "recipes") -> dict[str, dict[str, Any]]:
        return self.docs.get(index, {})

    def _auto_create(self, index: str) -> None:
        # Like a real cluster: writing to a missing index creates it unmapped.
        if index not in self.indices_created:
            self.indices_created[index] = {"settings": {}, "mappings": {}, "dynamic": True}

    async def index(self, *, index: str, id: str, document: dict[str, Any]) -> dict:
        self._check()
        self._auto_create(index)
        self.docs.setdefault(index, {})[id] = copy.deepcopy(document)
        return {"_id": id, "result": "updated"}

    async def delete(self, *, index: str, id: str) -> dict:
        self._check()
        found = self.docs.get(index, {}).pop(id, None) is not None
        return {"_id": id, "result": "deleted" if found else "not_found"}

    async def bulk(self, *, operations: list[dict[str, Any]]) -> dict:
        self._check()
        items = []
        for action, doc in zip(operations[::2], operations[1::2]):
            meta = action["index"]
            self._auto_create(meta["_index"])
            self.docs.setdefault(meta["_index"], {})[meta["_id"]] = copy.deepcopy(doc)
            items.append({"index": {"_id": meta["_id"], "status": 200}})
        return {"errors": False, "items": items}

    async def close(self) -> None:
        return None

    async def search(
        self,
        *,
        index: str,
        query: dict[str, Any],
        sort: list[Any],
        from_: int = 0,
        size: int = 10,
        track_total_hits: bool = True,
        source_excludes: list[str] | None = None,
    ) -> dict:
        self._check()
        self.searches.append({"index": index, "query": query, "sort": sort, "from_": from_, "size": size})

        hits = []
        for doc_id, doc in self.docs.get(index, {}).items():
            matched, score = self._evaluate(query, doc)
            if matched:
                hits.append((doc_id, score, doc))

        hits.sort(key=lambda h: h[2].get("created_at") or "", reverse=True)
        if any("_score" in clause for clause in sort if isinstance(clause, dict)):
            hits.sort(key=lambda h: h[1], reverse=True)

        excluded = set(source_excludes or [])
        page = hits[from_ : from_ + size]
        return {
            "took": 1,
            "hits": {
                "total": {"value": len(hits), "relation": "eq"},
                "hits": [
                    {
                        "_id": doc_id,
                        "_score": score,
                        "_source": {k: v for k, v in doc.items() if k not in excluded},
                    }
                    for doc_id, score, doc in page
                ],
            },
        }

    def _evaluate(self, query: dict[str, Any], doc: dict[str, Any]) -> tuple[bool, float]:
        (kind, body), = query.items()
        if kind == "bool":
            score = 0.0
            for clause in body.get("filter", []):
                if not self._evaluate(clause, doc)[0]:
                    return False, 0.0
            for clause in body.get("must", []):
                ok, s = self._evaluate(clause, doc)
                if not ok:
                    return False, 0.0
                score += s
            should = body.get("should", [])
            if should:
                results = [self._evaluate(clause, doc) for clause in should]
                if sum(1 for ok, _ in results if ok) < int(body.get("minimum_should_match", 0)):
                    return False, 0.0
                score += sum(s for ok, s in results if ok)
            return True, score
        if kind == "term":
            (field, value), = body.items()
            actual = doc.get(field)
            if isinstance(actual, list):
                return value in actual, 0.0
            return actual == value, 0.0
        if kind == "terms":
            (field, values), = body.items()
            actual = doc.get(field)
            actual = actual if isinstance(actual, list) else [actual]
            return any(v in actual for v in values), 0.0
        if kind == "range":
            (field, bounds), = body.items()
            actual = doc.get(field)
            if actual is None:
                return False, 0.0
            return actual <= bounds["lte"], 0.0
        if kind == "match_phrase":
            (field, phrase), = body.items()
            return " ".join(_tokens(phrase)) in " ".join(_tokens(doc.get(field))), 1.0
        if kind == "multi_match":
            return self._multi_match(body, doc)
        raise NotImplementedError(kind)

    def _multi_match(self, body: dict[str, Any], doc: dict[str, Any]) -> tuple[bool, float]:
        query_tokens = _tokens(body["query"])
        best = 0.0
        for weighted in body["fields"]:
            field, _, boost = weighted.partition("^")
            field_tokens = set(_tokens(doc.get(field)))
            hits = 0
            for token in query_tokens:
                edits = _allowed_edits(body.get("fuzziness"), token)
                if any(_edit_distance(token, t) <= edits for t in field_tokens):
                    hits += 1
            best = max(best, hits * float(boost or 1))
        return best > 0, best


class FakeStore:
    """
    Recipes held in memory, exposed through the repository function names.
    """

    def __init__(self) -> None:
        self.recipes: dict[str, dict[str, Any]] = {}
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise ConnectionRefusedError("primary store unavailable")

    def add(self, **fields: Any) -> dict[str, Any]:
        recipe = {
            "id": str(uuid4()),
            "title": "Untitled",
            "description": "",
            "image_url": None,
            "difficulty": "EASY",
            "cuisine": None,
            "prep_time": 10,
            "cook_time": 20,
            "servings": 2,
            "tags": [],
            "is_public": True,
            "author_id": "author-1",
            "created_at": NOW - timedelta(days=len(self.recipes) + 1),
            "updated_at": NOW,
            "ingredients": [],
            "instructions": [],
            "ratings": [],
            "comments_count": 0,
        }
        ingredients = fields.pop("ingredients", [])
        instructions = fields.pop("instructions", [])
        recipe.update(fields)
        recipe["ingredients"] = [{"name": name} for name in ingredients]
        recipe["instructions"] = [{"step": step} for step in instructions]
        self.recipes[recipe["id"]] = recipe
        return recipe

    def delete(self, recipe_id: str) -> None:
        self.recipes.pop(recipe_id, None)

    def snapshot(self, recipe_id: str) -> dict[str, Any]:
        return copy.deepcopy(self.recipes[recipe_id])

    def _newest_first(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return sorted(rows, key=lambda r: (r["created_at"], r["id"]), reverse=True)

    def _summary(self, recipe: dict[str, Any]) -> dict[str, Any]:
        return {name: recipe.get(name) for name in documents.SUMMARY_FIELDS}

    def _page(self, rows: list[dict[str, Any]], skip: int, take: int) -> tuple[list[dict[str, Any]], int]:
        ordered = self._newest_first(rows)
        return [self._summary(r) for r in ordered[skip : skip + take]], len(ordered)

    @staticmethod
    def _contains(haystack: Any, needle: str) -> bool:
        return needle.lower() in str(haystack or "").lower()

    async def search_recipes(self, text, filters, *, skip, take):
        self._check()
        rows = []
        for r in self.recipes.values():
            if not r["is_public"]:
                continue
            if text and not (self._contains(r["title"], text) or self._contains(r["description"], text)):
                continue
            if filters.difficulty is not None and r["difficulty"] != filters.difficulty.value:
                continue
            if filters.cuisine and r["cuisine"] != filters.cuisine:
                continue
            if filters.tags and not set(filters.tags) & set(r["tags"]):
                continue
            if filters.ingredients and not any(
                self._contains(ing["name"], wanted) for ing in r["ingredients"] for wanted in filters.ingredients
            ):
                continue
            if filters.max_prep_time is not None and (r["prep_time"] is None or r["prep_time"] > filters.max_prep_time):
                continue
            if filters.max_cook_time is not None and (r["cook_time"] is None or r["cook_time"] > filters.max_cook_time):
                continue
            rows.append(r)
        return self._page(rows, skip, take)

    async def search_by_ingredients(self, ingredients, *, skip, take):
        self._check()
        rows = [
            r
            for r in self.recipes.values()
            if r["is_public"]
            and any(
                self._contains(r["title"], wanted) or any(self._contains(ing["name"], wanted) for ing in r["ingredients"])
                for wanted in ingredients
            )
        ]
        return self._page(rows, skip, take)

    def _suggest(self, values: list[str], text: str, limit: int) -> list[str]:
        return sorted({v for v in values if self._contains(v, text)})[:limit]

    async def suggest_ingredients(self, text, *, limit=10):
        self._check()
        values = [i["name"] for r in self.recipes.values() if r["is_public"] for i in r["ingredients"]]
        return self._suggest(values, text, limit)

    async def suggest_cuisines(self, text, *, limit=10):
        self._check()
        values = [r["cuisine"] for r in self.recipes.values() if r["is_public"] and r["cuisine"]]
        return self._suggest(values, text, limit)

    async def suggest_tags(self, text, *, limit=10):
        self._check()
        values = [t for r in self.recipes.values() if r["is_public"] for t in r["tags"]]
        return self._suggest(values, text, limit)

    async def list_recipes_for_indexing(self):
        self._check()
        return [copy.deepcopy(r) for r in sorted(self.recipes.values(), key=lambda r: r["created_at"])]

    async def list_candidates(self, *, limit):
        self._check()
        rows = []
        for r in self._newest_first([r for r in self.recipes.values() if r["is_public"]])[:limit]:
            ratings = r["ratings"]
            rows.append(
                {
                    "id": r["id"],
                    "title": r["title"],
                    "description": r["description"],
                    "difficulty": r["difficulty"],
                    "cuisine": r["cuisine"],
                    "prep_time": r["prep_time"],
                    "cook_time": r["cook_time"],
                    "tags": list(r["tags"]),
                    "created_at": r["created_at"],
                    "ratings_count": len(ratings),
                    "average_rating": sum(ratings) / len(ratings) if ratings else 0.0,
                    "comments_count": r["comments_count"],
                }
            )
        return rows


@pytest.fixture
def es(monkeypatch):
    monkeypatch.delenv("SEARCH_INDEX_NAME", raising=False)
    monkeypatch.setattr(indexer, "_schema_ready", False)
    fake = FakeElasticsearch()
    elastic.set_client(fake)
    yield fake
    elastic.set_client(None)


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    for name in (
        "search_recipes",
        "search_by_ingredients",
        "suggest_ingredients",
        "suggest_cuisines",
        "suggest_tags",
    ):
        monkeypatch.setattr(search_repository, name, getattr(fake, name))
    monkeypatch.setattr(recipes_repository, "list_recipes_for_indexing", fake.list_recipes_for_indexing)
    monkeypatch.setattr(trending_repository, "list_candidates", fake.list_candidates)
    return fake


@pytest.fixture
def published(monkeypatch):
    sent: list[tuple[str, str, dict[str, Any]]] = []

    async def fake_publish(topic: str, key: str, payload: dict[str, Any]) -> bool:
        sent.append((topic, key, payload))
        return True

    monkeypatch.setattr(events, "publish", fake_publish)
    return sent
