"""
Search index maintenance.

Keeps the Elasticsearch index eventually consistent with Postgres:
- ensure_schema(): create the index once, with mapping + analyzer
- reindex_all(): bulk rebuild from Postgres (startup, disaster recovery)
- upsert()/remove(): per-recipe updates after writes

Postgres is authoritative, so nothing in this module raises to its caller.
Index failures are logged and dropped; search keeps working through the
Postgres fallback until the next successful write or reindex.
"""

from __future__ import annotations

import logging
from typing import Any

from core import elastic, events
from recipes import repository as recipes_repository

from . import documents

logger = logging.getLogger(__name__)

# True once ensure_schema() has succeeded. Writes call it first until then;
# a document write to a missing index would create it with dynamic mappings.
_schema_ready = False


async def ensure_schema() -> bool:
    """
    Create the index if it is missing. Returns True when the index exists
    afterwards, False when the cluster could not be reached.
    """
    global _schema_ready
    name = documents.index_name()
    try:
        es = elastic.client()
        if not await es.indices.exists(index=name):
            await es.indices.create(
                index=name,
                settings=documents.INDEX_SETTINGS,
                mappings=documents.INDEX_MAPPINGS,
            )
            logger.info("index_created index=%s", name)
    except Exception:
        logger.exception("index_ensure_failed index=%s (search will use the database)", name)
        return False
    _schema_ready = True
    return True


async def _writable() -> bool:
    return _schema_ready or await ensure_schema()


async def reindex_all() -> int:
    """
    Rebuild every document from Postgres in one bulk request.

    Re-running is harmless: documents are keyed by recipe id and overwritten.
    Returns the number of documents written.
    """
    try:
        recipes = await recipes_repository.list_recipes_for_indexing()
    except Exception:
        logger.exception("reindex_skipped reason=primary_store_unavailable")
        return 0

    if not recipes:
        logger.info("reindex_skipped reason=no_recipes")
        return 0

    if not await _writable():
        logger.warning("reindex_skipped reason=index_unavailable recipes=%s", len(recipes))
        return 0

    name = documents.index_name()
    operations: list[dict[str, Any]] = []
    for recipe in recipes:
        doc = documents.to_document(recipe)
        operations.append({"index": {"_index": name, "_id": doc["id"]}})
        operations.append(doc)

    try:
        response = await elastic.client().bulk(operations=operations)
    except Exception:
        logger.exception("reindex_failed index=%s recipes=%s", name, len(recipes))
        return 0

    body = getattr(response, "body", response)
    failed = 0
    if body.get("errors"):
        failed = sum(1 for item in body.get("items", []) if (item.get("index") or {}).get("error"))
        logger.error("reindex_partial index=%s failed=%s", name, failed)

    written = len(recipes) - failed
    logger.info("reindex_complete index=%s indexed=%s", name, written)
    return written


async def upsert(recipe: dict[str, Any]) -> bool:
    """
    Write the full document for one recipe, replacing any previous version.
    """
    recipe_id = str(recipe.get("id") or "")
    if not await _writable():
        logger.warning("index_upsert_skipped recipe_id=%s reason=index_unavailable", recipe_id)
        return False
    try:
        doc = documents.to_document(recipe)
        await elastic.client().index(index=documents.index_name(), id=doc["id"], document=doc)
    except Exception:
        logger.exception("index_upsert_failed recipe_id=%s", recipe_id)
        return False
    logger.debug("index_upserted recipe_id=%s", recipe_id)
    return True


async def remove(recipe_id: str) -> bool:
    """
    Delete one document. Deleting a document that was never indexed is fine.
    """
    try:
        await elastic.client().options(ignore_status=404).delete(index=documents.index_name(), id=recipe_id)
    except Exception:
        logger.exception("index_remove_failed recipe_id=%s", recipe_id)
        return False
    logger.debug("index_removed recipe_id=%s", recipe_id)
    return True


# Hooks called by the recipes feature after a committed write.


async def on_recipe_created(recipe: dict[str, Any]) -> None:
    await upsert(recipe)
    await events.publish(events.RECIPE_UPDATES, str(recipe["id"]), {"action": "created", "recipe_id": str(recipe["id"])})


async def on_recipe_updated(recipe: dict[str, Any]) -> None:
    await upsert(recipe)
    await events.publish(events.RECIPE_UPDATES, str(recipe["id"]), {"action": "updated", "recipe_id": str(recipe["id"])})


async def on_recipe_deleted(recipe_id: str) -> None:
    await remove(recipe_id)
    await events.publish(events.RECIPE_UPDATES, recipe_id, {"action": "deleted", "recipe_id": recipe_id})
