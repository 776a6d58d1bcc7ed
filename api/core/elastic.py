"""
Elasticsearch client lifecycle.

One `AsyncElasticsearch` per process, created on startup and closed on
shutdown, mirroring the Postgres pool in `core/db.py`.

Every request is bounded by ELASTICSEARCH_TIMEOUT_S and is never retried by
the client: search falls back to Postgres instead of waiting on a second try.
"""

from __future__ import annotations

import os

from elasticsearch import AsyncElasticsearch

_client: AsyncElasticsearch | None = None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def elasticsearch_url() -> str:
    return os.environ.get("ELASTICSEARCH_URL", "http://elasticsearch:9200").strip() or "http://elasticsearch:9200"


def request_timeout_s() -> float:
    return _env_float("ELASTICSEARCH_TIMEOUT_S", 2.0)


def init_client() -> AsyncElasticsearch:
    global _client
    if _client is not None:
        return _client
    # The constructor does not connect; an unreachable cluster only shows up
    # on the first request.
    _client = AsyncElasticsearch(
        elasticsearch_url(),
        request_timeout=request_timeout_s(),
        max_retries=0,
        retry_on_timeout=False,
    )
    return _client


def set_client(client: AsyncElasticsearch | None) -> None:
    """
    Install an already-built client (tests use an in-memory stand-in).
    """
    global _client
    _client = client


async def close_client() -> None:
    global _client
    if _client is None:
        return None
    await _client.close()
    _client = None


def client() -> AsyncElasticsearch:
    if _client is None:
        raise RuntimeError("Elasticsearch client is not initialized. Call init_client() on startup.")
    return _client
