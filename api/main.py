import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import db, elastic
from core.cache import NullCache, RedisCache, TTLCache
from recipes import router as recipes_router
from search import indexer
from search import router as search_router
from trending import router as trending_router

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


def _suggestion_cache():
    ttl_s = _env_float("SUGGESTION_CACHE_TTL_S", 60.0)
    if ttl_s <= 0:
        return NullCache()
    redis_url = os.environ.get("REDIS_URL", "").strip()
    if redis_url:
        return RedisCache.from_url(redis_url, ttl_s=ttl_s, prefix="suggestions:")
    return TTLCache(ttl_s=ttl_s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Initialize the DB pool and search client once per process.
    await db.init_pool()
    elastic.init_client()
    app.state.suggestion_cache = _suggestion_cache()

    if _env_flag("SEARCH_REINDEX_ON_STARTUP", True):
        # Neither call raises; an unreachable cluster leaves search on Postgres.
        if await indexer.ensure_schema():
            indexed = await indexer.reindex_all()
            logger.info("startup_reindex indexed=%s", indexed)

    try:
        yield
    finally:
        if isinstance(app.state.suggestion_cache, RedisCache):
            await app.state.suggestion_cache.close()
        await elastic.close_client()
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

# Allow the frontend dev server to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recipes_router.router, tags=["recipes"])
app.include_router(search_router.router, tags=["search"])
app.include_router(trending_router.router, tags=["trending"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "recipe search api"}
