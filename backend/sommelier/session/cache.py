"""Response cache for first-turn recommendations, plus background warm-up.

Only turns without history or exclusions are cacheable: their answer
depends on the query text and language alone. Entries are stored in a
BlobStore under sommelier_cache_<lang>_<query>. A corrupt entry is dropped
and treated as a miss.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable

import structlog
from pydantic import ValidationError

from sommelier.errors import StorageCorrupt
from sommelier.models.contracts import RecommendationResult
from sommelier.utils.blob_store import BlobStore

logger = structlog.get_logger()

CACHE_KEY_PREFIX = "sommelier_cache_"


def cache_key(language: str, text: str) -> str:
    return f"{CACHE_KEY_PREFIX}{language}_{text.strip().lower()}"


class ResponseCache:
    def __init__(self, store: BlobStore) -> None:
        self._store = store

    def _load(self, key: str) -> RecommendationResult | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return RecommendationResult.model_validate_json(raw)
        except ValidationError as exc:
            raise StorageCorrupt(key, str(exc)) from exc

    def get(self, language: str, text: str) -> RecommendationResult | None:
        key = cache_key(language, text)
        try:
            result = self._load(key)
        except StorageCorrupt as exc:
            logger.warning("response_cache_corrupt", key=exc.key)
            self._store.delete(key)
            return None
        if result is not None:
            logger.info("response_cache_hit", language=language)
        return result

    def put(self, language: str, text: str, result: RecommendationResult) -> None:
        self._store.put(cache_key(language, text), result.model_dump_json())
        logger.info("response_cache_saved", language=language)


async def warm_cache(
    queries: Iterable[str],
    fetch: Callable[[str], Awaitable[RecommendationResult]],
) -> int:
    """Run fetch for every query concurrently; return how many succeeded.

    fetch is expected to write through the cache itself. Failures are
    logged per query and never raised.
    """
    queries = list(queries)
    results = await asyncio.gather(*(fetch(q) for q in queries), return_exceptions=True)
    warmed = 0
    for query, result in zip(queries, results):
        if isinstance(result, BaseException):
            logger.warning("cache_warm_failed", query=query, error=str(result))
        else:
            warmed += 1
    logger.info("cache_warm_complete", requested=len(queries), warmed=warmed)
    return warmed
