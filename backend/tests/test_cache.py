"""Tests for the first-turn response cache and background warm-up."""

import pytest

from sommelier.models.contracts import CatalogItem, RecommendationResult
from sommelier.session.cache import CACHE_KEY_PREFIX, ResponseCache, cache_key, warm_cache
from sommelier.utils.blob_store import InMemoryBlobStore


def _result(text: str = "Try this") -> RecommendationResult:
    item = CatalogItem.model_validate(
        {"id": "a", "Product_name": "Wine A", "Price": "9,99 €", "food_pairing": ["Fish"]}
    )
    return RecommendationResult(narrative_text=text, ordered_items=[item])


class TestCacheKey:
    def test_normalized(self):
        assert cache_key("fr", "  Vin ROUGE ") == f"{CACHE_KEY_PREFIX}fr_vin rouge"

    def test_language_is_part_of_key(self):
        assert cache_key("fr", "wine") != cache_key("en", "wine")


class TestResponseCache:
    def test_miss(self):
        assert ResponseCache(InMemoryBlobStore()).get("en", "red") is None

    def test_round_trip(self):
        cache = ResponseCache(InMemoryBlobStore())
        cache.put("en", "Red wine", _result())

        hit = cache.get("en", "red wine ")

        assert hit is not None
        assert hit.narrative_text == "Try this"
        assert hit.ordered_items[0].id == "a"
        assert hit.ordered_items[0].price == pytest.approx(9.99)
        assert hit.ordered_items[0].food_pairing == ("Fish",)

    def test_language_isolated(self):
        cache = ResponseCache(InMemoryBlobStore())
        cache.put("en", "red", _result())
        assert cache.get("nl", "red") is None

    def test_corrupt_entry_is_dropped(self):
        blobs = InMemoryBlobStore()
        blobs.put(cache_key("en", "red"), '{"narrative_text": 12')
        cache = ResponseCache(blobs)

        assert cache.get("en", "red") is None
        assert blobs.get(cache_key("en", "red")) is None


class TestWarmCache:
    @pytest.mark.asyncio
    async def test_counts_successes(self):
        fetched = []

        async def fetch(query: str) -> RecommendationResult:
            fetched.append(query)
            return _result(query)

        assert await warm_cache(["a", "b", "c"], fetch) == 3
        assert sorted(fetched) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failures_do_not_raise(self):
        async def fetch(query: str) -> RecommendationResult:
            if query == "bad":
                raise RuntimeError("upstream down")
            return _result(query)

        assert await warm_cache(["good", "bad", "fine"], fetch) == 2

    @pytest.mark.asyncio
    async def test_empty(self):
        async def fetch(query: str) -> RecommendationResult:
            raise AssertionError("not called")

        assert await warm_cache([], fetch) == 0
