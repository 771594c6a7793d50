"""Recommendation turn: pre-filter → prompt → completion → extraction.

recommend() always returns a RecommendationResult. A query that filters the
catalog down to nothing gets a clarifying question; an unavailable completion
service gets the rule-based fallback.
"""

from __future__ import annotations

import random
from collections.abc import Sequence

import structlog

from sommelier.errors import EmptyCandidateSet, ServiceUnavailable
from sommelier.models.contracts import CatalogItem, RecommendationQuery, RecommendationResult
from sommelier.pipeline.completion import CompletionClient
from sommelier.pipeline.extraction import extract
from sommelier.pipeline.fallback import (
    ask_for_preferences_message,
    fallback_message,
    simple_fallback,
)
from sommelier.pipeline.prefilter import filter_candidates
from sommelier.pipeline.prompts import build_prompt
from sommelier.session.cache import ResponseCache, warm_cache
from sommelier.session.suggestions import fallback_suggestions

log = structlog.get_logger("pipeline.recommend")


def _is_cacheable(query: RecommendationQuery) -> bool:
    return not query.history and not query.exclude_ids


def _candidates_for(
    query: RecommendationQuery, catalog: Sequence[CatalogItem]
) -> list[CatalogItem]:
    candidates = filter_candidates(catalog, query.text, query.exclude_ids)
    if not candidates:
        raise EmptyCandidateSet(query.text)
    return candidates


async def recommend(
    query: RecommendationQuery,
    catalog: Sequence[CatalogItem],
    client: CompletionClient,
    *,
    cache: ResponseCache | None = None,
    rng: random.Random | None = None,
) -> RecommendationResult:
    """Run one recommendation turn against the given catalog."""
    log.info(
        "recommend_turn_start",
        language=query.language,
        catalog_size=len(catalog),
        history=len(query.history),
        excluded=len(query.exclude_ids),
    )

    use_cache = cache is not None and _is_cacheable(query)
    if use_cache:
        cached = cache.get(query.language, query.text)
        if cached is not None:
            return cached

    try:
        candidates = _candidates_for(query, catalog)
    except EmptyCandidateSet:
        log.info("recommend_no_candidates", language=query.language)
        return RecommendationResult(
            narrative_text=ask_for_preferences_message(query.language),
            needs_more_info=True,
        )

    prompt = build_prompt(
        query.language,
        candidates,
        query.text,
        query.history,
        query.exclude_ids,
        rng=rng,
    )

    try:
        reply = await client.complete(prompt.system_prompt, prompt.user_prompt)
    except ServiceUnavailable as exc:
        log.warning("completion_unavailable", reason=str(exc))
        return RecommendationResult(
            narrative_text=fallback_message(query.language),
            ordered_items=simple_fallback(query.text, candidates),
            degraded=True,
        )

    items = extract(reply, candidates, prompt.sampled_ids)
    if not items:
        items = simple_fallback(query.text, candidates)

    result = RecommendationResult(narrative_text=reply, ordered_items=items)
    log.info("recommend_turn_complete", language=query.language, items=len(items))
    if use_cache:
        cache.put(query.language, query.text, result)
    return result


async def warm_suggestion_cache(
    language: str,
    catalog: Sequence[CatalogItem],
    client: CompletionClient,
    cache: ResponseCache,
) -> int:
    """Pre-fetch recommendations for the default suggestion chips of a language."""

    async def _fetch(text: str) -> RecommendationResult:
        query = RecommendationQuery(text=text, language=language)
        return await recommend(query, catalog, client, cache=cache)

    return await warm_cache(fallback_suggestions(language), _fetch)
