"""Suggestion chips and response-cache warm-up."""

import structlog
from fastapi import APIRouter, BackgroundTasks, Request

from sommelier.api.routes.wines import resolve_language
from sommelier.api.services import Services, get_services
from sommelier.models.contracts import ActionResponse, SuggestionsResponse
from sommelier.pipeline.recommend import warm_suggestion_cache

logger = structlog.get_logger()

router = APIRouter(tags=["suggestions"])


@router.get("/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(request: Request, lang: str | None = None) -> SuggestionsResponse:
    """Six chips: most relevant past queries first, then defaults."""
    language = resolve_language(lang)
    chips = get_services(request).suggestions.chips(language)
    return SuggestionsResponse(language=language, suggestions=chips)


async def warm_language(services: Services, language: str) -> int:
    catalog = services.catalog.get(language)
    return await warm_suggestion_cache(language, catalog, services.completion, services.cache)


@router.post("/suggestions/warm", status_code=202, response_model=ActionResponse)
async def warm_suggestions(
    request: Request, background_tasks: BackgroundTasks, lang: str | None = None
) -> ActionResponse:
    """Pre-fetch answers for the default chips after the response is sent."""
    language = resolve_language(lang)
    background_tasks.add_task(warm_language, get_services(request), language)
    logger.info("cache_warm_scheduled", language=language)
    return ActionResponse()
