"""Catalog and one-shot recommendation endpoints.

/api/wine-advice is stateless: the caller sends history and exclusions with
each request. Completion failures degrade to the rule-based fallback and
never surface as 5xx.
"""

import structlog
from fastapi import APIRouter, Request

from sommelier.api.services import get_services
from sommelier.config import settings
from sommelier.models.contracts import (
    SUPPORTED_LANGUAGES,
    CatalogItem,
    RecommendationQuery,
    WineAdviceRequest,
    WineAdviceResponse,
)
from sommelier.pipeline.recommend import recommend

logger = structlog.get_logger()

router = APIRouter(tags=["wines"])


def resolve_language(lang: str | None) -> str:
    """Unknown or missing language codes fall back to the default language."""
    code = (lang or "").strip().lower()
    return code if code in SUPPORTED_LANGUAGES else settings.default_language


@router.get("/wines", response_model=list[CatalogItem])
async def list_wines(request: Request, lang: str | None = None) -> list[CatalogItem]:
    """Full catalog for one language. Static, no pagination."""
    language = resolve_language(lang)
    return list(get_services(request).catalog.get(language))


@router.post("/wine-advice", response_model=WineAdviceResponse)
async def wine_advice(body: WineAdviceRequest, request: Request) -> WineAdviceResponse:
    """Recommend wines for one message against the given or server catalog."""
    services = get_services(request)
    client_catalog = body.wines is not None
    catalog = body.wines if client_catalog else services.catalog.get(body.language)

    query = RecommendationQuery(
        text=body.message,
        language=body.language,
        exclude_ids=set(body.exclude_ids),
        history=body.history,
    )
    # Answers over client-supplied catalogs are never cached
    result = await recommend(
        query,
        catalog,
        services.completion,
        cache=None if client_catalog else services.cache,
    )
    services.suggestions.add_query(body.message, body.language)

    logger.info(
        "wine_advice_served",
        language=body.language,
        client_catalog=client_catalog,
        recommendations=len(result.ordered_items),
        degraded=result.degraded,
    )
    return WineAdviceResponse(message=result.narrative_text, recommendations=result.ordered_items)
