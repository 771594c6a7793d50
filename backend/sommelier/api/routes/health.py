"""Health check endpoint.

Always returns 200 so load balancers keep routing; a missing completion key
only means recommendations run in degraded mode.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from sommelier.api.services import get_services
from sommelier.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Report process liveness, completion credential state and loaded catalogs."""
    services = get_services(request)
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "completion": "configured" if services.completion.configured else "missing",
        "catalogs": services.catalog.loaded_sizes(),
    }
