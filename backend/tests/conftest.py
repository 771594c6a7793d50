"""Shared fixtures: in-memory services and an ASGI test client."""

import httpx
import pytest

from sommelier.api.routes.sessions import _sessions
from sommelier.api.services import Services
from sommelier.catalog import CatalogStore
from sommelier.config import settings
from sommelier.main import app
from sommelier.pipeline import prompts as _prompts_mod
from sommelier.pipeline.completion import CompletionClient
from sommelier.session.cache import ResponseCache
from sommelier.session.suggestions import SuggestionStore
from sommelier.utils.blob_store import InMemoryBlobStore


@pytest.fixture(autouse=True)
def fresh_services():
    """Fresh in-memory stores and an unconfigured completion client per test.

    With no API key every completion raises ServiceUnavailable, so API
    tests run in degraded mode unless they patch services.completion.
    """
    services = Services(
        catalog=CatalogStore(settings.catalog_dir),
        completion=CompletionClient(api_key=""),
        carts=InMemoryBlobStore(),
        cache=ResponseCache(InMemoryBlobStore()),
        suggestions=SuggestionStore(InMemoryBlobStore()),
    )
    previous = app.state.services
    app.state.services = services
    _sessions.clear()
    yield services
    _sessions.clear()
    _prompts_mod._template_cache.clear()
    app.state.services = previous


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
