"""Process-wide service objects, attached to app.state at startup."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from sommelier.catalog import CatalogStore
from sommelier.config import settings
from sommelier.pipeline.completion import CompletionClient
from sommelier.session.cache import ResponseCache
from sommelier.session.suggestions import SuggestionStore
from sommelier.utils.blob_store import BlobStore, make_blob_store


@dataclass
class Services:
    catalog: CatalogStore
    completion: CompletionClient
    carts: BlobStore
    cache: ResponseCache
    suggestions: SuggestionStore


def build_services() -> Services:
    return Services(
        catalog=CatalogStore(settings.catalog_dir),
        completion=CompletionClient(),
        carts=make_blob_store(settings.storage_dir, "carts"),
        cache=ResponseCache(make_blob_store(settings.storage_dir, "responses")),
        suggestions=SuggestionStore(make_blob_store(settings.storage_dir, "suggestions")),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
