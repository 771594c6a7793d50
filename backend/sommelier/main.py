"""FastAPI application: lifespan, request-id middleware, error handlers, routers.

Every error leaves the API as ErrorResponse JSON. Completion failures never
get this far: the recommendation pipeline degrades instead of raising.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sommelier.api.responses import error_response
from sommelier.api.routes import health, sessions, suggestions, wines
from sommelier.api.services import build_services
from sommelier.config import settings
from sommelier.errors import CatalogError
from sommelier.logging import configure_logging
from sommelier.models.contracts import SUPPORTED_LANGUAGES

configure_logging()

logger = structlog.get_logger()

_background_tasks: set[asyncio.Task] = set()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load every catalog before serving; a broken dataset raises CatalogError here."""
    services = app.state.services
    sizes = services.catalog.load_all()
    logger.info("catalogs_ready", sizes=sizes)
    if settings.warm_cache_on_startup:
        for language in SUPPORTED_LANGUAGES:
            task = asyncio.create_task(suggestions.warm_language(services, language))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)
    yield


app = FastAPI(
    title="Sommelier API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)
app.state.services = build_services()


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Bind a request ID into structlog context vars and echo it as X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _tagged(request: Request, response: JSONResponse) -> JSONResponse:
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Flatten FastAPI's {"detail": [...]} into one ErrorResponse message."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _tagged(request, error_response(422, "validation_error", "; ".join(messages)))


@app.exception_handler(CatalogError)
async def catalog_exception_handler(request: Request, exc: CatalogError) -> JSONResponse:
    logger.error("catalog_unavailable", path=request.url.path, error=str(exc))
    return _tagged(
        request,
        error_response(503, "catalog_unavailable", "Wine catalog is unavailable", retryable=True),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _tagged(
        request,
        error_response(500, "internal_error", "An unexpected error occurred", retryable=True),
    )


app.include_router(health.router)
app.include_router(wines.router, prefix="/api")
app.include_router(sessions.router, prefix="/api")
app.include_router(suggestions.router, prefix="/api")
