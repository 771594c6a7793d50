"""Chat session and cart endpoints.

Sessions live in process memory and are dropped after
SESSION_IDLE_TTL_SECONDS without a request. Each session owns one Cart for
its lifetime, persisted in the carts blob store under its own key, so carts
survive a restart when STORAGE_DIR is set even though the conversation does not.
"""

import time
import uuid

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import Response

from sommelier.api.responses import error_response
from sommelier.api.services import Services, get_services
from sommelier.config import settings
from sommelier.errors import CartFull
from sommelier.models.contracts import (
    ActionResponse,
    AddToCartRequest,
    CartResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    ErrorResponse,
    RecommendationBatch,
    SessionMessageRequest,
    UpdateCartRequest,
)
from sommelier.pipeline.recommend import recommend
from sommelier.session.cart import CART_STORAGE_KEY, Cart
from sommelier.session.pagination import ChatSession

logger = structlog.get_logger()

router = APIRouter(tags=["sessions"])

_sessions: dict[str, ChatSession] = {}

_NOT_FOUND = ("session_not_found", "Session not found")
_ERRORS = {404: {"model": ErrorResponse}}


def _prune_idle() -> None:
    """Drop sessions idle past the TTL; their persisted carts stay."""
    now = time.monotonic()
    expired = [
        session_id
        for session_id, session in _sessions.items()
        if now - session.last_active > settings.session_idle_ttl_seconds
    ]
    for session_id in expired:
        _sessions.pop(session_id).detach_cart()
    if expired:
        logger.info("sessions_expired", count=len(expired), remaining=len(_sessions))


def _open_session(session_id: str) -> ChatSession | None:
    _prune_idle()
    session = _sessions.get(session_id)
    if session is not None:
        session.touch()
    return session


def _cart_of(session: ChatSession, services: Services) -> Cart:
    cart = session.cart
    if cart is None:
        cart = Cart(services.carts, key=f"{CART_STORAGE_KEY}:{session.session_id}")
        session.attach_cart(cart)
    return cart


def _cart_response(cart: Cart) -> CartResponse:
    return CartResponse(
        entries=cart.entries(),
        item_count=cart.item_count(),
        total_price=cart.total_price(),
        checkout_url=cart.checkout_url(),
    )


# --- Session lifecycle ---


@router.post("/sessions", status_code=201, response_model=CreateSessionResponse)
async def create_session(body: CreateSessionRequest, request: Request) -> CreateSessionResponse:
    _prune_idle()
    session_id = str(uuid.uuid4())
    session = ChatSession(session_id, body.language)
    _cart_of(session, get_services(request))
    _sessions[session_id] = session
    logger.info("session_created", session_id=session_id, language=body.language)
    return CreateSessionResponse(session_id=session_id, language=body.language)


@router.delete("/sessions/{session_id}", status_code=204, responses=_ERRORS)
async def delete_session(session_id: str, request: Request):
    session = _sessions.pop(session_id, None)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    _cart_of(session, get_services(request)).clear()
    session.detach_cart()
    logger.info("session_deleted", session_id=session_id)


# --- Conversation ---


@router.post(
    "/sessions/{session_id}/messages",
    response_model=RecommendationBatch,
    responses={**_ERRORS, 409: {"model": ErrorResponse}},
)
async def send_message(session_id: str, body: SessionMessageRequest, request: Request):
    """Run one recommendation turn and return its first batch.

    If another message for the same session arrives while this one is
    waiting on the completion, this one answers 409 query_superseded.
    """
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)

    services = get_services(request)
    catalog = services.catalog.get(session.language)
    token = session.begin_query(body.message)
    result = await recommend(
        session.pending_query, catalog, services.completion, cache=services.cache
    )

    batch = session.complete(token, result, catalog)
    if batch is None:
        return error_response(
            409, "query_superseded", "A newer message replaced this one", retryable=False
        )
    services.suggestions.add_query(body.message, session.language)
    return batch


@router.post(
    "/sessions/{session_id}/more",
    response_model=RecommendationBatch,
    responses=_ERRORS,
)
async def show_more(session_id: str):
    """Next batch of the current recommendations. No completion call."""
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    return session.show_more()


# --- Cart ---


@router.get("/sessions/{session_id}/cart", response_model=CartResponse, responses=_ERRORS)
async def get_cart(session_id: str, request: Request):
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    return _cart_response(_cart_of(session, get_services(request)))


@router.post(
    "/sessions/{session_id}/cart",
    status_code=201,
    response_model=CartResponse,
    responses={**_ERRORS, 409: {"model": ErrorResponse}},
)
async def add_to_cart(session_id: str, body: AddToCartRequest, request: Request):
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)

    services = get_services(request)
    item = services.catalog.find(session.language, body.item_id)
    if item is None:
        return error_response(404, "item_not_found", f"Wine {body.item_id} not found")

    cart = _cart_of(session, services)
    try:
        cart.add(item, body.quantity)
    except CartFull as exc:
        return error_response(409, "cart_full", str(exc))
    return _cart_response(cart)


@router.get("/sessions/{session_id}/cart/export", responses=_ERRORS)
async def export_cart(session_id: str, request: Request):
    """The cart entries as a JSON document accepted by the import endpoint."""
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    cart = _cart_of(session, get_services(request))
    return Response(content=cart.export_json(), media_type="application/json")


@router.post(
    "/sessions/{session_id}/cart/import",
    response_model=CartResponse,
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
async def import_cart(session_id: str, request: Request):
    """Replace the cart with a previously exported document.

    A document that does not validate, repeats an item or holds more than
    the cart limit is rejected with 422 and the cart is left as it was.
    """
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    cart = _cart_of(session, get_services(request))
    data = (await request.body()).decode("utf-8", errors="replace")
    if not cart.import_json(data):
        return error_response(422, "invalid_cart", "Cart document was rejected")
    return _cart_response(cart)


@router.patch(
    "/sessions/{session_id}/cart/{item_id}",
    response_model=CartResponse,
    responses=_ERRORS,
)
async def update_cart_item(
    session_id: str, item_id: str, body: UpdateCartRequest, request: Request
):
    """Set an entry's quantity. Quantity 0 removes the entry."""
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    cart = _cart_of(session, get_services(request))
    if not cart.update_quantity(item_id, body.quantity):
        return error_response(404, "cart_item_not_found", f"Wine {item_id} is not in the cart")
    return _cart_response(cart)


@router.delete(
    "/sessions/{session_id}/cart/{item_id}",
    response_model=CartResponse,
    responses=_ERRORS,
)
async def remove_cart_item(session_id: str, item_id: str, request: Request):
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    cart = _cart_of(session, get_services(request))
    if not cart.remove(item_id):
        return error_response(404, "cart_item_not_found", f"Wine {item_id} is not in the cart")
    return _cart_response(cart)


@router.delete("/sessions/{session_id}/cart", response_model=ActionResponse, responses=_ERRORS)
async def clear_cart(session_id: str, request: Request):
    session = _open_session(session_id)
    if session is None:
        return error_response(404, *_NOT_FOUND)
    _cart_of(session, get_services(request)).clear()
    return ActionResponse()
