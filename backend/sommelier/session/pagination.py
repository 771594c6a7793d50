"""Chat session: conversation history and "show more" pagination.

State machine:

    IDLE ──begin_query──▶ AWAITING_COMPLETION ──complete──▶ RENDERED
                               ▲                               │
                               └──────────begin_query──────────┤
                                                      show_more│ (nothing left)
                                                               ▼
                                                           EXHAUSTED

Each begin_query returns a turn token. complete() drops results whose token
is not the latest one, so when queries overlap the last one wins.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Sequence
from enum import Enum

import structlog

from sommelier.catalog import color_from_query, normalize_color
from sommelier.models.contracts import (
    CartEntry,
    CatalogItem,
    ChatMessage,
    RecommendationBatch,
    RecommendationQuery,
    RecommendationResult,
)
from sommelier.session.cart import Cart

logger = structlog.get_logger()

PADDED_TARGET = 16
BATCH_SIZE = 4
MAX_FOOD_PAIRINGS = 4

_MARKER_LINE_RE = re.compile(r"\s*RECOMMENDED_IDS:?\s*\[[^\]]*\]\s*", re.I)
_URL_RE = re.compile(r"https?://\S+")
_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    RENDERED = "rendered"
    EXHAUSTED = "exhausted"


def clean_narrative(text: str) -> str:
    """Strip the marker line, URLs and bold markup from a model reply."""
    text = _MARKER_LINE_RE.sub("\n", text)
    text = _URL_RE.sub("", text)
    text = _BOLD_RE.sub(r"\1", text)
    return text.strip()


def food_pairings(items: Sequence[CatalogItem], limit: int = MAX_FOOD_PAIRINGS) -> list[str]:
    """First `limit` distinct food pairings across the items, in order."""
    pairings: list[str] = []
    for item in items:
        for pairing in item.food_pairing:
            if pairing not in pairings:
                pairings.append(pairing)
                if len(pairings) == limit:
                    return pairings
    return pairings


class ChatSession:
    """Per-conversation state. Not thread-safe; one event loop owns it."""

    def __init__(self, session_id: str, language: str = "fr") -> None:
        self.session_id = session_id
        self.language = language
        self.state = SessionState.IDLE
        self.history: list[ChatMessage] = []
        self.padded: list[CatalogItem] = []
        self.shown_ids: list[str] = []
        self._previous_ids: set[str] = set()
        self._turn = 0
        self._query_text = ""
        self.pending_query: RecommendationQuery | None = None
        self.cart: Cart | None = None
        # kept current by a cart listener, echoed in every batch
        self.cart_item_count = 0
        self.last_active = time.monotonic()
        self._unsubscribe_cart: Callable[[], None] | None = None

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def attach_cart(self, cart: Cart) -> None:
        """Own this cart; every change to it updates cart_item_count."""
        self.detach_cart()
        self.cart = cart
        self.cart_item_count = cart.item_count()
        self._unsubscribe_cart = cart.subscribe(self._on_cart_change)

    def detach_cart(self) -> None:
        if self._unsubscribe_cart is not None:
            self._unsubscribe_cart()
            self._unsubscribe_cart = None
        self.cart = None

    def _on_cart_change(self, entries: list[CartEntry]) -> None:
        self.cart_item_count = sum(entry.quantity for entry in entries)
        logger.info(
            "session_cart_changed",
            session_id=self.session_id,
            entries=len(entries),
            item_count=self.cart_item_count,
        )

    @property
    def exclude_ids(self) -> set[str]:
        """Ids shown since the current query began; sent as exclusions with the next one."""
        return set(self.shown_ids)

    @property
    def has_more(self) -> bool:
        return len(self.shown_ids) < len(self.padded)

    def begin_query(self, text: str) -> int:
        """Start a new turn and return its token.

        The query to run is available as pending_query until the turn completes.
        """
        # a superseded turn showed nothing; keep the exclusions it was sent
        if self.state != SessionState.AWAITING_COMPLETION:
            self._previous_ids = self.exclude_ids
        self.pending_query = RecommendationQuery(
            text=text,
            language=self.language,
            exclude_ids=set(self._previous_ids),
            history=list(self.history),
        )
        self._turn += 1
        self._query_text = text
        self.state = SessionState.AWAITING_COMPLETION
        self.shown_ids = []
        self.padded = []
        logger.info("session_query_started", session_id=self.session_id, turn=self._turn)
        return self._turn

    def is_current(self, token: int) -> bool:
        return token == self._turn and self.state == SessionState.AWAITING_COMPLETION

    def complete(
        self,
        token: int,
        result: RecommendationResult,
        catalog: Sequence[CatalogItem],
    ) -> RecommendationBatch | None:
        """Render the first batch of a turn, or return None if the turn is stale."""
        if not self.is_current(token):
            logger.info(
                "session_result_discarded",
                session_id=self.session_id,
                token=token,
                current=self._turn,
            )
            return None

        narrative = clean_narrative(result.narrative_text)
        self.history.append(ChatMessage(role="user", content=self._query_text))
        self.history.append(ChatMessage(role="assistant", content=narrative))
        self.pending_query = None
        self.padded = self._pad(result.ordered_items, catalog)

        batch = self._next_batch(narrative)
        batch.food_pairings = food_pairings(result.ordered_items)
        batch.degraded = result.degraded
        batch.needs_more_info = result.needs_more_info
        return batch

    def show_more(self) -> RecommendationBatch:
        """Next slice of the padded list. No new completion is requested."""
        if self.state != SessionState.RENDERED:
            return RecommendationBatch(
                message="",
                items=[],
                start_index=len(self.shown_ids),
                has_more=False,
                state=self.state.value,
                cart_item_count=self.cart_item_count,
            )
        return self._next_batch("")

    def _pad(
        self, items: Sequence[CatalogItem], catalog: Sequence[CatalogItem]
    ) -> list[CatalogItem]:
        padded = list(items)[:PADDED_TARGET]
        if not padded:
            return padded

        color = color_from_query(self._query_text)
        used = {item.id for item in padded} | self._previous_ids
        for item in catalog:
            if len(padded) >= PADDED_TARGET:
                break
            if item.id in used:
                continue
            if color is not None and normalize_color(item.color) != color:
                continue
            used.add(item.id)
            padded.append(item)
        return padded

    def _next_batch(self, message: str) -> RecommendationBatch:
        start = len(self.shown_ids)
        items = self.padded[start : start + BATCH_SIZE]
        self.shown_ids.extend(item.id for item in items)

        self.state = SessionState.RENDERED if self.has_more else SessionState.EXHAUSTED
        logger.info(
            "session_batch_rendered",
            session_id=self.session_id,
            start_index=start,
            count=len(items),
            state=self.state.value,
        )
        return RecommendationBatch(
            message=message,
            items=items,
            start_index=start,
            has_more=self.has_more,
            state=self.state.value,
            cart_item_count=self.cart_item_count,
        )
