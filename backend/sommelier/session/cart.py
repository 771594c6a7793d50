"""Shopping cart persisted through a BlobStore.

One entry per catalog id, at most MAX_CART_ENTRIES entries, quantities
clamped to 1..10. Every mutation is a read-modify-write of the whole entry
list followed by a notification to subscribed listeners.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from pydantic import TypeAdapter, ValidationError

from sommelier.errors import CartFull, StorageCorrupt
from sommelier.models.contracts import (
    MAX_CART_QUANTITY,
    MIN_CART_QUANTITY,
    CartEntry,
    CatalogItem,
)
from sommelier.utils.blob_store import BlobStore

logger = structlog.get_logger()

CART_STORAGE_KEY = "delhaize-cart-items"
MAX_CART_ENTRIES = 20
CHECKOUT_BASE_URL = "https://www.delhaize.be/fr/shop"

_entries_adapter = TypeAdapter(list[CartEntry])

CartListener = Callable[[list[CartEntry]], None]


def _clamp(quantity: int) -> int:
    return max(MIN_CART_QUANTITY, min(MAX_CART_QUANTITY, quantity))


def _now() -> datetime:
    return datetime.now(UTC)


class Cart:
    def __init__(self, store: BlobStore, key: str = CART_STORAGE_KEY) -> None:
        self._store = store
        self._key = key
        self._listeners: list[CartListener] = []

    # --- persistence ---

    def _decode(self, raw: str) -> list[CartEntry]:
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError as exc:
            raise StorageCorrupt(self._key, str(exc)) from exc

    def _read(self) -> list[CartEntry]:
        raw = self._store.get(self._key)
        if raw is None:
            return []
        try:
            return self._decode(raw)
        except StorageCorrupt as exc:
            logger.warning("cart_storage_corrupt", key=exc.key, error=str(exc))
            self._store.delete(self._key)
            return []

    def _write(self, entries: list[CartEntry]) -> None:
        payload = _entries_adapter.dump_json(entries, by_alias=True).decode()
        self._store.put(self._key, payload)
        for listener in list(self._listeners):
            listener(list(entries))

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # --- queries ---

    def entries(self) -> list[CartEntry]:
        return self._read()

    def item_count(self) -> int:
        return sum(entry.quantity for entry in self._read())

    def total_price(self) -> float:
        total = sum(entry.item.price * entry.quantity for entry in self._read())
        return round(total, 2)

    def checkout_url(self) -> str:
        """Retailer URL carrying the cart as a base64 JSON payload."""
        entries = self._read()
        if not entries:
            return CHECKOUT_BASE_URL
        cart_data = [
            {
                "id": entry.item_id,
                "name": entry.item.display_name,
                "price": entry.item.price,
                "quantity": entry.quantity,
                "url": entry.item.url,
            }
            for entry in entries
        ]
        encoded = base64.b64encode(json.dumps(cart_data, separators=(",", ":")).encode()).decode()
        return f"{CHECKOUT_BASE_URL}?sommelier_cart={encoded}"

    # --- mutations ---

    def add(self, item: CatalogItem, quantity: int = 1) -> CartEntry:
        """Add an item or merge into its existing entry.

        Raises CartFull when a new entry would exceed MAX_CART_ENTRIES.
        """
        entries = self._read()
        for index, entry in enumerate(entries):
            if entry.item_id == item.id:
                merged = entry.model_copy(
                    update={"quantity": _clamp(entry.quantity + quantity), "added_at": _now()}
                )
                entries[index] = merged
                self._write(entries)
                logger.info("cart_item_merged", item_id=item.id, quantity=merged.quantity)
                return merged

        if len(entries) >= MAX_CART_ENTRIES:
            logger.info("cart_full", item_id=item.id, entries=len(entries))
            raise CartFull(f"Cart already holds {MAX_CART_ENTRIES} items")

        entry = CartEntry(item=item, quantity=_clamp(quantity), added_at=_now())
        entries.append(entry)
        self._write(entries)
        logger.info("cart_item_added", item_id=item.id, quantity=entry.quantity)
        return entry

    def remove(self, item_id: str) -> bool:
        entries = self._read()
        kept = [entry for entry in entries if entry.item_id != item_id]
        if len(kept) == len(entries):
            return False
        self._write(kept)
        logger.info("cart_item_removed", item_id=item_id)
        return True

    def update_quantity(self, item_id: str, quantity: int) -> bool:
        """Set an entry's quantity; zero or less removes it. False if absent."""
        if quantity <= 0:
            return self.remove(item_id)
        entries = self._read()
        for index, entry in enumerate(entries):
            if entry.item_id == item_id:
                entries[index] = entry.model_copy(update={"quantity": _clamp(quantity)})
                self._write(entries)
                return True
        return False

    def clear(self) -> None:
        self._write([])
        logger.info("cart_cleared")

    def export_json(self) -> str:
        return _entries_adapter.dump_json(self._read(), by_alias=True, indent=2).decode()

    def import_json(self, data: str) -> bool:
        """Replace the cart with exported data. False (cart untouched) if invalid."""
        try:
            entries = self._decode(data)
        except StorageCorrupt as exc:
            logger.warning("cart_import_rejected", error=str(exc))
            return False
        if len(entries) > MAX_CART_ENTRIES or len({e.item_id for e in entries}) != len(entries):
            logger.warning("cart_import_rejected", entries=len(entries))
            return False
        self._write(entries)
        return True
