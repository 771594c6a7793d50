"""Sommelier contract models shared by the pipeline, the session layer and the API.

Catalog items keep the retailer dataset's JSON keys as aliases so catalog
files and API payloads round-trip unchanged; Python code uses the snake_case
field names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sommelier.utils.pricing import parse_price, parse_volume

Language = Literal["en", "fr", "nl"]
SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "fr", "nl")

WineColor = Literal["red", "white", "rose", "sparkling"]

# === Catalog ===

_TEXT_FIELDS = (
    "price_text",
    "price_per_liter",
    "varieties",
    "vegetarian",
    "vegan",
    "image_url",
    "url",
    "country_origin",
    "description",
    "promotion",
    "alcohol_percentage",
    "volume",
    "cap_type",
    "wine_type",
    "color",
    "box_type",
)


class CatalogItem(BaseModel):
    """One purchasable wine. Immutable for the life of the process."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    display_name: str = Field(alias="Product_name")
    price_text: str = Field(default="", alias="Price")
    price_per_liter: str = Field(default="", alias="Price_per_liter")
    varieties: str = Field(default="", alias="Wine_Varieties")
    vegetarian: str = ""
    vegan: str = ""
    food_pairing: tuple[str, ...] = ()
    image_url: str = Field(default="", alias="image_URL")
    url: str = Field(default="", alias="URL")
    country_origin: str = ""
    description: str = Field(default="", alias="Wine_Description")
    promotion: str = ""
    alcohol_percentage: str = Field(default="", alias="Alcohol_percentage")
    volume: str = Field(default="", alias="Volume")
    cap_type: str = Field(default="", alias="Type_of_Cap")
    wine_type: str = Field(default="", alias="Type_of_wine")
    color: str = Field(default="", alias="Color")
    box_type: str = Field(default="", alias="Type_of_Box")
    vintage: str | None = Field(default=None, alias="Vintage")

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("vintage", mode="before")
    @classmethod
    def _coerce_vintage(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(value)
        return value or None

    @field_validator("food_pairing", mode="before")
    @classmethod
    def _coerce_pairings(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(p.strip() for p in value.split(",") if p.strip())
        return value

    @property
    def price(self) -> float:
        """Numeric price, derived from price_text on every access."""
        return parse_price(self.price_text)

    @property
    def normalized_volume(self) -> str:
        return parse_volume(self.volume)


# === Chat ===


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class RecommendationQuery(BaseModel):
    text: str
    language: Language = "fr"
    exclude_ids: set[str] = set()
    history: list[ChatMessage] = []


class RecommendationResult(BaseModel):
    narrative_text: str
    ordered_items: list[CatalogItem] = []
    degraded: bool = False  # produced by the rule-based fallback
    needs_more_info: bool = False  # clarifying question, no items


class PromptPair(BaseModel):
    system_prompt: str
    user_prompt: str
    sampled_ids: list[str] = []


# === Cart ===

MIN_CART_QUANTITY = 1
MAX_CART_QUANTITY = 10


class CartEntry(BaseModel):
    item: CatalogItem
    quantity: int = Field(ge=MIN_CART_QUANTITY, le=MAX_CART_QUANTITY)
    added_at: datetime

    @property
    def item_id(self) -> str:
        return self.item.id


# === Suggestions ===


class SuggestionEntry(BaseModel):
    id: str
    query: str
    language: Language
    count: int = Field(ge=1, default=1)
    last_used: datetime
    relevance_score: float = Field(ge=0, le=1)


# === API Request/Response Models ===


class WineAdviceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    language: Language = "fr"
    wines: list[CatalogItem] | None = None
    history: list[ChatMessage] = []
    exclude_ids: list[str] = Field(default=[], alias="excludeIds")


class WineAdviceResponse(BaseModel):
    message: str
    recommendations: list[CatalogItem]


class CreateSessionRequest(BaseModel):
    language: Language = "fr"


class CreateSessionResponse(BaseModel):
    session_id: str
    language: Language


class SessionMessageRequest(BaseModel):
    message: str = Field(min_length=1)


class RecommendationBatch(BaseModel):
    message: str
    items: list[CatalogItem]
    start_index: int = Field(ge=0)
    has_more: bool
    state: str
    food_pairings: list[str] = []
    degraded: bool = False
    needs_more_info: bool = False
    cart_item_count: int = 0


class AddToCartRequest(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=MIN_CART_QUANTITY, le=MAX_CART_QUANTITY)


class UpdateCartRequest(BaseModel):
    quantity: int = Field(ge=0, le=MAX_CART_QUANTITY)  # 0 removes the entry


class CartResponse(BaseModel):
    entries: list[CartEntry]
    item_count: int
    total_price: float
    checkout_url: str


class SuggestionsResponse(BaseModel):
    language: Language
    suggestions: list[str]


class ActionResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
