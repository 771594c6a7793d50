"""Catalog store: per-language wine datasets loaded from JSON files.

Each language has its own file (data_EN.json, data_FR.json, data_NL.json).
Datasets are read once per process and cached; items are immutable.
Ids must be unique within a language; across languages they need not
refer to the same product.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import structlog
from pydantic import ValidationError

from sommelier.errors import CatalogError
from sommelier.models.contracts import SUPPORTED_LANGUAGES, CatalogItem

log = structlog.get_logger("catalog")

_DATASET_FILES: dict[str, str] = {
    "en": "data_EN.json",
    "fr": "data_FR.json",
    "nl": "data_NL.json",
}

# Dataset color values are localized; map them onto the four canonical colors.
_COLOR_SYNONYMS: dict[str, str] = {
    "red": "red",
    "rouge": "red",
    "rood": "red",
    "rode": "red",
    "white": "white",
    "blanc": "white",
    "wit": "white",
    "witte": "white",
    "rose": "rose",
    "rosé": "rose",
    "sparkling": "sparkling",
    "mousseux": "sparkling",
    "effervescent": "sparkling",
    "mousserend": "sparkling",
    "mousserende": "sparkling",
    "bulles": "sparkling",
}

# Checked in this order; first hit wins
_QUERY_COLOR_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("red", re.compile(r"\b(red|rouge|rood|rode)\b", re.I)),
    ("white", re.compile(r"\b(white|blanc|blanche|wit|witte)\b", re.I)),
    ("rose", re.compile(r"\bros[eé]\b", re.I)),
    (
        "sparkling",
        re.compile(
            r"\b(sparkling|bubbl\w*|champagne|mousseux|effervescent|bulles|mousserende?)\b",
            re.I,
        ),
    ),
)


def normalize_color(value: str) -> str | None:
    """Map a localized dataset color ('Rouge', 'Wit', ...) to red/white/rose/sparkling."""
    return _COLOR_SYNONYMS.get((value or "").strip().lower())


def color_from_query(text: str) -> str | None:
    """Infer the wine color a free-text query asks for, if any."""
    for color, pattern in _QUERY_COLOR_PATTERNS:
        if pattern.search(text or ""):
            return color
    return None


def load_dataset(path: Path) -> tuple[CatalogItem, ...]:
    """Read and validate one dataset file.

    Raises CatalogError if the file is missing, is not a JSON array,
    contains an invalid entry, or repeats an id.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"Cannot read catalog {path.name}: {exc}") from exc

    if not isinstance(raw, list):
        raise CatalogError(f"{path.name} does not contain a JSON array")

    items: list[CatalogItem] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        try:
            item = CatalogItem.model_validate(entry)
        except ValidationError as exc:
            raise CatalogError(f"{path.name}[{index}] is invalid: {exc}") from exc
        if item.id in seen:
            raise CatalogError(f"{path.name} repeats id {item.id!r}")
        seen.add(item.id)
        items.append(item)
    return tuple(items)


class CatalogStore:
    """Read-only access to the per-language catalogs."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self._cache: dict[str, tuple[CatalogItem, ...]] = {}

    def get(self, language: str) -> tuple[CatalogItem, ...]:
        if language not in _DATASET_FILES:
            raise CatalogError(f"Unsupported language: {language!r}")
        cached = self._cache.get(language)
        if cached is not None:
            return cached

        items = load_dataset(self.data_dir / _DATASET_FILES[language])
        self._cache[language] = items
        log.info("catalog_loaded", language=language, items=len(items))
        return items

    def load_all(self) -> dict[str, int]:
        """Load every supported language; returns item counts per language."""
        return {lang: len(self.get(lang)) for lang in SUPPORTED_LANGUAGES}

    def find(self, language: str, item_id: str) -> CatalogItem | None:
        for item in self.get(language):
            if item.id == item_id:
                return item
        return None

    def loaded_sizes(self) -> dict[str, int]:
        return {lang: len(items) for lang, items in self._cache.items()}
