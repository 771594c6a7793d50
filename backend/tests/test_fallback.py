"""Tests for the degraded-mode recommender and canned messages."""

import pytest

from sommelier.models.contracts import CatalogItem
from sommelier.pipeline.fallback import (
    FALLBACK_COUNT,
    ask_for_preferences_message,
    fallback_message,
    simple_fallback,
)


def _wine(item_id: str, color: str) -> CatalogItem:
    return CatalogItem.model_validate(
        {"id": item_id, "Product_name": f"Wine {item_id}", "Price": "10 €", "Color": color}
    )


CANDIDATES = [
    _wine("w1", "Blanc"),
    _wine("r1", "Rouge"),
    _wine("s1", "Mousseux"),
    _wine("r2", "Rouge"),
    _wine("r3", "Rood"),
    _wine("r4", "Red"),
]


class TestSimpleFallback:
    def test_color_matches_in_catalog_order(self):
        result = simple_fallback("un vin rouge pour ce soir", CANDIDATES)
        assert [w.id for w in result] == ["r1", "r2", "r3"]

    def test_capped(self):
        assert len(simple_fallback("red", CANDIDATES)) == FALLBACK_COUNT

    def test_no_color_takes_first(self):
        result = simple_fallback("something nice", CANDIDATES)
        assert [w.id for w in result] == ["w1", "r1", "s1"]

    def test_color_without_matches_takes_first(self):
        result = simple_fallback("a rosé please", CANDIDATES)
        assert [w.id for w in result] == ["w1", "r1", "s1"]

    def test_sparkling_synonyms(self):
        assert [w.id for w in simple_fallback("champagne!", CANDIDATES)] == ["s1"]

    def test_empty_candidates(self):
        assert simple_fallback("red", []) == []


class TestMessages:
    @pytest.mark.parametrize(
        ("language", "fragment"),
        [("en", "excellent wine options"), ("fr", "excellentes options"), ("nl", "wijnopties")],
    )
    def test_fallback_message_per_language(self, language, fragment):
        assert fragment in fallback_message(language)

    def test_unknown_language_uses_english(self):
        assert fallback_message("de") == fallback_message("en")
        assert ask_for_preferences_message("de") == ask_for_preferences_message("en")

    def test_ask_for_preferences_mentions_budget(self):
        assert "budget" in ask_for_preferences_message("en")
        assert "budget" in ask_for_preferences_message("fr")
