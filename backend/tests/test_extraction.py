"""Tests for the layered recommendation extractor."""

import pytest

from sommelier.errors import MalformedUpstreamReply
from sommelier.models.contracts import CatalogItem
from sommelier.pipeline.extraction import (
    MAX_EXTRACTED,
    STRATEGIES,
    by_category,
    by_name_substring,
    by_numbered_titles,
    by_structured_ids,
    extract,
    first_success,
    normalize_title,
    parse_marker_ids,
)


def _wine(item_id: str, name: str) -> CatalogItem:
    return CatalogItem.model_validate({"id": item_id, "Product_name": name, "Price": "10 €"})


CANDIDATES = [
    _wine("r1", "Château Margaux Rouge"),
    _wine("w1", "Sancerre Blanc"),
    _wine("s1", "Moët Brut Champagne"),
    _wine("p1", "Whispering Angel Rosé"),
    _wine("r2", "Merlot Reserve"),
    _wine("x1", "Mystery Blend"),
]


def _ids(items: list[CatalogItem]) -> list[str]:
    return [item.id for item in items]


class TestMarkerIds:
    def test_model_order_and_unknown_ids_dropped(self):
        reply = 'Great picks!\nRECOMMENDED_IDS: ["w1", "nope", "r1"]'
        assert _ids(by_structured_ids(reply, CANDIDATES)) == ["w1", "r1"]

    def test_marker_variants(self):
        assert parse_marker_ids("recommended_ids [a, 'b' c]") == ["a", "b", "c"]
        assert parse_marker_ids('RECOMMENDED_IDS:["x","y"]') == ["x", "y"]

    def test_missing_marker_raises(self):
        with pytest.raises(MalformedUpstreamReply):
            parse_marker_ids("no ids here")

    def test_empty_marker_raises(self):
        with pytest.raises(MalformedUpstreamReply):
            parse_marker_ids('RECOMMENDED_IDS: [ "" ]')

    def test_missing_marker_is_empty_result(self):
        assert by_structured_ids("no ids here", CANDIDATES) == []

    def test_duplicates_dropped(self):
        reply = 'RECOMMENDED_IDS: ["r1", "r1", "w1"]'
        assert _ids(by_structured_ids(reply, CANDIDATES)) == ["r1", "w1"]

    def test_capped(self):
        many = [_wine(f"id{n}", f"Wine {n}") for n in range(12)]
        reply = "RECOMMENDED_IDS: [" + ", ".join(f'"id{n}"' for n in range(12)) + "]"
        assert len(by_structured_ids(reply, many)) == MAX_EXTRACTED


class TestNumberedTitles:
    def test_normalize_title(self):
        assert normalize_title("  Moët  Brut, Champagne! ") == "moet brut champagne"
        assert normalize_title("Château") == "chateau"

    def test_matches_in_line_order(self):
        reply = "Here you go:\n1. Sancerre Blanc\n2. Chateau Margaux Rouge\nEnjoy"
        assert _ids(by_numbered_titles(reply, CANDIDATES)) == ["w1", "r1"]

    def test_prefix_match(self):
        """A title that is the start of a catalog name matches."""
        reply = "1. Moet Brut"
        assert _ids(by_numbered_titles(reply, CANDIDATES)) == ["s1"]

    def test_title_with_trailing_text_does_not_match(self):
        reply = "1. Sancerre Blanc - crisp and mineral"
        assert by_numbered_titles(reply, CANDIDATES) == []

    def test_duplicate_lines_dropped(self):
        reply = "1. Merlot Reserve\n2. Merlot Reserve"
        assert _ids(by_numbered_titles(reply, CANDIDATES)) == ["r2"]

    def test_exact_title_beats_earlier_prefix(self):
        candidates = [_wine("a", "Merlot Reserve"), _wine("b", "Merlot")]
        assert _ids(by_numbered_titles("1. Merlot", candidates)) == ["b"]

    def test_prefix_used_when_no_exact_name(self):
        candidates = [_wine("a", "Merlot Reserve"), _wine("b", "Merlot Grand Cru")]
        assert _ids(by_numbered_titles("1. Merlot", candidates)) == ["a"]

    def test_no_numbered_lines(self):
        assert by_numbered_titles("just prose", CANDIDATES) == []


class TestNameSubstring:
    def test_catalog_order_not_reply_order(self):
        reply = "Try the merlot reserve, or the sancerre blanc."
        assert _ids(by_name_substring(reply, CANDIDATES)) == ["w1", "r2"]

    def test_shorter_name_inside_longer_match_ignored(self):
        candidates = [_wine("short", "Merlot"), _wine("long", "Merlot Reserve")]
        reply = "I recommend the Merlot Reserve tonight."
        assert _ids(by_name_substring(reply, candidates)) == ["long"]

    def test_shorter_name_elsewhere_still_matches(self):
        candidates = [_wine("short", "Merlot"), _wine("long", "Merlot Reserve")]
        reply = "The Merlot Reserve, or a plain Merlot for less."
        assert _ids(by_name_substring(reply, candidates)) == ["short", "long"]

    def test_no_match(self):
        assert by_name_substring("nothing relevant", CANDIDATES) == []

    def test_capped(self):
        many = [_wine(f"id{n}", f"Cuvee {chr(97 + n)}x") for n in range(12)]
        reply = " ".join(f"cuvee {chr(97 + n)}x" for n in range(12))
        assert len(by_name_substring(reply, many)) == MAX_EXTRACTED


class TestCategory:
    def test_one_per_category_in_fixed_order(self):
        assert _ids(by_category("", CANDIDATES)) == ["r1", "w1", "s1", "p1"]

    def test_pads_to_four_with_unused(self):
        reds = [
            _wine("a", "Bordeaux Rouge"),
            _wine("b", "Plain Bottle"),
            _wine("c", "Another Rouge"),
            _wine("d", "Table Wine"),
        ]
        assert _ids(by_category("", reds)) == ["a", "b", "c", "d"]

    def test_never_empty_for_unclassifiable_names(self):
        odd = [_wine("q", "Cuvée Q"), _wine("z", "Cuvée Z")]
        assert _ids(by_category("", odd)) == ["q", "z"]


class TestExtract:
    def test_marker_layer_wins(self):
        reply = "1. Sancerre Blanc\nRECOMMENDED_IDS: [\"p1\"]"
        assert _ids(extract(reply, CANDIDATES)) == ["p1"]

    def test_falls_through_to_numbered_titles(self):
        reply = "1. Whispering Angel Rose\n2. Merlot Reserve"
        assert _ids(extract(reply, CANDIDATES)) == ["p1", "r2"]

    def test_falls_through_to_substring(self):
        reply = "I would go for the Mystery Blend tonight."
        assert _ids(extract(reply, CANDIDATES)) == ["x1"]

    def test_falls_through_to_category(self):
        """A reply sharing no tokens with any name still yields items."""
        assert len(extract("zzz qqq", CANDIDATES)) == 4

    def test_marker_with_only_unknown_ids_falls_through(self):
        reply = 'Mystery Blend!\nRECOMMENDED_IDS: ["ghost"]'
        assert _ids(extract(reply, CANDIDATES)) == ["x1"]

    def test_marker_limited_to_sampled_ids(self):
        reply = 'RECOMMENDED_IDS: ["r1", "w1"]'
        assert _ids(extract(reply, CANDIDATES, sampled_ids=["w1", "p1"])) == ["w1"]

    def test_marker_outside_sample_falls_through(self):
        reply = 'Mystery Blend\nRECOMMENDED_IDS: ["r1"]'
        assert _ids(extract(reply, CANDIDATES, sampled_ids=["x1"])) == ["x1"]

    def test_empty_candidates(self):
        assert extract('RECOMMENDED_IDS: ["r1"]', []) == []

    def test_first_success_reports_layer(self):
        layer, items = first_success(STRATEGIES, "zzz", CANDIDATES)
        assert layer == "category"
        assert items
