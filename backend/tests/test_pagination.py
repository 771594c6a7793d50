"""Tests for chat session state and show-more pagination."""

from sommelier.models.contracts import CatalogItem, RecommendationResult
from sommelier.session.cart import Cart
from sommelier.session.pagination import (
    BATCH_SIZE,
    PADDED_TARGET,
    ChatSession,
    SessionState,
    clean_narrative,
    food_pairings,
)
from sommelier.utils.blob_store import InMemoryBlobStore


def _wine(item_id: str, color: str = "Rouge", pairings: list[str] | None = None) -> CatalogItem:
    return CatalogItem.model_validate(
        {
            "id": item_id,
            "Product_name": f"Wine {item_id}",
            "Price": "10 €",
            "Color": color,
            "food_pairing": pairings or [],
        }
    )


CATALOG = [_wine(f"c{n}", "Rouge" if n % 2 == 0 else "Blanc") for n in range(10)]


def _result(*items: CatalogItem, text: str = "Here you go") -> RecommendationResult:
    return RecommendationResult(narrative_text=text, ordered_items=list(items))


def _ids(items: list[CatalogItem]) -> list[str]:
    return [item.id for item in items]


class TestPagination:
    def test_four_four_two_then_exhausted(self):
        session = ChatSession("s1", "en")
        token = session.begin_query("something nice")

        first = session.complete(token, _result(CATALOG[3], CATALOG[7], CATALOG[1]), CATALOG)
        assert _ids(first.items) == ["c3", "c7", "c1", "c0"]
        assert first.start_index == 0
        assert first.has_more is True
        assert first.state == SessionState.RENDERED.value

        second = session.show_more()
        assert _ids(second.items) == ["c2", "c4", "c5", "c6"]
        assert second.start_index == BATCH_SIZE
        assert second.message == ""
        assert second.has_more is True

        third = session.show_more()
        assert _ids(third.items) == ["c8", "c9"]
        assert third.has_more is False
        assert session.state == SessionState.EXHAUSTED

        after = session.show_more()
        assert after.items == []
        assert after.has_more is False
        assert after.state == SessionState.EXHAUSTED.value

    def test_padding_respects_query_color(self):
        session = ChatSession("s1", "fr")
        token = session.begin_query("un vin blanc")
        session.complete(token, _result(CATALOG[1]), CATALOG)
        assert _ids(session.padded) == ["c1", "c3", "c5", "c7", "c9"]

    def test_padding_capped(self):
        big = [_wine(f"b{n}") for n in range(40)]
        session = ChatSession("s1")
        token = session.begin_query("anything")
        session.complete(token, _result(*big[:20]), big)
        assert len(session.padded) == PADDED_TARGET
        assert _ids(session.padded) == [f"b{n}" for n in range(PADDED_TARGET)]

    def test_no_items_stays_empty(self):
        session = ChatSession("s1")
        token = session.begin_query("hello")
        batch = session.complete(
            token,
            RecommendationResult(narrative_text="What color?", needs_more_info=True),
            CATALOG,
        )
        assert batch.items == []
        assert batch.needs_more_info is True
        assert batch.has_more is False
        assert session.state == SessionState.EXHAUSTED

    def test_shown_items_are_excluded_next_turn(self):
        session = ChatSession("s1")
        token = session.begin_query("anything")
        session.complete(token, _result(CATALOG[0]), CATALOG)

        session.begin_query("something else")

        assert session.pending_query.exclude_ids == {"c0", "c1", "c2", "c3"}
        assert session.shown_ids == []
        assert session.padded == []

    def test_padding_skips_previously_shown(self):
        session = ChatSession("s1")
        token = session.begin_query("anything")
        session.complete(token, _result(CATALOG[0]), CATALOG)

        token = session.begin_query("more")
        session.complete(token, _result(CATALOG[9]), CATALOG)

        assert _ids(session.padded) == ["c9", "c4", "c5", "c6", "c7", "c8"]

    def test_exclusions_cover_only_the_previous_turn(self):
        session = ChatSession("s1")
        token = session.begin_query("anything")
        session.complete(token, _result(CATALOG[0]), CATALOG)
        token = session.begin_query("more")
        session.complete(token, _result(CATALOG[9]), CATALOG)

        session.begin_query("again")

        assert session.pending_query.exclude_ids == {"c9", "c4", "c5", "c6"}

    def test_superseded_turn_keeps_exclusions(self):
        session = ChatSession("s1")
        token = session.begin_query("anything")
        session.complete(token, _result(CATALOG[0]), CATALOG)

        session.begin_query("first retry")
        session.begin_query("second retry")

        assert session.pending_query.exclude_ids == {"c0", "c1", "c2", "c3"}


class TestTurnTokens:
    def test_stale_result_is_discarded(self):
        session = ChatSession("s1")
        stale = session.begin_query("first")
        current = session.begin_query("second")

        assert session.complete(stale, _result(CATALOG[0]), CATALOG) is None
        assert session.state == SessionState.AWAITING_COMPLETION
        assert session.history == []

        batch = session.complete(current, _result(CATALOG[1]), CATALOG)
        assert batch is not None
        assert [m.content for m in session.history] == ["second", "Here you go"]

    def test_token_used_once(self):
        session = ChatSession("s1")
        token = session.begin_query("first")
        session.complete(token, _result(CATALOG[0]), CATALOG)
        assert session.complete(token, _result(CATALOG[1]), CATALOG) is None

    def test_show_more_before_any_query(self):
        session = ChatSession("s1")
        batch = session.show_more()
        assert batch.items == []
        assert batch.state == SessionState.IDLE.value

    def test_pending_query_carries_history(self):
        session = ChatSession("s1", "nl")
        token = session.begin_query("rode wijn")
        session.complete(token, _result(CATALOG[0]), CATALOG)

        session.begin_query("goedkoper")

        pending = session.pending_query
        assert pending.text == "goedkoper"
        assert pending.language == "nl"
        assert [m.role for m in pending.history] == ["user", "assistant"]


class TestBatchDecoration:
    def test_narrative_cleaned_and_flags_copied(self):
        session = ChatSession("s1")
        token = session.begin_query("red")
        result = RecommendationResult(
            narrative_text='Try **Wine c0** at https://shop.example/c0\nRECOMMENDED_IDS: ["c0"]',
            ordered_items=[CATALOG[0]],
            degraded=True,
        )

        batch = session.complete(token, result, CATALOG)

        assert batch.message == "Try Wine c0 at"
        assert batch.degraded is True
        assert session.history[-1].content == "Try Wine c0 at"

    def test_food_pairings_from_ordered_items(self):
        items = [
            _wine("a", pairings=["Cheese", "Beef"]),
            _wine("b", pairings=["Beef", "Lamb", "Fish", "Pasta"]),
        ]
        assert food_pairings(items) == ["Cheese", "Beef", "Lamb", "Fish"]
        assert food_pairings([]) == []


class TestCartAttachment:
    def test_cart_changes_update_count(self):
        session = ChatSession("s1")
        cart = Cart(InMemoryBlobStore())
        cart.add(CATALOG[0], 2)
        session.attach_cart(cart)
        assert session.cart_item_count == 2

        cart.add(CATALOG[1], 3)
        assert session.cart_item_count == 5
        assert session.show_more().cart_item_count == 5

    def test_detached_cart_no_longer_updates(self):
        session = ChatSession("s1")
        cart = Cart(InMemoryBlobStore())
        session.attach_cart(cart)
        session.detach_cart()

        cart.add(CATALOG[0], 4)

        assert session.cart is None
        assert session.cart_item_count == 0


class TestCleanNarrative:
    def test_strips_marker_line(self):
        text = 'Lovely wines.\nRECOMMENDED_IDS: ["a", "b"]'
        assert clean_narrative(text) == "Lovely wines."

    def test_marker_in_the_middle(self):
        text = 'Start.\nRECOMMENDED_IDS: ["a"]\nEnd.'
        assert clean_narrative(text) == "Start.\nEnd."

    def test_plain_text_unchanged(self):
        assert clean_narrative("  Just prose. ") == "Just prose."
