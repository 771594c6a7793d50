"""Recommendation extractor: turn a free-text model reply into catalog items.

Four strategies run in order and the first non-empty result wins:

1. structured ids from the RECOMMENDED_IDS marker line
2. numbered list titles ("1. Château X") matched against catalog names
3. catalog names appearing verbatim in the reply
4. one item per wine color, padded from the candidates

Strategy 4 never comes back empty for a non-empty candidate list, so the
pipeline always has something to show once a reply has arrived.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Iterable, Sequence

import structlog

from sommelier.errors import MalformedUpstreamReply
from sommelier.models.contracts import CatalogItem

log = structlog.get_logger("pipeline.extraction")

MAX_EXTRACTED = 8
CATEGORY_PAD_TARGET = 4

_MARKER_RE = re.compile(r"RECOMMENDED_IDS:?\s*\[([^\]]+)\]", re.I)
_ID_SPLIT_RE = re.compile(r"[,\s]+")
_NUMBERED_LINE_RE = re.compile(r"^\s*\d+\.\s+(.*)$", re.M)
_NON_WORD_RE = re.compile(r"[^\w\s]")
_SPACES_RE = re.compile(r"\s+")

# Name substrings per category, checked in this order
_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("red", ("rouge", "red", "rood", "merlot", "cabernet", "syrah", "pinot noir")),
    ("white", ("blanc", "white", "chardonnay", "sauvignon")),
    ("sparkling", ("champagne", "mousseux", "brut", "cava", "prosecco", "crémant")),
    ("rose", ("rosé", "rose", "gris")),
)

Strategy = Callable[[str, Sequence[CatalogItem]], list[CatalogItem]]


def normalize_title(text: str) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _NON_WORD_RE.sub("", stripped)
    return _SPACES_RE.sub(" ", stripped).strip()


def parse_marker_ids(reply: str) -> list[str]:
    """Return the raw ids listed on the marker line, in model order.

    Raises MalformedUpstreamReply if the line is missing or lists nothing.
    """
    match = _MARKER_RE.search(reply)
    if not match:
        raise MalformedUpstreamReply("no RECOMMENDED_IDS line in reply")
    ids = [token.strip("\"'`") for token in _ID_SPLIT_RE.split(match.group(1))]
    ids = [token for token in ids if token]
    if not ids:
        raise MalformedUpstreamReply("RECOMMENDED_IDS line is empty")
    return ids


def by_structured_ids(reply: str, candidates: Sequence[CatalogItem]) -> list[CatalogItem]:
    try:
        ids = parse_marker_ids(reply)
    except MalformedUpstreamReply as exc:
        log.debug("extraction_marker_unusable", reason=str(exc))
        return []

    by_id = {item.id: item for item in candidates}
    found: list[CatalogItem] = []
    seen: set[str] = set()
    for item_id in ids:
        item = by_id.get(item_id)
        if item is None or item_id in seen:
            continue
        seen.add(item_id)
        found.append(item)
        if len(found) == MAX_EXTRACTED:
            break
    return found


def by_numbered_titles(reply: str, candidates: Sequence[CatalogItem]) -> list[CatalogItem]:
    titles = [normalize_title(t) for t in _NUMBERED_LINE_RE.findall(reply)]
    titles = [t for t in titles if t]
    if not titles:
        return []

    names = [(normalize_title(item.display_name), item) for item in candidates]
    found: list[CatalogItem] = []
    seen: set[str] = set()
    for title in titles:
        unseen = [(name, item) for name, item in names if item.id not in seen]
        match = next((item for name, item in unseen if name == title), None)
        if match is None:
            match = next((item for name, item in unseen if name.startswith(title)), None)
        if match is None:
            continue
        seen.add(match.id)
        found.append(match)
        if len(found) == MAX_EXTRACTED:
            break
    return found


def by_name_substring(reply: str, candidates: Sequence[CatalogItem]) -> list[CatalogItem]:
    haystack = reply.lower()
    longest_first = sorted(candidates, key=lambda item: len(item.display_name), reverse=True)
    matched: set[str] = set()
    for item in longest_first:
        name = item.display_name.lower().strip()
        if name and name in haystack:
            matched.add(item.id)
            # shorter names must not match inside this one
            haystack = haystack.replace(name, " " * len(name))
            if len(matched) == MAX_EXTRACTED:
                break
    return [item for item in candidates if item.id in matched]


def _category_of(item: CatalogItem) -> str | None:
    name = item.display_name.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return category
    return None


def by_category(reply: str, candidates: Sequence[CatalogItem]) -> list[CatalogItem]:
    picked: dict[str, CatalogItem] = {}
    for item in candidates:
        category = _category_of(item)
        if category is not None and category not in picked:
            picked[category] = item

    found = [picked[category] for category, _ in _CATEGORY_KEYWORDS if category in picked]
    used = {item.id for item in found}
    for item in candidates:
        if len(found) >= CATEGORY_PAD_TARGET:
            break
        if item.id not in used:
            used.add(item.id)
            found.append(item)
    return found


STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("structured_ids", by_structured_ids),
    ("numbered_titles", by_numbered_titles),
    ("name_substring", by_name_substring),
    ("category", by_category),
)


def first_success(
    strategies: Sequence[tuple[str, Strategy]],
    reply: str,
    candidates: Sequence[CatalogItem],
) -> tuple[str | None, list[CatalogItem]]:
    """Run strategies in order; return the name and result of the first non-empty one."""
    for name, strategy in strategies:
        result = strategy(reply, candidates)
        if result:
            return name, result
        log.debug("extraction_layer_miss", layer=name)
    return None, []


def extract(
    reply: str,
    candidates: Sequence[CatalogItem],
    sampled_ids: Iterable[str] | None = None,
) -> list[CatalogItem]:
    """Extract the recommended catalog items from a model reply.

    When sampled_ids is given, the marker line may only name items the model
    was shown in its prompt; the text-matching layers still see every candidate.
    """
    if not candidates:
        return []
    strategies = STRATEGIES
    if sampled_ids is not None:
        allowed = set(sampled_ids)
        shown = [item for item in candidates if item.id in allowed]
        strategies = (
            ("structured_ids", lambda text, _candidates: by_structured_ids(text, shown)),
            *STRATEGIES[1:],
        )
    layer, items = first_success(strategies, reply or "", candidates)
    if layer is not None:
        log.info("extraction_layer_hit", layer=layer, count=len(items))
    return items
