"""Suggestion chips learned from past queries.

Queries are cleaned up (spacing, punctuation, polite phrasing, wine-term
capitalization), scored for wine relevance, and kept if the score reaches
MIN_RELEVANCE_SCORE. Chips are ranked by relevance * ln(count + 1) / days
since last use, and padded from per-language defaults.
"""

from __future__ import annotations

import math
import re
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from pydantic import TypeAdapter, ValidationError

from sommelier.errors import StorageCorrupt
from sommelier.models.contracts import SuggestionEntry
from sommelier.utils.blob_store import BlobStore

logger = structlog.get_logger()

SUGGESTIONS_STORAGE_KEY = "wine-sommelier-suggestions"
MAX_SUGGESTIONS = 50
MIN_RELEVANCE_SCORE = 0.3
MIN_QUERY_LENGTH = 5
DEFAULT_CHIP_COUNT = 6

_entries_adapter = TypeAdapter(list[SuggestionEntry])

# === Relevance ===

_WINE_KEYWORDS: frozenset[str] = frozenset(
    {
        # en
        "wine", "red", "white", "rosé", "rose", "sparkling", "champagne", "bottle",
        "glass", "recommend", "suggestion", "pairing", "food", "dinner", "celebration",
        "party", "budget", "cheap", "expensive", "price", "under", "over", "euro", "€",
        "cabernet", "merlot", "chardonnay", "sauvignon", "pinot", "syrah", "shiraz",
        "bordeaux", "burgundy", "tuscany", "rioja", "prosecco", "cava", "meat", "fish",
        "cheese", "pasta", "chicken", "beef", "seafood", "dessert",
        # fr
        "vin", "rouge", "blanc", "effervescent", "bouteille", "verre", "recommandation",
        "conseil", "accord", "mets", "dîner", "fête", "célébration", "pas cher", "cher",
        "prix", "moins", "plus", "bourgogne", "toscane", "viande", "poisson", "fromage",
        "pâtes", "poulet", "bœuf", "fruits de mer",
        # nl
        "wijn", "rood", "wit", "mousserende", "fles", "glas", "aanbeveling", "advies",
        "combinatie", "eten", "diner", "feest", "viering", "goedkoop", "duur", "prijs",
        "onder", "boven", "vlees", "vis", "kaas", "kip", "rundvlees", "zeevruchten",
    }
)  # fmt: skip

_SPECIFIC_KEYWORDS = frozenset(
    {"cabernet", "merlot", "chardonnay", "sauvignon", "pinot", "syrah", "champagne", "bordeaux"}
)
_GENERIC_KEYWORDS = frozenset(
    {"wine", "vin", "wijn", "recommend", "recommandation", "aanbeveling"}
)
_QUESTION_PREFIXES = ("what", "which", "quel", "welke")


def relevance_score(query: str) -> float:
    """Score 0..1 for how wine-related a query looks."""
    lowered = query.lower()
    score = 0.0
    for keyword in _WINE_KEYWORDS:
        if keyword not in lowered:
            continue
        if keyword in _SPECIFIC_KEYWORDS:
            score += 0.3
        elif keyword in _GENERIC_KEYWORDS:
            score += 0.2
        else:
            score += 0.1

    if "?" in lowered or lowered.startswith(_QUESTION_PREFIXES):
        score += 0.2

    if len(query) < 10:
        score *= 0.5
    if len(query) > 100:
        score *= 0.7
    return min(score, 1.0)


# === Query clean-up ===

_Replacements = tuple[tuple[re.Pattern[str], str], ...]


def _rules(*pairs: tuple[str, str]) -> _Replacements:
    return tuple((re.compile(pattern), replacement) for pattern, replacement in pairs)


_IMPROVEMENTS: dict[str, _Replacements] = {
    "en": _rules(
        (r"\bi need\b", "I need"),
        (r"\bi want\b", "I would like"),
        (r"\bi'm looking for\b", "I am looking for"),
        (r"\bwhat's\b", "what is"),
        (r"\bcan you\b", "could you"),
        (r"\bgive me\b", "could you recommend"),
        (r"\bshow me\b", "could you show me"),
        (r"\btell me\b", "could you tell me"),
        (r"\brose wine\b", "rosé wine"),
        (r"\bcheap wine\b", "budget-friendly wine"),
        (r"\bexpensive wine\b", "premium wine"),
        (r"\bgood wine\b", "quality wine"),
        (r"\bbest wine\b", "best wine recommendation"),
        (r"^what wine", "what wine would you recommend"),
        (r"^which wine", "which wine would be best"),
        (r"^recommend", "could you recommend"),
        (r"^suggest", "could you suggest"),
        (r"^find", "could you help me find"),
        (r"under (\d+)", r"under €\1"),
        (r"less than (\d+)", r"less than €\1"),
        (r"around (\d+)", r"around €\1"),
        (r"about (\d+)", r"about €\1"),
        (r"goes with", "pairs well with"),
        (r"good with", "pairs well with"),
        (r"match with", "pairs well with"),
    ),
    "fr": _rules(
        (r"\bje veux\b", "je voudrais"),
        (r"\bje cherche\b", "je recherche"),
        (r"\bpouvez-vous\b", "pourriez-vous"),
        (r"\bdonnez-moi\b", "pourriez-vous me recommander"),
        (r"\bmontrez-moi\b", "pourriez-vous me montrer"),
        (r"\bdites-moi\b", "pourriez-vous me dire"),
        (r"\bvin pas cher\b", "vin économique"),
        (r"\bvin cher\b", "vin premium"),
        (r"\bbon vin\b", "vin de qualité"),
        (r"\bmeilleur vin\b", "meilleure recommandation de vin"),
        (r"^quel vin", "quel vin me recommanderiez-vous"),
        (r"^recommandez", "pourriez-vous recommander"),
        (r"^suggérez", "pourriez-vous suggérer"),
        (r"^trouvez", "pourriez-vous m'aider à trouver"),
        (r"moins de (\d+)", r"moins de €\1"),
        (r"sous (\d+)", r"sous €\1"),
        (r"environ (\d+)", r"environ €\1"),
        (r"autour de (\d+)", r"autour de €\1"),
        (r"va avec", "s'accorde bien avec"),
        (r"bon avec", "s'accorde bien avec"),
        (r"accompagne", "s'accorde bien avec"),
    ),
    "nl": _rules(
        (r"\bik wil\b", "ik zou graag willen"),
        (r"\bik zoek\b", "ik ben op zoek naar"),
        (r"\bkunt u\b", "zou u kunnen"),
        (r"\bgeef me\b", "zou u mij kunnen aanbevelen"),
        (r"\blaat me zien\b", "zou u mij kunnen laten zien"),
        (r"\bvertel me\b", "zou u mij kunnen vertellen"),
        (r"\bgoedkope wijn\b", "budgetvriendelijke wijn"),
        (r"\bdure wijn\b", "premium wijn"),
        (r"\bgoede wijn\b", "kwaliteitswijn"),
        (r"\bbeste wijn\b", "beste wijnaanbeveling"),
        (r"^welke wijn", "welke wijn zou u aanbevelen"),
        (r"^beveel aan", "zou u kunnen aanbevelen"),
        (r"^stel voor", "zou u kunnen voorstellen"),
        (r"^vind", "zou u mij kunnen helpen vinden"),
        (r"onder (\d+)", r"onder €\1"),
        (r"minder dan (\d+)", r"minder dan €\1"),
        (r"rond (\d+)", r"rond €\1"),
        (r"ongeveer (\d+)", r"ongeveer €\1"),
        (r"gaat goed met", "past goed bij"),
        (r"past bij", "past goed bij"),
        (r"combineert met", "past goed bij"),
    ),
}

_WINE_TERMS = (
    "Chardonnay",
    "Sauvignon Blanc",
    "Cabernet Sauvignon",
    "Merlot",
    "Pinot Noir",
    "Syrah",
    "Shiraz",
    "Bordeaux",
    "Burgundy",
    "Champagne",
    "Prosecco",
    "Rioja",
    "Chianti",
    "Delhaize",
)
_WINE_TERM_RES = tuple((re.compile(rf"\b{re.escape(t)}\b", re.I), t) for t in _WINE_TERMS)

_QUESTION_WORDS: dict[str, frozenset[str]] = {
    "en": frozenset(
        {"what", "which", "how", "where", "when", "why", "who",
         "can", "could", "would", "should", "do", "does"}
    ),
    "fr": frozenset(
        {"quel", "quelle", "quels", "quelles", "comment", "où", "quand",
         "pourquoi", "qui", "que", "qu'est-ce", "pouvez", "pourriez"}
    ),
    "nl": frozenset(
        {"wat", "welke", "hoe", "waar", "wanneer", "waarom", "wie",
         "kan", "kunt", "zou", "moet", "doet", "doen"}
    ),
}  # fmt: skip

_FALLBACK_SUGGESTIONS: dict[str, tuple[str, ...]] = {
    "en": (
        "I need a red wine under €15",
        "What wine pairs well with seafood?",
        "Could you recommend a Champagne for celebration?",
        "I'm looking for a budget-friendly white wine for dinner",
        "What would be the best wine for a romantic evening?",
        "Which wine pairs well with cheese?",
    ),
    "fr": (
        "J'ai besoin d'un vin rouge sous €15",
        "Quel vin s'accorde bien avec les fruits de mer?",
        "Pourriez-vous recommander un Champagne pour fêter?",
        "Je recherche un vin blanc économique pour le dîner",
        "Quel serait le meilleur vin pour une soirée romantique?",
        "Quel vin s'accorde bien avec le fromage?",
    ),
    "nl": (
        "Ik heb een rode wijn onder €15 nodig",
        "Welke wijn past goed bij zeevruchten?",
        "Zou u een Champagne kunnen aanbevelen voor een feest?",
        "Ik ben op zoek naar een budgetvriendelijke witte wijn voor het diner",
        "Wat zou de beste wijn zijn voor een romantische avond?",
        "Welke wijn past goed bij kaas?",
    ),
}


def is_question(query: str, language: str) -> bool:
    words = _QUESTION_WORDS.get(language, _QUESTION_WORDS["en"])
    first_word = query.split(" ", 1)[0].lower()
    return first_word in words


def improve_query(query: str, language: str) -> str:
    """Normalize a raw query into a presentable suggestion chip."""
    improved = re.sub(r"\s+", " ", query.strip())
    improved = re.sub(r"[.!?]\s*$", "", improved)

    improved = improved.lower()
    for pattern, replacement in _IMPROVEMENTS.get(language, ()):
        improved = pattern.sub(replacement, improved)

    improved = improved[:1].upper() + improved[1:].lower()
    for pattern, term in _WINE_TERM_RES:
        improved = pattern.sub(term, improved)

    if is_question(improved, language) and not improved.endswith("?"):
        improved += "?"
    return improved


def fallback_suggestions(language: str) -> list[str]:
    return list(_FALLBACK_SUGGESTIONS.get(language, _FALLBACK_SUGGESTIONS["en"]))


# === Store ===


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SuggestionStore:
    def __init__(
        self,
        store: BlobStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
        key: str = SUGGESTIONS_STORAGE_KEY,
    ) -> None:
        self._store = store
        self._clock = clock
        self._key = key

    def _decode(self, raw: str) -> list[SuggestionEntry]:
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError as exc:
            raise StorageCorrupt(self._key, str(exc)) from exc

    def _read(self) -> list[SuggestionEntry]:
        raw = self._store.get(self._key)
        if raw is None:
            return []
        try:
            return self._decode(raw)
        except StorageCorrupt as exc:
            logger.warning("suggestions_storage_corrupt", key=exc.key)
            self._store.delete(self._key)
            return []

    def _write(self, entries: list[SuggestionEntry]) -> None:
        self._store.put(self._key, _entries_adapter.dump_json(entries).decode())

    def _rank(self, entry: SuggestionEntry, now: datetime) -> float:
        days = (now - entry.last_used).total_seconds() / 86400
        return entry.relevance_score * math.log(entry.count + 1) / max(1.0, days)

    def _sorted(self, entries: list[SuggestionEntry]) -> list[SuggestionEntry]:
        now = self._clock()
        return sorted(entries, key=lambda entry: self._rank(entry, now), reverse=True)

    def add_query(self, query: str, language: str) -> SuggestionEntry | None:
        """Record a user query. Returns the stored entry, or None if skipped."""
        trimmed = query.strip()
        if len(trimmed) < MIN_QUERY_LENGTH:
            return None

        improved = improve_query(trimmed, language)
        score = relevance_score(improved)
        if score < MIN_RELEVANCE_SCORE:
            logger.debug("suggestion_skipped", language=language, score=round(score, 2))
            return None

        now = self._clock()
        entries = self._read()
        stored: SuggestionEntry | None = None
        for index, entry in enumerate(entries):
            if entry.language == language and entry.query.lower() == improved.lower():
                stored = entry.model_copy(
                    update={
                        "count": entry.count + 1,
                        "last_used": now,
                        "relevance_score": max(entry.relevance_score, score),
                    }
                )
                entries[index] = stored
                break
        else:
            stored = SuggestionEntry(
                id=uuid.uuid4().hex,
                query=improved,
                language=language,
                count=1,
                last_used=now,
                relevance_score=score,
            )
            entries.append(stored)

        self._write(self._sorted(entries)[:MAX_SUGGESTIONS])
        logger.info("suggestion_recorded", language=language, count=stored.count)
        return stored

    def top_suggestions(self, language: str, count: int = DEFAULT_CHIP_COUNT) -> list[str]:
        entries = [entry for entry in self._read() if entry.language == language]
        return [entry.query for entry in self._sorted(entries)[:count]]

    def chips(self, language: str, count: int = DEFAULT_CHIP_COUNT) -> list[str]:
        """Top stored suggestions, padded with defaults not already present."""
        chips = self.top_suggestions(language, count)
        seen = {chip.strip().lower() for chip in chips}
        for fallback in fallback_suggestions(language):
            if len(chips) >= count:
                break
            if fallback.strip().lower() not in seen:
                seen.add(fallback.strip().lower())
                chips.append(fallback)
        return chips

    def clear(self) -> None:
        self._write([])
