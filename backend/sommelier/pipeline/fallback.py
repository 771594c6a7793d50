"""Degraded mode: answers built without the completion service."""

from __future__ import annotations

from collections.abc import Sequence

from sommelier.catalog import color_from_query, normalize_color
from sommelier.models.contracts import CatalogItem

FALLBACK_COUNT = 3

_FALLBACK_MESSAGES: dict[str, str] = {
    "en": (
        "Based on your preferences, here are some excellent wine options from our "
        "Delhaize selection. These wines would be perfect for your needs!"
    ),
    "fr": (
        "Basé sur vos préférences, voici d'excellentes options de vin de notre "
        "sélection Delhaize. Ces vins seraient parfaits pour vos besoins !"
    ),
    "nl": (
        "Op basis van uw voorkeuren zijn hier enkele uitstekende wijnopties uit onze "
        "Delhaize selectie. Deze wijnen zouden perfect zijn voor uw behoeften!"
    ),
}

_ASK_FOR_PREFERENCES: dict[str, str] = {
    "en": (
        "I'd be happy to help you find the perfect wine! To give you the best "
        "recommendations, could you tell me:\n\n"
        "• What color wine do you prefer? (Red, White, Rosé, or Sparkling)\n"
        "• What's your budget range? (Budget: €0-10, Mid-range: €10-25, "
        "Premium: €25-50, Luxury: €50+)\n"
        "• What's the occasion or what food will you be pairing it with?"
    ),
    "fr": (
        "Je serais ravi de vous aider à trouver le vin parfait ! Pour vous donner les "
        "meilleures recommandations, pourriez-vous me dire :\n\n"
        "• Quelle couleur de vin préférez-vous ? (Rouge, Blanc, Rosé, ou Effervescent)\n"
        "• Quelle est votre gamme de budget ? (Économique : €0-10, Milieu de gamme : "
        "€10-25, Premium : €25-50, Luxe : €50+)\n"
        "• Quelle est l'occasion ou avec quels plats l'accompagnerez-vous ?"
    ),
    "nl": (
        "Ik help u graag de perfecte wijn te vinden! Om u de beste aanbevelingen te "
        "geven, kunt u me vertellen:\n\n"
        "• Welke wijnkleur heeft uw voorkeur? (Rood, Wit, Rosé, of Mousserende)\n"
        "• Wat is uw budgetbereik? (Budget: €0-10, Middensegment: €10-25, "
        "Premium: €25-50, Luxe: €50+)\n"
        "• Wat is de gelegenheid of bij welk eten wilt u de wijn combineren?"
    ),
}


def fallback_message(language: str) -> str:
    return _FALLBACK_MESSAGES.get(language, _FALLBACK_MESSAGES["en"])


def ask_for_preferences_message(language: str) -> str:
    return _ASK_FOR_PREFERENCES.get(language, _ASK_FOR_PREFERENCES["en"])


def simple_fallback(query: str, candidates: Sequence[CatalogItem]) -> list[CatalogItem]:
    """Pick up to FALLBACK_COUNT candidates by the color named in the query.

    Falls back to the first candidates when the query names no color or no
    candidate has that color. Catalog order is preserved.
    """
    color = color_from_query(query)
    if color is not None:
        matching = [item for item in candidates if normalize_color(item.color) == color]
        if matching:
            return matching[:FALLBACK_COUNT]
    return list(candidates[:FALLBACK_COUNT])
