"""Query pre-filter: narrow the candidate catalog before prompting.

Only one price filter class applies per query. "between 10 and 20" is read
as "above 10" because the lower-bound pattern is checked first.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

import structlog

from sommelier.models.contracts import CatalogItem
from sommelier.utils.pricing import percentile_threshold

log = structlog.get_logger("pipeline.prefilter")

_ABOVE_RE = re.compile(r"(?:above|over|greater than)\s*€?\s*(\d+)", re.I)
_BELOW_RE = re.compile(r"(?:under|less than|below)\s*€?\s*(\d+)", re.I)
_PREMIUM_RE = re.compile(r"\b(expensive|premium|high[- ]end|luxury)\b", re.I)

PREMIUM_PERCENTILE = 0.75


def filter_candidates(
    catalog: Sequence[CatalogItem],
    query: str,
    exclude_ids: Iterable[str] = (),
) -> list[CatalogItem]:
    """Return the catalog items still eligible for this query, in catalog order."""
    excluded = set(exclude_ids)
    candidates = [item for item in catalog if item.id not in excluded]

    above = _ABOVE_RE.search(query)
    if above:
        bound = float(above.group(1))
        filtered = [item for item in candidates if item.price > bound]
        log.debug("prefilter_applied", rule="above", bound=bound, kept=len(filtered))
        return filtered

    below = _BELOW_RE.search(query)
    if below:
        bound = float(below.group(1))
        filtered = [item for item in candidates if item.price < bound]
        log.debug("prefilter_applied", rule="below", bound=bound, kept=len(filtered))
        return filtered

    if _PREMIUM_RE.search(query):
        threshold = percentile_threshold([item.price for item in candidates], PREMIUM_PERCENTILE)
        if threshold is None:
            return candidates
        filtered = [item for item in candidates if item.price >= threshold]
        log.debug("prefilter_applied", rule="premium", threshold=threshold, kept=len(filtered))
        return filtered

    return candidates
