"""Prompt builder for the recommendation completion.

The system prompt carries the language persona, a sampled slice of the
candidate catalog and the static food-pairing rules. The user prompt carries
conversation history, the query and the exclusion list. Templates live in
sommelier/prompts/ and are read once per process.
"""

from __future__ import annotations

import json
import random
from collections.abc import Iterable, Sequence
from pathlib import Path

from sommelier.models.contracts import CatalogItem, ChatMessage, PromptPair

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

MAX_PROMPT_ITEMS = 328

_template_cache: dict[str, str] = {}


def _load_template(name: str) -> str:
    cached = _template_cache.get(name)
    if cached is None:
        cached = (PROMPTS_DIR / name).read_text(encoding="utf-8").strip()
        _template_cache[name] = cached
    return cached


def sample_candidates(
    candidates: Sequence[CatalogItem],
    *,
    shuffle: bool = True,
    rng: random.Random | None = None,
) -> list[CatalogItem]:
    """Pick at most MAX_PROMPT_ITEMS candidates, shuffled to reduce positional bias."""
    pool = list(candidates)
    if shuffle:
        (rng or random.Random()).shuffle(pool)
    return pool[:MAX_PROMPT_ITEMS]


def _catalog_line(item: CatalogItem) -> str:
    return json.dumps(
        {
            "id": item.id,
            "name": item.display_name,
            "price": item.price,
            "volume": item.normalized_volume,
            "discount": item.promotion,
            "color": item.color,
        },
        ensure_ascii=False,
    )


def _format_history(history: Sequence[ChatMessage]) -> str:
    if not history:
        return ""
    lines = ["Conversation history:"]
    for message in history:
        speaker = "User" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines) + "\n\n"


def _format_exclusions(exclude_ids: Iterable[str]) -> str:
    ids = sorted(set(exclude_ids))
    if not ids:
        return ""
    return f"Exclude these wine IDs from recommendations: {json.dumps(ids)}\n\n"


def build_prompt(
    language: str,
    candidates: Sequence[CatalogItem],
    query: str,
    history: Sequence[ChatMessage] = (),
    exclude_ids: Iterable[str] = (),
    *,
    shuffle: bool = True,
    rng: random.Random | None = None,
) -> PromptPair:
    """Build the (system, user) prompt pair for one recommendation turn."""
    sampled = sample_candidates(candidates, shuffle=shuffle, rng=rng)

    system_prompt = _load_template("system.txt").format(
        persona=_load_template(f"persona_{language}.txt"),
        catalog="\n".join(_catalog_line(item) for item in sampled),
        food_pairing_rules=_load_template("food_pairing.txt"),
    )
    user_prompt = _load_template("user.txt").format(
        history=_format_history(history),
        query=query.strip(),
        exclusions=_format_exclusions(exclude_ids),
    )
    return PromptPair(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        sampled_ids=[item.id for item in sampled],
    )
