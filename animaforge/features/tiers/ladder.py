"""
Tier ladder.

Static table of the 13 tiers from D to SSS, the days each level of a tier
requires, and their ordering. Pure lookups, no state.
"""

from __future__ import annotations

from typing import Iterable, Optional, TypeVar

TIERS_ASCENDING = ("D", "D+", "C", "C+", "B", "B+", "A", "A+", "S", "S+", "SS", "SS+", "SSS")

TIER_ORDER = {tier: index + 1 for index, tier in enumerate(TIERS_ASCENDING)}

REQUIRED_DAYS = {
    "D": 5,
    "D+": 6,
    "C": 8,
    "C+": 10,
    "B": 12,
    "B+": 14,
    "A": 17,
    "A+": 19,
    "S": 22,
    "S+": 24,
    "SS": 27,
    "SS+": 30,
    "SSS": 33,
}

DEFAULT_REQUIRED_DAYS = 5
MAX_LEVEL = 10
FINAL_TIER = "SSS"
LEGACY_FINAL_TIER = "S"


def required_days_for_tier(tier: str) -> int:
    """Days per level for a tier; unknown tiers fall back to 5."""
    return REQUIRED_DAYS.get(tier, DEFAULT_REQUIRED_DAYS)


def next_tier(tier: str) -> str:
    """Successor tier. SSS has none and stays SSS."""
    if tier not in TIER_ORDER:
        return TIERS_ASCENDING[0]
    index = TIER_ORDER[tier]
    if index >= len(TIERS_ASCENDING):
        return tier
    return TIERS_ASCENDING[index]


def previous_tier(tier: str) -> str:
    """Predecessor tier, used only by explicit debug rollback. D stays D."""
    index = TIER_ORDER.get(tier, 1)
    if index <= 1:
        return TIERS_ASCENDING[0]
    return TIERS_ASCENDING[index - 2]


def tier_score(tier: str) -> int:
    """1 for D through 13 for SSS, 0 for unknown tiers."""
    return TIER_ORDER.get(tier, 0)


def compare_tiers(a: str, b: str) -> int:
    """Negative when a ranks below b, zero when equal, positive above."""
    return tier_score(a) - tier_score(b)


def is_final_tier(tier: str, final_tier: str = FINAL_TIER) -> bool:
    return tier == final_tier


T = TypeVar("T")


def best_identity(identities: Iterable[T]) -> Optional[T]:
    """
    Highest identity by tier then level.

    Each identity scores tier_score * 100 + level; on ties the first one
    seen wins. Accepts anything exposing `tier` and `level` attributes.
    """
    best: Optional[T] = None
    best_score = -1
    for identity in identities:
        score = tier_score(getattr(identity, "tier")) * 100 + int(getattr(identity, "level"))
        if score > best_score:
            best, best_score = identity, score
    return best
