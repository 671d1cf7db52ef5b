from __future__ import annotations

from enum import Enum
from typing import Optional


class Tier(str, Enum):
    easy = "Easy"
    medium = "Medium"
    hard = "Hard"
    challenging = "Challenging"


TIERS: tuple[Tier, ...] = (Tier.easy, Tier.medium, Tier.hard, Tier.challenging)

TIER_ORDER = {tier: index for index, tier in enumerate(TIERS, start=1)}

POINTS_BY_TIER = {
    Tier.easy: 100,
    Tier.medium: 250,
    Tier.hard: 500,
    Tier.challenging: 1000,
}

DEFAULT_UNLOCK_EASY_TO_MEDIUM = 3
DEFAULT_UNLOCK_MEDIUM_TO_HARD = 3
DEFAULT_UNLOCK_HARD_TO_CHALLENGING = 2


class ProgrammingLanguage(str, Enum):
    python = "Python"
    javascript = "Javascript"
    java = "Java"
    cpp = "C++"
    typescript = "TypeScript"
    ruby = "Ruby"


def previous_tier(tier: Tier) -> Optional[Tier]:
    index = TIERS.index(tier)
    return TIERS[index - 1] if index > 0 else None


def normalise_tier(value: Optional[str]) -> Optional[Tier]:
    """Return the canonical tier for ``value`` (case-insensitive), or None."""
    if value is None:
        return None
    text = str(value).strip().lower()
    for tier in TIERS:
        if tier.value.lower() == text:
            return tier
    return None
