"""Utilities for deriving levels and rank tiers from cumulative XP."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mycine.core.errors import XPValidationError

LEVEL_THRESHOLDS: tuple[int, ...] = (0, 150, 300, 500, 700, 1000, 1500, 2500, 5000, 10000)
MAX_LEVEL = len(LEVEL_THRESHOLDS)


class RankTier(str, Enum):
    """Coarse tiers grouping consecutive levels."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"


@dataclass(frozen=True)
class RankBand:
    """A rank tier together with the levels and XP range it covers."""

    tier: RankTier
    label: str
    min_level: int
    max_level: int

    @property
    def min_xp(self) -> int:
        return LEVEL_THRESHOLDS[self.min_level - 1]

    @property
    def max_xp(self) -> int | None:
        """Return the XP at which the band ends, or ``None`` for the top band."""

        if self.max_level >= MAX_LEVEL:
            return None
        return LEVEL_THRESHOLDS[self.max_level]


RANK_TIERS: tuple[RankBand, ...] = (
    RankBand(RankTier.BRONZE, "BRONZE", 1, 3),
    RankBand(RankTier.SILVER, "PRATA", 4, 6),
    RankBand(RankTier.GOLD, "OURO", 7, 9),
    RankBand(RankTier.DIAMOND, "DIAMANTE", 10, MAX_LEVEL),
)


@dataclass(frozen=True)
class LevelProgress:
    """Represents progress within the current XP level."""

    total_xp: int
    level: int
    current_level_xp: int
    next_level_xp: int
    xp_to_next_level: int
    progress_percent: float
    rank: RankBand

    @property
    def is_max_level(self) -> bool:
        return self.level >= MAX_LEVEL


def _validate_total_xp(total_xp: int) -> int:
    if isinstance(total_xp, bool) or not isinstance(total_xp, int):
        raise XPValidationError("xp.invalid", "Total XP must be an integer.")
    if total_xp < 0:
        raise XPValidationError("xp.negative", "Total XP cannot be negative.")
    return total_xp


def calculate_level(total_xp: int) -> int:
    """Return the level (1..10) reached with ``total_xp``.

    The lower edge of each threshold is inclusive: exactly 150 XP is level 2.
    """

    total_xp = _validate_total_xp(total_xp)
    level = 1
    for index, threshold in enumerate(LEVEL_THRESHOLDS):
        if total_xp >= threshold:
            level = index + 1
        else:
            break
    return level


def rank_for_level(level: int) -> RankBand:
    """Return the rank band containing ``level``."""

    if level < 1:
        raise XPValidationError("level.invalid", "Levels start at 1.")
    for band in RANK_TIERS:
        if band.min_level <= level <= band.max_level:
            return band
    return RANK_TIERS[-1]


def progress_for_total_xp(total_xp: int) -> LevelProgress:
    """Return level, rank and intra-level progress metrics for ``total_xp``."""

    level = calculate_level(total_xp)
    current_level_xp = LEVEL_THRESHOLDS[level - 1]

    if level >= MAX_LEVEL:
        return LevelProgress(
            total_xp=total_xp,
            level=level,
            current_level_xp=current_level_xp,
            next_level_xp=current_level_xp,
            xp_to_next_level=0,
            progress_percent=100.0,
            rank=rank_for_level(level),
        )

    next_level_xp = LEVEL_THRESHOLDS[level]
    span = next_level_xp - current_level_xp
    raw = (total_xp - current_level_xp) / span * 100
    progress_percent = max(0.0, min(100.0, raw))

    return LevelProgress(
        total_xp=total_xp,
        level=level,
        current_level_xp=current_level_xp,
        next_level_xp=next_level_xp,
        xp_to_next_level=next_level_xp - total_xp,
        progress_percent=progress_percent,
        rank=rank_for_level(level),
    )


def rank_legend() -> list[dict[str, object]]:
    """Return the rank table in a serialisable form for leaderboard sidebars."""

    return [
        {
            "tier": band.tier.value,
            "label": band.label,
            "min_level": band.min_level,
            "max_level": band.max_level,
            "min_xp": band.min_xp,
            "max_xp": band.max_xp,
        }
        for band in RANK_TIERS
    ]
