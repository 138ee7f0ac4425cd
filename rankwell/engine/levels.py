"""
rankwell.engine.levels — Leveling Curve
========================================

THE single canonical implementation of the leveling formula.  Import from
here instead of re-deriving levels in cogs, embeds, or the API.

The curve is ``threshold_xp(L) = floor(100 * L ** 1.5)``.  Because
``100 * L ** 1.5 == sqrt(10_000 * L ** 3)``, the floor is computed exactly
with :func:`math.isqrt`, and :func:`level_for_xp` searches over integer
levels, so the two functions are exact inverses at every boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

__all__ = [
    "LevelProgress",
    "level_for_xp",
    "progress",
    "progress_bar",
    "rank_title",
    "threshold_xp",
]

# (minimum level, title), highest first
RANK_TITLES: tuple[tuple[int, str], ...] = (
    (50, "Legend"),
    (30, "Veteran"),
    (20, "Experienced"),
    (10, "Regular"),
    (5, "Active"),
    (0, "Newcomer"),
)


@dataclass(frozen=True, slots=True)
class LevelProgress:
    """Where a cumulative XP total sits on the curve."""

    level: int
    total_xp: int
    xp_into_level: int
    xp_for_next_level: int
    next_level_xp: int
    percent: float


def threshold_xp(level: int) -> int:
    """Cumulative XP required to reach *level* (``threshold_xp(0) == 0``)."""
    if level < 0:
        raise ValueError(f"level must be >= 0, got {level}")
    return math.isqrt(10_000 * level ** 3)


def level_for_xp(total_xp: int) -> int:
    """Largest level ``L >= 0`` with ``threshold_xp(L) <= total_xp``."""
    if total_xp < 0:
        raise ValueError(f"total_xp must be >= 0, got {total_xp}")

    # Grow an upper bound by doubling, then binary search.
    # Invariant: threshold_xp(lo) <= total_xp < threshold_xp(hi)
    lo, hi = 0, 1
    while threshold_xp(hi) <= total_xp:
        lo, hi = hi, hi * 2
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if threshold_xp(mid) <= total_xp:
            lo = mid
        else:
            hi = mid
    return lo


def progress(total_xp: int) -> LevelProgress:
    """Break *total_xp* down into level and progress towards the next one."""
    level = level_for_xp(total_xp)
    current = threshold_xp(level)
    nxt = threshold_xp(level + 1)
    into = total_xp - current
    span = nxt - current
    percent = min(100.0, max(0.0, into / span * 100))
    return LevelProgress(
        level=level,
        total_xp=total_xp,
        xp_into_level=into,
        xp_for_next_level=span,
        next_level_xp=nxt,
        percent=percent,
    )


def rank_title(level: int) -> str:
    """Display tier for *level* (Newcomer … Legend)."""
    for minimum, title in RANK_TITLES:
        if level >= minimum:
            return title
    return RANK_TITLES[-1][1]


def progress_bar(percent: float, width: int = 10) -> str:
    """Render *percent* as a fixed-width block bar, e.g. ``███░░░░░░░``."""
    filled = int(max(0.0, min(100.0, percent)) / 100 * width)
    return "█" * filled + "░" * (width - filled)
