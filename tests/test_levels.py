"""
tests/test_levels.py — Leveling Curve Tests
============================================

Covers the canonical formula, its inverse at every boundary, progress
breakdown, rank titles, and the text progress bar.
"""

from __future__ import annotations

import math

import pytest

from rankwell.engine.levels import (
    level_for_xp,
    progress,
    progress_bar,
    rank_title,
    threshold_xp,
)


class TestThresholds:
    @pytest.mark.parametrize(
        "level, expected",
        [(0, 0), (1, 100), (2, 282), (3, 519), (4, 800), (10, 3162), (100, 100_000)],
    )
    def test_known_thresholds(self, level, expected):
        assert threshold_xp(level) == expected

    def test_matches_float_formula_for_small_levels(self):
        for level in range(0, 200):
            assert threshold_xp(level) == math.floor(100 * level ** 1.5)

    def test_strictly_increasing(self):
        previous = -1
        for level in range(0, 500):
            current = threshold_xp(level)
            assert current > previous
            previous = current

    def test_negative_level_rejected(self):
        with pytest.raises(ValueError):
            threshold_xp(-1)


class TestLevelForXp:
    @pytest.mark.parametrize(
        "xp, expected",
        [(0, 0), (99, 0), (100, 1), (281, 1), (282, 2), (518, 2), (519, 3)],
    )
    def test_boundaries(self, xp, expected):
        assert level_for_xp(xp) == expected

    def test_inverse_at_every_boundary(self):
        for level in range(1, 1000):
            t = threshold_xp(level)
            assert level_for_xp(t) == level
            assert level_for_xp(t - 1) == level - 1

    def test_large_totals(self):
        level = 123_456
        t = threshold_xp(level)
        assert level_for_xp(t) == level
        assert level_for_xp(t - 1) == level - 1

    def test_negative_xp_rejected(self):
        with pytest.raises(ValueError):
            level_for_xp(-5)


class TestProgress:
    def test_start_of_level(self):
        p = progress(100)
        assert p.level == 1
        assert p.xp_into_level == 0
        assert p.xp_for_next_level == 182
        assert p.next_level_xp == 282
        assert p.percent == 0.0

    def test_midway(self):
        p = progress(50)
        assert p.level == 0
        assert p.xp_into_level == 50
        assert p.xp_for_next_level == 100
        assert p.percent == pytest.approx(50.0)

    def test_percent_always_in_range(self):
        for xp in range(0, 5000, 37):
            p = progress(xp)
            assert 0.0 <= p.percent < 100.0
            assert threshold_xp(p.level) + p.xp_into_level == xp

    def test_same_input_same_output(self):
        assert progress(1500) == progress(1500)


class TestRankTitle:
    @pytest.mark.parametrize(
        "level, title",
        [
            (0, "Newcomer"),
            (4, "Newcomer"),
            (5, "Active"),
            (10, "Regular"),
            (20, "Experienced"),
            (30, "Veteran"),
            (49, "Veteran"),
            (50, "Legend"),
            (500, "Legend"),
        ],
    )
    def test_titles(self, level, title):
        assert rank_title(level) == title


class TestProgressBar:
    def test_empty_and_full(self):
        assert progress_bar(0) == "░" * 10
        assert progress_bar(100) == "█" * 10

    def test_partial(self):
        assert progress_bar(45) == "████░░░░░░"

    def test_clamps_out_of_range(self):
        assert progress_bar(-10, width=4) == "░░░░"
        assert progress_bar(250, width=4) == "████"
