"""
Tests for Synthesis/contrasts.py

Tests study-level contrast construction including:
- Pair enumeration order
- Log odds ratios with the Anscombe correction
- Mean differences
"""

import pytest
import numpy as np


class TestOddsRatioContrasts:
    """Tests for build_odds_ratio_contrasts."""

    def test_two_arm_values(self):
        from Synthesis.contrasts import build_odds_ratio_contrasts

        contrasts = build_odds_ratio_contrasts(10, [1, 2], [10, 12], [13, 20])

        assert len(contrasts) == 1
        c = contrasts[0]
        assert (c.study, c.treatment1, c.treatment2) == (10, 1, 2)
        assert np.exp(c.effect) == pytest.approx((10.5 / 3.5) / (12.5 / 8.5))
        assert c.se == pytest.approx(np.sqrt(1 / 10.5 + 1 / 3.5 + 1 / 12.5 + 1 / 8.5))
        assert c.comparison_n == 33

    def test_zero_events_are_finite(self):
        from Synthesis.contrasts import build_odds_ratio_contrasts

        c = build_odds_ratio_contrasts('s', ['A', 'D'], [0, 9], [20, 20])[0]

        assert np.isfinite(c.effect)
        assert np.isfinite(c.se)

    def test_three_arm_pair_order(self):
        from Synthesis.contrasts import build_odds_ratio_contrasts

        contrasts = build_odds_ratio_contrasts(2, ['B', 'C', 'D'], [11, 12, 29], [78, 85, 170])

        assert [(c.treatment1, c.treatment2) for c in contrasts] == [('B', 'C'), ('B', 'D'), ('C', 'D')]
        assert all(c.study == 2 for c in contrasts)

    def test_custom_increment(self):
        from Synthesis.contrasts import build_odds_ratio_contrasts

        c = build_odds_ratio_contrasts(1, ['A', 'B'], [5, 10], [20, 20], increment=0.0)[0]

        assert c.effect == pytest.approx(np.log((5 / 15) / (10 / 10)))


class TestMeanDifferenceContrasts:
    """Tests for build_mean_difference_contrasts."""

    def test_values(self):
        from Synthesis.contrasts import build_mean_difference_contrasts

        c = build_mean_difference_contrasts('A', [1, 2], [8, 10], [4.923423, 3.867062], [63, 45])[0]

        assert c.effect == -2
        assert c.se == pytest.approx(np.sqrt(4.923423 ** 2 / 63 + 3.867062 ** 2 / 45))
        assert c.comparison_n == 108

    def test_count_pairs(self):
        from Synthesis.contrasts import build_mean_difference_contrasts, count_pairs

        contrasts = build_mean_difference_contrasts('s', list('ABCD'), [1, 2, 3, 4], [1] * 4, [10] * 4)

        assert len(contrasts) == count_pairs(4) == 6

    def test_single_arm_yields_nothing(self):
        from Synthesis.contrasts import build_mean_difference_contrasts

        assert build_mean_difference_contrasts('s', ['A'], [1], [1], [10]) == []


class TestContrast:
    """Tests for the Contrast record."""

    def test_inverted(self):
        from Synthesis.contrasts import Contrast

        c = Contrast(study=1, treatment1='A', treatment2='B', effect=0.4, se=0.2, comparison_n=100)
        flipped = c.inverted()

        assert (flipped.treatment1, flipped.treatment2) == ('B', 'A')
        assert flipped.effect == -0.4
        assert flipped.se == 0.2
        assert c.effect == 0.4
