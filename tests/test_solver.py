"""
Tests for Synthesis/solver.py

Tests the network solver including:
- Indirect evidence closure
- Degrees of freedom for multi-arm studies
- Consistency and Q for simple networks
- DerSimonian-Laird tau
"""

import pytest
import numpy as np


class TestIndirectEvidence:
    """Tests for fill_indirect_evidence."""

    def test_chain_is_closed(self):
        from Synthesis.solver import fill_indirect_evidence

        nan = np.nan
        direct = np.array([
            [nan, 1.0, nan],
            [nan, nan, 2.0],
            [nan, nan, nan],
        ])

        filled = fill_indirect_evidence(direct)

        expected = np.array([
            [0.0, 1.0, 3.0],
            [-1.0, 0.0, 2.0],
            [-3.0, -2.0, 0.0],
        ])
        np.testing.assert_allclose(filled, expected)

    def test_long_chain(self):
        from Synthesis.solver import fill_indirect_evidence

        n = 6
        direct = np.full((n, n), np.nan)
        # links point from each treatment to the previous one
        for i in range(n - 1, 0, -1):
            direct[i, i - 1] = 1.0

        filled = fill_indirect_evidence(direct)

        assert not np.isnan(filled).any()
        assert filled[n - 1, 0] == pytest.approx(n - 1)
        assert filled[0, n - 1] == pytest.approx(-(n - 1))

    def test_star_closes_through_hub(self):
        from Synthesis.solver import fill_indirect_evidence

        n = 5
        direct = np.full((n, n), np.nan)
        # hub 2 vs every spoke, stored in both orientations
        for spoke, value in zip([0, 1, 3, 4], [0.5, -1.0, 2.0, 3.5]):
            if spoke % 2:
                direct[2, spoke] = value
            else:
                direct[spoke, 2] = -value

        filled = fill_indirect_evidence(direct)

        position = np.array([-0.5, 1.0, 0.0, -2.0, -3.5])
        np.testing.assert_allclose(filled, position[:, None] - position[None, :])

    def test_separate_groups_stay_nan(self):
        from Synthesis.solver import fill_indirect_evidence

        direct = np.full((4, 4), np.nan)
        direct[0, 1] = 1.0
        direct[3, 2] = 2.0

        filled = fill_indirect_evidence(direct)

        assert filled[1, 0] == pytest.approx(-1.0)
        assert filled[2, 3] == pytest.approx(-2.0)
        assert np.isnan(filled[0, 2]) and np.isnan(filled[3, 1])
        np.testing.assert_array_equal(np.diag(filled), 0)

    def test_does_not_mutate_input(self):
        from Synthesis.solver import fill_indirect_evidence

        direct = np.array([[np.nan, 1.0], [np.nan, np.nan]])
        fill_indirect_evidence(direct)

        assert np.isnan(direct[1, 0])


class TestDegreesOfFreedom:
    """Tests for compute_degrees_of_freedom."""

    def test_two_arm_studies(self):
        from Synthesis.solver import compute_degrees_of_freedom

        assert compute_degrees_of_freedom(['a', 'b', 'c']) == pytest.approx(3)

    def test_multi_arm_study_counts_arms_minus_one(self):
        from Synthesis.solver import compute_degrees_of_freedom

        # 3-arm study (3 contrasts) and 4-arm study (6 contrasts)
        studies = ['x'] * 3 + ['y'] * 6

        assert compute_degrees_of_freedom(studies) == pytest.approx(2 + 3)


class TestSolveNetwork:
    """Tests for solve_network."""

    def test_consistent_triangle_has_zero_q(self):
        from Synthesis.solver import solve_network

        solution = solve_network(
            effects=[1.0, 2.0, 3.0],
            standard_errors=[0.5, 0.5, 0.5],
            treatment_indices_a=[0, 1, 0],
            treatment_indices_b=[1, 2, 2],
            studies=['s1', 's2', 's3']
        )

        assert solution.q == pytest.approx(0, abs=1e-10)
        assert solution.df == pytest.approx(1)
        assert solution.tau == 0
        assert solution.treatment_effects[0, 2] == pytest.approx(3.0)
        assert solution.treatment_effects[2, 0] == pytest.approx(-3.0)

    def test_two_studies_same_pair_pool_by_inverse_variance(self):
        from Synthesis.solver import solve_network

        solution = solve_network(
            effects=[1.0, 3.0],
            standard_errors=[1.0, 2.0],
            treatment_indices_a=[0, 0],
            treatment_indices_b=[1, 1],
            studies=['s1', 's2']
        )

        weights = np.array([1.0, 0.25])
        pooled = np.sum(weights * [1.0, 3.0]) / weights.sum()
        assert solution.treatment_effects[0, 1] == pytest.approx(pooled)
        assert solution.standard_errors[0, 1] == pytest.approx(np.sqrt(1 / weights.sum()))
        assert solution.q == pytest.approx(np.sum(weights * (np.array([1.0, 3.0]) - pooled) ** 2))

    def test_diagonal(self):
        from Synthesis.solver import solve_network

        solution = solve_network([0.4], [0.2], [0], [1], ['s'])

        np.testing.assert_array_equal(np.diag(solution.treatment_effects), [0, 0])
        np.testing.assert_array_equal(np.diag(solution.standard_errors), [0, 0])

    def test_heterogeneity_gives_positive_tau(self):
        from Synthesis.solver import solve_network

        solution = solve_network(
            effects=[0.0, 2.0, 4.0],
            standard_errors=[0.3, 0.3, 0.3],
            treatment_indices_a=[0, 0, 0],
            treatment_indices_b=[1, 1, 1],
            studies=['s1', 's2', 's3']
        )

        assert solution.q > solution.df
        assert solution.tau > 0

    def test_mismatched_lengths_raises(self):
        from Synthesis.solver import solve_network

        with pytest.raises(ValueError, match="same length"):
            solve_network([1.0, 2.0], [0.1], [0, 1], [1, 2], ['a', 'b'])


class TestObservedContrastMatrix:
    """Tests for build_observed_contrast_matrix."""

    def test_signs(self):
        from Synthesis.solver import build_observed_contrast_matrix

        B = build_observed_contrast_matrix([0, 2], [1, 0], 3)

        np.testing.assert_array_equal(B, [[1, -1, 0], [-1, 0, 1]])
