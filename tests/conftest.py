"""
Pytest fixtures and configuration for network meta-analysis tests.

Provides:
- Arm-level datasets with published reference results
- Small hand-made networks (disconnected, single study)
- Matplotlib backend selection for headless plotting
"""

import pytest
import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# BINARY OUTCOME DATASETS
# =============================================================================

@pytest.fixture
def smoking_cessation():
    """
    Smoking cessation network (24 studies, 4 treatments, two 3-arm studies).

    Dias S, Welton NJ, Sutton AJ, Caldwell DM, Lu G, Ades AE (2013): Evidence
    Synthesis for Decision Making 4. Medical Decision Making 33:641-656
    """
    return {
        'studies': [1, 1, 1, 2, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6, 7, 7, 8, 8, 9, 9, 10, 10, 11, 11, 12, 12,
                    13, 13, 14, 14, 15, 15, 16, 16, 17, 17, 18, 18, 19, 19, 20, 20, 21, 21, 22, 22,
                    23, 23, 24, 24],
        'treatments': ["A", "C", "D", "B", "C", "D", "A", "C", "A", "C", "A", "C", "A", "C", "A", "C",
                       "A", "C", "A", "C", "A", "B", "A", "B", "A", "C", "A", "C", "A", "C", "A", "D",
                       "A", "B", "A", "C", "A", "C", "A", "C", "A", "C", "B", "C", "B", "D", "C", "D",
                       "C", "D"],
        'positive_counts': [9, 23, 10, 11, 12, 29, 75, 363, 2, 9, 58, 237, 0, 9, 3, 31, 1, 26, 6, 17,
                            79, 77, 18, 21, 64, 107, 5, 8, 20, 34, 0, 9, 8, 19, 95, 143, 15, 36, 78,
                            73, 69, 54, 20, 16, 7, 32, 12, 20, 9, 3],
        'total_counts': [140, 140, 138, 78, 85, 170, 731, 714, 106, 205, 549, 1561, 33, 48, 100, 98,
                         31, 95, 39, 77, 702, 694, 671, 535, 642, 761, 62, 90, 234, 237, 20, 20, 116,
                         149, 1107, 1031, 187, 504, 584, 675, 1177, 888, 49, 43, 66, 127, 76, 74, 55,
                         26],
    }


@pytest.fixture
def smoking_fixed(smoking_cessation):
    from Synthesis.nma import odds_ratio_nma
    return odds_ratio_nma(**smoking_cessation, random_effects=False)


@pytest.fixture
def smoking_random(smoking_cessation):
    from Synthesis.nma import odds_ratio_nma
    return odds_ratio_nma(**smoking_cessation, random_effects=True)


@pytest.fixture
def single_study():
    """One two-arm study with binomial counts."""
    return {
        'studies': [10, 10],
        'treatments': [1, 2],
        'positive_counts': [10, 12],
        'total_counts': [13, 20],
    }


# =============================================================================
# CONTINUOUS OUTCOME DATASETS
# =============================================================================

@pytest.fixture
def mean_difference_data():
    """Three studies (one 3-arm) over treatments 1, 2, 3."""
    return {
        'studies': ['A', 'A', 'B', 'B', 'B', 'C', 'C'],
        'treatments': [1, 2, 1, 2, 3, 3, 2],
        'means': [8, 10, 7, 10.5, 10.5, 10, 11],
        'standard_deviations': [4.923423, 3.867062, 3.250787, 6.349051, 6.664182, 4.324474, 4.301156],
        'sample_sizes': [63, 45, 35, 44, 53, 75, 29],
    }


@pytest.fixture
def md_fixed(mean_difference_data):
    from Synthesis.nma import mean_difference_nma
    return mean_difference_nma(**mean_difference_data, random_effects=False)


@pytest.fixture
def md_random(mean_difference_data):
    from Synthesis.nma import mean_difference_nma
    return mean_difference_nma(**mean_difference_data, random_effects=True)


@pytest.fixture
def disconnected_data():
    """Two components: 1 vs 2 (studies A, B) and 3 vs 4 (studies C, D)."""
    return {
        'studies': ['A', 'A', 'B', 'B', 'C', 'C', 'D', 'D'],
        'treatments': [1, 2, 1, 2, 3, 4, 3, 4],
        'means': [8, 10, 7, 10.5, 10.5, 10, 11, 10],
        'standard_deviations': [4.923423, 3.867062, 3.250787, 6.349051, 6.664182, 4.324474,
                                4.301156, 5],
        'sample_sizes': [63, 45, 35, 44, 53, 75, 29, 100],
    }


@pytest.fixture
def near_singular_data():
    """
    Continuous network whose 4-arm study yields a correction matrix with a
    condition number in the millions.
    """
    return {
        'studies': [20646181, 20646181, 20646181, 20646181, 20646185, 20646185, 20646200, 20646200,
                    20646201, 20646201, 20646214, 20646214, 20646223, 20646223, 20646224, 20646224,
                    20646227, 20646227, 20646229, 20646229, 20646231, 20646231, 20646232, 20646232,
                    20646232, 20646234, 20646234, 20646235, 20646235, 20646237, 20646237, 20646242,
                    20646242, 20646243, 20646243, 20646244, 20646244, 20646245, 20646245, 20646246,
                    20646246, 20656849, 20656849],
        'treatments': [253203, 253204, 253205, 253202, 253197, 253202, 253197, 253205, 253203, 253205,
                       253197, 253205, 253201, 253205, 253201, 253205, 253203, 253205, 253201, 253205,
                       253197, 253205, 253197, 253202, 253205, 253197, 253205, 253197, 253205, 253197,
                       253205, 253197, 253205, 253197, 253202, 253197, 253205, 253197, 253205, 253197,
                       253205, 253201, 253205],
        'means': [3, -20, 20, -4.8, -50.6, -20.7, -57.2, 0.9, -12.1, 2.7, -72.4, -5.1, -58.9, 2.9,
                  -56.3, 9, -14.9, 1.2, -45.9, 8.3, -61, 0.8, -59.4, -18.4, 7.1, -57.4, -0.1, -62,
                  -1, -55.8, 4.4, -54.35, 3.17, -56, -20.3, -48.2, -2.3, -57.1, 6.3, -65.7, 2.6,
                  -59.5, 0.9],
        'standard_deviations': [22, 29, 20.9, 21.5, 30.3, 29.4, 22.7, 21.6, 22, 27.9, 17.2, 17.3,
                                24.3, 24.2, 24.2, 21, 22, 27.9, 47.9, 47.8, 27.4, 27.9, 28.7, 26,
                                27.4, 28.4, 28.7, 24.1, 28, 27.8, 28.1, 23.5, 22.8, 30.1, 28.8,
                                27.8, 28.1, 29.6, 29.3, 31.2, 27, 26.4, 26.4],
        'sample_sizes': [54, 50, 26, 49, 467, 240, 158, 158, 522, 257, 29, 31, 168, 165, 96, 56,
                         1397, 707, 810, 807, 1530, 780, 1117, 221, 558, 384, 156, 964, 954, 602,
                         750, 599, 302, 403, 208, 205, 106, 97, 102, 159, 82, 781, 780],
    }


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================

@pytest.fixture
def default_config():
    """Get default analysis configuration."""
    from Synthesis.config import AnalysisConfig
    return AnalysisConfig(name="test_analysis", outcome="binary")
