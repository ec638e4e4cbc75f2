"""
Synthesis: Network Meta-Analysis

A package for pooling direct and indirect treatment comparisons across a
network of multi-arm studies with the graph-theoretical (electrical network)
method.

Modules:
    nma: Entry points (odds ratio / mean difference) and component merging
    results: NetworkMetaAnalysis queries (effects, CIs, P-scores, funnels, I²)
    graph: Evidence network and connected components
    contrasts: Study-level pairwise contrasts from arm-level data
    correction: Standard-error correction for multi-arm studies
    solver: Weighted least-squares network solver and DerSimonian-Laird tau
    statistics: Wald inference, weighted quantiles, OLS, I², report tables
    plots: Evidence network, league table, funnel and ranking figures
    config: Configuration management and reproducibility

Example:
    >>> from Synthesis import odds_ratio_nma, mean_difference_nma
    >>> from Synthesis.config import AnalysisConfig
    >>>
    >>> # Pool a binary outcome
    >>> nma = odds_ratio_nma(studies, treatments, events, totals, random_effects=True)
    >>> nma.get_effect('A', 'B')
    >>> nma.compute_inferential_statistics('A', 'B', width=0.95)
    >>>
    >>> # Rank and check heterogeneity
    >>> nma.compute_p_scores(smaller_better=False)
    >>> nma.compute_i_squared()
    >>>
    >>> # Small-study effects around one treatment
    >>> funnel = nma.compute_comparison_adjusted_effects('A')
    >>> funnel.asymmetry_p
"""

__version__ = "1.0.0"

# Entry points
from .nma import (
    odds_ratio_nma,
    mean_difference_nma,
    merge_component_results,
    ComponentResult,
)

# Results
from .results import (
    NetworkMetaAnalysis,
    ComparisonStatistic,
    StudyLevelEffect,
    PScore,
    AdjustedEffect,
    ComparisonAdjustedEffects,
)

# Network structure
from .graph import (
    build_evidence_graph,
    get_connected_components,
)

# Contrasts and correction
from .contrasts import (
    Contrast,
    build_odds_ratio_contrasts,
    build_mean_difference_contrasts,
)
from .correction import (
    build_all_pairwise_contrasts,
    correct_multiarm_variances,
    compute_corrected_standard_errors,
)

# Solver
from .solver import (
    NetworkSolution,
    build_observed_contrast_matrix,
    fill_indirect_evidence,
    compute_degrees_of_freedom,
    solve_network,
)

# Statistical analysis
from .statistics import (
    STD_NORMAL,
    InferentialStatistics,
    compute_inferential_statistics,
    weighted_quantile,
    linear_regression,
    compute_i_squared,
    interpret_i_squared,
    format_result_table,
)

# Visualization
from .plots import (
    plot_evidence_network,
    plot_league_table,
    plot_comparison_adjusted_funnel,
    plot_p_scores,
)

# Configuration and reproducibility
from .config import (
    NMAConfig,
    AnalysisConfig,
    DEFAULT_NMA_CONFIG,
    get_system_info,
    save_analysis_metadata,
    get_default_config,
)

__all__ = [
    # Version
    "__version__",

    # Entry points
    "odds_ratio_nma",
    "mean_difference_nma",
    "merge_component_results",
    "ComponentResult",

    # Results
    "NetworkMetaAnalysis",
    "ComparisonStatistic",
    "StudyLevelEffect",
    "PScore",
    "AdjustedEffect",
    "ComparisonAdjustedEffects",

    # Network structure
    "build_evidence_graph",
    "get_connected_components",

    # Contrasts and correction
    "Contrast",
    "build_odds_ratio_contrasts",
    "build_mean_difference_contrasts",
    "build_all_pairwise_contrasts",
    "correct_multiarm_variances",
    "compute_corrected_standard_errors",

    # Solver
    "NetworkSolution",
    "build_observed_contrast_matrix",
    "fill_indirect_evidence",
    "compute_degrees_of_freedom",
    "solve_network",

    # Statistics
    "STD_NORMAL",
    "InferentialStatistics",
    "compute_inferential_statistics",
    "weighted_quantile",
    "linear_regression",
    "compute_i_squared",
    "interpret_i_squared",
    "format_result_table",

    # Visualization
    "plot_evidence_network",
    "plot_league_table",
    "plot_comparison_adjusted_funnel",
    "plot_p_scores",

    # Configuration
    "NMAConfig",
    "AnalysisConfig",
    "DEFAULT_NMA_CONFIG",
    "get_system_info",
    "save_analysis_metadata",
    "get_default_config",
]
