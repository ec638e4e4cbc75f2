"""
Entry points for network meta-analysis on arm-level data.

Pipeline per call:
    1. Validate the parallel arm arrays (eagerly, before any numeric work)
    2. Partition the treatments into connected components
    3. For each component: build every pairwise contrast of every study,
       correct the standard errors for multi-arm studies, solve the network
       (twice for random effects, feeding the fixed-effects tau back in)
    4. Merge the components block-diagonally into one NetworkMetaAnalysis

Usage:
    >>> nma = odds_ratio_nma(studies, treatments, events, totals, random_effects=True)
    >>> nma.get_effect('A', 'B')
    >>> nma.compute_p_scores(smaller_better=False)
"""

from typing import Callable, Dict, Hashable, List, Optional, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .config import NMAConfig, DEFAULT_NMA_CONFIG
from .contrasts import Contrast, build_odds_ratio_contrasts, build_mean_difference_contrasts
from .correction import compute_corrected_standard_errors
from .graph import get_connected_components
from .results import ComparisonStatistic, NetworkMetaAnalysis
from .solver import solve_network


@dataclass
class ComponentResult:
    """Pooled estimates for one connected component (or a merge of several)."""
    treatment_effects: NDArray[np.float64]
    standard_errors: NDArray[np.float64]
    treatments: List[Hashable]
    contrasts: List[Contrast]
    q: float
    df: float


# =============================================================================
# PRECONDITIONS
# =============================================================================

def _precondition_unique_treatments(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable]
) -> None:
    arms_by_study: Dict[Hashable, List[Hashable]] = {}
    for study, treatment in zip(studies, treatments):
        arms_by_study.setdefault(study, []).append(treatment)

    for study, arm_treatments in arms_by_study.items():
        if len(arm_treatments) != len(set(arm_treatments)):
            raise ValueError(
                f"For study '{study}', arm treatments ({','.join(str(t) for t in arm_treatments)}) "
                "are not unique, as required."
            )


def _precondition_nonempty(studies: Sequence[Hashable]) -> None:
    if len(studies) == 0:
        raise ValueError("Must have 1 or more studies to perform an NMA")


def _odds_ratio_preconditions(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable],
    positive_counts: Sequence[float],
    total_counts: Sequence[float]
) -> None:
    if not (len(studies) == len(treatments) == len(positive_counts) == len(total_counts)):
        raise ValueError(
            f"Studies (n={len(studies)}), treatments (n={len(treatments)}), and count data "
            f"(nPos={len(positive_counts)}, nTotal={len(total_counts)}) do not have the same "
            "length, as required."
        )

    _precondition_nonempty(studies)

    for ix, (pc, tc) in enumerate(zip(positive_counts, total_counts)):
        if tc <= 0:
            raise ValueError(f"At row {ix}, total count ({tc}) must be positive")
        if pc < 0:
            raise ValueError(f"At row {ix}, positive count ({pc}) is negative")
        if pc > tc:
            raise ValueError(f"At row {ix}, positive count ({pc}) is greater than total count ({tc})")

    _precondition_unique_treatments(studies, treatments)


def _mean_difference_preconditions(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable],
    means: Sequence[float],
    standard_deviations: Sequence[float],
    sample_sizes: Sequence[float]
) -> None:
    if not (len(studies) == len(treatments) == len(means)
            == len(standard_deviations) == len(sample_sizes)):
        raise ValueError(
            f"Studies (n={len(studies)}), treatments (n={len(treatments)}), means (n={len(means)}), "
            f"standard deviations (n={len(standard_deviations)}), and sample sizes "
            f"(n={len(sample_sizes)}) do not have the same length, as required."
        )

    _precondition_nonempty(studies)

    for ix, (sd, n) in enumerate(zip(standard_deviations, sample_sizes)):
        if sd < 0:
            raise ValueError(f"At row {ix}, standard deviation ({sd}) is negative")
        if n <= 0:
            raise ValueError(f"At row {ix}, sample size ({n}) must be positive")

    _precondition_unique_treatments(studies, treatments)


# =============================================================================
# PER-COMPONENT ANALYSIS
# =============================================================================

def _order_treatments(contrasts: Sequence[Contrast]) -> List[Hashable]:
    """First-seen union of every treatment1, then every treatment2."""
    ordered = list(dict.fromkeys(c.treatment1 for c in contrasts))
    seen = set(ordered)
    for c in contrasts:
        if c.treatment2 not in seen:
            ordered.append(c.treatment2)
            seen.add(c.treatment2)
    return ordered


def _analyze_component(
    contrasts: List[Contrast],
    random_effects: bool,
    config: NMAConfig
) -> ComponentResult:
    """
    Solve one connected component.

    Args:
        contrasts: Every study-level contrast of the component, grouped by study
            in canonical pair order
        random_effects: Whether to re-solve with the fixed-effects tau folded in
        config: Engine settings

    Returns:
        ComponentResult; Q and df always come from the fixed-effects pass
    """
    treatments = _order_treatments(contrasts)
    index = {t: ix for ix, t in enumerate(treatments)}

    effects = [c.effect for c in contrasts]
    raw_standard_errors = [c.se for c in contrasts]
    contrast_studies = [c.study for c in contrasts]
    indices_a = [index[c.treatment1] for c in contrasts]
    indices_b = [index[c.treatment2] for c in contrasts]

    corrected = compute_corrected_standard_errors(
        raw_standard_errors, contrast_studies, rcond=config.pinv_rcond
    )
    fixed = solve_network(effects, corrected, indices_a, indices_b, contrast_studies, len(treatments))
    solution = fixed

    if random_effects:
        # DerSimonian-Laird: tau from the fixed-effects fit, then one re-solve
        corrected = compute_corrected_standard_errors(
            raw_standard_errors, contrast_studies, tau=fixed.tau, rcond=config.pinv_rcond
        )
        solution = solve_network(effects, corrected, indices_a, indices_b, contrast_studies, len(treatments))

    return ComponentResult(
        treatment_effects=solution.treatment_effects,
        standard_errors=solution.standard_errors,
        treatments=treatments,
        contrasts=list(contrasts),
        q=fixed.q,
        df=fixed.df
    )


def merge_component_results(results: Sequence[ComponentResult]) -> ComponentResult:
    """
    Combine per-component results into one block-diagonal result.

    Treatments and contrasts are concatenated and Q/df summed. Cells that
    pair treatments from different components are NaN in both matrices.

    Raises:
        ValueError: If there is nothing to merge
    """
    if len(results) == 0:
        raise ValueError("Need at least one component result to merge")

    n = sum(len(r.treatments) for r in results)
    treatment_effects = np.full((n, n), np.nan)
    standard_errors = np.full((n, n), np.nan)

    offset = 0
    for r in results:
        size = len(r.treatments)
        block = slice(offset, offset + size)
        treatment_effects[block, block] = r.treatment_effects
        standard_errors[block, block] = r.standard_errors
        offset += size

    return ComponentResult(
        treatment_effects=treatment_effects,
        standard_errors=standard_errors,
        treatments=[t for r in results for t in r.treatments],
        contrasts=[c for r in results for c in r.contrasts],
        q=float(sum(r.q for r in results)),
        df=float(sum(r.df for r in results))
    )


def _generalized_nma(
    studies: List[Hashable],
    treatments: List[Hashable],
    build_contrasts: Callable[..., List[Contrast]],
    parameters: Dict[str, list],
    comparison_statistic: ComparisonStatistic,
    random_effects: bool,
    config: NMAConfig
) -> NetworkMetaAnalysis:
    """
    Shared pipeline for every effect measure.

    Args:
        studies: Study label of each arm
        treatments: Treatment of each arm
        build_contrasts: Builds one study's contrasts from its treatments and
            the per-arm ``parameters`` (passed as keyword arguments)
        parameters: Per-arm arrays, sliced per study before ``build_contrasts``
        comparison_statistic: Effect measure of the result
        random_effects: Whether to fit a random-effects model
        config: Engine settings

    Returns:
        NetworkMetaAnalysis over every component that yields contrasts
    """
    arms_by_study: Dict[Hashable, List[int]] = {}
    for ix, study in enumerate(studies):
        arms_by_study.setdefault(study, []).append(ix)

    component_results = []
    for component in get_connected_components(studies, treatments):
        members = set(component)
        component_studies = list(dict.fromkeys(
            study for study, treatment in zip(studies, treatments) if treatment in members
        ))

        contrasts = []
        for study in component_studies:
            arm_ixs = arms_by_study[study]
            study_parameters = {name: [values[ix] for ix in arm_ixs] for name, values in parameters.items()}
            contrasts.extend(build_contrasts(study, [treatments[ix] for ix in arm_ixs], **study_parameters))

        if contrasts:
            component_results.append(_analyze_component(contrasts, random_effects, config))

    if not component_results:
        raise ValueError(
            f"No contrasts can be formed: all {len(set(studies))} studies have a single arm"
        )

    merged = merge_component_results(component_results)
    return NetworkMetaAnalysis(
        merged.treatment_effects,
        merged.standard_errors,
        merged.treatments,
        merged.contrasts,
        comparison_statistic=comparison_statistic,
        q=merged.q,
        df=merged.df,
        config=config
    )


# =============================================================================
# PUBLIC ENTRY POINTS
# =============================================================================

def odds_ratio_nma(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable],
    positive_counts: Sequence[float],
    total_counts: Sequence[float],
    random_effects: bool = False,
    config: Optional[NMAConfig] = None
) -> NetworkMetaAnalysis:
    """
    Network meta-analysis of binomial outcomes on the odds-ratio scale.

    Log odds ratios are pooled; effects and interval bounds are reported
    exponentiated. Each row of the inputs is one study arm.

    Args:
        studies: Label of the study each arm belongs to
        treatments: Treatment applied in each arm (unique within a study)
        positive_counts: Events observed in each arm
        total_counts: Units in each arm
        random_effects: Fit a DerSimonian-Laird random-effects model
        config: Engine settings (default: DEFAULT_NMA_CONFIG)

    Returns:
        NetworkMetaAnalysis

    Raises:
        ValueError: On empty or inconsistent inputs, duplicated treatments within
            a study, or when no study has two or more arms

    Example:
        >>> nma = odds_ratio_nma([1, 1, 2, 2, 2], ['A', 'C', 'B', 'C', 'D'],
        ...                      [9, 23, 10, 11, 12], [140, 140, 138, 78, 85])
        >>> nma.get_treatments()
        ['A', 'B', 'C', 'D']
    """
    config = config or DEFAULT_NMA_CONFIG
    studies, treatments = list(studies), list(treatments)
    positive_counts, total_counts = list(positive_counts), list(total_counts)

    _odds_ratio_preconditions(studies, treatments, positive_counts, total_counts)

    def build(study, study_treatments, positive_counts, total_counts):
        return build_odds_ratio_contrasts(
            study, study_treatments, positive_counts, total_counts, increment=config.anscombe_increment
        )

    return _generalized_nma(
        studies,
        treatments,
        build,
        {'positive_counts': positive_counts, 'total_counts': total_counts},
        ComparisonStatistic.OR,
        random_effects,
        config
    )


def mean_difference_nma(
    studies: Sequence[Hashable],
    treatments: Sequence[Hashable],
    means: Sequence[float],
    standard_deviations: Sequence[float],
    sample_sizes: Sequence[float],
    random_effects: bool = False,
    config: Optional[NMAConfig] = None
) -> NetworkMetaAnalysis:
    """
    Network meta-analysis of continuous outcomes on the mean-difference scale.

    Args:
        studies: Label of the study each arm belongs to
        treatments: Treatment applied in each arm (unique within a study)
        means: Outcome mean in each arm
        standard_deviations: Outcome standard deviation in each arm
        sample_sizes: Units measured in each arm
        random_effects: Fit a DerSimonian-Laird random-effects model
        config: Engine settings (default: DEFAULT_NMA_CONFIG)

    Returns:
        NetworkMetaAnalysis

    Raises:
        ValueError: On empty or inconsistent inputs, duplicated treatments within
            a study, or when no study has two or more arms
    """
    config = config or DEFAULT_NMA_CONFIG
    studies, treatments = list(studies), list(treatments)
    means, standard_deviations, sample_sizes = list(means), list(standard_deviations), list(sample_sizes)

    _mean_difference_preconditions(studies, treatments, means, standard_deviations, sample_sizes)

    return _generalized_nma(
        studies,
        treatments,
        build_mean_difference_contrasts,
        {'means': means, 'standard_deviations': standard_deviations, 'sample_sizes': sample_sizes},
        ComparisonStatistic.MD,
        random_effects,
        config
    )
