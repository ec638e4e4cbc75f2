"""
Queryable results of a network meta-analysis.

:class:`NetworkMetaAnalysis` holds the pooled pairwise effect and standard
error matrices (additive scale) for every treatment in the network, together
with the study-level contrasts that fed them, and derives the inferential
artifacts from them: confidence intervals, P-score rankings, study-level
effects, comparison-adjusted funnel data with an Egger test, and I².

Cells linking treatments of different connected components are NaN: there
is no evidence between them, so their effects and statistics are NaN too.
"""

from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from .config import NMAConfig, DEFAULT_NMA_CONFIG
from .contrasts import Contrast
from .statistics import (
    STD_NORMAL,
    InferentialStatistics,
    compute_inferential_statistics,
    compute_i_squared,
    linear_regression,
)


# =============================================================================
# EFFECT SCALES
# =============================================================================

class ComparisonStatistic(Enum):
    """Statistic used to compare two arms, with its back-transformation."""
    OR = "odds_ratio"
    MD = "mean_difference"

    @property
    def transformation(self) -> Callable[[float], float]:
        """Maps additive-scale effects to the reporting scale."""
        if self is ComparisonStatistic.OR:
            return np.exp
        return lambda x: x


# =============================================================================
# DATA CLASSES FOR RESULTS
# =============================================================================

@dataclass
class StudyLevelEffect:
    """A study's own (direct) effect with normal-approximation inferentials."""
    study: Hashable
    treatment1: Hashable
    treatment2: Hashable
    effect: float
    lower: float
    upper: float
    p: float
    comparison_n: float


@dataclass
class PScore:
    """Ranking score of a treatment; higher is better."""
    treatment: Hashable
    p_score: float

    def __repr__(self) -> str:
        return f"{self.treatment}: {self.p_score:.4f}"


@dataclass
class AdjustedEffect:
    """A study effect centred on the network estimate of the same comparison."""
    study: Hashable
    treatment1: Hashable
    treatment2: Hashable
    effect: float
    se: float


@dataclass
class ComparisonAdjustedEffects:
    """Data for a comparison-adjusted funnel plot."""
    effects: List[AdjustedEffect]
    left_funnel: List[Tuple[float, float]]
    right_funnel: List[Tuple[float, float]]
    asymmetry_p: Optional[float] = None
    asymmetry_test: Optional[str] = None


# =============================================================================
# NETWORK META-ANALYSIS
# =============================================================================

class NetworkMetaAnalysis:
    """
    A holder of the results of a network meta-analysis.

    Args:
        treatment_effects: Square matrix of pooled effects (additive scale);
            cell (i, j) is treatment i vs. treatment j
        standard_errors: Square matrix of standard errors of those effects
        treatments: Treatments labelling rows and columns, in order
        study_level_effects: Contrasts observed in the individual studies
        comparison_statistic: Effect measure, controls back-transformation
        q: Cochran's Q of the fixed-effects fit
        df: Degrees of freedom of Q
        config: Engine settings (funnel resolution, Egger minimum)

    Example:
        >>> nma = mean_difference_nma(studies, treatments, means, sds, ns)
        >>> nma.get_effect(1, 2)
        -2.8185...
        >>> nma.compute_inferential_statistics(1, 2, 0.95)
        [-4.0..., -1.5...] (p=0.000...)
    """

    def __init__(
        self,
        treatment_effects: NDArray[np.float64],
        standard_errors: NDArray[np.float64],
        treatments: Sequence[Hashable],
        study_level_effects: Sequence[Contrast] = (),
        comparison_statistic: ComparisonStatistic = ComparisonStatistic.MD,
        q: float = np.nan,
        df: float = np.nan,
        config: NMAConfig = DEFAULT_NMA_CONFIG
    ):
        self._treatment_effects = np.asarray(treatment_effects, dtype=float)
        self._standard_errors = np.asarray(standard_errors, dtype=float)
        self._treatments = list(treatments)
        self._index = {treatment: ix for ix, treatment in enumerate(self._treatments)}
        self._study_level_effects = list(study_level_effects)
        self._statistic = comparison_statistic
        self._transformation = comparison_statistic.transformation
        self._q = q
        self._df = df
        self._config = config

    def __repr__(self) -> str:
        return (f"NetworkMetaAnalysis({self._statistic.value}, {len(self._treatments)} treatments, "
                f"{len(self._study_level_effects)} contrasts)")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def comparison_statistic(self) -> ComparisonStatistic:
        return self._statistic

    @property
    def q_statistic(self) -> float:
        """Cochran's Q summed over components."""
        return self._q

    @property
    def degrees_of_freedom(self) -> float:
        return self._df

    @property
    def study_level_contrasts(self) -> List[Contrast]:
        """The contrasts that fed the model, on the additive scale."""
        return list(self._study_level_effects)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _indices(self, treatment_a: Hashable, treatment_b: Hashable) -> Tuple[int, int]:
        missing = [t for t in (treatment_a, treatment_b) if t not in self._index]
        if missing:
            raise ValueError(
                f"Requesting NMA for non-present treatment(s): {', '.join(str(t) for t in missing)}"
            )
        return self._index[treatment_a], self._index[treatment_b]

    def get_treatments(self) -> List[Hashable]:
        """Treatments in the model, in row/column order."""
        return list(self._treatments)

    def get_effect(self, treatment_a: Hashable, treatment_b: Hashable) -> float:
        """
        Estimated effect of ``treatment_a`` vs. ``treatment_b`` on the reporting scale.

        Returns NaN when the treatments are in different components.
        """
        i, j = self._indices(treatment_a, treatment_b)
        return float(self._transformation(self._treatment_effects[i, j]))

    def compute_inferential_statistics(
        self,
        treatment_a: Hashable,
        treatment_b: Hashable,
        width: float = 0.95,
        null_effect: float = 0.0
    ) -> InferentialStatistics:
        """
        Two-sided Wald test and confidence interval for a pooled comparison.

        Args:
            treatment_a: First treatment
            treatment_b: Second treatment
            width: Width of the confidence interval
            null_effect: Null hypothesis on the additive scale (e.g. a log OR)

        Returns:
            InferentialStatistics; bounds are back-transformed individually
        """
        i, j = self._indices(treatment_a, treatment_b)
        return compute_inferential_statistics(
            self._treatment_effects[i, j],
            self._standard_errors[i, j],
            self._transformation,
            width,
            null_effect
        )

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    def compute_p_scores(self, smaller_better: bool) -> List[PScore]:
        """
        Compute P-scores (the frequentist analogue of SUCRA) for every treatment.

        Each treatment's score averages, over the other treatments, the
        one-sided probability that it is better. Comparisons without evidence
        (NaN) are left out of the average rather than counted as zero, so a
        treatment is still ranked against treatments of other components
        through whatever comparisons it does have.

        Args:
            smaller_better: Whether a lower effect (OR, mean, ...) is better

        Returns:
            PScore list sorted by score, best first
        """
        scores = []
        n = len(self._treatments)
        for i in range(n):
            one_sided = []
            for j in range(n):
                te = self._treatment_effects[i, j]
                se = self._standard_errors[i, j]
                weight = 0.5 if te == 0 else 1.0 if te > 0 else 0.0
                p = compute_inferential_statistics(te, se, self._transformation).p
                # two-sided -> one-sided
                if smaller_better:
                    one_sided.append(weight * p / 2 + (1 - weight) * (1 - p / 2))
                else:
                    one_sided.append(weight * (1 - p / 2) + (1 - weight) * p / 2)

            one_sided = np.array(one_sided)
            present = np.count_nonzero(~np.isnan(one_sided))
            score = np.nansum(one_sided) / present if present else np.nan
            scores.append(PScore(treatment=self._treatments[i], p_score=float(score)))

        return sorted(scores, key=lambda s: s.p_score, reverse=True)

    # -------------------------------------------------------------------------
    # Study-level evidence
    # -------------------------------------------------------------------------

    def _directed_contrasts(self, treatment: Hashable) -> List[Contrast]:
        """Study contrasts touching ``treatment``, oriented so it is treatment1."""
        if treatment not in self._index:
            raise ValueError(f"Requesting NMA for non-present treatment(s): {treatment}")

        directional = [c for c in self._study_level_effects if c.treatment1 == treatment]
        inverted = [c.inverted() for c in self._study_level_effects if c.treatment2 == treatment]

        return directional + inverted

    def compute_study_level_effects(
        self,
        treatment: Hashable,
        width: float = 0.95
    ) -> List[StudyLevelEffect]:
        """
        Direct effects of the individual studies involving ``treatment``.

        Inferentials use each study's own standard error (no network adjustment).
        Contrasts where ``treatment`` was the first arm come first, followed by
        the inverted ones.
        """
        results = []
        for c in self._directed_contrasts(treatment):
            inferentials = compute_inferential_statistics(c.effect, c.se, self._transformation, width)
            results.append(StudyLevelEffect(
                study=c.study,
                treatment1=c.treatment1,
                treatment2=c.treatment2,
                effect=float(self._transformation(c.effect)),
                lower=inferentials.lower,
                upper=inferentials.upper,
                p=inferentials.p,
                comparison_n=c.comparison_n
            ))
        return results

    def compute_comparison_adjusted_effects(
        self,
        treatment: Hashable,
        level: float = 0.95
    ) -> ComparisonAdjustedEffects:
        """
        Build a comparison-adjusted funnel plot around ``treatment``.

        Each adjusted effect is the network estimate of a comparison minus the
        study's own effect, on the additive scale. The network estimate includes
        indirect evidence, which departs from the usual direct-only centring.
        Funnel boundaries span standard errors from 0 to the largest observed.
        With enough studies an Egger regression of the reported adjusted
        effect/SE on 1/SE tests for funnel asymmetry; otherwise the asymmetry
        fields are None.

        Args:
            treatment: Reference treatment (always treatment1 in the output)
            level: Confidence level of the funnel boundaries

        Returns:
            ComparisonAdjustedEffects
        """
        contrasts = self._directed_contrasts(treatment)

        adjusted = []
        for c in contrasts:
            i, j = self._index[c.treatment1], self._index[c.treatment2]
            adjusted.append(self._treatment_effects[i, j] - c.effect)
        adjusted = np.array(adjusted, dtype=float)
        ses = np.array([c.se for c in contrasts], dtype=float)

        effects = [
            AdjustedEffect(
                study=c.study,
                treatment1=c.treatment1,
                treatment2=c.treatment2,
                effect=float(self._transformation(a)),
                se=c.se
            )
            for c, a in zip(contrasts, adjusted)
        ]

        z_crit = STD_NORMAL.ppf(1 - (1 - level) / 2)
        max_se = float(np.max(ses)) if len(ses) else 0.0
        funnel_ses = np.linspace(0, max_se, self._config.funnel_points)
        left_funnel = [(float(self._transformation(-z_crit * se)), float(se)) for se in funnel_ses]
        right_funnel = [(float(self._transformation(z_crit * se)), float(se)) for se in funnel_ses]

        result = ComparisonAdjustedEffects(
            effects=effects,
            left_funnel=left_funnel,
            right_funnel=right_funnel
        )

        if len(adjusted) >= self._config.min_asymmetry_studies:
            reported = np.array([e.effect for e in effects])
            regression = linear_regression(reported / ses, 1 / ses)
            result.asymmetry_p = regression['intercept_p']
            result.asymmetry_test = 'Egger'

        return result

    # -------------------------------------------------------------------------
    # Heterogeneity
    # -------------------------------------------------------------------------

    def compute_i_squared(self, width: float = 0.95) -> Dict[str, Optional[float]]:
        """I² of the network with Higgins-Thompson confidence limits."""
        return compute_i_squared(self._q, self._df, width)

    def compute_q_test(self) -> Dict[str, float]:
        """Cochran's Q test for heterogeneity/inconsistency."""
        if self._df > 0 and np.isfinite(self._q):
            p = float(stats.chi2.sf(self._q, self._df))
        else:
            p = np.nan
        return {'q': float(self._q), 'df': float(self._df), 'p': p}
