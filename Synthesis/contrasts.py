"""
Study-level pairwise contrasts built from arm-level summaries.

Every unordered pair of a study's arms becomes one contrast, directed from
the earlier arm to the later one. Effects are on an additive scale:

- log odds ratio for binomial outcomes, with an Anscombe correction added
  to all four cells
- mean difference for continuous outcomes, with the normal-approximation
  variance sd_i²/n_i + sd_j²/n_j
"""

from typing import Hashable, List, Sequence
from dataclasses import dataclass
import math


@dataclass
class Contrast:
    """One pairwise comparison observed within a single study."""
    study: Hashable
    treatment1: Hashable
    treatment2: Hashable
    effect: float
    se: float
    comparison_n: float

    def inverted(self) -> 'Contrast':
        """Same contrast seen from treatment2 (effect negated, SE unchanged)."""
        return Contrast(
            study=self.study,
            treatment1=self.treatment2,
            treatment2=self.treatment1,
            effect=-self.effect,
            se=self.se,
            comparison_n=self.comparison_n
        )


def count_pairs(n_arms: int) -> int:
    """Number of unordered pairs among ``n_arms`` arms."""
    return n_arms * (n_arms - 1) // 2


def build_odds_ratio_contrasts(
    study: Hashable,
    treatments: Sequence[Hashable],
    positive_counts: Sequence[float],
    total_counts: Sequence[float],
    increment: float = 0.5
) -> List[Contrast]:
    """
    Build all pairwise log odds ratios for one study.

    Args:
        study: Study label attached to every contrast
        treatments: Treatment of each arm
        positive_counts: Events observed in each arm
        total_counts: Units in each arm
        increment: Anscombe correction added to every cell (regardless of zero counts)

    Returns:
        List of C(k, 2) contrasts for a k-arm study
    """
    contrasts = []
    for i in range(len(treatments) - 1):
        for j in range(i + 1, len(treatments)):
            pi = positive_counts[i] + increment
            ni = total_counts[i] - positive_counts[i] + increment
            pj = positive_counts[j] + increment
            nj = total_counts[j] - positive_counts[j] + increment
            contrasts.append(Contrast(
                study=study,
                treatment1=treatments[i],
                treatment2=treatments[j],
                effect=math.log((pi / ni) / (pj / nj)),
                se=math.sqrt(1 / pi + 1 / ni + 1 / pj + 1 / nj),
                comparison_n=total_counts[i] + total_counts[j]
            ))

    return contrasts


def build_mean_difference_contrasts(
    study: Hashable,
    treatments: Sequence[Hashable],
    means: Sequence[float],
    standard_deviations: Sequence[float],
    sample_sizes: Sequence[float]
) -> List[Contrast]:
    """
    Build all pairwise mean differences for one study.

    Args:
        study: Study label attached to every contrast
        treatments: Treatment of each arm
        means: Outcome mean in each arm
        standard_deviations: Outcome standard deviation in each arm
        sample_sizes: Units in each arm

    Returns:
        List of C(k, 2) contrasts for a k-arm study
    """
    contrasts = []
    for i in range(len(treatments) - 1):
        for j in range(i + 1, len(treatments)):
            # CLT: variance of a difference of independent means
            variance = (standard_deviations[i] ** 2 / sample_sizes[i]
                        + standard_deviations[j] ** 2 / sample_sizes[j])
            contrasts.append(Contrast(
                study=study,
                treatment1=treatments[i],
                treatment2=treatments[j],
                effect=means[i] - means[j],
                se=math.sqrt(variance),
                comparison_n=sample_sizes[i] + sample_sizes[j]
            ))

    return contrasts
