"""
Weighted least-squares network solver (graph-theoretical approach).

For one connected component, observed contrasts are projected onto the
space of network-consistent effects through the hat matrix
H = B L⁺ Bᵗ W, where B is the contrast incidence matrix, W the diagonal
inverse-variance weights and L = Bᵗ W B the weighted Laplacian. Effects for
pairs without direct evidence are closed through shared comparators, and
standard errors come from the effective resistances of L⁺.

References:
- Rücker G (2012): Network meta-analysis, electrical networks and graph
  theory. Research Synthesis Methods 3:312-324
- DerSimonian R, Laird N (1986): Meta-analysis in clinical trials.
  Controlled Clinical Trials 7:177-188
"""

from typing import Dict, Hashable, List, Optional, Sequence
from collections import deque
from dataclasses import dataclass
import warnings

import numpy as np
from numpy.typing import NDArray


@dataclass
class NetworkSolution:
    """Output of one solver pass over a connected component."""
    consistent_effects: NDArray[np.float64]
    treatment_effects: NDArray[np.float64]
    standard_errors: NDArray[np.float64]
    q: float
    df: float
    tau: float


def build_observed_contrast_matrix(
    treatment_indices_a: Sequence[int],
    treatment_indices_b: Sequence[int],
    n_treatments: int
) -> NDArray[np.float64]:
    """
    Build the incidence matrix of the observed contrasts.

    Returns:
        (m, n_treatments) matrix with +1 at treatment A's column and -1 at
        treatment B's column of each row
    """
    m = len(treatment_indices_a)
    B = np.zeros((m, n_treatments))
    B[np.arange(m), treatment_indices_a] = 1
    B[np.arange(m), treatment_indices_b] = -1
    return B


def fill_indirect_evidence(effects: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Close a partially known matrix of pairwise effects through shared comparators.

    A breadth-first walk over the known cells places every treatment on a
    common scale relative to the first treatment of its group, so that
    (i, j) = position(i) - position(j). Known cells are kept as given.

    Args:
        effects: Square matrix with NaN for unknown cells; the known cells
            must be consistent (e.g. fitted network effects)

    Returns:
        A filled copy; cells linking treatments that share no chain of known
        comparisons stay NaN
    """
    known = np.array(effects, dtype=float, copy=True)
    n = known.shape[0]

    neighbours: Dict[int, List[int]] = {i: [] for i in range(n)}
    for i, j in zip(*np.nonzero(~np.isnan(known))):
        neighbours[int(i)].append(int(j))
        neighbours[int(j)].append(int(i))

    position = np.full(n, np.nan)
    group = np.full(n, -1)
    for root in range(n):
        if group[root] >= 0:
            continue
        group[root] = root
        position[root] = 0.0
        queue = deque([root])
        while queue:
            i = queue.popleft()
            for j in neighbours[i]:
                if group[j] >= 0:
                    continue
                group[j] = root
                # known (i, j) = position(i) - position(j), or (j, i) the other way
                if not np.isnan(known[i, j]):
                    position[j] = position[i] - known[i, j]
                else:
                    position[j] = position[i] + known[j, i]
                queue.append(j)

    filled = position[:, None] - position[None, :]
    filled[group[:, None] != group[None, :]] = np.nan
    return np.where(np.isnan(known), filled, known)


def _count_arms(studies: Sequence[Hashable]) -> Dict[Hashable, float]:
    """Arms per study, recovered from the number of contrasts it contributed."""
    contrast_counts: Dict[Hashable, int] = {}
    for study in studies:
        contrast_counts[study] = contrast_counts.get(study, 0) + 1
    return {
        study: (1 + np.sqrt(8 * count + 1)) / 2
        for study, count in contrast_counts.items()
    }


def compute_degrees_of_freedom(studies: Sequence[Hashable]) -> float:
    """
    Sum of (arms - 1) over studies, accumulated as 2 / arms per contrast.

    Args:
        studies: Study label of each contrast

    Returns:
        Degrees of freedom before subtracting the treatment parameters
    """
    arms = _count_arms(studies)
    return float(2 * sum(1 / arms[study] for study in studies))


def solve_network(
    effects: Sequence[float],
    standard_errors: Sequence[float],
    treatment_indices_a: Sequence[int],
    treatment_indices_b: Sequence[int],
    studies: Sequence[Hashable],
    n_treatments: Optional[int] = None
) -> NetworkSolution:
    """
    Estimate network-consistent effects for one connected component.

    Args:
        effects: Observed contrast effects (additive scale)
        standard_errors: Multi-arm corrected standard errors of the contrasts
        treatment_indices_a: Index of each contrast's first treatment
        treatment_indices_b: Index of each contrast's second treatment
        studies: Study label of each contrast
        n_treatments: Number of treatments (default: distinct indices used)

    Returns:
        NetworkSolution with the consistent contrast effects, the full pairwise
        effect and standard-error matrices, Cochran's Q, its degrees of freedom
        and the DerSimonian-Laird tau

    Raises:
        ValueError: If the per-contrast inputs differ in length
    """
    effects = np.asarray(effects, dtype=float).flatten()
    standard_errors = np.asarray(standard_errors, dtype=float).flatten()
    m = len(effects)

    if not (m == len(standard_errors) == len(treatment_indices_a)
            == len(treatment_indices_b) == len(studies)):
        raise ValueError(
            f"Effects (n={m}), standard errors (n={len(standard_errors)}), treatment indices "
            f"(n={len(treatment_indices_a)}, n={len(treatment_indices_b)}) and studies "
            f"(n={len(studies)}) must all have the same length"
        )

    if n_treatments is None:
        n_treatments = len(set(treatment_indices_a) | set(treatment_indices_b))

    with np.errstate(divide='ignore', invalid='ignore'):
        W = np.diag(1 / standard_errors ** 2)
        B = build_observed_contrast_matrix(treatment_indices_a, treatment_indices_b, n_treatments)

        # L is singular (effects are identified up to a constant); shifting by 1/n fixes that
        L = B.T @ W @ B
        try:
            L_inv = np.linalg.inv(L - 1 / n_treatments) + 1 / n_treatments
        except np.linalg.LinAlgError:
            warnings.warn(
                f"Laplacian of a {n_treatments}-treatment component is singular; "
                "its effects are reported as NaN",
                RuntimeWarning
            )
            L_inv = np.full((n_treatments, n_treatments), np.nan)

        diagonal = np.diag(L_inv)
        R = diagonal[:, None] + diagonal[None, :] - 2 * L_inv

        H = B @ L_inv @ B.T @ W
        consistent_effects = H @ effects

        direct = np.full((n_treatments, n_treatments), np.nan)
        direct[treatment_indices_a, treatment_indices_b] = consistent_effects
        treatment_effects = fill_indirect_evidence(direct)

        standard_error_matrix = np.sqrt(R)

        residuals = effects - consistent_effects
        q = float(residuals @ W @ residuals)
        df = compute_degrees_of_freedom(studies) - (n_treatments - 1)

        same_study = np.array([[s1 == s2 for s2 in studies] for s1 in studies], dtype=float)
        E_mod = (B @ B.T) * same_study / 2
        denominator = np.trace((np.eye(m) - H) @ E_mod @ W)

    if np.isfinite(denominator) and denominator != 0 and np.isfinite(q):
        tau_squared = max(0.0, (q - df) / denominator)
    else:
        tau_squared = 0.0

    return NetworkSolution(
        consistent_effects=consistent_effects,
        treatment_effects=treatment_effects,
        standard_errors=standard_error_matrix,
        q=q,
        df=df,
        tau=float(np.sqrt(tau_squared))
    )
