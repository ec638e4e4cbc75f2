"""
Standard-error correction for multi-arm studies.

Contrasts taken from the same k-arm study share arms, so treating their
C(k, 2) variances as independent overstates precision. Each study is viewed
as a complete electrical network on its arms: the observed contrast
variances are effective resistances, and the correction solves for the
edge resistances that reproduce them (Rücker 2012). Those edge resistances
are the corrected variances fed to the network solver.

References:
- Rücker G (2012): Network meta-analysis, electrical networks and graph
  theory. Research Synthesis Methods 3:312-324
"""

from typing import Hashable, Sequence
import math

import numpy as np
from numpy.typing import NDArray
from scipy import linalg

from .config import DEFAULT_NMA_CONFIG


def build_all_pairwise_contrasts(n_arms: int) -> NDArray[np.float64]:
    """
    Build the incidence matrix of every pair among ``n_arms`` arms.

    Rows follow the order (0, 1), (0, 2), ..., (1, 2), ...; each row has +1 at
    the first arm and -1 at the second.

    Returns:
        (C(n, 2), n) matrix
    """
    rows = np.triu_indices(n_arms, 1)
    B = np.zeros((len(rows[0]), n_arms))
    B[np.arange(len(rows[0])), rows[0]] = 1
    B[np.arange(len(rows[0])), rows[1]] = -1
    return B


def _arms_from_pairs(n_pairs: int) -> int:
    n_arms = int(round((1 + math.sqrt(8 * n_pairs + 1)) / 2))
    if n_arms * (n_arms - 1) // 2 != n_pairs:
        raise ValueError(f"{n_pairs} contrasts cannot come from a single multi-arm study")
    return n_arms


def correct_multiarm_variances(
    variances: Sequence[float],
    rcond: float = DEFAULT_NMA_CONFIG.pinv_rcond
) -> NDArray[np.float64]:
    """
    Re-weight the contrast variances of one study for its multi-arm structure.

    Args:
        variances: Variances of the study's C(k, 2) contrasts in canonical pair order
        rcond: Singular values below ``rcond`` times the largest are treated as
            zero when inverting (near-singular directions are dropped, not amplified)

    Returns:
        Corrected variances, same length and order. Two-arm studies are
        returned unchanged.
    """
    r = np.asarray(variances, dtype=float).flatten()
    n_arms = _arms_from_pairs(len(r))

    B = build_all_pairwise_contrasts(n_arms)
    product = B.T @ np.diag(r) @ B
    R = np.diag(np.diag(product)) - product
    BtB = B.T @ B
    Lt = BtB @ R @ BtB / (-2 * n_arms ** 2)
    L = linalg.pinv(Lt, atol=0.0, rtol=rcond)

    W = np.diag(np.diag(L)) - L
    upper = np.triu_indices(n_arms, 1)

    with np.errstate(divide='ignore'):
        return 1 / W[upper]


def compute_corrected_standard_errors(
    standard_errors: Sequence[float],
    studies: Sequence[Hashable],
    tau: float = 0.0,
    rcond: float = DEFAULT_NMA_CONFIG.pinv_rcond
) -> NDArray[np.float64]:
    """
    Correct every contrast's standard error, one study at a time.

    Args:
        standard_errors: Standard error of each contrast
        studies: Study label of each contrast; a study's contrasts must be in
            canonical pair order
        tau: Between-study standard deviation added to every variance
            (random effects); 0 for fixed effects
        rcond: Relative pseudoinverse cut-off

    Returns:
        Corrected standard errors aligned with the input
    """
    standard_errors = np.asarray(standard_errors, dtype=float).flatten()
    if len(standard_errors) != len(studies):
        raise ValueError(
            f"Standard errors ({len(standard_errors)}) and studies ({len(studies)}) must share length."
        )

    variances = standard_errors ** 2 + tau ** 2
    corrected = np.empty_like(variances)

    contrast_indices = {}
    for ix, study in enumerate(studies):
        contrast_indices.setdefault(study, []).append(ix)

    for indices in contrast_indices.values():
        corrected[indices] = correct_multiarm_variances(variances[indices], rcond=rcond)

    return np.sqrt(corrected)
