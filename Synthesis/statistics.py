"""
Statistical primitives shared by the network meta-analysis modules.

This module provides:
- Normal-theory (Wald) confidence intervals and two-sided p-values
- Weighted quantiles (type 7)
- Ordinary least squares with coefficient t-tests (used by the Egger test)
- I² heterogeneity with Higgins-Thompson confidence limits
- Markdown result tables

References:
- Weighted quantiles: https://aakinshin.net/posts/weighted-quantiles/
- I² intervals: Higgins & Thompson (2002), Statistics in Medicine 21:1539-1558
- Egger test: Egger et al. (1997), BMJ 315:629-634
"""

from typing import Callable, Dict, List, Optional, Sequence
from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray
from scipy import stats


STD_NORMAL = stats.norm(0, 1)


# =============================================================================
# DATA CLASSES FOR RESULTS
# =============================================================================

@dataclass
class InferentialStatistics:
    """Container for a two-sided Wald test and its confidence interval."""
    p: float
    lower: float
    upper: float

    def __repr__(self) -> str:
        return f"[{self.lower:.4f}, {self.upper:.4f}] (p={self.p:.6f})"

    def contains(self, value: float) -> bool:
        """Check if a value falls within the CI."""
        return self.lower <= value <= self.upper


def _identity(x):
    return x


# =============================================================================
# CONFIDENCE INTERVALS AND TESTS
# =============================================================================

def compute_inferential_statistics(
    effect: float,
    standard_error: float,
    transformation: Callable[[float], float] = _identity,
    width: float = 0.95,
    null_effect: float = 0.0
) -> InferentialStatistics:
    """
    Compute a confidence interval and two-sided p-value from a Gaussian sampling distribution.

    The interval is built on the additive scale and each bound is then passed
    through ``transformation``, so intervals for ratio measures are asymmetric
    once exponentiated.

    Args:
        effect: Observed effect on the additive scale (e.g. a log odds ratio)
        standard_error: Standard error of ``effect``
        transformation: Applied to the interval bounds (e.g. ``np.exp``)
        width: Width of the confidence interval, in (0, 1)
        null_effect: Effect under the null hypothesis (additive scale)

    Returns:
        InferentialStatistics with p, lower, upper. A zero standard error
        yields p = NaN.

    Example:
        >>> compute_inferential_statistics(5, 2, width=0.95)
        [1.0801, 8.9199] (p=0.012419)
    """
    alpha = 1 - width
    z_crit = STD_NORMAL.ppf(1 - alpha / 2)

    with np.errstate(divide='ignore', invalid='ignore'):
        lower = effect - z_crit * standard_error
        upper = effect + z_crit * standard_error
        z = np.divide(np.float64(effect) - null_effect, np.float64(standard_error))
        p = 2 * (1 - STD_NORMAL.cdf(np.abs(z)))

        return InferentialStatistics(
            p=float(p),
            lower=float(transformation(lower)),
            upper=float(transformation(upper))
        )


# =============================================================================
# WEIGHTED QUANTILES
# =============================================================================

def _type7_cdf(u: float, n: int, h: float) -> float:
    """CDF of the type 7 quantile kernel evaluated at probability ``u``."""
    if u < 0 or u > 1:
        raise ValueError(f"u must be a probability, got {u}")

    if u < (h - 1) / n:
        return 0.0
    elif u <= h / n:
        return u * n - h + 1
    else:
        return 1.0


def weighted_quantile(
    x: Sequence[float],
    w: Sequence[float],
    ps: Sequence[float]
) -> List[float]:
    """
    Compute type 7 weighted quantiles.

    With equal weights this agrees with ``np.quantile(x, ps)`` (linear
    interpolation).

    Args:
        x: Observations
        w: Non-negative weights, one per observation
        ps: Probabilities in [0, 1]

    Returns:
        List with one quantile per entry of ``ps``
    """
    x = np.asarray(x, dtype=float).flatten()
    w = np.asarray(w, dtype=float).flatten()

    if len(x) != len(w):
        raise ValueError(f"Arrays must have same length: {len(x)} vs {len(w)}")

    order = np.argsort(x, kind='stable')
    ordered_x = x[order]
    cumulative = np.concatenate([[0.0], np.cumsum(w[order])])
    total = cumulative[-1]
    n = len(ordered_x)

    quantiles = []
    for p in ps:
        h = p * (n - 1) + 1
        kernel_weights = np.array([
            _type7_cdf(cumulative[i + 1] / total, n, h) - _type7_cdf(cumulative[i] / total, n, h)
            for i in range(n)
        ])
        quantiles.append(float(np.sum(ordered_x * kernel_weights)))

    return quantiles


# =============================================================================
# LINEAR REGRESSION
# =============================================================================

def linear_regression(
    y: NDArray[np.float64],
    x: NDArray[np.float64]
) -> Dict[str, float]:
    """
    Fit y = intercept + slope * x by least squares and t-test both coefficients against 0.

    Args:
        y: Response
        x: Single predictor

    Returns:
        Dict with 'intercept', 'intercept_se', 'intercept_p', 'slope', 'slope_se',
        'slope_p' and 'df' (residual degrees of freedom)
    """
    y = np.asarray(y, dtype=float).flatten()
    x = np.asarray(x, dtype=float).flatten()

    if len(x) != len(y):
        raise ValueError(f"Arrays must have same length: {len(x)} vs {len(y)}")
    if len(x) <= 2:
        raise ValueError(f"Too few observations to fit a slope + intercept, got {len(x)}")

    fit = stats.linregress(x, y)
    df = len(x) - 2

    with np.errstate(divide='ignore', invalid='ignore'):
        t_intercept = fit.intercept / fit.intercept_stderr
    intercept_p = 2 * stats.t.sf(np.abs(t_intercept), df=df)

    return {
        'intercept': float(fit.intercept),
        'intercept_se': float(fit.intercept_stderr),
        'intercept_p': float(intercept_p),
        'slope': float(fit.slope),
        'slope_se': float(fit.stderr),
        'slope_p': float(fit.pvalue),
        'df': df
    }


# =============================================================================
# HETEROGENEITY
# =============================================================================

def compute_i_squared(
    q: float,
    df: float,
    width: float = 0.95
) -> Dict[str, Optional[float]]:
    """
    Convert Cochran's Q into I² with a confidence interval.

    The interval is computed for log(H), H = sqrt(Q / df), and mapped back
    through I² = (H² - 1) / H² with H floored at 1.

    Args:
        q: Cochran's Q
        df: Degrees of freedom of Q
        width: Confidence level

    Returns:
        Dict with 'i2', 'lower', 'upper'. When df <= 0 all three are None; when
        df <= 1 the standard error of log(H) is undefined and only 'i2' is returned.
    """
    if df <= 0 or not np.isfinite(q):
        return {'i2': None, 'lower': None, 'upper': None}

    k = df + 1
    with np.errstate(divide='ignore'):
        log_h = np.log(np.sqrt(q / df))
    i2 = _h_to_i_squared(max(np.exp(log_h), 1.0))

    if k <= 2:
        return {'i2': i2}

    if q > k:
        se_log_h = 0.5 * (np.log(q) - np.log(k - 1)) / (np.sqrt(2 * q) - np.sqrt(2 * k - 3))
    else:
        se_log_h = np.sqrt(1 / (2 * (k - 2)) * (1 - 1 / (3 * (k - 2) ** 2)))

    z_crit = STD_NORMAL.ppf(1 - (1 - width) / 2)
    lower_h = max(np.exp(log_h - z_crit * se_log_h), 1.0)
    upper_h = max(np.exp(log_h + z_crit * se_log_h), 1.0)

    return {
        'i2': i2,
        'lower': _h_to_i_squared(lower_h),
        'upper': _h_to_i_squared(upper_h)
    }


def _h_to_i_squared(h: float) -> float:
    return float((h ** 2 - 1) / h ** 2)


def interpret_i_squared(i2: float) -> str:
    """Interpret I² heterogeneity statistic."""
    if i2 < 0.25:
        return "low heterogeneity"
    elif i2 < 0.50:
        return "moderate heterogeneity"
    elif i2 < 0.75:
        return "substantial heterogeneity"
    else:
        return "considerable heterogeneity"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_result_table(
    rows: List[Dict],
    precision: int = 3
) -> str:
    """
    Format comparison results as a markdown table for reports.

    Args:
        rows: Dicts with 'comparison', 'effect', 'lower', 'upper' and 'p'
        precision: Decimal places

    Returns:
        Markdown table string
    """
    lines = ["| Comparison | Effect | 95% CI | p-value |",
             "|------------|--------|--------|---------|"]

    for row in rows:
        effect = row.get('effect')
        lower = row.get('lower')
        upper = row.get('upper')
        p_val = row.get('p')

        if isinstance(effect, float) and np.isfinite(effect):
            effect_str = f"{effect:.{precision}f}"
        else:
            effect_str = "-"

        if isinstance(lower, float) and isinstance(upper, float) and np.isfinite(lower) and np.isfinite(upper):
            ci_str = f"[{lower:.{precision}f}, {upper:.{precision}f}]"
        else:
            ci_str = "-"

        if isinstance(p_val, float) and np.isfinite(p_val):
            p_str = f"{p_val:.{precision+1}f}" if p_val >= 0.001 else "<0.001"
        else:
            p_str = "-"

        lines.append(f"| {row.get('comparison', '')} | {effect_str} | {ci_str} | {p_str} |")

    return "\n".join(lines)
