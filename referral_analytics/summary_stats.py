# -*- coding: utf-8 -*-

"""
Null-safe descriptive statistics.

Missing and non-finite inputs are dropped, never treated as zero. Anything
undefined (empty input, too few observations, zero spread) comes back as
None rather than NaN or an exception.
"""

import math
import numbers
import warnings
from collections import Counter

import numpy as np
from scipy import stats
from statsmodels.stats.proportion import proportion_confint, proportions_ztest


def _finite(value) -> bool:
    return (
        isinstance(value, numbers.Number)
        and not isinstance(value, complex)
        and math.isfinite(value)
    )


def finite_values(values) -> np.ndarray:
    """Finite numeric entries as a float array."""
    return np.asarray([float(v) for v in values if _finite(v)], dtype=float)


# ============================================================================
# DESCRIPTIVE
# ============================================================================

def mean(values) -> float | None:
    xs = finite_values(values)
    if not xs.size:
        return None
    return float(xs.mean())


def median(values) -> float | None:
    """Average of the middle two on an even count."""
    xs = finite_values(values)
    if not xs.size:
        return None
    return float(np.median(xs))


def std(values) -> float | None:
    """Sample standard deviation (n - 1); None below two observations."""
    xs = finite_values(values)
    if xs.size < 2:
        return None
    return float(xs.std(ddof=1))


def cohen_d(a, b) -> float | None:
    """Standardized mean difference a - b over the pooled standard deviation."""
    xs = finite_values(a)
    ys = finite_values(b)
    if xs.size < 2 or ys.size < 2:
        return None
    sx = xs.std(ddof=1)
    sy = ys.std(ddof=1)
    pooled = math.sqrt(((xs.size - 1) * sx ** 2 + (ys.size - 1) * sy ** 2) / (xs.size + ys.size - 2))
    if not math.isfinite(pooled) or pooled == 0:
        return None
    return float((xs.mean() - ys.mean()) / pooled)


def pearson(x, y) -> float | None:
    """Correlation over pairwise-complete observations; None below three pairs."""
    pairs = [(float(a), float(b)) for a, b in zip(x, y) if _finite(a) and _finite(b)]
    if len(pairs) < 3:
        return None
    xs = np.asarray([p[0] for p in pairs])
    ys = np.asarray([p[1] for p in pairs])
    sx = xs.std(ddof=1)
    sy = ys.std(ddof=1)
    if not sx or not sy:
        return None
    cov = ((xs - xs.mean()) * (ys - ys.mean())).sum() / (len(pairs) - 1)
    return float(cov / (sx * sy))


def top_k(values, k: int | None = None) -> list:
    """[(value, count), ...] by count descending; ties keep first-seen order."""
    return Counter(values).most_common(k)


def correlation_matrix(vectors: dict) -> tuple:
    """(labels, matrix) of pairwise Pearson correlations, None where undefined."""
    labels = list(vectors)
    matrix = [[pearson(vectors[a], vectors[b]) for b in labels] for a in labels]
    return labels, matrix


def histogram(values, bins: int = 20) -> list:
    """Chart-ready bins [{"start", "end", "count"}] over the finite values."""
    xs = finite_values(values)
    if not xs.size:
        return []
    counts, edges = np.histogram(xs, bins=bins)
    return [
        {"start": float(edges[i]), "end": float(edges[i + 1]), "count": int(counts[i])}
        for i in range(len(counts))
    ]


# ============================================================================
# INFERENCE
# ============================================================================

def ratio(numerator, denominator) -> float | None:
    """numerator / denominator, None when the denominator is zero."""
    if not denominator:
        return None
    return numerator / denominator


def rate_ci(successes, n, alpha=0.05, method="wilson"):
    """Rate and 95% CI (Wilson by default); (None, None) when undefined."""
    if n <= 0 or successes < 0 or successes > n:
        return None, None
    low, high = proportion_confint(successes, n, alpha=alpha, method=method)
    return successes / n, (float(low), float(high))


def ztest_two_proportions(x1, n1, x2, n2):
    """Two-sided z-test for a difference in proportions; (None, None) if undefined."""
    if n1 <= 0 or n2 <= 0:
        return None, None
    pooled = (x1 + x2) / (n1 + n2)
    if pooled <= 0 or pooled >= 1:
        return None, None
    stat, pval = proportions_ztest([x1, x2], [n1, n2])
    return float(stat), float(pval)


def welch_p_value(a, b) -> float | None:
    """Two-sided Welch t-test p-value, None when undefined."""
    xs = finite_values(a)
    ys = finite_values(b)
    if xs.size < 2 or ys.size < 2:
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        with np.errstate(all="ignore"):
            _, p = stats.ttest_ind(xs, ys, equal_var=False)
    p = float(p)
    return p if math.isfinite(p) else None
