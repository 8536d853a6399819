# -*- coding: utf-8 -*-

"""
Favorited vs. non-favorited comparisons
- Signal table: per numeric feature (age, four axes, every answer key) the
  two means, Cohen's d and a Welch p-value, ranked by |d|
- Mean differences: plain favorite - non-favorite mean gaps
- Referral lift: favorite rate of referred vs. not-referred records with
  Wilson intervals and a two-proportion z-test

Features with fewer than the minimum observations on either side are left
out of the ranking rather than reported with an unstable estimate.
"""

import logging

import pandas as pd

from .config import AXIS_COLUMNS, COHORT_MIN_N, COHORT_TOP_N, ANSWER_DIFF_TOP_N
from .summary_stats import cohen_d, finite_values, mean, rate_ci, welch_p_value, ztest_two_proportions

logger = logging.getLogger(__name__)

SIGNAL_COLUMNS = ["feature", "mean_fav", "mean_non", "diff", "effect_d", "p_value", "n_fav", "n_non"]
DIFF_COLUMNS = ["feature", "mean_fav", "mean_non", "diff", "n_fav", "n_non"]


def split_favorites(records: pd.DataFrame):
    """(favorited, non-favorited) records."""
    return records[records["interested"]], records[~records["interested"]]


def answer_keys(*frames) -> list:
    keys = set()
    for frame in frames:
        for answers in frame["answers"]:
            if isinstance(answers, dict):
                keys.update(answers)
    return sorted(keys)


def answer_values(frame: pd.DataFrame, key: str) -> list:
    return [a.get(key) if isinstance(a, dict) else None for a in frame["answers"]]


def feature_values(frame: pd.DataFrame, feature) -> list:
    """Values of a (source, name) feature: a record column or an answer key."""
    source, name = feature
    if source == "column":
        return frame[name].tolist()
    return answer_values(frame, name)


def numeric_features(*frames) -> list:
    """(source, name) pairs: age, the four axes, then every answer key."""
    columns = [("column", c) for c in ("age", *AXIS_COLUMNS)]
    return columns + [("answer", k) for k in answer_keys(*frames)]


def answer_features(*frames) -> list:
    return [("answer", k) for k in answer_keys(*frames)]


# ============================================================================
# SIGNAL TABLE
# ============================================================================

def compare_cohorts(fav: pd.DataFrame, non: pd.DataFrame, min_n: int = COHORT_MIN_N,
                    top_n: int = COHORT_TOP_N) -> pd.DataFrame:
    """Rank numeric features by |Cohen's d| between favorited and non-favorited."""
    rows = []
    skipped = 0
    for feature in numeric_features(fav, non):
        fvals = finite_values(feature_values(fav, feature))
        nvals = finite_values(feature_values(non, feature))
        if fvals.size < min_n or nvals.size < min_n:
            skipped += 1
            continue
        mf = float(fvals.mean())
        mn = float(nvals.mean())
        rows.append({
            "feature": feature[1],
            "mean_fav": mf,
            "mean_non": mn,
            "diff": mf - mn,
            "effect_d": cohen_d(fvals, nvals),
            "p_value": welch_p_value(fvals, nvals),
            "n_fav": int(fvals.size),
            "n_non": int(nvals.size),
        })

    if skipped:
        logger.debug(f"Skipped {skipped} under-powered features (n < {min_n} on a side)")
    rows.sort(key=lambda r: abs(r["effect_d"] or 0.0), reverse=True)
    return pd.DataFrame(rows[:top_n], columns=SIGNAL_COLUMNS)


def mean_differences(fav: pd.DataFrame, non: pd.DataFrame, features, min_n: int,
                     top_n: int | None = ANSWER_DIFF_TOP_N) -> pd.DataFrame:
    """favorite - non-favorite mean per feature, ranked by |diff|."""
    rows = []
    for feature in features:
        fvals = finite_values(feature_values(fav, feature))
        nvals = finite_values(feature_values(non, feature))
        if fvals.size < min_n or nvals.size < min_n:
            continue
        mf = mean(fvals)
        mn = mean(nvals)
        rows.append({
            "feature": feature[1], "mean_fav": mf, "mean_non": mn, "diff": mf - mn,
            "n_fav": int(fvals.size), "n_non": int(nvals.size),
        })
    rows.sort(key=lambda r: abs(r["diff"]), reverse=True)
    if top_n is not None:
        rows = rows[:top_n]
    return pd.DataFrame(rows, columns=DIFF_COLUMNS)


def axis_differences(fav: pd.DataFrame, non: pd.DataFrame) -> pd.DataFrame:
    """Axis mean gaps in fixed axis order; a side without data counts as 0."""
    rows = []
    for axis in AXIS_COLUMNS:
        mf = mean(fav[axis].tolist())
        mn = mean(non[axis].tolist())
        rows.append({"feature": axis, "mean_fav": mf, "mean_non": mn, "diff": (mf or 0.0) - (mn or 0.0)})
    return pd.DataFrame(rows, columns=["feature", "mean_fav", "mean_non", "diff"])


# ============================================================================
# REFERRAL LIFT
# ============================================================================

def referral_favorite_lift(records: pd.DataFrame) -> dict:
    """Favorite rate of referred vs. not-referred records."""
    referred = records[records["referred"]]
    organic = records[~records["referred"]]
    n_ref, n_org = len(referred), len(organic)
    x_ref, x_org = int(referred["interested"].sum()), int(organic["interested"].sum())

    rate_ref, ci_ref = rate_ci(x_ref, n_ref)
    rate_org, ci_org = rate_ci(x_org, n_org)
    delta = rate_ref - rate_org if rate_ref is not None and rate_org is not None else None
    lift = delta / rate_org if delta is not None and rate_org else None
    z, p = ztest_two_proportions(x_ref, n_ref, x_org, n_org)

    return {
        "n_referred": n_ref, "n_not": n_org,
        "fav_referred": x_ref, "fav_not": x_org,
        "rate_referred": rate_ref, "rate_not": rate_org,
        "ci_referred": ci_ref, "ci_not": ci_org,
        "delta": delta, "lift": lift, "z": z, "p": p,
    }
