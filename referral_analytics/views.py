# -*- coding: utf-8 -*-

"""
View-level derivations over a LoadedDataset snapshot.

Each view takes the snapshot plus a FilterOptions value and returns plain
KPI scalars, DataFrames and chart-ready series. Nothing here mutates the
snapshot. Overrides of the shared option set (the favorites baseline
ignoring the referrer selector, the leaderboard ignoring event type and
platform) are spelled out with `options._replace(...)` at the call site.
"""

import logging

import pandas as pd

from .cohort import (
    answer_features, axis_differences, compare_cohorts, mean_differences,
    referral_favorite_lift, split_favorites,
)
from .config import (
    ANSWER_DIFF_MIN_N, AXIS_COLUMNS, BOX_TOP_GROUPS, COHORT_TOP_N, DEFAULT_MIN_EDGE,
    DIAGNOSIS_SIGNAL_TOP_N, EVENT_COMPLETE, EVENT_SHARE, EVENT_TYPES, EVENT_VISIT,
    FAVORITE_ANSWER_DIFF_MIN_N, HISTOGRAM_BINS, TYPE_RATE_MIN_N, TYPE_TOP_N,
)
from .filters import ALL, FilterOptions, filter_diagnosis, filter_events
from .identity import latest_favorite_records, latest_records, records_at
from .leaderboard import match_favorites, referrer_detail, referrer_label, referrer_leaderboard
from .masking import REFERRER_TAG, USER_TAG, mask_id
from .network import analyze_network
from .quality import column_profile, diagnosis_quality
from .referral_graph import build_journeys, daily_counts, edges_from_journeys
from .summary_stats import correlation_matrix, finite_values, histogram, median, ratio, top_k

logger = logging.getLogger(__name__)

RECORD = "record"
USER = "user"
UNITS = (RECORD, USER)

SANKEY_MODES = {"visits": "visit_count", "completes": "complete_count"}


def _check_unit(unit: str):
    if unit not in UNITS:
        raise ValueError(f"Unknown unit: {unit!r} (expected one of {UNITS})")


# ============================================================================
# RECORD SELECTION
# ============================================================================

def diagnosis_records(dataset, options: FilterOptions, unit: str = RECORD) -> pd.DataFrame:
    """Filtered diagnosis records, or each user's latest record for unit=user."""
    _check_unit(unit)
    if unit == USER:
        base = latest_records(dataset.diagnosis, dataset.users)
    else:
        base = dataset.diagnosis
    return filter_diagnosis(base, options)


def favorite_records(dataset, options: FilterOptions, unit: str = USER) -> pd.DataFrame:
    """Latest favorited record per favoriting user, or every favorited record."""
    _check_unit(unit)
    if unit == USER:
        base = latest_favorite_records(dataset.diagnosis, dataset.users)
    else:
        base = dataset.diagnosis[dataset.diagnosis["interested"]]
    return filter_diagnosis(base, options)


def baseline_records(dataset, options: FilterOptions, unit: str = USER) -> pd.DataFrame:
    """Non-favorite comparison set; `options` should already carry its overrides."""
    _check_unit(unit)
    if unit == USER:
        users = dataset.users
        if users.empty:
            base = dataset.diagnosis.iloc[0:0]
        else:
            base = records_at(dataset.diagnosis, users.loc[~users["has_favorite"], "latest_row"])
    else:
        base = dataset.diagnosis[~dataset.diagnosis["interested"]]
    return filter_diagnosis(base, options)


def referral_events(dataset, options: FilterOptions) -> pd.DataFrame:
    return filter_events(dataset.events, options)


def leaderboard_events(dataset, options: FilterOptions) -> pd.DataFrame:
    """Events inside the date window with the remaining selectors reset."""
    return filter_events(dataset.events, options._replace(event_type=ALL, platform=ALL, referral=ALL))


# ============================================================================
# SERIES
# ============================================================================

def type_counts(records: pd.DataFrame, top_n: int = TYPE_TOP_N) -> pd.DataFrame:
    return pd.DataFrame(top_k(records["type"].tolist(), top_n), columns=["type", "count"])


def favorite_rate_by_type(records: pd.DataFrame, min_n: int = TYPE_RATE_MIN_N,
                          top_n: int = TYPE_TOP_N) -> pd.DataFrame:
    """Favorite rate per type among types with at least min_n records."""
    columns = ["type", "n", "favorites", "rate"]
    if records.empty:
        return pd.DataFrame(columns=columns)
    g = records.groupby("type", sort=False)["interested"]
    out = pd.DataFrame({"n": g.size(), "favorites": g.sum().astype(int)}).reset_index()
    out = out[out["n"] >= min_n]
    out = out.assign(rate=out["favorites"] / out["n"])
    out = out.sort_values("rate", ascending=False, kind="mergesort")
    return out[columns].head(top_n).reset_index(drop=True)


def diagnosis_daily(records: pd.DataFrame) -> pd.DataFrame:
    """Per calendar day: record count and favorite count."""
    dated = records.dropna(subset=["created_date"])
    if dated.empty:
        return pd.DataFrame(columns=["date", "diagnosis", "favorites"])
    g = dated.groupby("created_date")["interested"]
    out = pd.DataFrame({"diagnosis": g.size(), "favorites": g.sum().astype(int)})
    return out.rename_axis("date").reset_index()


def correlation_inputs(records: pd.DataFrame) -> dict:
    vectors = {axis: records[axis].tolist() for axis in AXIS_COLUMNS}
    vectors["age"] = records["age"].tolist()
    vectors["interested"] = records["interested"].astype(int).tolist()
    return vectors


def box_by_group(records: pd.DataFrame, value: str, group: str = "type",
                 top_n: int = BOX_TOP_GROUPS) -> list:
    """Five-number summaries for the top_n largest groups."""
    out = []
    for name, _ in top_k(records[group].tolist(), top_n):
        xs = finite_values(records.loc[records[group] == name, value].tolist())
        if not xs.size:
            continue
        q1, q2, q3 = pd.Series(xs).quantile([0.25, 0.5, 0.75]).tolist()
        out.append({
            "group": name, "n": int(xs.size), "min": float(xs.min()),
            "q1": q1, "median": q2, "q3": q3, "max": float(xs.max()),
            "values": xs.tolist(),
        })
    return out


def funnel_stages(shares: int, visitors: int, completers: int) -> list:
    return [("share", shares), ("visit (unique)", visitors), ("complete (unique)", completers)]


# ============================================================================
# DASHBOARD
# ============================================================================

def dashboard_view(dataset, hide_unnamed: bool = True) -> dict:
    """Whole-dataset KPIs, daily series and raw column profiles."""
    diagnosis = dataset.diagnosis
    events = dataset.events
    users = dataset.users

    n = len(diagnosis)
    favorites = int(diagnosis["interested"].sum()) if n else 0
    by_type = events["event_type"].value_counts()
    completes = events[(events["event_type"] == EVENT_COMPLETE) & events["user_email_lower"].notna()]

    kpis = {
        "diagnosis_records": n,
        "favorite_records": favorites,
        "favorite_rate": ratio(favorites, n),
        "favorite_users": int(users["has_favorite"].sum()) if not users.empty else 0,
        "referral_events": len(events),
        **{f"{t}_events": int(by_type.get(t, 0)) for t in EVENT_TYPES},
        "matched_completes": int(completes["user_email_lower"].isin(list(dataset.user_index)).sum()),
    }
    return {
        "kpis": kpis,
        "diagnosis_daily": diagnosis_daily(diagnosis),
        "referral_daily": dataset.referral.daily,
        "diagnosis_profile": column_profile(dataset.raw_diagnosis, hide_unnamed=hide_unnamed),
        "referral_profile": column_profile(dataset.raw_events, hide_unnamed=hide_unnamed),
    }


# ============================================================================
# DIAGNOSIS
# ============================================================================

def diagnosis_view(dataset, options: FilterOptions, unit: str = RECORD, axis: str = "axisA") -> dict:
    records = diagnosis_records(dataset, options, unit)
    n = len(records)
    favorites = int(records["interested"].sum()) if n else 0
    fav, non = split_favorites(records)

    kpis = {
        "unit": unit,
        "count": n,
        "favorites": favorites,
        "favorite_rate": ratio(favorites, n),
        "unique_emails": int(records["email_lower"].nunique()),
        "female_rate": ratio(int((records["gender"] == "female").sum()), n),
        "referred_rate": ratio(int(records["referred"].sum()), n),
        "median_age": median(records["age"].tolist()),
    }
    labels, matrix = correlation_matrix(correlation_inputs(records))

    return {
        "kpis": kpis,
        "records": records,
        "type_counts": type_counts(records),
        "favorite_rate_by_type": favorite_rate_by_type(records),
        "correlation": {"labels": labels, "matrix": matrix},
        "axis_histogram": histogram(records[axis].tolist(), HISTOGRAM_BINS),
        "axis_box": box_by_group(records, axis),
        "answer_differences": mean_differences(fav, non, answer_features(records), ANSWER_DIFF_MIN_N),
        "quality": diagnosis_quality(records),
        "signals": compare_cohorts(fav, non, top_n=DIAGNOSIS_SIGNAL_TOP_N),
        "referral_lift": referral_favorite_lift(records),
    }


# ============================================================================
# FAVORITES
# ============================================================================

def favorites_view(dataset, options: FilterOptions, unit: str = USER) -> dict:
    fav = favorite_records(dataset, options, unit)
    non = baseline_records(dataset, options._replace(referral=ALL), unit)

    if unit == USER:
        all_n = int(dataset.users["email_lower"].notna().sum()) if not dataset.users.empty else 0
    else:
        all_n = len(dataset.diagnosis)
    referred = int(fav["referred"].sum()) if len(fav) else 0
    top = top_k(fav["type"].tolist(), 1)

    kpis = {
        "unit": unit,
        "favorites": len(fav),
        "share_of_all": ratio(len(fav), all_n),
        "referred_favorites": referred,
        "referred_rate": ratio(referred, len(fav)),
        "top_type": top[0] if top else None,
        "baseline": len(non),
    }
    daily = diagnosis_daily(fav)[["date", "favorites"]]

    return {
        "kpis": kpis,
        "records": fav,
        "baseline": non,
        "daily": daily,
        "type_counts": type_counts(fav),
        "axis_differences": axis_differences(fav, non),
        "answer_differences": mean_differences(fav, non, answer_features(fav, non), FAVORITE_ANSWER_DIFF_MIN_N),
        "signals": compare_cohorts(fav, non, top_n=COHORT_TOP_N),
    }


# ============================================================================
# REFERRAL
# ============================================================================

def window_edges(events: pd.DataFrame, mode: str = "visits") -> pd.DataFrame:
    """Visit or complete edges rebuilt from the given events."""
    if mode not in SANKEY_MODES:
        raise ValueError(f"Unknown edge mode: {mode!r} (expected one of {tuple(SANKEY_MODES)})")
    return edges_from_journeys(build_journeys(events), SANKEY_MODES[mode])


def node_label(kind: str, raw, meta: dict, mask: bool) -> str:
    """Flow-diagram label: masked id, or the meta email/name, or the raw id."""
    if not raw:
        return f"{'referrer' if kind == REFERRER_TAG else 'user'}:unknown"
    if mask:
        return f"{kind.upper()}:{mask_id(kind, raw)}"
    m = meta.get(raw) or {}
    return m.get("user_email") or m.get("user_name") or raw


def sankey_edges(edges: pd.DataFrame, referrer_meta: dict, user_meta: dict,
                 min_value=DEFAULT_MIN_EDGE, mask: bool = True) -> pd.DataFrame:
    """Weighted edges at or above min_value with display labels."""
    columns = ["source", "target", "value", "referrer_id", "user_id"]
    kept = edges[edges["value"] >= min_value] if not edges.empty else edges
    rows = [
        {
            "source": node_label(REFERRER_TAG, e.referrer_id, referrer_meta, mask),
            "target": node_label(USER_TAG, e.user_id, user_meta, mask),
            "value": int(e.value),
            "referrer_id": e.referrer_id,
            "user_id": e.user_id,
        }
        for e in kept.itertuples(index=False)
    ]
    return pd.DataFrame(rows, columns=columns)


def referral_kpis(events: pd.DataFrame, user_index: dict) -> dict:
    shares = int((events["event_type"] == EVENT_SHARE).sum())
    visits = events[(events["event_type"] == EVENT_VISIT) & events["user_id"].notna()]
    completes = events[(events["event_type"] == EVENT_COMPLETE) & events["user_id"].notna()]
    visitors = int(visits["user_id"].nunique())
    completers = int(completes["user_id"].nunique())

    emails = events.loc[events["event_type"] == EVENT_COMPLETE, "user_email_lower"].dropna().tolist()
    matched, matched_fav = match_favorites(emails, user_index)
    return {
        "shares": shares,
        "visits": int((events["event_type"] == EVENT_VISIT).sum()),
        "completes": int((events["event_type"] == EVENT_COMPLETE).sum()),
        "unique_visitors": visitors,
        "unique_completes": completers,
        "share_to_visit": ratio(visitors, shares),
        "visit_to_complete": ratio(completers, visitors),
        "share_to_complete": ratio(completers, shares),
        "matched_completes": matched,
        "matched_favorites": matched_fav,
        "matched_favorite_rate": ratio(matched_fav, matched),
    }


def referral_view(dataset, options: FilterOptions, mode: str = "visits",
                  min_edge=DEFAULT_MIN_EDGE, mask: bool = True) -> dict:
    events = referral_events(dataset, options)
    window = leaderboard_events(dataset, options)
    kpis = referral_kpis(events, dataset.user_index)

    edges = window_edges(window, mode)
    graph = dataset.referral
    network = analyze_network(edges, min_value=min_edge, source="referrer_id", target="user_id")

    return {
        "kpis": kpis,
        "events": events,
        "funnel": funnel_stages(kpis["shares"], kpis["unique_visitors"], kpis["unique_completes"]),
        "daily": daily_counts(events),
        "leaderboard": referrer_leaderboard(window, graph.referrer_meta, dataset.user_index),
        "edges": edges,
        "sankey": sankey_edges(edges, graph.referrer_meta, graph.user_meta, min_edge, mask),
        "network": network,
    }


def referrer_view(dataset, referrer_id: str, options: FilterOptions) -> dict:
    """Drill-down for one referrer inside the option set's date window."""
    scoped = filter_events(
        dataset.events,
        options._replace(event_type=ALL, platform=ALL, referral=referrer_id),
    )
    return referrer_detail(scoped, referrer_id, dataset.referral.referrer_meta, dataset.user_index)


# ============================================================================
# OPTION LISTS
# ============================================================================

def date_range(dates: pd.Series) -> tuple:
    """(first, last) calendar day present, (None, None) when undated."""
    present = dates.dropna()
    if present.empty:
        return None, None
    return str(present.min()), str(present.max())


def option_lists(dataset, mask: bool = True) -> dict:
    """Selector values for types, share platforms and referrers plus default dates."""
    graph = dataset.referral
    ids = set(graph.referrer_meta)
    for edges in (graph.visit_edges, graph.complete_edges):
        ids.update(r for r in edges["referrer_id"].tolist() if r)
    referrers = [
        {
            "referrer_id": rid,
            "label": mask_id(REFERRER_TAG, rid) if mask else referrer_label(rid, graph.referrer_meta),
        }
        for rid in sorted(ids)
    ]
    return {
        "types": sorted(dataset.diagnosis["type"].dropna().unique().tolist()),
        "platforms": sorted(graph.platform_counts),
        "referrers": referrers,
        "diagnosis_dates": date_range(dataset.diagnosis["created_date"]),
        "referral_dates": date_range(dataset.events["date"]),
    }
