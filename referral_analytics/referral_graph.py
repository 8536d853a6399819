# -*- coding: utf-8 -*-

"""
Referral graph derivation from normalized events.

One pass over the events accumulates:
  - daily counters per calendar day and a share-platform histogram
  - latest-wins display meta per referrer (from shares) and per user
    (from completes); a cached entry is replaced only by a strictly newer
    timestamp, so ties keep the first-seen value
  - a journey per (referrerId, userId) pair with visit/complete counts,
    first-touch timestamps and last-seen timestamp

Journeys with visits become visit edges, journeys with completes become
complete edges, both sorted by value descending.
"""

import logging
from collections import Counter
from typing import NamedTuple

import pandas as pd

from .config import EVENT_COMPLETE, EVENT_SHARE, EVENT_TYPES, EVENT_VISIT, UNKNOWN_PLATFORM
from .normalize import present

logger = logging.getLogger(__name__)

JOURNEY_COLUMNS = [
    "referrer_id", "user_id", "visit_count", "complete_count",
    "first_visit_ts", "first_complete_ts", "last_ts", "hours_to_complete",
]
EDGE_COLUMNS = ["referrer_id", "user_id", "value"]
DAILY_COLUMNS = ["date", *EVENT_TYPES, "platforms"]


class ReferralGraph(NamedTuple):
    daily: pd.DataFrame
    platform_counts: dict
    referrer_meta: dict
    user_meta: dict
    journeys: pd.DataFrame
    visit_edges: pd.DataFrame
    complete_edges: pd.DataFrame


# ============================================================================
# HELPERS
# ============================================================================

def _ts(value):
    return None if value is None or pd.isna(value) else value


def platform_of(event) -> str:
    return str(event.platform) if present(event.platform) else UNKNOWN_PLATFORM


def share_actor(event) -> str | None:
    """Share author: userId, falling back to the referrerId column."""
    if present(event.user_id):
        return event.user_id
    if present(event.referrer_id):
        return event.referrer_id
    return None


def has_pair(event) -> bool:
    """Both ends of a referral journey are known."""
    return present(event.referrer_id) and present(event.user_id)


def hours_between(start, end) -> float | None:
    """Elapsed hours, None unless both exist and end >= start."""
    if start is None or end is None or end < start:
        return None
    return (end - start).total_seconds() / 3600


def _newer(ts, cached_ts) -> bool:
    if ts is None:
        return False
    return cached_ts is None or ts > cached_ts


def _meta_from(event, ts) -> dict:
    return {
        "user_name": event.user_name,
        "user_email": event.user_email,
        "user_email_lower": event.user_email_lower,
        "user_type": event.user_type,
        "gender": event.gender,
        "ts": ts,
    }


# ============================================================================
# JOURNEYS & EDGES
# ============================================================================

def _touch_journey(journeys: dict, event, ts):
    key = (event.referrer_id, event.user_id)
    j = journeys.get(key)
    if j is None:
        j = journeys[key] = {
            "referrer_id": event.referrer_id,
            "user_id": event.user_id,
            "visit_count": 0,
            "complete_count": 0,
            "first_visit_ts": None,
            "first_complete_ts": None,
            "last_ts": None,
        }

    if ts is not None:
        j["last_ts"] = ts if j["last_ts"] is None else max(j["last_ts"], ts)

    if event.event_type == EVENT_VISIT:
        j["visit_count"] += 1
        if ts is not None and (j["first_visit_ts"] is None or ts < j["first_visit_ts"]):
            j["first_visit_ts"] = ts
    elif event.event_type == EVENT_COMPLETE:
        j["complete_count"] += 1
        if ts is not None and (j["first_complete_ts"] is None or ts < j["first_complete_ts"]):
            j["first_complete_ts"] = ts


def journeys_frame(journeys: dict) -> pd.DataFrame:
    rows = []
    for j in journeys.values():
        rows.append({**j, "hours_to_complete": hours_between(j["first_visit_ts"], j["first_complete_ts"])})
    return pd.DataFrame(rows, columns=JOURNEY_COLUMNS)


def build_journeys(events: pd.DataFrame) -> pd.DataFrame:
    """Journeys for every (referrerId, userId) pair present on an event."""
    journeys = {}
    for event in events.itertuples(index=False):
        if has_pair(event):
            _touch_journey(journeys, event, _ts(event.ts))
    return journeys_frame(journeys)


def edges_from_journeys(journeys: pd.DataFrame, count_col: str) -> pd.DataFrame:
    """Edge list (referrer_id, user_id, value) for journeys with count > 0."""
    if journeys.empty:
        return pd.DataFrame(columns=EDGE_COLUMNS)
    edges = journeys.loc[journeys[count_col] > 0, ["referrer_id", "user_id", count_col]]
    edges = edges.rename(columns={count_col: "value"})
    edges = edges.sort_values("value", ascending=False, kind="mergesort")
    return edges.reset_index(drop=True)


# ============================================================================
# SINGLE PASS
# ============================================================================

def build_referral_graph(events: pd.DataFrame) -> ReferralGraph:
    """Daily aggregates, meta snapshots, journeys and edges in one pass."""
    daily = {}
    platform_counts = Counter()
    referrer_meta = {}
    user_meta = {}
    journeys = {}

    for event in events.itertuples(index=False):
        ts = _ts(event.ts)
        etype = event.event_type

        if present(event.date):
            day = daily.get(event.date)
            if day is None:
                day = daily[event.date] = {"date": event.date, **{t: 0 for t in EVENT_TYPES}, "platforms": Counter()}
            if etype in EVENT_TYPES:
                day[etype] += 1
            if etype == EVENT_SHARE:
                day["platforms"][platform_of(event)] += 1

        if etype == EVENT_SHARE:
            platform = platform_of(event)
            platform_counts[platform] += 1
            rid = share_actor(event)
            if rid:
                meta = referrer_meta.get(rid)
                if meta is None or _newer(ts, meta["ts"]):
                    platforms = meta["platforms"] if meta else Counter()
                    meta = referrer_meta[rid] = {"referrer_id": rid, **_meta_from(event, ts), "platforms": platforms}
                meta["platforms"][platform] += 1

        if etype == EVENT_COMPLETE and present(event.user_id):
            meta = user_meta.get(event.user_id)
            if meta is None or _newer(ts, meta["ts"]):
                user_meta[event.user_id] = {"user_id": event.user_id, **_meta_from(event, ts)}

        if has_pair(event):
            _touch_journey(journeys, event, ts)

    daily_rows = [
        {**d, "platforms": dict(d["platforms"])}
        for d in sorted(daily.values(), key=lambda d: d["date"])
    ]
    for meta in referrer_meta.values():
        meta["platforms"] = dict(meta["platforms"])

    journey_df = journeys_frame(journeys)
    graph = ReferralGraph(
        daily=pd.DataFrame(daily_rows, columns=DAILY_COLUMNS),
        platform_counts=dict(platform_counts),
        referrer_meta=referrer_meta,
        user_meta=user_meta,
        journeys=journey_df,
        visit_edges=edges_from_journeys(journey_df, "visit_count"),
        complete_edges=edges_from_journeys(journey_df, "complete_count"),
    )
    logger.info(
        f"✓ Referral graph: {len(journey_df):,} journeys, "
        f"{len(graph.visit_edges):,} visit edges, {len(graph.complete_edges):,} complete edges, "
        f"{len(referrer_meta):,} referrers"
    )
    return graph


def daily_counts(events: pd.DataFrame) -> pd.DataFrame:
    """Per-day event type counts for an (already filtered) event frame."""
    return build_referral_graph(events).daily[["date", *EVENT_TYPES]]
