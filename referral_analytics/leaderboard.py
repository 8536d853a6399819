# -*- coding: utf-8 -*-

"""
Referrer leaderboard and single-referrer drill-down.

Ranking: unique completers desc -> unique visitors desc -> shares desc;
remaining ties keep the order in which referrers first appear.
"""

import logging
from collections import Counter

import pandas as pd

from .config import EVENT_COMPLETE, EVENT_SHARE, EVENT_VISIT
from .normalize import present
from .referral_graph import build_journeys, hours_between, platform_of, share_actor
from .summary_stats import mean, median, rate_ci, ratio

logger = logging.getLogger(__name__)

LEADERBOARD_COLUMNS = [
    "referrer_id", "referrer_label", "shares", "unique_visitors", "unique_completes",
    "share_to_visit", "visit_to_complete", "visit_to_complete_ci_low", "visit_to_complete_ci_high",
    "share_to_complete", "avg_ttc_hours", "median_ttc_hours", "ttc_journeys",
    "matched_completes", "matched_favorite_users", "matched_favorite_rate", "shares_by_platform",
]

EDGE_DETAIL_COLUMNS = [
    "user_id", "visits", "completes", "first_visit_ts", "first_complete_ts",
    "hours", "email", "diagnosis_match", "diagnosis_favorite",
]


def referrer_label(referrer_id, referrer_meta: dict) -> str:
    """Display label from the latest share meta: name, then email, then id."""
    meta = referrer_meta.get(referrer_id) if referrer_meta else None
    if meta:
        return meta.get("user_name") or meta.get("user_email") or referrer_id
    return referrer_id


def match_favorites(emails, user_index: dict):
    """(matched, matched_favorite) over unique completer emails."""
    matched = 0
    favorite = 0
    for email in dict.fromkeys(e for e in emails if e):
        user = user_index.get(email)
        if user is None:
            continue
        matched += 1
        if user["has_favorite"]:
            favorite += 1
    return matched, favorite


def _ttc_by_referrer(events: pd.DataFrame) -> dict:
    """referrer_id -> hours-to-complete of journeys with ordered timestamps."""
    journeys = build_journeys(events)
    out = {}
    if journeys.empty:
        return out
    timed = journeys[journeys["complete_count"] > 0].dropna(subset=["hours_to_complete"])
    for j in timed.itertuples(index=False):
        out.setdefault(j.referrer_id, []).append(float(j.hours_to_complete))
    return out


# ============================================================================
# LEADERBOARD
# ============================================================================

def referrer_leaderboard(events: pd.DataFrame, referrer_meta: dict, user_index: dict) -> pd.DataFrame:
    """Per-referrer funnel stats over the given (filtered) events, ranked."""
    stats = {}

    def get(rid):
        s = stats.get(rid)
        if s is None:
            s = stats[rid] = {
                "shares": 0,
                "platforms": Counter(),
                "visitors": set(),
                "completers": set(),
                "emails": [],
            }
        return s

    for event in events.itertuples(index=False):
        if event.event_type == EVENT_SHARE:
            rid = share_actor(event)
            if not rid:
                continue
            s = get(rid)
            s["shares"] += 1
            s["platforms"][platform_of(event)] += 1
            continue

        if not present(event.referrer_id):
            continue
        s = get(event.referrer_id)
        if event.event_type == EVENT_VISIT and present(event.user_id):
            s["visitors"].add(event.user_id)
        elif event.event_type == EVENT_COMPLETE and present(event.user_id):
            s["completers"].add(event.user_id)
            if present(event.user_email_lower):
                s["emails"].append(event.user_email_lower)

    ttc = _ttc_by_referrer(events)

    rows = []
    for rid, s in stats.items():
        visitors = len(s["visitors"])
        completes = len(s["completers"])
        _, ci = rate_ci(completes, visitors)
        hours = ttc.get(rid, [])
        matched, matched_fav = match_favorites(s["emails"], user_index)
        rows.append({
            "referrer_id": rid,
            "referrer_label": referrer_label(rid, referrer_meta),
            "shares": s["shares"],
            "unique_visitors": visitors,
            "unique_completes": completes,
            "share_to_visit": ratio(visitors, s["shares"]),
            "visit_to_complete": ratio(completes, visitors),
            "visit_to_complete_ci_low": ci[0] if ci else None,
            "visit_to_complete_ci_high": ci[1] if ci else None,
            "share_to_complete": ratio(completes, s["shares"]),
            "avg_ttc_hours": mean(hours),
            "median_ttc_hours": median(hours),
            "ttc_journeys": len(hours),
            "matched_completes": matched,
            "matched_favorite_users": matched_fav,
            "matched_favorite_rate": ratio(matched_fav, matched),
            "shares_by_platform": dict(s["platforms"]),
        })

    rows.sort(key=lambda r: (-r["unique_completes"], -r["unique_visitors"], -r["shares"]))
    logger.debug(f"Leaderboard over {len(events):,} events: {len(rows):,} referrers")
    return pd.DataFrame(rows, columns=LEADERBOARD_COLUMNS)


# ============================================================================
# DRILL-DOWN
# ============================================================================

def referrer_detail(events: pd.DataFrame, referrer_id: str, referrer_meta: dict, user_index: dict) -> dict:
    """Summary, time-to-complete hours and per-user edge rows for one referrer.

    `events` should already be restricted to this referrer (and the date
    window); share events count toward the referrer via their author.
    """
    shares = 0
    visitors = set()
    completers = set()
    emails = []
    per_user = {}

    for event in events.itertuples(index=False):
        if event.event_type == EVENT_SHARE:
            if share_actor(event) == referrer_id:
                shares += 1
            continue
        if event.referrer_id != referrer_id or not present(event.user_id):
            continue
        if event.event_type not in (EVENT_VISIT, EVENT_COMPLETE):
            continue

        ts = None if pd.isna(event.ts) else event.ts
        row = per_user.setdefault(event.user_id, {
            "user_id": event.user_id, "visits": 0, "completes": 0,
            "first_visit_ts": None, "first_complete_ts": None, "hours": None, "email": None,
        })
        if event.event_type == EVENT_VISIT:
            visitors.add(event.user_id)
            row["visits"] += 1
            if ts is not None and (row["first_visit_ts"] is None or ts < row["first_visit_ts"]):
                row["first_visit_ts"] = ts
        else:
            completers.add(event.user_id)
            row["completes"] += 1
            if ts is not None and (row["first_complete_ts"] is None or ts < row["first_complete_ts"]):
                row["first_complete_ts"] = ts
            if present(event.user_email_lower):
                row["email"] = event.user_email_lower
                emails.append(event.user_email_lower)

    edge_rows = []
    for row in per_user.values():
        row["hours"] = hours_between(row["first_visit_ts"], row["first_complete_ts"])
        user = user_index.get(row["email"]) if row["email"] else None
        row["diagnosis_match"] = user is not None
        row["diagnosis_favorite"] = bool(user and user["has_favorite"])
        edge_rows.append(row)
    edge_rows.sort(key=lambda r: (-r["completes"], -r["visits"]))

    matched, matched_fav = match_favorites(emails, user_index)
    hours = [r["hours"] for r in edge_rows if r["hours"] is not None]
    return {
        "referrer_id": referrer_id,
        "referrer_label": referrer_label(referrer_id, referrer_meta),
        "shares": shares,
        "unique_visitors": len(visitors),
        "unique_completes": len(completers),
        "matched_completes": matched,
        "matched_favorite_users": matched_fav,
        "matched_favorite_rate": ratio(matched_fav, matched),
        "ttc_hours": hours,
        "edges": pd.DataFrame(edge_rows, columns=EDGE_DETAIL_COLUMNS),
    }
