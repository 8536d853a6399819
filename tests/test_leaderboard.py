"""Tests for the referrer leaderboard and drill-down."""

import pandas as pd
import pytest

from referral_analytics.leaderboard import referrer_detail, referrer_label, referrer_leaderboard
from referral_analytics.normalize import normalize_events
from referral_analytics.referral_graph import build_referral_graph


def _board(rows, user_index=None):
    events = normalize_events(rows)
    meta = build_referral_graph(events).referrer_meta
    return referrer_leaderboard(events, meta, user_index or {})


def test_worked_example(worked_event_rows):
    board = _board(worked_event_rows)
    assert len(board) == 1
    row = board.iloc[0]
    assert row["referrer_id"] == "r1"
    assert row["shares"] == 1
    assert row["unique_visitors"] == 1
    assert row["unique_completes"] == 1
    assert row["share_to_complete"] == 1.0
    assert row["shares_by_platform"] == {"line": 1}
    assert row["avg_ttc_hours"] == 1.0


def test_ranking_and_matched_favorites(dataset):
    board = referrer_leaderboard(dataset.events, dataset.referral.referrer_meta, dataset.user_index)
    by_id = board.set_index("referrer_id")

    # completes tie (1 each); r2 has more unique visitors
    assert board["referrer_id"].tolist() == ["r2", "r1"]
    assert by_id.loc["r2", "unique_visitors"] == 2
    assert by_id.loc["r2", "visit_to_complete"] == 0.5
    assert by_id.loc["r2", "median_ttc_hours"] == 24.0
    assert by_id.loc["r2", "matched_favorite_rate"] == 1.0
    assert by_id.loc["r1", "matched_completes"] == 1
    assert by_id.loc["r1", "matched_favorite_users"] == 0
    assert by_id.loc["r1", "referrer_label"] == "Rin"
    low, high = by_id.loc["r2", ["visit_to_complete_ci_low", "visit_to_complete_ci_high"]]
    assert low < 0.5 < high


def test_ties_keep_first_seen_order():
    rows = [
        {"eventType": "share", "userId": "rb", "timestamp": "2024-01-01"},
        {"eventType": "share", "userId": "ra", "timestamp": "2024-01-01"},
    ]
    assert _board(rows)["referrer_id"].tolist() == ["rb", "ra"]


def test_ratios_null_without_denominator():
    rows = [{"eventType": "referral_visit", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01"}]
    row = _board(rows).iloc[0]
    assert row["shares"] == 0
    assert row["share_to_visit"] is None
    assert row["visit_to_complete"] == 0.0
    assert row["avg_ttc_hours"] is None
    assert row["matched_favorite_rate"] is None


def test_duplicate_completer_emails_count_once(dataset):
    rows = [
        {"eventType": "referral_complete", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01",
         "payload_json": '{"userEmail": "a@x.com"}'},
        {"eventType": "referral_complete", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-02",
         "payload_json": '{"userEmail": "A@x.com"}'},
    ]
    row = _board(rows, dataset.user_index).iloc[0]
    assert row["matched_completes"] == 1
    assert row["matched_favorite_users"] == 1


def test_label_falls_back_to_email_then_id():
    meta = {"r1": {"user_name": None, "user_email": "r1@x.com"}, "r2": {"user_name": None, "user_email": None}}
    assert referrer_label("r1", meta) == "r1@x.com"
    assert referrer_label("r2", meta) == "r2"
    assert referrer_label("r3", meta) == "r3"


def test_referrer_detail(dataset):
    scoped = dataset.events[dataset.events["row"].isin([3, 4, 5, 6])]
    detail = referrer_detail(scoped, "r2", dataset.referral.referrer_meta, dataset.user_index)

    assert detail["shares"] == 1
    assert detail["unique_visitors"] == 2
    assert detail["unique_completes"] == 1
    assert detail["ttc_hours"] == [24.0]
    assert detail["matched_favorite_users"] == 1

    edges = detail["edges"]
    assert edges["user_id"].tolist() == ["u2", "u3"]
    assert edges.iloc[0]["email"] == "a@x.com"
    assert bool(edges.iloc[0]["diagnosis_favorite"]) is True
    assert bool(edges.iloc[1]["diagnosis_match"]) is False
    assert edges.iloc[0]["hours"] == pytest.approx(24.0)


def test_events_without_referrer_are_not_counted():
    board = _board([
        {"eventType": "share", "userId": "r1", "timestamp": "2024-01-01 08:00:00"},
        {"eventType": "referral_visit", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 09:00:00"},
        {"eventType": "referral_visit", "userId": "u2", "timestamp": "2024-01-01 09:30:00"},
        {"eventType": "referral_complete", "referrerId": "r1", "userId": "u1", "timestamp": "not a date"},
    ])
    assert board["referrer_id"].tolist() == ["r1"]
    row = board.iloc[0]
    assert (row["unique_visitors"], row["unique_completes"]) == (1, 1)
    # the undated complete leaves no time-to-complete
    assert row["ttc_journeys"] == 0


def test_referrer_detail_hours_need_ordered_timestamps():
    events = normalize_events([
        {"eventType": "referral_complete", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 08:00:00"},
        {"eventType": "referral_visit", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 09:00:00"},
    ])
    detail = referrer_detail(events, "r1", {}, {})
    assert detail["ttc_hours"] == []
    assert pd.isna(detail["edges"].iloc[0]["hours"])
