"""Tests for identity resolution (diagnosis records -> user summaries)."""

from referral_analytics.identity import (
    build_user_index,
    latest_favorite_records,
    latest_records,
    resolve_users,
)
from referral_analytics.normalize import normalize_diagnosis


def test_worked_example_one_user(worked_diagnosis_rows):
    diagnosis = normalize_diagnosis(worked_diagnosis_rows)
    users = resolve_users(diagnosis)

    assert len(users) == 1
    user = users.iloc[0]
    assert user["user_key"] == "a@x.com"
    assert user["favorite_count"] == 1
    assert diagnosis.loc[user["latest_row"], "age_raw"] == "30"
    assert diagnosis.loc[0, "age"] == 24.0


def test_every_record_in_exactly_one_group(diagnosis_rows):
    diagnosis = normalize_diagnosis(diagnosis_rows)
    users = resolve_users(diagnosis)

    members = [row for rows in users["rows"] for row in rows]
    assert sorted(members) == sorted(diagnosis["row"].tolist())
    assert users["user_key"].is_unique


def test_missing_email_gets_synthetic_key(diagnosis_rows):
    users = resolve_users(normalize_diagnosis(diagnosis_rows))
    assert users["user_key"].tolist() == ["a@x.com", "b@x.com", "__noemail__3", "c@x.com"]


def test_latest_and_latest_favorite(diagnosis_rows):
    diagnosis = normalize_diagnosis(diagnosis_rows)
    users = resolve_users(diagnosis).set_index("user_key")

    assert users.loc["a@x.com", "latest_row"] == 1
    assert users.loc["a@x.com", "latest_favorite_row"] == 0
    assert users.loc["a@x.com", "n_records"] == 2
    assert not users.loc["b@x.com", "has_favorite"]
    assert users.loc["c@x.com", "has_favorite"]


def test_missing_timestamp_sorts_earliest():
    rows = [
        {"email": "z@x.com", "createdAt": "2024-01-01", "age": "20"},
        {"email": "z@x.com", "createdAt": None, "age": "21"},
    ]
    users = resolve_users(normalize_diagnosis(rows))
    assert users.iloc[0]["latest_row"] == 0
    assert users.iloc[0]["rows"] == [1, 0]


def test_equal_timestamps_fall_back_to_row_order():
    rows = [
        {"email": "z@x.com", "createdAt": "2024-01-01", "interested": 1},
        {"email": "z@x.com", "createdAt": "2024-01-01", "interested": 1},
    ]
    users = resolve_users(normalize_diagnosis(rows))
    assert users.iloc[0]["latest_row"] == 1
    assert users.iloc[0]["latest_favorite_row"] == 1


def test_user_index_skips_synthetic_keys(diagnosis_rows):
    index = build_user_index(resolve_users(normalize_diagnosis(diagnosis_rows)))
    assert set(index) == {"a@x.com", "b@x.com", "c@x.com"}
    assert index["a@x.com"]["has_favorite"]


def test_latest_record_selections(diagnosis_rows):
    diagnosis = normalize_diagnosis(diagnosis_rows)
    users = resolve_users(diagnosis)

    assert latest_records(diagnosis, users)["row"].tolist() == [1, 2, 3, 4]
    assert latest_favorite_records(diagnosis, users)["row"].tolist() == [0, 3, 4]


def test_empty_input():
    users = resolve_users(normalize_diagnosis([]))
    assert users.empty
    assert build_user_index(users) == {}
    assert latest_records(normalize_diagnosis([]), users).empty
