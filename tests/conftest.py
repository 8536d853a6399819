"""Shared fixtures: small diagnosis / referral_events row sets and a loaded dataset.

The sample tables are built so every derived number is easy to check by hand:

  r1 shares once, u1 visits and completes (3h later) as b@x.com
  r2 shares once, u2 and u3 visit, u2 completes (24h later) as a@x.com

  a@x.com has two diagnosis records (first favorited), b@x.com one,
  c@x.com one favorited record, plus one record without an email.
"""

import json

import pytest

from referral_analytics.pipeline import load_dataset


def _diag(row_email, created_at, **fields):
    row = {"email": row_email, "createdAt": created_at}
    row.update(fields)
    return row


@pytest.fixture
def worked_diagnosis_rows():
    return [
        {"email": "a@x.com", "age": "23-25", "interested": 1, "createdAt": "2024-01-01 10:00:00"},
        {"email": "a@x.com", "age": "30", "interested": 0, "createdAt": "2024-01-05 10:00:00"},
    ]


@pytest.fixture
def worked_event_rows():
    return [
        {"eventType": "share", "userId": "r1", "timestamp": "2024-01-01 08:00:00",
         "payload_json": json.dumps({"platform": "line"})},
        {"eventType": "referral_visit", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 09:00:00"},
        {"eventType": "referral_complete", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 10:00:00"},
    ]


@pytest.fixture
def diagnosis_rows():
    return [
        _diag("a@x.com", "2024-01-01 09:00:00", gender="female", age="23-25", type="INTJ",
              axisA=60, axisB=10, axisC=20, axisD=30, interested=1,
              answers_json=json.dumps({"q1": 5, "q2": "2"})),
        _diag("a@x.com", "2024-01-05 09:00:00", gender="F", age="30", type="INTJ",
              axisA=40, axisB=15, axisC=25, axisD=35, interested=0),
        _diag("B@x.com", "2024-01-02 12:00:00", gender="male", age="26+", type="ENFP",
              axisA=70, axisB=20, axisC=30, axisD=40, interested="false"),
        _diag(None, "2024-01-03 08:00:00", gender="", age="abc", type="",
              axisA=150, interested="yes"),
        _diag("c@x.com", "2024-01-04 18:30:00", gender="other", age=41, type="ENFP",
              axisA=55, axisB=12, axisC=22, axisD=32, interested=True,
              raw_json=json.dumps({"answers": {"q1": 1}})),
    ]


@pytest.fixture
def event_rows():
    return [
        {"eventType": "share", "userId": "r1", "timestamp": "2024-01-01 08:00:00",
         "payload_json": json.dumps({"platform": "line", "userName": "Rin", "userEmail": "rin@x.com"})},
        {"eventType": "referral_visit", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 09:00:00"},
        {"eventType": "referral_complete", "referrerId": "r1", "userId": "u1", "timestamp": "2024-01-01 12:00:00",
         "payload_json": json.dumps({"userEmail": "B@x.com", "userName": "Bee"})},
        {"eventType": "share", "userId": "r2", "timestamp": "2024-01-02 08:00:00",
         "payload_json": json.dumps({"platform": "x"})},
        {"eventType": "referral_visit", "referrerId": "r2", "userId": "u2", "timestamp": "2024-01-02 09:00:00"},
        {"eventType": "referral_visit", "referrerId": "r2", "userId": "u3", "timestamp": "2024-01-02 10:00:00"},
        {"eventType": "referral_complete", "referrerId": "r2", "userId": "u2", "timestamp": "2024-01-03 09:00:00",
         "payload_json": json.dumps({"userEmail": "a@x.com"})},
    ]


@pytest.fixture
def tables(diagnosis_rows, event_rows):
    return {"diagnosis": diagnosis_rows, "referral_events": event_rows}


@pytest.fixture
def dataset(tables):
    return load_dataset(tables)


@pytest.fixture
def cohort_rows():
    """24 records: 12 favorited with high axisA/q1, 12 not with low values."""
    rows = []
    for i in range(12):
        rows.append(_diag(f"fav{i}@x.com", f"2024-02-{i + 1:02d} 10:00:00", type="A",
                          axisA=70 + i, axisB=50, axisC=50 + (i % 3), axisD=50, age=str(20 + i),
                          interested=1, answers_json=json.dumps({"q1": 4 + (i % 2)})))
        rows.append(_diag(f"non{i}@x.com", f"2024-02-{i + 1:02d} 11:00:00", type="B",
                          axisA=30 + i, axisB=50, axisC=50 + (i % 3), axisD=50, age=str(21 + i),
                          interested=0, answers_json=json.dumps({"q1": 1 + (i % 2)})))
    return rows
