# -*- coding: utf-8 -*-

"""
Record normalization
- Input: loosely-typed row mappings (column -> value) from the table source
- Output: one typed DataFrame per dataset, one row per source row

Every helper here is total: malformed timestamps, numbers, ages and embedded
JSON become None (NaN/NaT once inside a frame) and never raise. The original
row position is kept in the `row` column and as the frame index.
"""

import json
import logging
import math
import numbers
import re

import numpy as np
import pandas as pd

from .config import (
    AXIS_COLUMNS,
    DIAGNOSIS_FIELDS,
    EVENT_FIELDS,
    PAYLOAD_FIELDS,
    TRUTHY_STRINGS,
    UNKNOWN_TYPE,
)

logger = logging.getLogger(__name__)

AGE_RANGE_RE = re.compile(r"^(\d{1,3})\s*-\s*(\d{1,3})$")
AGE_PLUS_RE = re.compile(r"^(\d{1,3})\s*\+$")
AGE_INT_RE = re.compile(r"^(\d{1,3})$")

DIAGNOSIS_COLUMNS = [
    "row", "created_at_raw", "created_at", "created_date",
    "email", "email_lower", "name", "gender", "age_raw", "age", "type",
    *AXIS_COLUMNS,
    "interested", "answers", "extras",
    "referred", "referrer_id", "referral_complete_ts",
]

EVENT_COLUMNS = [
    "row", "timestamp_raw", "ts", "date", "event_type", "user_id", "referrer_id",
    "edge", "platform", "payload", "user_email", "user_email_lower",
    "user_name", "user_type", "gender", "extras",
]

_DIAGNOSIS_CONSUMED = {n for names in DIAGNOSIS_FIELDS.values() for n in names} | set(AXIS_COLUMNS)
_EVENT_CONSUMED = (
    {n for names in EVENT_FIELDS.values() for n in names}
    | {n for names in PAYLOAD_FIELDS.values() for n in names}
)


# ============================================================================
# FIELD PARSERS
# ============================================================================

def is_blank(value) -> bool:
    """None, NaN, NaT and whitespace-only strings count as absent."""
    if value is None or value is pd.NaT or value is pd.NA:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def present(value) -> bool:
    return not is_blank(value)


def pick(row, names):
    """First non-blank value among the accepted source names."""
    for name in names:
        if name in row and not is_blank(row[name]):
            return row[name]
    return None


def safe_number(value) -> float | None:
    """Finite float or None. Booleans and non-numeric text are rejected."""
    if is_blank(value) or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, numbers.Real):
        n = float(value)
    elif isinstance(value, str):
        try:
            n = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return n if math.isfinite(n) else None


def parse_age(value) -> float | None:
    """'23-25' -> 24.0, '26+' -> 26.0, '30' -> 30.0; anything else -> None."""
    if is_blank(value) or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, numbers.Real):
        n = float(value)
        return n if math.isfinite(n) else None

    s = str(value).strip()
    m = AGE_RANGE_RE.match(s)
    if m:
        return (int(m.group(1)) + int(m.group(2))) / 2
    m = AGE_PLUS_RE.match(s)
    if m:
        return float(m.group(1))
    m = AGE_INT_RE.match(s)
    if m:
        return float(m.group(1))
    return None


def parse_timestamp(value):
    """Naive pandas Timestamp or None. Numbers are epoch milliseconds."""
    if is_blank(value) or isinstance(value, (bool, np.bool_)):
        return None
    try:
        if isinstance(value, numbers.Real):
            if not math.isfinite(value):
                return None
            ts = pd.to_datetime(value, unit="ms")
        elif isinstance(value, str):
            ts = pd.to_datetime(value.strip(), errors="coerce")
        else:
            ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None

    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    if not (pd.Timestamp.min <= ts <= pd.Timestamp.max):
        return None
    return ts


def to_date_string(ts) -> str | None:
    if ts is None or pd.isna(ts):
        return None
    return ts.strftime("%Y-%m-%d")


def parse_json_safe(value):
    """Mappings/lists pass through; JSON text is decoded; failures -> None."""
    if is_blank(value):
        return None
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(str(value))
    except ValueError:
        return None


def normalize_gender(value) -> str:
    s = "" if is_blank(value) else str(value).strip().lower()
    if s in ("female", "f"):
        return "female"
    if s in ("male", "m"):
        return "male"
    if not s:
        return "unknown"
    return s


def normalize_type(value) -> str:
    s = "" if is_blank(value) else str(value).strip()
    return s or UNKNOWN_TYPE


def normalize_email(value) -> str | None:
    s = "" if is_blank(value) else str(value).strip().lower()
    return s or None


def clean_id(value) -> str | None:
    """Identifier as a stripped string; spreadsheet floats like 12.0 -> '12'."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    s = str(value).strip()
    return s or None


def clean_text(value) -> str | None:
    if is_blank(value):
        return None
    return str(value).strip() or None


def parse_interested(value) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, numbers.Real):
        return float(value) == 1.0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    return False


def numeric_answers(answers) -> dict:
    """Keep only answers that parse as finite numbers."""
    if not isinstance(answers, dict):
        return {}
    out = {}
    for key, value in answers.items():
        n = safe_number(value)
        if n is not None:
            out[str(key)] = n
    return out


# ============================================================================
# DIAGNOSIS
# ============================================================================

def normalize_diagnosis_row(row, idx: int) -> dict:
    """Typed diagnosis record for one source row."""
    created_at_raw = pick(row, DIAGNOSIS_FIELDS["created_at"])
    created_at = parse_timestamp(created_at_raw)

    email_raw = pick(row, DIAGNOSIS_FIELDS["email"])
    email = "" if email_raw is None else str(email_raw).strip()

    age_raw = pick(row, DIAGNOSIS_FIELDS["age"])

    answers = None
    candidate = parse_json_safe(pick(row, DIAGNOSIS_FIELDS["answers"]))
    if isinstance(candidate, dict) and candidate:
        answers = candidate
    if answers is None:
        raw = parse_json_safe(pick(row, DIAGNOSIS_FIELDS["raw_json"]))
        if isinstance(raw, dict) and isinstance(raw.get("answers"), dict):
            answers = raw["answers"]

    record = {
        "row": idx,
        "created_at_raw": created_at_raw,
        "created_at": created_at,
        "created_date": to_date_string(created_at),
        "email": email,
        "email_lower": normalize_email(email),
        "name": clean_text(pick(row, DIAGNOSIS_FIELDS["name"])),
        "gender": normalize_gender(pick(row, DIAGNOSIS_FIELDS["gender"])),
        "age_raw": age_raw,
        "age": parse_age(age_raw),
        "type": normalize_type(pick(row, DIAGNOSIS_FIELDS["type"])),
    }
    for axis in AXIS_COLUMNS:
        record[axis] = safe_number(row.get(axis))
    record.update({
        "interested": parse_interested(pick(row, DIAGNOSIS_FIELDS["interested"])),
        "answers": numeric_answers(answers),
        "extras": {k: v for k, v in row.items() if k not in _DIAGNOSIS_CONSUMED},
        "referred": False,
        "referrer_id": None,
        "referral_complete_ts": None,
    })
    return record


def _as_records(rows) -> list:
    if isinstance(rows, pd.DataFrame):
        return rows.to_dict("records")
    return list(rows or [])


def diagnosis_frame(records: list) -> pd.DataFrame:
    """Assemble typed records into a frame with stable dtypes.

    Text and id columns stay object dtype so absent values remain None.
    """
    df = pd.DataFrame(records, columns=DIAGNOSIS_COLUMNS, dtype=object)
    df["row"] = df["row"].astype("int64")
    df["created_at"] = pd.to_datetime(df["created_at"])
    df["referral_complete_ts"] = pd.to_datetime(df["referral_complete_ts"])
    for col in ("age", *AXIS_COLUMNS):
        df[col] = df[col].astype("float64")
    df["interested"] = df["interested"].astype(bool)
    df["referred"] = df["referred"].astype(bool)
    df.index = pd.RangeIndex(len(df)) if df.empty else pd.Index(df["row"].to_numpy())
    return df


def normalize_diagnosis(rows) -> pd.DataFrame:
    """Normalize every diagnosis row; one bad field never drops the row."""
    records = [normalize_diagnosis_row(row, idx) for idx, row in enumerate(_as_records(rows))]
    df = diagnosis_frame(records)
    logger.info(
        f"✓ Normalized {len(df):,} diagnosis rows "
        f"({int(df['created_at'].isna().sum()):,} without timestamp, "
        f"{int(df['email_lower'].isna().sum()):,} without email)"
    )
    return df


# ============================================================================
# REFERRAL EVENTS
# ============================================================================

def _payload(row):
    for name in EVENT_FIELDS["payload"]:
        parsed = parse_json_safe(row.get(name))
        if isinstance(parsed, dict):
            return parsed
    return None


def _payload_value(payload, row, names):
    """Payload first, then a top-level column of the same name."""
    if payload:
        value = pick(payload, names)
        if value is not None:
            return value
    return pick(row, names)


def normalize_event_row(row, idx: int) -> dict:
    """Typed referral event for one source row."""
    timestamp_raw = pick(row, EVENT_FIELDS["timestamp"])
    ts = parse_timestamp(timestamp_raw)
    payload = _payload(row)

    event_type = pick(row, EVENT_FIELDS["event_type"])
    user_email = clean_text(_payload_value(payload, row, PAYLOAD_FIELDS["user_email"]))

    return {
        "row": idx,
        "timestamp_raw": timestamp_raw,
        "ts": ts,
        "date": to_date_string(ts),
        "event_type": "" if event_type is None else str(event_type).strip(),
        "user_id": clean_id(pick(row, EVENT_FIELDS["user_id"])),
        "referrer_id": clean_id(pick(row, EVENT_FIELDS["referrer_id"])),
        "edge": pick(row, EVENT_FIELDS["edge"]),
        "platform": clean_text(_payload_value(payload, row, PAYLOAD_FIELDS["platform"])),
        "payload": payload,
        "user_email": user_email,
        "user_email_lower": normalize_email(user_email),
        "user_name": clean_text(_payload_value(payload, row, PAYLOAD_FIELDS["user_name"])),
        "user_type": clean_text(_payload_value(payload, row, PAYLOAD_FIELDS["user_type"])),
        "gender": normalize_gender(_payload_value(payload, row, PAYLOAD_FIELDS["gender"])),
        "extras": {k: v for k, v in row.items() if k not in _EVENT_CONSUMED},
    }


def events_frame(records: list) -> pd.DataFrame:
    df = pd.DataFrame(records, columns=EVENT_COLUMNS, dtype=object)
    df["row"] = df["row"].astype("int64")
    df["ts"] = pd.to_datetime(df["ts"])
    df.index = pd.RangeIndex(len(df)) if df.empty else pd.Index(df["row"].to_numpy())
    return df


def normalize_events(rows) -> pd.DataFrame:
    """Normalize every referral event row."""
    records = [normalize_event_row(row, idx) for idx, row in enumerate(_as_records(rows))]
    df = events_frame(records)
    logger.info(
        f"✓ Normalized {len(df):,} referral events "
        f"({int(df['ts'].isna().sum()):,} without timestamp)"
    )
    return df
