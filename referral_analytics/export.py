# -*- coding: utf-8 -*-

"""
Export tables with raw and masked identifier columns, plus CSV/JSON writers.

Every builder returns both variants side by side (e.g. `referrer_id` and
`referrer_id_masked`); `apply_masking` keeps the one selected by the active
masking state under the raw column name.
"""

import json
import logging
from pathlib import Path

import pandas as pd

from .config import AXIS_COLUMNS
from .filters import event_referrers
from .masking import REFERRER_TAG, USER_TAG, mask_email, mask_id

logger = logging.getLogger(__name__)

DIAGNOSIS_ID_COLUMNS = {"referrer_id": "referrer_id_masked", "email": "user_masked"}
EVENT_ID_COLUMNS = {
    "referrer_id": "referrer_id_masked",
    "user_id": "user_id_masked",
    "user_email": "user_email_masked",
}
LEADERBOARD_ID_COLUMNS = {"referrer_id": "referrer_id_masked", "referrer_label": "referrer_id_masked"}
EDGE_ID_COLUMNS = {"referrer_id": "referrer_id_masked", "user_id": "user_id_masked"}


def _mask_series(values: pd.Series, kind: str) -> pd.Series:
    return values.map(lambda v: mask_id(kind, v) if isinstance(v, str) else "")


def _none_if_missing(value):
    return None if value is None or (not isinstance(value, (dict, list)) and pd.isna(value)) else value


# ============================================================================
# TABLE BUILDERS
# ============================================================================

def diagnosis_table(records: pd.DataFrame, include_favorite: bool = True) -> pd.DataFrame:
    """Diagnosis/favorite rows as exported: raw source values plus flags."""
    out = pd.DataFrame({
        "row": records["row"],
        "created_at": records["created_at_raw"].map(_none_if_missing),
        "type": records["type"],
        "gender": records["gender"],
        "age": records["age_raw"].map(_none_if_missing),
    })
    for axis in AXIS_COLUMNS:
        out[axis] = records[axis]
    if include_favorite:
        out["favorite"] = records["interested"].astype(int)
    out["referred"] = records["referred"].astype(int)
    out["referrer_id"] = records["referrer_id"]
    out["referrer_id_masked"] = _mask_series(records["referrer_id"], REFERRER_TAG)
    out["email"] = records["email"].map(lambda e: e or None)
    out["user_masked"] = [
        mask_email(r.email_lower, r.email, r.row) for r in records.itertuples(index=False)
    ]
    out["answers"] = records["answers"]
    return out.reset_index(drop=True)


def events_table(events: pd.DataFrame) -> pd.DataFrame:
    """Referral event rows; shares report their author as the referrer."""
    referrers = event_referrers(events)
    out = pd.DataFrame({
        "row": events["row"],
        "timestamp": events["timestamp_raw"].map(_none_if_missing),
        "event_type": events["event_type"],
        "platform": events["platform"],
        "referrer_id": referrers,
        "referrer_id_masked": _mask_series(referrers, REFERRER_TAG),
        "user_id": events["user_id"],
        "user_id_masked": _mask_series(events["user_id"], USER_TAG),
        "user_email": events["user_email"],
        "user_email_masked": _mask_series(events["user_email_lower"], USER_TAG),
        "payload": events["payload"],
    })
    return out.reset_index(drop=True)


def leaderboard_table(leaderboard: pd.DataFrame) -> pd.DataFrame:
    out = leaderboard.copy()
    out.insert(2, "referrer_id_masked", _mask_series(out["referrer_id"], REFERRER_TAG))
    return out


def edges_table(edges: pd.DataFrame) -> pd.DataFrame:
    """(referrer_id, user_id, value) edges, optionally with display labels."""
    out = edges.copy()
    out["referrer_id_masked"] = _mask_series(out["referrer_id"], REFERRER_TAG)
    out["user_id_masked"] = _mask_series(out["user_id"], USER_TAG)
    return out.reset_index(drop=True)


def apply_masking(table: pd.DataFrame, id_columns: dict, mask: bool) -> pd.DataFrame:
    """Keep one identifier variant per column, under the raw column name."""
    out = table.copy()
    if mask:
        for raw, masked in id_columns.items():
            if raw in out.columns:
                out[raw] = out[masked]
    masked_columns = [c for c in dict.fromkeys(id_columns.values()) if c in out.columns]
    return out.drop(columns=masked_columns)


# ============================================================================
# SERIALIZATION
# ============================================================================

def _json_cell(value):
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return value


def write_csv(table: pd.DataFrame, path: Path | None = None):
    """CSV text (path=None) or a file; nested cells are written as JSON text."""
    flat = table.copy()
    for col in flat.columns:
        if flat[col].dtype == object:
            flat[col] = flat[col].map(_json_cell)
    if path is None:
        return flat.to_csv(index=False)
    flat.to_csv(path, index=False)
    logger.info(f"✓ Wrote {len(flat):,} rows to {path}")
    return None


def write_json(table: pd.DataFrame, path: Path | None = None):
    """JSON records (path=None returns the text); datetimes as ISO strings."""
    text = table.to_json(orient="records", date_format="iso", force_ascii=False, indent=2)
    if path is None:
        return text
    Path(path).write_text(text, encoding="utf-8")
    logger.info(f"✓ Wrote {len(table):,} records to {path}")
    return None


def export_table(table: pd.DataFrame, id_columns: dict, mask: bool, path: Path, fmt: str = "csv"):
    """Apply the masking state and write one table."""
    selected = apply_masking(table, id_columns, mask)
    if fmt == "csv":
        return write_csv(selected, path)
    if fmt == "json":
        return write_json(selected, path)
    raise ValueError(f"Unknown export format: {fmt!r}")
