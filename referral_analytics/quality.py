# -*- coding: utf-8 -*-

"""
Data quality checks
- Diagnosis quality: how many rows lost a timestamp, email or age to
  parsing, how many carry an out-of-range axis score, how many emails repeat
- Column profile: per raw column missing/unique counts, an inferred type and
  the three most frequent values
"""

import json
import logging
import re

import pandas as pd

from .config import AXIS_COLUMNS, AXIS_RANGE
from .normalize import is_blank, parse_timestamp, safe_number
from .summary_stats import top_k

logger = logging.getLogger(__name__)

UNNAMED_RE = re.compile(r"^Unnamed", re.I)


def diagnosis_quality(records: pd.DataFrame) -> dict:
    """Missing/invalid counts over a (filtered) diagnosis frame."""
    total = len(records)
    if not total:
        return {"total": 0}

    low, high = AXIS_RANGE
    axes = records[list(AXIS_COLUMNS)]
    out_of_range = ((axes < low) | (axes > high)).any(axis=1)

    email_counts = records["email_lower"].dropna().value_counts()

    results = {
        "total": total,
        "missing_created_at": int(records["created_at"].isna().sum()),
        "missing_email": int(records["email_lower"].isna().sum()),
        "age_not_numeric": int(records["age"].isna().sum()),
        "axis_out_of_range": int(out_of_range.sum()),
        "duplicate_emails": int((email_counts >= 2).sum()),
    }
    logger.debug(f"Diagnosis quality: {results}")
    return results


def _display(value) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def infer_column_type(values: list) -> str:
    """number | date | text | empty, by a 90% majority over present values."""
    if not values:
        return "empty"
    numeric = sum(1 for v in values if safe_number(v) is not None)
    if numeric / len(values) > 0.9:
        return "number"
    dated = sum(1 for v in values if parse_timestamp(v) is not None)
    if dated / len(values) > 0.9:
        return "date"
    return "text"


def column_profile(rows, hide_unnamed: bool = True) -> pd.DataFrame:
    """One profile row per raw column, sorted by column name."""
    if isinstance(rows, pd.DataFrame):
        rows = rows.to_dict("records")
    rows = list(rows or [])

    columns = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    names = sorted((c for c in columns if not (hide_unnamed and UNNAMED_RE.match(str(c)))), key=str)

    out = []
    for name in names:
        values = [row.get(name) for row in rows if not is_blank(row.get(name))]
        displayed = [_display(v) for v in values]
        out.append({
            "column": str(name),
            "missing": len(rows) - len(values),
            "unique": len(set(displayed)),
            "type": infer_column_type(values),
            "top_values": top_k(displayed, 3),
        })
    return pd.DataFrame(out, columns=["column", "missing", "unique", "type", "top_values"])
