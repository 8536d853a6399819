# -*- coding: utf-8 -*-

"""
Identity resolution: diagnosis records -> one summary row per user.

Records group by lowercased email; a record without email becomes its own
user under a synthetic key, so every record lands in exactly one group.
Within a group records are ordered by timestamp (missing first) with the
source row as tiebreak, and "latest" is the last one.
"""

import logging

import pandas as pd

from .config import NO_EMAIL_PREFIX

logger = logging.getLogger(__name__)

USER_COLUMNS = [
    "user_key", "email_lower", "email", "latest_row", "has_favorite",
    "favorite_count", "latest_favorite_row", "n_records", "rows",
]


def user_keys(diagnosis: pd.DataFrame) -> pd.Series:
    """Lowercased email, or the synthetic per-row key when absent."""
    synthetic = NO_EMAIL_PREFIX + diagnosis["row"].astype(str)
    return diagnosis["email_lower"].where(diagnosis["email_lower"].notna(), synthetic)


def chronological(diagnosis: pd.DataFrame) -> pd.DataFrame:
    """Records sorted by (timestamp, row) with missing timestamps first."""
    order = diagnosis.assign(_ts=diagnosis["created_at"].fillna(pd.Timestamp.min))
    return order.sort_values(["_ts", "row"], kind="mergesort").drop(columns="_ts")


def resolve_users(diagnosis: pd.DataFrame) -> pd.DataFrame:
    """Build user summaries: latest record, favorite count, latest favorite."""
    if diagnosis.empty:
        return pd.DataFrame(columns=USER_COLUMNS)

    ordered = chronological(diagnosis).assign(_key=user_keys(diagnosis))
    first_seen = {key: i for i, key in enumerate(user_keys(diagnosis).drop_duplicates())}

    users = []
    for key, group in ordered.groupby("_key", sort=False):
        rows = group["row"].tolist()
        favorites = group.loc[group["interested"], "row"].tolist()
        latest = group.iloc[-1]
        users.append({
            "user_key": key,
            "email_lower": latest["email_lower"],
            "email": latest["email"],
            "latest_row": rows[-1],
            "has_favorite": bool(favorites),
            "favorite_count": len(favorites),
            "latest_favorite_row": favorites[-1] if favorites else None,
            "n_records": len(rows),
            "rows": rows,
        })

    users.sort(key=lambda u: first_seen[u["user_key"]])
    out = pd.DataFrame(users, columns=USER_COLUMNS)
    logger.info(
        f"✓ Resolved {len(diagnosis):,} records into {len(out):,} users "
        f"({int(out['has_favorite'].sum()):,} with a favorite)"
    )
    return out


def build_user_index(users: pd.DataFrame) -> dict:
    """email_lower -> user summary dict, for users that have an email."""
    index = {}
    for user in users.to_dict("records"):
        if user["email_lower"] is not None and not pd.isna(user["email_lower"]):
            index[user["email_lower"]] = user
    return index


def records_at(diagnosis: pd.DataFrame, rows) -> pd.DataFrame:
    """Diagnosis records for the given source rows, in the order given."""
    rows = [r for r in rows if r is not None and not pd.isna(r)]
    if not rows:
        return diagnosis.iloc[0:0]
    return diagnosis.loc[[int(r) for r in rows]]


def latest_records(diagnosis: pd.DataFrame, users: pd.DataFrame) -> pd.DataFrame:
    """One representative (latest) record per user."""
    if users.empty:
        return diagnosis.iloc[0:0]
    return records_at(diagnosis, users["latest_row"])


def latest_favorite_records(diagnosis: pd.DataFrame, users: pd.DataFrame) -> pd.DataFrame:
    """Latest favorited record for every user who ever favorited."""
    if users.empty:
        return diagnosis.iloc[0:0]
    return records_at(diagnosis, users.loc[users["has_favorite"], "latest_favorite_row"])
