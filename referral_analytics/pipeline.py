# -*- coding: utf-8 -*-

"""
Load pipeline and session.

Every (re)load runs the named stages in this exact order:

    normalize -> resolve -> join -> re_resolve

`run_stages` only accepts an entry stage and always runs through to the
end, so attribution can never change without the user summaries being
rebuilt after it. The result is an immutable LoadedDataset snapshot;
AnalyticsSession is the only place holding a mutable reference to it.
"""

import logging
from typing import NamedTuple

import pandas as pd

from .config import DIAGNOSIS_SHEET, EVENT_FIELDS, REFERRAL_SHEET
from .errors import StructuralMismatchError
from .identity import build_user_index, resolve_users
from .join import attach_referrals, build_complete_email_map
from .normalize import normalize_diagnosis, normalize_events
from .referral_graph import ReferralGraph, build_referral_graph

logger = logging.getLogger(__name__)

STAGES = ("normalize", "resolve", "join", "re_resolve")


class LoadedDataset(NamedTuple):
    raw_diagnosis: list
    raw_events: list
    diagnosis: pd.DataFrame
    events: pd.DataFrame
    users: pd.DataFrame
    user_index: dict
    referral: ReferralGraph
    complete_email_map: dict
    stages: tuple


# ============================================================================
# INGESTION
# ============================================================================

def find_sheet(tables: dict, name: str):
    """Key of the sheet whose name matches case-insensitively, or None."""
    for key in tables:
        if str(key).strip().lower() == name:
            return key
    return None


def _rows(table) -> list:
    if isinstance(table, pd.DataFrame):
        return table.to_dict("records")
    return list(table or [])


def require_tables(tables: dict):
    """(diagnosis rows, referral event rows) or StructuralMismatchError."""
    missing = {name for name in (DIAGNOSIS_SHEET, REFERRAL_SHEET) if find_sheet(tables, name) is None}
    if missing:
        raise StructuralMismatchError({f"sheet:{name}" for name in missing})

    diagnosis_rows = _rows(tables[find_sheet(tables, DIAGNOSIS_SHEET)])
    event_rows = _rows(tables[find_sheet(tables, REFERRAL_SHEET)])
    check_event_columns(event_rows)
    return diagnosis_rows, event_rows


def check_event_columns(event_rows: list):
    """A non-empty event set needs at least one accepted event-type column."""
    if not event_rows:
        return
    accepted = EVENT_FIELDS["event_type"]
    if not any(name in row for row in event_rows for name in accepted):
        raise StructuralMismatchError({f"{REFERRAL_SHEET}:{'|'.join(accepted)}"})


# ============================================================================
# STAGES
# ============================================================================

def _normalize(state: dict):
    state["diagnosis"] = normalize_diagnosis(state["raw_diagnosis"])
    state["events"] = normalize_events(state["raw_events"])


def _resolve(state: dict):
    state["users"] = resolve_users(state["diagnosis"])
    state["user_index"] = build_user_index(state["users"])
    state["referral"] = build_referral_graph(state["events"])


def _join(state: dict):
    state["complete_email_map"] = build_complete_email_map(state["events"])
    state["diagnosis"] = attach_referrals(state["diagnosis"], state["complete_email_map"])


def _re_resolve(state: dict):
    state["users"] = resolve_users(state["diagnosis"])
    state["user_index"] = build_user_index(state["users"])


_STAGE_FUNCS = {
    "normalize": _normalize,
    "resolve": _resolve,
    "join": _join,
    "re_resolve": _re_resolve,
}


def run_stages(state: dict, start: str = "normalize") -> dict:
    """Run from `start` through the last stage."""
    if start not in STAGES:
        raise ValueError(f"Unknown stage: {start!r} (expected one of {STAGES})")
    completed = tuple(state.get("stages", ()))
    for name in STAGES[STAGES.index(start):]:
        _STAGE_FUNCS[name](state)
        completed += (name,)
        logger.debug(f"Stage {name} done")
    state["stages"] = completed
    return state


def load_dataset(tables: dict) -> LoadedDataset:
    """Validate the two row sets and derive a fully consistent snapshot."""
    diagnosis_rows, event_rows = require_tables(tables)
    state = run_stages({"raw_diagnosis": diagnosis_rows, "raw_events": event_rows, "stages": ()})
    logger.info(
        f"✓ Loaded {len(state['diagnosis']):,} diagnosis records, "
        f"{len(state['events']):,} referral events, {len(state['users']):,} users"
    )
    return LoadedDataset(**state)


def replace_events(dataset: LoadedDataset, event_rows) -> LoadedDataset:
    """New snapshot for a changed event set; re-enters the pipeline at `join`."""
    event_rows = _rows(event_rows)
    check_event_columns(event_rows)
    state = dataset._asdict()
    state["raw_events"] = event_rows
    state["events"] = normalize_events(event_rows)
    state["referral"] = build_referral_graph(state["events"])
    return LoadedDataset(**run_stages(state, start="join"))


# ============================================================================
# SESSION
# ============================================================================

class AnalyticsSession:
    """Owns the current snapshot and the masking state."""

    def __init__(self, mask: bool = True):
        self.dataset = None
        self.mask = mask

    def load(self, tables: dict) -> LoadedDataset:
        """Swap in a new snapshot; a failed load keeps the previous one."""
        try:
            dataset = load_dataset(tables)
        except StructuralMismatchError as e:
            logger.error(f"✗ Load rejected: {e}")
            raise
        self.dataset = dataset
        return dataset

    def replace_events(self, event_rows) -> LoadedDataset:
        self.dataset = replace_events(self.require(), event_rows)
        return self.dataset

    def require(self) -> LoadedDataset:
        if self.dataset is None:
            raise RuntimeError("No dataset loaded")
        return self.dataset
