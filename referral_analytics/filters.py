# -*- coding: utf-8 -*-

"""
Filter engine shared by every view.

One option shape (FilterOptions) and one evaluation order:
  date -> gender -> type -> age -> referral -> event type -> platform

Each record kind declares which of its columns backs each logical field.
A logical field missing from a kind's map is not evaluated for that kind.
Events map only date, referral, event type and platform: gender, type and
age are diagnosis-side options. View-specific overrides are expressed by
the caller with `options._replace(...)`, never inside the engine.
"""

from typing import NamedTuple

import pandas as pd

from .config import EVENT_SHARE, UNKNOWN_PLATFORM, UNKNOWN_TYPE

ALL = "all"


class FilterOptions(NamedTuple):
    date_from: str | None = None
    date_to: str | None = None
    gender: str = ALL          # all | unknown | <gender>
    type: str = ALL            # all | <type>
    age_min: float | None = None
    age_max: float | None = None
    referral: str = ALL        # all | referred | not | <referrerId>
    event_type: str = ALL
    platform: str = ALL


DIAGNOSIS_FIELD_MAP = {
    "date": "created_date",
    "gender": "gender",
    "type": "type",
    "age": "age",
    "referred": "referred",
    "referrer": "referrer_id",
}

EVENT_FIELD_MAP = {
    "date": "date",
    "referred": "_has_referrer",
    "referrer": "_attributed_referrer",
    "event_type": "event_type",
    "platform": "platform",
}


# ============================================================================
# PREDICATES
# ============================================================================

def _is_set(value) -> bool:
    return value is not None and value != "" and not (isinstance(value, float) and pd.isna(value))


def date_mask(dates: pd.Series, date_from, date_to) -> pd.Series:
    """Inclusive calendar-day string comparison; undated rows fail when a bound is set."""
    mask = pd.Series(True, index=dates.index)
    if not (_is_set(date_from) or _is_set(date_to)):
        return mask
    d = dates.fillna("").astype(str)
    mask &= d != ""
    if _is_set(date_from):
        mask &= d >= str(date_from)
    if _is_set(date_to):
        mask &= d <= str(date_to)
    return mask


def gender_mask(genders: pd.Series, gender) -> pd.Series:
    if not _is_set(gender) or gender == ALL:
        return pd.Series(True, index=genders.index)
    if gender == "unknown":
        return ~genders.isin(["female", "male"])
    return genders == gender


def type_mask(types: pd.Series, wanted) -> pd.Series:
    if not _is_set(wanted) or wanted == ALL:
        return pd.Series(True, index=types.index)
    normalized = types.fillna(UNKNOWN_TYPE).astype(str).str.strip().replace("", UNKNOWN_TYPE)
    return normalized == wanted


def age_mask(ages: pd.Series, age_min, age_max) -> pd.Series:
    """Inclusive bounds; a non-numeric age fails only a bound that is set."""
    mask = pd.Series(True, index=ages.index)
    numeric = pd.to_numeric(ages, errors="coerce")
    if _is_set(age_min):
        mask &= numeric >= float(age_min)
    if _is_set(age_max):
        mask &= numeric <= float(age_max)
    return mask


def referral_mask(referred: pd.Series, referrers: pd.Series, selector) -> pd.Series:
    if not _is_set(selector) or selector == ALL:
        return pd.Series(True, index=referred.index)
    if selector == "referred":
        return referred.astype(bool)
    if selector == "not":
        return ~referred.astype(bool)
    return referrers == selector


def _equals_mask(values: pd.Series, wanted, default=None) -> pd.Series:
    if not _is_set(wanted) or wanted == ALL:
        return pd.Series(True, index=values.index)
    if default is not None:
        values = values.fillna(default).astype(str)
    return values == wanted


# ============================================================================
# ENGINE
# ============================================================================

def build_mask(frame: pd.DataFrame, options: FilterOptions, field_map: dict) -> pd.Series:
    """Evaluate the option set over a frame in the fixed order."""
    mask = pd.Series(True, index=frame.index)
    if "date" in field_map:
        mask &= date_mask(frame[field_map["date"]], options.date_from, options.date_to)
    if "gender" in field_map:
        mask &= gender_mask(frame[field_map["gender"]], options.gender)
    if "type" in field_map:
        mask &= type_mask(frame[field_map["type"]], options.type)
    if "age" in field_map:
        mask &= age_mask(frame[field_map["age"]], options.age_min, options.age_max)
    if "referred" in field_map:
        mask &= referral_mask(frame[field_map["referred"]], frame[field_map["referrer"]], options.referral)
    if "event_type" in field_map:
        mask &= _equals_mask(frame[field_map["event_type"]], options.event_type)
    if "platform" in field_map:
        mask &= _equals_mask(frame[field_map["platform"]], options.platform, default=UNKNOWN_PLATFORM)
    return mask


def filter_diagnosis(diagnosis: pd.DataFrame, options: FilterOptions) -> pd.DataFrame:
    """Diagnosis (or favorites) records passing every option."""
    if diagnosis.empty:
        return diagnosis
    return diagnosis[build_mask(diagnosis, options, DIAGNOSIS_FIELD_MAP)]


def event_referrers(events: pd.DataFrame) -> pd.Series:
    """Referrer each event is attributed to: referrerId, or the share author."""
    share_author = events["user_id"].where(events["event_type"] == EVENT_SHARE)
    return events["referrer_id"].where(events["referrer_id"].notna(), share_author)


def filter_events(events: pd.DataFrame, options: FilterOptions) -> pd.DataFrame:
    """Referral events passing every option."""
    if events.empty:
        return events
    referrers = event_referrers(events)
    view = events.assign(_attributed_referrer=referrers, _has_referrer=referrers.notna())
    return events[build_mask(view, options, EVENT_FIELD_MAP)]
