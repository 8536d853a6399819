"""Tests for the staged load pipeline and the session that owns its snapshot."""

import pandas as pd
import pytest

from referral_analytics.errors import StructuralMismatchError
from referral_analytics.pipeline import (
    STAGES,
    AnalyticsSession,
    load_dataset,
    replace_events,
    require_tables,
    run_stages,
)


def test_load_runs_every_stage_in_order(dataset):
    assert dataset.stages == STAGES == ("normalize", "resolve", "join", "re_resolve")


def test_loaded_snapshot_is_consistent(dataset):
    assert len(dataset.diagnosis) == 5
    assert len(dataset.events) == 7
    assert dataset.users["user_key"].tolist() == ["a@x.com", "b@x.com", "__noemail__3", "c@x.com"]
    assert set(dataset.complete_email_map) == {"a@x.com", "b@x.com"}
    assert dataset.diagnosis["referred"].tolist() == [True, True, True, False, False]
    assert dataset.user_index["b@x.com"]["latest_row"] == 2


def test_sheet_names_match_case_insensitively(diagnosis_rows, event_rows):
    dataset = load_dataset({"Diagnosis": diagnosis_rows, "REFERRAL_EVENTS": event_rows})
    assert len(dataset.diagnosis) == 5


def test_dataframe_tables_are_accepted(diagnosis_rows, event_rows):
    dataset = load_dataset({
        "diagnosis": pd.DataFrame(diagnosis_rows),
        "referral_events": pd.DataFrame(event_rows),
    })
    assert dataset.diagnosis["referred"].sum() == 3


def test_missing_sheet_is_structural_mismatch(diagnosis_rows):
    with pytest.raises(StructuralMismatchError) as exc:
        require_tables({"diagnosis": diagnosis_rows})
    assert exc.value.missing == ["sheet:referral_events"]
    assert isinstance(exc.value, ValueError)


def test_events_without_type_column_are_rejected(diagnosis_rows):
    with pytest.raises(StructuralMismatchError, match="eventType"):
        load_dataset({"diagnosis": diagnosis_rows, "referral_events": [{"userId": "u1"}]})


def test_empty_event_sheet_is_allowed(diagnosis_rows):
    dataset = load_dataset({"diagnosis": diagnosis_rows, "referral_events": []})
    assert dataset.events.empty
    assert not dataset.diagnosis["referred"].any()
    assert dataset.referral.visit_edges.empty


def test_unknown_stage():
    with pytest.raises(ValueError):
        run_stages({}, start="render")


def test_replace_events_reenters_at_join(dataset, event_rows):
    # drop the complete that attributed a@x.com to r2
    updated = replace_events(dataset, event_rows[:-1])

    assert updated.stages == STAGES + ("join", "re_resolve")
    assert updated.diagnosis["referred"].tolist() == [False, False, True, False, False]
    assert updated.diagnosis.loc[0, "referrer_id"] is None
    assert len(updated.referral.complete_edges) == 1
    assert updated.user_index["a@x.com"]["latest_row"] == 1
    # the earlier snapshot is untouched
    assert dataset.diagnosis["referred"].tolist() == [True, True, True, False, False]


def test_session_keeps_previous_snapshot_on_failure(tables, diagnosis_rows):
    session = AnalyticsSession()
    first = session.load(tables)

    with pytest.raises(StructuralMismatchError):
        session.load({"diagnosis": diagnosis_rows})
    assert session.dataset is first
    assert session.mask is True


def test_session_replace_events(tables, event_rows):
    session = AnalyticsSession(mask=False)
    session.load(tables)
    updated = session.replace_events(event_rows[:3])
    assert session.dataset is updated
    assert len(updated.events) == 3


def test_session_requires_a_load():
    with pytest.raises(RuntimeError):
        AnalyticsSession().require()
