# -*- coding: utf-8 -*-

"""
Diagnosis & Referral Analytics

Typical use:

    from referral_analytics import AnalyticsSession, FilterOptions, views

    session = AnalyticsSession()
    dataset = session.load({"diagnosis": diagnosis_rows, "referral_events": event_rows})
    board = views.referral_view(dataset, FilterOptions(date_from="2024-01-01"))["leaderboard"]
"""

from .errors import StructuralMismatchError
from .filters import FilterOptions
from .pipeline import STAGES, AnalyticsSession, LoadedDataset, load_dataset, replace_events

__version__ = "0.1.0"

__all__ = [
    "STAGES",
    "AnalyticsSession",
    "FilterOptions",
    "LoadedDataset",
    "StructuralMismatchError",
    "load_dataset",
    "replace_events",
]
