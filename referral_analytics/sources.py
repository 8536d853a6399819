# -*- coding: utf-8 -*-

"""
File readers: workbook or CSV pair -> {sheet name: [row dict, ...]}.

Cells pandas reads as missing become None so the normalizer sees the same
absent/blank values it would get from any other row source.
"""

import logging
from pathlib import Path

import pandas as pd

from .config import DIAGNOSIS_SHEET, REFERRAL_SHEET

logger = logging.getLogger(__name__)


def frame_to_rows(df: pd.DataFrame) -> list:
    """Row dicts with NaN/NaT replaced by None."""
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict("records")


def read_workbook(path: Path) -> dict:
    """Every sheet of an .xlsx workbook as row dicts."""
    sheets = pd.read_excel(path, sheet_name=None, engine="openpyxl")
    tables = {name: frame_to_rows(df) for name, df in sheets.items()}
    logger.info(f"✓ Read {len(tables)} sheets from {path}: {', '.join(map(str, tables))}")
    return tables


def read_csv_tables(diagnosis_csv: Path, events_csv: Path) -> dict:
    """The two row sets from a pair of CSV exports."""
    tables = {
        DIAGNOSIS_SHEET: frame_to_rows(pd.read_csv(diagnosis_csv)),
        REFERRAL_SHEET: frame_to_rows(pd.read_csv(events_csv)),
    }
    logger.info(
        f"✓ Read {len(tables[DIAGNOSIS_SHEET]):,} diagnosis rows from {diagnosis_csv}, "
        f"{len(tables[REFERRAL_SHEET]):,} event rows from {events_csv}"
    )
    return tables
