"""End-to-end CLI runs over CSV and workbook inputs written to a temp dir."""

import json

import pandas as pd
import pytest

from referral_analytics.cli import build_parser, main
from referral_analytics.masking import mask_id

OUTPUT_FILES = [
    "diagnosis_filtered.csv",
    "diagnosis_filtered.json",
    "favorites_filtered.csv",
    "referral_events_filtered.csv",
    "referrer_leaderboard.csv",
    "referral_edges.csv",
    "summary.json",
]


@pytest.fixture
def csv_paths(tmp_path, diagnosis_rows, event_rows):
    diag = tmp_path / "diagnosis.csv"
    events = tmp_path / "referral_events.csv"
    pd.DataFrame(diagnosis_rows).to_csv(diag, index=False)
    pd.DataFrame(event_rows).to_csv(events, index=False)
    return str(diag), str(events)


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.unit == "record"
    assert args.referral == "all"
    assert args.no_mask is False


def test_csv_run_writes_every_output(tmp_path, csv_paths, capsys):
    outdir = tmp_path / "out"
    rc = main(["--diagnosis-csv", csv_paths[0], "--events-csv", csv_paths[1], "--outdir", str(outdir)])

    assert rc == 0
    for name in OUTPUT_FILES:
        assert (outdir / name).exists(), name

    stdout = capsys.readouterr().out
    assert "=== Referral Funnel ===" in stdout
    assert "[Done]" in stdout

    summary = json.loads((outdir / "summary.json").read_text(encoding="utf-8"))
    assert summary["dashboard"]["diagnosis_records"] == 5
    assert summary["referral"]["unique_visitors"] == 3
    assert summary["network"]["edge_count"] == 3

    board = pd.read_csv(outdir / "referrer_leaderboard.csv")
    assert board["referrer_id"].tolist() == [mask_id("r", "r2"), mask_id("r", "r1")]
    assert "referrer_id_masked" not in board.columns


def test_no_mask_exports_raw_identifiers(tmp_path, csv_paths):
    outdir = tmp_path / "raw"
    rc = main([
        "--diagnosis-csv", csv_paths[0], "--events-csv", csv_paths[1],
        "--outdir", str(outdir), "--no-mask",
    ])

    assert rc == 0
    board = pd.read_csv(outdir / "referrer_leaderboard.csv")
    assert board["referrer_id"].tolist() == ["r2", "r1"]
    diag = pd.read_csv(outdir / "diagnosis_filtered.csv")
    assert diag.loc[0, "email"] == "a@x.com"


def test_filters_reach_the_exports(tmp_path, csv_paths):
    outdir = tmp_path / "filtered"
    rc = main([
        "--diagnosis-csv", csv_paths[0], "--events-csv", csv_paths[1], "--outdir", str(outdir),
        "--referral", "referred", "--date-to", "2024-01-02", "--unit", "user",
    ])

    assert rc == 0
    diag = pd.read_csv(outdir / "diagnosis_filtered.csv")
    # user unit keeps a@x.com's latest record (01-05), which falls outside the window
    assert diag["row"].tolist() == [2]
    summary = json.loads((outdir / "summary.json").read_text(encoding="utf-8"))
    assert summary["filters"]["referral"] == "referred"


def test_workbook_run(tmp_path, diagnosis_rows, event_rows):
    workbook = tmp_path / "export.xlsx"
    with pd.ExcelWriter(workbook, engine="openpyxl") as writer:
        pd.DataFrame(diagnosis_rows).to_excel(writer, sheet_name="diagnosis", index=False)
        pd.DataFrame(event_rows).to_excel(writer, sheet_name="referral_events", index=False)

    outdir = tmp_path / "xlsx"
    assert main(["--workbook", str(workbook), "--outdir", str(outdir)]) == 0
    summary = json.loads((outdir / "summary.json").read_text(encoding="utf-8"))
    assert summary["dashboard"]["referral_events"] == 7


def test_workbook_missing_sheet(tmp_path, diagnosis_rows, capsys):
    workbook = tmp_path / "partial.xlsx"
    pd.DataFrame(diagnosis_rows).to_excel(workbook, sheet_name="diagnosis", index=False, engine="openpyxl")

    assert main(["--workbook", str(workbook), "--outdir", str(tmp_path / "none")]) == 1
    assert "sheet:referral_events" in capsys.readouterr().out
    assert not (tmp_path / "none").exists()


def test_missing_file(tmp_path):
    missing = str(tmp_path / "nope.csv")
    assert main(["--diagnosis-csv", missing, "--events-csv", missing]) == 1


def test_no_source(capsys):
    assert main([]) == 1
    assert "[Error] Specify data source" in capsys.readouterr().out
