#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Diagnosis & Referral Analytics
- Input: a workbook with `diagnosis` and `referral_events` sheets, or the two
  sheets exported as CSV files
- Output: prints KPI and ranking tables; writes filtered tables and a
  summary to --outdir
- Usage:
  referral-analytics --workbook export.xlsx --date-from 2024-01-01 --no-mask
  python -m referral_analytics --diagnosis-csv diag.csv --events-csv events.csv
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import DEFAULT_MIN_EDGE
from .errors import StructuralMismatchError
from .export import (
    DIAGNOSIS_ID_COLUMNS, EDGE_ID_COLUMNS, EVENT_ID_COLUMNS, LEADERBOARD_ID_COLUMNS,
    diagnosis_table, edges_table, events_table, export_table, leaderboard_table,
)
from .filters import ALL, FilterOptions
from .pipeline import AnalyticsSession
from .sources import read_csv_tables, read_workbook
from .views import RECORD, UNITS, dashboard_view, diagnosis_view, favorites_view, referral_view

logger = logging.getLogger(__name__)

LEADERBOARD_HEAD = 10


def _fmt(x) -> str:
    return "—" if x is None else f"{x:.4f}"


def _pct(x) -> str:
    return "—" if x is None else f"{x:.2%}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="referral-analytics",
        description="Diagnosis & Referral Analytics: funnel, leaderboard and favorite cohorts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # From a workbook
  referral-analytics --workbook export.xlsx --outdir outputs

  # From CSV exports, one referrer, raw identifiers
  referral-analytics --diagnosis-csv diagnosis.csv --events-csv referral_events.csv \\
      --referral r1 --no-mask
        """
    )

    # Sources
    parser.add_argument("--workbook", type=str, help="Path to .xlsx workbook")
    parser.add_argument("--diagnosis-csv", type=str, help="Path to diagnosis CSV")
    parser.add_argument("--events-csv", type=str, help="Path to referral_events CSV")

    # Filters
    parser.add_argument("--date-from", type=str, default=None, help="First day (YYYY-MM-DD), inclusive")
    parser.add_argument("--date-to", type=str, default=None, help="Last day (YYYY-MM-DD), inclusive")
    parser.add_argument("--gender", type=str, default=ALL, help="all | unknown | female | male | ...")
    parser.add_argument("--type", type=str, default=ALL, help="Diagnosis type or 'all'")
    parser.add_argument("--age-min", type=float, default=None, help="Minimum age, inclusive")
    parser.add_argument("--age-max", type=float, default=None, help="Maximum age, inclusive")
    parser.add_argument("--referral", type=str, default=ALL, help="all | referred | not | <referrerId>")

    # Analysis parameters
    parser.add_argument("--min-edge", type=int, default=DEFAULT_MIN_EDGE, help="Minimum edge value for graph stats")
    parser.add_argument("--unit", choices=UNITS, default=RECORD, help="Count records or users (latest record)")
    parser.add_argument("--no-mask", action="store_true", help="Show and export raw identifiers")
    parser.add_argument("--outdir", type=str, default="outputs", help="Directory for exported tables")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def load_tables(args, parser):
    if args.workbook:
        print(f"[Info] Reading workbook: {args.workbook}")
        return read_workbook(Path(args.workbook))
    if args.diagnosis_csv and args.events_csv:
        print(f"[Info] Reading CSV: {args.diagnosis_csv}, {args.events_csv}")
        return read_csv_tables(Path(args.diagnosis_csv), Path(args.events_csv))
    print("[Error] Specify data source: --workbook <file> or --diagnosis-csv <file> --events-csv <file>")
    parser.print_help()
    return None


# ============================================================================
# REPORT
# ============================================================================

def print_report(dashboard: dict, diagnosis: dict, favorites: dict, referral: dict, mask: bool):
    k = dashboard["kpis"]
    print("\n=== Dashboard ===")
    print(f"Diagnosis records: {k['diagnosis_records']:,}  | favorites {k['favorite_records']:,} ({_pct(k['favorite_rate'])})")
    print(f"Favorite users:    {k['favorite_users']:,}")
    print(f"Referral events:   {k['referral_events']:,}  "
          f"(share {k['share_events']:,} / visit {k['referral_visit_events']:,} / complete {k['referral_complete_events']:,})")

    d = diagnosis["kpis"]
    print(f"\n=== Diagnosis ({d['unit']}) ===")
    print(f"n = {d['count']:,}, favorites = {d['favorites']:,} ({_pct(d['favorite_rate'])}), "
          f"unique emails = {d['unique_emails']:,}, female {_pct(d['female_rate'])}, referred {_pct(d['referred_rate'])}")

    r = referral["kpis"]
    print("\n=== Referral Funnel ===")
    for stage, value in referral["funnel"]:
        print(f"{stage:<20} {value:>8,}")
    print(f"share→visit {_pct(r['share_to_visit'])} | visit→complete {_pct(r['visit_to_complete'])} | "
          f"share→complete {_pct(r['share_to_complete'])}")
    print(f"Completers matched to diagnosis: {r['matched_favorites']}/{r['matched_completes']} favorited "
          f"({_pct(r['matched_favorite_rate'])})")

    board = leaderboard_table(referral["leaderboard"])
    if not board.empty:
        label = "referrer_id_masked" if mask else "referrer_label"
        cols = [label, "shares", "unique_visitors", "unique_completes", "visit_to_complete", "avg_ttc_hours",
                "matched_favorite_rate"]
        print("\n=== Referrer Leaderboard ===")
        print(board[cols].head(LEADERBOARD_HEAD).to_string(index=False, float_format=lambda x: f"{x:.4f}"))

    signals = favorites["signals"]
    print(f"\n=== Favorites vs. Not ({favorites['kpis']['unit']}) ===")
    if signals.empty:
        print("[Info] Not enough favorited / non-favorited observations for a comparison.")
    else:
        print(signals.to_string(index=False, float_format=lambda x: f"{x:.3f}"))

    lift = diagnosis["referral_lift"]
    print("\n=== Favorite Rate: Referred vs. Not ===")
    for name, x, n, rate, ci in (
        ("Referred", lift["fav_referred"], lift["n_referred"], lift["rate_referred"], lift["ci_referred"]),
        ("Not", lift["fav_not"], lift["n_not"], lift["rate_not"], lift["ci_not"]),
    ):
        ci_text = f"[{ci[0]:.2%}, {ci[1]:.2%}]" if ci else "—"
        print(f"{name:<9} {x}/{n} = {_pct(rate)}  (95% CI {ci_text})")
    print(f"Δ = {_pct(lift['delta'])} | lift = {_pct(lift['lift'])} | z = {_fmt(lift['z'])}, p = {_fmt(lift['p'])}")

    net = referral["network"]
    print("\n=== Referral Network ===")
    print(f"nodes {net.node_count:,}, edges {net.edge_count:,}, max out-degree {net.max_out_degree:,}, "
          f"longest path {'undefined (cycle)' if net.longest_path is None else net.longest_path}")


def summary_dict(dashboard: dict, diagnosis: dict, favorites: dict, referral: dict, options: FilterOptions) -> dict:
    return {
        "filters": options._asdict(),
        "dashboard": dashboard["kpis"],
        "diagnosis": diagnosis["kpis"],
        "quality": diagnosis["quality"],
        "favorites": favorites["kpis"],
        "referral": referral["kpis"],
        "referral_lift": diagnosis["referral_lift"],
        "network": referral["network"]._asdict(),
    }


def write_outputs(outdir: Path, diagnosis: dict, favorites: dict, referral: dict, summary: dict, mask: bool):
    outdir.mkdir(parents=True, exist_ok=True)
    diag = diagnosis_table(diagnosis["records"])
    export_table(diag, DIAGNOSIS_ID_COLUMNS, mask, outdir / "diagnosis_filtered.csv")
    export_table(diag, DIAGNOSIS_ID_COLUMNS, mask, outdir / "diagnosis_filtered.json", fmt="json")
    export_table(diagnosis_table(favorites["records"], include_favorite=False), DIAGNOSIS_ID_COLUMNS, mask,
                 outdir / "favorites_filtered.csv")
    export_table(events_table(referral["events"]), EVENT_ID_COLUMNS, mask, outdir / "referral_events_filtered.csv")
    export_table(leaderboard_table(referral["leaderboard"]), LEADERBOARD_ID_COLUMNS, mask,
                 outdir / "referrer_leaderboard.csv")
    export_table(edges_table(referral["edges"]), EDGE_ID_COLUMNS, mask, outdir / "referral_edges.csv")
    (outdir / "summary.json").write_text(
        json.dumps(summary, ensure_ascii=False, indent=2, default=str), encoding="utf-8"
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    session = AnalyticsSession(mask=not args.no_mask)
    try:
        tables = load_tables(args, parser)
        if tables is None:
            return 1
        session.load(tables)
    except (StructuralMismatchError, FileNotFoundError) as e:
        print(f"[Error] {e}")
        return 1

    dataset = session.require()
    options = FilterOptions(
        date_from=args.date_from,
        date_to=args.date_to,
        gender=args.gender,
        type=args.type,
        age_min=args.age_min,
        age_max=args.age_max,
        referral=args.referral,
    )

    dashboard = dashboard_view(dataset)
    diagnosis = diagnosis_view(dataset, options, unit=args.unit)
    favorites = favorites_view(dataset, options, unit=args.unit)
    referral = referral_view(dataset, options, min_edge=args.min_edge, mask=session.mask)

    print_report(dashboard, diagnosis, favorites, referral, session.mask)

    outdir = Path(args.outdir)
    summary = summary_dict(dashboard, diagnosis, favorites, referral, options)
    write_outputs(outdir, diagnosis, favorites, referral, summary, session.mask)

    print(f"\n[Done] Outputs saved to: {outdir.resolve()}")
    print(" - diagnosis_filtered.csv, diagnosis_filtered.json, favorites_filtered.csv")
    print(" - referral_events_filtered.csv, referrer_leaderboard.csv, referral_edges.csv, summary.json")
    return 0


if __name__ == "__main__":
    sys.exit(main())
