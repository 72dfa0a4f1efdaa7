"""
Command-line utility for the forecasting engine.

Sub-commands:
- seasons: played/total fixtures per configured season
- teams: fitted home/away strengths
- forecast HOME AWAY: single fixture probabilities
- value: upcoming fixtures with model prices
- backtest: evaluate a held-out season
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import requests

from .backtest import BACKTEST_MODES
from .config_loader import load_config
from .evaluation import bins_frame, summary_frame
from .service import ForecastService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="football-strength", description=__doc__.splitlines()[1])
    parser.add_argument("--config", type=Path, default=None, help="Path to a YAML config file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seasons", help="Show fixtures per season.")
    sub.add_parser("teams", help="Show fitted team strengths.")

    forecast = sub.add_parser("forecast", help="Forecast a single fixture.")
    forecast.add_argument("home")
    forecast.add_argument("away")

    value = sub.add_parser("value", help="Upcoming fixtures with model prices.")
    value.add_argument("--days", type=int, default=14)
    value.add_argument("--limit", type=int, default=25)
    value.add_argument("--min-ev", type=float, default=0.0)
    value.add_argument("--min-p", type=float, default=0.0)
    value.add_argument("--all", action="store_true", help="Include thin-sample fixtures.")

    backtest = sub.add_parser("backtest", help="Evaluate a held-out season.")
    backtest.add_argument("--season", default="auto")
    backtest.add_argument("--mode", choices=BACKTEST_MODES, default="static")
    backtest.add_argument("--min-ev", type=float, default=0.02)
    backtest.add_argument("--min-p", type=float, default=0.10)
    backtest.add_argument("--json", action="store_true", help="Print the full report as JSON.")
    return parser


def _print_frame(df, empty_message: str) -> None:
    if df.empty:
        print(empty_message)
        return
    print(df.to_string(index=False, float_format=lambda v: f"{v:.3f}"))


def run(args: argparse.Namespace) -> int:
    service = ForecastService(load_config(args.config))

    if args.command == "seasons":
        _print_frame(service.season_overview(), "No seasons configured.")
    elif args.command == "teams":
        _print_frame(service.team_table(), "No played matches available.")
    elif args.command == "forecast":
        fc = service.forecast(args.home, args.away)
        print(json.dumps(fc.to_dict(), indent=2))
    elif args.command == "value":
        board = service.value_board(
            days=args.days,
            limit=args.limit,
            min_ev=args.min_ev,
            min_prob=args.min_p,
            require_sample=not args.all,
        )
        _print_frame(board, "No upcoming fixtures pass the filters.")
    elif args.command == "backtest":
        report = service.backtest(
            season=args.season, mode=args.mode, min_ev=args.min_ev, min_prob=args.min_p
        )
        if args.json:
            print(json.dumps(report.to_dict(), indent=2, default=str))
            return 0
        print(f"Season {report.season} ({report.mode}), {report.matches} matches")
        if report.note:
            print(report.note)
            return 0
        print(f"Trained on: {', '.join(report.trained_on) or '-'}; rebuilds: {report.rebuilds}")
        print("\n=== Summary ===")
        _print_frame(summary_frame(report), "No summary available.")
        print("\n=== Reliability bins ===")
        _print_frame(bins_frame(report), "No bins available.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return run(args)
    except requests.RequestException as exc:
        print(f"Error: feed unavailable ({exc})", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
