"""
Helper utilities to flatten backtest reports into DataFrames.
"""
from __future__ import annotations

from typing import Dict, List

import pandas as pd

from .backtest import BacktestReport

PREDICTION_BASE_COLUMNS = [
    "season",
    "kickoff",
    "home",
    "away",
    "home_goals",
    "away_goals",
    "model_state",
    "sufficient_sample",
    "p_home",
    "p_draw",
    "p_away",
    "top_pick",
    "top_prob",
    "top_hit",
]


def predictions_frame(report: BacktestReport) -> pd.DataFrame:
    if not report.predictions:
        return pd.DataFrame(columns=PREDICTION_BASE_COLUMNS)
    df = pd.DataFrame(report.predictions)
    df["kickoff"] = pd.to_datetime(df["kickoff"], utc=True)
    return df.sort_values("kickoff", kind="stable").reset_index(drop=True)


def summary_frame(report: BacktestReport) -> pd.DataFrame:
    """One row per market plus a combined betting row."""
    records: List[Dict[str, object]] = []
    for key, summary in report.markets.items():
        record: Dict[str, object] = {"market": key}
        record.update(summary.metrics)
        record["baseline_logloss"] = summary.baseline_logloss
        record["delta_logloss"] = summary.delta_logloss
        record.update({f"bet_{name}": value for name, value in summary.bets.to_dict().items()})
        records.append(record)
    if report.markets:
        combined: Dict[str, object] = {"market": "combined"}
        combined.update({f"bet_{name}": value for name, value in report.combined.to_dict().items()})
        records.append(combined)
    if not records:
        return pd.DataFrame(columns=["market"])
    return pd.DataFrame(records)


def bins_frame(report: BacktestReport) -> pd.DataFrame:
    rows = [
        {"series": series, **row}
        for series, bins in report.bins.items()
        for row in bins
    ]
    if not rows:
        return pd.DataFrame(columns=["series", "bin", "n", "p_avg", "y_avg"])
    return pd.DataFrame(rows)
