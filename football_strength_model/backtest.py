"""
Replays a held-out season through the model pipeline and scores the forecasts.

Two modes are supported: ``static`` fits one model on everything outside the
test season, ``walk_forward`` refits every ``rebuild_every`` fixtures using the
test-season matches already seen.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .config_loader import DEFAULT_SETTINGS, EngineSettings
from .data import RESULT_ORDER, MatchRecord, played_matches, sort_chronologically
from .market_compare import (
    BetSummary,
    settle_bet,
    should_bet,
    synthetic_odds_1x2,
    synthetic_odds_binary,
)
from .models.goal_poisson import (
    NEUTRAL_1X2,
    forecast_match,
    poisson_pmf_vector,
    totals_market_key,
)
from .models.strength import StrengthModel
from .pipeline import build_model
from .preprocess import league_average_goals
from .validation import evaluate_binary, evaluate_multiclass, reliability_bins

logger = logging.getLogger(__name__)

BACKTEST_MODES = ("static", "walk_forward")
RESULT_MARKET = "1x2"

ModelBuilder = Callable[[List[MatchRecord]], Optional[StrengthModel]]


@dataclass
class MarketSummary:
    market: str
    metrics: Dict[str, float]
    baseline_logloss: float
    delta_logloss: float
    bets: BetSummary = field(default_factory=BetSummary)

    def to_dict(self) -> Dict[str, object]:
        return {
            "market": self.market,
            **self.metrics,
            "baseline_logloss": self.baseline_logloss,
            "delta_logloss": self.delta_logloss,
            "roi": self.bets.to_dict(),
        }


@dataclass
class BacktestReport:
    season: str
    mode: str
    matches: int
    trained_on: List[str]
    rebuilds: int
    min_ev: float
    min_prob: float
    calibration: Dict[str, Dict[str, float]] = field(default_factory=dict)
    markets: Dict[str, MarketSummary] = field(default_factory=dict)
    combined: BetSummary = field(default_factory=BetSummary)
    bins: Dict[str, List[Dict[str, Optional[float]]]] = field(default_factory=dict)
    predictions: List[Dict[str, object]] = field(default_factory=list)
    note: Optional[str] = None

    @property
    def delta_logloss(self) -> float:
        """Model minus baseline log-loss on the result market (negative = better)."""
        summary = self.markets.get(RESULT_MARKET)
        return summary.delta_logloss if summary else float("nan")

    def to_dict(self) -> Dict[str, object]:
        return {
            "meta": {
                "season": self.season,
                "mode": self.mode,
                "trained_on": list(self.trained_on),
                "rebuilds": self.rebuilds,
                "thresholds": {"min_ev": self.min_ev, "min_prob": self.min_prob},
                "calibration": dict(self.calibration),
                "note": self.note,
            },
            "summary": {
                "matches": self.matches,
                **{key: summary.to_dict() for key, summary in self.markets.items()},
                "combined": self.combined.to_dict(),
            },
            "calibration": {key: list(rows) for key, rows in self.bins.items()},
            "predictions": [dict(row) for row in self.predictions],
        }


def baseline_result_rates(matches: Sequence[MatchRecord]) -> np.ndarray:
    """Home/draw/away frequencies of the played training matches."""
    played = played_matches(matches)
    if not played:
        return np.array(NEUTRAL_1X2, dtype=float)
    counts = np.array(
        [sum(1 for m in played if m.result == label) for label in RESULT_ORDER], dtype=float
    )
    return counts / counts.sum()


def baseline_over_probability(league_avg_goals: float, threshold: int) -> float:
    """P(total goals >= threshold) for Poisson total goals at the league mean."""
    if threshold <= 0:
        return 1.0
    below = poisson_pmf_vector(league_avg_goals, threshold - 1).sum()
    return float(np.clip(1.0 - below, 0.0, 1.0))


def _top_pick(probs: Sequence[float]) -> int:
    return int(np.argmax(probs))


def evaluate_backtest(
    matches: Sequence[MatchRecord],
    test_season: str,
    mode: str = "static",
    min_ev: float = 0.02,
    min_prob: float = 0.10,
    *,
    settings: Optional[EngineSettings] = None,
    builder: Optional[ModelBuilder] = None,
) -> BacktestReport:
    if mode not in BACKTEST_MODES:
        raise ValueError(f"Unknown backtest mode {mode!r}; expected one of {BACKTEST_MODES}.")
    settings = settings or DEFAULT_SETTINGS
    if builder is None:
        def builder(training: List[MatchRecord]) -> Optional[StrengthModel]:
            return build_model(training, settings)

    train = [m for m in matches if m.season != test_season]
    test = sort_chronologically(
        m for m in played_matches(matches) if m.season == test_season
    )
    report = BacktestReport(
        season=test_season,
        mode=mode,
        matches=len(test),
        trained_on=sorted({m.season for m in train if m.season}),
        rebuilds=0,
        min_ev=min_ev,
        min_prob=min_prob,
    )
    if not test:
        report.note = "No played matches found for that season."
        return report

    market_keys = [totals_market_key(t) for t in settings.totals_thresholds]
    thresholds = dict(zip(market_keys, settings.totals_thresholds))

    model = builder(train)
    if model is not None:
        report.calibration = {
            key: {"slope": params.slope, "intercept": params.intercept}
            for key, params in model.calibration.items()
        }

    base_1x2 = baseline_result_rates(train)
    base_over = {
        key: baseline_over_probability(
            league_average_goals(train, fallback=settings.fallback_league_goals), t
        )
        for key, t in thresholds.items()
    }

    ledgers: Dict[str, BetSummary] = {RESULT_MARKET: BetSummary()}
    ledgers.update({key: BetSummary() for key in market_keys})
    state = "static"

    for i, m in enumerate(test):
        if mode == "walk_forward" and i > 0 and i % settings.rebuild_every == 0:
            model = builder(train + test[:i])
            state = "rolling"
            report.rebuilds += 1
            logger.info("Walk-forward rebuild %s after %s test fixtures.", report.rebuilds, i)

        fc = forecast_match(model, m.home, m.away, settings)
        probs = [fc.p_home, fc.p_draw, fc.p_away]
        actual = RESULT_ORDER.index(m.result)
        top = _top_pick(probs)
        top_won = top == actual
        total = m.total_goals

        row: Dict[str, object] = {
            "season": m.season,
            "kickoff": m.kickoff.isoformat(),
            "home": m.home,
            "away": m.away,
            "home_goals": m.home_goals,
            "away_goals": m.away_goals,
            "model_state": state,
            "sufficient_sample": fc.sufficient_sample,
            "mu_home": fc.expected_home_goals,
            "mu_away": fc.expected_away_goals,
            "p_home": fc.p_home,
            "p_draw": fc.p_draw,
            "p_away": fc.p_away,
            "actual": actual,
            "top_pick": RESULT_ORDER[top],
            "top_prob": probs[top],
            "top_hit": int(top_won),
            "base_home": float(base_1x2[0]),
            "base_draw": float(base_1x2[1]),
            "base_away": float(base_1x2[2]),
        }

        fixed_1x2 = settings.fixed_prices.get(RESULT_MARKET)
        price = fixed_1x2 or synthetic_odds_1x2(*probs, margin=settings.margin_1x2)[RESULT_ORDER[top]]
        row["1x2_price"] = price
        row["1x2_bet"] = should_bet(probs[top], price, min_prob, min_ev, settings.commission)
        if row["1x2_bet"]:
            profit = settle_bet(top_won, price, settings.commission)
            ledgers[RESULT_MARKET].record(top_won, profit)
            report.combined.record(top_won, profit)

        for key in market_keys:
            totals = fc.totals[key]
            hit = total >= thresholds[key]
            row[f"{key}_raw"] = totals.raw
            row[f"{key}_cal"] = totals.calibrated
            row[f"{key}_actual"] = int(hit)
            row[f"{key}_base"] = base_over[key]

            price = settings.fixed_prices.get(key) or synthetic_odds_binary(
                totals.calibrated, settings.margin_binary
            )
            row[f"{key}_price"] = price
            row[f"{key}_bet"] = should_bet(
                totals.calibrated, price, min_prob, min_ev, settings.commission
            )
            if row[f"{key}_bet"]:
                profit = settle_bet(hit, price, settings.commission)
                ledgers[key].record(hit, profit)
                report.combined.record(hit, profit)

        report.predictions.append(row)

    _summarise(report, market_keys, ledgers, settings.n_bins)
    return report


def _summarise(
    report: BacktestReport,
    market_keys: Sequence[str],
    ledgers: Dict[str, BetSummary],
    n_bins: int,
) -> None:
    rows = report.predictions
    actual = np.array([r["actual"] for r in rows], dtype=int)
    probas = np.array([[r["p_home"], r["p_draw"], r["p_away"]] for r in rows], dtype=float)
    base = np.array([[r["base_home"], r["base_draw"], r["base_away"]] for r in rows], dtype=float)

    model_metrics = evaluate_multiclass(actual, probas)
    baseline_metrics = evaluate_multiclass(actual, base)
    report.markets[RESULT_MARKET] = MarketSummary(
        market=RESULT_MARKET,
        metrics=model_metrics,
        baseline_logloss=baseline_metrics["logloss"],
        delta_logloss=model_metrics["logloss"] - baseline_metrics["logloss"],
        bets=ledgers[RESULT_MARKET],
    )
    report.bins["oneXtwoTop"] = reliability_bins(
        np.array([r["top_prob"] for r in rows]), np.array([r["top_hit"] for r in rows]), n_bins
    )

    for key in market_keys:
        y = np.array([r[f"{key}_actual"] for r in rows], dtype=int)
        raw = np.array([r[f"{key}_raw"] for r in rows], dtype=float)
        cal = np.array([r[f"{key}_cal"] for r in rows], dtype=float)
        base_p = np.array([r[f"{key}_base"] for r in rows], dtype=float)

        cal_metrics = evaluate_binary(y, cal, n_bins)
        raw_metrics = evaluate_binary(y, raw, n_bins)
        baseline_logloss = evaluate_binary(y, base_p, n_bins)["logloss"]
        metrics = dict(cal_metrics)
        metrics.update({f"raw_{name}": value for name, value in raw_metrics.items()})
        report.markets[key] = MarketSummary(
            market=key,
            metrics=metrics,
            baseline_logloss=baseline_logloss,
            delta_logloss=cal_metrics["logloss"] - baseline_logloss,
            bets=ledgers[key],
        )
        report.bins[f"{key}_raw"] = reliability_bins(raw, y, n_bins)
        report.bins[f"{key}_cal"] = reliability_bins(cal, y, n_bins)
