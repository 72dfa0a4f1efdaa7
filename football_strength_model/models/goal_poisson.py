"""
Scoreline probabilities from fitted team strengths (independent Poisson).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from math import factorial
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..calibration import apply_platt
from ..config_loader import DEFAULT_SETTINGS, EngineSettings
from .strength import StrengthModel

EPS = 1e-6

# Neutral prior used when a team is unknown or no model could be fitted.
NEUTRAL_MU_HOME = 1.45
NEUTRAL_MU_AWAY = 1.30
NEUTRAL_1X2 = (0.40, 0.27, 0.33)
NEUTRAL_OVER = {3: 0.56, 4: 0.33}


@dataclass(frozen=True)
class TotalsForecast:
    line: float
    threshold: int
    raw: float
    calibrated: float


@dataclass(frozen=True)
class MatchForecast:
    home: str
    away: str
    expected_home_goals: float
    expected_away_goals: float
    p_home: float
    p_draw: float
    p_away: float
    totals: Dict[str, TotalsForecast] = field(default_factory=dict)
    sufficient_sample: bool = False

    @property
    def p1x2(self) -> Dict[str, float]:
        return {"home": self.p_home, "draw": self.p_draw, "away": self.p_away}

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def totals_market_key(threshold: int) -> str:
    """Goal-sum threshold 3 -> "ou25" (over 2.5)."""
    return f"ou{threshold - 1}5"


def poisson_pmf_vector(lam: float, max_goals: int) -> np.ndarray:
    lam = max(float(lam), EPS)
    goals = np.arange(max_goals + 1)
    factorials = np.array([factorial(k) for k in goals], dtype=float)
    return np.exp(-lam) * np.power(lam, goals) / factorials


def scoreline_matrix(mu_home: float, mu_away: float, max_goals: int = 8) -> np.ndarray:
    """Joint probability grid; rows are home goals, columns away goals."""
    return np.outer(poisson_pmf_vector(mu_home, max_goals), poisson_pmf_vector(mu_away, max_goals))


def outcome_probabilities(
    matrix: np.ndarray, thresholds: Sequence[int] = (3, 4)
) -> Tuple[Tuple[float, float, float], Dict[int, float]]:
    """Result triple and P(total >= t), renormalised by the captured grid mass."""
    mass = float(matrix.sum())
    p_home = float(np.tril(matrix, -1).sum())
    p_draw = float(np.trace(matrix))
    p_away = float(np.triu(matrix, 1).sum())
    n = matrix.shape[0]
    totals = np.add.outer(np.arange(n), np.arange(matrix.shape[1]))
    over = {int(t): float(matrix[totals >= t].sum()) for t in thresholds}
    if mass > 0:
        p_home, p_draw, p_away = p_home / mass, p_draw / mass, p_away / mass
        over = {t: min(1.0, v / mass) for t, v in over.items()}
    return (p_home, p_draw, p_away), over


def expected_goals(model: StrengthModel, home: str, away: str) -> Tuple[float, float]:
    h = model.index[home]
    a = model.index[away]
    mu_home = float(np.exp(model.home_advantage + model.attack_home[h] + model.defense_away[a]))
    mu_away = float(np.exp(model.attack_away[a] + model.defense_home[h]))
    return mu_home, mu_away


def raw_totals_probabilities(
    model: StrengthModel,
    home: str,
    away: str,
    settings: Optional[EngineSettings] = None,
) -> Optional[Dict[str, float]]:
    """Uncalibrated over probabilities keyed by market, or None for unknown teams."""
    settings = settings or DEFAULT_SETTINGS
    if home not in model or away not in model:
        return None
    mu_home, mu_away = expected_goals(model, home, away)
    _, over = outcome_probabilities(
        scoreline_matrix(mu_home, mu_away, settings.max_goals), settings.totals_thresholds
    )
    return {totals_market_key(t): p for t, p in over.items()}


def _neutral_forecast(home: str, away: str, settings: EngineSettings) -> MatchForecast:
    missing = [t for t in settings.totals_thresholds if t not in NEUTRAL_OVER]
    fallback: Dict[int, float] = {}
    if missing:
        _, fallback = outcome_probabilities(
            scoreline_matrix(NEUTRAL_MU_HOME, NEUTRAL_MU_AWAY, settings.max_goals), missing
        )
    totals = {}
    for threshold in settings.totals_thresholds:
        p = NEUTRAL_OVER.get(threshold, fallback.get(threshold))
        totals[totals_market_key(threshold)] = TotalsForecast(
            line=threshold - 0.5, threshold=threshold, raw=p, calibrated=p
        )
    p_home, p_draw, p_away = NEUTRAL_1X2
    return MatchForecast(
        home=home,
        away=away,
        expected_home_goals=NEUTRAL_MU_HOME,
        expected_away_goals=NEUTRAL_MU_AWAY,
        p_home=p_home,
        p_draw=p_draw,
        p_away=p_away,
        totals=totals,
        sufficient_sample=False,
    )


def forecast_match(
    model: Optional[StrengthModel],
    home: str,
    away: str,
    settings: Optional[EngineSettings] = None,
) -> MatchForecast:
    settings = settings or DEFAULT_SETTINGS
    if model is None or home not in model or away not in model:
        return _neutral_forecast(home, away, settings)

    mu_home, mu_away = expected_goals(model, home, away)
    (p_home, p_draw, p_away), over = outcome_probabilities(
        scoreline_matrix(mu_home, mu_away, settings.max_goals), settings.totals_thresholds
    )

    totals = {}
    for threshold, raw in over.items():
        key = totals_market_key(threshold)
        totals[key] = TotalsForecast(
            line=threshold - 0.5,
            threshold=threshold,
            raw=raw,
            calibrated=float(apply_platt(raw, model.calibration.get(key))),
        )

    sufficient = (
        model.games_played(home) >= model.min_games_per_team
        and model.games_played(away) >= model.min_games_per_team
    )
    return MatchForecast(
        home=home,
        away=away,
        expected_home_goals=mu_home,
        expected_away_goals=mu_away,
        p_home=p_home,
        p_draw=p_draw,
        p_away=p_away,
        totals=totals,
        sufficient_sample=sufficient,
    )
