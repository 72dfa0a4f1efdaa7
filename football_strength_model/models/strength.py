"""
Home/away split attack-defence strengths fitted by time-decayed gradient ascent
on a Poisson log-likelihood.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..config_loader import DEFAULT_SETTINGS, EngineSettings
from ..data import MatchRecord, played_matches
from ..preprocess import adjust_matches, league_average_goals

if TYPE_CHECKING:
    from ..calibration import CalibrationParameters

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600.0
PROJECTION_STEPS = 200


def _frozen(values: np.ndarray) -> np.ndarray:
    array = np.array(values, dtype=float, copy=True)
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class StrengthModel:
    teams: Tuple[str, ...]
    index: Mapping[str, int]
    attack_home: np.ndarray
    defense_home: np.ndarray
    attack_away: np.ndarray
    defense_away: np.ndarray
    home_advantage: float
    games_home: np.ndarray
    games_away: np.ndarray
    games_total: np.ndarray
    league_avg_goals: float
    half_life_days: float
    min_games_per_team: int
    calibration: Mapping[str, "CalibrationParameters"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "index", MappingProxyType(dict(self.index)))
        object.__setattr__(self, "calibration", MappingProxyType(dict(self.calibration)))

    def __contains__(self, team: object) -> bool:
        return team in self.index

    def games_played(self, team: str) -> int:
        idx = self.index.get(team)
        return 0 if idx is None else int(self.games_total[idx])

    def team_table(self) -> pd.DataFrame:
        """Per-team parameters with readable ratings, strongest first."""
        df = pd.DataFrame(
            {
                "team": list(self.teams),
                "games": self.games_total.astype(int),
                "home_games": self.games_home.astype(int),
                "away_games": self.games_away.astype(int),
                "att_home": self.attack_home,
                "def_home": self.defense_home,
                "att_away": self.attack_away,
                "def_away": self.defense_away,
            }
        )
        df["attack_home"] = np.exp(df["att_home"])
        df["defence_home"] = np.exp(-df["def_home"])
        df["attack_away"] = np.exp(df["att_away"])
        df["defence_away"] = np.exp(-df["def_away"])
        combined = df[["attack_home", "defence_home", "attack_away", "defence_away"]].sum(axis=1)
        df = df.assign(_strength=combined).sort_values("_strength", ascending=False, kind="stable")
        return df.drop(columns="_strength").reset_index(drop=True)


def recency_weights(
    kickoffs: Iterable[datetime], now: datetime, half_life_days: float
) -> np.ndarray:
    """Exponential decay halving every ``half_life_days``; future kickoffs weigh 1."""
    decay = np.log(2.0) / half_life_days
    ages = np.array(
        [max(0.0, (now - kickoff).total_seconds() / SECONDS_PER_DAY) for kickoff in kickoffs],
        dtype=float,
    )
    return np.exp(-decay * ages)


def _project(values: np.ndarray, bound: float) -> np.ndarray:
    """
    Closest zero-mean vector with every entry inside ``[-bound, bound]``.

    The result has the form ``clip(values - shift, -bound, bound)``; the shift is
    found by bisection when plain recentring leaves entries out of bounds.
    """
    centred = values - values.mean()
    if np.all(np.abs(centred) <= bound):
        return centred
    lo = float(values.min()) - bound
    hi = float(values.max()) + bound
    for _ in range(PROJECTION_STEPS):
        shift = 0.5 * (lo + hi)
        if np.clip(values - shift, -bound, bound).sum() > 0:
            lo = shift
        else:
            hi = shift
    return np.clip(values - 0.5 * (lo + hi), -bound, bound)


def fit_strength_model(
    matches: Iterable[MatchRecord],
    half_life_days: Optional[float] = None,
    min_games_per_team: Optional[int] = None,
    *,
    settings: Optional[EngineSettings] = None,
    now: Optional[datetime] = None,
) -> Optional[StrengthModel]:
    """
    Fit attack/defence parameters per team and role plus a home advantage.

    Only played matches are used. Returns ``None`` when they contain no teams.
    ``now`` anchors the recency weights and defaults to the latest kickoff in
    the training set, which keeps refits on the same data identical.
    """
    settings = settings or DEFAULT_SETTINGS
    half_life = float(half_life_days if half_life_days is not None else settings.half_life_days)
    min_games = int(
        min_games_per_team if min_games_per_team is not None else settings.min_games_per_team
    )
    if half_life <= 0:
        raise ValueError("half_life_days must be positive.")

    played = played_matches(matches)
    teams = tuple(sorted({m.home for m in played} | {m.away for m in played}))
    n = len(teams)
    if n == 0:
        logger.info("No played matches in training set; strength model unavailable.")
        return None
    index = {team: i for i, team in enumerate(teams)}

    league_avg = league_average_goals(played, fallback=settings.fallback_league_goals)
    adjusted = adjust_matches(
        played, league_avg, goal_cap=settings.goal_cap, alpha=settings.shrink_alpha
    )

    home_idx = np.array([index[a.match.home] for a in adjusted], dtype=int)
    away_idx = np.array([index[a.match.away] for a in adjusted], dtype=int)
    target_home = np.array([a.adj_home_goals for a in adjusted], dtype=float)
    target_away = np.array([a.adj_away_goals for a in adjusted], dtype=float)

    games_home = np.bincount(home_idx, minlength=n)
    games_away = np.bincount(away_idx, minlength=n)
    games_total = games_home + games_away

    kickoffs = [a.match.kickoff for a in adjusted]
    anchor = now or max(kickoffs)
    weights = recency_weights(kickoffs, anchor, half_life)

    att_h = np.zeros(n)
    def_h = np.zeros(n)
    att_a = np.zeros(n)
    def_a = np.zeros(n)
    home_adv = settings.initial_home_advantage
    lr = settings.learning_rate
    l2 = settings.l2_penalty
    bound = settings.parameter_bound
    ha_lo, ha_hi = settings.home_advantage_bounds

    for _ in range(settings.iterations):
        mu_home = np.exp(home_adv + att_h[home_idx] + def_a[away_idx])
        mu_away = np.exp(att_a[away_idx] + def_h[home_idx])

        resid_home = (target_home - mu_home) * weights
        resid_away = (target_away - mu_away) * weights

        # home scoring: home attack + away defence; away scoring: away attack + home defence
        grad_att_h = np.bincount(home_idx, weights=resid_home, minlength=n)
        grad_def_a = np.bincount(away_idx, weights=resid_home, minlength=n)
        grad_att_a = np.bincount(away_idx, weights=resid_away, minlength=n)
        grad_def_h = np.bincount(home_idx, weights=resid_away, minlength=n)
        grad_ha = resid_home.sum()

        if l2 > 0:
            grad_att_h -= l2 * att_h
            grad_def_h -= l2 * def_h
            grad_att_a -= l2 * att_a
            grad_def_a -= l2 * def_a
            grad_ha -= l2 * home_adv

        att_h = _project(att_h + lr * grad_att_h, bound)
        def_h = _project(def_h + lr * grad_def_h, bound)
        att_a = _project(att_a + lr * grad_att_a, bound)
        def_a = _project(def_a + lr * grad_def_a, bound)
        home_adv = float(np.clip(home_adv + lr * grad_ha, ha_lo, ha_hi))

    logger.debug(
        "Fitted strength model on %s matches / %s teams (home advantage %.3f).",
        len(adjusted),
        n,
        home_adv,
    )
    return StrengthModel(
        teams=teams,
        index=index,
        attack_home=_frozen(att_h),
        defense_home=_frozen(def_h),
        attack_away=_frozen(att_a),
        defense_away=_frozen(def_a),
        home_advantage=home_adv,
        games_home=_frozen(games_home),
        games_away=_frozen(games_away),
        games_total=_frozen(games_total),
        league_avg_goals=league_avg,
        half_life_days=half_life,
        min_games_per_team=min_games,
    )
