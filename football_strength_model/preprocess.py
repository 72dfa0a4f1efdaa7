"""
Goal-count preprocessing: winsorize blow-out scores and shrink them toward the
league scoring rate before the strength model sees them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np

from .data import MatchRecord, played_matches

FALLBACK_LEAGUE_GOALS = 2.8


@dataclass(frozen=True)
class AdjustedMatch:
    match: MatchRecord
    adj_home_goals: float
    adj_away_goals: float


def shrink_goals(
    home_goals: float,
    away_goals: float,
    league_avg_goals: float,
    goal_cap: float = 6.0,
    alpha: float = 0.22,
) -> Tuple[float, float]:
    """
    Cap each count at ``goal_cap`` and pull it toward ``league_avg_goals / 2``.

    ``alpha=0`` leaves the capped goals untouched, ``alpha=1`` replaces every
    score with the per-team league rate.
    """
    team_mean = (league_avg_goals or FALLBACK_LEAGUE_GOALS) / 2.0
    home_capped = float(np.clip(home_goals, 0.0, goal_cap))
    away_capped = float(np.clip(away_goals, 0.0, goal_cap))
    return (
        (1.0 - alpha) * home_capped + alpha * team_mean,
        (1.0 - alpha) * away_capped + alpha * team_mean,
    )


def league_average_goals(
    matches: Iterable[MatchRecord], fallback: float = FALLBACK_LEAGUE_GOALS
) -> float:
    """Mean total goals per played match."""
    totals = [m.home_goals + m.away_goals for m in played_matches(matches)]
    if not totals:
        return fallback
    return float(np.mean(totals))


def adjust_matches(
    matches: Iterable[MatchRecord],
    league_avg_goals: float,
    goal_cap: float = 6.0,
    alpha: float = 0.22,
) -> List[AdjustedMatch]:
    adjusted: List[AdjustedMatch] = []
    for m in played_matches(matches):
        adj_home, adj_away = shrink_goals(
            m.home_goals, m.away_goals, league_avg_goals, goal_cap=goal_cap, alpha=alpha
        )
        adjusted.append(AdjustedMatch(match=m, adj_home_goals=adj_home, adj_away_goals=adj_away))
    return adjusted
