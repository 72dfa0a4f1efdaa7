from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from football_strength_model.data import MatchRecord


def _dominant_round_robin():
    """Four teams; "Dom" wins every match 2-0, the rest draw 1-1."""
    teams = ["Alpha", "Beta", "Dom", "Gamma"]
    when = datetime(2024, 1, 6, 9, 0, tzinfo=timezone.utc)
    matches = []
    for home in teams:
        for away in teams:
            if home == away:
                continue
            if home == "Dom":
                score = (2, 0)
            elif away == "Dom":
                score = (0, 2)
            else:
                score = (1, 1)
            matches.append(MatchRecord(home, away, when, score[0], score[1], "2024"))
            when += timedelta(days=7)
    return matches


def _simulate_league(
    seed=0,
    n_teams=8,
    seasons=("2021", "2022", "2023", "2024"),
    rounds=2,
    spread=0.6,
    home_advantage=0.2,
    base=0.25,
    start_year=2021,
):
    """Double round robins drawn from a known log-linear Poisson model."""
    rng = np.random.default_rng(seed)
    teams = [f"Team {chr(65 + i)}" for i in range(n_teams)]
    strength = np.linspace(-spread, spread, n_teams)
    matches = []
    for s_idx, season in enumerate(seasons):
        when = datetime(start_year + s_idx, 8, 1, 9, 0, tzinfo=timezone.utc)
        for _ in range(rounds):
            for h in range(n_teams):
                for a in range(n_teams):
                    if h == a:
                        continue
                    mu_home = np.exp(base + home_advantage + strength[h] - 0.8 * strength[a])
                    mu_away = np.exp(base + strength[a] - 0.8 * strength[h])
                    matches.append(
                        MatchRecord(
                            teams[h],
                            teams[a],
                            when,
                            int(rng.poisson(mu_home)),
                            int(rng.poisson(mu_away)),
                            season,
                        )
                    )
                    when += timedelta(days=1)
    return matches


@pytest.fixture
def dominant_round_robin():
    return _dominant_round_robin()


@pytest.fixture
def simulate_league():
    return _simulate_league
