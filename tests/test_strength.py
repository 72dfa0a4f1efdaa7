from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from football_strength_model.config_loader import DEFAULT_SETTINGS
from football_strength_model.data import MatchRecord
from football_strength_model.models.strength import fit_strength_model, recency_weights


def test_dominant_team_has_best_attack_and_defence(dominant_round_robin):
    model = fit_strength_model(dominant_round_robin)
    dom = model.index["Dom"]

    assert int(np.argmax(model.attack_home)) == dom
    assert int(np.argmax(model.attack_away)) == dom
    assert int(np.argmin(model.defense_home)) == dom
    assert int(np.argmin(model.defense_away)) == dom


def test_parameter_vectors_are_zero_mean(simulate_league):
    model = fit_strength_model(simulate_league(seed=3, seasons=("2023",), rounds=2))
    for vector in (model.attack_home, model.defense_home, model.attack_away, model.defense_away):
        assert abs(vector.mean()) < 1e-9
        assert np.all(np.abs(vector) <= 1.4)
    assert -0.25 <= model.home_advantage <= 0.50


def test_game_counts_and_metadata(dominant_round_robin):
    model = fit_strength_model(dominant_round_robin, half_life_days=100, min_games_per_team=5)
    assert model.teams == ("Alpha", "Beta", "Dom", "Gamma")
    assert model.games_played("Dom") == 6
    assert model.games_played("Nobody") == 0
    assert list(model.games_home) == [3, 3, 3, 3]
    assert model.half_life_days == 100
    assert model.min_games_per_team == 5
    assert model.league_avg_goals == pytest.approx(2.0)


def test_returns_none_without_played_matches():
    unplayed = [MatchRecord("A", "B", None, None, None, "2024")]
    assert fit_strength_model([]) is None
    assert fit_strength_model(unplayed) is None


def test_rejects_non_positive_half_life(dominant_round_robin):
    with pytest.raises(ValueError):
        fit_strength_model(dominant_round_robin, half_life_days=0)


def test_fitted_arrays_are_read_only(dominant_round_robin):
    model = fit_strength_model(dominant_round_robin)
    with pytest.raises(ValueError):
        model.attack_home[0] = 1.0


def test_refit_is_reproducible(dominant_round_robin):
    first = fit_strength_model(dominant_round_robin)
    second = fit_strength_model(list(reversed(dominant_round_robin)))
    np.testing.assert_allclose(first.attack_home, second.attack_home, atol=1e-12)
    np.testing.assert_allclose(first.defense_away, second.defense_away, atol=1e-12)
    assert first.home_advantage == pytest.approx(second.home_advantage)


def test_recency_weights_halve_per_half_life():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    kickoffs = [now, now - timedelta(days=240), now - timedelta(days=480), now + timedelta(days=3)]
    weights = recency_weights(kickoffs, now, 240)
    np.testing.assert_allclose(weights, [1.0, 0.5, 0.25, 1.0])


def test_team_table_ranks_dominant_team_first(dominant_round_robin):
    table = fit_strength_model(dominant_round_robin).team_table()
    assert table.iloc[0]["team"] == "Dom"
    assert set(table.columns) >= {"attack_home", "defence_home", "attack_away", "defence_away"}
    assert table.iloc[0]["defence_home"] > 1.0


def _lopsided_round_robin(n_teams=10):
    """T0 wins every match 6-0; all other fixtures end 1-1."""
    teams = [f"T{i}" for i in range(n_teams)]
    when = datetime(2024, 1, 6, 9, 0, tzinfo=timezone.utc)
    matches = []
    for home in teams:
        for away in teams:
            if home == away:
                continue
            if home == "T0":
                score = (6, 0)
            elif away == "T0":
                score = (0, 6)
            else:
                score = (1, 1)
            matches.append(MatchRecord(home, away, when, score[0], score[1], "2024"))
            when += timedelta(days=1)
    return matches


def test_vectors_stay_zero_mean_when_bound_binds():
    model = fit_strength_model(_lopsided_round_robin())
    vectors = {
        "attack_home": model.attack_home,
        "defense_home": model.defense_home,
        "attack_away": model.attack_away,
        "defense_away": model.defense_away,
    }

    assert any(np.isclose(np.abs(v).max(), 1.4) for v in vectors.values())
    for name, vector in vectors.items():
        assert abs(vector.mean()) < 1e-9, name
        assert np.all(np.abs(vector) <= 1.4 + 1e-12), name


def test_l2_penalty_shrinks_parameters(dominant_round_robin):
    plain = fit_strength_model(dominant_round_robin)
    penalised = fit_strength_model(
        dominant_round_robin, settings=DEFAULT_SETTINGS.with_overrides(l2_penalty=5.0)
    )

    def norm(model):
        return np.linalg.norm(
            np.concatenate(
                [model.attack_home, model.defense_home, model.attack_away, model.defense_away]
            )
        )

    assert norm(penalised) < norm(plain)
    assert int(np.argmax(penalised.attack_home)) == penalised.index["Dom"]
    assert abs(penalised.attack_home.mean()) < 1e-9


def test_recency_anchor_only_moves_weights(simulate_league):
    matches = simulate_league(seed=4, seasons=("2023",), rounds=2)
    latest = max(m.kickoff for m in matches)

    default = fit_strength_model(matches)
    anchored = fit_strength_model(matches, now=latest)
    earliest = min(m.kickoff for m in matches)
    unweighted = fit_strength_model(matches, now=earliest)
    flat = fit_strength_model(matches, half_life_days=1e9)

    np.testing.assert_allclose(default.attack_home, anchored.attack_home, atol=1e-12)
    assert default.home_advantage == pytest.approx(anchored.home_advantage)

    # anchored at the first kickoff every weight is 1, same as no decay at all
    np.testing.assert_allclose(unweighted.attack_home, flat.attack_home, atol=1e-5)
    np.testing.assert_allclose(unweighted.defense_away, flat.defense_away, atol=1e-5)
    assert not np.allclose(unweighted.attack_home, default.attack_home)
    assert unweighted.teams == default.teams
    np.testing.assert_array_equal(unweighted.games_total, default.games_total)
    assert unweighted.league_avg_goals == default.league_avg_goals


def test_published_mappings_are_read_only(dominant_round_robin):
    model = fit_strength_model(dominant_round_robin)
    with pytest.raises(TypeError):
        model.index["Nobody"] = 99
    with pytest.raises(TypeError):
        model.calibration["ou25"] = None
