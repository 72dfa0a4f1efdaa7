from dataclasses import replace
from itertools import permutations

import numpy as np
import pytest

from football_strength_model.calibration import CalibrationParameters
from football_strength_model.models.goal_poisson import (
    NEUTRAL_1X2,
    expected_goals,
    forecast_match,
    outcome_probabilities,
    raw_totals_probabilities,
    scoreline_matrix,
    totals_market_key,
)
from football_strength_model.models.strength import fit_strength_model


@pytest.fixture
def model(dominant_round_robin):
    return fit_strength_model(dominant_round_robin)


def test_result_probabilities_sum_to_one(model):
    for home, away in permutations(model.teams, 2):
        fc = forecast_match(model, home, away)
        assert fc.p_home + fc.p_draw + fc.p_away == pytest.approx(1.0, abs=1e-9)
        for totals in fc.totals.values():
            assert 0.0 <= totals.raw <= 1.0
            assert 0.0 <= totals.calibrated <= 1.0
        assert fc.totals["ou25"].raw >= fc.totals["ou35"].raw


def test_expected_goals_follow_log_linear_formula(model):
    h, a = model.index["Dom"], model.index["Alpha"]
    mu_home, mu_away = expected_goals(model, "Dom", "Alpha")
    assert mu_home == pytest.approx(
        np.exp(model.home_advantage + model.attack_home[h] + model.defense_away[a])
    )
    assert mu_away == pytest.approx(np.exp(model.attack_away[a] + model.defense_home[h]))


def test_dominant_home_side_is_favourite(model):
    fc = forecast_match(model, "Dom", "Beta")
    assert fc.p_home > fc.p_away
    assert fc.expected_home_goals > fc.expected_away_goals


def test_unknown_team_gets_neutral_prior(model):
    fc = forecast_match(model, "Dom", "Expansion FC")
    assert (fc.p_home, fc.p_draw, fc.p_away) == NEUTRAL_1X2
    assert fc.expected_home_goals == pytest.approx(1.45)
    assert fc.totals["ou25"].calibrated == pytest.approx(0.56)
    assert fc.totals["ou35"].raw == pytest.approx(0.33)
    assert fc.sufficient_sample is False


def test_missing_model_gets_neutral_prior():
    fc = forecast_match(None, "A", "B")
    assert fc.sufficient_sample is False
    assert fc.p_home == pytest.approx(0.40)


def test_sufficient_sample_uses_min_games(dominant_round_robin):
    enough = fit_strength_model(dominant_round_robin, min_games_per_team=6)
    too_few = fit_strength_model(dominant_round_robin, min_games_per_team=7)
    assert forecast_match(enough, "Alpha", "Beta").sufficient_sample is True
    assert forecast_match(too_few, "Alpha", "Beta").sufficient_sample is False


def test_calibration_changes_reported_but_not_raw_probability(model):
    calibrated_model = replace(
        model, calibration={"ou25": CalibrationParameters(slope=1.0, intercept=0.5)}
    )
    plain = forecast_match(model, "Alpha", "Gamma")
    adjusted = forecast_match(calibrated_model, "Alpha", "Gamma")

    assert adjusted.totals["ou25"].raw == pytest.approx(plain.totals["ou25"].raw)
    assert adjusted.totals["ou25"].calibrated > adjusted.totals["ou25"].raw
    assert adjusted.totals["ou35"].calibrated == pytest.approx(adjusted.totals["ou35"].raw)
    assert dict(model.calibration) == {}


def test_raw_totals_match_forecast(model):
    raw = raw_totals_probabilities(model, "Beta", "Dom")
    fc = forecast_match(model, "Beta", "Dom")
    assert raw["ou25"] == pytest.approx(fc.totals["ou25"].raw)
    assert raw_totals_probabilities(model, "Beta", "Nobody") is None


def test_symmetric_rates_give_symmetric_results():
    (p_home, p_draw, p_away), over = outcome_probabilities(scoreline_matrix(1.3, 1.3), (3,))
    assert p_home == pytest.approx(p_away)
    assert p_home + p_draw + p_away == pytest.approx(1.0)
    assert 0.0 < over[3] < 1.0


def test_scoreline_grid_captures_nearly_all_mass():
    grid = scoreline_matrix(1.5, 1.1, max_goals=8)
    assert grid.shape == (9, 9)
    assert 0.999 < grid.sum() <= 1.0


def test_market_keys():
    assert totals_market_key(3) == "ou25"
    assert totals_market_key(4) == "ou35"


def test_forecast_serialises_to_plain_data(model):
    payload = forecast_match(model, "Dom", "Gamma").to_dict()
    assert payload["home"] == "Dom"
    assert set(payload["totals"]) == {"ou25", "ou35"}
    assert isinstance(payload["totals"]["ou25"]["raw"], float)
