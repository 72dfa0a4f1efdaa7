import json

import numpy as np
import pytest

from football_strength_model.backtest import (
    baseline_over_probability,
    baseline_result_rates,
    evaluate_backtest,
)
from football_strength_model.config_loader import DEFAULT_SETTINGS
from football_strength_model.evaluation import bins_frame, predictions_frame, summary_frame
from football_strength_model.pipeline import build_model


def _short_test_season(simulate_league, fixtures):
    matches = simulate_league(seed=11, seasons=("2022", "2023"), rounds=1)
    train = [m for m in matches if m.season == "2022"]
    test = [m for m in matches if m.season == "2023"][:fixtures]
    return train + test


def test_walk_forward_matches_static_below_rebuild_cadence(simulate_league):
    matches = _short_test_season(simulate_league, fixtures=5)

    static = evaluate_backtest(matches, "2023", mode="static")
    rolling = evaluate_backtest(matches, "2023", mode="walk_forward")

    assert rolling.rebuilds == 0
    assert [r["model_state"] for r in rolling.predictions] == ["static"] * 5
    for a, b in zip(static.predictions, rolling.predictions):
        assert a["p_home"] == b["p_home"]
        assert a["ou25_cal"] == b["ou25_cal"]
    assert static.markets["1x2"].metrics == rolling.markets["1x2"].metrics


def test_walk_forward_only_uses_past_fixtures(simulate_league):
    matches = _short_test_season(simulate_league, fixtures=13)
    test = [m for m in matches if m.season == "2023"]
    calls = []

    def spy_builder(training):
        calls.append(list(training))
        return build_model(training)

    report = evaluate_backtest(matches, "2023", mode="walk_forward", builder=spy_builder)

    n_train = len(matches) - len(test)
    assert [len(c) for c in calls] == [n_train, n_train + 6, n_train + 12]
    assert report.rebuilds == 2
    for boundary, training in zip((6, 12), calls[1:]):
        seen = [m for m in training if m.season == "2023"]
        assert all(m.kickoff < test[boundary].kickoff for m in seen)
    states = [r["model_state"] for r in report.predictions]
    assert states[:6] == ["static"] * 6
    assert states[6:] == ["rolling"] * 7


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_model_beats_base_rates_on_model_generated_season(simulate_league, seed):
    matches = simulate_league(seed=seed)

    report = evaluate_backtest(matches, "2024")

    assert report.matches == 112
    assert report.trained_on == ["2021", "2022", "2023"]
    assert report.delta_logloss < 0


def test_bet_accounting_with_fixed_prices(simulate_league):
    matches = _short_test_season(simulate_league, fixtures=20)
    settings = DEFAULT_SETTINGS.with_overrides(
        fixed_prices={"1x2": 3.0, "ou25": 2.0, "ou35": 2.5}
    )

    report = evaluate_backtest(matches, "2023", min_ev=-1.0, min_prob=0.0, settings=settings)

    rows = report.predictions
    top_wins = sum(r["top_hit"] for r in rows)
    ou25_wins = sum(r["ou25_actual"] for r in rows)
    ou35_wins = sum(r["ou35_actual"] for r in rows)

    result = report.markets["1x2"].bets
    assert result.bets == 20
    assert result.wins == top_wins
    assert result.profit == pytest.approx(top_wins * 2.0 * 0.95 - (20 - top_wins))
    assert report.markets["ou25"].bets.profit == pytest.approx(
        ou25_wins * 1.0 * 0.95 - (20 - ou25_wins)
    )
    assert report.markets["ou35"].bets.wins == ou35_wins
    assert report.combined.bets == 60
    assert report.combined.wins == top_wins + ou25_wins + ou35_wins
    assert report.combined.roi == pytest.approx(report.combined.profit / 60)


def test_synthetic_prices_never_clear_positive_ev(simulate_league):
    matches = _short_test_season(simulate_league, fixtures=20)
    report = evaluate_backtest(matches, "2023", min_ev=0.02, min_prob=0.10)
    assert report.combined.bets == 0
    assert report.combined.roi is None


def test_reliability_bins_cover_every_fixture(simulate_league):
    matches = _short_test_season(simulate_league, fixtures=20)
    report = evaluate_backtest(matches, "2023")

    assert set(report.bins) == {"oneXtwoTop", "ou25_raw", "ou25_cal", "ou35_raw", "ou35_cal"}
    for rows in report.bins.values():
        assert len(rows) == 10
        assert sum(r["n"] for r in rows) == 20
    totals = report.markets["ou25"].metrics
    assert {"brier", "logloss", "raw_brier", "raw_logloss"} <= set(totals)


def test_report_is_json_serialisable_and_flattens(simulate_league):
    matches = _short_test_season(simulate_league, fixtures=8)
    report = evaluate_backtest(matches, "2023", mode="walk_forward")

    payload = json.loads(json.dumps(report.to_dict()))
    assert payload["summary"]["matches"] == 8
    assert payload["meta"]["rebuilds"] == 1

    assert len(predictions_frame(report)) == 8
    summary = summary_frame(report)
    assert list(summary["market"]) == ["1x2", "ou25", "ou35", "combined"]
    assert len(bins_frame(report)) == 50


def test_empty_test_season_returns_note(simulate_league):
    matches = simulate_league(seasons=("2022",), rounds=1)
    report = evaluate_backtest(matches, "1999")
    assert report.matches == 0
    assert report.note
    assert predictions_frame(report).empty
    assert np.isnan(report.delta_logloss)


def test_unknown_mode_is_rejected(simulate_league):
    with pytest.raises(ValueError):
        evaluate_backtest(simulate_league(seasons=("2022",), rounds=1), "2022", mode="rolling")


def test_baselines():
    assert baseline_over_probability(2.5, 3) == pytest.approx(
        1.0 - np.exp(-2.5) * (1.0 + 2.5 + 2.5 ** 2 / 2.0)
    )
    np.testing.assert_allclose(baseline_result_rates([]), [0.40, 0.27, 0.33])
