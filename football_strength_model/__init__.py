"""
Time-decayed Poisson strength model, Platt calibration and season backtests
for home/away football fixtures.
"""
from .backtest import BacktestReport, evaluate_backtest
from .calibration import CalibrationParameters, apply_platt, fit_platt
from .config_loader import DEFAULT_SETTINGS, EngineSettings, FootballConfig, load_config
from .data import MatchRecord
from .models.goal_poisson import MatchForecast, forecast_match
from .models.strength import StrengthModel, fit_strength_model
from .pipeline import build_model
from .preprocess import shrink_goals

__all__ = [
    "BacktestReport",
    "CalibrationParameters",
    "DEFAULT_SETTINGS",
    "EngineSettings",
    "FootballConfig",
    "MatchForecast",
    "MatchRecord",
    "StrengthModel",
    "apply_platt",
    "build_model",
    "evaluate_backtest",
    "fit_platt",
    "fit_strength_model",
    "forecast_match",
    "load_config",
    "shrink_goals",
]
