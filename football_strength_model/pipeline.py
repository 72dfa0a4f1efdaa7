"""
Builds a calibrated strength model from a training set of match records.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import numpy as np

from .calibration import CalibrationParameters, fit_platt
from .config_loader import DEFAULT_SETTINGS, EngineSettings
from .data import MatchRecord, played_matches
from .models.goal_poisson import raw_totals_probabilities, totals_market_key
from .models.strength import StrengthModel, fit_strength_model

logger = logging.getLogger(__name__)


def fit_totals_calibration(
    model: StrengthModel,
    matches: Iterable[MatchRecord],
    settings: Optional[EngineSettings] = None,
) -> Dict[str, CalibrationParameters]:
    """
    Fit one Platt transform per totals market on the model's raw probabilities
    for its own training matches.
    """
    settings = settings or DEFAULT_SETTINGS
    keys = [totals_market_key(t) for t in settings.totals_thresholds]
    raw: Dict[str, List[float]] = {key: [] for key in keys}
    observed: Dict[str, List[float]] = {key: [] for key in keys}

    for m in played_matches(matches):
        probs = raw_totals_probabilities(model, m.home, m.away, settings)
        if probs is None:
            continue
        total = m.total_goals
        for threshold, key in zip(settings.totals_thresholds, keys):
            raw[key].append(probs[key])
            observed[key].append(1.0 if total >= threshold else 0.0)

    calibration: Dict[str, CalibrationParameters] = {}
    for key in keys:
        params = fit_platt(
            np.array(raw[key]),
            np.array(observed[key]),
            iterations=settings.calibration_iterations,
            learning_rate=settings.calibration_learning_rate,
            l2=settings.calibration_l2,
            bound=settings.calibration_bound,
            min_samples=settings.calibration_min_samples,
            min_improvement=settings.calibration_min_improvement,
        )
        if params is not None:
            calibration[key] = params
    return calibration


def build_model(
    matches: Iterable[MatchRecord],
    settings: Optional[EngineSettings] = None,
    *,
    now: Optional[datetime] = None,
) -> Optional[StrengthModel]:
    """Fit strengths, then attach totals calibration by replacement."""
    settings = settings or DEFAULT_SETTINGS
    training = list(matches)
    model = fit_strength_model(training, settings=settings, now=now)
    if model is None:
        return None
    calibration = fit_totals_calibration(model, training, settings)
    logger.info(
        "Built model: %s teams, league avg %.2f goals, calibrated markets %s.",
        len(model.teams),
        model.league_avg_goals,
        sorted(calibration) or "none",
    )
    return replace(model, calibration=calibration)
