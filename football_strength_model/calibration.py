"""
Platt scaling for binary market probabilities (totals over/under).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

PROB_EPS = 1e-6
LOSS_EPS = 1e-12

ArrayLike = Union[float, Sequence[float], np.ndarray]


@dataclass(frozen=True)
class CalibrationParameters:
    slope: float = 1.0
    intercept: float = 0.0


def logit(p: ArrayLike) -> np.ndarray:
    p = np.clip(np.asarray(p, dtype=float), PROB_EPS, 1.0 - PROB_EPS)
    return np.log(p / (1.0 - p))


def sigmoid(z: ArrayLike) -> np.ndarray:
    z = np.asarray(z, dtype=float)
    # split by sign so neither branch overflows
    ez = np.exp(-np.abs(z))
    return np.where(z >= 0, 1.0 / (1.0 + ez), ez / (1.0 + ez))


def _as_output(values: np.ndarray, like: ArrayLike) -> ArrayLike:
    if np.ndim(like) == 0:
        return float(values)
    return values


def apply_platt(p_raw: ArrayLike, params: Optional[CalibrationParameters]) -> ArrayLike:
    """``sigmoid(slope * logit(p) + intercept)``; ``params=None`` returns ``p_raw``."""
    if params is None:
        return p_raw
    calibrated = sigmoid(params.slope * logit(p_raw) + params.intercept)
    return _as_output(calibrated, p_raw)


def binary_log_loss(probabilities: ArrayLike, outcomes: ArrayLike) -> float:
    p = np.clip(np.asarray(probabilities, dtype=float), LOSS_EPS, 1.0 - LOSS_EPS)
    y = np.asarray(outcomes, dtype=float)
    if p.size == 0:
        return float("nan")
    return float(-np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p)))


def fit_platt(
    raw_probabilities: ArrayLike,
    outcomes: ArrayLike,
    *,
    iterations: int = 500,
    learning_rate: float = 0.5,
    l2: float = 1e-3,
    bound: float = 5.0,
    min_samples: int = 30,
    min_improvement: float = 1e-3,
) -> Optional[CalibrationParameters]:
    """
    Fit slope/intercept by gradient descent on mean logistic loss.

    Starts from the identity transform. Returns ``None`` when the sample is
    smaller than ``min_samples`` or when calibration does not beat the raw
    probabilities' log-loss by more than ``min_improvement`` on the same sample.
    """
    raw = np.asarray(raw_probabilities, dtype=float).ravel()
    y = np.asarray(outcomes, dtype=float).ravel()
    if raw.shape != y.shape:
        raise ValueError("raw_probabilities and outcomes must have the same length.")
    if raw.size < min_samples:
        logger.debug("Calibration skipped: %s samples < %s.", raw.size, min_samples)
        return None

    x = logit(raw)
    slope, intercept = 1.0, 0.0
    for _ in range(iterations):
        residual = sigmoid(slope * x + intercept) - y
        grad_slope = np.mean(residual * x) + l2 * slope
        grad_intercept = np.mean(residual) + l2 * intercept
        slope = float(np.clip(slope - learning_rate * grad_slope, -bound, bound))
        intercept = float(np.clip(intercept - learning_rate * grad_intercept, -bound, bound))

    params = CalibrationParameters(slope=slope, intercept=intercept)
    raw_loss = binary_log_loss(raw, y)
    calibrated_loss = binary_log_loss(apply_platt(raw, params), y)
    if raw_loss - calibrated_loss <= min_improvement:
        logger.info(
            "Calibration rejected: log-loss %.5f -> %.5f (needs > %.5f gain).",
            raw_loss,
            calibrated_loss,
            min_improvement,
        )
        return None
    return params
