"""
Forecast scoring: accuracy, Brier, log-loss and reliability (calibration) bins.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import numpy as np
from sklearn.metrics import accuracy_score, log_loss

RESULT_LABELS = [0, 1, 2]  # home, draw, away


def _brier_score(y_true: np.ndarray, probas: np.ndarray) -> float:
    n = len(y_true)
    one_hot = np.zeros_like(probas)
    one_hot[np.arange(n), y_true] = 1.0
    return float(np.mean(np.sum((probas - one_hot) ** 2, axis=1)))


def reliability_bins(
    probabilities: np.ndarray, outcomes: np.ndarray, n_bins: int = 10
) -> List[Dict[str, Optional[float]]]:
    """Equal-width bins of mean predicted probability vs observed frequency."""
    p = np.asarray(probabilities, dtype=float)
    y = np.asarray(outcomes, dtype=float)
    bins = np.clip(np.floor(p * n_bins).astype(int), 0, n_bins - 1) if p.size else p.astype(int)
    rows: List[Dict[str, Optional[float]]] = []
    for b in range(n_bins):
        mask = bins == b
        count = int(mask.sum())
        rows.append(
            {
                "bin": b,
                "n": count,
                "p_avg": float(p[mask].mean()) if count else None,
                "y_avg": float(y[mask].mean()) if count else None,
            }
        )
    return rows


def expected_calibration_error(
    probabilities: np.ndarray, outcomes: np.ndarray, n_bins: int = 10
) -> float:
    total = len(probabilities)
    if total == 0:
        return float("nan")
    ece = 0.0
    for row in reliability_bins(probabilities, outcomes, n_bins):
        if row["n"]:
            ece += row["n"] / total * abs(row["y_avg"] - row["p_avg"])
    return float(ece)


def evaluate_multiclass(y_true: np.ndarray, probas: np.ndarray) -> Dict[str, float]:
    if len(y_true) == 0:
        return {"accuracy": float("nan"), "brier": float("nan"), "logloss": float("nan")}
    y_true = np.asarray(y_true, dtype=int)
    probas = np.asarray(probas, dtype=float)
    return {
        "accuracy": float(accuracy_score(y_true, probas.argmax(axis=1))),
        "brier": _brier_score(y_true, probas),
        "logloss": float(log_loss(y_true, probas, labels=RESULT_LABELS)),
    }


def evaluate_binary(
    y_true: np.ndarray, probabilities: np.ndarray, n_bins: int = 10
) -> Dict[str, float]:
    if len(y_true) == 0:
        return {"brier": float("nan"), "logloss": float("nan"), "ece": float("nan")}
    y_true = np.asarray(y_true, dtype=int)
    p = np.asarray(probabilities, dtype=float)
    return {
        "brier": float(np.mean((p - y_true) ** 2)),
        "logloss": float(log_loss(y_true, p, labels=[0, 1])),
        "ece": expected_calibration_error(p, y_true, n_bins),
    }
