"""
Prices, expected value and one-unit bet settlement for the simulated markets.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

BINARY_PROB_FLOOR = 0.02
BINARY_PROB_CEILING = 0.98


def synthetic_odds_1x2(
    p_home: float, p_draw: float, p_away: float, margin: float = 0.055
) -> Dict[str, Optional[float]]:
    """Decimal prices after loading the normalised triple with a bookmaker margin."""
    total = p_home + p_draw + p_away
    if total <= 0:
        return {"home": None, "draw": None, "away": None}
    odds: Dict[str, Optional[float]] = {}
    for key, p in (("home", p_home), ("draw", p_draw), ("away", p_away)):
        q = p / total * (1.0 + margin)
        odds[key] = 1.0 / q if q > 0 else None
    return odds


def synthetic_odds_binary(p: float, margin: float = 0.05) -> float:
    q = float(np.clip(p * (1.0 + margin), BINARY_PROB_FLOOR, BINARY_PROB_CEILING))
    return 1.0 / q


def expected_value(p: float, price: float, commission: float = 0.05) -> float:
    """Expected profit of a one-unit stake, commission charged on winnings."""
    return p * (price - 1.0) * (1.0 - commission) - (1.0 - p)


def settle_bet(won: bool, price: Optional[float], commission: float = 0.05) -> float:
    if price is None:
        return 0.0
    return (price - 1.0) * (1.0 - commission) if won else -1.0


def should_bet(
    p: Optional[float],
    price: Optional[float],
    min_prob: float,
    min_ev: float,
    commission: float = 0.05,
) -> bool:
    if p is None or price is None:
        return False
    return p >= min_prob and expected_value(p, price, commission) >= min_ev


@dataclass
class BetSummary:
    bets: int = 0
    wins: int = 0
    profit: float = 0.0

    def record(self, won: bool, profit: float) -> None:
        self.bets += 1
        if won:
            self.wins += 1
        self.profit += profit

    @property
    def roi(self) -> Optional[float]:
        return self.profit / self.bets if self.bets else None

    @property
    def win_rate(self) -> Optional[float]:
        return self.wins / self.bets if self.bets else None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "bets": self.bets,
            "wins": self.wins,
            "profit": self.profit,
            "roi": self.roi,
            "win_rate": self.win_rate,
        }
