"""
Match records and helpers for slicing them into training and test sets.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

RESULT_ORDER = ["home", "draw", "away"]


@dataclass(frozen=True)
class MatchRecord:
    home: str
    away: str
    kickoff: Optional[datetime]
    home_goals: Optional[int]
    away_goals: Optional[int]
    season: str
    round: str = ""
    location: str = ""

    @property
    def is_played(self) -> bool:
        return (
            self.kickoff is not None
            and self.home_goals is not None
            and self.away_goals is not None
        )

    @property
    def result(self) -> Optional[str]:
        """Result class from the home side's perspective."""
        if self.home_goals is None or self.away_goals is None:
            return None
        if self.home_goals > self.away_goals:
            return "home"
        if self.home_goals == self.away_goals:
            return "draw"
        return "away"

    @property
    def total_goals(self) -> Optional[int]:
        if self.home_goals is None or self.away_goals is None:
            return None
        return self.home_goals + self.away_goals


def played_matches(matches: Iterable[MatchRecord]) -> List[MatchRecord]:
    return [m for m in matches if m.is_played]


def sort_chronologically(matches: Iterable[MatchRecord]) -> List[MatchRecord]:
    """Stable sort by kickoff; unscheduled fixtures go last."""
    return sorted(
        matches,
        key=lambda m: (m.kickoff is None, m.kickoff.timestamp() if m.kickoff else 0.0),
    )


def season_counts(matches: Iterable[MatchRecord]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {}
    for m in matches:
        if not m.season:
            continue
        entry = counts.setdefault(m.season, {"total": 0, "played": 0})
        entry["total"] += 1
        if m.is_played:
            entry["played"] += 1
    return counts


def pick_auto_backtest_season(counts: Dict[str, Dict[str, int]]) -> Optional[str]:
    """Latest season label that has at least one played match."""
    candidates = [season for season, c in counts.items() if c.get("played", 0) > 0]
    if not candidates:
        return None
    return max(candidates)
