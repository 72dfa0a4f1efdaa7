"""
Serving facade: feeds and fitted models behind TTL caches, plus the read
views used by the command line (teams, value board, fixtures, backtest).
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from .backtest import BacktestReport, evaluate_backtest
from .cache import TTLCache
from .config_loader import FootballConfig, load_config
from .data import MatchRecord, pick_auto_backtest_season, season_counts
from .download import fetch_feed, load_all_seasons
from .market_compare import expected_value, synthetic_odds_1x2, synthetic_odds_binary
from .models.goal_poisson import MatchForecast, forecast_match
from .models.strength import StrengthModel
from .pipeline import build_model

logger = logging.getLogger(__name__)

DEFAULT_MODEL_KEY = "default_all"
UPCOMING_GRACE = timedelta(hours=2)


class ForecastService:
    def __init__(
        self,
        config: Optional[FootballConfig] = None,
        fetch: Optional[Callable[[str], List[Dict[str, Any]]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or load_config()
        self.settings = self.config.engine
        self._fetch = fetch or (lambda url: fetch_feed(url, timeout=self.config.request_timeout))
        self.clock = clock
        self._feeds: TTLCache[List[Dict[str, Any]]] = TTLCache(
            self.config.feed_ttl_seconds, clock=clock
        )
        self._models: TTLCache[Optional[StrengthModel]] = TTLCache(
            self.config.model_ttl_seconds, clock=clock, max_entries=1
        )

    # ------------------------------------------------------------------ data
    def _cached_fetch(self, url: str) -> List[Dict[str, Any]]:
        return self._feeds.get_or_build(url, lambda: self._fetch(url))

    def matches(self) -> List[MatchRecord]:
        return load_all_seasons(self.config.seasons, fetch=self._cached_fetch)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    # ---------------------------------------------------------------- models
    def model_for(
        self, train_key: str, predicate: Callable[[MatchRecord], bool]
    ) -> Optional[StrengthModel]:
        def _build() -> Optional[StrengthModel]:
            training = [m for m in self.matches() if predicate(m)]
            logger.info("Building model %s from %s records.", train_key, len(training))
            return build_model(training, self.settings)

        return self._models.get_or_build(train_key, _build)

    def default_model(self) -> Optional[StrengthModel]:
        return self.model_for(DEFAULT_MODEL_KEY, lambda m: True)

    # ----------------------------------------------------------------- views
    def forecast(self, home: str, away: str) -> MatchForecast:
        return forecast_match(self.default_model(), home, away, self.settings)

    def team_table(self) -> pd.DataFrame:
        model = self.default_model()
        if model is None:
            return pd.DataFrame(columns=["team", "games", "home_games", "away_games"])
        return model.team_table()

    def season_overview(self) -> pd.DataFrame:
        counts = season_counts(self.matches())
        rows = [{"season": s, **counts[s]} for s in sorted(counts)]
        return pd.DataFrame(rows, columns=["season", "total", "played"])

    def upcoming(
        self, days: int = 14, limit: int = 40, now: Optional[datetime] = None
    ) -> List[MatchRecord]:
        days = min(max(int(days), 1), 90)
        limit = min(max(int(limit), 1), 200)
        now = now or self._now()
        horizon = now + timedelta(days=days)
        season = self.config.current_season
        fixtures = [
            m
            for m in self.matches()
            if m.season == season
            and m.kickoff is not None
            and now - UPCOMING_GRACE <= m.kickoff <= horizon
        ]
        fixtures.sort(key=lambda m: m.kickoff)
        return fixtures[:limit]

    def value_board(
        self,
        days: int = 14,
        limit: int = 25,
        min_ev: float = 0.0,
        min_prob: float = 0.0,
        require_sample: bool = True,
        now: Optional[datetime] = None,
    ) -> pd.DataFrame:
        """
        Upcoming fixtures with model probabilities and synthetic prices.

        A fixture is kept when any market clears both ``min_prob`` and
        ``min_ev``; with both thresholds at zero every fixture is kept.
        """
        model = self.default_model()
        settings = self.settings
        rows: List[Dict[str, Any]] = []
        for m in self.upcoming(days=days, limit=limit, now=now):
            fc = forecast_match(model, m.home, m.away, settings)
            if require_sample and not fc.sufficient_sample:
                continue
            odds = synthetic_odds_1x2(fc.p_home, fc.p_draw, fc.p_away, settings.margin_1x2)
            candidates = [(p, odds[outcome]) for outcome, p in fc.p1x2.items()]
            row: Dict[str, Any] = {
                "kickoff": m.kickoff,
                "round": m.round,
                "location": m.location,
                "home": m.home,
                "away": m.away,
                "mu_home": fc.expected_home_goals,
                "mu_away": fc.expected_away_goals,
                "p_home": fc.p_home,
                "p_draw": fc.p_draw,
                "p_away": fc.p_away,
                "odds_home": odds["home"],
                "odds_draw": odds["draw"],
                "odds_away": odds["away"],
                "sufficient_sample": fc.sufficient_sample,
            }
            for key, totals in fc.totals.items():
                price = synthetic_odds_binary(totals.calibrated, settings.margin_binary)
                row[f"{key}_raw"] = totals.raw
                row[f"{key}_over"] = totals.calibrated
                row[f"{key}_odds"] = price
                candidates.append((totals.calibrated, price))

            if min_ev > 0 or min_prob > 0:
                keep = any(
                    p is not None
                    and price is not None
                    and p >= min_prob
                    and expected_value(p, price, settings.commission) >= min_ev
                    for p, price in candidates
                )
                if not keep:
                    continue
            rows.append(row)
        return pd.DataFrame(rows)

    def backtest(
        self,
        season: str = "auto",
        mode: str = "static",
        min_ev: float = 0.02,
        min_prob: float = 0.10,
    ) -> BacktestReport:
        matches = self.matches()
        if season == "auto":
            picked = pick_auto_backtest_season(season_counts(matches))
            if picked is None:
                return BacktestReport(
                    season="auto",
                    mode=mode,
                    matches=0,
                    trained_on=[],
                    rebuilds=0,
                    min_ev=min_ev,
                    min_prob=min_prob,
                    note="No seasons with played matches were found in the feeds.",
                )
            season = picked

        train_key = f"train_excluding_{season}"
        static_model = self.model_for(train_key, lambda m: m.season != season)

        def builder(training: List[MatchRecord]) -> Optional[StrengthModel]:
            if all(m.season != season for m in training):
                return static_model
            return build_model(training, self.settings)

        return evaluate_backtest(
            matches, season, mode, min_ev, min_prob, settings=self.settings, builder=builder
        )
