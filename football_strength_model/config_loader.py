"""
Load the forecasting engine configuration from YAML so command-line tools can
stay declarative.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .download import SeasonFeed


@dataclass(frozen=True)
class EngineSettings:
    # strength model
    half_life_days: float = 240.0
    min_games_per_team: int = 6
    goal_cap: float = 6.0
    shrink_alpha: float = 0.22
    fallback_league_goals: float = 2.8
    iterations: int = 260
    learning_rate: float = 0.03
    initial_home_advantage: float = 0.12
    l2_penalty: float = 0.0
    parameter_bound: float = 1.4
    home_advantage_bounds: Tuple[float, float] = (-0.25, 0.50)
    # probability engine
    max_goals: int = 8
    totals_thresholds: Tuple[int, ...] = (3, 4)
    # calibration
    calibration_iterations: int = 500
    calibration_learning_rate: float = 0.5
    calibration_l2: float = 1e-3
    calibration_bound: float = 5.0
    calibration_min_samples: int = 30
    calibration_min_improvement: float = 1e-3
    # backtest
    rebuild_every: int = 6
    commission: float = 0.05
    margin_1x2: float = 0.055
    margin_binary: float = 0.05
    fixed_prices: Dict[str, float] = field(default_factory=dict)
    n_bins: int = 10

    def __post_init__(self) -> None:
        if self.half_life_days <= 0:
            raise ValueError("half_life_days must be positive.")
        if not 0.0 <= self.shrink_alpha <= 1.0:
            raise ValueError("shrink_alpha must lie in [0, 1].")
        if self.rebuild_every < 1:
            raise ValueError("rebuild_every must be at least 1.")
        if self.max_goals < 1:
            raise ValueError("max_goals must be at least 1.")

    def with_overrides(self, **overrides: Any) -> "EngineSettings":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown engine settings: {unknown}")
        coerced = dict(overrides)
        for key in ("home_advantage_bounds", "totals_thresholds"):
            if key in coerced:
                coerced[key] = tuple(coerced[key])
        if "fixed_prices" in coerced:
            coerced["fixed_prices"] = {
                str(k): float(v) for k, v in (coerced["fixed_prices"] or {}).items()
            }
        return replace(self, **coerced)


DEFAULT_SETTINGS = EngineSettings()

_ENGINE_SECTIONS = ("model", "calibration", "backtest")


@dataclass
class FootballConfig:
    raw: Dict[str, Any]

    @property
    def engine(self) -> EngineSettings:
        overrides: Dict[str, Any] = {}
        for section in _ENGINE_SECTIONS:
            overrides.update(self.raw.get(section) or {})
        return DEFAULT_SETTINGS.with_overrides(**overrides)

    @property
    def seasons(self) -> List[SeasonFeed]:
        feeds = (self.raw.get("data") or {}).get("seasons") or []
        return [SeasonFeed(label=str(item["label"]), url=str(item["url"])) for item in feeds]

    @property
    def current_season(self) -> Optional[str]:
        value = (self.raw.get("data") or {}).get("current_season")
        if value:
            return str(value)
        seasons = self.seasons
        return seasons[-1].label if seasons else None

    @property
    def feed_ttl_seconds(self) -> float:
        return float((self.raw.get("cache") or {}).get("feed_ttl_seconds", 6 * 3600))

    @property
    def model_ttl_seconds(self) -> float:
        return float((self.raw.get("cache") or {}).get("model_ttl_seconds", 6 * 3600))

    @property
    def request_timeout(self) -> float:
        return float((self.raw.get("data") or {}).get("request_timeout", 30))


def load_config(path: Path | None = None) -> FootballConfig:
    if path is None:
        path = Path(__file__).resolve().parent / "config.yaml"
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    return FootballConfig(raw=raw)
