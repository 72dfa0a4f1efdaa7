"""
Utilities for pulling fixture/result feeds (FixtureDownload JSON and similar)
and normalising their rows into MatchRecord values.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd
import requests

from .data import MatchRecord

logger = logging.getLogger(__name__)

HOME_KEYS = ("HomeTeam", "Home Team", "HomeTeamName", "HomeTeamShort", "Home")
AWAY_KEYS = ("AwayTeam", "Away Team", "AwayTeamName", "AwayTeamShort", "Away")
LOCATION_KEYS = ("Location", "Venue", "venue", "stadium")
ROUND_KEYS = ("RoundNumber", "Round Number", "Round", "matchday")
DATE_KEYS = ("DateUtc", "DateUTC", "Date", "date", "Kickoff", "kickoff", "Start", "start_time")
HOME_SCORE_KEYS = ("HomeTeamScore", "HomeScore", "homeScore", "home_score")
AWAY_SCORE_KEYS = ("AwayTeamScore", "AwayScore", "awayScore", "away_score")
RESULT_KEYS = ("Result", "result", "Score", "score")

_SCORE_PATTERN = re.compile(r"(\d+)\s*[-–—:]\s*(\d+)")
_DMY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(\d{1,2}):(\d{2}))?$")


@dataclass(frozen=True)
class SeasonFeed:
    label: str  # e.g. "2024/25"
    url: str


def _pick(row: Mapping[str, Any], keys: Sequence[str], default: Any = None) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return default


def parse_kickoff(value: Any) -> Optional[datetime]:
    """Parse feed timestamps into timezone-aware UTC datetimes."""
    if value is None or value == "":
        return None
    text = str(value).strip()
    match = _DMY_PATTERN.match(text)
    if match:
        day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        hour = int(match.group(4) or 0)
        minute = int(match.group(5) or 0)
        try:
            return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
        except ValueError:
            return None
    # FixtureDownload uses "YYYY-MM-DD HH:MM:SSZ"
    if " " in text and text.endswith("Z") and "T" not in text:
        text = text.replace(" ", "T", 1)
    stamp = pd.to_datetime(text, utc=True, errors="coerce")
    if pd.isna(stamp):
        return None
    return stamp.to_pydatetime()


def parse_score(value: Any) -> Optional[tuple[int, int]]:
    if value is None:
        return None
    text = str(value).strip()
    if text in ("-", "–", "—"):
        return None
    match = _SCORE_PATTERN.search(text)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def _goal_count(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number < 0:
        return None
    return int(number)


def row_to_record(row: Mapping[str, Any], season: str) -> MatchRecord:
    home_goals = _goal_count(_pick(row, HOME_SCORE_KEYS))
    away_goals = _goal_count(_pick(row, AWAY_SCORE_KEYS))
    if home_goals is None or away_goals is None:
        score = parse_score(_pick(row, RESULT_KEYS))
        if score:
            home_goals, away_goals = score

    round_value = _pick(row, ROUND_KEYS, "")
    return MatchRecord(
        home=str(_pick(row, HOME_KEYS, "TBD")).strip(),
        away=str(_pick(row, AWAY_KEYS, "TBD")).strip(),
        kickoff=parse_kickoff(_pick(row, DATE_KEYS)),
        home_goals=home_goals,
        away_goals=away_goals,
        season=season,
        round=str(round_value) if round_value else "",
        location=str(_pick(row, LOCATION_KEYS, "")),
    )


def fetch_feed(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = 30,
) -> List[Dict[str, Any]]:
    client = session or requests
    response = client.get(url, headers={"accept": "application/json"}, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "matches", "fixtures"):
            rows = payload.get(key)
            if isinstance(rows, list):
                return rows
    logger.warning("Feed %s returned no recognisable rows.", url)
    return []


def load_all_seasons(
    feeds: Iterable[SeasonFeed],
    session: Optional[requests.Session] = None,
    fetch: Optional[Callable[[str], List[Dict[str, Any]]]] = None,
) -> List[MatchRecord]:
    if fetch is None:
        def fetch(url: str) -> List[Dict[str, Any]]:
            return fetch_feed(url, session=session)

    records: List[MatchRecord] = []
    for feed in feeds:
        try:
            rows = fetch(feed.url)
        except Exception as exc:
            logger.error("Failed to download %s: %s", feed.label, exc)
            raise
        records.extend(row_to_record(row, feed.label) for row in rows)
    return records
