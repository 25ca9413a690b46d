"""
ESPN public site API client: scoreboards, game summaries and rosters.

Scoreboards are cached per sport for 15 minutes.  Every method degrades to
an empty result on HTTP or parsing failure; a single bad event is skipped
without dropping the rest of the scoreboard.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import requests

from wagerloop.core.picks import GameRef, parse_datetime
from wagerloop.core.sport_config import SEARCH_ORDER, SportConfig, resolve_sport

logger = logging.getLogger(__name__)

BASE_URL = "https://site.api.espn.com/apis/site/v2/sports"

SCOREBOARD_CACHE_TTL = timedelta(minutes=15)
SEARCH_LOOKBACK = timedelta(days=1)

_STATUS_MAP = {
    "PRE": "scheduled",
    "SCHEDULED": "scheduled",
    "IN": "live",
    "LIVE": "live",
    "POST": "finished",
    "FINAL": "finished",
}

# Period unit by ESPN sport segment.
_PERIOD_UNITS = {
    "basketball": "Quarter",
    "football": "Quarter",
    "hockey": "Period",
    "soccer": "Half",
}


def map_status(state: Optional[str]) -> str:
    return _STATUS_MAP.get((state or "").upper(), "scheduled")


def ordinal(n: int) -> str:
    if n <= 0:
        return str(n)
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_period(espn_path: str, status: Dict) -> Optional[str]:
    """Human period label for a live game, e.g. "2nd Quarter - 5:32"."""
    display_period = status.get("period") or 0
    clock = status.get("displayClock") or ""
    sport = espn_path.split("/", 1)[0]

    if sport == "baseball":
        half = "Top" if ((status.get("type") or {}).get("shortDetail") or "").startswith("Top") else "Bottom"
        period = f"{half} {ordinal(display_period)}" if display_period > 0 else ""
        return period or clock or None

    unit = _PERIOD_UNITS.get(sport)
    if unit is None:
        return clock or None
    period = f"{ordinal(display_period)} {unit}" if display_period > 0 else ""
    if clock:
        period = f"{period} - {clock}" if period else clock
    return period or None


def _score(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("value", value.get("displayValue"))
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_scoreboard(data: Dict, cfg: SportConfig) -> List[GameRef]:
    """Parse an ESPN scoreboard payload into :class:`GameRef` objects."""
    games: List[GameRef] = []
    for event in data.get("events") or []:
        try:
            competitions = event.get("competitions") or []
            if not competitions:
                continue
            competition = competitions[0]
            competitors = competition.get("competitors") or []
            if len(competitors) < 2:
                continue

            sides = {}
            for team in competitors:
                team_data = team.get("team") or {}
                key = "home" if team.get("homeAway") == "home" else "away"
                sides[key] = {
                    "name": team_data.get("displayName") or "Unknown Team",
                    "id": str(team_data.get("id") or ""),
                    "score": _score(team.get("score")),
                }
            if "home" not in sides or "away" not in sides:
                continue

            date = competition.get("date") or event.get("date")
            if not date:
                logger.warning("ESPN event %s has no start time, skipping", event.get("id"))
                continue

            status_data = competition.get("status") or event.get("status") or {}
            status = map_status((status_data.get("type") or {}).get("state"))

            game = GameRef(
                id=str(event.get("id") or ""),
                home_team=sides["home"]["name"],
                away_team=sides["away"]["name"],
                home_team_id=sides["home"]["id"],
                away_team_id=sides["away"]["id"],
                game_time=parse_datetime(date),
                sport=cfg.code,
                league=cfg.league,
                status=status,
            )
            if status in ("live", "finished"):
                game.home_score = sides["home"]["score"]
                game.away_score = sides["away"]["score"]
            if status == "live":
                game.period = format_period(cfg.espn_path, status_data)
            games.append(game)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Error parsing ESPN event %r: %s", event.get("id") if isinstance(event, dict) else None, e)
            continue
    return games


def parse_roster(data: Dict) -> List[Dict]:
    """Flatten an ESPN roster (grouped by position) into one athlete list."""
    players: List[Dict] = []
    for group in data.get("athletes") or []:
        # Some sports return a flat athlete list instead of position groups
        items = group.get("items") if isinstance(group, dict) and "items" in group else [group]
        for athlete in items or []:
            if not isinstance(athlete, dict):
                continue
            players.append({
                "id": str(athlete.get("id") or ""),
                "name": athlete.get("displayName") or athlete.get("fullName") or "",
                "position": (athlete.get("position") or {}).get("abbreviation") or "",
                "jersey": athlete.get("jersey"),
                "headshot": (athlete.get("headshot") or {}).get("href"),
                "age": athlete.get("age"),
                "height": athlete.get("displayHeight"),
                "weight": athlete.get("displayWeight"),
            })
    return players


class ESPNClient:
    """Thin wrapper around the unauthenticated ESPN site API."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        cache_ttl: timedelta = SCOREBOARD_CACHE_TTL,
        timeout: float = 10.0,
    ):
        self._session = session or requests.Session()
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._scoreboard_cache: Dict[str, tuple] = {}
        # Set by any failed request; search_games_by_team clears it per search
        self.last_error: Optional[str] = None

    def _get(self, url: str, params: Optional[Dict] = None) -> Optional[Dict]:
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error("ESPN API error for %s: %s", url, e)
            self.last_error = f"{type(e).__name__}: {e}"
            return None
        except ValueError as e:
            logger.error("ESPN API returned invalid JSON for %s: %s", url, e)
            self.last_error = f"Invalid JSON: {e}"
            return None
        if not isinstance(data, dict):
            logger.warning("Unexpected ESPN payload for %s", url)
            self.last_error = "Unexpected ESPN payload"
            return None
        return data

    def get_scoreboard(self, sport: str) -> List[GameRef]:
        cfg = resolve_sport(sport)
        if cfg is None:
            logger.warning("Unknown sport %r for ESPN scoreboard", sport)
            return []

        now = datetime.now(timezone.utc)
        cached = self._scoreboard_cache.get(cfg.code)
        if cached and now - cached[0] < self._cache_ttl:
            return cached[1]

        data = self._get(f"{BASE_URL}/{cfg.espn_path}/scoreboard")
        if data is None:
            return []
        games = parse_scoreboard(data, cfg)
        self._scoreboard_cache[cfg.code] = (now, games)
        logger.info("ESPN: parsed %d %s games", len(games), cfg.code)
        return games

    def search_games_by_team(
        self,
        query: str,
        sports: Iterable[str] = SEARCH_ORDER,
        now: Optional[datetime] = None,
    ) -> List[GameRef]:
        """
        Upcoming or live games where either team name contains ``query``.

        Sports are searched in order; a sport whose scoreboard fails is
        logged and skipped, and the failure is left in ``last_error``.
        """
        self.last_error = None
        query = (query or "").strip().lower()
        if not query:
            return []
        min_time = (now or datetime.now(timezone.utc)) - SEARCH_LOOKBACK

        results: List[GameRef] = []
        for sport in sports:
            try:
                games = self.get_scoreboard(sport)
            except Exception:
                logger.exception("Scoreboard search failed for %s", sport)
                self.last_error = f"Scoreboard search failed for {sport}"
                continue
            for game in games:
                if game.status not in ("scheduled", "live"):
                    continue
                if game.game_time < min_time:
                    continue
                if query in game.home_team.lower() or query in game.away_team.lower():
                    results.append(game)

        results.sort(key=lambda g: g.game_time)
        return results

    def get_game_summary(self, sport: str, event_id: str) -> Optional[Dict]:
        cfg = resolve_sport(sport)
        if cfg is None:
            logger.warning("Unknown sport %r for ESPN summary", sport)
            return None
        return self._get(f"{BASE_URL}/{cfg.espn_path}/summary", params={"event": event_id})

    def get_team_roster(self, sport: str, team_id: str) -> List[Dict]:
        cfg = resolve_sport(sport)
        if cfg is None or not team_id:
            return []
        data = self._get(f"{BASE_URL}/{cfg.espn_path}/teams/{team_id}/roster")
        if data is None:
            return []
        return parse_roster(data)

    def clear_cache(self) -> None:
        self._scoreboard_cache.clear()
