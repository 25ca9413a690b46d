"""
Odds lookup for a single scheduled game.

A game shown to the user comes from ESPN; its prices come from The Odds API.
The lookup narrows the provider query to the game's local calendar day and
then picks the matching event by team names.

Games that started more than :data:`STALE_GAME_BUFFER` ago are not looked
up at all: pre-game markets are gone by then and the request would only
spend quota.
"""

import logging
import os
from datetime import datetime, time, timedelta, timezone
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wagerloop.core.picks import BookOdds, parse_datetime
from wagerloop.core.sport_config import resolve_sport
from wagerloop.services.odds import (
    DEFAULT_MARKETS,
    PREFERRED_BOOKMAKER,
    OddsAPIClient,
    parse_bookmakers,
)
from wagerloop.services.team_mapping import find_matching_odds_record

logger = logging.getLogger(__name__)

STALE_GAME_BUFFER = timedelta(hours=2)
DEFAULT_LOCAL_TZ = "America/Chicago"


def local_timezone() -> ZoneInfo:
    """Display timezone from ``WAGERLOOP_LOCAL_TZ``, falling back to Central."""
    name = os.getenv("WAGERLOOP_LOCAL_TZ", DEFAULT_LOCAL_TZ)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown WAGERLOOP_LOCAL_TZ %r, using %s", name, DEFAULT_LOCAL_TZ)
        return ZoneInfo(DEFAULT_LOCAL_TZ)


def is_odds_lookup_eligible(commence_time: datetime, now: Optional[datetime] = None) -> bool:
    """False once the game started more than two hours ago."""
    commence_time = parse_datetime(commence_time)
    now = now or datetime.now(timezone.utc)
    return commence_time >= now - STALE_GAME_BUFFER


def commence_time_window(
    commence_time: datetime,
    tz: Optional[ZoneInfo] = None,
) -> Tuple[datetime, datetime]:
    """
    The game's calendar day in ``tz`` as a UTC ``(start, end)`` pair.

    Start is local midnight; end is the following local midnight.  On DST
    transition days the window is 23 or 25 hours long.
    """
    tz = tz or local_timezone()
    local_day = parse_datetime(commence_time).astimezone(tz).date()
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class OddsLookup:
    """Find The Odds API event (and parsed prices) for one ESPN game."""

    def __init__(
        self,
        client: OddsAPIClient,
        bookmakers: Optional[list] = None,
        tz: Optional[ZoneInfo] = None,
    ):
        self.client = client
        self.bookmakers = bookmakers if bookmakers is not None else [PREFERRED_BOOKMAKER]
        self.tz = tz

    def find_odds_for_game(
        self,
        sport: str,
        home_team: str,
        away_team: str,
        commence_time: datetime,
        now: Optional[datetime] = None,
    ) -> Optional[Dict]:
        """
        Return the matching raw event dict, or None.

        ``sport`` may be an app sport code (``"NBA"``) or an ESPN path
        (``"basketball/nba"``).  None covers every "no odds" outcome: stale
        game, unknown sport, provider failure, or no matching event.
        """
        if not is_odds_lookup_eligible(commence_time, now=now):
            logger.debug(
                "Skipping odds lookup for %s @ %s: started more than %s ago",
                away_team, home_team, STALE_GAME_BUFFER,
            )
            return None

        cfg = resolve_sport(sport)
        if cfg is None:
            logger.warning("No odds sport key for %r", sport)
            return None

        start, end = commence_time_window(commence_time, self.tz)
        events = self.client.get_odds(
            cfg.odds_api_key,
            markets=DEFAULT_MARKETS,
            bookmakers=self.bookmakers or None,
            commence_time_from=start,
            commence_time_to=end,
        )
        if not events:
            return None
        return find_matching_odds_record(home_team, away_team, events)

    def find_book_odds(
        self,
        sport: str,
        home_team: str,
        away_team: str,
        commence_time: datetime,
        now: Optional[datetime] = None,
    ) -> Dict[str, BookOdds]:
        """Parsed bookmaker prices for the game; empty when unavailable."""
        event = self.find_odds_for_game(sport, home_team, away_team, commence_time, now=now)
        if event is None:
            return {}
        return parse_bookmakers(event)
