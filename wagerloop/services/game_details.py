"""
Game detail loading: summary, odds and both rosters.

The summary and the odds are independent, so they are fetched concurrently
and joined before the rosters (which need team ids) are fetched, again
concurrently.  Only the summary is required; odds and rosters are
supplementary and degrade to empty values.

When a user switches games quickly, an earlier load can finish after a
later one.  Each load takes a generation number from
:class:`RequestGeneration`; a load that has been superseded returns with
``stale=True`` and must not be applied.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from wagerloop.core.picks import BookOdds, GameRef
from wagerloop.services.espn import ESPNClient
from wagerloop.services.odds_lookup import OddsLookup

logger = logging.getLogger(__name__)

LOAD_ERROR = "Failed to load game details"


class RequestGeneration:
    """Monotonic counter identifying the most recent request."""

    def __init__(self):
        self._lock = threading.Lock()
        self._current = 0

    def next(self) -> int:
        with self._lock:
            self._current += 1
            return self._current

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._current

    @property
    def current(self) -> int:
        return self._current


@dataclass
class GameDetails:
    game: GameRef
    generation: int
    summary: Optional[Dict] = None
    odds: Dict[str, BookOdds] = field(default_factory=dict)
    home_roster: List[Dict] = field(default_factory=list)
    away_roster: List[Dict] = field(default_factory=list)
    error: Optional[str] = None
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.stale


class GameDetailsLoader:
    def __init__(self, espn: ESPNClient, odds_lookup: Optional[OddsLookup] = None, max_workers: int = 4):
        self.espn = espn
        self.odds_lookup = odds_lookup
        self.max_workers = max_workers
        self.generations = RequestGeneration()

    def _load_odds(self, sport: str, game: GameRef) -> Dict[str, BookOdds]:
        if self.odds_lookup is None:
            return {}
        try:
            return self.odds_lookup.find_book_odds(
                sport, game.home_team, game.away_team, game.game_time
            )
        except Exception:
            logger.exception("Odds lookup failed for %s", game.matchup)
            return {}

    def _load_roster(self, sport: str, team_id: str) -> List[Dict]:
        try:
            return self.espn.get_team_roster(sport, team_id)
        except Exception:
            logger.exception("Roster fetch failed for team %s", team_id)
            return []

    def load(self, sport: str, game: GameRef) -> GameDetails:
        generation = self.generations.next()
        details = GameDetails(game=game, generation=generation)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            summary_future = executor.submit(self.espn.get_game_summary, sport, game.id)
            odds_future = executor.submit(self._load_odds, sport, game)

            try:
                details.summary = summary_future.result()
            except Exception:
                logger.exception("Summary fetch failed for event %s", game.id)
                details.summary = None
            details.odds = odds_future.result()

            if not self.generations.is_current(generation):
                return self._discard(details)

            if details.summary is None:
                details.error = LOAD_ERROR
                return details

            home_future = executor.submit(self._load_roster, sport, game.home_team_id)
            away_future = executor.submit(self._load_roster, sport, game.away_team_id)
            details.home_roster = home_future.result()
            details.away_roster = away_future.result()

        if not self.generations.is_current(generation):
            return self._discard(details)

        if details.odds:
            game.sportsbook_odds = details.odds
        logger.info(
            "Loaded details for %s: %d books, %d/%d players",
            game.matchup, len(details.odds), len(details.home_roster), len(details.away_roster),
        )
        return details

    def _discard(self, details: GameDetails) -> GameDetails:
        logger.debug(
            "Discarding details for %s: generation %d superseded by %d",
            details.game.id, details.generation, self.generations.current,
        )
        details.stale = True
        return details
