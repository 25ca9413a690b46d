"""
The Odds API integration for bookmaker prices.
https://the-odds-api.com/

Responses are cached in memory for a short window (5 minutes by default,
``ODDS_CACHE_TTL_SECONDS``) because prices move and every request costs
quota.  The sports list changes rarely and is cached for 24 hours.

Failures never raise to the caller: odds are supplementary data, so any
HTTP or decoding error is logged and an empty result is returned.  There
is no automatic retry; the user refreshes manually.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from wagerloop.core.picks import BookOdds, parse_datetime

logger = logging.getLogger(__name__)

BASE_URL = "https://api.the-odds-api.com/v4"

DEFAULT_MARKETS = "h2h,spreads,totals"
PREFERRED_BOOKMAKER = "fanduel"

BOOKMAKER_NAMES: Dict[str, str] = {
    "fanduel": "FanDuel",
    "draftkings": "DraftKings",
    "betmgm": "BetMGM",
    "caesars": "Caesars",
    "bovada": "Bovada",
    "betrivers": "BetRivers",
    "pointsbetus": "PointsBet",
    "williamhill_us": "William Hill",
}

MARKET_DISPLAY_NAMES: Dict[str, str] = {
    "h2h": "Moneyline",
    "spreads": "Spreads",
    "totals": "Over/Under",
}

SPORTS_CACHE_TTL = timedelta(hours=24)


def _api_timestamp(dt: datetime) -> str:
    """The Odds API rejects fractional seconds and offsets other than Z."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def bookmaker_display_name(key: str) -> str:
    if key in BOOKMAKER_NAMES:
        return BOOKMAKER_NAMES[key]
    return " ".join(word.capitalize() for word in key.split("_") if word)


class OddsAPIClient:
    """Client for The Odds API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        cache_ttl_seconds: Optional[int] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key or os.getenv("THE_ODDS_API_KEY") or os.getenv("ODDS_API_KEY")
        if not self.api_key:
            raise ValueError("THE_ODDS_API_KEY not set in environment")
        self._session = session or requests.Session()
        if cache_ttl_seconds is None:
            cache_ttl_seconds = int(os.getenv("ODDS_CACHE_TTL_SECONDS", "300"))
        self._cache_ttl = timedelta(seconds=cache_ttl_seconds)
        self._timeout = timeout
        self._odds_cache: Dict[tuple, tuple[datetime, List[Dict]]] = {}
        self._sports_cache: Optional[tuple[datetime, List[Dict]]] = None
        self.requests_remaining: Optional[int] = None
        # Health of the most recent request that reached the API
        self.requests_made = 0
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Any]:
        url = f"{BASE_URL}{path}"
        self.requests_made += 1
        self.last_error = None
        try:
            response = self._session.get(
                url, params={"apiKey": self.api_key, **params}, timeout=self._timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error("Odds API error for %s: %s", path, e)
            self.last_error = f"{type(e).__name__}: {e}"
            return None
        except ValueError as e:
            logger.error("Odds API returned invalid JSON for %s: %s", path, e)
            self.last_error = f"Invalid JSON: {e}"
            return None

        remaining = response.headers.get("x-requests-remaining")
        used = response.headers.get("x-requests-used")
        if remaining is not None:
            try:
                self.requests_remaining = int(float(remaining))
            except ValueError:
                pass
        logger.info("Odds API %s: quota %s used, %s remaining", path, used, remaining)
        return data

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_sports(self) -> List[Dict]:
        """Active sports offered by the API (cached for 24 hours)."""
        now = datetime.now(timezone.utc)
        if self._sports_cache and now - self._sports_cache[0] < SPORTS_CACHE_TTL:
            return self._sports_cache[1]

        data = self._get("/sports/", {})
        if not isinstance(data, list):
            return []
        active = [s for s in data if s.get("active")]
        self._sports_cache = (now, active)
        logger.info("Fetched %d active sports from The Odds API", len(active))
        return active

    def get_odds(
        self,
        sport_key: str,
        markets: str = DEFAULT_MARKETS,
        regions: Optional[str] = None,
        bookmakers: Optional[List[str]] = None,
        commence_time_from: Optional[datetime] = None,
        commence_time_to: Optional[datetime] = None,
    ) -> List[Dict]:
        """
        Fetch upcoming events with bookmaker odds for one sport.

        Args:
            sport_key: The Odds API sport key, e.g. ``"basketball_nba"``.
            markets: Comma-separated market keys.
            regions: Bookmaker regions; defaults to ``ODDS_API_REGIONS`` or "us".
            bookmakers: Optional bookmaker allowlist (overrides regions upstream).
            commence_time_from / commence_time_to: Optional UTC window on
                event start time.

        Returns:
            Raw event dicts (``id``, ``home_team``, ``away_team``,
            ``commence_time``, ``bookmakers``).  Empty on any failure.
        """
        regions = regions or os.getenv("ODDS_API_REGIONS", "us")
        params: Dict[str, Any] = {
            "regions": regions,
            "markets": markets,
            "oddsFormat": "american",
            "dateFormat": "iso",
        }
        if bookmakers:
            params["bookmakers"] = ",".join(bookmakers)
        if commence_time_from is not None:
            params["commenceTimeFrom"] = _api_timestamp(commence_time_from)
        if commence_time_to is not None:
            params["commenceTimeTo"] = _api_timestamp(commence_time_to)

        cache_key = (sport_key, tuple(sorted(params.items())))
        now = datetime.now(timezone.utc)
        cached = self._odds_cache.get(cache_key)
        if cached and now - cached[0] < self._cache_ttl:
            logger.debug("Returning cached odds for %s", sport_key)
            return cached[1]

        data = self._get(f"/sports/{sport_key}/odds", params)
        if not isinstance(data, list):
            if data is not None:
                logger.warning("Unexpected odds payload for %s: %r", sport_key, type(data))
                self.last_error = f"Unexpected payload type {type(data).__name__}"
            return []

        self._evict_expired(now)
        self._odds_cache[cache_key] = (now, data)
        logger.info("Odds API: %d events fetched for %s", len(data), sport_key)
        return data

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def _evict_expired(self, now: datetime) -> None:
        expired = [k for k, (fetched, _) in self._odds_cache.items() if now - fetched >= self._cache_ttl]
        for key in expired:
            del self._odds_cache[key]

    def clear_cache(self) -> None:
        self._odds_cache.clear()
        self._sports_cache = None
        logger.info("Odds cache cleared")

    def cache_stats(self) -> Dict:
        return {
            "odds_cache_entries": len(self._odds_cache),
            "sports_cached": len(self._sports_cache[1]) if self._sports_cache else 0,
            "sports_last_fetch": self._sports_cache[0].isoformat() if self._sports_cache else None,
            "requests_remaining": self.requests_remaining,
        }


# ---------------------------------------------------------------------------
# Parsing (no network)
# ---------------------------------------------------------------------------

def parse_bookmakers(
    game_data: Dict,
    sportsbooks: Optional[List[str]] = None,
) -> Dict[str, BookOdds]:
    """
    Parse one event's bookmaker tree into :class:`BookOdds` keyed by bookmaker.

    Outcome names are compared against the event's own ``home_team`` /
    ``away_team`` to assign sides; ``"Draw"`` maps to the draw side and
    totals use ``"Over"`` / ``"Under"``.

    Args:
        game_data: Raw event dict from :meth:`OddsAPIClient.get_odds`.
        sportsbooks: Optional allowlist of bookmaker keys.
    """
    home_team = game_data.get("home_team")
    away_team = game_data.get("away_team")
    result: Dict[str, BookOdds] = {}

    for bookmaker in game_data.get("bookmakers") or []:
        key = (bookmaker.get("key") or "").lower()
        if not key or (sportsbooks and key not in sportsbooks):
            continue

        book = BookOdds(
            bookmaker=key,
            title=bookmaker.get("title") or bookmaker_display_name(key),
        )
        last_update = bookmaker.get("last_update")
        if last_update:
            try:
                book.last_updated = parse_datetime(last_update)
            except ValueError:
                logger.debug("Unparseable last_update %r for %s", last_update, key)

        for market in bookmaker.get("markets") or []:
            market_key = market.get("key")
            for outcome in market.get("outcomes") or []:
                name = outcome.get("name")
                price = outcome.get("price")
                point = outcome.get("point")

                if market_key == "totals":
                    side = (name or "").lower()
                    if side in ("over", "under"):
                        book.total[side] = {"point": point, "price": price}
                    continue

                if name == home_team:
                    side = "home"
                elif name == away_team:
                    side = "away"
                elif (name or "").lower() == "draw":
                    side = "draw"
                else:
                    continue

                if market_key == "h2h":
                    book.moneyline[side] = price
                elif market_key == "spreads":
                    book.spread[side] = {"point": point, "price": price}

        if book.moneyline or book.spread or book.total:
            result[key] = book

    return result


def flatten_for_display(odds_data: List[Dict]) -> List[Dict]:
    """
    One row per (event, bookmaker, market, outcome) for list displays.

    Malformed events are logged and skipped rather than failing the list.
    """
    rows: List[Dict] = []

    for game in odds_data:
        try:
            home_team = game.get("home_team") or "Unknown"
            away_team = game.get("away_team") or "Unknown"
            commence = game.get("commence_time")
            game_time = parse_datetime(commence).isoformat() if commence else None

            for bookmaker in game.get("bookmakers") or []:
                for market in bookmaker.get("markets") or []:
                    market_key = market.get("key") or ""
                    market_name = MARKET_DISPLAY_NAMES.get(market_key, market_key.upper())

                    for outcome in market.get("outcomes") or []:
                        name = outcome.get("name") or ""
                        price = outcome.get("price")
                        point = outcome.get("point")

                        odds_text = ""
                        if isinstance(price, (int, float)) and not isinstance(price, bool):
                            odds_text = f"+{price:.0f}" if price > 0 else f"{price:.0f}"

                        display = name
                        if point is not None and market_key == "spreads":
                            display = f"{name} {'+' if point > 0 else ''}{point}"
                        elif point is not None and market_key == "totals":
                            display = f"{name} {point}"

                        rows.append({
                            "game_id": game.get("id", ""),
                            "game_text": f"{away_team} @ {home_team}",
                            "home_team": home_team,
                            "away_team": away_team,
                            "game_time": game_time,
                            "bookmaker": bookmaker.get("title") or "",
                            "bookmaker_key": bookmaker.get("key") or "",
                            "market": market_name,
                            "market_key": market_key,
                            "outcome": display,
                            "price": price,
                            "odds": odds_text,
                            "point": point,
                        })
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed odds event %r: %s", game.get("id") if isinstance(game, dict) else game, e)
            continue

    return rows
