"""Sport-level configuration — all provider keys in one place.

This module is the **registry** for every identifier that differs between
the two data providers.  Nowhere else in the codebase should ESPN sport
paths or The Odds API sport keys be hard-coded.

Architecture
------------
:class:`SportConfig` is a frozen dataclass carrying one sport's identifiers.
:data:`SPORTS` maps the app's sport code (``"NBA"``, ``"NFL"``…) to its
config.  To add a sport, add an entry to :data:`SPORTS`; the ESPN client,
odds client and pick builder pick it up automatically.

Typical usage::

    from wagerloop.core.sport_config import get_sport, sport_for_espn_path

    cfg = get_sport("NBA")
    cfg.espn_path         # "basketball/nba"
    cfg.odds_api_key      # "basketball_nba"

    sport_for_espn_path("football/nfl").code   # "NFL"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class SportConfig:
    """Immutable identifiers for a single sport.

    Attributes:
        code: App-level sport code used in API routes and stored picks.
        league: League label shown next to a game.
        espn_path: ``{sport}/{league}`` segment of the ESPN site API.
        odds_api_key: ``sport_key`` for The Odds API.
        allows_draw: Whether a moneyline/spread pick may take the ``draw``
            side.  Only soccer prices a three-way moneyline.
    """

    code: str
    league: str
    espn_path: str
    odds_api_key: str
    allows_draw: bool = False


SPORTS: Final[dict[str, SportConfig]] = {
    "NBA": SportConfig("NBA", "NBA", "basketball/nba", "basketball_nba"),
    "NFL": SportConfig("NFL", "NFL", "football/nfl", "americanfootball_nfl"),
    "MLB": SportConfig("MLB", "MLB", "baseball/mlb", "baseball_mlb"),
    "NHL": SportConfig("NHL", "NHL", "hockey/nhl", "icehockey_nhl"),
    "NCAAB": SportConfig(
        "NCAAB", "NCAAB", "basketball/mens-college-basketball", "basketball_ncaab"
    ),
    "NCAAF": SportConfig(
        "NCAAF", "NCAAF", "football/college-football", "americanfootball_ncaaf"
    ),
    "Soccer": SportConfig(
        "Soccer", "MLS", "soccer/usa.1", "soccer_usa_mls", allows_draw=True
    ),
    "UFC": SportConfig("UFC", "UFC", "mma/ufc", "mma_mixed_martial_arts"),
}

#: Order in which scoreboards are searched when a user types a team name.
SEARCH_ORDER: Final[tuple[str, ...]] = (
    "NCAAB", "NBA", "NFL", "NCAAF", "MLB", "NHL", "Soccer",
)


def get_sport(code: str) -> SportConfig:
    """Return the config for an app sport code (case-insensitive).

    Raises:
        KeyError: If the sport is not registered.
    """
    if code in SPORTS:
        return SPORTS[code]
    for key, cfg in SPORTS.items():
        if key.lower() == code.lower():
            return cfg
    raise KeyError(f"Unknown sport {code!r}")


def sport_for_espn_path(espn_path: str) -> SportConfig | None:
    """Reverse lookup from an ESPN sport path; ``None`` if unregistered."""
    for cfg in SPORTS.values():
        if cfg.espn_path == espn_path:
            return cfg
    return None


def resolve_sport(sport: str) -> SportConfig | None:
    """Accept either an app sport code or an ESPN path."""
    try:
        return get_sport(sport)
    except KeyError:
        return sport_for_espn_path(sport)
