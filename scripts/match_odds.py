#!/usr/bin/env python3
"""
Audit ESPN ↔ The Odds API team matching for one sport.

Fetches today's ESPN scoreboard and the bookmaker events for the same
sport, then reports which games found odds.  For misses the closest odds
event is printed so CITY_ABBREVIATIONS in
wagerloop/services/team_mapping.py can be extended.

    python scripts/match_odds.py NBA
    python scripts/match_odds.py NCAAB --all-books
"""

import sys
import os
import logging

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv()

from wagerloop.core.sport_config import SPORTS, get_sport
from wagerloop.services.espn import ESPNClient
from wagerloop.services.odds import PREFERRED_BOOKMAKER, OddsAPIClient
from wagerloop.services.team_mapping import closest_candidate, find_matching_odds_record

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def run_match_audit(sport: str, all_books: bool = False) -> int:
    """Print the match report; returns the number of unmatched games."""
    cfg = get_sport(sport)
    try:
        odds_client = OddsAPIClient()
    except ValueError as e:
        print(f"Error: {e}")
        return -1

    games = [g for g in ESPNClient().get_scoreboard(cfg.code) if g.status != "finished"]
    bookmakers = None if all_books else [PREFERRED_BOOKMAKER]
    events = odds_client.get_odds(cfg.odds_api_key, bookmakers=bookmakers)

    print(f"{cfg.code}: {len(games)} open ESPN games, {len(events)} odds events")
    unmatched = 0
    for game in games:
        event = find_matching_odds_record(game.home_team, game.away_team, events)
        if event is not None:
            print(f"  OK    {game.matchup}")
            continue

        unmatched += 1
        closest = closest_candidate(game.home_team, game.away_team, events)
        if closest:
            (home, away), score = closest
            print(f"  MISS  {game.matchup}  (closest: {away} @ {home}, {score:.0f})")
        else:
            print(f"  MISS  {game.matchup}  (no similar event)")

    print(f"{unmatched} unmatched")
    return unmatched


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Audit cross-provider team matching")
    parser.add_argument("sport", choices=sorted(SPORTS), help="Sport code")
    parser.add_argument("--all-books", action="store_true", help="Query every US bookmaker")
    args = parser.parse_args()

    result = run_match_audit(args.sport, all_books=args.all_books)
    sys.exit(1 if result < 0 else 0)
