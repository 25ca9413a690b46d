"""
Tests for The Odds API client and its parsers.
HTTP is mocked via an injected session; no network access.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from wagerloop.services.odds import (
    OddsAPIClient,
    bookmaker_display_name,
    flatten_for_display,
    parse_bookmakers,
)


def _response(payload, headers=None):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.headers = headers or {"x-requests-remaining": "480", "x-requests-used": "20"}
    resp.raise_for_status.return_value = None
    return resp


GAME = {
    "id": "abc123",
    "home_team": "Los Angeles Lakers",
    "away_team": "Boston Celtics",
    "commence_time": "2025-01-16T01:00:00Z",
    "bookmakers": [
        {
            "key": "fanduel",
            "title": "FanDuel",
            "last_update": "2025-01-15T20:00:00Z",
            "markets": [
                {"key": "h2h", "outcomes": [
                    {"name": "Los Angeles Lakers", "price": -150},
                    {"name": "Boston Celtics", "price": 130},
                ]},
                {"key": "spreads", "outcomes": [
                    {"name": "Los Angeles Lakers", "price": -110, "point": -3.5},
                    {"name": "Boston Celtics", "price": -110, "point": 3.5},
                ]},
                {"key": "totals", "outcomes": [
                    {"name": "Over", "price": -105, "point": 220.5},
                    {"name": "Under", "price": -115, "point": 220.5},
                ]},
            ],
        },
        {
            "key": "draftkings",
            "title": "DraftKings",
            "markets": [{"key": "h2h", "outcomes": [
                {"name": "Los Angeles Lakers", "price": -145},
                {"name": "Boston Celtics", "price": 125},
            ]}],
        },
    ],
}


class TestClientConstruction:
    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("THE_ODDS_API_KEY", raising=False)
        monkeypatch.delenv("ODDS_API_KEY", raising=False)
        with pytest.raises(ValueError):
            OddsAPIClient()

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("THE_ODDS_API_KEY", "env-key")
        assert OddsAPIClient(session=MagicMock()).api_key == "env-key"


class TestGetOdds:
    def test_builds_request_and_tracks_quota(self):
        session = MagicMock()
        session.get.return_value = _response([GAME])
        client = OddsAPIClient(api_key="k", session=session)

        events = client.get_odds(
            "basketball_nba",
            bookmakers=["fanduel"],
            commence_time_from=datetime(2025, 1, 15, 6, 0, 30, 123, tzinfo=timezone.utc),
        )

        assert events == [GAME]
        url = session.get.call_args[0][0]
        params = session.get.call_args[1]["params"]
        assert url.endswith("/sports/basketball_nba/odds")
        assert params["apiKey"] == "k"
        assert params["markets"] == "h2h,spreads,totals"
        assert params["bookmakers"] == "fanduel"
        assert params["commenceTimeFrom"] == "2025-01-15T06:00:30Z"
        assert client.requests_remaining == 480

    def test_responses_are_cached(self):
        session = MagicMock()
        session.get.return_value = _response([GAME])
        client = OddsAPIClient(api_key="k", session=session)

        client.get_odds("basketball_nba")
        client.get_odds("basketball_nba")

        assert session.get.call_count == 1
        assert client.cache_stats()["odds_cache_entries"] == 1

    def test_cache_keyed_by_params(self):
        session = MagicMock()
        session.get.return_value = _response([GAME])
        client = OddsAPIClient(api_key="k", session=session)

        client.get_odds("basketball_nba")
        client.get_odds("basketball_nba", bookmakers=["fanduel"])

        assert session.get.call_count == 2

    def test_clear_cache_forces_refetch(self):
        session = MagicMock()
        session.get.return_value = _response([GAME])
        client = OddsAPIClient(api_key="k", session=session)

        client.get_odds("basketball_nba")
        client.clear_cache()
        client.get_odds("basketball_nba")

        assert session.get.call_count == 2

    def test_http_error_returns_empty(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("down")
        client = OddsAPIClient(api_key="k", session=session)

        assert client.get_odds("basketball_nba") == []
        assert client.cache_stats()["odds_cache_entries"] == 0
        assert client.requests_made == 1
        assert client.last_error == "ConnectionError: down"

    def test_success_clears_last_error(self):
        session = MagicMock()
        session.get.side_effect = [requests.exceptions.ConnectionError("down"), _response([GAME])]
        client = OddsAPIClient(api_key="k", session=session)

        client.get_odds("basketball_nba")
        client.get_odds("basketball_nba")

        assert client.requests_made == 2
        assert client.last_error is None

    def test_expired_entries_evicted_on_write(self):
        session = MagicMock()
        session.get.return_value = _response([GAME])
        client = OddsAPIClient(api_key="k", session=session, cache_ttl_seconds=0)

        client.get_odds("basketball_nba")
        client.get_odds("basketball_nba", bookmakers=["fanduel"])
        client.get_odds("basketball_nba", bookmakers=["draftkings"])

        assert session.get.call_count == 3
        assert client.cache_stats()["odds_cache_entries"] == 1

    def test_bad_status_returns_empty(self):
        session = MagicMock()
        resp = _response({"message": "quota"})
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError("429")
        session.get.return_value = resp
        client = OddsAPIClient(api_key="k", session=session)

        assert client.get_odds("basketball_nba") == []

    def test_non_list_payload_returns_empty(self):
        session = MagicMock()
        session.get.return_value = _response({"message": "unexpected"})
        client = OddsAPIClient(api_key="k", session=session)

        assert client.get_odds("basketball_nba") == []


def test_get_sports_filters_inactive_and_caches():
    session = MagicMock()
    session.get.return_value = _response([
        {"key": "basketball_nba", "active": True},
        {"key": "cricket_test", "active": False},
    ])
    client = OddsAPIClient(api_key="k", session=session)

    assert [s["key"] for s in client.get_sports()] == ["basketball_nba"]
    client.get_sports()
    assert session.get.call_count == 1


class TestParseBookmakers:
    def test_maps_sides_by_team_name(self):
        books = parse_bookmakers(GAME)
        fd = books["fanduel"]

        assert fd.title == "FanDuel"
        assert fd.moneyline == {"home": -150, "away": 130}
        assert fd.spread["home"] == {"point": -3.5, "price": -110}
        assert fd.total["over"] == {"point": 220.5, "price": -105}
        assert fd.last_updated == datetime(2025, 1, 15, 20, 0, tzinfo=timezone.utc)

    def test_bookmaker_allowlist(self):
        assert list(parse_bookmakers(GAME, sportsbooks=["draftkings"])) == ["draftkings"]

    def test_draw_outcome(self):
        game = {
            "home_team": "LA Galaxy",
            "away_team": "Seattle Sounders",
            "bookmakers": [{"key": "fanduel", "markets": [{"key": "h2h", "outcomes": [
                {"name": "LA Galaxy", "price": 150},
                {"name": "Seattle Sounders", "price": 170},
                {"name": "Draw", "price": 240},
            ]}]}],
        }
        assert parse_bookmakers(game)["fanduel"].moneyline["draw"] == 240

    def test_displays(self):
        fd = parse_bookmakers(GAME)["fanduel"]
        assert fd.moneyline_display("away") == "+130"
        assert fd.spread_display("away") == "+3.5 (-110)"
        assert fd.total_display("under") == "Under 220.5 (-115)"

    def test_missing_market_displays_na(self):
        dk = parse_bookmakers(GAME)["draftkings"]
        assert dk.spread_display("home") == "N/A"
        assert dk.total_display("over") == "N/A"


def test_flatten_for_display():
    rows = flatten_for_display([GAME])

    assert len(rows) == 8
    spread_row = next(r for r in rows if r["market_key"] == "spreads" and r["point"] == 3.5)
    assert spread_row["game_text"] == "Boston Celtics @ Los Angeles Lakers"
    assert spread_row["market"] == "Spreads"
    assert spread_row["outcome"] == "Boston Celtics +3.5"
    assert spread_row["odds"] == "-110"
    ml = next(r for r in rows if r["market_key"] == "h2h" and r["price"] == 130)
    assert ml["odds"] == "+130"
    assert ml["market"] == "Moneyline"


def test_flatten_skips_malformed_event():
    rows = flatten_for_display([{"id": "bad", "commence_time": "not-a-date"}, GAME])
    assert len(rows) == 8


def test_bookmaker_display_name():
    assert bookmaker_display_name("williamhill_us") == "William Hill"
    assert bookmaker_display_name("some_new_book") == "Some New Book"
