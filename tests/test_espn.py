"""
Tests for the ESPN scoreboard client.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from wagerloop.core.sport_config import get_sport
from wagerloop.services.espn import (
    ESPNClient,
    format_period,
    map_status,
    ordinal,
    parse_roster,
    parse_scoreboard,
)

NOW = datetime(2025, 1, 15, 18, 0, tzinfo=timezone.utc)


def _competitor(name, team_id, home_away, score=None):
    data = {"homeAway": home_away, "team": {"displayName": name, "id": team_id}}
    if score is not None:
        data["score"] = score
    return data


def _event(event_id, home, away, date, state="pre", home_score=None, away_score=None, period=0, clock=""):
    return {
        "id": event_id,
        "competitions": [{
            "date": date,
            "status": {"type": {"state": state}, "period": period, "displayClock": clock},
            "competitors": [
                _competitor(home, f"{event_id}h", "home", home_score),
                _competitor(away, f"{event_id}a", "away", away_score),
            ],
        }],
    }


def _scoreboard(*events):
    return {"events": list(events)}


def _client(payloads):
    """ESPNClient whose session returns payloads keyed by URL substring."""
    session = MagicMock()

    def get(url, params=None, timeout=None):
        for fragment, payload in payloads.items():
            if fragment in url:
                if isinstance(payload, Exception):
                    raise payload
                resp = MagicMock()
                resp.json.return_value = payload
                resp.raise_for_status.return_value = None
                return resp
        resp = MagicMock()
        resp.json.return_value = {"events": []}
        resp.raise_for_status.return_value = None
        return resp

    session.get.side_effect = get
    return ESPNClient(session=session), session


@pytest.mark.parametrize("state,expected", [
    ("pre", "scheduled"),
    ("in", "live"),
    ("post", "finished"),
    ("FINAL", "finished"),
    ("weird", "scheduled"),
    (None, "scheduled"),
])
def test_map_status(state, expected):
    assert map_status(state) == expected


@pytest.mark.parametrize("n,expected", [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (22, "22nd")])
def test_ordinal(n, expected):
    assert ordinal(n) == expected


def test_format_period_basketball():
    assert format_period("basketball/nba", {"period": 2, "displayClock": "5:32"}) == "2nd Quarter - 5:32"


def test_format_period_hockey_without_clock():
    assert format_period("hockey/nhl", {"period": 3}) == "3rd Period"


class TestParseScoreboard:
    def test_parses_scheduled_game(self):
        data = _scoreboard(_event("1", "Los Angeles Lakers", "Boston Celtics", "2025-01-16T01:00Z"))
        [game] = parse_scoreboard(data, get_sport("NBA"))

        assert game.home_team == "Los Angeles Lakers"
        assert game.away_team == "Boston Celtics"
        assert game.home_team_id == "1h"
        assert game.game_time == datetime(2025, 1, 16, 1, 0, tzinfo=timezone.utc)
        assert game.status == "scheduled"
        assert game.sport == "NBA"
        assert game.home_score is None

    def test_live_game_has_scores_and_period(self):
        data = _scoreboard(_event(
            "2", "Miami Heat", "Utah Jazz", "2025-01-15T17:00Z",
            state="in", home_score="54", away_score="50", period=2, clock="1:10",
        ))
        [game] = parse_scoreboard(data, get_sport("NBA"))

        assert game.status == "live"
        assert (game.home_score, game.away_score) == (54, 50)
        assert game.period == "2nd Quarter - 1:10"

    def test_bad_event_is_skipped(self):
        data = _scoreboard(
            {"id": "broken", "competitions": [{"competitors": [{}]}]},
            {"id": "nodate", "competitions": [{"competitors": [
                _competitor("A", "a", "home"), _competitor("B", "b", "away"),
            ]}]},
            _event("3", "Denver Nuggets", "Utah Jazz", "2025-01-16T02:00Z"),
        )
        games = parse_scoreboard(data, get_sport("NBA"))
        assert [g.id for g in games] == ["3"]


class TestSearchGamesByTeam:
    def test_filters_and_sorts_across_sports(self):
        client, _ = _client({
            "basketball/nba": _scoreboard(
                _event("late", "Los Angeles Lakers", "Boston Celtics", "2025-01-16T03:00Z"),
                _event("done", "Los Angeles Lakers", "Utah Jazz", "2025-01-15T02:00Z", state="post"),
                _event("other", "Miami Heat", "Utah Jazz", "2025-01-16T01:00Z"),
            ),
            "football/nfl": _scoreboard(
                _event("early", "Los Angeles Rams", "Dallas Cowboys", "2025-01-15T21:00Z", state="in"),
            ),
        })

        games = client.search_games_by_team("los angeles", sports=["NBA", "NFL"], now=NOW)

        assert [g.id for g in games] == ["early", "late"]

    def test_excludes_games_older_than_a_day(self):
        client, _ = _client({
            "basketball/nba": _scoreboard(
                _event("old", "Boston Celtics", "Utah Jazz", (NOW - timedelta(days=2)).isoformat()),
            ),
        })
        assert client.search_games_by_team("celtics", sports=["NBA"], now=NOW) == []

    def test_failing_sport_is_skipped(self):
        client, _ = _client({
            "basketball/nba": requests.exceptions.Timeout("slow"),
            "hockey/nhl": _scoreboard(
                _event("nhl1", "Boston Bruins", "New York Rangers", "2025-01-16T00:00Z"),
            ),
        })
        games = client.search_games_by_team("boston", sports=["NBA", "NHL"], now=NOW)
        assert [g.id for g in games] == ["nhl1"]
        assert client.last_error == "Timeout: slow"

    def test_last_error_cleared_by_next_search(self):
        client, session = _client({"basketball/nba": requests.exceptions.ConnectionError("down")})
        client.search_games_by_team("celtics", sports=["NBA"], now=NOW)
        assert client.last_error is not None

        session.get.side_effect = None
        session.get.return_value.json.return_value = _scoreboard()
        client.search_games_by_team("celtics", sports=["NBA"], now=NOW)
        assert client.last_error is None

    def test_blank_query_returns_nothing(self):
        client, session = _client({})
        assert client.search_games_by_team("  ", now=NOW) == []
        session.get.assert_not_called()


def test_scoreboard_is_cached():
    client, session = _client({"basketball/nba": _scoreboard()})
    client.get_scoreboard("NBA")
    client.get_scoreboard("NBA")
    assert session.get.call_count == 1


def test_unknown_sport_returns_empty():
    client, session = _client({})
    assert client.get_scoreboard("curling") == []
    session.get.assert_not_called()


def test_game_summary_passes_event_id():
    client, session = _client({"summary": {"header": {"id": "401"}}})
    assert client.get_game_summary("NBA", "401") == {"header": {"id": "401"}}
    assert session.get.call_args[1]["params"] == {"event": "401"}


def test_summary_failure_returns_none():
    client, _ = _client({"summary": requests.exceptions.ConnectionError("down")})
    assert client.get_game_summary("NBA", "401") is None


def test_parse_roster_flattens_groups():
    data = {"athletes": [
        {"position": "offense", "items": [
            {"id": 1, "displayName": "Pat QB", "position": {"abbreviation": "QB"},
             "jersey": "12", "headshot": {"href": "http://img/1.png"}, "age": 27,
             "displayHeight": "6' 3\"", "displayWeight": "225 lbs"},
        ]},
        {"position": "defense", "items": [
            {"id": 2, "displayName": "Lee LB", "position": {"abbreviation": "LB"}},
        ]},
    ]}
    players = parse_roster(data)

    assert [p["name"] for p in players] == ["Pat QB", "Lee LB"]
    assert players[0]["position"] == "QB"
    assert players[0]["headshot"] == "http://img/1.png"
    assert players[1]["jersey"] is None


def test_parse_roster_flat_list():
    data = {"athletes": [{"id": 7, "displayName": "Solo Guard", "position": {"abbreviation": "G"}}]}
    assert parse_roster(data)[0]["name"] == "Solo Guard"
