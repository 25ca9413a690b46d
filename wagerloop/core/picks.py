"""Pick, game and bookmaker-odds data transfer objects.

These DTOs are shared by the pick builder, the provider clients and the
social feed.  ``to_dict`` / ``from_dict`` read and write the JSON shape
stored in ``posts.picks_data`` so existing rows written by the mobile
client stay readable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from wagerloop.core.odds_math import format_american, parse_american


class PickType(str, Enum):
    MONEYLINE = "moneyline"
    SPREAD = "spread"
    TOTAL = "total"
    PLAYER_PROP = "player_prop"

    @classmethod
    def from_value(cls, value: "PickType | str") -> "PickType":
        """Parse a pick type, accepting the mobile client's ``playerProp``."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        if key == "playerprop":
            key = "player_prop"
        return cls(key)


class PickSide(str, Enum):
    HOME = "home"
    AWAY = "away"
    OVER = "over"
    UNDER = "under"
    DRAW = "draw"

    @classmethod
    def from_value(cls, value: "PickSide | str") -> "PickSide":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


def valid_sides(pick_type: PickType, allows_draw: bool = False) -> frozenset[PickSide]:
    """Side vocabulary for a pick type.

    Moneyline and spread picks take a team (or a draw where the sport prices
    one); totals and player props take over/under.
    """
    if pick_type in (PickType.MONEYLINE, PickType.SPREAD):
        sides = {PickSide.HOME, PickSide.AWAY}
        if allows_draw and pick_type is PickType.MONEYLINE:
            sides.add(PickSide.DRAW)
        return frozenset(sides)
    return frozenset({PickSide.OVER, PickSide.UNDER})


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) to an aware datetime.

    Naive values are assumed to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Bookmaker odds
# ---------------------------------------------------------------------------

@dataclass
class BookOdds:
    """One bookmaker's prices for a game.

    ``moneyline`` maps side → price; ``spread`` and ``total`` map side →
    ``{"point": float, "price": int}``.
    """

    bookmaker: str
    title: str = ""
    moneyline: dict[str, int] = field(default_factory=dict)
    spread: dict[str, dict[str, Any]] = field(default_factory=dict)
    total: dict[str, dict[str, Any]] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    def price_for(self, pick_type: PickType, side: PickSide) -> Optional[int]:
        """American price for a market side, or ``None`` if not posted."""
        key = side.value
        if pick_type is PickType.MONEYLINE:
            price = self.moneyline.get(key)
        elif pick_type is PickType.SPREAD:
            price = (self.spread.get(key) or {}).get("price")
        elif pick_type is PickType.TOTAL:
            price = (self.total.get(key) or {}).get("price")
        else:
            return None
        if price is None:
            return None
        try:
            return parse_american(price)
        except ValueError:
            return None

    def point_for(self, pick_type: PickType, side: PickSide) -> Optional[float]:
        if pick_type is PickType.SPREAD:
            point = (self.spread.get(side.value) or {}).get("point")
        elif pick_type is PickType.TOTAL:
            point = (self.total.get(side.value) or {}).get("point")
        else:
            return None
        return float(point) if point is not None else None

    def moneyline_display(self, side: str) -> str:
        price = self.price_for(PickType.MONEYLINE, PickSide.from_value(side))
        return format_american(price) if price is not None else "N/A"

    def spread_display(self, side: str) -> str:
        side_enum = PickSide.from_value(side)
        point = self.point_for(PickType.SPREAD, side_enum)
        price = self.price_for(PickType.SPREAD, side_enum)
        if point is None or price is None:
            return "N/A"
        sign = "+" if point >= 0 else ""
        return f"{sign}{point} ({price})"

    def total_display(self, side: str) -> str:
        side_enum = PickSide.from_value(side)
        point = self.point_for(PickType.TOTAL, side_enum)
        price = self.price_for(PickType.TOTAL, side_enum)
        if point is None or price is None:
            return "N/A"
        return f"{side_enum.value.capitalize()} {point} ({price})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sportsbook": {"id": self.bookmaker, "name": self.title or self.bookmaker},
            "moneyline": self.moneyline or None,
            "spread": self.spread or None,
            "total": self.total or None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BookOdds":
        book = data.get("sportsbook") or {}
        updated = data.get("last_updated")
        return cls(
            bookmaker=book.get("id", ""),
            title=book.get("name", ""),
            moneyline=dict(data.get("moneyline") or {}),
            spread=dict(data.get("spread") or {}),
            total=dict(data.get("total") or {}),
            last_updated=parse_datetime(updated) if updated else None,
        )


# ---------------------------------------------------------------------------
# Game
# ---------------------------------------------------------------------------

@dataclass
class GameRef:
    """A scheduled game as shown to the user (schedule provider's naming)."""

    id: str
    home_team: str
    away_team: str
    game_time: datetime
    sport: str
    league: str = ""
    status: str = "scheduled"  # scheduled | live | finished
    home_team_id: str = ""
    away_team_id: str = ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    period: Optional[str] = None
    sportsbook_odds: dict[str, BookOdds] = field(default_factory=dict)

    @property
    def matchup(self) -> str:
        return f"{self.away_team} @ {self.home_team}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "game_time": self.game_time.isoformat(),
            "sport": self.sport,
            "league": self.league,
            "status": self.status,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "period": self.period,
        }
        if self.sportsbook_odds:
            data["sportsbook_odds"] = {
                key: odds.to_dict() for key, odds in self.sportsbook_odds.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameRef":
        books = data.get("sportsbook_odds") or {}
        return cls(
            id=str(data["id"]),
            home_team=data["home_team"],
            away_team=data["away_team"],
            game_time=parse_datetime(data["game_time"]),
            sport=data.get("sport", ""),
            league=data.get("league", ""),
            status=data.get("status", "scheduled"),
            home_team_id=data.get("home_team_id") or "",
            away_team_id=data.get("away_team_id") or "",
            home_score=data.get("home_score"),
            away_score=data.get("away_score"),
            period=data.get("period"),
            sportsbook_odds={k: BookOdds.from_dict(v) for k, v in books.items()},
        )


# ---------------------------------------------------------------------------
# Pick
# ---------------------------------------------------------------------------

@dataclass
class Pick:
    """One leg of a bet.  Immutable once attached to a submitted post."""

    id: str
    game: GameRef
    pick_type: PickType
    pick_side: PickSide
    odds: str  # American, e.g. "-110"
    line: Optional[float] = None  # spread or total point, when known
    stake: Optional[float] = None
    reasoning: Optional[str] = None
    player_name: Optional[str] = None
    prop_type: Optional[str] = None
    prop_value: Optional[float] = None

    @property
    def display_text(self) -> str:
        odds = self.odds
        if self.pick_type is PickType.MONEYLINE:
            if self.pick_side is PickSide.HOME:
                team = self.game.home_team
            elif self.pick_side is PickSide.AWAY:
                team = self.game.away_team
            else:
                team = "Draw"
            return f"{team} ML ({odds})"
        if self.pick_type is PickType.SPREAD:
            team = self.game.home_team if self.pick_side is PickSide.HOME else self.game.away_team
            if self.line is None:
                return f"{team} ({odds})"
            sign = "+" if self.line > 0 else ""
            return f"{team} {sign}{self.line:g} ({odds})"
        side = "Over" if self.pick_side is PickSide.OVER else "Under"
        if self.pick_type is PickType.TOTAL:
            line = f" {self.line:g}" if self.line is not None else ""
            return f"{side}{line} ({odds})"
        if self.player_name and self.prop_type:
            parts = [self.player_name, self.prop_type, side]
            if self.prop_value is not None:
                parts.append(f"{self.prop_value:g}")
            return f"{' '.join(parts)} ({odds})"
        return f"Player Prop ({odds})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "game": self.game.to_dict(),
            "pick_type": self.pick_type.value,
            "pick_side": self.pick_side.value,
            "player_name": self.player_name,
            "prop_type": self.prop_type,
            "prop_value": self.prop_value,
            "odds": self.odds,
            "line": self.line,
            "stake": self.stake,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pick":
        prop_value = data.get("prop_value")
        stake = data.get("stake")
        line = data.get("line")
        return cls(
            id=str(data["id"]),
            game=GameRef.from_dict(data["game"]),
            pick_type=PickType.from_value(data["pick_type"]),
            pick_side=PickSide.from_value(data["pick_side"]),
            odds=str(data["odds"]),
            line=float(line) if line is not None else None,
            stake=float(stake) if stake is not None else None,
            reasoning=data.get("reasoning"),
            player_name=data.get("player_name"),
            prop_type=data.get("prop_type"),
            prop_value=float(prop_value) if prop_value is not None else None,
        )
