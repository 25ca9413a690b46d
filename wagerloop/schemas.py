"""
Pydantic request/response schemas for the WagerLoop API.

Request bodies are validated here before any service is called; responses
are built from the core dataclasses' ``to_dict`` output.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Union
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from wagerloop.core.odds_math import InvalidOddsFormat, format_american, parse_american
from wagerloop.core.picks import PickSide, PickType


def _validate_american(v: Union[int, str]) -> int:
    try:
        odds = parse_american(v)
    except InvalidOddsFormat as exc:
        raise ValueError(str(exc)) from exc
    if -100 < odds < 100:
        raise ValueError(
            f"odds={v} is not valid American odds. Must be >= +100 or <= -100."
        )
    return odds


# ---------------------------------------------------------------------------
# Odds tools
# ---------------------------------------------------------------------------

class OddsConvertRequest(BaseModel):
    odds: Union[int, str] = Field(..., description='American odds, e.g. -110 or "+150"')

    @field_validator("odds")
    @classmethod
    def validate_odds(cls, v: Union[int, str]) -> int:
        return _validate_american(v)


class OddsConvertResponse(BaseModel):
    american: str
    decimal: float
    implied_probability: float


class ParlayPriceRequest(BaseModel):
    """Payload for POST /api/parlay/price."""

    legs: List[Union[int, str]] = Field(..., min_length=1, max_length=20)
    stake: Optional[float] = Field(None, ge=0)

    @field_validator("legs")
    @classmethod
    def validate_legs(cls, v: List[Union[int, str]]) -> List[int]:
        return [_validate_american(leg) for leg in v]


class ParlayPriceResponse(BaseModel):
    legs: int
    combined_odds: Optional[str] = Field(None, description="None for a single leg")
    combined_decimal: Optional[float] = None
    payout: Optional[float] = None


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

class GameIn(BaseModel):
    id: str = Field(..., min_length=1)
    home_team: str = Field(..., min_length=1, max_length=120)
    away_team: str = Field(..., min_length=1, max_length=120)
    game_time: datetime
    sport: str = Field(..., min_length=1, max_length=40)
    league: str = ""
    status: Literal["scheduled", "live", "finished"] = "scheduled"
    home_team_id: str = ""
    away_team_id: str = ""


class OddsLookupResponse(BaseModel):
    available: bool
    event_id: Optional[str] = None
    bookmakers: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class PickIn(BaseModel):
    game: GameIn
    pick_type: str
    pick_side: str
    odds: Union[int, str] = "-110"
    line: Optional[float] = None
    stake: Optional[float] = Field(None, ge=0)
    reasoning: Optional[str] = Field(None, max_length=1000)
    player_name: Optional[str] = Field(None, max_length=120)
    prop_type: Optional[str] = Field(None, max_length=60)
    prop_value: Optional[float] = None

    @field_validator("pick_type")
    @classmethod
    def validate_pick_type(cls, v: str) -> str:
        try:
            return PickType.from_value(v).value
        except ValueError:
            raise ValueError(f"Unknown pick_type {v!r}")

    @field_validator("pick_side")
    @classmethod
    def validate_pick_side(cls, v: str) -> str:
        try:
            return PickSide.from_value(v).value
        except ValueError:
            raise ValueError(f"Unknown pick_side {v!r}")

    @field_validator("odds")
    @classmethod
    def validate_odds(cls, v: Union[int, str]) -> str:
        return format_american(_validate_american(v))


class PickPostCreate(BaseModel):
    content: Optional[str] = Field(None, max_length=2000)
    picks: List[PickIn] = Field(..., min_length=1, max_length=20)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    parent_id: Optional[int] = None


class ToggleResponse(BaseModel):
    active: bool
    count: int


class MarkNotificationsRead(BaseModel):
    """Omit ids to mark every unread notification."""

    ids: Optional[List[int]] = Field(None, max_length=200)


class ProfileResponse(BaseModel):
    id: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}
