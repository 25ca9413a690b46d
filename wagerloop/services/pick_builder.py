"""
Pick-builder state machine.

Walks a user from "no game" to a fully priced leg, one selection at a time:

    NO_GAME_SELECTED → GAME_SELECTED → PICK_TYPE_SELECTED
                     → PICK_SIDE_SELECTED → ODDS_RESOLVED

Selecting an earlier step always clears everything after it.  Committing a
leg in ODDS_RESOLVED appends it to the slip and returns to NO_GAME_SELECTED
so the next leg can be built; two or more committed legs make a parlay.

Odds resolve from the selected game's bookmaker data (FanDuel preferred,
otherwise the first book listed) and fall back to :data:`DEFAULT_ODDS`
when that market is not posted.  Player props always use the default.
"""

import logging
import uuid
from enum import Enum
from typing import List, Optional

from wagerloop.core.odds_math import (
    MIN_PARLAY_LEGS,
    combined_parlay_odds,
    format_american,
    potential_payout,
)
from wagerloop.core.picks import BookOdds, GameRef, Pick, PickSide, PickType, valid_sides
from wagerloop.core.sport_config import resolve_sport
from wagerloop.services.odds import PREFERRED_BOOKMAKER

logger = logging.getLogger(__name__)

DEFAULT_ODDS = "-110"


class BuilderState(str, Enum):
    NO_GAME_SELECTED = "no_game_selected"
    GAME_SELECTED = "game_selected"
    PICK_TYPE_SELECTED = "pick_type_selected"
    PICK_SIDE_SELECTED = "pick_side_selected"
    ODDS_RESOLVED = "odds_resolved"


class BuilderMode(str, Enum):
    SINGLE = "single"
    PARLAY = "parlay"


class InvalidTransition(ValueError):
    """Selection made out of order, or a side the pick type does not take."""


def _allows_draw(game: GameRef) -> bool:
    cfg = resolve_sport(game.sport) if game.sport else None
    return bool(cfg and cfg.allows_draw)


def _reference_book(game: GameRef) -> Optional[BookOdds]:
    if not game.sportsbook_odds:
        return None
    if PREFERRED_BOOKMAKER in game.sportsbook_odds:
        return game.sportsbook_odds[PREFERRED_BOOKMAKER]
    return next(iter(game.sportsbook_odds.values()))


class PickBuilder:
    """Builds a slip of one or more picks."""

    def __init__(self):
        self._picks: List[Pick] = []
        self._clear_selection()

    def _clear_selection(self) -> None:
        self.state = BuilderState.NO_GAME_SELECTED
        self.game: Optional[GameRef] = None
        self.pick_type: Optional[PickType] = None
        self.pick_side: Optional[PickSide] = None
        self.odds: Optional[str] = None
        self.line: Optional[float] = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_game(self, game: GameRef) -> None:
        """Valid from any state; discards any partial selection."""
        self._clear_selection()
        self.game = game
        self.state = BuilderState.GAME_SELECTED

    def select_pick_type(self, pick_type) -> None:
        if self.game is None:
            raise InvalidTransition("Select a game before choosing a pick type")
        try:
            self.pick_type = PickType.from_value(pick_type)
        except ValueError:
            raise InvalidTransition(f"Unknown pick type {pick_type!r}")
        self.pick_side = None
        self.odds = None
        self.line = None
        self.state = BuilderState.PICK_TYPE_SELECTED

    def select_pick_side(self, side) -> None:
        if self.game is None or self.pick_type is None:
            raise InvalidTransition("Select a pick type before choosing a side")
        try:
            side = PickSide.from_value(side)
        except ValueError:
            raise InvalidTransition(f"Unknown pick side {side!r}")
        allowed = valid_sides(self.pick_type, _allows_draw(self.game))
        if side not in allowed:
            raise InvalidTransition(
                f"{side.value!r} is not a valid side for a {self.pick_type.value} pick"
            )

        self.pick_side = side
        self.odds = None
        self.line = None
        self.state = BuilderState.PICK_SIDE_SELECTED
        self._resolve_odds()

    def _resolve_odds(self) -> None:
        book = _reference_book(self.game)
        price = None
        if book is not None and self.pick_type is not PickType.PLAYER_PROP:
            price = book.price_for(self.pick_type, self.pick_side)
            self.line = book.point_for(self.pick_type, self.pick_side)

        if price is None:
            logger.debug(
                "No %s price for %s on %s; using default %s",
                self.pick_type.value, self.pick_side.value, self.game.matchup, DEFAULT_ODDS,
            )
            self.odds = DEFAULT_ODDS
        else:
            self.odds = format_american(price)
        self.state = BuilderState.ODDS_RESOLVED

    def commit_pick(
        self,
        stake: Optional[float] = None,
        reasoning: Optional[str] = None,
        player_name: Optional[str] = None,
        prop_type: Optional[str] = None,
        prop_value: Optional[float] = None,
    ) -> Pick:
        """Freeze the current selection into a Pick and start the next leg."""
        if self.state is not BuilderState.ODDS_RESOLVED:
            raise InvalidTransition(f"Cannot commit a pick from state {self.state.value}")
        if stake is not None and stake < 0:
            raise InvalidTransition("Stake cannot be negative")

        pick = Pick(
            id=uuid.uuid4().hex,
            game=self.game,
            pick_type=self.pick_type,
            pick_side=self.pick_side,
            odds=self.odds,
            line=self.line,
            stake=stake,
            reasoning=reasoning or None,
            player_name=player_name if self.pick_type is PickType.PLAYER_PROP else None,
            prop_type=prop_type if self.pick_type is PickType.PLAYER_PROP else None,
            prop_value=prop_value if self.pick_type is PickType.PLAYER_PROP else None,
        )
        self._picks.append(pick)
        self._clear_selection()
        return pick

    def remove_pick(self, index: int) -> Pick:
        try:
            return self._picks.pop(index)
        except IndexError:
            raise InvalidTransition(f"No pick at position {index}")

    def reset(self) -> None:
        self._picks.clear()
        self._clear_selection()

    # ------------------------------------------------------------------
    # Slip summary
    # ------------------------------------------------------------------

    @property
    def picks(self) -> List[Pick]:
        return list(self._picks)

    @property
    def mode(self) -> BuilderMode:
        return BuilderMode.PARLAY if len(self._picks) >= MIN_PARLAY_LEGS else BuilderMode.SINGLE

    @property
    def combined_odds(self) -> Optional[int]:
        return combined_parlay_odds(self._picks)

    @property
    def total_stake(self) -> float:
        return sum(p.stake or 0.0 for p in self._picks)

    def potential_payout(self, stake: float) -> Optional[float]:
        """Return on ``stake`` for the whole slip (parlay price when ≥2 legs)."""
        if not self._picks:
            return None
        if self.mode is BuilderMode.PARLAY:
            return potential_payout(stake, self.combined_odds)
        return potential_payout(stake, self._picks[0].odds)
