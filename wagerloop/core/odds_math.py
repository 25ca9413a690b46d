"""Fundamental odds mathematics — the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or the API.

The pillars exposed are:

1. **Parsing** — American odds arrive as ints from The Odds API and as
   strings (``"-110"``, ``"+150"``) from stored picks.
2. **Odds conversion** — American ↔ decimal ↔ implied probability.
3. **Parlay pricing** — product of leg decimals, re-expressed in American.

Design decisions
----------------
* Unparseable or zero odds raise :class:`InvalidOddsFormat`.  A permissive
  parser that yields ``0`` on bad input would make the negative-odds branch
  divide by zero (or, worse, quietly price a leg at even money).
* :func:`american_to_decimal` never rounds, so parlay legs can be chained at
  full precision.  Only :func:`decimal_to_american` rounds, and it rounds
  **half-up** to match how sportsbooks display prices.  Python's built-in
  ``round`` is banker's rounding (half-even), which would show ``+262`` for
  a ``262.5`` price; the convention is pinned here so tests are reproducible.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Final, Iterable

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Decimal price at which American odds flip sign (+100 / -100 both map here).
EVEN_MONEY_DECIMAL: Final[float] = 2.0

#: Minimum number of legs for a parlay.  One leg is a straight pick.
MIN_PARLAY_LEGS: Final[int] = 2


class InvalidOddsFormat(ValueError):
    """Odds value is non-numeric, zero, or cannot be converted."""


# ---------------------------------------------------------------------------
# Parsing / formatting
# ---------------------------------------------------------------------------


def parse_american(odds: int | float | str) -> int:
    """Coerce an American odds value to a non-zero ``int``.

    Accepts ints, integral floats (``-110.0``) and strings with an optional
    leading sign and surrounding whitespace (``" +150 "``).

    Raises:
        InvalidOddsFormat: For booleans, empty or non-numeric strings,
            non-integral or non-finite floats, and ``0``.
    """
    if isinstance(odds, bool):
        raise InvalidOddsFormat(f"Invalid American odds {odds!r}: not a number")

    if isinstance(odds, str):
        text = odds.strip()
        try:
            value = int(text)
        except ValueError:
            raise InvalidOddsFormat(
                f"Invalid American odds {odds!r}: not an integer"
            ) from None
    elif isinstance(odds, float):
        if not math.isfinite(odds) or not odds.is_integer():
            raise InvalidOddsFormat(
                f"Invalid American odds {odds!r}: must be a whole number"
            )
        value = int(odds)
    elif isinstance(odds, int):
        value = odds
    else:
        raise InvalidOddsFormat(f"Invalid American odds {odds!r}: unsupported type")

    if value == 0:
        raise InvalidOddsFormat("Invalid American odds 0: zero has no American representation")
    return value


def format_american(odds: int | float | str) -> str:
    """Display form with an explicit ``+`` on positive prices.

    Examples::

        format_american(264)   → "+264"
        format_american(-110)  → "-110"
        format_american("150") → "+150"
    """
    value = parse_american(odds)
    return f"+{value}" if value > 0 else str(value)


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def american_to_decimal(odds: int | float | str) -> float:
    """Convert American odds to decimal (European) format.

    Decimal odds represent the total payout per unit staked, **including**
    the return of the stake itself.  Examples::

        american_to_decimal(-110) → 1.9091   (risk 110 to win 100)
        american_to_decimal(+150) → 2.5000   (risk 100 to win 150)

    The result is not rounded.

    Raises:
        InvalidOddsFormat: If ``odds`` is zero or cannot be parsed.
    """
    value = parse_american(odds)
    if value > 0:
        return value / 100.0 + 1.0
    # Negative: risk |value| to win 100
    return 1.0 + 100.0 / abs(value)


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest American integer (half-up).

    Inverse of :func:`american_to_decimal` up to rounding.  Values ≥ 2.0 are
    returned as positive (underdog); values < 2.0 as negative (favourite).
    Use :func:`format_american` for the signed display string.

    Raises:
        InvalidOddsFormat: If ``decimal_odds ≤ 1.0`` (no profit is
            representable and the favourite branch would divide by zero)
            or is not a finite number.
    """
    if isinstance(decimal_odds, bool) or not isinstance(decimal_odds, (int, float)):
        raise InvalidOddsFormat(f"Decimal odds {decimal_odds!r} must be a number")
    if not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        raise InvalidOddsFormat(
            f"Decimal odds {decimal_odds!r} must be a finite number greater than 1.0"
        )
    if decimal_odds >= EVEN_MONEY_DECIMAL:
        return _round_half_up((decimal_odds - 1.0) * 100.0)
    return -_round_half_up(100.0 / (decimal_odds - 1.0))


def implied_probability(odds: int | float | str) -> float:
    """Raw implied probability from American odds (vig-inclusive).

    Examples::

        implied_probability(-110) → 0.5238
        implied_probability(+150) → 0.4000
    """
    return 1.0 / american_to_decimal(odds)


def potential_payout(stake: float, odds: int | float | str) -> float:
    """Total return (stake + profit) for ``stake`` at American ``odds``."""
    if stake < 0:
        raise ValueError(f"Stake {stake!r} cannot be negative")
    return stake * american_to_decimal(odds)


# ---------------------------------------------------------------------------
# Parlay pricing
# ---------------------------------------------------------------------------


def _leg_odds(leg: object) -> int | float | str:
    return getattr(leg, "odds", leg)  # Pick objects or raw odds values


def combined_parlay_decimal(legs: Iterable[object]) -> float | None:
    """Product of each leg's decimal odds, or ``None`` for fewer than 2 legs."""
    legs = list(legs)
    if len(legs) < MIN_PARLAY_LEGS:
        return None
    product = 1.0
    for leg in legs:
        product *= american_to_decimal(_leg_odds(leg))
    return product


def combined_parlay_odds(legs: Iterable[object]) -> int | None:
    """Combined American odds for a parlay.

    Each leg may be a pick (anything exposing ``.odds``) or a raw American
    odds value.  Leg order is irrelevant.

    Returns:
        American odds of the combined ticket, or ``None`` when fewer than two
        legs are supplied (a single pick is not a parlay).

    Raises:
        InvalidOddsFormat: If any leg's odds cannot be converted.  No partial
            price is produced for a parlay with a bad leg.

    Example::

        combined_parlay_odds([-110, -110])  → 264   (1.9091² ≈ 3.645)
    """
    product = combined_parlay_decimal(legs)
    if product is None:
        return None
    return decimal_to_american(product)
