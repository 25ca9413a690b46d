"""
Cross-provider team-name normalization and game matching.

ESPN (schedules/scores) and The Odds API (prices) spell the same team
differently, e.g. "LA Clippers" vs "Los Angeles Clippers".  Records are
correlated by comparing a normalized key for each side of the matchup.

The abbreviation table below is a hard-coded allow-list, not a general
solution: mascot-only names, punctuation variants and other abbreviations
are not normalized and will simply fail to match.  When that happens the
closest candidate is logged so new entries can be added here.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Multi-word city substitutions, applied in order after lower-casing.
# Extend this list for production-confirmed mismatches; keep longer phrases
# ahead of any phrase they contain.
# ---------------------------------------------------------------------------
CITY_ABBREVIATIONS: list[tuple[str, str]] = [
    ("los angeles", "la"),
    ("new york", "ny"),
    ("san francisco", "sf"),
    ("golden state", "gs"),
]

# Minimum similarity for the "closest candidate" diagnostic to be logged.
_DIAGNOSTIC_MIN_SCORE = 60.0


def normalize_team_name(name: str) -> str:
    """
    Lower-case, apply :data:`CITY_ABBREVIATIONS`, strip all whitespace.

        normalize_team_name("Los Angeles Lakers") → "lalakers"
        normalize_team_name("New York Knicks")    → "nyknicks"
        normalize_team_name("LA Lakers")          → "lalakers"
    """
    key = (name or "").lower()
    for phrase, abbreviation in CITY_ABBREVIATIONS:
        key = key.replace(phrase, abbreviation)
    return "".join(key.split())


def teams_match(
    candidate_home: str,
    candidate_away: str,
    target_home: str,
    target_away: str,
) -> bool:
    """
    True iff both sides match after normalization.

    Home must match home and away must match away.  A record with the sides
    swapped is *not* a match.
    """
    return (
        normalize_team_name(candidate_home) == normalize_team_name(target_home)
        and normalize_team_name(candidate_away) == normalize_team_name(target_away)
    )


def _sides(candidate: Any) -> tuple[str, str]:
    """Extract (home, away) from an odds record dict or object."""
    if isinstance(candidate, dict):
        home = candidate.get("home_team", candidate.get("home"))
        away = candidate.get("away_team", candidate.get("away"))
    else:
        home = getattr(candidate, "home_team", None)
        away = getattr(candidate, "away_team", None)
    return home or "", away or ""


def find_matching_odds_record(
    target_home: str,
    target_away: str,
    candidates: Iterable[Any],
) -> Optional[Any]:
    """
    Return the first candidate describing the target game, or None.

    Args:
        target_home: Home team as named by the schedule provider.
        target_away: Away team as named by the schedule provider.
        candidates: Odds-provider records; dicts with ``home_team`` /
            ``away_team`` (or ``home`` / ``away``) keys, or objects with
            ``home_team`` / ``away_team`` attributes.

    Returns:
        The first matching candidate.  If several match, input order decides.
        ``None`` means "odds unavailable for this game", which is a normal
        outcome rather than an error.
    """
    candidates = list(candidates)
    for candidate in candidates:
        home, away = _sides(candidate)
        if teams_match(home, away, target_home, target_away):
            return candidate

    closest = closest_candidate(target_home, target_away, candidates)
    if closest is not None:
        (home, away), score = closest
        logger.info(
            "No odds match for %s vs %s; closest candidate %s vs %s (similarity %.0f)",
            target_home, target_away, home, away, score,
        )
    else:
        logger.debug(
            "No odds match for %s vs %s among %d candidates",
            target_home, target_away, len(candidates),
        )
    return None


def closest_candidate(
    target_home: str,
    target_away: str,
    candidates: Iterable[Any],
    min_score: float = _DIAGNOSTIC_MIN_SCORE,
) -> Optional[tuple[tuple[str, str], float]]:
    """
    Best-scoring candidate by fuzzy similarity of the normalized matchup.

    Diagnostic only: never used to decide a match.  Returns
    ``((home, away), score)`` or ``None`` when nothing reaches ``min_score``.
    """
    target_key = f"{normalize_team_name(target_home)}|{normalize_team_name(target_away)}"
    best: Optional[tuple[tuple[str, str], float]] = None
    for candidate in candidates:
        home, away = _sides(candidate)
        key = f"{normalize_team_name(home)}|{normalize_team_name(away)}"
        score = fuzz.ratio(target_key, key)
        if score >= min_score and (best is None or score > best[1]):
            best = ((home, away), score)
    return best
