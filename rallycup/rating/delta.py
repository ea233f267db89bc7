"""RatingDelta: the rating-exchange magnitude of a single match.

Each side is a pair of players. The value grows with the combined strength of
both pairs and with the game margin, and is scaled by how surprising the
result was given the rating gap between the pairs.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from rallycup.core.constants import DEFAULT_RATING

# (upper bound of loserSum - winnerSum, factor); the last band is open-ended
UPSET_FACTOR_BANDS = [
    (-2000, 0.40),
    (-1500, 0.60),
    (-900, 0.75),
    (-300, 0.90),
]
UPSET_FACTOR_BANDS_POSITIVE = [
    (900, 1.10),
    (1500, 1.25),
    (2000, 1.40),
]
EVEN_GAP = 300
MAX_UPSET_FACTOR = 1.60

SIDE_A = "A"
SIDE_B = "B"


@dataclass(frozen=True)
class SetsSummary:
    """Sets and games won by each side, and the side that won more sets."""

    sets_a: int
    sets_b: int
    games_a: int
    games_b: int
    winner: str | None


@dataclass(frozen=True)
class RatingDeltaResult:
    """Breakdown of a RatingDelta computation."""

    points: int
    sum_a: float
    sum_b: float
    gap: float
    factor: float
    base: float
    game_difference: int


def _games(set_score: Mapping[str, Any], key: str) -> int:
    try:
        return int(set_score.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def compute_from_sets(sets: Iterable[Mapping[str, Any]] | None) -> SetsSummary:
    """Summarize per-set game scores given as ``{"team1": n, "team2": m}``.

    A set counts for the side that won more games in it; a level set counts
    for nobody.
    """
    sets_a = sets_b = games_a = games_b = 0
    for set_score in sets or []:
        a = _games(set_score, "team1")
        b = _games(set_score, "team2")
        games_a += a
        games_b += b
        if a > b:
            sets_a += 1
        elif b > a:
            sets_b += 1

    winner = None
    if sets_a > sets_b:
        winner = SIDE_A
    elif sets_b > sets_a:
        winner = SIDE_B
    return SetsSummary(sets_a, sets_b, games_a, games_b, winner)


def upset_factor(gap: float) -> float:
    """Return the multiplier for ``gap = loserSum - winnerSum``.

    Positive gaps are upsets (the weaker pair won) and are rewarded; negative
    gaps are expected wins and are damped.
    """
    for bound, factor in UPSET_FACTOR_BANDS:
        if gap <= bound:
            return factor
    if gap < EVEN_GAP:
        return 1.0
    for bound, factor in UPSET_FACTOR_BANDS_POSITIVE:
        if gap <= bound:
            return factor
    return MAX_UPSET_FACTOR


def pick_two_ratings(
    players: Iterable[Mapping[str, Any]] | None, fallback: float = DEFAULT_RATING
) -> tuple[float, float]:
    """Return the ratings of the first two players, padding with ``fallback``."""
    ratings = []
    for player in players or []:
        ranking = player.get("ranking") if player else None
        if isinstance(ranking, (int, float)) and not isinstance(ranking, bool):
            ratings.append(float(ranking))
        else:
            ratings.append(float(fallback))
        if len(ratings) == 2:
            break
    while len(ratings) < 2:
        ratings.append(float(fallback))
    return ratings[0], ratings[1]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def rating_delta(
    ratings_a: tuple[float, float],
    ratings_b: tuple[float, float],
    games_a: int,
    games_b: int,
    winner: str,
) -> RatingDeltaResult:
    """Compute the non-negative rating exchange for a decided match.

    ``winner`` is ``"A"`` or ``"B"``.
    """
    if winner not in (SIDE_A, SIDE_B):
        raise ValueError(f"Unknown winner side: {winner!r}")

    sum_a = float(sum(ratings_a))
    sum_b = float(sum(ratings_b))
    if winner == SIDE_A:
        gap = sum_b - sum_a
        game_difference = games_a - games_b
    else:
        gap = sum_a - sum_b
        game_difference = games_b - games_a

    factor = upset_factor(gap)
    base = (sum_a + sum_b) / 100
    points = max(0, _round_half_up((base + game_difference) * factor))
    return RatingDeltaResult(
        points=points,
        sum_a=sum_a,
        sum_b=sum_b,
        gap=gap,
        factor=factor,
        base=base,
        game_difference=game_difference,
    )
