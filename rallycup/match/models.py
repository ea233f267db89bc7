"""Data models for the match blueprint."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from rallycup.core.constants import MatchType
from rallycup.core.types import FirestoreDocument
from rallycup.errors import ValidationError
from rallycup.rating import compute_from_sets


class Score(TypedDict):
    """Sets won by each side."""

    team1: int
    team2: int


class SetScore(TypedDict):
    """Games won by each side in one set."""

    team1: int
    team2: int


class Match(FirestoreDocument, total=False):
    """A match document in the tournament's ``matches`` sub-collection."""

    type: str
    groupId: Optional[str]
    round: Any
    matchNumber: int
    team1Id: Optional[str]
    team2Id: Optional[str]
    team1Name: str
    team2Name: str
    status: str
    score: Optional[Score]
    sets: list[SetScore]
    winnerId: Optional[str]
    nextMatchId: Optional[str]
    nextMatchPosition: Optional[int]
    loserNextMatchId: Optional[str]
    loserNextMatchPosition: Optional[int]
    walkover: bool
    completedAt: Any


def _non_negative_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number.")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return value


@dataclass
class MatchResultSubmission:
    """Dataclass for a match result submission."""

    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    sets: list[dict[str, Any]] = field(default_factory=list)

    def normalized_sets(self) -> list[SetScore]:
        return [
            {
                "team1": _non_negative_int(s.get("team1"), f"Set {i} team 1 games"),
                "team2": _non_negative_int(s.get("team2"), f"Set {i} team 2 games"),
            }
            for i, s in enumerate(self.sets, start=1)
        ]

    def score(self) -> Score:
        """Return the sets won by each side, counted from the sets if missing."""
        if self.team1_score is None and self.team2_score is None:
            summary = compute_from_sets(self.normalized_sets())
            return {"team1": summary.sets_a, "team2": summary.sets_b}
        return {
            "team1": _non_negative_int(self.team1_score, "Team 1 score"),
            "team2": _non_negative_int(self.team2_score, "Team 2 score"),
        }

    def validate(self, match_type: str) -> None:
        """Validate the submission for a match of ``match_type``."""
        if not isinstance(self.sets, list) or any(
            not isinstance(s, dict) for s in self.sets
        ):
            raise ValidationError("Sets must be a list of {team1, team2} scores.")
        sets = self.normalized_sets()
        if (self.team1_score is None) != (self.team2_score is None):
            raise ValidationError("Both scores are required.")

        score = self.score()
        if not sets and score["team1"] == 0 and score["team2"] == 0:
            raise ValidationError("A result needs a score or the sets played.")
        if sets:
            summary = compute_from_sets(sets)
            if (summary.sets_a, summary.sets_b) != (score["team1"], score["team2"]):
                raise ValidationError(
                    "Score does not match the sets played.",
                    {"score": dict(score), "sets": sets},
                )
        if match_type == MatchType.KNOCKOUT.value and score["team1"] == score["team2"]:
            raise ValidationError("A knockout match cannot end in a tie.")
