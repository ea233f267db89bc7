"""Data models for the tournament blueprint."""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.constants import (
    MAX_PLAYERS_PER_TEAM,
    MAX_TOURNAMENT_NAME_LENGTH,
    MIN_PLAYERS_PER_TEAM,
    PointsSystemType,
)
from rallycup.core.types import FirestoreDocument
from rallycup.errors import ValidationError


class Player(TypedDict, total=False):
    """A player entry on a team."""

    playerId: str
    playerName: str
    ranking: Optional[float]


# One completed status transition
PhaseHistoryEntry = TypedDict(
    "PhaseHistoryEntry", {"from": str, "to": str, "timestamp": Any}
)


class GroupAssignment(TypedDict):
    """A group and its teams in draft order."""

    id: str
    name: str
    teamIds: list[str]


class BracketSummary(TypedDict):
    """How the knockout stage was seeded."""

    startingRound: str
    includeThirdPlace: bool
    slots: list[Optional[str]]
    createdAt: Any


class Team(FirestoreDocument, total=False):
    """A team document in the tournament's ``teams`` sub-collection."""

    teamName: str
    players: list[Player]
    averageRanking: Optional[float]
    groupId: Optional[str]
    groupPosition: Optional[int]
    status: str
    registeredAt: Any


class Standing(TypedDict, total=False):
    """A cached standings row, keyed by team id."""

    teamId: str
    teamName: str
    groupId: Optional[str]
    position: int
    matchesPlayed: int
    matchesWon: int
    matchesDrawn: int
    matchesLost: int
    setsWon: int
    setsLost: int
    setsDifference: int
    gamesWon: int
    gamesLost: int
    gamesDifference: int
    points: float
    rpaPoints: float


class Tournament(FirestoreDocument, total=False):
    """A tournament document in Firestore."""

    name: str
    status: str
    ownerId: str
    adminIds: list[str]
    configuration: dict[str, Any]
    pointsSystem: dict[str, Any]
    phaseHistory: list[PhaseHistoryEntry]
    registeredTeams: int
    totalMatches: int
    completedMatches: int
    groups: list[GroupAssignment]
    knockoutBracket: Optional[BracketSummary]
    rollbackInfo: dict[str, Any]


@dataclass
class TournamentCreation:
    """Dataclass for a new tournament submission."""

    name: str
    owner_id: str
    configuration: TournamentConfiguration = field(
        default_factory=TournamentConfiguration
    )
    points_system: str = PointsSystemType.STANDARD.value
    admin_ids: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Validate the submission."""
        if not self.name or not self.name.strip():
            raise ValidationError("Tournament name is required.")
        if len(self.name) > MAX_TOURNAMENT_NAME_LENGTH:
            raise ValidationError(
                f"Tournament name must be at most {MAX_TOURNAMENT_NAME_LENGTH} "
                "characters."
            )
        if not self.owner_id:
            raise ValidationError("Tournament owner is required.")
        if self.points_system not in {t.value for t in PointsSystemType}:
            raise ValidationError(
                f"Unknown points system: {self.points_system}.",
                {"pointsSystem": self.points_system},
            )
        self.configuration.validate()


@dataclass
class TeamRegistration:
    """Dataclass for a team registration submission."""

    team_name: str
    players: list[dict[str, Any]]

    def validate(self) -> None:
        """Validate the registration."""
        if not self.team_name or not self.team_name.strip():
            raise ValidationError("Team name is required.")
        if not MIN_PLAYERS_PER_TEAM <= len(self.players) <= MAX_PLAYERS_PER_TEAM:
            raise ValidationError(
                f"A team must have between {MIN_PLAYERS_PER_TEAM} and "
                f"{MAX_PLAYERS_PER_TEAM} players.",
                {"players": len(self.players)},
            )
        player_ids = [p.get("playerId") for p in self.players]
        if any(not pid for pid in player_ids):
            raise ValidationError("Every player needs a playerId.")
        duplicates = sorted({pid for pid in player_ids if player_ids.count(pid) > 1})
        if duplicates:
            raise ValidationError(
                "A player cannot appear twice on a team.", {"duplicates": duplicates}
            )

    def normalized_players(self) -> list[Player]:
        players: list[Player] = []
        for p in self.players:
            ranking = p.get("ranking")
            players.append(
                {
                    "playerId": str(p["playerId"]),
                    "playerName": p.get("playerName") or "",
                    "ranking": float(ranking)
                    if isinstance(ranking, (int, float)) and not isinstance(ranking, bool)
                    else None,
                }
            )
        return players

    def average_ranking(self) -> float | None:
        """Mean of the known player rankings, or None when no player has one."""
        rankings = [
            p["ranking"] for p in self.normalized_players() if p["ranking"] is not None
        ]
        return statistics.mean(rankings) if rankings else None
