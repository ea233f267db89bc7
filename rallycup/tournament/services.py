"""Service layer for tournament business logic."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.constants import (
    DEFAULT_POINTS_SYSTEMS,
    TOURNAMENTS_COLLECTION,
    TeamStatus,
    TournamentStatus,
)
from rallycup.core.documents import (
    fetch_teams,
    fetch_tournament,
    teams_collection,
    tournament_ref,
)
from rallycup.core.phases import require_status
from rallycup.core.ports import Clock, utc_now
from rallycup.core.store import run_transaction
from rallycup.errors import ConflictError, NotFoundError
from rallycup.groups import calculate_group_balance_score, preview_groups_distribution

from .models import TeamRegistration, TournamentCreation

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

S = TournamentStatus

REGISTRATION_STATUSES = (S.DRAFT, S.REGISTRATION_OPEN, S.REGISTRATION_CLOSED)


class TournamentService:
    """Handles business logic and data access for tournaments and teams."""

    @staticmethod
    def create_tournament(
        creation: TournamentCreation, db: Client | None = None, clock: Clock = utc_now
    ) -> str:
        """Create a draft tournament and return its ID."""
        if db is None:
            db = firestore.client()
        creation.validate()

        now = clock()
        payload = {
            "name": creation.name.strip(),
            "status": S.DRAFT.value,
            "ownerId": creation.owner_id,
            "adminIds": list(creation.admin_ids),
            "configuration": creation.configuration.to_dict(),
            "pointsSystem": {
                "type": creation.points_system,
                **DEFAULT_POINTS_SYSTEMS[creation.points_system],
            },
            "phaseHistory": [],
            "registeredTeams": 0,
            "totalMatches": 0,
            "completedMatches": 0,
            "groups": [],
            "knockoutBracket": None,
            "createdAt": now,
            "updatedAt": now,
        }
        _, ref = db.collection(TOURNAMENTS_COLLECTION).add(payload)
        logging.info(f"Created tournament {ref.id} for owner {creation.owner_id}")
        return str(ref.id)

    @staticmethod
    def get_tournament(
        tournament_id: str, db: Client | None = None
    ) -> dict[str, Any]:
        if db is None:
            db = firestore.client()
        return fetch_tournament(db, tournament_id)

    @staticmethod
    def get_teams(
        tournament_id: str, db: Client | None = None, active_only: bool = False
    ) -> list[dict[str, Any]]:
        if db is None:
            db = firestore.client()
        return fetch_teams(db, tournament_id, active_only=active_only)

    @staticmethod
    def _register_team_transaction(
        transaction: Transaction,
        db: Client,
        tournament_id: str,
        team: dict[str, Any],
        now: Any,
    ) -> str:
        t_ref = tournament_ref(db, tournament_id)
        tournament = fetch_tournament(db, tournament_id, transaction=transaction)
        require_status(tournament_id, tournament.get("status"), *REGISTRATION_STATUSES)

        team_ref = teams_collection(db, tournament_id).document()
        transaction.set(team_ref, {**team, "registeredAt": now, "createdAt": now})
        transaction.update(
            t_ref,
            {
                "registeredTeams": int(tournament.get("registeredTeams") or 0) + 1,
                "updatedAt": now,
            },
        )
        return str(team_ref.id)

    @staticmethod
    def register_team(
        tournament_id: str,
        registration: TeamRegistration,
        db: Client | None = None,
        clock: Clock = utc_now,
    ) -> dict[str, Any]:
        """Register a team. Returns its id and any warnings about the roster."""
        if db is None:
            db = firestore.client()
        registration.validate()
        players = registration.normalized_players()

        warnings = []
        new_ids = {p["playerId"] for p in players}
        for other in fetch_teams(db, tournament_id, active_only=True):
            taken = new_ids & {p.get("playerId") for p in other.get("players") or []}
            for player_id in sorted(taken):
                warnings.append(
                    f"Player {player_id} is already registered with "
                    f"{other.get('teamName', other['id'])}."
                )

        team = {
            "teamName": registration.team_name.strip(),
            "players": players,
            "averageRanking": registration.average_ranking(),
            "groupId": None,
            "groupPosition": None,
            "status": TeamStatus.ACTIVE.value,
        }
        team_id = run_transaction(
            db,
            TournamentService._register_team_transaction,
            db,
            tournament_id,
            team,
            clock(),
        )
        if warnings:
            logging.warning(
                f"Team {team_id} registered in tournament {tournament_id} with "
                f"shared players: {warnings}"
            )
        return {"teamId": team_id, "warnings": warnings}

    @staticmethod
    def _team_change_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        tournament_id: str,
        team_id: str,
        allowed: tuple[TournamentStatus, ...],
        delete: bool,
        now: Any,
    ) -> dict[str, Any]:
        t_ref = tournament_ref(db, tournament_id)
        tournament = fetch_tournament(db, tournament_id, transaction=transaction)
        require_status(tournament_id, tournament.get("status"), *allowed)

        team_ref = teams_collection(db, tournament_id).document(team_id)
        snapshot = team_ref.get(transaction=transaction)
        if not snapshot.exists:
            raise NotFoundError(
                f"Team {team_id} not found.",
                {"tournamentId": tournament_id, "teamId": team_id},
            )
        team = snapshot.to_dict() or {}
        was_active = team.get("status") == TeamStatus.ACTIVE.value
        if not delete and not was_active:
            raise ConflictError(
                "Team has already withdrawn.",
                {"tournamentId": tournament_id, "teamId": team_id},
            )

        if delete:
            transaction.delete(team_ref)
        else:
            transaction.update(
                team_ref, {"status": TeamStatus.WITHDRAWN.value, "withdrawnAt": now}
            )
        registered = int(tournament.get("registeredTeams") or 0)
        if was_active:
            registered = max(0, registered - 1)
        transaction.update(t_ref, {"registeredTeams": registered, "updatedAt": now})
        return {"teamId": team_id, "registeredTeams": registered}

    @staticmethod
    def withdraw_team(
        tournament_id: str, team_id: str, db: Client | None = None, clock: Clock = utc_now
    ) -> dict[str, Any]:
        """Mark a team withdrawn. Its finished results stay on record."""
        if db is None:
            db = firestore.client()
        allowed = tuple(
            s for s in TournamentStatus if s not in (S.COMPLETED, S.CANCELLED)
        )
        result = run_transaction(
            db,
            TournamentService._team_change_transaction,
            db,
            tournament_id,
            team_id,
            allowed,
            False,
            clock(),
        )
        logging.info(f"Team {team_id} withdrew from tournament {tournament_id}")
        return result

    @staticmethod
    def delete_team(
        tournament_id: str, team_id: str, db: Client | None = None, clock: Clock = utc_now
    ) -> dict[str, Any]:
        """Remove a team entirely. Only possible before groups exist."""
        if db is None:
            db = firestore.client()
        result = run_transaction(
            db,
            TournamentService._team_change_transaction,
            db,
            tournament_id,
            team_id,
            REGISTRATION_STATUSES,
            True,
            clock(),
        )
        logging.info(f"Team {team_id} deleted from tournament {tournament_id}")
        return result

    @staticmethod
    def preview_groups(
        tournament_id: str,
        db: Client | None = None,
        rng: random.Random | None = None,
    ) -> dict[str, Any]:
        """Show how the active teams would be grouped, without saving anything."""
        if db is None:
            db = firestore.client()
        tournament = fetch_tournament(db, tournament_id)
        config = TournamentConfiguration.from_dict(tournament.get("configuration"))
        teams = fetch_teams(db, tournament_id, active_only=True)
        groups = preview_groups_distribution(
            teams, config.numberOfGroups, config.teamsPerGroup, rng
        )
        return {
            "groups": groups,
            "balanceScore": calculate_group_balance_score(groups),
        }
