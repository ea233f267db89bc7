"""Service layer for applying championship points to the leaderboard."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.constants import (
    ACTION_APPLY_CHAMPIONSHIP,
    APPLIED_COLLECTION,
    LEADERBOARD_COLLECTION,
    LEADERBOARD_ENTRIES_COLLECTION,
    TournamentStatus,
)
from rallycup.core.documents import fetch_matches, fetch_teams, fetch_tournament
from rallycup.core.phases import require_status
from rallycup.core.ports import (
    AuthorizationOracle,
    Clock,
    TournamentAdminOracle,
    require_authorized,
    utc_now,
)
from rallycup.core.store import run_transaction
from rallycup.utils import round1

from .calculator import ChampionshipPointsCalculator

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction


def _entry_id(tournament_id: str) -> str:
    return f"tournament_{tournament_id}"


class ChampionshipService:
    """Computes, applies and reverts championship points."""

    @staticmethod
    def compute(
        tournament_id: str, db: Client | None = None, clock: Clock = utc_now
    ) -> dict[str, Any]:
        """Compute the current championship points of a tournament."""
        if db is None:
            db = firestore.client()
        tournament = fetch_tournament(db, tournament_id)
        calculator = ChampionshipPointsCalculator(
            TournamentConfiguration.from_dict(tournament.get("configuration")),
            tournament.get("pointsSystem"),
        )
        teams = fetch_teams(db, tournament_id, active_only=True)
        matches = fetch_matches(db, tournament_id)
        return calculator.compute(teams, matches, computed_at=clock())

    @staticmethod
    def _apply_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        tournament: dict[str, Any],
        awards: dict[str, dict[str, Any]],
        actor_id: str,
        now: Any,
    ) -> dict[str, Any]:
        """Add every award to the leaderboard and record the application."""
        tournament_id = tournament["id"]
        applied_ref = db.collection(APPLIED_COLLECTION).document(tournament_id)
        if applied_ref.get(transaction=transaction).exists:
            return {"applied": False, "alreadyApplied": True}

        leaderboard = db.collection(LEADERBOARD_COLLECTION)
        # All reads happen before the first write.
        current = {}
        for player_id in awards:
            snapshot = leaderboard.document(player_id).get(transaction=transaction)
            current[player_id] = (snapshot.to_dict() or {}) if snapshot.exists else {}

        for player_id, award in awards.items():
            data = current[player_id]
            player_ref = leaderboard.document(player_id)
            transaction.set(
                player_ref,
                {
                    "playerId": player_id,
                    "playerName": data.get("playerName") or award["playerName"],
                    "totalPoints": round1(
                        float(data.get("totalPoints") or 0) + award["points"]
                    ),
                    "entriesCount": int(data.get("entriesCount") or 0) + 1,
                    "lastTournamentId": tournament_id,
                    "lastTournamentName": tournament.get("name", ""),
                    "updatedAt": now,
                },
                merge=True,
            )
            transaction.set(
                player_ref.collection(LEADERBOARD_ENTRIES_COLLECTION).document(
                    _entry_id(tournament_id)
                ),
                {
                    "tournamentId": tournament_id,
                    "tournamentName": tournament.get("name", ""),
                    "points": award["points"],
                    "teamIds": award["teamIds"],
                    "appliedAt": now,
                },
            )

        transaction.set(
            applied_ref,
            {
                "tournamentId": tournament_id,
                "appliedBy": actor_id,
                "appliedAt": now,
                "players": {pid: award["points"] for pid, award in awards.items()},
                "totalPlayers": len(awards),
                "totalPoints": round1(sum(a["points"] for a in awards.values())),
            },
        )
        return {"applied": True, "alreadyApplied": False, "players": len(awards)}

    @staticmethod
    def apply(
        tournament_id: str,
        actor_id: str,
        db: Client | None = None,
        oracle: AuthorizationOracle | None = None,
        clock: Clock = utc_now,
    ) -> dict[str, Any]:
        """Apply a completed tournament's points once. Repeated calls are no-ops."""
        if db is None:
            db = firestore.client()
        oracle = oracle or TournamentAdminOracle(db)
        require_authorized(oracle, actor_id, tournament_id, ACTION_APPLY_CHAMPIONSHIP)

        tournament = fetch_tournament(db, tournament_id)
        require_status(tournament_id, tournament.get("status"), TournamentStatus.COMPLETED)

        result = ChampionshipService.compute(tournament_id, db, clock)
        awards = ChampionshipPointsCalculator.player_awards(result["totals"])
        outcome = run_transaction(
            db,
            ChampionshipService._apply_transaction,
            db,
            tournament,
            awards,
            actor_id,
            clock(),
        )
        if outcome["applied"]:
            logging.info(
                f"Applied championship points of tournament {tournament_id} "
                f"to {outcome['players']} players"
            )
        return outcome

    @staticmethod
    def _revert_transaction(
        transaction: Transaction, db: Client, tournament_id: str, now: Any
    ) -> dict[str, Any]:
        """Subtract exactly the recorded awards and delete the application."""
        applied_ref = db.collection(APPLIED_COLLECTION).document(tournament_id)
        applied = applied_ref.get(transaction=transaction)
        if not applied.exists:
            return {"reverted": False}

        awards: dict[str, float] = (applied.to_dict() or {}).get("players") or {}
        leaderboard = db.collection(LEADERBOARD_COLLECTION)
        current = {}
        for player_id in awards:
            snapshot = leaderboard.document(player_id).get(transaction=transaction)
            current[player_id] = (snapshot.to_dict() or {}) if snapshot.exists else None

        for player_id, points in awards.items():
            player_ref = leaderboard.document(player_id)
            data = current[player_id]
            if data is not None:
                transaction.set(
                    player_ref,
                    {
                        "totalPoints": round1(
                            float(data.get("totalPoints") or 0) - float(points)
                        ),
                        "entriesCount": max(0, int(data.get("entriesCount") or 0) - 1),
                        "updatedAt": now,
                    },
                    merge=True,
                )
            transaction.delete(
                player_ref.collection(LEADERBOARD_ENTRIES_COLLECTION).document(
                    _entry_id(tournament_id)
                )
            )
        transaction.delete(applied_ref)
        return {"reverted": True, "players": len(awards)}

    @staticmethod
    def revert(
        tournament_id: str,
        actor_id: str,
        db: Client | None = None,
        oracle: AuthorizationOracle | None = None,
        clock: Clock = utc_now,
    ) -> dict[str, Any]:
        """Undo a previous application. A no-op when nothing was applied."""
        if db is None:
            db = firestore.client()
        oracle = oracle or TournamentAdminOracle(db)
        require_authorized(oracle, actor_id, tournament_id, ACTION_APPLY_CHAMPIONSHIP)

        outcome = run_transaction(
            db, ChampionshipService._revert_transaction, db, tournament_id, clock()
        )
        if outcome["reverted"]:
            logging.info(
                f"Reverted championship points of tournament {tournament_id} "
                f"for {outcome['players']} players"
            )
        return outcome
