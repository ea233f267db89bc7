"""Service layer for match results and winner propagation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from rallycup.core.constants import (
    ACTION_CLEAR_RESULT,
    ACTION_SUBMIT_RESULT,
    PENDING_SLOT_NAME,
    MatchStatus,
    MatchType,
    TournamentStatus,
)
from rallycup.core.documents import (
    fetch_matches,
    fetch_tournament,
    matches_collection,
    snapshot_to_dict,
    tournament_ref,
)
from rallycup.core.phases import require_status
from rallycup.core.ports import (
    AuthorizationOracle,
    Clock,
    TournamentAdminOracle,
    require_authorized,
    utc_now,
)
from rallycup.core.store import run_transaction
from rallycup.errors import (
    ConflictError,
    NotFoundError,
    PreconditionError,
    TransactionFailure,
)
from rallycup.standings import StandingsService

from .models import MatchResultSubmission

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction


def _read(
    transaction: Transaction, ref: DocumentReference
) -> dict[str, Any] | None:
    snapshot = ref.get(transaction=transaction)
    return snapshot_to_dict(snapshot) if snapshot.exists else None


def _require_match_phase(tournament: dict[str, Any], match: dict[str, Any]) -> None:
    """Group matches are edited in the group phase, knockout ones in the knockout."""
    if match.get("type") == MatchType.GROUP.value:
        phase = TournamentStatus.GROUPS_PHASE
    else:
        phase = TournamentStatus.KNOCKOUT_PHASE
    require_status(tournament["id"], tournament.get("status"), phase)


class MatchService:
    """Service class for match-result operations."""

    @staticmethod
    def _read_match(
        transaction: Transaction, db: Client, tournament_id: str, match_id: str
    ) -> tuple[dict[str, Any], dict[str, Any], DocumentReference]:
        t_snapshot = tournament_ref(db, tournament_id).get(transaction=transaction)
        if not t_snapshot.exists:
            raise NotFoundError(
                f"Tournament {tournament_id} not found.", {"tournamentId": tournament_id}
            )
        match_ref = matches_collection(db, tournament_id).document(match_id)
        match = _read(transaction, match_ref)
        if match is None:
            raise NotFoundError(
                f"Match {match_id} not found.",
                {"tournamentId": tournament_id, "matchId": match_id},
            )
        return snapshot_to_dict(t_snapshot), match, match_ref

    @staticmethod
    def _linked_match(
        transaction: Transaction, db: Client, tournament_id: str, match_id: str | None
    ) -> tuple[dict[str, Any] | None, DocumentReference | None]:
        if not match_id:
            return None, None
        ref = matches_collection(db, tournament_id).document(match_id)
        return _read(transaction, ref), ref

    @staticmethod
    def _submit_result_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        tournament_id: str,
        match_id: str,
        submission: MatchResultSubmission,
        now: Any,
    ) -> dict[str, Any]:
        """Write a result and propagate it, reading every touched document first."""
        tournament, match, match_ref = MatchService._read_match(
            transaction, db, tournament_id, match_id
        )
        _require_match_phase(tournament, match)
        context = {"tournamentId": tournament_id, "matchId": match_id}

        if match.get("status") == MatchStatus.COMPLETED.value:
            raise ConflictError(
                "Match already has a result; clear it before submitting again.",
                context,
            )
        if match.get("status") == MatchStatus.CANCELLED.value:
            raise ConflictError("Match was cancelled.", context)
        if not match.get("team1Id") or not match.get("team2Id"):
            raise PreconditionError("Both teams of the match must be known.", context)

        submission.validate(match["type"])
        score = submission.score()
        sets = submission.normalized_sets()

        parent, parent_ref = MatchService._linked_match(
            transaction, db, tournament_id, match.get("nextMatchId")
        )
        if parent is not None and parent.get("status") == MatchStatus.COMPLETED.value:
            raise ConflictError(
                "The next match already has a result.",
                {**context, "nextMatchId": parent["id"]},
            )
        third, third_ref = MatchService._linked_match(
            transaction, db, tournament_id, match.get("loserNextMatchId")
        )

        winner_id = loser_id = None
        if score["team1"] > score["team2"]:
            winner_id, loser_id = match["team1Id"], match["team2Id"]
        elif score["team2"] > score["team1"]:
            winner_id, loser_id = match["team2Id"], match["team1Id"]

        transaction.update(
            match_ref,
            {
                "score": score,
                "sets": sets,
                "winnerId": winner_id,
                "status": MatchStatus.COMPLETED.value,
                "completedAt": now,
                "updatedAt": now,
            },
        )

        propagated = {}
        if parent is not None and parent_ref is not None and winner_id:
            position = match["nextMatchPosition"]
            transaction.update(
                parent_ref,
                {
                    f"team{position}Id": winner_id,
                    f"team{position}Name": MatchService._team_name(match, winner_id),
                    "status": MatchStatus.SCHEDULED.value,
                    "updatedAt": now,
                },
            )
            propagated["nextMatchId"] = parent["id"]
        if (
            third is not None
            and third_ref is not None
            and loser_id
            and third.get("status") != MatchStatus.COMPLETED.value
        ):
            position = match["loserNextMatchPosition"]
            transaction.update(
                third_ref,
                {
                    f"team{position}Id": loser_id,
                    f"team{position}Name": MatchService._team_name(match, loser_id),
                    "updatedAt": now,
                },
            )
            propagated["loserNextMatchId"] = third["id"]

        transaction.update(
            tournament_ref(db, tournament_id),
            {
                "completedMatches": int(tournament.get("completedMatches") or 0) + 1,
                "updatedAt": now,
            },
        )
        return {
            "matchId": match_id,
            "type": match["type"],
            "winnerId": winner_id,
            "score": score,
            **propagated,
        }

    @staticmethod
    def _refresh_standings(
        tournament_id: str, db: Client, clock: Clock, result: dict[str, Any]
    ) -> None:
        """Rebuild the standings cache once the result is committed.

        The result stays recorded when the rebuild fails; ``standingsStale``
        tells the caller the cache lags until the next recalculation.
        """
        try:
            StandingsService.recalculate(tournament_id, db, clock)
        except TransactionFailure as e:
            logging.error(
                f"Standings of tournament {tournament_id} are stale after match "
                f"{result['matchId']}: {e}"
            )
            result["standingsStale"] = True
        else:
            result["standingsStale"] = False

    @staticmethod
    def _team_name(match: dict[str, Any], team_id: str) -> str:
        if match.get("team1Id") == team_id:
            return match.get("team1Name", "")
        return match.get("team2Name", "")

    @staticmethod
    def submit_result(  # noqa: PLR0913
        tournament_id: str,
        match_id: str,
        actor_id: str,
        submission: MatchResultSubmission,
        db: Client | None = None,
        oracle: AuthorizationOracle | None = None,
        clock: Clock = utc_now,
    ) -> dict[str, Any]:
        """Record a match result atomically with its winner propagation."""
        if db is None:
            db = firestore.client()
        oracle = oracle or TournamentAdminOracle(db)
        require_authorized(oracle, actor_id, tournament_id, ACTION_SUBMIT_RESULT)

        result = run_transaction(
            db,
            MatchService._submit_result_transaction,
            db,
            tournament_id,
            match_id,
            submission,
            clock(),
        )
        logging.info(
            f"Result recorded for match {match_id} of tournament {tournament_id} "
            f"by {actor_id}: winner {result['winnerId']}"
        )
        if result["type"] == MatchType.GROUP.value:
            MatchService._refresh_standings(tournament_id, db, clock, result)
        return result

    @staticmethod
    def _clear_result_transaction(
        transaction: Transaction,
        db: Client,
        tournament_id: str,
        match_id: str,
        now: Any,
    ) -> dict[str, Any]:
        """Reset a result and invalidate what it propagated."""
        tournament, match, match_ref = MatchService._read_match(
            transaction, db, tournament_id, match_id
        )
        _require_match_phase(tournament, match)
        context = {"tournamentId": tournament_id, "matchId": match_id}

        if match.get("status") != MatchStatus.COMPLETED.value:
            raise PreconditionError("Match has no result to clear.", context)
        if match.get("walkover"):
            raise ConflictError("A bye advancement cannot be cleared.", context)

        parent, parent_ref = MatchService._linked_match(
            transaction, db, tournament_id, match.get("nextMatchId")
        )
        third, third_ref = MatchService._linked_match(
            transaction, db, tournament_id, match.get("loserNextMatchId")
        )
        for linked in (parent, third):
            if linked is not None and linked.get("status") == MatchStatus.COMPLETED.value:
                raise ConflictError(
                    "A following match already has a result.",
                    {**context, "linkedMatchId": linked["id"]},
                )

        winner_id = match.get("winnerId")
        loser_id = None
        if winner_id:
            loser_id = (
                match["team2Id"] if winner_id == match["team1Id"] else match["team1Id"]
            )

        transaction.update(
            match_ref,
            {
                "score": None,
                "sets": [],
                "winnerId": None,
                "status": MatchStatus.SCHEDULED.value,
                "completedAt": None,
                "updatedAt": now,
            },
        )
        for linked, ref, position, team_id in (
            (parent, parent_ref, match.get("nextMatchPosition"), winner_id),
            (third, third_ref, match.get("loserNextMatchPosition"), loser_id),
        ):
            if linked is None or ref is None or not team_id:
                continue
            if linked.get(f"team{position}Id") == team_id:
                transaction.update(
                    ref,
                    {
                        f"team{position}Id": None,
                        f"team{position}Name": PENDING_SLOT_NAME,
                        "updatedAt": now,
                    },
                )

        transaction.update(
            tournament_ref(db, tournament_id),
            {
                "completedMatches": max(
                    0, int(tournament.get("completedMatches") or 0) - 1
                ),
                "updatedAt": now,
            },
        )
        return {"matchId": match_id, "type": match["type"], "cleared": True}

    @staticmethod
    def clear_result(
        tournament_id: str,
        match_id: str,
        actor_id: str,
        db: Client | None = None,
        oracle: AuthorizationOracle | None = None,
        clock: Clock = utc_now,
    ) -> dict[str, Any]:
        """Clear a completed match whose following matches are not completed."""
        if db is None:
            db = firestore.client()
        oracle = oracle or TournamentAdminOracle(db)
        require_authorized(oracle, actor_id, tournament_id, ACTION_CLEAR_RESULT)

        result = run_transaction(
            db,
            MatchService._clear_result_transaction,
            db,
            tournament_id,
            match_id,
            clock(),
        )
        logging.info(
            f"Result cleared for match {match_id} of tournament {tournament_id} "
            f"by {actor_id}"
        )
        if result["type"] == MatchType.GROUP.value:
            MatchService._refresh_standings(tournament_id, db, clock, result)
        return result

    @staticmethod
    def get_matches(
        tournament_id: str,
        match_type: str | None = None,
        group_id: str | None = None,
        round_name: str | None = None,
        db: Client | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch the matches of an existing tournament."""
        if db is None:
            db = firestore.client()
        fetch_tournament(db, tournament_id)
        matches = fetch_matches(
            db, tournament_id, match_type=match_type, group_id=group_id
        )
        if round_name is not None:
            matches = [m for m in matches if str(m.get("round")) == str(round_name)]
        return matches
