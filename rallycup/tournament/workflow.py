"""PhaseStateMachine: the only writer of a tournament's status.

Each forward transition validates the adjacency table and its preconditions,
produces the artifacts of the next phase, and flips the status in a
transaction that also checks the status has not moved in the meantime.
Artifacts written before the flip are removed again when anything fails, so
callers either see the new phase with all of its artifacts or the old phase
without them.
"""

from __future__ import annotations

import contextlib
import logging
import random
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from rallycup.bracket import BracketBuilder
from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.constants import (
    ACTION_ROLLBACK,
    ACTION_TRANSITION,
    KnockoutRound,
    MatchStatus,
    MatchType,
    TeamStatus,
    TournamentStatus,
)
from rallycup.core.documents import (
    fetch_matches,
    fetch_teams,
    matches_collection,
    standings_collection,
    teams_collection,
    tournament_ref,
)
from rallycup.core.phases import get_available_transitions as available_transitions
from rallycup.core.phases import parse_status, validate_transition
from rallycup.core.ports import (
    AuthorizationOracle,
    Clock,
    TournamentAdminOracle,
    require_authorized,
    utc_now,
)
from rallycup.core.store import (
    commit_in_chunks,
    delete_collection,
    delete_documents,
    run_transaction,
)
from rallycup.errors import (
    AppError,
    ConflictError,
    FatalReconciliationError,
    InsufficientTeams,
    NotFoundError,
    PreconditionError,
    TransactionFailure,
)
from rallycup.groups import RoundRobinScheduler, balance_groups
from rallycup.standings import StandingsService

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

S = TournamentStatus

GROUP_STATUSES = (S.GROUPS_GENERATION.value, S.GROUPS_PHASE.value)


def _flip_status_transaction(  # noqa: PLR0913
    transaction: Transaction,
    db: Client,
    tournament_id: str,
    expected: str,
    target: str,
    now: Any,
    fields: dict[str, Any],
) -> dict[str, Any]:
    """Move ``expected -> target`` if the status has not changed meanwhile."""
    ref = tournament_ref(db, tournament_id)
    snapshot = ref.get(transaction=transaction)
    if not snapshot.exists:
        raise NotFoundError(
            f"Tournament {tournament_id} not found.", {"tournamentId": tournament_id}
        )
    data = snapshot.to_dict() or {}
    if data.get("status") != expected:
        raise ConflictError(
            "Tournament status changed during the transition.",
            {
                "tournamentId": tournament_id,
                "currentStatus": data.get("status"),
                "expectedStatus": expected,
                "requestedStatus": target,
            },
        )
    history = list(data.get("phaseHistory") or [])
    history.append({"from": expected, "to": target, "timestamp": now})
    transaction.update(
        ref, {**fields, "status": target, "phaseHistory": history, "updatedAt": now}
    )
    return {"tournamentId": tournament_id, "from": expected, "to": target}


def _rollback_status_transaction(
    transaction: Transaction,
    db: Client,
    tournament_id: str,
    entry: dict[str, Any],
    now: Any,
    fields: dict[str, Any],
) -> dict[str, Any]:
    """Restore ``entry['from']`` and pop the history entry."""
    ref = tournament_ref(db, tournament_id)
    snapshot = ref.get(transaction=transaction)
    data = snapshot.to_dict() or {}
    history = list(data.get("phaseHistory") or [])
    if data.get("status") != entry["to"] or not history or history[-1] != entry:
        raise ConflictError(
            "Tournament changed during the rollback.",
            {"tournamentId": tournament_id, "currentStatus": data.get("status")},
        )
    history.pop()
    transaction.update(
        ref,
        {
            **fields,
            "status": entry["from"],
            "phaseHistory": history,
            "rollbackInfo": {
                "rolledBackFrom": entry["to"],
                "rolledBackTo": entry["from"],
                "timestamp": now,
            },
            "updatedAt": now,
        },
    )
    return {"tournamentId": tournament_id, "from": entry["to"], "to": entry["from"]}


class PhaseStateMachine:
    """Orchestrates tournament phase transitions and their rollback."""

    def __init__(
        self,
        db: Client | None = None,
        oracle: AuthorizationOracle | None = None,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db if db is not None else firestore.client()
        self.oracle = oracle or TournamentAdminOracle(self.db)
        self.clock = clock
        self.rng = rng

    # Reads

    def _tournament(self, tournament_id: str) -> dict[str, Any]:
        snapshot = tournament_ref(self.db, tournament_id).get()
        if not snapshot.exists:
            raise NotFoundError(
                f"Tournament {tournament_id} not found.",
                {"tournamentId": tournament_id},
            )
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    # Public actions

    def transition(
        self, tournament_id: str, target: Any, actor_id: str
    ) -> dict[str, Any]:
        """Move the tournament to ``target`` if the adjacency table allows it."""
        require_authorized(self.oracle, actor_id, tournament_id, ACTION_TRANSITION)
        tournament = self._tournament(tournament_id)
        current = parse_status(tournament.get("status"))
        target = parse_status(target)
        validate_transition(tournament_id, current.value, target.value)

        if current == S.REGISTRATION_CLOSED and target in (
            S.GROUPS_GENERATION,
            S.GROUPS_PHASE,
        ):
            result = self._generate_groups(tournament, target)
        elif current == S.GROUPS_GENERATION and target == S.GROUPS_PHASE:
            self._require_groups(tournament)
            result = self._flip(tournament, target)
        elif current == S.GROUPS_PHASE and target == S.KNOCKOUT_PHASE:
            result = self._start_knockout(tournament, target)
        elif current == S.KNOCKOUT_PHASE and target == S.COMPLETED:
            self._require_knockout_finished(tournament)
            result = self._flip(tournament, target)
        else:
            result = self._flip(tournament, target)

        logging.info(
            f"Tournament {tournament_id} moved from {current.value} to "
            f"{target.value} by {actor_id}"
        )
        return result

    def cancel(self, tournament_id: str, actor_id: str) -> dict[str, Any]:
        return self.transition(tournament_id, S.CANCELLED, actor_id)

    def reactivate(self, tournament_id: str, actor_id: str) -> dict[str, Any]:
        """Reopen a completed tournament's knockout phase for corrections."""
        return self.transition(tournament_id, S.KNOCKOUT_PHASE, actor_id)

    def get_available_transitions(self, tournament_id: str) -> dict[str, Any]:
        tournament = self._tournament(tournament_id)
        status = tournament.get("status")
        history = tournament.get("phaseHistory") or []
        return {
            "tournamentId": tournament_id,
            "currentStatus": status,
            "availableTransitions": available_transitions(status),
            "canRollback": bool(history) and history[-1].get("to") == status,
        }

    def rollback(self, tournament_id: str, actor_id: str) -> dict[str, Any]:
        """Undo the most recent transition and delete what it created."""
        require_authorized(self.oracle, actor_id, tournament_id, ACTION_ROLLBACK)
        tournament = self._tournament(tournament_id)
        history = tournament.get("phaseHistory") or []
        if not history:
            raise ConflictError(
                "There is no transition to roll back.",
                {"tournamentId": tournament_id, "currentStatus": tournament.get("status")},
            )
        entry = history[-1]
        if entry.get("to") != tournament.get("status"):
            raise ConflictError(
                "The latest history entry does not lead to the current status.",
                {
                    "tournamentId": tournament_id,
                    "currentStatus": tournament.get("status"),
                    "historyEntry": {"from": entry.get("from"), "to": entry.get("to")},
                },
            )

        fields = self._delete_artifacts_of(tournament_id, entry)
        result = run_transaction(
            self.db,
            _rollback_status_transaction,
            self.db,
            tournament_id,
            entry,
            self.clock(),
            fields,
        )
        logging.info(
            f"Tournament {tournament_id} rolled back from {entry['to']} to "
            f"{entry['from']} by {actor_id}"
        )
        return result

    # Transition helpers

    def _flip(
        self,
        tournament: dict[str, Any],
        target: TournamentStatus,
        fields: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return run_transaction(
            self.db,
            _flip_status_transaction,
            self.db,
            tournament["id"],
            tournament["status"],
            target.value,
            self.clock(),
            fields or {},
        )

    @contextlib.contextmanager
    def _compensating(
        self, tournament: dict[str, Any], target: TournamentStatus
    ) -> Iterator[None]:
        """Undo the artifacts written inside the block if it raises."""
        try:
            yield
        except AppError as e:
            self._compensate(tournament["id"], target, e)
            raise
        except Exception as e:
            self._compensate(tournament["id"], target, e)
            raise TransactionFailure(
                f"Transition to {target.value} failed: {e}",
                {
                    "tournamentId": tournament["id"],
                    "currentStatus": tournament.get("status"),
                    "requestedStatus": target.value,
                },
            ) from e

    def _compensate(
        self, tournament_id: str, target: TournamentStatus, error: Exception
    ) -> None:
        logging.error(
            f"Transition of tournament {tournament_id} to {target.value} failed, "
            f"rolling back: {error}"
        )
        try:
            current = self._tournament(tournament_id).get("status")
            if current == target.value:
                # A concurrent request completed the same transition.
                logging.warning(
                    f"Tournament {tournament_id} already reached {target.value}, "
                    "keeping its artifacts"
                )
                return

            if target == S.KNOCKOUT_PHASE:
                self._delete_knockout_artifacts(tournament_id)
            else:
                self._delete_group_artifacts(tournament_id)
        except Exception as rollback_error:
            logging.critical(
                f"Rollback of tournament {tournament_id} failed after transition "
                f"error ({error}): {rollback_error}"
            )
            raise FatalReconciliationError(
                "The transition failed and its automatic rollback failed too; "
                "the tournament needs manual reconciliation.",
                {
                    "tournamentId": tournament_id,
                    "requestedStatus": target.value,
                    "transitionError": str(error),
                    "rollbackError": str(rollback_error),
                },
            ) from rollback_error

    # Groups

    def _generate_groups(
        self, tournament: dict[str, Any], target: TournamentStatus
    ) -> dict[str, Any]:
        tournament_id = tournament["id"]
        config = TournamentConfiguration.from_dict(tournament.get("configuration"))
        registered = int(tournament.get("registeredTeams") or 0)
        if registered < config.required_teams:
            raise InsufficientTeams(
                f"Need {config.required_teams} registered teams, "
                f"found {registered}.",
                {
                    "tournamentId": tournament_id,
                    "required": config.required_teams,
                    "registered": registered,
                },
            )

        all_teams = fetch_teams(self.db, tournament_id)
        active = [t for t in all_teams if t.get("status") == TeamStatus.ACTIVE.value]
        groups = balance_groups(
            active, config.numberOfGroups, config.teamsPerGroup, self.rng
        )

        team_names = {t["id"]: t.get("teamName", "") for t in all_teams}
        teams_ref = teams_collection(self.db, tournament_id)
        matches_ref = matches_collection(self.db, tournament_id)
        now = self.clock()
        operations: list[Any] = []
        total_matches = 0
        for group in groups:
            for index, team_id in enumerate(group["teamIds"]):
                operations.append(
                    (
                        "update",
                        teams_ref.document(team_id),
                        {"groupId": group["id"], "groupPosition": index + 1},
                    )
                )
            for match in RoundRobinScheduler.build_group_matches(group, team_names):
                operations.append(
                    ("set", matches_ref.document(), {**match, "createdAt": now})
                )
                total_matches += 1

        with self._compensating(tournament, target):
            # Drop any earlier generation first so re-running is idempotent.
            self._delete_group_artifacts(tournament_id, teams=all_teams)
            commit_in_chunks(self.db, operations)
            result = self._flip(
                tournament,
                target,
                {
                    "groups": groups,
                    "totalMatches": total_matches,
                    "completedMatches": 0,
                },
            )
        logging.info(
            f"Generated {len(groups)} groups and {total_matches} matches for "
            f"tournament {tournament_id}"
        )
        return {**result, "groups": groups, "matchesCreated": total_matches}

    @staticmethod
    def _require_groups(tournament: dict[str, Any]) -> None:
        if not tournament.get("groups"):
            raise PreconditionError(
                "Groups have not been generated.", {"tournamentId": tournament["id"]}
            )

    def _delete_group_artifacts(
        self, tournament_id: str, teams: list[dict[str, Any]] | None = None
    ) -> dict[str, Any]:
        """Delete group matches and standings, and unassign every team."""
        group_matches = fetch_matches(
            self.db, tournament_id, match_type=MatchType.GROUP.value
        )
        matches_ref = matches_collection(self.db, tournament_id)
        delete_documents(self.db, [matches_ref.document(m["id"]) for m in group_matches])

        delete_collection(self.db, standings_collection(self.db, tournament_id))

        if teams is None:
            teams = fetch_teams(self.db, tournament_id)
        teams_ref = teams_collection(self.db, tournament_id)
        commit_in_chunks(
            self.db,
            (
                (
                    "update",
                    teams_ref.document(t["id"]),
                    {"groupId": None, "groupPosition": None},
                )
                for t in teams
                if t.get("groupId") is not None or t.get("groupPosition") is not None
            ),
        )
        return {"groups": [], "totalMatches": 0, "completedMatches": 0}

    # Knockout

    def _start_knockout(
        self, tournament: dict[str, Any], target: TournamentStatus
    ) -> dict[str, Any]:
        tournament_id = tournament["id"]
        config = TournamentConfiguration.from_dict(tournament.get("configuration"))
        matches = fetch_matches(self.db, tournament_id)
        group_matches = [m for m in matches if m.get("type") == MatchType.GROUP.value]
        pending = [
            m for m in group_matches if m.get("status") != MatchStatus.COMPLETED.value
        ]
        if not group_matches or pending:
            raise PreconditionError(
                "All group matches must be completed before the knockout phase.",
                {
                    "tournamentId": tournament_id,
                    "groupMatches": len(group_matches),
                    "pendingMatches": len(pending),
                },
            )

        teams = fetch_teams(self.db, tournament_id, active_only=True)
        standings = StandingsService.compute(tournament, teams, group_matches)
        qualified = StandingsService.seed_order(
            StandingsService.get_qualified_teams(standings, config.qualifiedPerGroup)
        )
        team_names = {q["teamId"]: q["teamName"] for q in qualified}
        matches_ref = matches_collection(self.db, tournament_id)
        plan = BracketBuilder.from_seeds(
            [q["teamId"] for q in qualified],
            team_names,
            include_third_place=config.includeThirdPlaceMatch,
            new_id=lambda: matches_ref.document().id,
        )

        stale = [m for m in matches if m.get("type") == MatchType.KNOCKOUT.value]
        now = self.clock()
        walkovers = sum(1 for m in plan.matches if m.get("walkover"))

        with self._compensating(tournament, target):
            delete_documents(self.db, [matches_ref.document(m["id"]) for m in stale])
            commit_in_chunks(
                self.db,
                (
                    (
                        "set",
                        matches_ref.document(match["id"]),
                        {k: v for k, v in match.items() if k != "id"}
                        | {"createdAt": now},
                    )
                    for match in plan.matches
                ),
            )
            result = self._flip(
                tournament,
                target,
                {
                    "knockoutBracket": plan.summary(now),
                    "totalMatches": len(group_matches) + len(plan.matches),
                    "completedMatches": len(group_matches) + walkovers,
                },
            )
        logging.info(
            f"Created {len(plan.matches)} knockout matches for tournament "
            f"{tournament_id} starting at {plan.starting_round.value}"
        )
        return {
            **result,
            "qualifiedTeams": qualified,
            "bracket": plan.summary(now),
            "matchesCreated": len(plan.matches),
        }

    def _require_knockout_finished(self, tournament: dict[str, Any]) -> None:
        knockout = fetch_matches(
            self.db, tournament["id"], match_type=MatchType.KNOCKOUT.value
        )
        # A third-place match only counts when two played semifinals feed it.
        feeders: dict[str, int] = {}
        for m in knockout:
            if m.get("loserNextMatchId") and not m.get("walkover"):
                feeders[m["loserNextMatchId"]] = feeders.get(m["loserNextMatchId"], 0) + 1
        required = [
            m
            for m in knockout
            if m.get("round") == KnockoutRound.FINALS.value
            or (
                m.get("round") == KnockoutRound.THIRD_PLACE.value
                and feeders.get(m["id"], 0) == 2
            )
        ]
        if not any(m.get("round") == KnockoutRound.FINALS.value for m in required):
            raise PreconditionError(
                "The tournament has no final.", {"tournamentId": tournament["id"]}
            )
        pending = [
            m["id"] for m in required if m.get("status") != MatchStatus.COMPLETED.value
        ]
        if pending:
            raise PreconditionError(
                "The final and third-place match must be completed.",
                {"tournamentId": tournament["id"], "pendingMatchIds": pending},
            )

    def _delete_knockout_artifacts(self, tournament_id: str) -> dict[str, Any]:
        """Delete knockout matches. Returns the tournament fields to reset."""
        matches = fetch_matches(self.db, tournament_id)
        knockout = [m for m in matches if m.get("type") == MatchType.KNOCKOUT.value]
        matches_ref = matches_collection(self.db, tournament_id)
        delete_documents(self.db, [matches_ref.document(m["id"]) for m in knockout])
        remaining = [m for m in matches if m.get("type") != MatchType.KNOCKOUT.value]
        return {
            "knockoutBracket": None,
            "totalMatches": len(remaining),
            "completedMatches": sum(
                1 for m in remaining if m.get("status") == MatchStatus.COMPLETED.value
            ),
        }

    # Rollback

    def _delete_artifacts_of(
        self, tournament_id: str, entry: dict[str, Any]
    ) -> dict[str, Any]:
        """Delete what the transition ``entry`` created. Safe to repeat."""
        origin, destination = entry.get("from"), entry.get("to")
        if origin == S.REGISTRATION_CLOSED.value and destination in GROUP_STATUSES:
            return self._delete_group_artifacts(tournament_id)
        if origin == S.GROUPS_PHASE.value and destination == S.KNOCKOUT_PHASE.value:
            return self._delete_knockout_artifacts(tournament_id)
        return {}
