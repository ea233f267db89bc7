"""Tournament status adjacency and phase checks."""

from __future__ import annotations

from typing import Any

from rallycup.errors import ConflictError, PreconditionError

from .constants import TournamentStatus

S = TournamentStatus

# Forward transitions. Rollback is a separate action and is not listed here.
ALLOWED_TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    S.DRAFT: frozenset({S.REGISTRATION_OPEN, S.CANCELLED}),
    S.REGISTRATION_OPEN: frozenset({S.REGISTRATION_CLOSED, S.CANCELLED}),
    S.REGISTRATION_CLOSED: frozenset(
        {S.GROUPS_GENERATION, S.GROUPS_PHASE, S.CANCELLED}
    ),
    S.GROUPS_GENERATION: frozenset({S.GROUPS_PHASE, S.CANCELLED}),
    S.GROUPS_PHASE: frozenset({S.KNOCKOUT_PHASE, S.CANCELLED}),
    S.KNOCKOUT_PHASE: frozenset({S.COMPLETED, S.CANCELLED}),
    # Reactivation, for administrative correction.
    S.COMPLETED: frozenset({S.KNOCKOUT_PHASE}),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED})


def parse_status(value: Any) -> TournamentStatus:
    """Convert a stored or requested status into the enum."""
    try:
        return TournamentStatus(value)
    except ValueError as e:
        raise ConflictError(
            f"Unknown tournament status: {value}.", {"status": value}
        ) from e


def get_available_transitions(status: Any) -> list[str]:
    """List the statuses reachable from ``status`` in one forward step."""
    targets = ALLOWED_TRANSITIONS.get(parse_status(status), frozenset())
    return sorted(t.value for t in targets)


def can_transition(current: Any, target: Any) -> bool:
    try:
        return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]
    except ConflictError:
        return False


def validate_transition(tournament_id: str, current: Any, target: Any) -> None:
    """Raise ConflictError when ``current -> target`` is not in the table."""
    if not can_transition(current, target):
        raise ConflictError(
            f"Cannot move tournament from {current} to {target}.",
            {
                "tournamentId": tournament_id,
                "currentStatus": current,
                "requestedStatus": target,
            },
        )


def require_status(
    tournament_id: str, current: Any, *allowed: TournamentStatus
) -> None:
    """Raise PreconditionError unless the tournament is in one of ``allowed``."""
    current = getattr(current, "value", current)
    if current not in {s.value for s in allowed}:
        raise PreconditionError(
            f"Tournament must be {' or '.join(s.value for s in allowed)}, "
            f"not {current}.",
            {
                "tournamentId": tournament_id,
                "currentStatus": current,
                "requiredStatus": [s.value for s in allowed],
            },
        )
