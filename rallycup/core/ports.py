"""Collaborator interfaces consumed by the tournament engine."""

from __future__ import annotations

import datetime
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from firebase_admin import firestore

from rallycup.errors import PermissionDeniedError

from .constants import TOURNAMENTS_COLLECTION

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

Clock = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


class AuthorizationOracle(Protocol):
    """Decides whether an actor may perform an action on a tournament."""

    def is_authorized(self, actor_id: str, tournament_id: str, action: str) -> bool:
        ...


class TournamentAdminOracle:
    """Permit the tournament owner and the ids listed in ``adminIds``."""

    def __init__(self, db: Client | None = None) -> None:
        self._db = db

    def is_authorized(self, actor_id: str, tournament_id: str, action: str) -> bool:
        if not actor_id:
            return False
        db = self._db if self._db is not None else firestore.client()
        doc = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id).get()
        if not doc.exists:
            return False
        data = doc.to_dict() or {}
        return actor_id == data.get("ownerId") or actor_id in (
            data.get("adminIds") or []
        )


def require_authorized(
    oracle: AuthorizationOracle, actor_id: str, tournament_id: str, action: str
) -> None:
    """Raise ``PermissionDeniedError`` unless the oracle permits the action."""
    if not oracle.is_authorized(actor_id, tournament_id, action):
        raise PermissionDeniedError(
            f"Actor {actor_id} may not {action} on tournament {tournament_id}.",
            {"actorId": actor_id, "tournamentId": tournament_id, "action": action},
        )
