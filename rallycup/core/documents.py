"""Document access helpers shared by the tournament services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from rallycup.errors import NotFoundError

from .constants import (
    KNOCKOUT_ROUND_ORDER,
    MATCHES_COLLECTION,
    STANDINGS_COLLECTION,
    TEAMS_COLLECTION,
    TOURNAMENTS_COLLECTION,
    KnockoutRound,
    MatchStatus,
    TeamStatus,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.collection import CollectionReference
    from google.cloud.firestore_v1.document import DocumentReference

_ROUND_RANK = {r.value: i for i, r in enumerate(KNOCKOUT_ROUND_ORDER)}
_ROUND_RANK[KnockoutRound.THIRD_PLACE.value] = len(KNOCKOUT_ROUND_ORDER)


def snapshot_to_dict(doc: DocumentSnapshot) -> dict[str, Any]:
    """Return the document data with its id under ``id``."""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def tournament_ref(db: Client, tournament_id: str) -> DocumentReference:
    return db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)


def teams_collection(db: Client, tournament_id: str) -> CollectionReference:
    return tournament_ref(db, tournament_id).collection(TEAMS_COLLECTION)


def matches_collection(db: Client, tournament_id: str) -> CollectionReference:
    return tournament_ref(db, tournament_id).collection(MATCHES_COLLECTION)


def standings_collection(db: Client, tournament_id: str) -> CollectionReference:
    return tournament_ref(db, tournament_id).collection(STANDINGS_COLLECTION)


def fetch_tournament(
    db: Client, tournament_id: str, transaction: Any = None
) -> dict[str, Any]:
    """Fetch a tournament or raise NotFoundError."""
    ref = tournament_ref(db, tournament_id)
    doc = ref.get(transaction=transaction) if transaction else ref.get()
    if not doc.exists:
        raise NotFoundError(
            f"Tournament {tournament_id} not found.", {"tournamentId": tournament_id}
        )
    return snapshot_to_dict(doc)


def fetch_teams(
    db: Client, tournament_id: str, active_only: bool = False
) -> list[dict[str, Any]]:
    """Fetch the teams of a tournament ordered by group, position and id."""
    teams = [snapshot_to_dict(doc) for doc in teams_collection(db, tournament_id).stream()]
    if active_only:
        teams = [t for t in teams if t.get("status") == TeamStatus.ACTIVE.value]
    teams.sort(
        key=lambda t: (t.get("groupId") or "", t.get("groupPosition") or 0, t["id"])
    )
    return teams


def match_sort_key(match: dict[str, Any]) -> tuple[Any, ...]:
    """Order group matches by group, then knockout matches by round."""
    round_value = match.get("round")
    if match.get("type") == "knockout":
        return (1, "", _ROUND_RANK.get(round_value, 99), match.get("matchNumber") or 0)
    return (0, match.get("groupId") or "", round_value or 0, match.get("matchNumber") or 0)


def fetch_matches(
    db: Client,
    tournament_id: str,
    match_type: str | None = None,
    group_id: str | None = None,
    completed_only: bool = False,
) -> list[dict[str, Any]]:
    """Fetch the matches of a tournament, optionally filtered."""
    query: Any = matches_collection(db, tournament_id)
    if match_type:
        query = query.where(filter=firestore.FieldFilter("type", "==", match_type))
    if group_id:
        query = query.where(filter=firestore.FieldFilter("groupId", "==", group_id))
    matches = [snapshot_to_dict(doc) for doc in query.stream()]
    if completed_only:
        matches = [m for m in matches if m.get("status") == MatchStatus.COMPLETED.value]
    matches.sort(key=match_sort_key)
    return matches
