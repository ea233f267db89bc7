"""Service layer for the standings cache."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.constants import MatchStatus, MatchType
from rallycup.core.documents import (
    fetch_matches,
    fetch_teams,
    fetch_tournament,
    matches_collection,
    snapshot_to_dict,
    standings_collection,
    tournament_ref,
)
from rallycup.core.ports import Clock, utc_now
from rallycup.core.store import commit_in_chunks

from .engine import StandingsEngine

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


def engine_for(tournament: dict[str, Any]) -> StandingsEngine:
    """Build an engine from a tournament's points system and configuration."""
    config = TournamentConfiguration.from_dict(tournament.get("configuration"))
    return StandingsEngine(
        points_system=tournament.get("pointsSystem"),
        default_rating=config.defaultRankingForNonParticipants,
        rpa_multiplier=config.rpa_multiplier,
    )


class StandingsService:
    """Recomputes, persists and reads tournament standings."""

    @staticmethod
    def compute(
        tournament: dict[str, Any],
        teams: list[dict[str, Any]],
        matches: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Compute all group tables from already fetched data."""
        group_teams = [t for t in teams if t.get("groupId")]
        group_matches = [m for m in matches if m.get("type") == MatchType.GROUP.value]
        return engine_for(tournament).compute_all_groups(group_teams, group_matches)

    @staticmethod
    def recalculate(
        tournament_id: str, db: Client | None = None, clock: Clock = utc_now
    ) -> list[dict[str, Any]]:
        """Rebuild the standings cache and refresh the match counters.

        The existing standings are deleted and rewritten wholesale, one
        document per team keyed by team id.
        """
        if db is None:
            db = firestore.client()
        tournament = fetch_tournament(db, tournament_id)
        teams = fetch_teams(db, tournament_id, active_only=True)
        matches = fetch_matches(db, tournament_id)
        rows = StandingsService.compute(tournament, teams, matches)

        collection = standings_collection(db, tournament_id)
        now = clock()
        operations: list[Any] = [
            ("delete", doc.reference, None) for doc in collection.stream()
        ]
        operations.extend(
            ("set", collection.document(row["teamId"]), {**row, "lastUpdated": now})
            for row in rows
        )
        commit_in_chunks(db, operations)

        StandingsService.refresh_match_counters(tournament_id, db, matches)
        logging.info(
            f"Recalculated standings for tournament {tournament_id}: {len(rows)} rows"
        )
        return rows

    @staticmethod
    def refresh_match_counters(
        tournament_id: str,
        db: Client | None = None,
        matches: list[dict[str, Any]] | None = None,
    ) -> dict[str, int]:
        """Set ``totalMatches``/``completedMatches`` from the stored matches."""
        if db is None:
            db = firestore.client()
        if matches is None:
            matches = [
                snapshot_to_dict(doc)
                for doc in matches_collection(db, tournament_id).stream()
            ]
        counters = {
            "totalMatches": len(matches),
            "completedMatches": sum(
                1 for m in matches if m.get("status") == MatchStatus.COMPLETED.value
            ),
        }
        tournament_ref(db, tournament_id).update(counters)
        return counters

    @staticmethod
    def get_standings(
        tournament_id: str, db: Client | None = None
    ) -> list[dict[str, Any]]:
        """Read the cached standings, ordered by group and position."""
        if db is None:
            db = firestore.client()
        rows = [
            snapshot_to_dict(doc)
            for doc in standings_collection(db, tournament_id).stream()
        ]
        rows.sort(key=lambda r: (r.get("groupId") or "", r.get("position") or 0))
        return rows

    @staticmethod
    def get_qualified_teams(
        standings: list[dict[str, Any]], qualified_per_group: int
    ) -> list[dict[str, Any]]:
        """Take the top ``qualified_per_group`` teams of every group."""
        by_group: dict[str, list[dict[str, Any]]] = {}
        for row in standings:
            by_group.setdefault(row.get("groupId") or "", []).append(row)

        qualified = []
        for group_id in sorted(by_group):
            rows = sorted(by_group[group_id], key=lambda r: r["position"])
            for row in rows[:qualified_per_group]:
                qualified.append(
                    {
                        "teamId": row["teamId"],
                        "teamName": row.get("teamName", ""),
                        "groupId": row.get("groupId"),
                        "groupPosition": row["position"],
                        "points": row.get("points", 0),
                        "setsDifference": row.get("setsDifference", 0),
                    }
                )
        return qualified

    @staticmethod
    def seed_order(qualified: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Order qualifiers for seeding: group winners first, then by record."""
        return sorted(
            qualified,
            key=lambda q: (q["groupPosition"], -q["points"], -q["setsDifference"]),
        )

    @staticmethod
    def overall_standings(
        tournament_id: str, db: Client | None = None
    ) -> list[dict[str, Any]]:
        """Rank every active team of the tournament in a single table."""
        if db is None:
            db = firestore.client()
        tournament = fetch_tournament(db, tournament_id)
        teams = fetch_teams(db, tournament_id, active_only=True)
        matches = fetch_matches(db, tournament_id, match_type=MatchType.GROUP.value)
        return engine_for(tournament).compute_overall(teams, matches)
