"""Shared fixtures for the tournament tests."""

import datetime
import random

from rallycup.core.constants import DEFAULT_CONFIGURATION
from rallycup.core.documents import matches_collection, teams_collection, tournament_ref
from rallycup.groups import generate_round_robin

FIXED_NOW = datetime.datetime(2024, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)
OWNER_ID = "owner1"


def fixed_clock():
    return FIXED_NOW


class AllowAll:
    def is_authorized(self, actor_id, tournament_id, action):
        return True


class DenyAll:
    def is_authorized(self, actor_id, tournament_id, action):
        return False


def seed_tournament(db, tournament_id="t1", status="draft", configuration=None, **extra):
    """Create a tournament document and return its id."""
    config = dict(DEFAULT_CONFIGURATION)
    config.update(configuration or {})
    data = {
        "name": "Spring Cup",
        "status": status,
        "ownerId": OWNER_ID,
        "adminIds": [],
        "configuration": config,
        "pointsSystem": {"type": "standard"},
        "phaseHistory": [],
        "registeredTeams": 0,
        "totalMatches": 0,
        "completedMatches": 0,
        "groups": [],
        "knockoutBracket": None,
        "createdAt": FIXED_NOW,
    }
    data.update(extra)
    tournament_ref(db, tournament_id).set(data)
    return tournament_id


def seed_teams(db, tournament_id, count, ranked=True):
    """Add ``count`` active teams; team i has average ranking i when ranked."""
    team_ids = []
    for i in range(1, count + 1):
        team_id = f"team{i:02d}"
        ranking = float(i) if ranked else None
        teams_collection(db, tournament_id).document(team_id).set(
            {
                "teamName": f"Team {i}",
                "players": [
                    {"playerId": f"p{i}a", "playerName": f"Player {i}A", "ranking": ranking},
                    {"playerId": f"p{i}b", "playerName": f"Player {i}B", "ranking": ranking},
                ],
                "averageRanking": ranking,
                "groupId": None,
                "groupPosition": None,
                "status": "active",
            }
        )
        team_ids.append(team_id)
    tournament_ref(db, tournament_id).update({"registeredTeams": count})
    return team_ids


def seed_group(db, tournament_id, group_id, team_ids):
    """Assign teams to a group and create its round-robin matches."""
    for position, team_id in enumerate(team_ids, start=1):
        teams_collection(db, tournament_id).document(team_id).update(
            {"groupId": group_id, "groupPosition": position}
        )
    match_ids = []
    for pairing in generate_round_robin(team_ids):
        match_id = f"{group_id}-{pairing['matchNumber']}"
        matches_collection(db, tournament_id).document(match_id).set(
            {
                "type": "group",
                "groupId": group_id,
                "round": pairing["round"],
                "matchNumber": pairing["matchNumber"],
                "team1Id": pairing["team1Id"],
                "team2Id": pairing["team2Id"],
                "team1Name": pairing["team1Id"],
                "team2Name": pairing["team2Id"],
                "status": "scheduled",
                "score": None,
                "sets": [],
                "winnerId": None,
                "nextMatchId": None,
                "nextMatchPosition": None,
            }
        )
        match_ids.append(match_id)
    return match_ids


def complete_match(db, tournament_id, match_id, sets):
    """Store a completed result directly, bypassing the service."""
    ref = matches_collection(db, tournament_id).document(match_id)
    match = ref.get().to_dict()
    sets1 = sum(1 for s in sets if s["team1"] > s["team2"])
    sets2 = sum(1 for s in sets if s["team2"] > s["team1"])
    winner = None
    if sets1 > sets2:
        winner = match["team1Id"]
    elif sets2 > sets1:
        winner = match["team2Id"]
    ref.update(
        {
            "status": "completed",
            "score": {"team1": sets1, "team2": sets2},
            "sets": sets,
            "winnerId": winner,
        }
    )


def lower_id_wins(match):
    """Sets for a result where the team with the lower id wins 2-0."""
    if match["team1Id"] < match["team2Id"]:
        return [{"team1": 6, "team2": 3}, {"team1": 6, "team2": 4}]
    return [{"team1": 3, "team2": 6}, {"team1": 4, "team2": 6}]


def seeded_rng():
    return random.Random(7)
