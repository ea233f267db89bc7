"""RoundRobinScheduler: circle-method pairings for one group."""

from __future__ import annotations

from typing import Any

from rallycup.core.constants import MatchStatus, MatchType


def calculate_total_round_robin_matches(team_count: int) -> int:
    """Return the number of matches in a single round robin of ``team_count``."""
    if team_count < 2:
        return 0
    return team_count * (team_count - 1) // 2


def generate_round_robin(team_ids: list[str]) -> list[dict[str, Any]]:
    """Pair every team with every other exactly once using the circle method.

    With an odd count a bye is added; pairings against it are not returned.
    Each pairing carries its 1-based ``round`` and a ``matchNumber`` that is
    sequential across the whole group.
    """
    if len(team_ids) < 2:
        return []

    ids: list[str | None] = list(team_ids)
    if len(ids) % 2 != 0:
        ids.append(None)

    total = len(ids)
    rounds = total - 1
    pairings = []
    match_number = 1

    for round_index in range(rounds):
        for i in range(total // 2):
            home = ids[i]
            away = ids[total - 1 - i]
            if home is None or away is None:
                continue
            pairings.append(
                {
                    "round": round_index + 1,
                    "matchNumber": match_number,
                    "team1Id": home,
                    "team2Id": away,
                }
            )
            match_number += 1
        # Keep the first element fixed, rotate the others right by one
        ids = [ids[0], ids[-1]] + ids[1:-1]

    return pairings


class RoundRobinScheduler:
    """Generates group match rows from a group assignment."""

    @staticmethod
    def build_group_matches(
        group: dict[str, Any], team_names: dict[str, str]
    ) -> list[dict[str, Any]]:
        """Return match payloads for every pairing of ``group``."""
        matches = []
        for pairing in generate_round_robin(group["teamIds"]):
            matches.append(
                {
                    "type": MatchType.GROUP.value,
                    "groupId": group["id"],
                    "round": pairing["round"],
                    "matchNumber": pairing["matchNumber"],
                    "team1Id": pairing["team1Id"],
                    "team2Id": pairing["team2Id"],
                    "team1Name": team_names.get(pairing["team1Id"], ""),
                    "team2Name": team_names.get(pairing["team2Id"], ""),
                    "status": MatchStatus.SCHEDULED.value,
                    "score": None,
                    "sets": [],
                    "winnerId": None,
                    "nextMatchId": None,
                    "nextMatchPosition": None,
                }
            )
        return matches
