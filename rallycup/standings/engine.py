"""StandingsEngine: rank teams from their completed matches.

Tables are a pure function of the teams and the completed matches passed in,
so they can be dropped and rebuilt at any time. Two cascades are used:

* group tables: points, head-to-head, set difference, sets won, game
  difference, games won;
* overall tables: points, set difference, sets won, game difference, games
  won (teams from different groups rarely meet, so head-to-head is skipped).

Teams still level after the whole cascade keep their input order.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable
from typing import Any

from rallycup.core.constants import (
    DEFAULT_POINTS_SYSTEMS,
    DEFAULT_RATING,
    MatchStatus,
    PointsSystemType,
)
from rallycup.rating import compute_from_sets, pick_two_ratings, rating_delta
from rallycup.utils import round1

Row = dict[str, Any]

TIE_BREAK_KEYS = ("setsDifference", "setsWon", "gamesDifference", "gamesWon")
DECIDING_SET_COUNT = 3


def resolve_points_system(points_system: dict[str, Any] | None) -> dict[str, Any]:
    """Fill a stored points system with the defaults for its type."""
    points_system = dict(points_system or {})
    system_type = points_system.get("type") or PointsSystemType.STANDARD.value
    resolved = dict(
        DEFAULT_POINTS_SYSTEMS.get(
            system_type, DEFAULT_POINTS_SYSTEMS[PointsSystemType.STANDARD.value]
        )
    )
    resolved.update(points_system)
    resolved["type"] = system_type
    return resolved


def match_sets(match: dict[str, Any]) -> tuple[int, int]:
    """Return the sets won by team 1 and team 2.

    The stored ``score`` wins; otherwise they are counted from ``sets``.
    """
    score = match.get("score") or {}
    if isinstance(score.get("team1"), int) and isinstance(score.get("team2"), int):
        return score["team1"], score["team2"]
    summary = compute_from_sets(match.get("sets"))
    return summary.sets_a, summary.sets_b


def match_games(match: dict[str, Any]) -> tuple[int, int]:
    summary = compute_from_sets(match.get("sets"))
    return summary.games_a, summary.games_b


def match_points(
    points_system: dict[str, Any],
    match: dict[str, Any],
    team1: dict[str, Any],
    team2: dict[str, Any],
) -> tuple[float, float]:
    """Return the table points earned by each side of a completed match."""
    system = resolve_points_system(points_system)
    sets1, sets2 = match_sets(match)
    winner_id = match.get("winnerId")

    if not winner_id or sets1 == sets2:
        return system["draw"], system["draw"]

    team1_won = winner_id == match.get("team1Id")
    win, loss = system["win"], system["loss"]
    system_type = system["type"]

    if system_type == PointsSystemType.RANKING_BASED.value:
        winner, loser = (team1, team2) if team1_won else (team2, team1)
        winner_rank = winner.get("averageRanking")
        loser_rank = loser.get("averageRanking")
        # A lower ranking number is the stronger team.
        if (
            winner_rank
            and loser_rank
            and winner_rank > loser_rank
            and winner_rank - loser_rank >= system["rankingDifferenceThreshold"]
        ):
            win = round1(win * system["upsetBonus"])
    elif system_type == PointsSystemType.TIE_BREAK.value:
        if sets1 + sets2 >= DECIDING_SET_COUNT:
            win, loss = system["tieBreakWin"], system["tieBreakLoss"]

    return (win, loss) if team1_won else (loss, win)


class StandingsEngine:
    """Computes group and overall tables with the configured points system."""

    def __init__(
        self,
        points_system: dict[str, Any] | None = None,
        default_rating: float = DEFAULT_RATING,
        rpa_multiplier: float = 1,
    ) -> None:
        self.points_system = resolve_points_system(points_system)
        self.default_rating = default_rating
        self.rpa_multiplier = rpa_multiplier

    def _empty_row(self, team: dict[str, Any]) -> Row:
        return {
            "teamId": team["id"],
            "teamName": team.get("teamName", ""),
            "groupId": team.get("groupId"),
            "matchesPlayed": 0,
            "matchesWon": 0,
            "matchesDrawn": 0,
            "matchesLost": 0,
            "setsWon": 0,
            "setsLost": 0,
            "setsDifference": 0,
            "gamesWon": 0,
            "gamesLost": 0,
            "gamesDifference": 0,
            "points": 0,
            "rpaPoints": 0,
        }

    def _rpa(
        self,
        match: dict[str, Any],
        team1: dict[str, Any],
        team2: dict[str, Any],
    ) -> float:
        summary = compute_from_sets(match.get("sets"))
        if not match.get("winnerId"):
            return 0
        result = rating_delta(
            pick_two_ratings(team1.get("players"), self.default_rating),
            pick_two_ratings(team2.get("players"), self.default_rating),
            summary.games_a,
            summary.games_b,
            "A" if match["winnerId"] == match["team1Id"] else "B",
        )
        return result.points * self.rpa_multiplier

    def aggregate(
        self, teams: list[dict[str, Any]], matches: Iterable[dict[str, Any]]
    ) -> tuple[list[Row], list[dict[str, Any]]]:
        """Accumulate per-team statistics.

        Returns the rows in team order and the completed matches between
        listed teams that were counted.
        """
        teams_by_id = {t["id"]: t for t in teams}
        rows = {t["id"]: self._empty_row(t) for t in teams}
        counted = []

        for match in matches:
            if match.get("status") != MatchStatus.COMPLETED.value:
                continue
            id1, id2 = match.get("team1Id"), match.get("team2Id")
            if id1 not in rows or id2 not in rows:
                continue
            counted.append(match)

            sets1, sets2 = match_sets(match)
            games1, games2 = match_games(match)
            points1, points2 = match_points(
                self.points_system, match, teams_by_id[id1], teams_by_id[id2]
            )
            rpa = self._rpa(match, teams_by_id[id1], teams_by_id[id2])
            winner_id = match.get("winnerId")

            for team_id, won_sets, lost_sets, won_games, lost_games, points in (
                (id1, sets1, sets2, games1, games2, points1),
                (id2, sets2, sets1, games2, games1, points2),
            ):
                row = rows[team_id]
                row["matchesPlayed"] += 1
                if winner_id == team_id:
                    row["matchesWon"] += 1
                    row["rpaPoints"] += rpa
                elif not winner_id or sets1 == sets2:
                    row["matchesDrawn"] += 1
                else:
                    row["matchesLost"] += 1
                    row["rpaPoints"] -= rpa
                row["setsWon"] += won_sets
                row["setsLost"] += lost_sets
                row["gamesWon"] += won_games
                row["gamesLost"] += lost_games
                row["points"] += points

        for row in rows.values():
            row["setsDifference"] = row["setsWon"] - row["setsLost"]
            row["gamesDifference"] = row["gamesWon"] - row["gamesLost"]
            row["points"] = round1(row["points"])
            row["rpaPoints"] = round1(row["rpaPoints"])

        return [rows[t["id"]] for t in teams], counted

    @staticmethod
    def head_to_head(a: Row, b: Row, matches: list[dict[str, Any]]) -> int:
        """Compare two rows by their direct match. Negative ranks ``a`` first."""
        pair = {a["teamId"], b["teamId"]}
        direct = next(
            (m for m in matches if {m.get("team1Id"), m.get("team2Id")} == pair),
            None,
        )
        if direct is None:
            return 0
        winner_id = direct.get("winnerId")
        if winner_id == a["teamId"]:
            return -1
        if winner_id == b["teamId"]:
            return 1
        sets1, sets2 = match_sets(direct)
        margin = sets1 - sets2 if direct["team1Id"] == a["teamId"] else sets2 - sets1
        return -margin

    @staticmethod
    def _compare_keys(a: Row, b: Row) -> int:
        for key in TIE_BREAK_KEYS:
            if a[key] != b[key]:
                return -1 if a[key] > b[key] else 1
        return 0

    @staticmethod
    def _rank(rows: list[Row], compare: Callable[[Row, Row], int]) -> list[Row]:
        ranked = sorted(rows, key=functools.cmp_to_key(compare))
        for index, row in enumerate(ranked):
            row["position"] = index + 1
        return ranked

    def compute_group(
        self, teams: list[dict[str, Any]], matches: Iterable[dict[str, Any]]
    ) -> list[Row]:
        """Rank the teams of one group, positions starting at 1."""
        rows, counted = self.aggregate(teams, matches)

        def compare(a: Row, b: Row) -> int:
            if a["points"] != b["points"]:
                return -1 if a["points"] > b["points"] else 1
            return self.head_to_head(a, b, counted) or self._compare_keys(a, b)

        return self._rank(rows, compare)

    def compute_overall(
        self, teams: list[dict[str, Any]], matches: Iterable[dict[str, Any]]
    ) -> list[Row]:
        """Rank every team of the tournament together."""
        rows, _ = self.aggregate(teams, matches)

        def compare(a: Row, b: Row) -> int:
            if a["points"] != b["points"]:
                return -1 if a["points"] > b["points"] else 1
            return self._compare_keys(a, b)

        return self._rank(rows, compare)

    def compute_all_groups(
        self, teams: list[dict[str, Any]], matches: list[dict[str, Any]]
    ) -> list[Row]:
        """Compute every group table and flatten them, group by group."""
        group_ids = sorted({t["groupId"] for t in teams if t.get("groupId")})
        rows: list[Row] = []
        for group_id in group_ids:
            group_teams = [t for t in teams if t.get("groupId") == group_id]
            group_matches = [m for m in matches if m.get("groupId") == group_id]
            rows.extend(self.compute_group(group_teams, group_matches))
        return rows
