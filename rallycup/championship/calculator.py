"""ChampionshipPointsCalculator: per-team and per-player championship awards.

A team's total is the sum of three parts:

* rating delta: for every decided match between two real teams, the winner
  gains ``delta * multiplier``; in the group phase the loser loses the same
  amount, in the knockout phase the loser's contribution is zero;
* group placement: a bonus looked up by final group position;
* knockout progression: a fixed bonus per round for every knockout win.

Every player on a team is awarded the full team total.
"""

from __future__ import annotations

from typing import Any

from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.constants import MatchStatus, MatchType
from rallycup.rating import compute_from_sets, pick_two_ratings, rating_delta
from rallycup.standings.engine import StandingsEngine
from rallycup.utils import round1


def _lookup(table: dict[Any, Any], key: Any) -> float:
    """Read a points table whose keys may be stored as strings or ints."""
    value = table.get(str(key), table.get(key, 0))
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class ChampionshipPointsCalculator:
    """Derives championship points from stored tournament data."""

    def __init__(
        self,
        configuration: TournamentConfiguration,
        points_system: dict[str, Any] | None = None,
    ) -> None:
        self.configuration = configuration
        self.points_system = points_system
        points = configuration.championshipPoints
        self.multiplier = configuration.rpa_multiplier
        self.group_placement_points = points.get("groupPlacementPoints") or {}
        self.knockout_points = points.get("knockoutProgressPoints") or {}
        self.fallback_rating = configuration.defaultRankingForNonParticipants

    def _empty_row(self, team: dict[str, Any]) -> dict[str, Any]:
        return {
            "teamId": team["id"],
            "teamName": team.get("teamName", ""),
            "players": team.get("players") or [],
            "rpa": 0.0,
            "groupPlacement": 0.0,
            "knockout": 0.0,
            "total": 0.0,
            "totalAssigned": 0.0,
            "split": [],
            "details": {
                "rpaContributions": [],
                "groupPlacement": None,
                "knockoutContributions": [],
            },
        }

    def group_positions(
        self, teams: list[dict[str, Any]], matches: list[dict[str, Any]]
    ) -> dict[str, int]:
        """Final group position of every team that played the group phase."""
        engine = StandingsEngine(
            self.points_system, self.fallback_rating, self.multiplier
        )
        group_teams = [t for t in teams if t.get("groupId")]
        group_matches = [m for m in matches if m.get("type") == MatchType.GROUP.value]
        rows = engine.compute_all_groups(group_teams, group_matches)
        return {row["teamId"]: row["position"] for row in rows}

    def _add_rating_delta(
        self,
        rows: dict[str, dict[str, Any]],
        teams_by_id: dict[str, dict[str, Any]],
        match: dict[str, Any],
    ) -> None:
        team1 = teams_by_id[match["team1Id"]]
        team2 = teams_by_id[match["team2Id"]]
        summary = compute_from_sets(match.get("sets"))
        winner_is_team1 = match["winnerId"] == match["team1Id"]
        result = rating_delta(
            pick_two_ratings(team1.get("players"), self.fallback_rating),
            pick_two_ratings(team2.get("players"), self.fallback_rating),
            summary.games_a,
            summary.games_b,
            "A" if winner_is_team1 else "B",
        )
        points = result.points * self.multiplier
        is_knockout = match.get("type") == MatchType.KNOCKOUT.value
        winner, loser = (team1, team2) if winner_is_team1 else (team2, team1)

        for team, opponent, is_loss in ((winner, loser, False), (loser, winner, True)):
            if not is_loss:
                pts = points
            elif is_knockout:
                pts = 0.0
            else:
                pts = -points
            row = rows[team["id"]]
            row["rpa"] += pts
            row["details"]["rpaContributions"].append(
                {
                    "matchId": match.get("id"),
                    "opponentTeamId": opponent["id"],
                    "opponentTeamName": opponent.get("teamName", ""),
                    "type": match.get("type"),
                    "round": match.get("round"),
                    "isKnockout": is_knockout,
                    "isLoss": is_loss,
                    "pts": round1(pts),
                }
            )

    def _add_knockout_progress(
        self, rows: dict[str, dict[str, Any]], match: dict[str, Any]
    ) -> None:
        winner_id = match["winnerId"]
        loser_id = match["team2Id"] if winner_id == match["team1Id"] else match["team1Id"]
        bonus = _lookup(self.knockout_points, match.get("round"))
        rows[winner_id]["knockout"] += bonus
        for team_id, pts, is_loss in ((winner_id, bonus, False), (loser_id, 0.0, True)):
            rows[team_id]["details"]["knockoutContributions"].append(
                {
                    "matchId": match.get("id"),
                    "round": match.get("round"),
                    "pts": pts,
                    "isLoss": is_loss,
                }
            )

    def compute(
        self,
        teams: list[dict[str, Any]],
        matches: list[dict[str, Any]],
        computed_at: Any = None,
    ) -> dict[str, Any]:
        """Return ``{"totals": [...], "meta": {...}}`` for the tournament."""
        teams_by_id = {t["id"]: t for t in teams}
        rows = {t["id"]: self._empty_row(t) for t in teams}

        for match in matches:
            if match.get("status") != MatchStatus.COMPLETED.value:
                continue
            if not match.get("winnerId"):
                continue
            if match.get("team1Id") not in rows or match.get("team2Id") not in rows:
                continue
            self._add_rating_delta(rows, teams_by_id, match)
            if match.get("type") == MatchType.KNOCKOUT.value:
                self._add_knockout_progress(rows, match)

        for team_id, position in self.group_positions(teams, matches).items():
            bonus = _lookup(self.group_placement_points, position)
            rows[team_id]["groupPlacement"] = bonus
            rows[team_id]["details"]["groupPlacement"] = {
                "position": position,
                "points": bonus,
            }

        for row in rows.values():
            row["rpa"] = round1(row["rpa"])
            row["groupPlacement"] = round1(row["groupPlacement"])
            row["knockout"] = round1(row["knockout"])
            row["total"] = round1(row["rpa"] + row["groupPlacement"] + row["knockout"])
            row["totalAssigned"] = max(0.0, row["total"])
            row["split"] = [
                {
                    "playerId": p.get("playerId"),
                    "playerName": p.get("playerName", ""),
                    "points": row["totalAssigned"],
                    "rawPoints": row["total"],
                }
                for p in row["players"]
                if p.get("playerId")
            ]

        totals = sorted(rows.values(), key=lambda r: r["totalAssigned"], reverse=True)
        return {
            "totals": totals,
            "meta": {"computedAt": computed_at, "rpaMultiplier": self.multiplier},
        }

    @staticmethod
    def player_awards(totals: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Sum the assigned points per player across every team row."""
        awards: dict[str, dict[str, Any]] = {}
        for row in totals:
            for entry in row["split"]:
                award = awards.setdefault(
                    entry["playerId"],
                    {"playerName": entry["playerName"], "points": 0.0, "teamIds": []},
                )
                award["points"] = round1(award["points"] + entry["points"])
                award["teamIds"].append(row["teamId"])
        return awards
