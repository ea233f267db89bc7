"""Tests for the standings engine."""

from __future__ import annotations

import unittest

from rallycup.standings import StandingsEngine, match_points, match_sets


def _team(team_id, group_id="A", ranking=None):
    return {
        "id": team_id,
        "teamName": team_id.upper(),
        "groupId": group_id,
        "averageRanking": ranking,
        "players": [],
    }


def _match(match_id, team1, team2, sets, status="completed", group_id="A"):
    sets1 = sum(1 for s in sets if s[0] > s[1])
    sets2 = sum(1 for s in sets if s[1] > s[0])
    winner = team1 if sets1 > sets2 else team2 if sets2 > sets1 else None
    return {
        "id": match_id,
        "type": "group",
        "groupId": group_id,
        "team1Id": team1,
        "team2Id": team2,
        "status": status,
        "score": {"team1": sets1, "team2": sets2},
        "sets": [{"team1": a, "team2": b} for a, b in sets],
        "winnerId": winner,
    }


TEAMS = [_team("a"), _team("b"), _team("c"), _team("d")]
MATCHES = [
    _match("m1", "a", "b", [(6, 1), (6, 1)]),
    _match("m2", "a", "c", [(6, 2), (6, 2)]),
    _match("m3", "b", "c", [(6, 4), (4, 6), (7, 5)]),
    _match("m4", "c", "d", [(6, 0), (6, 0)]),
    _match("m5", "d", "b", [(6, 0), (6, 0)]),
    _match("m6", "d", "a", [(6, 4), (3, 6), (6, 4)]),
]


class StandingsEngineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = StandingsEngine()

    def test_group_cascade_uses_head_to_head(self) -> None:
        rows = self.engine.compute_group(TEAMS, MATCHES)
        self.assertEqual([r["teamId"] for r in rows], ["d", "a", "b", "c"])
        self.assertEqual([r["position"] for r in rows], [1, 2, 3, 4])

        by_id = {r["teamId"]: r for r in rows}
        self.assertEqual(by_id["a"]["points"], 6)
        self.assertEqual(by_id["a"]["setsDifference"], 3)
        self.assertEqual(by_id["d"]["setsDifference"], 1)
        self.assertEqual(by_id["c"]["setsDifference"], -1)
        self.assertEqual(by_id["b"]["setsDifference"], -3)

    def test_overall_cascade_skips_head_to_head(self) -> None:
        rows = self.engine.compute_overall(TEAMS, MATCHES)
        self.assertEqual([r["teamId"] for r in rows], ["a", "d", "c", "b"])

    def test_row_statistics(self) -> None:
        rows = {r["teamId"]: r for r in self.engine.compute_group(TEAMS, MATCHES)}
        a = rows["a"]
        self.assertEqual(a["matchesPlayed"], 3)
        self.assertEqual((a["matchesWon"], a["matchesLost"], a["matchesDrawn"]), (2, 1, 0))
        self.assertEqual((a["setsWon"], a["setsLost"]), (5, 2))
        self.assertEqual((a["gamesWon"], a["gamesLost"]), (38, 21))
        self.assertEqual(a["gamesDifference"], 17)

    def test_rating_delta_sum(self) -> None:
        rows = {
            r["teamId"]: r
            for r in self.engine.compute_group(TEAMS[:2], [MATCHES[0]])
        }
        # Unrated players fall back to 1500: base 60, game margin 10.
        self.assertEqual(rows["a"]["rpaPoints"], 70)
        self.assertEqual(rows["b"]["rpaPoints"], -70)

    def test_only_completed_matches_between_listed_teams_count(self) -> None:
        matches = [
            _match("x1", "a", "b", [(6, 0), (6, 0)], status="scheduled"),
            _match("x2", "a", "z", [(6, 0), (6, 0)]),
        ]
        rows = self.engine.compute_group(TEAMS[:2], matches)
        self.assertTrue(all(r["matchesPlayed"] == 0 for r in rows))

    def test_unresolved_ties_keep_input_order(self) -> None:
        rows = self.engine.compute_group(list(reversed(TEAMS)), [])
        self.assertEqual([r["teamId"] for r in rows], ["d", "c", "b", "a"])

    def test_draw(self) -> None:
        draw = _match("m", "a", "b", [(6, 4), (4, 6)])
        self.assertIsNone(draw["winnerId"])
        rows = {r["teamId"]: r for r in self.engine.compute_group(TEAMS[:2], [draw])}
        self.assertEqual(rows["a"]["points"], 1)
        self.assertEqual(rows["b"]["matchesDrawn"], 1)
        self.assertEqual(rows["a"]["rpaPoints"], 0)

    def test_recomputation_is_idempotent(self) -> None:
        first = self.engine.compute_group(TEAMS, MATCHES)
        second = self.engine.compute_group(TEAMS, MATCHES)
        self.assertEqual(first, second)

    def test_all_groups(self) -> None:
        teams = [_team("a"), _team("b"), _team("x", "B"), _team("y", "B")]
        matches = [
            _match("1", "a", "b", [(6, 0), (6, 0)]),
            _match("2", "y", "x", [(6, 0), (6, 0)], group_id="B"),
        ]
        rows = self.engine.compute_all_groups(teams, matches)
        self.assertEqual([(r["groupId"], r["teamId"]) for r in rows],
                         [("A", "a"), ("A", "b"), ("B", "y"), ("B", "x")])


class MatchPointsTestCase(unittest.TestCase):
    def test_standard(self) -> None:
        match = _match("m", "a", "b", [(6, 1), (6, 1)])
        self.assertEqual(match_points({"type": "standard"}, match, {}, {}), (3, 0))

    def test_ranking_based_upset_bonus(self) -> None:
        match = _match("m", "a", "b", [(6, 1), (6, 1)])
        underdog = {"averageRanking": 20}
        favourite = {"averageRanking": 5}
        self.assertEqual(
            match_points({"type": "ranking_based"}, match, underdog, favourite),
            (4.5, 0),
        )
        self.assertEqual(
            match_points({"type": "ranking_based"}, match, favourite, underdog),
            (3, 0),
        )

    def test_tie_break_deciding_set(self) -> None:
        match = _match("m", "a", "b", [(6, 4), (4, 6), (3, 6)])
        self.assertEqual(match_points({"type": "tie_break"}, match, {}, {}), (1, 2))

    def test_custom_values_override_defaults(self) -> None:
        match = _match("m", "a", "b", [(6, 1), (6, 1)])
        self.assertEqual(match_points({"type": "standard", "win": 2}, match, {}, {}), (2, 0))

    def test_sets_counted_without_score(self) -> None:
        match = {"sets": [{"team1": 6, "team2": 2}, {"team1": 2, "team2": 6},
                          {"team1": 6, "team2": 1}]}
        self.assertEqual(match_sets(match), (2, 1))


if __name__ == "__main__":
    unittest.main()
