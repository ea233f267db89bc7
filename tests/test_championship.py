"""Tests for championship points."""

from __future__ import annotations

import unittest

from rallycup.championship import ChampionshipPointsCalculator, ChampionshipService
from rallycup.core.configuration import TournamentConfiguration
from rallycup.errors import PermissionDeniedError, PreconditionError
from tests.helpers import (
    AllowAll,
    DenyAll,
    complete_match,
    fixed_clock,
    seed_group,
    seed_teams,
    seed_tournament,
)
from tests.mock_utils import MockFirestoreBuilder, patch_transactional


def _team(team_id, *player_ids, group_id="A"):
    return {
        "id": team_id,
        "teamName": team_id.upper(),
        "groupId": group_id,
        "players": [{"playerId": p, "playerName": p.upper()} for p in player_ids],
    }


def _match(match_id, match_type, team1, team2, sets, round_name=None):
    sets1 = sum(1 for s in sets if s[0] > s[1])
    sets2 = len(sets) - sets1
    return {
        "id": match_id,
        "type": match_type,
        "groupId": "A" if match_type == "group" else None,
        "round": round_name,
        "team1Id": team1,
        "team2Id": team2,
        "status": "completed",
        "score": {"team1": sets1, "team2": sets2},
        "sets": [{"team1": a, "team2": b} for a, b in sets],
        "winnerId": team1 if sets1 > sets2 else team2,
    }


TEAMS = [_team("a", "pa1", "pa2"), _team("b", "pb1", "pb2")]
MATCHES = [
    _match("m1", "group", "a", "b", [(6, 1), (6, 1)]),
    _match("f", "knockout", "a", "b", [(6, 4), (6, 4)], round_name="finals"),
]


class ChampionshipCalculatorTestCase(unittest.TestCase):
    def _calculator(self, **points):
        config = TournamentConfiguration.from_dict({"championshipPoints": points})
        return ChampionshipPointsCalculator(config, {"type": "standard"})

    def test_totals(self) -> None:
        result = self._calculator().compute(TEAMS, MATCHES, computed_at="now")
        a, b = result["totals"]

        self.assertEqual(a["teamId"], "a")
        # Group delta 60 + 10, final delta 60 + 4.
        self.assertEqual(a["rpa"], 134)
        self.assertEqual(a["groupPlacement"], 100)
        self.assertEqual(a["knockout"], 80)
        self.assertEqual(a["total"], 314)

        self.assertEqual(b["rpa"], -70)
        self.assertEqual(b["groupPlacement"], 60)
        self.assertEqual(b["knockout"], 0)
        self.assertEqual(b["total"], -10)
        self.assertEqual(b["totalAssigned"], 0)
        self.assertEqual(result["meta"], {"computedAt": "now", "rpaMultiplier": 1.0})

    def test_knockout_loser_keeps_its_rating(self) -> None:
        result = self._calculator().compute(TEAMS, MATCHES)
        b = next(r for r in result["totals"] if r["teamId"] == "b")
        contributions = {c["matchId"]: c for c in b["details"]["rpaContributions"]}
        self.assertEqual(contributions["m1"]["pts"], -70)
        self.assertEqual(contributions["f"]["pts"], 0)
        self.assertTrue(contributions["f"]["isKnockout"])
        self.assertEqual(
            b["details"]["knockoutContributions"],
            [{"matchId": "f", "round": "finals", "pts": 0.0, "isLoss": True}],
        )
        self.assertEqual(b["details"]["groupPlacement"], {"position": 2, "points": 60})

    def test_every_player_gets_the_team_total(self) -> None:
        result = self._calculator().compute(TEAMS, MATCHES)
        a, b = result["totals"]
        self.assertEqual([s["points"] for s in a["split"]], [314, 314])
        self.assertEqual(
            b["split"][0],
            {"playerId": "pb1", "playerName": "PB1", "points": 0.0, "rawPoints": -10},
        )

    def test_multiplier_scales_rating_delta(self) -> None:
        result = self._calculator(rpaMultiplier=2).compute(TEAMS, MATCHES[:1])
        a = result["totals"][0]
        self.assertEqual(a["rpa"], 140)
        self.assertEqual(a["total"], 240)

    def test_unfinished_and_bye_matches_are_ignored(self) -> None:
        pending = dict(MATCHES[0], status="scheduled")
        walkover = dict(MATCHES[1], team2Id=None, winnerId="a")
        result = self._calculator().compute(TEAMS, [pending, walkover])
        a = result["totals"][0]
        self.assertEqual(a["rpa"], 0)
        self.assertEqual(a["knockout"], 0)

    def test_player_awards_across_teams(self) -> None:
        teams = TEAMS + [_team("c", "pa1", "pc2", group_id=None)]
        result = self._calculator().compute(teams, MATCHES)
        awards = ChampionshipPointsCalculator.player_awards(result["totals"])
        self.assertEqual(awards["pa1"]["points"], 314)
        self.assertEqual(awards["pa1"]["teamIds"], ["a", "c"])
        self.assertEqual(awards["pb2"]["points"], 0)


class ChampionshipServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        patcher = patch_transactional()
        patcher.start()
        self.addCleanup(patcher.stop)

        self.db = MockFirestoreBuilder.build()
        seed_tournament(self.db, "t1", status="completed")
        team_ids = seed_teams(self.db, "t1", 2, ranked=False)
        match_ids = seed_group(self.db, "t1", "A", team_ids)
        complete_match(
            self.db,
            "t1",
            match_ids[0],
            [{"team1": 6, "team2": 1}, {"team1": 6, "team2": 1}]
            if self._team1_of(match_ids[0]) == "team01"
            else [{"team1": 1, "team2": 6}, {"team1": 1, "team2": 6}],
        )
        self.leaderboard = self.db.collection("championshipLeaderboard")
        self.leaderboard.document("p1a").set(
            {"playerId": "p1a", "playerName": "Old Name", "totalPoints": 50, "entriesCount": 1}
        )

    def _team1_of(self, match_id):
        return (
            self.db.collection("tournaments")
            .document("t1")
            .collection("matches")
            .document(match_id)
            .get()
            .to_dict()["team1Id"]
        )

    def _player(self, player_id):
        return self.leaderboard.document(player_id).get().to_dict()

    def _apply(self):
        return ChampionshipService.apply(
            "t1", "owner1", db=self.db, oracle=AllowAll(), clock=fixed_clock
        )

    def _revert(self):
        return ChampionshipService.revert(
            "t1", "owner1", db=self.db, oracle=AllowAll(), clock=fixed_clock
        )

    def test_apply_adds_points_once(self) -> None:
        outcome = self._apply()
        self.assertEqual(outcome, {"applied": True, "alreadyApplied": False, "players": 4})

        self.assertEqual(self._player("p1a")["totalPoints"], 220)
        self.assertEqual(self._player("p1a")["entriesCount"], 2)
        self.assertEqual(self._player("p1a")["playerName"], "Old Name")
        self.assertEqual(self._player("p1b")["totalPoints"], 170)
        self.assertEqual(self._player("p2a")["totalPoints"], 0)

        entry = (
            self.leaderboard.document("p1b")
            .collection("entries")
            .document("tournament_t1")
            .get()
        )
        self.assertTrue(entry.exists)
        self.assertEqual(entry.to_dict()["points"], 170)

        again = self._apply()
        self.assertEqual(again, {"applied": False, "alreadyApplied": True})
        self.assertEqual(self._player("p1a")["totalPoints"], 220)

    def test_revert_restores_previous_totals(self) -> None:
        self._apply()
        outcome = self._revert()
        self.assertEqual(outcome, {"reverted": True, "players": 4})

        self.assertEqual(self._player("p1a")["totalPoints"], 50)
        self.assertEqual(self._player("p1a")["entriesCount"], 1)
        self.assertEqual(self._player("p1b")["totalPoints"], 0)
        self.assertEqual(self._player("p1b")["entriesCount"], 0)
        self.assertFalse(
            self.leaderboard.document("p1b")
            .collection("entries")
            .document("tournament_t1")
            .get()
            .exists
        )
        self.assertFalse(
            self.db.collection("championshipApplied").document("t1").get().exists
        )

    def test_revert_without_application_is_a_no_op(self) -> None:
        self.assertEqual(self._revert(), {"reverted": False})
        self.assertEqual(self._player("p1a")["totalPoints"], 50)

    def test_apply_requires_a_completed_tournament(self) -> None:
        self.db.collection("tournaments").document("t1").update(
            {"status": "knockout_phase"}
        )
        with self.assertRaises(PreconditionError):
            self._apply()

    def test_apply_requires_permission(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            ChampionshipService.apply("t1", "stranger", db=self.db, oracle=DenyAll())


if __name__ == "__main__":
    unittest.main()
