"""Tests for serpentine group balancing."""

from __future__ import annotations

import random
import unittest

from rallycup.errors import InsufficientTeams, ValidationError
from rallycup.groups import (
    balance_groups,
    calculate_group_balance_score,
    distribute_serpentine,
    order_teams_for_balancing,
    preview_groups_distribution,
)


def _teams(count, ranked=True):
    return [
        {"id": f"team{i:02d}", "averageRanking": float(i) if ranked else None}
        for i in range(1, count + 1)
    ]


def _ranks(group):
    return [int(team_id[4:]) for team_id in group["teamIds"]]


class GroupBalancerTestCase(unittest.TestCase):
    def test_serpentine_sixteen_teams(self) -> None:
        groups = balance_groups(_teams(16), 4, 4, random.Random(1))
        self.assertEqual([g["id"] for g in groups], ["A", "B", "C", "D"])
        self.assertEqual(groups[0]["name"], "Group A")
        self.assertEqual(_ranks(groups[0]), [1, 8, 9, 16])
        self.assertEqual(_ranks(groups[1]), [2, 7, 10, 15])
        self.assertEqual(_ranks(groups[2]), [3, 6, 11, 14])
        self.assertEqual(_ranks(groups[3]), [4, 5, 12, 13])

    def test_each_group_takes_one_team_per_quartile(self) -> None:
        groups = balance_groups(_teams(16), 4, 4)
        for group in groups:
            quartiles = sorted((rank - 1) // 4 for rank in _ranks(group))
            self.assertEqual(quartiles, [0, 1, 2, 3])

    def test_input_order_does_not_matter_for_ranked_teams(self) -> None:
        teams = _teams(12)
        shuffled = list(teams)
        random.Random(3).shuffle(shuffled)
        self.assertEqual(
            balance_groups(teams, 3, 4), balance_groups(shuffled, 3, 4)
        )

    def test_unranked_teams_go_last(self) -> None:
        teams = _teams(3) + [
            {"id": "u1", "averageRanking": None},
            {"id": "u2"},
            {"id": "u3", "averageRanking": None},
        ]
        ordered = order_teams_for_balancing(teams, random.Random(5))
        self.assertEqual([t["id"] for t in ordered[:3]], ["team01", "team02", "team03"])
        self.assertEqual({t["id"] for t in ordered[3:]}, {"u1", "u2", "u3"})

    def test_excess_teams_are_not_placed(self) -> None:
        groups = balance_groups(_teams(18), 4, 4)
        placed = {team_id for g in groups for team_id in g["teamIds"]}
        self.assertEqual(len(placed), 16)
        self.assertNotIn("team17", placed)
        self.assertNotIn("team18", placed)

    def test_insufficient_teams(self) -> None:
        with self.assertRaises(InsufficientTeams) as cm:
            balance_groups(_teams(15), 4, 4)
        self.assertEqual(cm.exception.status_code, 412)
        self.assertEqual(cm.exception.context["required"], 16)

    def test_invalid_group_count(self) -> None:
        with self.assertRaises(ValidationError):
            distribute_serpentine(_teams(40), 9, 4)


class GroupPreviewTestCase(unittest.TestCase):
    def test_preview_is_perfectly_balanced(self) -> None:
        preview = preview_groups_distribution(_teams(16), 4, 4)
        self.assertEqual([g["averageRanking"] for g in preview], [8.5] * 4)
        self.assertEqual(len(preview[0]["teams"]), 4)
        self.assertEqual(calculate_group_balance_score(preview), 0.0)

    def test_balance_score_of_uneven_groups(self) -> None:
        groups = [{"averageRanking": 2.0}, {"averageRanking": 4.0}]
        self.assertEqual(calculate_group_balance_score(groups), 1.0)

    def test_balance_score_without_rankings(self) -> None:
        preview = preview_groups_distribution(_teams(6, ranked=False), 2, 3)
        self.assertIsNone(calculate_group_balance_score(preview))


if __name__ == "__main__":
    unittest.main()
