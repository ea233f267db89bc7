"""Tests for the rating delta computation."""

from __future__ import annotations

import unittest

from rallycup.rating import (
    compute_from_sets,
    pick_two_ratings,
    rating_delta,
    upset_factor,
)


class ComputeFromSetsTestCase(unittest.TestCase):
    def test_counts_sets_and_games(self) -> None:
        summary = compute_from_sets(
            [
                {"team1": 6, "team2": 4},
                {"team1": 3, "team2": 6},
                {"team1": 7, "team2": 5},
            ]
        )
        self.assertEqual((summary.sets_a, summary.sets_b), (2, 1))
        self.assertEqual((summary.games_a, summary.games_b), (16, 15))
        self.assertEqual(summary.winner, "A")

    def test_level_set_counts_for_nobody(self) -> None:
        summary = compute_from_sets([{"team1": 6, "team2": 6}])
        self.assertEqual((summary.sets_a, summary.sets_b), (0, 0))
        self.assertIsNone(summary.winner)

    def test_missing_sets(self) -> None:
        summary = compute_from_sets(None)
        self.assertEqual(summary.games_a + summary.games_b, 0)
        self.assertIsNone(summary.winner)


class UpsetFactorTestCase(unittest.TestCase):
    def test_bands(self) -> None:
        cases = [
            (-2500, 0.40),
            (-2000, 0.40),
            (-1999, 0.60),
            (-1500, 0.60),
            (-1000, 0.75),
            (-900, 0.75),
            (-500, 0.90),
            (-300, 0.90),
            (-299, 1.0),
            (0, 1.0),
            (299, 1.0),
            (300, 1.10),
            (900, 1.10),
            (901, 1.25),
            (1500, 1.25),
            (2000, 1.40),
            (2001, 1.60),
        ]
        for gap, expected in cases:
            with self.subTest(gap=gap):
                self.assertEqual(upset_factor(gap), expected)


class PickTwoRatingsTestCase(unittest.TestCase):
    def test_pads_with_fallback(self) -> None:
        self.assertEqual(pick_two_ratings([{"ranking": 1200}], 1500), (1200.0, 1500.0))

    def test_unrated_players_use_fallback(self) -> None:
        players = [{"ranking": None}, {"ranking": True}, {"ranking": 900}]
        self.assertEqual(pick_two_ratings(players, 1400), (1400.0, 1400.0))

    def test_only_first_two_players_count(self) -> None:
        players = [{"ranking": 1000}, {"ranking": 1100}, {"ranking": 5000}]
        self.assertEqual(pick_two_ratings(players), (1000.0, 1100.0))


class RatingDeltaTestCase(unittest.TestCase):
    def test_even_match(self) -> None:
        result = rating_delta((1500, 1500), (1500, 1500), 12, 7, "A")
        self.assertEqual(result.gap, 0)
        self.assertEqual(result.factor, 1.0)
        self.assertEqual(result.base, 60)
        self.assertEqual(result.points, 65)

    def test_upset_is_rewarded(self) -> None:
        # gap 1200 -> 1.25; (52 + 2) * 1.25 = 67.5 rounds half up
        result = rating_delta((1000, 1000), (1600, 1600), 12, 10, "A")
        self.assertEqual(result.factor, 1.25)
        self.assertEqual(result.points, 68)

    def test_expected_win_is_damped(self) -> None:
        # winner B: gap = 2000 - 3200 = -1200 -> 0.75; (52 + 9) * 0.75 = 45.75
        result = rating_delta((1000, 1000), (1600, 1600), 3, 12, "B")
        self.assertEqual(result.game_difference, 9)
        self.assertEqual(result.factor, 0.75)
        self.assertEqual(result.points, 46)

    def test_never_negative(self) -> None:
        result = rating_delta((100, 100), (100, 100), 13, 18, "A")
        self.assertEqual(result.points, 0)

    def test_unknown_winner(self) -> None:
        with self.assertRaises(ValueError):
            rating_delta((1500, 1500), (1500, 1500), 6, 4, "C")


if __name__ == "__main__":
    unittest.main()
