"""Knockout bracket construction."""

from .builder import (
    BracketBuilder,
    BracketPlan,
    is_power_of_two,
    next_power_of_two,
    pad_seeds_with_byes,
)

__all__ = [
    "BracketBuilder",
    "BracketPlan",
    "is_power_of_two",
    "next_power_of_two",
    "pad_seeds_with_byes",
]
