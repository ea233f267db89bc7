"""Rating-exchange computation between two paired teams."""

from .delta import (
    RatingDeltaResult,
    SetsSummary,
    compute_from_sets,
    pick_two_ratings,
    rating_delta,
    upset_factor,
)

__all__ = [
    "RatingDeltaResult",
    "SetsSummary",
    "compute_from_sets",
    "pick_two_ratings",
    "rating_delta",
    "upset_factor",
]
