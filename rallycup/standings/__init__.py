"""Standings: ranking tables derived from completed matches."""

from .engine import StandingsEngine, match_points, match_sets
from .services import StandingsService

__all__ = ["StandingsEngine", "StandingsService", "match_points", "match_sets"]
