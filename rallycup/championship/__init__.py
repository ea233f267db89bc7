"""Championship points: computation and application to the leaderboard."""

from .calculator import ChampionshipPointsCalculator
from .services import ChampionshipService

__all__ = ["ChampionshipPointsCalculator", "ChampionshipService"]
