"""Global constants for the rallycup application."""

from __future__ import annotations

from enum import Enum

# Database-related constants
FIRESTORE_BATCH_LIMIT = 400

# Collection names
TOURNAMENTS_COLLECTION = "tournaments"
TEAMS_COLLECTION = "teams"
MATCHES_COLLECTION = "matches"
STANDINGS_COLLECTION = "standings"
LEADERBOARD_COLLECTION = "championshipLeaderboard"
LEADERBOARD_ENTRIES_COLLECTION = "entries"
APPLIED_COLLECTION = "championshipApplied"


class TournamentStatus(str, Enum):
    """Lifecycle phases of a tournament."""

    DRAFT = "draft"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    GROUPS_GENERATION = "groups_generation"
    GROUPS_PHASE = "groups_phase"
    KNOCKOUT_PHASE = "knockout_phase"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchType(str, Enum):
    GROUP = "group"
    KNOCKOUT = "knockout"


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TeamStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"


class KnockoutRound(str, Enum):
    """Knockout rounds, ordered from the widest to the final."""

    ROUND_OF_16 = "round_of_16"
    QUARTER_FINALS = "quarter_finals"
    SEMI_FINALS = "semi_finals"
    FINALS = "finals"
    THIRD_PLACE = "third_place"


class PointsSystemType(str, Enum):
    STANDARD = "standard"
    RANKING_BASED = "ranking_based"
    TIE_BREAK = "tie_break"


# Bracket slot markers
BYE = "BYE"
PENDING_SLOT_NAME = "Qualif."

# Knockout rounds keyed by the number of bracket slots they start with
ROUND_BY_SLOT_COUNT = {
    16: KnockoutRound.ROUND_OF_16,
    8: KnockoutRound.QUARTER_FINALS,
    4: KnockoutRound.SEMI_FINALS,
    2: KnockoutRound.FINALS,
}
KNOCKOUT_ROUND_ORDER = [
    KnockoutRound.ROUND_OF_16,
    KnockoutRound.QUARTER_FINALS,
    KnockoutRound.SEMI_FINALS,
    KnockoutRound.FINALS,
]

# Group names, one letter per group
GROUP_NAMES = "ABCDEFGH"

# Configuration limits
MIN_GROUPS = 2
MAX_GROUPS = 8
MIN_TEAMS_PER_GROUP = 3
MAX_TEAMS_PER_GROUP = 8
MIN_QUALIFIED_PER_GROUP = 1
# The widest bracket starts with the round of 16
MAX_KNOCKOUT_TEAMS = max(ROUND_BY_SLOT_COUNT)
MIN_PLAYERS_PER_TEAM = 1
MAX_PLAYERS_PER_TEAM = 8
MAX_TOURNAMENT_NAME_LENGTH = 100

# Rating defaults
DEFAULT_RATING = 1500

DEFAULT_CHAMPIONSHIP_POINTS = {
    "rpaMultiplier": 1,
    "groupPlacementPoints": {"1": 100, "2": 60, "3": 40, "4": 20},
    "knockoutProgressPoints": {
        KnockoutRound.ROUND_OF_16.value: 10,
        KnockoutRound.QUARTER_FINALS.value: 20,
        KnockoutRound.SEMI_FINALS.value: 40,
        KnockoutRound.FINALS.value: 80,
        KnockoutRound.THIRD_PLACE.value: 15,
    },
}

DEFAULT_CONFIGURATION = {
    "numberOfGroups": 4,
    "teamsPerGroup": 4,
    "qualifiedPerGroup": 2,
    "includeThirdPlaceMatch": True,
    "defaultRankingForNonParticipants": DEFAULT_RATING,
    "championshipPoints": DEFAULT_CHAMPIONSHIP_POINTS,
}

DEFAULT_POINTS_SYSTEMS = {
    PointsSystemType.STANDARD.value: {"win": 3, "draw": 1, "loss": 0},
    PointsSystemType.RANKING_BASED.value: {
        "win": 3,
        "draw": 1,
        "loss": 0,
        "upsetBonus": 1.5,
        "rankingDifferenceThreshold": 10,
    },
    PointsSystemType.TIE_BREAK.value: {
        "win": 3,
        "draw": 1,
        "loss": 0,
        "tieBreakWin": 2,
        "tieBreakLoss": 1,
    },
}

# Authorization actions
ACTION_SUBMIT_RESULT = "submit_result"
ACTION_CLEAR_RESULT = "clear_result"
ACTION_TRANSITION = "transition"
ACTION_ROLLBACK = "rollback"
ACTION_APPLY_CHAMPIONSHIP = "apply_championship"
