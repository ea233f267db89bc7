"""Tournament configuration with defaults and range checks."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from rallycup.errors import ValidationError

from .constants import (
    DEFAULT_CONFIGURATION,
    MAX_GROUPS,
    MAX_KNOCKOUT_TEAMS,
    MAX_TEAMS_PER_GROUP,
    MIN_GROUPS,
    MIN_QUALIFIED_PER_GROUP,
    MIN_TEAMS_PER_GROUP,
)


def _as_int(data: dict[str, Any], key: str) -> int:
    try:
        return int(data[key])
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{key} must be an integer.", {key: data[key]}) from e


@dataclass
class TournamentConfiguration:
    """Group and knockout settings of a tournament."""

    numberOfGroups: int = 4  # noqa: N815
    teamsPerGroup: int = 4  # noqa: N815
    qualifiedPerGroup: int = 2  # noqa: N815
    includeThirdPlaceMatch: bool = True  # noqa: N815
    defaultRankingForNonParticipants: float = 1500  # noqa: N815
    championshipPoints: dict[str, Any] = field(  # noqa: N815
        default_factory=lambda: copy.deepcopy(
            DEFAULT_CONFIGURATION["championshipPoints"]
        )
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TournamentConfiguration:
        """Build a configuration, filling missing keys with the defaults."""
        merged = copy.deepcopy(DEFAULT_CONFIGURATION)
        for key, value in (data or {}).items():
            if key == "championshipPoints" and isinstance(value, dict):
                merged["championshipPoints"].update(value)
            elif key in merged:
                merged[key] = value
        for key in ("numberOfGroups", "teamsPerGroup", "qualifiedPerGroup"):
            merged[key] = _as_int(merged, key)
        merged["includeThirdPlaceMatch"] = bool(merged["includeThirdPlaceMatch"])
        return cls(**merged)

    @property
    def required_teams(self) -> int:
        return self.numberOfGroups * self.teamsPerGroup

    @property
    def knockout_teams(self) -> int:
        return self.numberOfGroups * self.qualifiedPerGroup

    @property
    def rpa_multiplier(self) -> float:
        return float(self.championshipPoints.get("rpaMultiplier", 1))

    def validate(self) -> None:
        """Raise ValidationError when a setting is out of range."""
        if not MIN_GROUPS <= self.numberOfGroups <= MAX_GROUPS:
            raise ValidationError(
                f"Number of groups must be between {MIN_GROUPS} and {MAX_GROUPS}.",
                {"numberOfGroups": self.numberOfGroups},
            )
        if not MIN_TEAMS_PER_GROUP <= self.teamsPerGroup <= MAX_TEAMS_PER_GROUP:
            raise ValidationError(
                f"Teams per group must be between {MIN_TEAMS_PER_GROUP} and "
                f"{MAX_TEAMS_PER_GROUP}.",
                {"teamsPerGroup": self.teamsPerGroup},
            )
        if not MIN_QUALIFIED_PER_GROUP <= self.qualifiedPerGroup <= self.teamsPerGroup:
            raise ValidationError(
                "Qualified teams per group must be between "
                f"{MIN_QUALIFIED_PER_GROUP} and the number of teams per group.",
                {"qualifiedPerGroup": self.qualifiedPerGroup},
            )
        if self.knockout_teams > MAX_KNOCKOUT_TEAMS:
            raise ValidationError(
                f"At most {MAX_KNOCKOUT_TEAMS} teams can qualify for the knockout "
                f"phase, not {self.knockout_teams}.",
                {
                    "numberOfGroups": self.numberOfGroups,
                    "qualifiedPerGroup": self.qualifiedPerGroup,
                },
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "numberOfGroups": self.numberOfGroups,
            "teamsPerGroup": self.teamsPerGroup,
            "qualifiedPerGroup": self.qualifiedPerGroup,
            "includeThirdPlaceMatch": self.includeThirdPlaceMatch,
            "defaultRankingForNonParticipants": self.defaultRankingForNonParticipants,
            "championshipPoints": copy.deepcopy(self.championshipPoints),
        }
