"""GroupBalancer: serpentine distribution of ranked teams into groups."""

from __future__ import annotations

import random
import statistics
from typing import Any

from rallycup.core.constants import GROUP_NAMES
from rallycup.errors import InsufficientTeams, ValidationError


def _has_ranking(team: dict[str, Any]) -> bool:
    ranking = team.get("averageRanking")
    return isinstance(ranking, (int, float)) and not isinstance(ranking, bool)


def order_teams_for_balancing(
    teams: list[dict[str, Any]], rng: random.Random | None = None
) -> list[dict[str, Any]]:
    """Order teams strongest first.

    Teams with an ``averageRanking`` come first, ascending (a lower ranking is
    stronger). Unranked teams are shuffled uniformly and appended after them.
    """
    rng = rng or random.Random()
    ranked = sorted(
        (t for t in teams if _has_ranking(t)), key=lambda t: t["averageRanking"]
    )
    unranked = [t for t in teams if not _has_ranking(t)]
    rng.shuffle(unranked)
    return ranked + unranked


def distribute_serpentine(
    teams: list[dict[str, Any]], number_of_groups: int, teams_per_group: int
) -> list[dict[str, Any]]:
    """Snake ``teams`` (already ordered) into ``number_of_groups`` groups.

    Even passes fill groups 0..N-1, odd passes fill N-1..0. Only the first
    ``number_of_groups * teams_per_group`` teams are placed.
    """
    if not 1 <= number_of_groups <= len(GROUP_NAMES):
        raise ValidationError(
            f"Number of groups must be between 1 and {len(GROUP_NAMES)}.",
            {"numberOfGroups": number_of_groups},
        )
    needed = number_of_groups * teams_per_group
    if len(teams) < needed:
        raise InsufficientTeams(
            f"Need {needed} teams for {number_of_groups} groups of "
            f"{teams_per_group}, found {len(teams)}.",
            {"required": needed, "available": len(teams)},
        )

    groups: list[dict[str, Any]] = [
        {"id": GROUP_NAMES[i], "name": f"Group {GROUP_NAMES[i]}", "teamIds": []}
        for i in range(number_of_groups)
    ]
    for index, team in enumerate(teams[:needed]):
        pass_index, offset = divmod(index, number_of_groups)
        if pass_index % 2 == 0:
            group_index = offset
        else:
            group_index = number_of_groups - 1 - offset
        groups[group_index]["teamIds"].append(team["id"])
    return groups


def balance_groups(
    teams: list[dict[str, Any]],
    number_of_groups: int,
    teams_per_group: int,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Order the teams and distribute them. Returns ``[{id, name, teamIds}]``.

    A team's position within its group is its index in ``teamIds`` plus one.
    """
    ordered = order_teams_for_balancing(teams, rng)
    return distribute_serpentine(ordered, number_of_groups, teams_per_group)


def preview_groups_distribution(
    teams: list[dict[str, Any]],
    number_of_groups: int,
    teams_per_group: int,
    rng: random.Random | None = None,
) -> list[dict[str, Any]]:
    """Balance without persisting, expanding each group with its team records."""
    teams_by_id = {t["id"]: t for t in teams}
    preview = []
    for group in balance_groups(teams, number_of_groups, teams_per_group, rng):
        members = [teams_by_id[team_id] for team_id in group["teamIds"]]
        rankings = [t["averageRanking"] for t in members if _has_ranking(t)]
        preview.append(
            {
                **group,
                "teams": members,
                "averageRanking": statistics.mean(rankings) if rankings else None,
            }
        )
    return preview


def calculate_group_balance_score(groups: list[dict[str, Any]]) -> float | None:
    """Population standard deviation of the per-group average rankings.

    Zero means perfectly balanced. Groups without any ranked team are ignored;
    returns None when no group has one.
    """
    averages = [
        g["averageRanking"] for g in groups if g.get("averageRanking") is not None
    ]
    if not averages:
        return None
    return statistics.pstdev(averages)
