"""BracketBuilder: single-elimination trees with BYE padding.

A bracket is described by its first-round slots, an ordered list where each
entry is a team id, the ``BYE`` marker, or ``None`` for a slot still waiting
for a qualifier. Matches refer to their parent by id (``nextMatchId``) and
slot (``nextMatchPosition``), so the tree is only ever walked child to parent.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from rallycup.core.constants import (
    BYE,
    KNOCKOUT_ROUND_ORDER,
    PENDING_SLOT_NAME,
    ROUND_BY_SLOT_COUNT,
    KnockoutRound,
    MatchStatus,
    MatchType,
)
from rallycup.errors import InvalidSeedCount


def is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def next_power_of_two(n: int) -> int:
    """Return the smallest power of two that is at least ``max(n, 2)``."""
    return 2 ** math.ceil(math.log2(max(2, n)))


def is_real_team(slot: str | None) -> bool:
    return slot is not None and slot != BYE


def pad_seeds_with_byes(seeds: list[str]) -> list[str]:
    """Pad a seed list to the next power of two with BYE slots.

    Each BYE is paired against one of the top seeds, so every padded first
    round match has exactly one real team. A list whose length is already a
    power of two is returned unchanged.
    """
    size = next_power_of_two(len(seeds))
    if len(seeds) == size:
        return list(seeds)
    byes = size - len(seeds)
    slots: list[str] = []
    for seed in seeds[:byes]:
        slots.extend([seed, BYE])
    slots.extend(seeds[byes:])
    return slots


def _slot_name(slot: str | None, team_names: dict[str, str]) -> str:
    if slot == BYE:
        return BYE
    if slot is None:
        return PENDING_SLOT_NAME
    return team_names.get(slot, "")


@dataclass
class BracketPlan:
    """The knockout matches of a bracket plus the record of its seeding."""

    starting_round: KnockoutRound
    slots: list[Any]
    include_third_place: bool
    matches: list[dict[str, Any]] = field(default_factory=list)

    def summary(self, created_at: Any) -> dict[str, Any]:
        """Return the immutable seeding record stored on the tournament."""
        return {
            "startingRound": self.starting_round.value,
            "includeThirdPlace": self.include_third_place,
            "slots": list(self.slots),
            "createdAt": created_at,
        }

    def matches_for_round(self, round_name: KnockoutRound) -> list[dict[str, Any]]:
        return [m for m in self.matches if m["round"] == round_name.value]


class BracketBuilder:
    """Builds knockout match rows from first-round slots."""

    @staticmethod
    def starting_round_for(slot_count: int) -> KnockoutRound:
        """Return the round a bracket of ``slot_count`` slots starts with."""
        starting_round = ROUND_BY_SLOT_COUNT.get(slot_count)
        if starting_round is None:
            raise InvalidSeedCount(
                f"A bracket cannot start with {slot_count} slots.",
                {"slotCount": slot_count, "supported": sorted(ROUND_BY_SLOT_COUNT)},
            )
        return starting_round

    @staticmethod
    def from_seeds(
        seeds: list[str],
        team_names: dict[str, str],
        include_third_place: bool = True,
        new_id: Callable[[], str] | None = None,
    ) -> BracketPlan:
        """Pad ``seeds`` with BYEs as needed and build the bracket."""
        if len(seeds) < 2:
            raise InvalidSeedCount(
                "At least two teams are needed for a knockout bracket.",
                {"seedCount": len(seeds)},
            )
        return BracketBuilder.build(
            pad_seeds_with_byes(seeds), team_names, include_third_place, new_id
        )

    @staticmethod
    def build(
        slots: list[str | None],
        team_names: dict[str, str],
        include_third_place: bool = True,
        new_id: Callable[[], str] | None = None,
    ) -> BracketPlan:
        """Build every knockout match for explicit first-round ``slots``.

        Round one pairs ``slots[2i]`` with ``slots[2i + 1]``. Later rounds are
        created empty and linked: the i-th match of a round feeds match
        ``i // 2`` of the next round, in slot 1 when i is even and slot 2 when
        it is odd. A first-round match with a single real team is completed
        at once and its team is written into the parent slot. With a
        third-place match, semifinal ``n`` sends its loser to slot ``n`` of it
        through ``loserNextMatchId``/``loserNextMatchPosition``. No third-place
        match is built when a semifinal is a walkover.
        """
        new_id = new_id or (lambda: uuid.uuid4().hex)
        starting_round = BracketBuilder.starting_round_for(len(slots))
        rounds = KNOCKOUT_ROUND_ORDER[KNOCKOUT_ROUND_ORDER.index(starting_round) :]

        # Preallocate ids so every match can point at its parent.
        ids_by_round: list[list[str]] = []
        match_count = len(slots) // 2
        for _ in rounds:
            ids_by_round.append([new_id() for _ in range(match_count)])
            match_count //= 2

        plan = BracketPlan(starting_round, list(slots), include_third_place)
        by_id: dict[str, dict[str, Any]] = {}

        for round_index, round_name in enumerate(rounds):
            round_ids = ids_by_round[round_index]
            parent_ids = (
                ids_by_round[round_index + 1]
                if round_index + 1 < len(rounds)
                else None
            )
            for i, match_id in enumerate(round_ids):
                if round_index == 0:
                    team1, team2 = slots[2 * i], slots[2 * i + 1]
                else:
                    team1 = team2 = None
                match = {
                    "id": match_id,
                    "type": MatchType.KNOCKOUT.value,
                    "groupId": None,
                    "round": round_name.value,
                    "matchNumber": i + 1,
                    "team1Id": team1 if is_real_team(team1) else None,
                    "team2Id": team2 if is_real_team(team2) else None,
                    "team1Name": _slot_name(team1, team_names),
                    "team2Name": _slot_name(team2, team_names),
                    "status": MatchStatus.SCHEDULED.value,
                    "score": None,
                    "sets": [],
                    "winnerId": None,
                    "nextMatchId": parent_ids[i // 2] if parent_ids else None,
                    "nextMatchPosition": (1 if i % 2 == 0 else 2)
                    if parent_ids
                    else None,
                    "loserNextMatchId": None,
                    "loserNextMatchPosition": None,
                    "completedAt": None,
                }
                plan.matches.append(match)
                by_id[match_id] = match

        for match in plan.matches_for_round(starting_round):
            BracketBuilder._advance_walkover(match, by_id)

        semifinals = plan.matches_for_round(KnockoutRound.SEMI_FINALS)
        # A walkover semifinal has no loser, so the third-place match could
        # never be filled.
        if len(slots) < 4 or any(m.get("walkover") for m in semifinals):
            plan.include_third_place = False

        if plan.include_third_place:
            third_place = BracketBuilder.third_place_match(new_id())
            for semifinal in semifinals:
                semifinal["loserNextMatchId"] = third_place["id"]
                semifinal["loserNextMatchPosition"] = semifinal["matchNumber"]
            plan.matches.append(third_place)

        return plan

    @staticmethod
    def _advance_walkover(
        match: dict[str, Any], by_id: dict[str, dict[str, Any]]
    ) -> None:
        real = [t for t in (match["team1Id"], match["team2Id"]) if t]
        if len(real) != 1:
            return
        winner_id = real[0]
        winner_name = (
            match["team1Name"] if match["team1Id"] == winner_id else match["team2Name"]
        )
        match["status"] = MatchStatus.COMPLETED.value
        match["winnerId"] = winner_id
        match["walkover"] = True

        parent = by_id.get(match["nextMatchId"]) if match["nextMatchId"] else None
        if parent is not None:
            position = match["nextMatchPosition"]
            parent[f"team{position}Id"] = winner_id
            parent[f"team{position}Name"] = winner_name

    @staticmethod
    def third_place_match(match_id: str) -> dict[str, Any]:
        """Return an empty third-place match, filled by the semifinal losers."""
        return {
            "id": match_id,
            "type": MatchType.KNOCKOUT.value,
            "groupId": None,
            "round": KnockoutRound.THIRD_PLACE.value,
            "matchNumber": 1,
            "team1Id": None,
            "team2Id": None,
            "team1Name": PENDING_SLOT_NAME,
            "team2Name": PENDING_SLOT_NAME,
            "status": MatchStatus.SCHEDULED.value,
            "score": None,
            "sets": [],
            "winnerId": None,
            "nextMatchId": None,
            "nextMatchPosition": None,
            "loserNextMatchId": None,
            "loserNextMatchPosition": None,
            "completedAt": None,
        }
