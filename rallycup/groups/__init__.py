"""Group-phase generation: balanced groups and round-robin pairings."""

from .balancer import (
    balance_groups,
    calculate_group_balance_score,
    distribute_serpentine,
    order_teams_for_balancing,
    preview_groups_distribution,
)
from .scheduler import (
    RoundRobinScheduler,
    calculate_total_round_robin_matches,
    generate_round_robin,
)

__all__ = [
    "RoundRobinScheduler",
    "balance_groups",
    "calculate_group_balance_score",
    "calculate_total_round_robin_matches",
    "distribute_serpentine",
    "generate_round_robin",
    "order_teams_for_balancing",
    "preview_groups_distribution",
]
