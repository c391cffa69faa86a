"""Pipeline statistics and kanban grouping derived from the client list."""

import math
from collections.abc import Sequence

from outreach_tracker.models import Client, PipelineMetrics, StageCount

# Lost clients are left off the board and the pipeline chart
BOARD_STATUSES = ["Lead", "Contacted", "Demo Built", "Won"]


def _percent(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


def compute_metrics(clients: Sequence[Client]) -> PipelineMetrics:
    """Count clients per stage and derive the conversion rate.

    The conversion rate is the share of Won clients over all clients,
    rounded half up to a whole percent, and 0 for an empty list.
    """
    total = len(clients)
    counts: dict[str, int] = {}
    for client in clients:
        counts[client.status] = counts.get(client.status, 0) + 1

    won = counts.get("Won", 0)
    return PipelineMetrics(
        total=total,
        demo_built=counts.get("Demo Built", 0),
        won=won,
        conversion_rate=math.floor(_percent(won, total) + 0.5),
        pipeline=[
            StageCount(
                status=status,
                count=counts.get(status, 0),
                percentage=_percent(counts.get(status, 0), total),
            )
            for status in BOARD_STATUSES
        ],
    )


def group_by_status(clients: Sequence[Client]) -> dict[str, list[Client]]:
    """Kanban columns: board statuses in order, each with its clients in list order."""
    board: dict[str, list[Client]] = {status: [] for status in BOARD_STATUSES}
    for client in clients:
        if client.status in board:
            board[client.status].append(client)
    return board
