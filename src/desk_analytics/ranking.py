"""Leaderboard ranking, ticket-age bucketing and pending-ticket grouping."""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from desk_analytics.models import AgentStats
from desk_analytics.status import STATUS_ORDER, normalize_status

RANK_TAGS = ("gold", "silver", "bronze")


def leaderboard(agents: Iterable[AgentStats]) -> list[AgentStats]:
    """Agents by resolved tickets, most first. Ties keep their input order."""
    return sorted(agents, key=lambda a: a.tickets_resolved, reverse=True)


def rank_tag(position: int) -> str:
    """Tag for a 0-based leaderboard position: gold, silver, bronze or ""."""
    if 0 <= position < len(RANK_TAGS):
        return RANK_TAGS[position]
    return ""


# =============================================================================
# Age buckets
# =============================================================================


@dataclass(frozen=True)
class AgeBucket:
    """Ticket-age window; ``max_days`` is inclusive, None means unbounded."""

    key: str
    label: str
    max_days: int | None = None


AGENT_AGE_BUCKETS = (
    AgeBucket("fifteenDays", "1 - 15 Days Tickets", 15),
    AgeBucket("sixteenToThirty", "16 - 30 Days Tickets", 30),
    AgeBucket("month", "30+ Days Tickets"),
)

DEPARTMENT_AGE_BUCKETS = (
    AgeBucket("1_7", "1 - 7 Days Tickets", 7),
    AgeBucket("8_15", "8 - 15 Days Tickets", 15),
    AgeBucket("15plus", "15+ Days Tickets"),
)


def bucket_for_age(days: int, buckets: Sequence[AgeBucket]) -> AgeBucket:
    """First bucket whose window holds ``days``; ages below 1 land in the first."""
    for bucket in buckets:
        if bucket.max_days is None or days <= bucket.max_days:
            return bucket
    return buckets[-1]


def cell_key(bucket: AgeBucket, status: str) -> str:
    return f"{bucket.key}_{status}"


@dataclass
class AgeGrid:
    """Counts and ticket numbers per age bucket and pending status."""

    buckets: Sequence[AgeBucket]
    cells: dict[str, list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for bucket in self.buckets:
            for status in STATUS_ORDER:
                self.cells.setdefault(cell_key(bucket, status), [])

    def add(self, days: int, status: str, ticket_number: str) -> bool:
        """File a ticket; returns False when the status is not a pending one."""
        status = normalize_status(status)
        if status not in STATUS_ORDER:
            return False
        bucket = bucket_for_age(days, self.buckets)
        self.cells[cell_key(bucket, status)].append(ticket_number)
        return True

    def tickets(self, bucket: AgeBucket, statuses: Iterable[str] = STATUS_ORDER) -> list[str]:
        numbers: list[str] = []
        for status in statuses:
            numbers.extend(self.cells[cell_key(bucket, status)])
        return numbers

    @property
    def total(self) -> int:
        return sum(len(v) for v in self.cells.values())

    def all_tickets(self) -> list[str]:
        return [n for bucket in self.buckets for n in self.tickets(bucket)]

    def flatten(self, prefix: str = "") -> dict[str, Any]:
        """Flat row fields: ``<prefix><bucket>_<status>`` count and ``..._numbers`` list."""
        row: dict[str, Any] = {}
        for bucket in self.buckets:
            row[f"{prefix}{bucket.key}"] = len(self.tickets(bucket))
            for status in STATUS_ORDER:
                numbers = self.cells[cell_key(bucket, status)]
                row[f"{prefix}{bucket.key}_{status}"] = len(numbers)
                row[f"{prefix}{bucket.key}_{status}_numbers"] = list(numbers)
        return row


# =============================================================================
# Pending grouping
# =============================================================================


def group_rows(
    rows: Iterable[dict[str, Any]],
    key: Callable[[dict[str, Any]], str] = lambda r: r["name"],
) -> list[dict[str, Any]]:
    """Group rows by agent and annotate row-span metadata.

    Each output row gets ``totalTickets`` (its group's size), ``isFirst``
    and ``rowSpan``. Groups appear in order of first occurrence and keep
    their internal order.
    """
    groups: dict[str, list[dict[str, Any]]] = {}
    for row in rows:
        groups.setdefault(key(row), []).append(row)

    grouped = []
    for members in groups.values():
        size = len(members)
        for i, row in enumerate(members):
            grouped.append({**row, "totalTickets": size, "isFirst": i == 0, "rowSpan": size})
    return grouped
