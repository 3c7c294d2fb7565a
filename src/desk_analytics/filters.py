"""Composable record filters.

Every filter is a plain predicate. Views pick the filters they need and
combine them with ``apply_filters``; an unset filter value always passes.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import TypeVar
from zoneinfo import ZoneInfo

from desk_analytics.models import EnrichedRecord, Ticket
from desk_analytics.status import normalize_status
from desk_analytics.utils.dates import day_bounds, parse_timestamp

T = TypeVar("T")

ALL = "all"

_NUMERIC_QUERY = re.compile(r"^\d+$")


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of local calendar days."""

    start: date | None = None
    end: date | None = None
    tz: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))

    @property
    def active(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, value: object) -> bool:
        """Whether a timestamp falls inside the range.

        With the range active, a missing or unparseable timestamp fails.
        """
        if not self.active:
            return True
        ts = parse_timestamp(value, self.tz)
        if ts is None:
            return False
        lower, upper = day_bounds(self.start, self.end, self.tz)
        if lower and ts < lower:
            return False
        if upper and ts > upper:
            return False
        return True


@dataclass(frozen=True)
class ViewFilters:
    """Filter state shared by the table views."""

    date_range: DateRange = field(default_factory=DateRange)
    department_id: str | None = None
    agent_names: frozenset[str] = frozenset()
    statuses: frozenset[str] = frozenset()
    search: str = ""

    @classmethod
    def build(
        cls,
        date_range: DateRange | None = None,
        department_id: str | None = None,
        agent_names: Iterable[str] | None = None,
        statuses: Iterable[str] | None = None,
        search: str | None = None,
    ) -> "ViewFilters":
        """Create filters, normalizing the selected statuses."""
        if department_id == ALL:
            department_id = None
        return cls(
            date_range=date_range or DateRange(),
            department_id=department_id or None,
            agent_names=frozenset(agent_names or ()),
            statuses=frozenset(normalize_status(s) for s in statuses or () if s),
            search=search or "",
        )

    @property
    def query(self) -> str:
        return self.search.strip().lower()


def apply_filters(items: Iterable[T], *predicates: Callable[[T], bool]) -> list[T]:
    """Keep items that pass every predicate."""
    return [item for item in items if all(p(item) for p in predicates)]


# =============================================================================
# Reference timestamps
# =============================================================================


def closed_or_created(ticket: Ticket) -> str | None:
    """Reference time for ticket views: closed time when present."""
    return ticket.closed_time or ticket.created_time


def created_time_of(item: Ticket | EnrichedRecord) -> str | None:
    """Reference time for metric, pending and archived views."""
    return item.created_time


# =============================================================================
# Predicates
# =============================================================================


def department_matches(
    department_id: str | None,
    department_name: str | None,
    selected_id: str | None,
    departments: Mapping[str, str],
) -> bool:
    """Match by id, or by the selected department's display name."""
    if not selected_id:
        return True
    if department_id and str(department_id) == str(selected_id):
        return True
    selected_name = departments.get(selected_id)
    return bool(selected_name) and department_name == selected_name


def agent_matches(agent_name: str, agent_names: frozenset[str]) -> bool:
    if not agent_names:
        return True
    return agent_name in agent_names


def status_matches(status: str | None, statuses: frozenset[str]) -> bool:
    """Compare normalized status; an empty selection passes everything."""
    if not statuses:
        return True
    return normalize_status(status) in statuses


def assignee_matches(ticket: Ticket, agent_id: str | None) -> bool:
    """Match the upstream assignee id (agent-performance endpoint)."""
    if not agent_id or agent_id == ALL:
        return True
    return str(ticket.assignee_id or "") == str(agent_id)


def text_matches(query: str, *fields: object) -> bool:
    """Case-insensitive substring match over space-joined fields."""
    if not query:
        return True
    combined = " ".join("" if f is None else str(f) for f in fields).lower()
    return query.lower() in combined


def archived_search_matches(query: str, agent_name: str | None, ticket_number: str | None) -> bool:
    """Search rule for archived tickets.

    A purely numeric query must equal the ticket number; any other query
    matches when a word of the agent name starts with it.
    """
    q = query.strip().lower()
    if not q:
        return True
    if _NUMERIC_QUERY.match(q):
        return str(ticket_number or "").strip().lower() == q
    words = str(agent_name or "").lower().split()
    return any(w.startswith(q) for w in words)


# =============================================================================
# Predicate factories for the common filter set
# =============================================================================


def record_filters(filters: ViewFilters, departments: Mapping[str, str]) -> list[Callable[[EnrichedRecord], bool]]:
    """Date (created), agent, department and status filters for metric records."""
    return [
        lambda r: filters.date_range.contains(created_time_of(r)),
        lambda r: agent_matches(r.agent_name, filters.agent_names),
        lambda r: department_matches(r.department_id, r.department_name, filters.department_id, departments),
        lambda r: status_matches(r.status, filters.statuses),
    ]


def ticket_filters(filters: ViewFilters, departments: Mapping[str, str]) -> list[Callable[[Ticket], bool]]:
    """Date (created), agent, department and status filters for tickets."""
    return [
        lambda t: filters.date_range.contains(created_time_of(t)),
        lambda t: agent_matches(t.agent_name, filters.agent_names),
        lambda t: department_matches(
            t.department_id, t.department_name or departments.get(t.department_id or ""),
            filters.department_id, departments,
        ),
        lambda t: status_matches(t.status, filters.statuses),
    ]
