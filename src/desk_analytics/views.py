"""Row producers for the dashboard tables.

Each function takes already-fetched tickets or enriched records plus the
current ``ViewFilters`` and returns flat dict rows ready for rendering or
spreadsheet export.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from desk_analytics.durations import (
    format_hours,
    hrs_to_hm,
    hrs_to_minutes,
    minutes_to_days_label,
    minutes_to_hm,
)
from desk_analytics.filters import (
    ViewFilters,
    agent_matches,
    apply_filters,
    archived_search_matches,
    created_time_of,
    department_matches,
    record_filters,
    text_matches,
    ticket_filters,
)
from desk_analytics.models import AgentStats, EnrichedRecord, Ticket
from desk_analytics.ranking import (
    AGENT_AGE_BUCKETS,
    DEPARTMENT_AGE_BUCKETS,
    AgeGrid,
    group_rows,
    leaderboard,
    rank_tag,
)
from desk_analytics.status import STATUS_ORDER, normalize_status, status_sort_key
from desk_analytics.utils.dates import (
    age_in_days,
    first_response_at,
    format_local,
    format_with_month_name,
    parse_timestamp,
)

VIEW_NAMES = ("performance", "metrics", "pending", "archived", "department-age", "agent-age")


def is_pending(status: str | None) -> bool:
    """Table views treat the canonical pending statuses as pending."""
    return normalize_status(status) in STATUS_ORDER


def _department_name(item: Ticket | EnrichedRecord, departments: Mapping[str, str]) -> str:
    return item.department_name or departments.get(item.department_id or "", "") or ""


def _ticket_age(ticket: Ticket, tz: ZoneInfo, now: datetime | None) -> int | None:
    return age_in_days(ticket.created_time, tz, now)


# =============================================================================
# Metrics
# =============================================================================


def agent_average_map(records: Iterable[EnrichedRecord]) -> dict[str, dict[str, Any]]:
    """Per-agent first-response and resolution averages for the metrics table.

    Only values in strict ``H:MM hrs`` form count toward an average; the
    average is rounded to whole minutes. Agents with no contributing value
    get "-" and None.
    """
    sums: dict[str, list[int]] = {}
    for record in records:
        acc = sums.setdefault(record.agent_name, [0, 0, 0, 0])
        fr = hrs_to_minutes(record.metric.first_response_time)
        if fr is not None:
            acc[0] += fr
            acc[1] += 1
        res = hrs_to_minutes(record.metric.resolution_time)
        if res is not None:
            acc[2] += res
            acc[3] += 1

    averages = {}
    for name, (fr_sum, fr_count, res_sum, res_count) in sums.items():
        fr_avg = round(fr_sum / fr_count) if fr_count else None
        res_avg = round(res_sum / res_count) if res_count else None
        averages[name] = {
            "avgFirstResponseHM": minutes_to_hm(fr_avg) if fr_avg is not None else "-",
            "avgFirstResponseMin": fr_avg,
            "avgResolutionHM": minutes_to_hm(res_avg) if res_avg is not None else "-",
            "avgResolutionMin": res_avg,
        }
    return averages


def _history_lines(entries: Iterable[tuple[str, str]]) -> list[str]:
    return [f"{label}: {value}" for label, value in entries]


def metrics_rows(
    records: Iterable[EnrichedRecord],
    filters: ViewFilters,
    departments: Mapping[str, str],
    tz: ZoneInfo,
) -> list[dict[str, Any]]:
    """One row per metric record, sorted by agent name."""
    selected = apply_filters(records, *record_filters(filters, departments))
    query = filters.query
    if query:
        selected = [
            r for r in selected
            if text_matches(
                query, r.agent_name, r.ticket_number, r.status, _department_name(r, departments),
                format_local(r.created_time, tz),
            )
        ]
    selected.sort(key=lambda r: r.agent_name.casefold())
    averages = agent_average_map(selected)

    rows = []
    for r in selected:
        m = r.metric
        avg = averages[r.agent_name]
        resolution_min = hrs_to_minutes(m.resolution_time)
        rows.append({
            "agentName": r.agent_name,
            "ticketNumber": r.ticket_number,
            "status": r.status,
            "departmentName": _department_name(r, departments),
            "createdTime": format_local(r.created_time, tz),
            "firstResponseTime": hrs_to_hm(m.first_response_time),
            "firstResponseAt": first_response_at(r.created_time, m.first_response_time, tz),
            "resolutionTime": hrs_to_hm(m.resolution_time),
            "resolutionDays": minutes_to_days_label(resolution_min),
            "threadCount": m.thread_count,
            "responseCount": m.response_count,
            "outgoingCount": m.outgoing_count,
            "reopenCount": m.reopen_count,
            "reassignCount": m.reassign_count,
            "stagingData": _history_lines((s.status, s.handled_time) for s in m.staging_data),
            "agentsHandled": _history_lines((a.agent_name, a.handling_time) for a in m.agents_handled),
            "avgFirstResponse": avg["avgFirstResponseHM"],
            "avgFirstResponseDays": minutes_to_days_label(avg["avgFirstResponseMin"]),
            "avgResolution": avg["avgResolutionHM"],
            "avgResolutionDays": minutes_to_days_label(avg["avgResolutionMin"]),
        })
    return rows


# =============================================================================
# Pending
# =============================================================================


def pending_rows(
    tickets: Iterable[Ticket],
    filters: ViewFilters,
    departments: Mapping[str, str],
    tz: ZoneInfo,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Pending tickets grouped by agent, with row-span metadata.

    Search narrows the rows before grouping, so group totals reflect what
    is shown.
    """
    selected = apply_filters(
        (t for t in tickets if is_pending(t.status)),
        *ticket_filters(filters, departments),
    )

    rows = []
    for t in selected:
        age = _ticket_age(t, tz, now)
        rows.append({
            "name": t.agent_name,
            "department": _department_name(t, departments),
            "status": t.status,
            "ticketNumber": t.ticket_number or "",
            "ticketCreated": format_with_month_name(t.created_time, tz),
            "daysNotResponded": "" if age is None else age,
        })

    query = filters.query
    if query:
        rows = [
            r for r in rows
            if text_matches(
                query, r["name"], r["department"], r["status"],
                r["ticketNumber"], r["ticketCreated"], r["daysNotResponded"],
            )
        ]

    rows.sort(key=lambda r: (r["name"].casefold(), status_sort_key(r["status"])))
    return group_rows(rows)


# =============================================================================
# Archived
# =============================================================================


def _resolution_hours(ticket: Ticket, tz: ZoneInfo) -> float | str:
    created = parse_timestamp(ticket.created_time, tz)
    closed = parse_timestamp(ticket.closed_time, tz)
    if created is None or closed is None:
        return ""
    return round((closed - created).total_seconds() / 3600, 2)


def archived_rows(
    tickets: Iterable[Ticket],
    filters: ViewFilters,
    departments: Mapping[str, str],
    tz: ZoneInfo,
) -> list[dict[str, Any]]:
    """Archived tickets, filtered by created date and department."""
    selected = apply_filters(
        tickets,
        lambda t: filters.date_range.contains(created_time_of(t)),
        lambda t: department_matches(
            t.department_id, _department_name(t, departments), filters.department_id, departments
        ),
        lambda t: archived_search_matches(filters.search, t.agent_name, t.ticket_number),
    )
    selected.sort(key=lambda t: t.agent_name.lower())

    return [
        {
            "siNo": i,
            "agentName": t.agent_name,
            "departmentName": _department_name(t, departments),
            "ticketNumber": t.ticket_number or "",
            "subject": t.subject,
            "status": t.status,
            "createdTime": format_local(t.created_time, tz),
            "closedTime": format_local(t.closed_time, tz),
            "resolutionTimeHours": _resolution_hours(t, tz),
        }
        for i, t in enumerate(selected, start=1)
    ]


# =============================================================================
# Ticket age
# =============================================================================


def department_age_rows(
    tickets: Iterable[Ticket],
    filters: ViewFilters,
    departments: Mapping[str, str],
    tz: ZoneInfo,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """One row per known department with pending tickets bucketed by age.

    Buckets are 1-7, 8-15 and 15+ days. Tickets of departments missing from
    the directory are not counted.
    """
    grids = {dept_id: AgeGrid(DEPARTMENT_AGE_BUCKETS) for dept_id in departments}
    for t in tickets:
        if not is_pending(t.status):
            continue
        grid = grids.get(t.department_id or "")
        if grid is None:
            continue
        age = _ticket_age(t, tz, now)
        if age is None:
            continue
        grid.add(age, t.status, t.ticket_number or t.key)

    rows = []
    for dept_id, grid in grids.items():
        if filters.department_id and dept_id != filters.department_id:
            continue
        rows.append({
            "departmentId": dept_id,
            "departmentName": departments[dept_id] or dept_id,
            "total": grid.total,
            **grid.flatten(prefix="tickets_"),
        })
    rows.sort(key=lambda r: r["departmentName"].casefold())
    rows = [{"si": i, **row} for i, row in enumerate(rows, start=1)]

    query = filters.query
    if query:
        rows = [r for r in rows if text_matches(query, r["departmentName"], r["total"])]
    return rows


def agent_age_rows(
    tickets: Iterable[Ticket],
    filters: ViewFilters,
    departments: Mapping[str, str],
    tz: ZoneInfo,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """One row per agent with pending tickets bucketed by age.

    Buckets are 1-15, 16-30 and 30+ days. Agents without pending tickets
    are left out.
    """
    selected = apply_filters(
        (t for t in tickets if is_pending(t.status)),
        lambda t: department_matches(
            t.department_id, _department_name(t, departments), filters.department_id, departments
        ),
        lambda t: agent_matches(t.agent_name, filters.agent_names),
    )

    grids: dict[str, AgeGrid] = {}
    for t in selected:
        age = _ticket_age(t, tz, now)
        if age is None:
            continue
        grid = grids.setdefault(t.agent_name, AgeGrid(AGENT_AGE_BUCKETS))
        grid.add(age, t.status, t.ticket_number or t.key)

    department = departments.get(filters.department_id, filters.department_id) if filters.department_id else ""
    query = filters.query
    rows = []
    for name in sorted(grids, key=str.casefold):
        grid = grids[name]
        if query and not (
            text_matches(query, name)
            or text_matches(query, department)
            or any(text_matches(query, n) for n in grid.all_tickets())
        ):
            continue
        rows.append({"name": name, "department": department, "total": grid.total, **grid.flatten()})
    return [{"serial": i, **row} for i, row in enumerate(rows, start=1)]


# =============================================================================
# Performance
# =============================================================================


def performance_rows(agents: Iterable[AgentStats]) -> list[dict[str, Any]]:
    """Leaderboard rows with serial number, rank tag and display averages."""
    rows = []
    for i, a in enumerate(leaderboard(agents)):
        rows.append({
            "serial": i + 1,
            "rank": rank_tag(i),
            "agentName": a.agent_name,
            "ticketsCreated": a.tickets_resolved + a.pending_tickets,
            "ticketsResolved": a.tickets_resolved,
            "pendingTickets": a.pending_tickets,
            "avgResolution": format_hours(a.avg_resolution_hours),
            "avgFirstResponse": format_hours(a.avg_first_response_hours),
            "avgThreads": f"{a.avg_threads:.2f}",
        })
    return rows


# =============================================================================
# Pagination
# =============================================================================


def paginate(rows: Sequence[dict[str, Any]], page: int = 1, page_size: int = 200) -> dict[str, Any]:
    """Slice one page of rows; ``page`` is clamped into range."""
    total = len(rows)
    pages = max(1, math.ceil(total / page_size)) if page_size > 0 else 1
    page = min(max(1, page), pages)
    if page_size > 0:
        start = (page - 1) * page_size
        items = list(rows[start:start + page_size])
    else:
        items = list(rows)
    return {"items": items, "total": total, "page": page, "pageSize": page_size, "pages": pages}
