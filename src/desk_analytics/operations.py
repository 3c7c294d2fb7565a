"""Shared business logic for the analytics pipeline.

This module wires the upstream data source to the joiner, aggregation and
view producers. It is used by the CLI, the MCP server and the HTTP API.
All data functions are async and return plain dicts or lists.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from desk_analytics.aggregate import aggregate_agents, build_performance_report, empty_report
from desk_analytics.client import (
    CONFIG_PATH,
    DeskAPIError,
    DeskAuthError,
    DeskClient,
    delete_credentials,
    get_auth_status,
    get_client,
    get_dashboard_config,
    reset_client,
    save_credentials,
    save_dashboard_config,
)
from desk_analytics.export import export_rows
from desk_analytics.filters import (
    ALL,
    DateRange,
    ViewFilters,
    agent_matches,
    apply_filters,
    assignee_matches,
    closed_or_created,
)
from desk_analytics.join import enrich
from desk_analytics.models import Department, EnrichedRecord, MetricRow, Ticket
from desk_analytics.views import (
    VIEW_NAMES,
    agent_age_rows,
    archived_rows,
    department_age_rows,
    metrics_rows,
    paginate,
    pending_rows,
    performance_rows,
)

logger = logging.getLogger(__name__)


class TicketSource(Protocol):
    """Upstream collaborator that supplies tickets, metrics and departments."""

    async def get_access_token(self) -> str: ...

    async def fetch_all_tickets(
        self, token: str, department_ids: list[str] | None = None, agent_id: str | None = None
    ) -> list[Ticket]: ...

    async def fetch_all_archived_tickets(self, token: str, department_id: str) -> list[Ticket]: ...

    async def fetch_ticket_metrics_for_tickets(
        self, token: str, tickets: list[Ticket]
    ) -> list[MetricRow]: ...

    async def list_departments(self, token: str) -> list[Department]: ...


def _get_client() -> DeskClient:
    """Get the shared Desk client, built from the stored credentials."""
    return get_client()


def get_timezone(name: str | None = None) -> ZoneInfo:
    """Configured dashboard timezone, or ``name`` when given."""
    return ZoneInfo(name or get_dashboard_config()["timezone"])


def parse_date(value: str | date | None) -> date | None:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a date.

    Raises:
        ValueError: If the value is not a valid date
    """
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def _selected(department_id: str | None) -> str | None:
    if not department_id or department_id == ALL:
        return None
    return department_id


def build_filters(
    from_date: str | date | None = None,
    to_date: str | date | None = None,
    department_id: str | None = None,
    agent_names: list[str] | None = None,
    statuses: list[str] | None = None,
    search: str | None = None,
    tz: ZoneInfo | None = None,
) -> ViewFilters:
    """Build view filters from plain request values."""
    date_range = DateRange(parse_date(from_date), parse_date(to_date), tz or get_timezone())
    return ViewFilters.build(
        date_range=date_range,
        department_id=department_id,
        agent_names=agent_names,
        statuses=statuses,
        search=search,
    )


# =============================================================================
# Snapshot
# =============================================================================


@dataclass
class Snapshot:
    """Data fetched for one request."""

    departments: dict[str, str] = field(default_factory=dict)
    active: list[Ticket] = field(default_factory=list)
    archived: list[Ticket] = field(default_factory=list)
    records: list[EnrichedRecord] = field(default_factory=list)


async def _fetch_archived(
    source: TicketSource,
    token: str,
    departments: list[Department],
    department_id: str | None,
) -> list[Ticket]:
    """Archived tickets of the selected department, or of every department."""
    targets = [d for d in departments if d.id == department_id] if department_id else departments
    batches = await asyncio.gather(
        *(source.fetch_all_archived_tickets(token, d.id) for d in targets)
    )
    return [ticket for batch in batches for ticket in batch or []]


async def load_snapshot(
    source: TicketSource,
    department_id: str | None = None,
    active: bool = True,
    archived: bool = False,
    metrics: bool = False,
) -> Snapshot:
    """Fetch what a view needs.

    Metrics, when requested, are fetched for active and archived tickets
    together and joined against them.
    """
    department_id = _selected(department_id)
    token = await source.get_access_token()
    departments = await source.list_departments(token)
    snapshot = Snapshot(departments={d.id: d.name for d in departments})

    if active:
        snapshot.active = await source.fetch_all_tickets(
            token, [department_id] if department_id else [], None
        )
    if archived:
        snapshot.archived = await _fetch_archived(source, token, departments, department_id)
    if metrics:
        tickets = snapshot.active + snapshot.archived
        rows = await source.fetch_ticket_metrics_for_tickets(token, tickets) if tickets else []
        snapshot.records = enrich(tickets, rows)
    return snapshot


# =============================================================================
# Agent Performance
# =============================================================================


async def collect_performance_records(
    source: TicketSource,
    from_date: str | date | None = None,
    to_date: str | date | None = None,
    department_id: str | None = None,
    agent_id: str | None = None,
    tz: ZoneInfo | None = None,
) -> list[EnrichedRecord]:
    """Tickets in scope for the performance report, joined to their metrics.

    Tickets are active plus archived, narrowed by assignee id and by date
    (closed time, else created time). Returns [] without fetching metrics
    when no ticket is left.
    """
    department_id = _selected(department_id)
    agent_id = None if agent_id == ALL else agent_id or None
    date_range = DateRange(parse_date(from_date), parse_date(to_date), tz or get_timezone())

    token = await source.get_access_token()
    departments = await source.list_departments(token)
    active = await source.fetch_all_tickets(
        token, [department_id] if department_id else [], agent_id
    )
    archived = await _fetch_archived(source, token, departments, department_id)

    tickets = apply_filters(
        active + archived,
        lambda t: assignee_matches(t, agent_id),
        lambda t: date_range.contains(closed_or_created(t)),
    )
    logger.info(
        "%d of %d tickets in scope for agent performance",
        len(tickets), len(active) + len(archived),
    )
    if not tickets:
        return []

    metric_rows = await source.fetch_ticket_metrics_for_tickets(token, tickets)
    return enrich(tickets, metric_rows)


async def get_agent_performance(
    source: TicketSource | None = None,
    from_date: str | date | None = None,
    to_date: str | date | None = None,
    department_id: str | None = None,
    agent_id: str | None = None,
    tz: ZoneInfo | None = None,
) -> dict[str, Any]:
    """Agent performance report.

    Args:
        source: Upstream data source (default: a DeskClient)
        from_date: First day, ``YYYY-MM-DD``
        to_date: Last day, ``YYYY-MM-DD``
        department_id: Department id, or None/"all" for every department
        agent_id: Assignee id, or None/"all" for every agent
        tz: Timezone for day boundaries (default: configured timezone)

    Returns:
        Dict with ``summary`` and ``agents``; both empty when no ticket matches
    """
    source = source or _get_client()
    records = await collect_performance_records(
        source, from_date, to_date, department_id, agent_id, tz
    )
    if not records:
        return empty_report()
    return build_performance_report(records)


# =============================================================================
# Views
# =============================================================================


def default_page_size(view: str) -> int:
    """Page size for a view; 0 means a single page."""
    settings = get_dashboard_config()
    return {
        "metrics": settings["metrics_page_size"],
        "archived": settings["archived_page_size"],
        "performance": settings["performance_page_size"],
    }.get(view, 0)


async def get_view_rows(
    view: str,
    filters: ViewFilters,
    source: TicketSource | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """All rows of one dashboard view after filtering, search and sorting.

    Raises:
        ValueError: On an unknown view name
    """
    if view not in VIEW_NAMES:
        raise ValueError(f"Unknown view '{view}'. Choose from: {', '.join(VIEW_NAMES)}")

    source = source or _get_client()
    tz = filters.date_range.tz

    if view == "performance":
        records = await collect_performance_records(
            source,
            filters.date_range.start,
            filters.date_range.end,
            filters.department_id,
            None,
            tz,
        )
        agents = [a for a in aggregate_agents(records) if agent_matches(a.agent_name, filters.agent_names)]
        return performance_rows(agents)

    if view == "metrics":
        snapshot = await load_snapshot(source, filters.department_id, archived=True, metrics=True)
        rows = metrics_rows(snapshot.records, filters, snapshot.departments, tz)
    elif view == "archived":
        snapshot = await load_snapshot(source, filters.department_id, active=False, archived=True)
        rows = archived_rows(snapshot.archived, filters, snapshot.departments, tz)
    elif view == "pending":
        snapshot = await load_snapshot(source, filters.department_id)
        rows = pending_rows(snapshot.active, filters, snapshot.departments, tz, now)
    elif view == "department-age":
        snapshot = await load_snapshot(source, filters.department_id)
        rows = department_age_rows(snapshot.active, filters, snapshot.departments, tz, now)
    else:
        snapshot = await load_snapshot(source, filters.department_id)
        rows = agent_age_rows(snapshot.active, filters, snapshot.departments, tz, now)

    logger.info("View %s produced %d rows", view, len(rows))
    return rows


async def get_view_page(
    view: str,
    filters: ViewFilters,
    page: int = 1,
    page_size: int | None = None,
    source: TicketSource | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """One page of a view, with ``view`` and paging fields."""
    rows = await get_view_rows(view, filters, source, now)
    size = default_page_size(view) if page_size is None else page_size
    return {"view": view, **paginate(rows, page, size)}


async def export_view(
    view: str,
    filters: ViewFilters,
    output_path: str | Path,
    source: TicketSource | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Write every row of a view to an ``.xlsx`` file.

    Raises:
        ValueError: If the view has no rows
    """
    rows = await get_view_rows(view, filters, source, now)
    path = export_rows(rows, output_path)
    return {"view": view, "rows": len(rows), "file_path": str(path)}


async def list_departments(source: TicketSource | None = None) -> list[dict[str, str]]:
    """Department directory as ``{"id", "name"}`` dicts."""
    source = source or _get_client()
    token = await source.get_access_token()
    departments = await source.list_departments(token)
    return [d.model_dump() for d in departments]


# =============================================================================
# Configuration Operations
# =============================================================================


def show_config() -> dict[str, Any]:
    """Dashboard settings and where they are stored."""
    return {"config_path": str(CONFIG_PATH), "dashboard": get_dashboard_config()}


def set_config(**values: Any) -> dict[str, Any]:
    """Update dashboard settings.

    Raises:
        ValueError: On an unknown setting or an unknown timezone
    """
    if values.get("timezone"):
        try:
            ZoneInfo(values["timezone"])
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown timezone: {values['timezone']}") from e
    path = save_dashboard_config(**values)
    return {"config_path": str(path), "dashboard": get_dashboard_config()}


# =============================================================================
# Authentication Operations
# =============================================================================


async def check_auth_status(validate: bool = True) -> dict:
    """Check authentication configuration status.

    Args:
        validate: Whether to validate credentials by requesting a token and
            listing departments

    Returns:
        Dict with:
            - configured: bool
            - source: str | None ("env", "config", or None)
            - config_path: str
            - env_vars_set: list of set env vars
            - has_config_file: bool
            - departments: int | None (if validate=True and auth works)
            - error: str | None (if validate=True and auth fails)
            - guidance: str | None (if not configured)
    """
    status = get_auth_status()

    result = {
        **status,
        "departments": None,
        "error": None,
        "guidance": None,
    }

    if not status["configured"]:
        result["guidance"] = (
            "No Zoho Desk credentials configured. Set up using:\n"
            "1. CLI: desk-analytics auth login\n"
            "2. Environment variables: DESK_CLIENT_ID, DESK_CLIENT_SECRET, "
            "DESK_REFRESH_TOKEN, DESK_ORG_ID\n"
            f"3. Config file: {status['config_path']}"
        )
        return result

    if validate:
        try:
            client = _get_client()
            token = await client.get_access_token()
            result["departments"] = len(await client.list_departments(token))
        except (DeskAuthError, DeskAPIError) as e:
            result["error"] = str(e)

    return result


async def auth_login(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    org_id: str,
    data_center: str = "com",
) -> dict:
    """Validate and save Zoho Desk credentials.

    Returns:
        Dict with success status, department count, and config path
    """
    try:
        client = DeskClient(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=refresh_token,
            org_id=org_id,
            data_center=data_center,
        )
        token = await client.get_access_token()
        departments = await client.list_departments(token)
    except (DeskAuthError, DeskAPIError) as e:
        return {
            "success": False,
            "error": str(e),
            "departments": None,
            "config_path": None,
        }

    config_path = save_credentials(client_id, client_secret, refresh_token, org_id, data_center)
    reset_client()

    return {
        "success": True,
        "error": None,
        "departments": len(departments),
        "config_path": str(config_path),
    }


def auth_logout() -> dict:
    """Remove saved credentials.

    Returns:
        Dict with deleted status, config path, and warning about env vars
    """
    status = get_auth_status()
    deleted = delete_credentials()
    reset_client()

    result = {
        "deleted": deleted,
        "config_path": str(CONFIG_PATH),
        "warning": None,
    }

    if status["env_vars_set"]:
        result["warning"] = (
            f"Environment variables still set: {', '.join(status['env_vars_set'])}. "
            "These will continue to provide authentication."
        )

    return result
