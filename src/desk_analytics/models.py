"""Typed records for tickets, metric rows and aggregation results.

Upstream payloads are loosely typed: ids may be ints or strings, counts may
be blank, names live in nested objects. The validators below turn those
into explicit optional fields so the pipeline never has to guess.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

UNASSIGNED = "Unassigned"

_RECORD_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _to_str_or_none(value: Any) -> str | None:
    value = _blank_to_none(value)
    if value is None:
        return None
    return str(value)


def _to_int_or_none(value: Any) -> int | None:
    value = _blank_to_none(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


class Department(BaseModel):
    """Entry of the department directory."""

    model_config = _RECORD_CONFIG

    id: str
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)


class Ticket(BaseModel):
    """One support ticket from the active or archived listing."""

    model_config = _RECORD_CONFIG

    id: str | None = None
    ticket_number: str | None = None
    subject: str = ""
    status: str = ""
    created_time: str | None = None
    closed_time: str | None = None
    assignee_id: str | None = None
    assignee_name: str | None = None
    department_id: str | None = None
    department_name: str | None = None
    origin: Literal["active", "archived"] = "active"

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested(cls, data: Any) -> Any:
        """Lift names out of the embedded ``assignee``/``department`` objects."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        assignee = data.get("assignee")
        if isinstance(assignee, dict):
            name = assignee.get("displayName") or data.get("assigneeName")
            if not name:
                full = f"{assignee.get('firstName') or ''} {assignee.get('lastName') or ''}"
                name = full.strip() or None
            data["assigneeName"] = name
            data.setdefault("assigneeId", assignee.get("id"))
        department = data.get("department")
        if isinstance(department, dict):
            data.setdefault("departmentName", department.get("name"))
            data.setdefault("departmentId", department.get("id"))
        return data

    @field_validator(
        "id", "ticket_number", "assignee_id", "assignee_name",
        "department_id", "department_name", "created_time", "closed_time",
        mode="before",
    )
    @classmethod
    def _coerce_optional_str(cls, v: Any) -> str | None:
        return _to_str_or_none(v)

    @field_validator("subject", "status", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def key(self) -> str:
        """Join key: id, else ticket number, else ""."""
        return str(self.id or self.ticket_number or "")

    @property
    def agent_name(self) -> str:
        return self.assignee_name or UNASSIGNED


class StagingEntry(BaseModel):
    """One status interval of a ticket's history."""

    model_config = _RECORD_CONFIG

    status: str = ""
    handled_time: str = ""


class HandlingEntry(BaseModel):
    """Time one agent spent on a ticket."""

    model_config = _RECORD_CONFIG

    agent_name: str = ""
    handling_time: str = ""


class MetricRow(BaseModel):
    """Per-ticket measurements, joined to a Ticket by key."""

    model_config = _RECORD_CONFIG

    ticket_number: str | None = None
    id: str | None = None
    first_response_time: str | None = None
    resolution_time: str | None = None
    thread_count: int | None = None
    response_count: int | None = None
    outgoing_count: int | None = None
    reopen_count: int | None = None
    reassign_count: int | None = None
    agent_name: str | None = None
    status: str | None = None
    department_id: str | None = None
    department_name: str | None = None
    created_time: str | None = None
    staging_data: list[StagingEntry] = Field(default_factory=list)
    agents_handled: list[HandlingEntry] = Field(default_factory=list)

    @field_validator(
        "ticket_number", "id", "first_response_time", "resolution_time",
        "agent_name", "status", "department_id", "department_name", "created_time",
        mode="before",
    )
    @classmethod
    def _coerce_optional_str(cls, v: Any) -> str | None:
        return _to_str_or_none(v)

    @field_validator(
        "thread_count", "response_count", "outgoing_count", "reopen_count", "reassign_count",
        mode="before",
    )
    @classmethod
    def _coerce_count(cls, v: Any) -> int | None:
        return _to_int_or_none(v)

    @field_validator("staging_data", "agents_handled", mode="before")
    @classmethod
    def _coerce_history(cls, v: Any) -> list:
        return v if isinstance(v, list) else []

    @property
    def key(self) -> str:
        """Join key: ticket number, else id, else ""."""
        return str(self.ticket_number or self.id or "")

    @property
    def threads(self) -> int:
        """Thread count, falling back to response count, default 0."""
        return self.thread_count or self.response_count or 0


class EnrichedRecord(BaseModel):
    """A metric row with the ticket it belongs to, when one was found."""

    metric: MetricRow
    ticket: Ticket | None = None

    @property
    def key(self) -> str:
        return self.metric.key

    @property
    def agent_name(self) -> str:
        """Metric agent, then ticket assignee, then "Unassigned"."""
        assignee = self.ticket.assignee_name if self.ticket else None
        return self.metric.agent_name or assignee or UNASSIGNED

    @property
    def status(self) -> str:
        """Ticket status when the ticket has one, else the metric's copy."""
        if self.ticket and self.ticket.status:
            return self.ticket.status
        return self.metric.status or ""

    @property
    def department_id(self) -> str | None:
        if self.ticket and self.ticket.department_id:
            return self.ticket.department_id
        return self.metric.department_id

    @property
    def department_name(self) -> str:
        return self.metric.department_name or (self.ticket.department_name if self.ticket else None) or ""

    @property
    def created_time(self) -> str | None:
        return self.metric.created_time or (self.ticket.created_time if self.ticket else None)

    @property
    def ticket_number(self) -> str:
        """Number to display: the ticket's own number when joined."""
        if self.ticket and self.ticket.ticket_number:
            return self.ticket.ticket_number
        return self.metric.key


# =============================================================================
# Aggregation results
# =============================================================================

_RESULT_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentStats(BaseModel):
    """Finalized per-agent performance figures."""

    model_config = _RESULT_CONFIG

    agent_name: str
    tickets_created: int = 0
    tickets_resolved: int = 0
    pending_tickets: int = 0
    avg_resolution_hours: float = 0
    avg_first_response_hours: float = 0
    avg_threads: float = 0
    escalated_count: int = 0
    single_touch_count: int = 0
    avg_satisfaction: float | None = None


class PerformanceSummary(BaseModel):
    """Totals across all agents, with averages weighted per agent."""

    model_config = _RESULT_CONFIG

    tickets_created: int = 0
    tickets_resolved: int = 0
    pending_tickets: int = 0
    escalated_tickets: int = 0
    single_touch_tickets: int = 0
    total_threads: float = 0
    total_resolution_hours: float = 0
    total_first_response_hours: float = 0
    avg_threads: float = 0
    avg_resolution_hours: float = 0
    avg_first_response_hours: float = 0
