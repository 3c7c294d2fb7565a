"""Tests for the dashboard row producers."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from desk_analytics.filters import DateRange, ViewFilters
from desk_analytics.join import enrich
from desk_analytics.models import AgentStats, MetricRow
from desk_analytics.views import (
    agent_age_rows,
    agent_average_map,
    archived_rows,
    department_age_rows,
    is_pending,
    metrics_rows,
    paginate,
    pending_rows,
    performance_rows,
)

from fakes import ticket

UTC = ZoneInfo("UTC")
NOW = datetime(2024, 5, 31, 12, 0, tzinfo=UTC)
DEPARTMENTS = {"1": "Support", "2": "Billing"}


def _filters(**kwargs):
    return ViewFilters.build(**kwargs)


def test_is_pending_uses_canonical_statuses():
    assert is_pending("On Hold")
    assert is_pending("in-progress")
    assert not is_pending("Closed")
    assert not is_pending(None)


# =============================================================================
# Pending
# =============================================================================


def _pending_tickets():
    return [
        ticket("T1", status="Open", assignee="Alice"),
        ticket("T2", status="hold", assignee="Bob"),
        ticket("T3", status="In Progress", assignee="Alice"),
        ticket("T4", status="Closed", assignee="Alice"),
        ticket("T5", status="On Hold", assignee="Alice"),
    ]


def test_pending_rows_grouped_and_sorted():
    rows = pending_rows(_pending_tickets(), _filters(), DEPARTMENTS, UTC, now=NOW)

    assert [(r["name"], r["ticketNumber"]) for r in rows] == [
        ("Alice", "T1"),
        ("Alice", "T5"),
        ("Alice", "T3"),
        ("Bob", "T2"),
    ]
    assert [r["rowSpan"] for r in rows] == [3, 3, 3, 1]
    assert [r["isFirst"] for r in rows] == [True, False, False, True]


def test_pending_row_fields():
    rows = pending_rows([ticket("T1")], _filters(), DEPARTMENTS, UTC, now=NOW)
    row = rows[0]
    assert row["department"] == "Support"
    assert row["ticketCreated"] == "01 May 2024, 10:00"
    assert row["daysNotResponded"] == 30


def test_pending_search_applies_before_grouping():
    """Group totals reflect only the rows left after search."""
    rows = pending_rows(_pending_tickets(), _filters(search="t3"), DEPARTMENTS, UTC, now=NOW)
    assert len(rows) == 1
    assert rows[0]["ticketNumber"] == "T3"
    assert rows[0]["totalTickets"] == 1


def test_pending_filters_by_agent_and_status():
    filters = _filters(agent_names=["Alice"], statuses=["On Hold"])
    rows = pending_rows(_pending_tickets(), filters, DEPARTMENTS, UTC, now=NOW)
    assert [r["ticketNumber"] for r in rows] == ["T5"]


# =============================================================================
# Archived
# =============================================================================


def _archived_tickets():
    return [
        ticket("A1", status="Closed", assignee="Zoe Park", number="1042", subject="Refund",
               created="2024-05-01T10:00:00Z", closedTime="2024-05-02T12:30:00Z"),
        ticket("A2", status="Closed", assignee="adam Smith", number="1043", department="2",
               created="2024-04-01T10:00:00Z"),
    ]


def test_archived_rows_fields_and_order():
    rows = archived_rows(_archived_tickets(), _filters(), DEPARTMENTS, UTC)

    assert [r["agentName"] for r in rows] == ["adam Smith", "Zoe Park"]
    assert [r["siNo"] for r in rows] == [1, 2]
    zoe = rows[1]
    assert zoe["departmentName"] == "Support"
    assert zoe["subject"] == "Refund"
    assert zoe["createdTime"] == "01/05/2024, 10:00"
    assert zoe["closedTime"] == "02/05/2024, 12:30"
    assert zoe["resolutionTimeHours"] == 26.5
    assert rows[0]["resolutionTimeHours"] == ""


def test_archived_search_numeric_and_name():
    tickets = _archived_tickets()
    assert [r["ticketNumber"] for r in archived_rows(tickets, _filters(search="1043"), DEPARTMENTS, UTC)] == ["1043"]
    assert archived_rows(tickets, _filters(search="104"), DEPARTMENTS, UTC) == []
    assert [r["agentName"] for r in archived_rows(tickets, _filters(search="par"), DEPARTMENTS, UTC)] == ["Zoe Park"]


def test_archived_filters_by_created_date_and_department():
    tickets = _archived_tickets()
    may = DateRange(date(2024, 5, 1), date(2024, 5, 31), UTC)
    assert [r["ticketNumber"] for r in archived_rows(tickets, _filters(date_range=may), DEPARTMENTS, UTC)] == ["1042"]
    assert [r["ticketNumber"] for r in archived_rows(tickets, _filters(department_id="2"), DEPARTMENTS, UTC)] == ["1043"]


# =============================================================================
# Ticket age
# =============================================================================


def _aged_tickets():
    return [
        ticket("D1", status="Open", department="1", number="9001", created="2024-05-28T12:00:00Z"),
        ticket("D2", status="hold", department="1", number="9002", created="2024-05-21T12:00:00Z",
               assignee="Bob"),
        ticket("D3", status="Escalated", department="2", number="9003", created="2024-05-11T12:00:00Z",
               assignee="Bob"),
        ticket("D4", status="Open", department="9", number="9004", created="2024-05-28T12:00:00Z"),
        ticket("D5", status="Closed", department="1", number="9005", created="2024-05-28T12:00:00Z"),
        ticket("D6", status="Open", department="1", number="9006", created="not a date"),
    ]


def test_department_age_rows():
    rows = department_age_rows(_aged_tickets(), _filters(), DEPARTMENTS, UTC, now=NOW)

    assert [(r["si"], r["departmentName"], r["total"]) for r in rows] == [
        (1, "Billing", 1),
        (2, "Support", 2),
    ]
    support = rows[1]
    assert support["tickets_1_7"] == 1
    assert support["tickets_1_7_open_numbers"] == ["9001"]
    assert support["tickets_8_15"] == 1
    assert support["tickets_8_15_hold"] == 1
    assert rows[0]["tickets_15plus_escalated_numbers"] == ["9003"]


def test_department_age_search_keeps_serial():
    rows = department_age_rows(_aged_tickets(), _filters(search="support"), DEPARTMENTS, UTC, now=NOW)
    assert [(r["si"], r["departmentName"]) for r in rows] == [(2, "Support")]


def test_department_age_selected_department():
    rows = department_age_rows(_aged_tickets(), _filters(department_id="2"), DEPARTMENTS, UTC, now=NOW)
    assert [r["departmentId"] for r in rows] == ["2"]


def test_agent_age_rows():
    rows = agent_age_rows(_aged_tickets(), _filters(), DEPARTMENTS, UTC, now=NOW)

    assert [(r["serial"], r["name"], r["total"]) for r in rows] == [(1, "Alice", 2), (2, "Bob", 2)]
    alice, bob = rows
    assert alice["fifteenDays"] == 2
    assert alice["fifteenDays_open_numbers"] == ["9001", "9004"]
    assert bob["fifteenDays_hold"] == 1
    assert bob["sixteenToThirty_escalated_numbers"] == ["9003"]
    assert alice["department"] == ""


def test_agent_age_search_by_ticket_number_renumbers():
    rows = agent_age_rows(_aged_tickets(), _filters(search="9003"), DEPARTMENTS, UTC, now=NOW)
    assert [(r["serial"], r["name"]) for r in rows] == [(1, "Bob")]


def test_agent_age_selected_department_name():
    rows = agent_age_rows(_aged_tickets(), _filters(department_id="1"), DEPARTMENTS, UTC, now=NOW)
    assert [(r["name"], r["total"], r["department"]) for r in rows] == [
        ("Alice", 1, "Support"),
        ("Bob", 1, "Support"),
    ]


# =============================================================================
# Metrics
# =============================================================================


def _metric_records():
    tickets = [
        ticket("M1", status="Open", assignee="Alice"),
        ticket("M2", status="Closed", assignee="Alice", department="2"),
        ticket("M3", status="Open", assignee="bob"),
    ]
    rows = [
        MetricRow.model_validate({
            "ticketNumber": "M1",
            "firstResponseTime": "0:30 hrs",
            "resolutionTime": "25:00 hrs",
            "threadCount": 2,
            "stagingData": [{"status": "Open", "handledTime": "1:00 hrs"}],
            "agentsHandled": [{"agentName": "Alice", "handlingTime": "0:20 hrs"}],
        }),
        MetricRow(ticket_number="M2", first_response_time="1:00 hrs", resolution_time="2 days 01:00 hrs"),
        MetricRow(ticket_number="M3"),
    ]
    return enrich(tickets, rows)


def test_agent_average_map_uses_strict_values():
    averages = agent_average_map(_metric_records())
    assert averages["Alice"]["avgFirstResponseHM"] == "0:45"
    assert averages["Alice"]["avgFirstResponseMin"] == 45
    # The day-form resolution time does not count toward the average
    assert averages["Alice"]["avgResolutionMin"] == 1500
    assert averages["bob"]["avgFirstResponseHM"] == "-"
    assert averages["bob"]["avgResolutionMin"] is None


def test_metrics_rows_fields():
    rows = metrics_rows(_metric_records(), _filters(), DEPARTMENTS, UTC)

    assert [r["agentName"] for r in rows] == ["Alice", "Alice", "bob"]
    first = rows[0]
    assert first["ticketNumber"] == "M1"
    assert first["departmentName"] == "Support"
    assert first["createdTime"] == "01/05/2024, 10:00"
    assert first["firstResponseTime"] == "0:30"
    assert first["firstResponseAt"] == "01/05/2024, 10:30"
    assert first["resolutionTime"] == "25:00"
    assert first["resolutionDays"] == "1 Days"
    assert first["threadCount"] == 2
    assert first["stagingData"] == ["Open: 1:00 hrs"]
    assert first["agentsHandled"] == ["Alice: 0:20 hrs"]
    assert first["avgFirstResponse"] == "0:45"
    assert first["avgResolution"] == "25:00"
    assert first["avgResolutionDays"] == "1 Days"
    assert rows[2]["avgResolution"] == "-"
    assert rows[2]["avgResolutionDays"] == ""


def test_metrics_rows_filters():
    records = _metric_records()
    assert [r["ticketNumber"] for r in metrics_rows(records, _filters(statuses=["open"]), DEPARTMENTS, UTC)] == [
        "M1", "M3",
    ]
    assert [r["ticketNumber"] for r in metrics_rows(records, _filters(department_id="2"), DEPARTMENTS, UTC)] == [
        "M2",
    ]
    assert [r["ticketNumber"] for r in metrics_rows(records, _filters(search="BOB"), DEPARTMENTS, UTC)] == ["M3"]


def test_metrics_averages_follow_filters():
    """Averages are computed over the rows that survive filtering."""
    rows = metrics_rows(_metric_records(), _filters(statuses=["open"]), DEPARTMENTS, UTC)
    assert rows[0]["avgFirstResponse"] == "0:30"


# =============================================================================
# Performance and pagination
# =============================================================================


def test_performance_rows():
    agents = [
        AgentStats(agent_name="Ann", tickets_created=6, tickets_resolved=2, pending_tickets=3,
                   avg_resolution_hours=26.0, avg_first_response_hours=0.5, avg_threads=1.5),
        AgentStats(agent_name="Ben", tickets_created=4, tickets_resolved=4, pending_tickets=0),
    ]
    rows = performance_rows(agents)

    assert [(r["serial"], r["rank"], r["agentName"]) for r in rows] == [(1, "gold", "Ben"), (2, "silver", "Ann")]
    ann = rows[1]
    assert ann["ticketsCreated"] == 5
    assert ann["avgResolution"] == "1 days 02:00 hrs"
    assert ann["avgFirstResponse"] == "00:30 hrs"
    assert ann["avgThreads"] == "1.50"


def test_paginate():
    rows = [{"n": i} for i in range(5)]

    page = paginate(rows, page=2, page_size=2)
    assert page["items"] == [{"n": 2}, {"n": 3}]
    assert (page["total"], page["pages"], page["page"], page["pageSize"]) == (5, 3, 2, 2)

    assert paginate(rows, page=9, page_size=2)["page"] == 3
    assert paginate(rows, page=0, page_size=2)["items"] == [{"n": 0}, {"n": 1}]
    assert paginate(rows, page_size=0)["items"] == rows


def test_paginate_empty():
    page = paginate([], page=3)
    assert page["items"] == []
    assert (page["page"], page["pages"]) == (1, 1)
