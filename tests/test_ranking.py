"""Tests for the leaderboard, age buckets and pending grouping."""

import pytest

from desk_analytics.models import AgentStats
from desk_analytics.ranking import (
    AGENT_AGE_BUCKETS,
    DEPARTMENT_AGE_BUCKETS,
    AgeGrid,
    bucket_for_age,
    group_rows,
    leaderboard,
    rank_tag,
)


def _agent(name, resolved):
    return AgentStats(agent_name=name, tickets_resolved=resolved)


def test_leaderboard_is_stable_on_ties():
    """Equal resolved counts keep their input order."""
    ranked = leaderboard([_agent("A", 5), _agent("B", 3), _agent("C", 5)])
    assert [a.agent_name for a in ranked] == ["A", "C", "B"]


def test_rank_tags():
    assert [rank_tag(i) for i in range(5)] == ["gold", "silver", "bronze", "", ""]


@pytest.mark.parametrize(
    "days, key",
    [(0, "fifteenDays"), (1, "fifteenDays"), (15, "fifteenDays"), (16, "sixteenToThirty"),
     (30, "sixteenToThirty"), (31, "month"), (400, "month")],
)
def test_agent_age_buckets(days, key):
    assert bucket_for_age(days, AGENT_AGE_BUCKETS).key == key


@pytest.mark.parametrize(
    "days, key",
    [(1, "1_7"), (7, "1_7"), (8, "8_15"), (15, "8_15"), (16, "15plus")],
)
def test_department_age_buckets(days, key):
    assert bucket_for_age(days, DEPARTMENT_AGE_BUCKETS).key == key


def test_age_grid_counts_pending_statuses():
    grid = AgeGrid(AGENT_AGE_BUCKETS)
    assert grid.add(3, "Open", "101")
    assert grid.add(20, "On Hold", "102")
    assert grid.add(45, "in-progress", "103")
    assert not grid.add(5, "Closed", "104")

    assert grid.total == 3
    assert grid.all_tickets() == ["101", "102", "103"]

    row = grid.flatten()
    assert row["fifteenDays"] == 1
    assert row["fifteenDays_open"] == 1
    assert row["fifteenDays_open_numbers"] == ["101"]
    assert row["sixteenToThirty_hold"] == 1
    assert row["month_inProgress_numbers"] == ["103"]
    assert row["month_escalated"] == 0


def test_age_grid_flatten_prefix():
    grid = AgeGrid(DEPARTMENT_AGE_BUCKETS)
    grid.add(9, "escalated", "7")
    row = grid.flatten(prefix="tickets_")
    assert row["tickets_8_15"] == 1
    assert row["tickets_8_15_escalated_numbers"] == ["7"]
    assert row["tickets_1_7"] == 0


def test_group_rows_annotates_spans():
    rows = [
        {"name": "Ann", "ticketNumber": "1"},
        {"name": "Ann", "ticketNumber": "2"},
        {"name": "Ben", "ticketNumber": "3"},
    ]
    grouped = group_rows(rows)
    assert [(r["ticketNumber"], r["isFirst"], r["rowSpan"]) for r in grouped] == [
        ("1", True, 2),
        ("2", False, 2),
        ("3", True, 1),
    ]
    assert all(r["totalTickets"] == r["rowSpan"] for r in grouped)


def test_group_rows_empty():
    assert group_rows([]) == []
