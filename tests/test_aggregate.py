"""Tests for per-agent aggregation and the summary."""

import random

import pytest

from desk_analytics.aggregate import (
    AgentAccumulator,
    aggregate_agents,
    build_performance_report,
    summarize,
)
from desk_analytics.join import enrich
from desk_analytics.models import MetricRow
from desk_analytics.status import DEFAULT_CLASSIFIER

from fakes import ticket


def _alice_records():
    tickets = [
        ticket("T1", status="Closed", assignee="Alice"),
        ticket("T2", status="Open", assignee="Alice"),
    ]
    rows = [
        MetricRow(ticket_number="T1", resolution_time="1 days 02:00 hrs", thread_count=1),
        MetricRow(ticket_number="T2", first_response_time="0:30 hrs", thread_count=3),
    ]
    return enrich(tickets, rows)


def _mixed_records():
    """Several agents, resolution time only on resolved tickets."""
    tickets = [
        ticket("A1", status="Closed", assignee="Alice"),
        ticket("A2", status="Resolved", assignee="Alice"),
        ticket("A3", status="Open", assignee="Alice"),
        ticket("B1", status="Closed", assignee="Bob"),
        ticket("B2", status="Escalated", assignee="Bob"),
        ticket("B3", status="On Hold", assignee="Bob"),
        ticket("C1", status="archived", assignee=None),
    ]
    rows = [
        MetricRow(ticket_number="A1", resolution_time="10:00 hrs", first_response_time="1:00 hrs", thread_count=2),
        MetricRow(ticket_number="A2", resolution_time="1 days 00:00 hrs", thread_count=1),
        MetricRow(ticket_number="A3", first_response_time="0:15 hrs", response_count=5),
        MetricRow(ticket_number="B1", resolution_time="3", first_response_time="2:00 hrs", thread_count=4),
        MetricRow(ticket_number="B2", thread_count=1),
        MetricRow(ticket_number="B3", thread_count=0),
        MetricRow(ticket_number="C1", resolution_time="5:30 hrs", thread_count=2),
    ]
    return enrich(tickets, rows)


def test_end_to_end_single_agent():
    """Two tickets for Alice: one closed, one open."""
    agents = aggregate_agents(_alice_records())

    assert len(agents) == 1
    alice = agents[0]
    assert alice.agent_name == "Alice"
    assert alice.tickets_created == 2
    assert alice.tickets_resolved == 1
    assert alice.pending_tickets == 1
    assert alice.avg_resolution_hours == pytest.approx(26.0)
    assert alice.single_touch_count == 1
    assert alice.escalated_count == 0
    assert alice.avg_threads == pytest.approx(2.0)
    assert alice.avg_satisfaction is None


def test_first_response_average_uses_all_tickets():
    """First response total is divided by every ticket once any was recorded."""
    alice = aggregate_agents(_alice_records())[0]
    assert alice.avg_first_response_hours == pytest.approx(0.25)


def test_first_response_average_zero_without_samples():
    records = enrich([ticket("T1")], [MetricRow(ticket_number="T1")])
    assert aggregate_agents(records)[0].avg_first_response_hours == 0


def test_ticket_counted_once_per_agent():
    """Duplicate metric rows for one ticket do not inflate the counts."""
    records = enrich(
        [ticket("T1", status="Closed")],
        [MetricRow(ticket_number="T1", resolution_time="2:00 hrs"), MetricRow(ticket_number="T1")],
    )
    alice = aggregate_agents(records)[0]
    assert alice.tickets_created == 1
    assert alice.tickets_resolved == 1


def test_unclassified_status_counts_as_created_only():
    """'On Hold' is not in either set once lowercased, so it is neither."""
    bob = {a.agent_name: a for a in aggregate_agents(_mixed_records())}["Bob"]
    assert bob.tickets_created == 3
    assert bob.tickets_resolved == 1
    assert bob.pending_tickets == 1
    assert bob.escalated_count == 1


def test_unassigned_agent_bucket():
    agents = {a.agent_name: a for a in aggregate_agents(_mixed_records())}
    assert agents["Unassigned"].tickets_resolved == 1


def test_thread_count_falls_back_to_response_count():
    alice = {a.agent_name: a for a in aggregate_agents(_mixed_records())}["Alice"]
    # 2 + 1 + 5 threads over 3 tickets
    assert alice.avg_threads == pytest.approx(8 / 3)
    assert alice.single_touch_count == 1


def test_resolved_and_pending_are_disjoint():
    statuses = ["Closed", "Open", "hold", "resolved", "Escalated", "On Hold", "archived", "weird", ""]
    rng = random.Random(7)
    for _ in range(20):
        tickets = [
            ticket(f"T{i}", status=rng.choice(statuses), assignee=rng.choice(["Ann", "Ben", None]))
            for i in range(30)
        ]
        rows = [MetricRow(ticket_number=t.key) for t in tickets]
        records = enrich(tickets, rows)
        accs = {}
        for r in records:
            accs.setdefault(r.agent_name, AgentAccumulator(r.agent_name)).add(r, DEFAULT_CLASSIFIER)
        for acc in accs.values():
            assert not acc.resolved_ids & acc.pending_ids
            assert acc.resolved_ids | acc.pending_ids <= acc.ticket_ids


def test_aggregation_ignores_record_order():
    records = _mixed_records()
    expected = {a.agent_name: a for a in aggregate_agents(records)}
    rng = random.Random(42)
    for _ in range(10):
        shuffled = records[:]
        rng.shuffle(shuffled)
        for a in aggregate_agents(shuffled):
            e = expected[a.agent_name]
            assert a.tickets_created == e.tickets_created
            assert a.tickets_resolved == e.tickets_resolved
            assert a.pending_tickets == e.pending_tickets
            assert a.avg_resolution_hours == pytest.approx(e.avg_resolution_hours)
            assert a.avg_threads == pytest.approx(e.avg_threads)


def test_summary_reconciles_with_agents():
    records = _mixed_records()
    agents = aggregate_agents(records)
    summary = summarize(agents)

    assert summary.tickets_created == sum(a.tickets_created for a in agents)
    assert summary.tickets_resolved == sum(a.tickets_resolved for a in agents)
    assert summary.pending_tickets == sum(a.pending_tickets for a in agents)
    assert summary.escalated_tickets == 1

    # Direct recomputation from raw per-ticket resolution hours
    raw_hours = 10 + 24 + 3 + 5.5
    assert summary.tickets_resolved == 4
    assert summary.avg_resolution_hours == pytest.approx(raw_hours / 4)


def test_summary_thread_average_matches_global_fold():
    records = _mixed_records()
    summary = summarize(aggregate_agents(records))
    total_threads = sum(r.metric.threads for r in records)
    assert summary.avg_threads == pytest.approx(total_threads / len(records))


def test_report_shape_uses_camel_case():
    report = build_performance_report(_alice_records())
    assert set(report) == {"summary", "agents"}
    agent = report["agents"][0]
    assert agent["agentName"] == "Alice"
    assert agent["ticketsCreated"] == 2
    assert agent["avgResolutionHours"] == pytest.approx(26.0)
    assert agent["singleTouchCount"] == 1
    assert report["summary"]["ticketsResolved"] == 1
    assert report["summary"]["avgResolutionHours"] == pytest.approx(26.0)


def test_empty_input_report():
    assert build_performance_report([]) == {"summary": {}, "agents": []}
