"""Fold enriched records into per-agent performance figures.

Records are accumulated per agent in a single pass; all averages are taken
from the accumulated sums when an agent is finalized, so the result does
not depend on record order.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from desk_analytics.durations import parse_duration_hours
from desk_analytics.models import AgentStats, EnrichedRecord, PerformanceSummary
from desk_analytics.status import DEFAULT_CLASSIFIER, StatusClassifier, normalize_status

logger = logging.getLogger(__name__)


@dataclass
class AgentAccumulator:
    """Running totals for one agent."""

    agent_name: str
    ticket_ids: set[str] = field(default_factory=set)
    resolved_ids: set[str] = field(default_factory=set)
    pending_ids: set[str] = field(default_factory=set)
    total_resolution_hours: float = 0.0
    total_first_response_hours: float = 0.0
    total_threads: int = 0
    escalated_count: int = 0
    single_touch_count: int = 0
    # No satisfaction field upstream yet
    satisfaction_sum: float = 0.0
    satisfaction_count: int = 0

    def add(self, record: EnrichedRecord, classifier: StatusClassifier) -> None:
        key = record.key
        status = record.status
        if key:
            self.ticket_ids.add(key)
            bucket = classifier.classify(status)
            if bucket == "resolved":
                self.resolved_ids.add(key)
            elif bucket == "pending":
                self.pending_ids.add(key)

        self.total_resolution_hours += parse_duration_hours(record.metric.resolution_time)
        self.total_first_response_hours += parse_duration_hours(record.metric.first_response_time)

        threads = record.metric.threads
        self.total_threads += threads

        if normalize_status(status) == "escalated":
            self.escalated_count += 1
        if threads == 1:
            self.single_touch_count += 1

    def finalize(self) -> AgentStats:
        created = len(self.ticket_ids)
        resolved = len(self.resolved_ids)

        avg_resolution = self.total_resolution_hours / resolved if resolved else 0
        # Denominator is every ticket once any first response was recorded
        with_first_response = created if self.total_first_response_hours > 0 else 0
        avg_first_response = (
            self.total_first_response_hours / with_first_response if with_first_response else 0
        )
        avg_threads = self.total_threads / created if created else 0
        avg_satisfaction = (
            self.satisfaction_sum / self.satisfaction_count if self.satisfaction_count else None
        )

        return AgentStats(
            agent_name=self.agent_name,
            tickets_created=created,
            tickets_resolved=resolved,
            pending_tickets=len(self.pending_ids),
            avg_resolution_hours=avg_resolution,
            avg_first_response_hours=avg_first_response,
            avg_threads=avg_threads,
            escalated_count=self.escalated_count,
            single_touch_count=self.single_touch_count,
            avg_satisfaction=avg_satisfaction,
        )


def aggregate_agents(
    records: Iterable[EnrichedRecord],
    classifier: StatusClassifier = DEFAULT_CLASSIFIER,
) -> list[AgentStats]:
    """Per-agent statistics, in order of each agent's first record."""
    accumulators: dict[str, AgentAccumulator] = {}
    for record in records:
        name = record.agent_name
        acc = accumulators.get(name)
        if acc is None:
            acc = accumulators[name] = AgentAccumulator(agent_name=name)
        acc.add(record, classifier)
    return [acc.finalize() for acc in accumulators.values()]


def summarize(agents: Iterable[AgentStats]) -> PerformanceSummary:
    """Combine agent figures into overall totals.

    Averages are rebuilt from each agent's average times its weight:
    resolved tickets for resolution time, created tickets for threads and
    first response.
    """
    summary = PerformanceSummary()
    for a in agents:
        summary.tickets_created += a.tickets_created
        summary.tickets_resolved += a.tickets_resolved
        summary.pending_tickets += a.pending_tickets
        summary.escalated_tickets += a.escalated_count
        summary.single_touch_tickets += a.single_touch_count
        summary.total_threads += a.avg_threads * a.tickets_created
        summary.total_resolution_hours += a.avg_resolution_hours * a.tickets_resolved
        summary.total_first_response_hours += a.avg_first_response_hours * a.tickets_created

    created = summary.tickets_created
    resolved = summary.tickets_resolved
    summary.avg_threads = summary.total_threads / created if created else 0
    summary.avg_resolution_hours = summary.total_resolution_hours / resolved if resolved else 0
    summary.avg_first_response_hours = summary.total_first_response_hours / created if created else 0
    return summary


def empty_report() -> dict[str, Any]:
    return {"summary": {}, "agents": []}


def build_performance_report(
    records: Iterable[EnrichedRecord],
    classifier: StatusClassifier = DEFAULT_CLASSIFIER,
) -> dict[str, Any]:
    """Response body for the agent-performance endpoint.

    Returns ``{"summary": {...}, "agents": [...]}`` with camelCase keys, or
    the empty structure when there is nothing to aggregate.
    """
    agents = aggregate_agents(records, classifier)
    if not agents:
        return empty_report()
    summary = summarize(agents)
    logger.info(
        "Aggregated %d tickets across %d agents", summary.tickets_created, len(agents)
    )
    return {
        "summary": summary.model_dump(by_alias=True),
        "agents": [a.model_dump(by_alias=True) for a in agents],
    }
