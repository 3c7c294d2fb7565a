"""Join metric rows to the tickets they measure."""

import logging
from collections.abc import Iterable

from desk_analytics.models import EnrichedRecord, MetricRow, Ticket

logger = logging.getLogger(__name__)


def build_ticket_map(tickets: Iterable[Ticket]) -> dict[str, Ticket]:
    """Index tickets by join key.

    Tickets without a key (neither id nor ticket number) are left out. On a
    duplicate key the later ticket wins.
    """
    ticket_map: dict[str, Ticket] = {}
    skipped = 0
    for ticket in tickets:
        key = ticket.key
        if not key:
            skipped += 1
            continue
        ticket_map[key] = ticket
    if skipped:
        logger.debug("Skipped %d tickets without id or ticket number", skipped)
    return ticket_map


def join_metrics(
    metric_rows: Iterable[MetricRow],
    ticket_map: dict[str, Ticket],
) -> list[EnrichedRecord]:
    """Attach each metric row to its ticket.

    Every metric row yields a record; rows whose key matches no ticket keep
    ``ticket=None`` and rely on their own denormalized fields.
    """
    records = []
    unmatched = 0
    for row in metric_rows:
        ticket = ticket_map.get(row.key)
        if ticket is None:
            unmatched += 1
        records.append(EnrichedRecord(metric=row, ticket=ticket))
    if unmatched:
        logger.debug("%d metric rows matched no ticket", unmatched)
    return records


def enrich(tickets: Iterable[Ticket], metric_rows: Iterable[MetricRow]) -> list[EnrichedRecord]:
    """Build the ticket map once and join all metric rows against it."""
    return join_metrics(metric_rows, build_ticket_map(tickets))
