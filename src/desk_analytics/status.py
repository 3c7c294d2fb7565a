"""Status normalization and resolved/pending classification."""

import re
from dataclasses import dataclass, field
from types import MappingProxyType

_SEPARATORS = re.compile(r"[\s\-_]")

# Cleaned (lowercase, no separators) text -> canonical token
STATUS_SYNONYMS = MappingProxyType({
    "hold": "hold",
    "onhold": "hold",
    "inprogress": "inProgress",
    "open": "open",
    "escalated": "escalated",
})

# Display order of the pending statuses in age/pending tables
STATUS_ORDER = ("open", "hold", "inProgress", "escalated")

_STATUS_SORT = {"open": 0, "hold": 1, "inprogress": 2, "inProgress": 2, "escalated": 3}
UNKNOWN_STATUS_SORT = 99


def normalize_status(text: str | None) -> str:
    """Map free-form status text to a canonical token.

    "On Hold" -> "hold", "in-progress" -> "inProgress". Unknown values are
    returned cleaned (lowercase, whitespace/hyphens/underscores removed).
    """
    if not text:
        return ""
    cleaned = _SEPARATORS.sub("", text).lower()
    return STATUS_SYNONYMS.get(cleaned, cleaned)


def status_sort_key(text: str | None) -> int:
    """Sort position of a status within an agent group (unknown last)."""
    return _STATUS_SORT.get(normalize_status(text), UNKNOWN_STATUS_SORT)


@dataclass(frozen=True)
class StatusClassifier:
    """Splits statuses into resolved and pending.

    Matching is on the trimmed, lowercased status text. A status in neither
    set is left unclassified; it still counts as a ticket but not as
    resolved or pending.
    """

    resolved: frozenset[str] = field(
        default_factory=lambda: frozenset({"closed", "resolved", "archived"})
    )
    pending: frozenset[str] = field(
        default_factory=lambda: frozenset(
            {"open", "hold", "inprogress", "in progress", "escalated"}
        )
    )

    @staticmethod
    def clean(status: str | None) -> str:
        return (status or "").strip().lower()

    def is_resolved(self, status: str | None) -> bool:
        return self.clean(status) in self.resolved

    def is_pending(self, status: str | None) -> bool:
        return self.clean(status) in self.pending

    def classify(self, status: str | None) -> str | None:
        """Return "resolved", "pending" or None."""
        cleaned = self.clean(status)
        if cleaned in self.resolved:
            return "resolved"
        if cleaned in self.pending:
            return "pending"
        return None


DEFAULT_CLASSIFIER = StatusClassifier()
