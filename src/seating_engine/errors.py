"""Seating engine error classes.

Every error here is recoverable by the caller. The optimizer reports
``InvalidConstraint`` and ``CapacityExceededInput`` in its result rather than
raising them mid-search.
"""

from __future__ import annotations

from typing import Sequence


class SeatingError(Exception):
    """Base exception for seating engine errors."""

    pass


class InvalidConstraint(SeatingError):
    """Raised or reported when a constraint is empty or names unknown guests."""

    def __init__(self, constraint_id: str, reason: str) -> None:
        super().__init__(f"Constraint {constraint_id}: {reason}")
        self.constraint_id = constraint_id
        self.reason = reason


class CapacityExceededInput(SeatingError):
    """Reported when a seed assignment already over-fills one or more tables."""

    def __init__(self, table_ids: Sequence[str]) -> None:
        super().__init__(f"Initial assignment over-fills tables: {', '.join(table_ids)}")
        self.table_ids = list(table_ids)


class OptimizationCancelled(SeatingError):
    """Raised inside the search loop when the cancel signal is observed."""

    pass


class SnapshotUnavailable(SeatingError):
    """Raised when restoring a snapshot that was cleared or overwritten."""

    pass
