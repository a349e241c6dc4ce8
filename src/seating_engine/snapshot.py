"""One-slot snapshot of the assignment taken before an optimizer run."""
from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Optional

from .errors import SnapshotUnavailable
from .models import Assignment


@dataclass(frozen=True)
class SnapshotHandle:
    token: int
    guest_count: int


class SnapshotManager:
    """Holds at most one assignment copy per event.

    Capturing again overwrites the slot and invalidates older handles. The
    calling layer clears the slot whenever a non-optimizer edit happens, since
    the engine cannot observe those edits itself.
    """

    def __init__(self) -> None:
        self._tokens = itertools.count(1)
        self._handle: Optional[SnapshotHandle] = None
        self._assignment: Optional[Assignment] = None

    @property
    def has_snapshot(self) -> bool:
        return self._handle is not None

    @property
    def current(self) -> Optional[SnapshotHandle]:
        return self._handle

    def capture(self, assignment: Assignment) -> SnapshotHandle:
        self._handle = SnapshotHandle(token=next(self._tokens), guest_count=len(assignment))
        self._assignment = assignment.copy()
        return self._handle

    def restore(self, handle: SnapshotHandle) -> Assignment:
        if self._handle is None or self._assignment is None:
            raise SnapshotUnavailable("No snapshot has been captured")
        if handle != self._handle:
            raise SnapshotUnavailable(f"Snapshot {handle.token} was replaced by {self._handle.token}")
        return self._assignment.copy()

    def clear(self) -> None:
        self._handle = None
        self._assignment = None
