"""
Constraint violation evaluator.

Grades any candidate assignment against the planner's constraints. The same
checks back the live violation badges and the optimizer's penalty term.

Penalty of a violation is ``PRIORITY_WEIGHTS[priority] * magnitude`` where
the magnitude counts how far the constraint is from being met:

    together types: tables used + unassigned members - 1
    apart types: members sharing a table beyond the first, summed per table,
        plus each member that is unknown or seated at a missing table
    near_front / accessibility: offending members

Members that are unknown, or seated at a table that does not exist, can
never satisfy a constraint and always add to its magnitude.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidConstraint
from .models import (
    APART_TYPES,
    TOGETHER_TYPES,
    Assignment,
    Constraint,
    ConstraintType,
    Guest,
    Priority,
    Table,
    Violation,
)


PRIORITY_WEIGHTS: Dict[Priority, float] = {
    Priority.REQUIRED: 1000.0,
    Priority.PREFERRED: 100.0,
    Priority.OPTIONAL: 10.0,
}

DEFAULT_NEAR_FRONT_COUNT = 3

TableLookup = Callable[[str], Optional[str]]


@dataclass
class EvaluationOptions:
    """Venue facts the engine does not model itself.

    ``front_anchor`` is the point ``near_front`` ranks tables against; with no
    anchor those constraints are never reported. ``is_accessible`` decides
    whether a table suits guests with accessibility needs; with no predicate
    ``accessibility`` constraints are never reported.
    """

    front_anchor: Optional[Tuple[float, float]] = None
    near_front_count: int = DEFAULT_NEAR_FRONT_COUNT
    is_accessible: Optional[Callable[[Table], bool]] = None


@dataclass(frozen=True)
class _Finding:
    magnitude: int
    guest_ids: Tuple[str, ...]
    table_ids: Tuple[str, ...]
    detail: str


def _unique(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(ids))


class ConstraintChecker:
    """Checks constraints against a guest -> table lookup.

    Built once per (tables, guests, options) snapshot so the optimizer can
    re-check single constraints cheaply while it moves guests around.
    """

    def __init__(
        self,
        tables: Iterable[Table],
        guests: Iterable[Guest],
        options: Optional[EvaluationOptions] = None,
    ) -> None:
        self.tables = list(tables)
        self.table_by_id = {t.id: t for t in self.tables}
        self.table_rank = {t.id: i for i, t in enumerate(self.tables)}
        self.guest_by_id = {g.id: g for g in guests}
        self.options = options or EvaluationOptions()
        self.front_table_ids = self._rank_front_tables()

    def _rank_front_tables(self) -> Optional[frozenset]:
        anchor = self.options.front_anchor
        if anchor is None:
            return None
        ax, ay = anchor
        ranked = sorted(
            range(len(self.tables)),
            key=lambda i: (math.hypot(self.tables[i].x - ax, self.tables[i].y - ay), i),
        )
        count = max(0, int(self.options.near_front_count))
        return frozenset(self.tables[i].id for i in ranked[:count])

    # ----------------------------- lookups -----------------------------
    def name_of(self, guest_id: str) -> str:
        guest = self.guest_by_id.get(guest_id)
        if guest is None:
            return guest_id
        return guest.full_name or guest_id

    def _seated_table(self, guest_id: str, table_of: TableLookup) -> Optional[str]:
        """Table a known guest sits at, ``None`` if unassigned or unresolvable."""
        if guest_id not in self.guest_by_id:
            return None
        table_id = table_of(guest_id)
        if table_id is None or table_id not in self.table_by_id:
            return None
        return table_id

    def _unresolvable(self, guest_id: str, table_of: TableLookup) -> bool:
        """Unknown guest, or a guest seated at a table that does not exist."""
        if guest_id not in self.guest_by_id:
            return True
        table_id = table_of(guest_id)
        return table_id is not None and table_id not in self.table_by_id

    def _ordered_tables(self, table_ids: Iterable[str]) -> Tuple[str, ...]:
        unknown = len(self.tables)
        return tuple(sorted(set(table_ids), key=lambda t: (self.table_rank.get(t, unknown), t)))

    # ----------------------------- checks -----------------------------
    def _inspect(self, constraint: Constraint, table_of: TableLookup) -> Optional[_Finding]:
        members = _unique(constraint.guest_ids)
        if not members:
            raise InvalidConstraint(constraint.id, "applies to no guests")
        if constraint.type in TOGETHER_TYPES:
            return self._inspect_together(members, table_of)
        if constraint.type in APART_TYPES:
            return self._inspect_apart(members, table_of)
        if constraint.type is ConstraintType.NEAR_FRONT:
            return self._inspect_near_front(members, table_of)
        return self._inspect_accessibility(members, table_of)

    def _inspect_together(self, members: List[str], table_of: TableLookup) -> Optional[_Finding]:
        by_table: Dict[str, List[str]] = {}
        unseated: List[str] = []
        for guest_id in members:
            table_id = self._seated_table(guest_id, table_of)
            if table_id is None:
                unseated.append(guest_id)
            else:
                by_table.setdefault(table_id, []).append(guest_id)
        if not by_table or (len(by_table) == 1 and not unseated):
            return None
        parts = []
        if len(by_table) > 1:
            parts.append(f"split across {len(by_table)} tables")
        if unseated:
            parts.append(f"{len(unseated)} not seated")
        names = ", ".join(self.name_of(g) for g in members)
        return _Finding(
            magnitude=len(by_table) + len(unseated) - 1,
            guest_ids=tuple(members),
            table_ids=self._ordered_tables(by_table),
            detail=f"{names} ({'; '.join(parts)})",
        )

    def _inspect_apart(self, members: List[str], table_of: TableLookup) -> Optional[_Finding]:
        by_table: Dict[str, List[str]] = {}
        missing: List[str] = []
        for guest_id in members:
            if self._unresolvable(guest_id, table_of):
                missing.append(guest_id)
                continue
            table_id = table_of(guest_id)
            if table_id is not None:
                by_table.setdefault(table_id, []).append(guest_id)
        shared = {t: ids for t, ids in by_table.items() if len(ids) > 1}
        if not shared and not missing:
            return None
        table_ids = self._ordered_tables(shared)
        together = [g for t in table_ids for g in shared[t]]
        parts = [
            f"{', '.join(self.name_of(g) for g in shared[t])} at {self.table_by_id[t].name}" for t in table_ids
        ]
        if missing:
            parts.append(f"{', '.join(self.name_of(g) for g in missing)} cannot be placed")
        stale_tables = [table_of(g) for g in missing if table_of(g) is not None]
        return _Finding(
            magnitude=sum(len(ids) - 1 for ids in shared.values()) + len(missing),
            guest_ids=tuple(together + missing),
            table_ids=table_ids + self._ordered_tables(stale_tables),
            detail="; ".join(parts),
        )

    def _inspect_near_front(self, members: List[str], table_of: TableLookup) -> Optional[_Finding]:
        front = self.front_table_ids
        if front is None:
            return None
        offending: List[str] = []
        tables: List[str] = []
        for guest_id in members:
            table_id = table_of(guest_id)
            if table_id is None and guest_id in self.guest_by_id:
                continue
            if guest_id not in self.guest_by_id or table_id not in front:
                offending.append(guest_id)
                if table_id is not None:
                    tables.append(table_id)
        if not offending:
            return None
        names = ", ".join(self.name_of(g) for g in offending)
        return _Finding(
            magnitude=len(offending),
            guest_ids=tuple(offending),
            table_ids=self._ordered_tables(tables),
            detail=f"{names} not seated near the front",
        )

    def _inspect_accessibility(self, members: List[str], table_of: TableLookup) -> Optional[_Finding]:
        is_accessible = self.options.is_accessible
        if is_accessible is None:
            return None
        offending: List[str] = []
        tables: List[str] = []
        for guest_id in members:
            guest = self.guest_by_id.get(guest_id)
            table_id = table_of(guest_id)
            if guest is None:
                offending.append(guest_id)
                if table_id is not None:
                    tables.append(table_id)
                continue
            if not guest.accessibility_needs or table_id is None:
                continue
            table = self.table_by_id.get(table_id)
            if table is None or not is_accessible(table):
                offending.append(guest_id)
                tables.append(table_id)
        if not offending:
            return None
        names = ", ".join(self.name_of(g) for g in offending)
        return _Finding(
            magnitude=len(offending),
            guest_ids=tuple(offending),
            table_ids=self._ordered_tables(tables),
            detail=f"{names} seated at a table without the access they need",
        )

    # ----------------------------- public -----------------------------
    def check(self, constraint: Constraint, table_of: TableLookup) -> Optional[Violation]:
        finding = self._inspect(constraint, table_of)
        if finding is None:
            return None
        description = constraint.description or constraint.type.label
        return Violation(
            constraint_id=constraint.id,
            type=constraint.type,
            priority=constraint.priority,
            description=f"{description}: {finding.detail}",
            affected_guest_ids=finding.guest_ids,
            affected_table_ids=finding.table_ids,
            penalty=PRIORITY_WEIGHTS[constraint.priority] * finding.magnitude,
        )

    def penalty_of(self, constraint: Constraint, table_of: TableLookup) -> float:
        """Weighted penalty of one constraint, skipping description building."""
        finding = self._inspect(constraint, table_of)
        if finding is None:
            return 0.0
        return PRIORITY_WEIGHTS[constraint.priority] * finding.magnitude

    def evaluate(self, table_of: TableLookup, constraints: Iterable[Constraint]) -> List[Violation]:
        violations = []
        for constraint in constraints:
            violation = self.check(constraint, table_of)
            if violation is not None:
                violations.append(violation)
        return violations


def evaluate(
    assignment: Assignment,
    tables: Iterable[Table],
    guests: Iterable[Guest],
    constraints: Iterable[Constraint],
    options: Optional[EvaluationOptions] = None,
) -> List[Violation]:
    """List every violated constraint, in constraint order.

    Raises ``InvalidConstraint`` for a constraint with no guests. Guests or
    tables referenced by id that do not exist never raise; they simply cannot
    satisfy the constraint.
    """
    checker = ConstraintChecker(tables, guests, options)
    return checker.evaluate(assignment.table_of, constraints)


def penalty(
    assignment: Assignment,
    tables: Iterable[Table],
    guests: Iterable[Guest],
    constraints: Iterable[Constraint],
    options: Optional[EvaluationOptions] = None,
) -> float:
    """Total weighted penalty of ``assignment``."""
    return sum(v.penalty for v in evaluate(assignment, tables, guests, constraints, options))


def validate_constraints(constraints: Iterable[Constraint], guests: Iterable[Guest]) -> List[InvalidConstraint]:
    """Report constraints that are empty or name unknown guests, without raising."""
    known = {g.id for g in guests}
    problems: List[InvalidConstraint] = []
    for constraint in constraints:
        if not constraint.guest_ids:
            problems.append(InvalidConstraint(constraint.id, "applies to no guests"))
            continue
        missing = [g for g in _unique(constraint.guest_ids) if g not in known]
        if missing:
            problems.append(InvalidConstraint(constraint.id, f"references unknown guests: {', '.join(missing)}"))
    return problems


def violating_guest_ids(violations: Sequence[Violation]) -> List[str]:
    """Guests to flag with a badge, first occurrence order."""
    return _unique(g for v in violations for g in v.affected_guest_ids)
