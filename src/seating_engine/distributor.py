"""
Group-aware bulk distribution of guests onto tables.

A fast heuristic for cold starts and import previews, not an optimum. Plans
are keyed by table index and list guest ids in seating order. Guests that do
not fit anywhere are left out of the plan; ``unplaced`` lists them.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Sequence

from .models import Assignment, Guest, Seat, Table

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    EVEN = "even"
    GROUPS = "groups"
    # Preview alias of GROUPS; real optimization happens in the optimizer.
    OPTIMIZED = "optimized"
    SKIP = "skip"


Plan = Dict[int, List[str]]


def _bucket_by_group(guests: Sequence[Guest]) -> List[List[str]]:
    """Guests bucketed by group label, largest labelled bucket first.

    Labelled buckets keep first-seen order among equal sizes. Ungrouped guests
    form one bucket that always comes last.
    """
    grouped: Dict[str, List[str]] = {}
    ungrouped: List[str] = []
    for guest in guests:
        label = (guest.group or "").strip()
        if label:
            grouped.setdefault(label, []).append(guest.id)
        else:
            ungrouped.append(guest.id)
    buckets = sorted(grouped.values(), key=len, reverse=True)
    if ungrouped:
        buckets.append(ungrouped)
    return buckets


def _place_from(guest_id: str, start: int, plan: Plan, capacities: Sequence[int]) -> int:
    """Seat a guest at ``start`` or the next table round-robin with room.

    Returns the table index used, or -1 if every table is full.
    """
    count = len(capacities)
    index = start
    for _ in range(count):
        if len(plan[index]) < capacities[index]:
            plan[index].append(guest_id)
            return index
        index = (index + 1) % count
    return -1


def _distribute_evenly(guests: Sequence[Guest], plan: Plan, capacities: Sequence[int]) -> None:
    current = 0
    count = len(capacities)
    for guest in guests:
        used = _place_from(guest.id, current, plan, capacities)
        if used < 0:
            break
        current = (used + 1) % count


def _choose_table(size: int, plan: Plan, capacities: Sequence[int]) -> int:
    """Table with the most room that fits the whole bucket, else the most room."""
    free = [capacities[i] - len(plan[i]) for i in range(len(capacities))]
    fitting = [i for i, room in enumerate(free) if room >= size]
    candidates = fitting or range(len(free))
    # max() keeps the first index among ties.
    return max(candidates, key=lambda i: free[i])


def _distribute_by_groups(guests: Sequence[Guest], plan: Plan, capacities: Sequence[int]) -> None:
    for bucket in _bucket_by_group(guests):
        index = _choose_table(len(bucket), plan, capacities)
        for guest_id in bucket:
            used = _place_from(guest_id, index, plan, capacities)
            if used < 0:
                return
            index = used


def _distribute(guests: Sequence[Guest], capacities: Sequence[int], strategy: Strategy) -> Plan:
    plan: Plan = {i: [] for i in range(len(capacities))}
    if strategy is Strategy.EVEN:
        _distribute_evenly(guests, plan, capacities)
    else:
        _distribute_by_groups(guests, plan, capacities)
    return plan


def distribute(
    guests: Iterable[Guest],
    table_count: int,
    table_capacity: int,
    strategy: Strategy | str = Strategy.GROUPS,
) -> Plan:
    """Preview how ``guests`` spread over ``table_count`` identical tables.

    ``even`` deals guests round-robin in input order. ``groups`` (and its
    alias ``optimized``) keeps group labels together where capacity allows.
    ``skip`` returns an empty plan, as does a non-positive table count.
    """
    strategy = Strategy(strategy)
    if table_count <= 0 or strategy is Strategy.SKIP:
        return {}
    capacities = [max(0, int(table_capacity))] * int(table_count)
    return _distribute(list(guests), capacities, strategy)


def unplaced(guests: Iterable[Guest], plan: Plan) -> List[str]:
    """Guests missing from ``plan``, in input order."""
    placed = {g for ids in plan.values() for g in ids}
    return [g.id for g in guests if g.id not in placed]


def plan_to_assignment(plan: Plan, tables: Sequence[Table]) -> Assignment:
    """Commit an index plan onto concrete tables.

    Seat indexes follow plan order. Plan entries beyond the number of tables,
    or beyond a table's real capacity, stay unassigned.
    """
    seats: Dict[str, Seat] = {}
    for index in sorted(plan):
        if index >= len(tables):
            logger.warning(f"Plan references table index {index} but only {len(tables)} tables exist")
            continue
        table = tables[index]
        members = plan[index]
        if len(members) > table.capacity:
            logger.warning(
                f"Table {table.name} seats {table.capacity}, leaving {len(members) - table.capacity} guests unassigned"
            )
        for seat_index, guest_id in enumerate(members[: table.capacity]):
            seats[guest_id] = Seat(table.id, seat_index)
    return Assignment(seats)


def distribute_to_tables(
    guests: Iterable[Guest],
    tables: Sequence[Table],
    strategy: Strategy | str = Strategy.GROUPS,
) -> Assignment:
    """Distribute onto real tables, honouring each table's own capacity."""
    strategy = Strategy(strategy)
    tables = list(tables)
    if not tables or strategy is Strategy.SKIP:
        return Assignment()
    plan = _distribute(list(guests), [t.capacity for t in tables], strategy)
    return plan_to_assignment(plan, tables)
