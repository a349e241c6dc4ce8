"""
Local search seating optimizer.

Assigning N guests to K fixed-capacity tables to maximize affinity while
minimizing constraint penalty is a graph partitioning problem, so this is a
bounded heuristic rather than an exact solver:

1. Seed from the caller's assignment when it respects capacities, otherwise
   from the group distributor. Unseated guests are then placed greedily.
2. Propose single-guest relocations to a table with a free seat, or swaps of
   two guests at different tables.
3. Accept improving moves always and worsening moves with probability
   ``exp(delta / T)``, where ``T`` cools geometrically across the budget.
4. Keep the best state seen. The caller's starting state is the baseline, so
   the result never scores below it.

Deltas are incremental: affinity through the relationship graph neighbours
of the moved guests, penalty by re-checking only constraints naming them.
"""
from __future__ import annotations

import asyncio
import logging
import math
import random
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .distributor import Strategy, distribute_to_tables
from .errors import CapacityExceededInput, OptimizationCancelled, SeatingError
from .models import Assignment, Constraint, Guest, Relationship, Score, Seat, Table, Violation
from .relationships import RelationshipGraph
from .violations import ConstraintChecker, EvaluationOptions, validate_constraints

logger = logging.getLogger(__name__)


DEFAULT_SEED = 1729
SWAP_PROBABILITY = 0.5
PROGRESS_LOG_INTERVAL = 5000


@dataclass(frozen=True)
class OptimizationBudget:
    """Ceiling on one optimizer run.

    The run stops at ``max_iterations``, after ``time_limit`` seconds when
    set, or once ``stagnation_window`` iterations pass without a new best.
    """

    max_iterations: int = 20000
    time_limit: Optional[float] = None
    stagnation_window: int = 2000
    initial_temperature: float = 5.0
    final_temperature: float = 0.01

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError("max_iterations must not be negative")
        if self.stagnation_window < 1:
            raise ValueError("stagnation_window must be at least 1")
        if not 0 < self.final_temperature <= self.initial_temperature:
            raise ValueError("temperatures must satisfy 0 < final_temperature <= initial_temperature")

    def temperature(self, iteration: int) -> float:
        if self.max_iterations <= 1:
            return self.final_temperature
        progress = min(1.0, iteration / (self.max_iterations - 1))
        ratio = self.final_temperature / self.initial_temperature
        return self.initial_temperature * ratio ** progress


@dataclass
class OptimizationResult:
    assignment: Assignment
    score: Score = field(default_factory=Score)
    before_score: Score = field(default_factory=Score)
    moved_guests: List[str] = field(default_factory=list)
    newly_seated: int = 0
    iterations: int = 0
    cancelled: bool = False
    issues: List[SeatingError] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)

    @property
    def improvement(self) -> float:
        return self.score.combined - self.before_score.combined


class _SearchState:
    """Mutable guest -> table state with running affinity and penalty."""

    def __init__(
        self,
        tables: Sequence[Table],
        graph: RelationshipGraph,
        checker: ConstraintChecker,
        constraints: Sequence[Constraint],
        table_of: Dict[str, str],
    ) -> None:
        self.graph = graph
        self.checker = checker
        self.constraints = list(constraints)
        self.table_ids = [t.id for t in tables]
        self.capacity = {t.id: t.capacity for t in tables}
        self.members: Dict[str, Set[str]] = {t.id: set() for t in tables}
        self.table_of: Dict[str, str] = {}
        for guest_id, table_id in table_of.items():
            self.table_of[guest_id] = table_id
            self.members[table_id].add(guest_id)

        self.constraints_by_guest: Dict[str, List[int]] = {}
        for index, constraint in enumerate(self.constraints):
            for guest_id in dict.fromkeys(constraint.guest_ids):
                self.constraints_by_guest.setdefault(guest_id, []).append(index)

        self.affinity = sum(self.graph.table_affinity(sorted(m)) for m in self.members.values())
        self.penalty = sum(self.checker.penalty_of(c, self.table_of.get) for c in self.constraints)

    @property
    def combined(self) -> float:
        return self.affinity - self.penalty

    @property
    def seated(self) -> int:
        return len(self.table_of)

    def key(self) -> Tuple[float, int]:
        return (self.combined, self.seated)

    def has_room(self, table_id: str) -> bool:
        return len(self.members[table_id]) < self.capacity[table_id]

    def _constraint_penalty(self, indexes: Iterable[int]) -> float:
        return sum(self.checker.penalty_of(self.constraints[i], self.table_of.get) for i in indexes)

    def _relocate(self, guest_id: str, target: Optional[str]) -> None:
        source = self.table_of.get(guest_id)
        if source is not None:
            self.members[source].discard(guest_id)
        if target is None:
            self.table_of.pop(guest_id, None)
        else:
            self.table_of[guest_id] = target
            self.members[target].add(guest_id)

    def move_delta(self, guest_id: str, target: str) -> Tuple[float, float]:
        """(affinity delta, penalty delta) for moving one guest to ``target``."""
        source = self.table_of.get(guest_id)
        affinity = self.graph.affinity_with(guest_id, self.members[target])
        if source is not None:
            affinity -= self.graph.affinity_with(guest_id, self.members[source])
        indexes = self.constraints_by_guest.get(guest_id, [])
        before = self._constraint_penalty(indexes)
        self._relocate(guest_id, target)
        after = self._constraint_penalty(indexes)
        self._relocate(guest_id, source)
        return affinity, after - before

    def swap_delta(self, first: str, second: str) -> Tuple[float, float]:
        """(affinity delta, penalty delta) for exchanging two seated guests' tables."""
        t1, t2 = self.table_of[first], self.table_of[second]
        m1, m2 = self.members[t1], self.members[t2]
        affinity = (
            self.graph.affinity_with(first, m2, exclude=(second,))
            - self.graph.affinity_with(first, m1)
            + self.graph.affinity_with(second, m1, exclude=(first,))
            - self.graph.affinity_with(second, m2)
        )
        indexes = sorted(
            set(self.constraints_by_guest.get(first, [])) | set(self.constraints_by_guest.get(second, []))
        )
        before = self._constraint_penalty(indexes)
        self._swap(first, second)
        after = self._constraint_penalty(indexes)
        self._swap(first, second)
        return affinity, after - before

    def _swap(self, first: str, second: str) -> None:
        t1, t2 = self.table_of[first], self.table_of[second]
        self.members[t1].discard(first)
        self.members[t2].discard(second)
        self.members[t1].add(second)
        self.members[t2].add(first)
        self.table_of[first], self.table_of[second] = t2, t1

    def apply_move(self, guest_id: str, target: str, delta: Tuple[float, float]) -> None:
        self._relocate(guest_id, target)
        self.affinity += delta[0]
        self.penalty += delta[1]

    def apply_swap(self, first: str, second: str, delta: Tuple[float, float]) -> None:
        self._swap(first, second)
        self.affinity += delta[0]
        self.penalty += delta[1]


class _LocalSearch:
    """One annealing run. Holds the best state so a cancelled run keeps it."""

    def __init__(
        self,
        state: _SearchState,
        order: Sequence[str],
        budget: OptimizationBudget,
        rng: random.Random,
        cancel: Optional[threading.Event],
        baseline: Tuple[Tuple[float, int], Dict[str, str]],
    ) -> None:
        self.state = state
        self.order = list(order)
        self.budget = budget
        self.rng = rng
        self.cancel = cancel
        self.best_key, self.best_table_of = baseline
        self.iterations = 0
        self._record_if_best()

    def _record_if_best(self) -> bool:
        key = self.state.key()
        if key > self.best_key:
            self.best_key = key
            self.best_table_of = dict(self.state.table_of)
            return True
        return False

    def fill_unseated(self) -> None:
        """Greedily seat anyone left over at the free seat with the best delta."""
        state = self.state
        for guest_id in self.order:
            if guest_id in state.table_of:
                continue
            best: Optional[Tuple[float, str, Tuple[float, float]]] = None
            for table_id in state.table_ids:
                if not state.has_room(table_id):
                    continue
                delta = state.move_delta(guest_id, table_id)
                gain = delta[0] - delta[1]
                if best is None or gain > best[0]:
                    best = (gain, table_id, delta)
            if best is None:
                break
            state.apply_move(guest_id, best[1], best[2])
        self._record_if_best()

    def _propose(self) -> Optional[Tuple[str, str, str, Tuple[float, float]]]:
        state = self.state
        guest_id = self.rng.choice(self.order)
        source = state.table_of.get(guest_id)
        if self.rng.random() < SWAP_PROBABILITY:
            other = self.rng.choice(self.order)
            target = state.table_of.get(other)
            if source is None or target is None or source == target:
                return None
            return ("swap", guest_id, other, state.swap_delta(guest_id, other))
        targets = [t for t in state.table_ids if t != source and state.has_room(t)]
        if not targets:
            return None
        target = self.rng.choice(targets)
        return ("move", guest_id, target, state.move_delta(guest_id, target))

    def run(self) -> None:
        budget = self.budget
        started = time.monotonic()
        since_best = 0
        for iteration in range(budget.max_iterations):
            if self.cancel is not None and self.cancel.is_set():
                raise OptimizationCancelled(f"Cancelled after {iteration} iterations")
            if budget.time_limit is not None and time.monotonic() - started >= budget.time_limit:
                logger.info(f"Time limit reached after {iteration} iterations")
                break
            if since_best >= budget.stagnation_window:
                logger.debug(f"No improvement in {since_best} iterations, stopping at {iteration}")
                break
            self.iterations = iteration + 1

            proposal = self._propose()
            if proposal is not None:
                kind, guest_id, other, delta = proposal
                gain = delta[0] - delta[1]
                temperature = budget.temperature(iteration)
                if gain > 0 or self.rng.random() < math.exp(gain / temperature):
                    if kind == "swap":
                        self.state.apply_swap(guest_id, other, delta)
                    else:
                        self.state.apply_move(guest_id, other, delta)

            if self._record_if_best():
                since_best = 0
            else:
                since_best += 1

            if self.iterations % PROGRESS_LOG_INTERVAL == 0:
                logger.debug(
                    f"Iteration {self.iterations}: current={self.state.combined:.1f} best={self.best_key[0]:.1f}"
                )


def _materialize(table_of: Dict[str, str], order: Sequence[str], reference: Assignment, tables: Sequence[Table]) -> Assignment:
    """Turn guest -> table into seats, keeping reference seats where possible."""
    capacity = {t.id: t.capacity for t in tables}
    taken: Dict[str, Set[int]] = {t.id: set() for t in tables}
    seats: Dict[str, Seat] = {}
    for guest_id in order:
        table_id = table_of.get(guest_id)
        seat = reference.seat_of(guest_id)
        if table_id is None or seat is None or seat.table_id != table_id:
            continue
        if seat.seat_index < capacity[table_id] and seat.seat_index not in taken[table_id]:
            seats[guest_id] = seat
            taken[table_id].add(seat.seat_index)
    for guest_id in order:
        table_id = table_of.get(guest_id)
        if table_id is None or guest_id in seats:
            continue
        index = next(i for i in range(capacity[table_id]) if i not in taken[table_id])
        seats[guest_id] = Seat(table_id, index)
        taken[table_id].add(index)
    return Assignment(seats)


def _restrict(assignment: Assignment, eligible: Set[str], table_ids: Set[str]) -> Dict[str, str]:
    return {g: s.table_id for g, s in assignment.items() if g in eligible and s.table_id in table_ids}


def _attending_constraints(constraints: Sequence[Constraint], declined: Set[str]) -> List[Constraint]:
    """Drop declined guests from each constraint, and constraints left empty."""
    active = []
    for constraint in constraints:
        members = [g for g in constraint.guest_ids if g not in declined]
        if not members:
            continue
        if len(members) != len(constraint.guest_ids):
            constraint = replace(constraint, guest_ids=members)
        active.append(constraint)
    return active


def optimize(
    guests: Sequence[Guest],
    tables: Sequence[Table],
    relationships: Iterable[Relationship],
    constraints: Iterable[Constraint],
    initial_assignment: Optional[Union[Assignment, Mapping[str, Seat]]] = None,
    budget: Optional[OptimizationBudget] = None,
    *,
    seed: int = DEFAULT_SEED,
    options: Optional[EvaluationOptions] = None,
    cancel: Optional[threading.Event] = None,
) -> OptimizationResult:
    """Search for a better seating than ``initial_assignment``.

    Never raises for bad input: empty constraints and over-filled seeds are
    reported in ``issues``, cancellation returns the best state found so far
    with ``cancelled`` set. Declined guests are never seated. The same inputs
    and ``seed`` give the same result when no ``time_limit`` is set.

    ``initial_assignment`` may also be a plain guest -> seat mapping. Seats at
    tables that do not exist count as unassigned, for ``before_score`` as
    well as for the search.
    """
    guests = list(guests)
    tables = list(tables)
    constraints = list(constraints)
    budget = budget or OptimizationBudget()
    initial = Assignment(initial_assignment)

    issues: List[SeatingError] = list(validate_constraints(constraints, guests))
    eligible = [g for g in guests if g.attending]
    declined = {g.id for g in guests if not g.attending}
    active = _attending_constraints(constraints, declined)

    order = [g.id for g in eligible]
    graph = RelationshipGraph.from_relationships(relationships, guest_ids=order)
    checker = ConstraintChecker(tables, guests, options)

    table_ids = {t.id for t in tables}
    eligible_ids = set(order)
    # Seats of declined guests or at tables that no longer exist count as unassigned.
    start = _restrict(initial, eligible_ids, table_ids)
    before_score = Score(
        graph.score(Assignment.from_tables(start)),
        sum(v.penalty for v in checker.evaluate(start.get, active)),
    )

    if not eligible:
        logger.info("No attending guests, nothing to optimize")
        return OptimizationResult(assignment=Assignment(), before_score=before_score, issues=issues)
    if sum(t.capacity for t in tables) == 0:
        logger.info(f"No seats available for {len(eligible)} guests")
        return OptimizationResult(assignment=Assignment(), before_score=before_score, issues=issues)

    overfilled = initial.over_capacity(tables)
    if overfilled:
        issues.append(CapacityExceededInput(overfilled))
        logger.warning(f"Seed over-fills {len(overfilled)} tables, reseeding from the distributor")

    if len(initial) and not overfilled:
        reference = initial
        logger.info(f"Seeding from existing assignment of {len(initial)} guests")
    else:
        reference = distribute_to_tables(eligible, tables, Strategy.GROUPS)
        logger.info(f"Seeding from group distribution of {len(reference)} guests")

    state = _SearchState(tables, graph, checker, active, _restrict(reference, eligible_ids, table_ids))
    baseline = (state.key(), dict(state.table_of))
    search = _LocalSearch(state, order, budget, random.Random(seed), cancel, baseline)
    cancelled = False
    try:
        search.fill_unseated()
        search.run()
    except OptimizationCancelled as exc:
        cancelled = True
        logger.info(f"Optimization cancelled, keeping best state: {exc}")

    assignment = _materialize(search.best_table_of, order, reference, tables)
    violations = checker.evaluate(assignment.table_of, active)
    score = Score(graph.score(assignment), sum(v.penalty for v in violations))

    moved = [g for g in order if g in start and assignment.table_of(g) != start[g]]
    newly_seated = sum(1 for g in order if g in assignment and g not in start)
    logger.info(
        f"Optimized seating: {before_score.combined:.1f} -> {score.combined:.1f} "
        f"after {search.iterations} iterations, {len(moved)} moved, {newly_seated} newly seated"
    )
    return OptimizationResult(
        assignment=assignment,
        score=score,
        before_score=before_score,
        moved_guests=moved,
        newly_seated=newly_seated,
        iterations=search.iterations,
        cancelled=cancelled,
        issues=issues,
        violations=violations,
    )


# ----------------------------- running off-thread -----------------------------
class OptimizationJob:
    """Handle to an optimizer run on a worker thread."""

    def __init__(self, future: "Future[OptimizationResult]", cancel_event: threading.Event) -> None:
        self._future = future
        self._cancel_event = cancel_event

    def cancel(self) -> None:
        """Ask the run to stop; it returns its best state so far."""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> OptimizationResult:
        return self._future.result(timeout=timeout)


def optimize_in_background(
    guests: Sequence[Guest],
    tables: Sequence[Table],
    relationships: Iterable[Relationship],
    constraints: Iterable[Constraint],
    initial_assignment: Optional[Assignment] = None,
    budget: Optional[OptimizationBudget] = None,
    *,
    seed: int = DEFAULT_SEED,
    options: Optional[EvaluationOptions] = None,
    executor: Optional[ThreadPoolExecutor] = None,
) -> OptimizationJob:
    """Start ``optimize`` on a worker thread and return immediately."""
    cancel_event = threading.Event()
    own_executor = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="seating-optimizer")
    future = pool.submit(
        optimize,
        list(guests),
        list(tables),
        list(relationships),
        list(constraints),
        initial_assignment.copy() if initial_assignment is not None else None,
        budget,
        seed=seed,
        options=options,
        cancel=cancel_event,
    )
    if own_executor:
        # Lets the worker finish its run, then releases the thread.
        pool.shutdown(wait=False)
    return OptimizationJob(future, cancel_event)


async def optimize_async(
    guests: Sequence[Guest],
    tables: Sequence[Table],
    relationships: Iterable[Relationship],
    constraints: Iterable[Constraint],
    initial_assignment: Optional[Assignment] = None,
    budget: Optional[OptimizationBudget] = None,
    *,
    seed: int = DEFAULT_SEED,
    options: Optional[EvaluationOptions] = None,
    cancel: Optional[threading.Event] = None,
) -> OptimizationResult:
    """Await an optimizer run without blocking the event loop."""
    return await asyncio.to_thread(
        optimize,
        list(guests),
        list(tables),
        list(relationships),
        list(constraints),
        initial_assignment,
        budget,
        seed=seed,
        options=options,
        cancel=cancel,
    )


def optimize_best_of(
    seeds: Sequence[int],
    guests: Sequence[Guest],
    tables: Sequence[Table],
    relationships: Iterable[Relationship],
    constraints: Iterable[Constraint],
    initial_assignment: Optional[Assignment] = None,
    budget: Optional[OptimizationBudget] = None,
    *,
    options: Optional[EvaluationOptions] = None,
    max_workers: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> OptimizationResult:
    """Run one independent search per seed and keep the best result.

    Runs share no mutable state and are compared only once all of them have
    finished. Ties go to the earliest seed.
    """
    if not seeds:
        raise ValueError("At least one seed is required")
    guests, tables = list(guests), list(tables)
    relationships, constraints = list(relationships), list(constraints)
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="seating-optimizer") as pool:
        futures = [
            pool.submit(
                optimize,
                guests,
                tables,
                relationships,
                constraints,
                initial_assignment.copy() if initial_assignment is not None else None,
                budget,
                seed=seed,
                options=options,
                cancel=cancel,
            )
            for seed in seeds
        ]
        results = [f.result() for f in futures]

    best = results[0]
    for result in results[1:]:
        if (result.score.combined, len(result.assignment)) > (best.score.combined, len(best.assignment)):
            best = result
    return best
