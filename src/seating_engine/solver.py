"""
Seating model for one event.

Binds the event's guests, tables, relationships and constraints and exposes
the engine operations the planner UI calls: live violations, cold-start
distribution, optimize and a one-step reset.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from .distributor import Strategy, distribute_to_tables
from .models import (
    Assignment,
    Constraint,
    Guest,
    Relationship,
    Score,
    Table,
    VenueElement,
    Violation,
    front_anchor_from_venue,
)
from .optimizer import DEFAULT_SEED, OptimizationBudget, OptimizationResult, optimize as run_optimizer
from .relationships import RelationshipGraph
from .snapshot import SnapshotManager
from .violations import DEFAULT_NEAR_FRONT_COUNT, ConstraintChecker, EvaluationOptions, validate_constraints

logger = logging.getLogger(__name__)


class SeatingModel:
    """Engine facade holding one event's snapshot slot.

    Every operation reads the data passed to :meth:`build`; the only state
    kept between calls is the current assignment and the pre-optimize
    snapshot. Not shared across sessions.
    """

    def __init__(
        self,
        near_front_count: int = DEFAULT_NEAR_FRONT_COUNT,
        is_accessible: Optional[Callable[[Table], bool]] = None,
    ) -> None:
        # Inputs
        self.guests: List[Guest] = []
        self.tables: List[Table] = []
        self.relationships: List[Relationship] = []
        self.constraints: List[Constraint] = []
        self.graph = RelationshipGraph()
        self.options = EvaluationOptions(near_front_count=near_front_count, is_accessible=is_accessible)
        # State
        self.assignment = Assignment()
        self.snapshots = SnapshotManager()

    def build(
        self,
        guests: Sequence[Guest],
        tables: Sequence[Table],
        relationships: Sequence[Relationship] = (),
        constraints: Sequence[Constraint] = (),
        venue_elements: Iterable[VenueElement] = (),
        assignment: Optional[Assignment] = None,
    ) -> None:
        """Store model data. Rebuilding counts as an upstream edit."""
        self.guests = list(guests)
        self.tables = list(tables)
        self.relationships = list(relationships)
        self.constraints = list(constraints)
        self.graph = RelationshipGraph.from_relationships(self.relationships, guest_ids=[g.id for g in self.guests])
        self.options = EvaluationOptions(
            front_anchor=front_anchor_from_venue(venue_elements),
            near_front_count=self.options.near_front_count,
            is_accessible=self.options.is_accessible,
        )
        self.record_edit(assignment or Assignment())

    @property
    def has_snapshot(self) -> bool:
        return self.snapshots.has_snapshot

    def record_edit(self, assignment: Assignment) -> None:
        """Adopt an assignment edited outside the optimizer; drops the snapshot."""
        self.assignment = assignment.copy()
        self.snapshots.clear()

    def get_violations(self, assignment: Optional[Assignment] = None) -> List[Violation]:
        """Violations of the current (or given) assignment, for live badges.

        Constraints that name no guests cannot be graded; each one is logged
        as a warning and left out.
        """
        target = assignment if assignment is not None else self.assignment
        for problem in validate_constraints(self.constraints, self.guests):
            logger.warning(f"[SEATING] {problem}")
        checker = ConstraintChecker(self.tables, self.guests, self.options)
        return checker.evaluate(target.table_of, [c for c in self.constraints if c.guest_ids])

    def score(self, assignment: Optional[Assignment] = None) -> Score:
        target = assignment if assignment is not None else self.assignment
        penalty = sum(v.penalty for v in self.get_violations(target))
        return Score(self.graph.score(target), penalty)

    def distribute(self, strategy: Strategy | str = Strategy.GROUPS) -> Assignment:
        """Cold-start placement of attending guests; counts as an edit."""
        attending = [g for g in self.guests if g.attending]
        self.record_edit(distribute_to_tables(attending, self.tables, strategy))
        return self.assignment

    def optimize(
        self,
        budget: Optional[OptimizationBudget] = None,
        seed: int = DEFAULT_SEED,
    ) -> OptimizationResult:
        """Optimize the current assignment, keeping the prior one for :meth:`reset`."""
        self.snapshots.capture(self.assignment)
        result = run_optimizer(
            self.guests,
            self.tables,
            self.relationships,
            self.constraints,
            self.assignment,
            budget,
            seed=seed,
            options=self.options,
        )
        for issue in result.issues:
            logger.warning(f"[SEATING] {issue}")
        self.assignment = result.assignment.copy()
        return result

    def reset(self) -> bool:
        """Restore the pre-optimize assignment. False when there is nothing to restore."""
        handle = self.snapshots.current
        if handle is None:
            return False
        self.assignment = self.snapshots.restore(handle)
        self.snapshots.clear()
        return True
