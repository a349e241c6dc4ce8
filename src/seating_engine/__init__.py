"""Seating assignment engine package."""
from .models import (
    Assignment,
    Constraint,
    ConstraintType,
    Guest,
    Priority,
    Relationship,
    RelationshipType,
    RsvpStatus,
    Score,
    Seat,
    Table,
    TableShape,
    VenueElement,
    VenueElementType,
    Violation,
    front_anchor_from_venue,
)
from .errors import (
    CapacityExceededInput,
    InvalidConstraint,
    OptimizationCancelled,
    SeatingError,
    SnapshotUnavailable,
)
from .relationships import AVOID_PENALTY_MULTIPLIER, RelationshipGraph, score
from .violations import EvaluationOptions, evaluate, penalty, validate_constraints
from .distributor import Strategy, distribute, distribute_to_tables, plan_to_assignment, unplaced
from .optimizer import (
    DEFAULT_SEED,
    OptimizationBudget,
    OptimizationJob,
    OptimizationResult,
    optimize,
    optimize_async,
    optimize_best_of,
    optimize_in_background,
)
from .snapshot import SnapshotHandle, SnapshotManager
from .solver import SeatingModel

__all__ = [
    "Assignment",
    "Constraint",
    "ConstraintType",
    "Guest",
    "Priority",
    "Relationship",
    "RelationshipType",
    "RsvpStatus",
    "Score",
    "Seat",
    "Table",
    "TableShape",
    "VenueElement",
    "VenueElementType",
    "Violation",
    "front_anchor_from_venue",
    "CapacityExceededInput",
    "InvalidConstraint",
    "OptimizationCancelled",
    "SeatingError",
    "SnapshotUnavailable",
    "AVOID_PENALTY_MULTIPLIER",
    "RelationshipGraph",
    "score",
    "EvaluationOptions",
    "evaluate",
    "penalty",
    "validate_constraints",
    "Strategy",
    "distribute",
    "distribute_to_tables",
    "plan_to_assignment",
    "unplaced",
    "DEFAULT_SEED",
    "OptimizationBudget",
    "OptimizationJob",
    "OptimizationResult",
    "optimize",
    "optimize_async",
    "optimize_best_of",
    "optimize_in_background",
    "SnapshotHandle",
    "SnapshotManager",
    "SeatingModel",
]
