"""Data models for the seating engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple
import math


def parse_pipe_list(value: object) -> List[str]:
    """Split a pipe separated string into a list.

    Empty values such as ``""`` or ``None`` return an empty list.
    ``pandas`` often provides ``float('nan')`` for missing values which is
    also treated as empty.
    """
    if value is None:
        return []
    if isinstance(value, float) and math.isnan(value):
        return []
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return []
    return [part.strip() for part in text.split("|") if part.strip()]


def parse_optional_text(value: object) -> Optional[str]:
    """Return stripped text or ``None`` for blank and NaN cells."""
    items = parse_pipe_list(value)
    if not items:
        return None
    return str(value).strip()


class RelationshipType(str, Enum):
    FAMILY = "family"
    FRIEND = "friend"
    COLLEAGUE = "colleague"
    ACQUAINTANCE = "acquaintance"
    PARTNER = "partner"
    AVOID = "avoid"


class ConstraintType(str, Enum):
    MUST_SIT_TOGETHER = "must_sit_together"
    MUST_NOT_SIT_TOGETHER = "must_not_sit_together"
    SAME_TABLE = "same_table"
    DIFFERENT_TABLE = "different_table"
    NEAR_FRONT = "near_front"
    ACCESSIBILITY = "accessibility"

    @property
    def label(self) -> str:
        return _CONSTRAINT_LABELS[self]


_CONSTRAINT_LABELS = {
    ConstraintType.MUST_SIT_TOGETHER: "Sit together",
    ConstraintType.MUST_NOT_SIT_TOGETHER: "Keep apart",
    ConstraintType.SAME_TABLE: "Same table",
    ConstraintType.DIFFERENT_TABLE: "Different tables",
    ConstraintType.NEAR_FRONT: "Near front",
    ConstraintType.ACCESSIBILITY: "Accessibility",
}

# Constraint types that want their members at a single table, and those that
# want them spread out. The paired types differ only in how they are labelled.
TOGETHER_TYPES = frozenset({ConstraintType.MUST_SIT_TOGETHER, ConstraintType.SAME_TABLE})
APART_TYPES = frozenset({ConstraintType.MUST_NOT_SIT_TOGETHER, ConstraintType.DIFFERENT_TABLE})


class Priority(str, Enum):
    REQUIRED = "required"
    PREFERRED = "preferred"
    OPTIONAL = "optional"


class TableShape(str, Enum):
    ROUND = "round"
    RECTANGLE = "rectangle"
    SQUARE = "square"
    OVAL = "oval"
    HALF_ROUND = "half-round"
    SERPENTINE = "serpentine"


class RsvpStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class VenueElementType(str, Enum):
    DANCE_FLOOR = "dance-floor"
    STAGE = "stage"
    DJ_BOOTH = "dj-booth"
    BAR = "bar"
    BUFFET = "buffet"
    ENTRANCE = "entrance"
    EXIT = "exit"
    PHOTO_BOOTH = "photo-booth"


@dataclass
class Guest:
    """Representation of an event guest."""

    id: str
    first_name: str
    last_name: str = ""
    group: Optional[str] = None
    accessibility_needs: List[str] = field(default_factory=list)
    dietary_restrictions: List[str] = field(default_factory=list)
    rsvp_status: RsvpStatus = RsvpStatus.CONFIRMED
    plus_one_of: Optional[str] = None
    meal_preference: str = ""
    notes: str = ""

    def __post_init__(self) -> None:
        self.rsvp_status = RsvpStatus(self.rsvp_status)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def attending(self) -> bool:
        return self.rsvp_status is not RsvpStatus.DECLINED


@dataclass
class Table:
    """Dinner table definition. Position only matters for ``near_front``."""

    id: str
    name: str
    capacity: int
    shape: TableShape = TableShape.ROUND
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 100.0
    rotation: float = 0.0

    def __post_init__(self) -> None:
        self.shape = TableShape(self.shape)
        if int(self.capacity) < 1:
            raise ValueError(f"Table {self.id} must seat at least one guest, got {self.capacity}")
        self.capacity = int(self.capacity)


@dataclass
class VenueElement:
    """Non-seating item on the floor plan, such as a stage."""

    id: str
    type: VenueElementType
    label: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def __post_init__(self) -> None:
        self.type = VenueElementType(self.type)


def front_anchor_from_venue(elements: Iterable[VenueElement]) -> Optional[Tuple[float, float]]:
    """Pick the point tables are ranked against for ``near_front``.

    The first stage wins, then the first dance floor. Returns ``None`` when
    the venue has neither.
    """
    elements = list(elements)
    for kind in (VenueElementType.STAGE, VenueElementType.DANCE_FLOOR):
        for element in elements:
            if element.type is kind:
                return (element.x, element.y)
    return None


@dataclass
class Relationship:
    """Relationship declared by ``guest_id`` towards ``related_guest_id``."""

    guest_id: str
    related_guest_id: str
    type: RelationshipType
    strength: int = 1

    def __post_init__(self) -> None:
        self.type = RelationshipType(self.type)
        if not 1 <= int(self.strength) <= 5:
            raise ValueError(f"Relationship strength must be within 1..5, got {self.strength}")
        self.strength = int(self.strength)


@dataclass
class Constraint:
    """Seating rule over a set of guests. Priority weights the penalty."""

    id: str
    type: ConstraintType
    guest_ids: List[str]
    priority: Priority = Priority.PREFERRED
    description: Optional[str] = None

    def __post_init__(self) -> None:
        self.type = ConstraintType(self.type)
        self.priority = Priority(self.priority)
        self.guest_ids = list(self.guest_ids)


@dataclass(frozen=True, order=True)
class Seat:
    table_id: str
    seat_index: int


class Assignment:
    """Mapping from a subset of guest ids to seats.

    Guests absent from the mapping are unassigned. Two guests can never
    share a seat.
    """

    def __init__(self, seats: Optional[Mapping[str, Seat]] = None) -> None:
        self._seats: Dict[str, Seat] = {}
        taken: Dict[Seat, str] = {}
        for guest_id, seat in (seats or {}).items():
            if not isinstance(seat, Seat):
                seat = Seat(*seat)
            if seat in taken:
                raise ValueError(
                    f"Guests {taken[seat]} and {guest_id} both occupy seat "
                    f"{seat.seat_index} at table {seat.table_id}"
                )
            taken[seat] = guest_id
            self._seats[guest_id] = seat

    @classmethod
    def from_tables(cls, table_by_guest: Mapping[str, str]) -> "Assignment":
        """Build an assignment from guest -> table, numbering seats in input order.

        Each guest gets the next seat index at their table. Occupancy is not
        capped; use :meth:`over_capacity` to find over-filled tables.
        """
        next_seat: Dict[str, int] = {}
        seats: Dict[str, Seat] = {}
        for guest_id, table_id in table_by_guest.items():
            index = next_seat.get(table_id, 0)
            seats[guest_id] = Seat(table_id, index)
            next_seat[table_id] = index + 1
        return cls(seats)

    def __len__(self) -> int:
        return len(self._seats)

    def __iter__(self) -> Iterator[str]:
        return iter(self._seats)

    def __contains__(self, guest_id: object) -> bool:
        return guest_id in self._seats

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Assignment):
            return NotImplemented
        return self._seats == other._seats

    def __repr__(self) -> str:
        return f"Assignment({self._seats!r})"

    def items(self):
        return self._seats.items()

    def seat_of(self, guest_id: str) -> Optional[Seat]:
        return self._seats.get(guest_id)

    def table_of(self, guest_id: str) -> Optional[str]:
        seat = self._seats.get(guest_id)
        return seat.table_id if seat else None

    def guests_at(self, table_id: str) -> List[str]:
        """Guests at a table ordered by seat index."""
        seated = [(s.seat_index, g) for g, s in self._seats.items() if s.table_id == table_id]
        return [g for _, g in sorted(seated)]

    def occupancy(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for seat in self._seats.values():
            counts[seat.table_id] = counts.get(seat.table_id, 0) + 1
        return counts

    def over_capacity(self, tables: Iterable[Table]) -> List[str]:
        """Ids of tables holding more guests than they seat, in table order."""
        counts = self.occupancy()
        return [t.id for t in tables if counts.get(t.id, 0) > t.capacity]

    def table_map(self) -> Dict[str, str]:
        return {g: s.table_id for g, s in self._seats.items()}

    def to_dict(self) -> Dict[str, Tuple[str, int]]:
        return {g: (s.table_id, s.seat_index) for g, s in self._seats.items()}

    def copy(self) -> "Assignment":
        return Assignment(self._seats)


@dataclass(frozen=True)
class Score:
    affinity: float = 0.0
    penalty: float = 0.0

    @property
    def combined(self) -> float:
        return self.affinity - self.penalty


@dataclass(frozen=True)
class Violation:
    """A constraint found unsatisfied by an assignment."""

    constraint_id: str
    type: ConstraintType
    priority: Priority
    description: str
    affected_guest_ids: Tuple[str, ...]
    affected_table_ids: Tuple[str, ...]
    penalty: float = 0.0
