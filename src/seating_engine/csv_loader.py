"""CSV loading utilities."""
from __future__ import annotations

from pathlib import Path
from typing import IO, Any, Iterable, List, Optional, Tuple, Union

import pandas as pd

from .models import (
    Assignment,
    Constraint,
    Guest,
    Relationship,
    Seat,
    Table,
    parse_optional_text,
    parse_pipe_list,
)

CsvSource = Union[Path, str, IO[Any]]


def _text(row: pd.Series, column: str, default: str = "") -> str:
    return parse_optional_text(row.get(column)) or default


def _number(row: pd.Series, column: str, default: float) -> float:
    value = row.get(column)
    if value is None or pd.isna(value):
        return default
    return float(value)


def load_guests(path: CsvSource) -> List[Guest]:
    """Load guests from ``guests.csv``.

    List columns (``accessibility_needs``, ``dietary_restrictions``) are pipe
    separated. A blank ``rsvp_status`` means confirmed.
    """
    df = pd.read_csv(path, dtype={"id": str})
    guests: List[Guest] = []
    for _, row in df.iterrows():
        guests.append(
            Guest(
                id=str(row["id"]).strip(),
                first_name=_text(row, "first_name"),
                last_name=_text(row, "last_name"),
                group=parse_optional_text(row.get("group")),
                accessibility_needs=parse_pipe_list(row.get("accessibility_needs")),
                dietary_restrictions=parse_pipe_list(row.get("dietary_restrictions")),
                rsvp_status=_text(row, "rsvp_status", "confirmed").lower(),
                plus_one_of=parse_optional_text(row.get("plus_one_of")),
                meal_preference=_text(row, "meal_preference"),
                notes=_text(row, "notes"),
            )
        )

    seen = set()
    for g in guests:
        if g.id in seen:
            raise ValueError(f"Duplicate guest id: {g.id}")
        seen.add(g.id)
    return guests


def load_tables(path: CsvSource) -> List[Table]:
    """Load table definitions."""
    df = pd.read_csv(path, dtype={"id": str})
    tables: List[Table] = []
    for _, row in df.iterrows():
        table_id = str(row["id"]).strip()
        tables.append(
            Table(
                id=table_id,
                name=_text(row, "name", table_id),
                capacity=int(row["capacity"]),
                shape=_text(row, "shape", "round").lower(),
                x=_number(row, "x", 0.0),
                y=_number(row, "y", 0.0),
                width=_number(row, "width", 100.0),
                height=_number(row, "height", 100.0),
                rotation=_number(row, "rotation", 0.0),
            )
        )
    return tables


def load_relationships(path: CsvSource, guest_ids: Optional[Iterable[str]] = None) -> List[Relationship]:
    """Load relationships between guests.

    If ``guest_ids`` is provided it validates that both endpoints exist.
    """
    df = pd.read_csv(path, dtype={"guest_id": str, "related_guest_id": str})
    known = {str(g).strip() for g in guest_ids} if guest_ids is not None else None
    relationships: List[Relationship] = []
    for _, row in df.iterrows():
        a = str(row["guest_id"]).strip()
        b = str(row["related_guest_id"]).strip()
        if known is not None and (a not in known or b not in known):
            raise ValueError(f"Relationship references unknown guest: {a}, {b}")
        relationships.append(
            Relationship(
                guest_id=a,
                related_guest_id=b,
                type=_text(row, "type", "acquaintance").lower(),
                strength=int(_number(row, "strength", 1)),
            )
        )
    return relationships


def load_constraints(path: CsvSource, guest_ids: Optional[Iterable[str]] = None) -> List[Constraint]:
    """Load constraints; ``guest_ids`` is a pipe separated column."""
    df = pd.read_csv(path, dtype={"id": str, "guest_ids": str})
    known = {str(g).strip() for g in guest_ids} if guest_ids is not None else None
    constraints: List[Constraint] = []
    for _, row in df.iterrows():
        constraint_id = str(row["id"]).strip()
        members = parse_pipe_list(row.get("guest_ids"))
        if known is not None:
            missing = [g for g in members if g not in known]
            if missing:
                raise ValueError(f"Constraint {constraint_id} references unknown guests: {', '.join(missing)}")
        constraints.append(
            Constraint(
                id=constraint_id,
                type=_text(row, "type").lower(),
                guest_ids=members,
                priority=_text(row, "priority", "preferred").lower(),
                description=parse_optional_text(row.get("description")),
            )
        )
    return constraints


def load_assignment(path: CsvSource, tables: Optional[Iterable[Table]] = None) -> Assignment:
    """Load a saved assignment. Missing seat indexes are numbered per table."""
    df = pd.read_csv(path, dtype={"guest_id": str, "table_id": str})
    known = {t.id for t in tables} if tables is not None else None
    next_seat: dict = {}
    seats = {}
    for _, row in df.iterrows():
        guest_id = str(row["guest_id"]).strip()
        table_id = str(row["table_id"]).strip()
        if known is not None and table_id not in known:
            raise ValueError(f"Assignment references unknown table: {table_id}")
        seat_value = row.get("seat_index")
        if seat_value is None or pd.isna(seat_value):
            seat_index = next_seat.get(table_id, 0)
        else:
            seat_index = int(seat_value)
        next_seat[table_id] = max(next_seat.get(table_id, 0), seat_index + 1)
        seats[guest_id] = Seat(table_id, seat_index)
    return Assignment(seats)


def load_all(
    guests_path: CsvSource,
    tables_path: CsvSource,
    relationships_path: Optional[CsvSource] = None,
    constraints_path: Optional[CsvSource] = None,
) -> Tuple[List[Guest], List[Table], List[Relationship], List[Constraint]]:
    """Convenience wrapper returning guests, tables, relationships and constraints."""
    guests = load_guests(guests_path)
    guest_ids = {g.id for g in guests}
    tables = load_tables(tables_path)
    relationships = load_relationships(relationships_path, guest_ids) if relationships_path else []
    constraints = load_constraints(constraints_path, guest_ids) if constraints_path else []
    return guests, tables, relationships, constraints
