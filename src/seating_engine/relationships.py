"""
Relationship graph and affinity scoring.

Relationships are stored as directed rows (A declares B) but seat scoring is
symmetric. Rows are folded once into an undirected ``networkx.Graph`` whose
edge weight is the sum of every row between the pair:

    family / friend / colleague / acquaintance / partner: +strength
    avoid: -strength * AVOID_PENALTY_MULTIPLIER

Conflicting rows ("friend" and "avoid" for the same pair) are summed, not
overridden, so no declared information is dropped.
"""
from __future__ import annotations

from itertools import combinations
from typing import Iterable, List, Optional, Union

import networkx as nx

from .models import Assignment, Relationship, RelationshipType


AVOID_PENALTY_MULTIPLIER = 2


def relation_value(rel: Relationship, avoid_multiplier: float = AVOID_PENALTY_MULTIPLIER) -> float:
    """Signed contribution of a single relationship row."""
    if rel.type is RelationshipType.AVOID:
        return -float(rel.strength) * avoid_multiplier
    return float(rel.strength)


class RelationshipGraph:
    """Undirected view over relationship rows keyed by unordered guest pair."""

    def __init__(self, graph: Optional[nx.Graph] = None) -> None:
        self.graph = graph if graph is not None else nx.Graph()

    @classmethod
    def from_relationships(
        cls,
        relationships: Iterable[Relationship],
        guest_ids: Optional[Iterable[str]] = None,
        avoid_multiplier: float = AVOID_PENALTY_MULTIPLIER,
    ) -> "RelationshipGraph":
        """Fold directed rows into one weighted edge per pair.

        Self references are skipped. When ``guest_ids`` is given, rows naming
        anyone outside it are skipped too.
        """
        known = set(guest_ids) if guest_ids is not None else None
        graph = nx.Graph()
        for rel in relationships:
            a, b = rel.guest_id, rel.related_guest_id
            if a == b:
                continue
            if known is not None and (a not in known or b not in known):
                continue
            value = relation_value(rel, avoid_multiplier)
            if graph.has_edge(a, b):
                graph[a][b]["weight"] += value
                graph[a][b]["types"].append(rel.type)
            else:
                graph.add_edge(a, b, weight=value, types=[rel.type])
        return cls(graph)

    def weight(self, a: str, b: str) -> float:
        """Combined weight for a pair, 0 when unrelated."""
        data = self.graph.get_edge_data(a, b)
        return data["weight"] if data else 0.0

    def types(self, a: str, b: str) -> List[RelationshipType]:
        data = self.graph.get_edge_data(a, b)
        return list(data["types"]) if data else []

    def affinity_with(self, guest_id: str, others: Iterable[str], exclude: Iterable[str] = ()) -> float:
        """Sum of pair weights between ``guest_id`` and each of ``others``."""
        if guest_id not in self.graph:
            return 0.0
        neighbours = self.graph[guest_id]
        skip = set(exclude)
        skip.add(guest_id)
        return sum(neighbours[o]["weight"] for o in others if o in neighbours and o not in skip)

    def table_affinity(self, members: Iterable[str]) -> float:
        return sum(self.weight(a, b) for a, b in combinations(list(members), 2))

    def score(self, assignment: Assignment) -> float:
        """Affinity of a whole assignment: every related pair sharing a table."""
        total = 0.0
        for a, b, weight in self.graph.edges(data="weight"):
            table = assignment.table_of(a)
            if table is not None and table == assignment.table_of(b):
                total += weight
        return total


def score(
    assignment: Assignment,
    relationships: Union[RelationshipGraph, Iterable[Relationship]],
    avoid_multiplier: float = AVOID_PENALTY_MULTIPLIER,
) -> float:
    """Affinity score for ``assignment``. Higher is better and may be negative.

    Unassigned guests contribute nothing. Rows naming guests that are not in
    the assignment never meet anyone at a table and also contribute nothing.
    """
    if not isinstance(relationships, RelationshipGraph):
        relationships = RelationshipGraph.from_relationships(relationships, avoid_multiplier=avoid_multiplier)
    return relationships.score(assignment)
