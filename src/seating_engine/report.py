"""
Per-table compatibility report.

Table compatibility is graded A to F based on the mean relationship weight
among all pairs at the table:

    A: mean >= 2.5
    B: mean >= 1.5
    C: mean >= 0.8
    D: mean >= 0.2
    F: anything lower
"""
from __future__ import annotations

from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import Assignment, Guest, Table
from .relationships import RelationshipGraph


def compute_table_stats(members: List[str], graph: RelationshipGraph) -> Dict[str, int | float]:
    """Compute total and mean pair scores plus sign breakdown for a set of members."""
    total = 0.0
    pos = neg = neu = 0
    pairs = 0
    for a, b in combinations(members, 2):
        v = graph.weight(a, b)
        total += v
        pairs += 1
        if v > 0:
            pos += 1
        elif v < 0:
            neg += 1
        else:
            neu += 1
    mean = total / pairs if pairs else 0.0
    return {
        "total_score": total,
        "mean_score": mean,
        "pair_count": pairs,
        "pos_pairs": pos,
        "neg_pairs": neg,
        "neu_pairs": neu,
    }


def grade_for(mean: float) -> str:
    if mean >= 2.5:
        return "A"
    if mean >= 1.5:
        return "B"
    if mean >= 0.8:
        return "C"
    if mean >= 0.2:
        return "D"
    return "F"


def grade_tables(stats: List[Dict[str, int | float]]) -> List[Dict[str, int | float | str]]:
    """Assign A to F based on mean score thresholds."""
    graded = []
    for s in stats:
        out = dict(s)
        out["grade"] = grade_for(float(s["mean_score"]))
        graded.append(out)
    return graded


def build_report(
    assignment: Assignment,
    tables: Sequence[Table],
    graph: RelationshipGraph,
    guests: Optional[Iterable[Guest]] = None,
) -> List[Dict[str, int | float | str]]:
    """One graded row per table, in table order, including empty tables."""
    names: Mapping[str, str] = {g.id: g.full_name for g in guests} if guests is not None else {}
    stats = []
    for table in tables:
        members = assignment.guests_at(table.id)
        row = compute_table_stats(members, graph)
        row["table"] = table.name
        row["seated"] = len(members)
        row["capacity"] = table.capacity
        row["members"] = "|".join(names.get(g, g) for g in members)
        stats.append(row)
    return grade_tables(stats)
