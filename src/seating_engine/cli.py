"""Command line interface for the seating engine."""
from __future__ import annotations

import argparse
import csv
import logging
from pathlib import Path
from typing import Sequence

from .csv_loader import load_all, load_assignment, load_guests
from .distributor import Strategy, distribute, unplaced
from .optimizer import DEFAULT_SEED, OptimizationBudget, optimize
from .relationships import RelationshipGraph
from .report import build_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seating assignment engine")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log search progress.")
    sub = parser.add_subparsers(dest="command", required=True)

    dist = sub.add_parser("distribute", help="Preview a bulk distribution onto identical tables.")
    dist.add_argument("--guests", required=True, help="Path to guests.csv")
    dist.add_argument("--tables", type=int, required=True, help="Number of tables.")
    dist.add_argument("--capacity", type=int, required=True, help="Seats per table.")
    dist.add_argument("--strategy", choices=[s.value for s in Strategy], default=Strategy.GROUPS.value)

    opt = sub.add_parser("optimize", help="Optimize seating for an event.")
    opt.add_argument("--guests", required=True, help="Path to guests.csv")
    opt.add_argument("--tables", required=True, help="Path to tables.csv")
    opt.add_argument("--relationships", help="Path to relationships.csv")
    opt.add_argument("--constraints", help="Path to constraints.csv")
    opt.add_argument("--assignments", help="Existing assignments CSV to start from.")
    opt.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed for the search.")
    opt.add_argument("--iterations", type=int, default=OptimizationBudget.max_iterations,
                     help="Maximum search iterations.")
    opt.add_argument("--time-limit", type=float, help="Wall-clock ceiling in seconds.")
    opt.add_argument("--out-assignments", type=Path,
                     help="Write assignments CSV: guest_id,table_id,seat_index.")
    opt.add_argument("--out-report", type=Path,
                     help="Write per-table report CSV with scores and grades.")
    return parser


def _run_distribute(args: argparse.Namespace) -> None:
    guests = load_guests(args.guests)
    names = {g.id: g.full_name for g in guests}
    plan = distribute(guests, args.tables, args.capacity, args.strategy)
    for index in sorted(plan):
        members = ", ".join(names[g] for g in plan[index])
        print(f"Table {index + 1}: {members}")
    left_over = unplaced(guests, plan)
    if left_over:
        print(f"[UNPLACED] {', '.join(names[g] for g in left_over)}")


def _run_optimize(args: argparse.Namespace) -> None:
    guests, tables, relationships, constraints = load_all(
        args.guests, args.tables, args.relationships, args.constraints
    )
    initial = load_assignment(args.assignments, tables) if args.assignments else None
    budget = OptimizationBudget(max_iterations=args.iterations, time_limit=args.time_limit)
    result = optimize(guests, tables, relationships, constraints, initial, budget, seed=args.seed)

    table_names = {t.id: t.name for t in tables}
    for guest_id, seat in sorted(result.assignment.items()):
        print(f"{guest_id},{table_names[seat.table_id]},{seat.seat_index}")

    print(f"[SCORE] before={result.before_score.combined:.1f} after={result.score.combined:.1f} "
          f"affinity={result.score.affinity:.1f} penalty={result.score.penalty:.1f} "
          f"moved={len(result.moved_guests)} newly_seated={result.newly_seated}")
    for issue in result.issues:
        print(f"[ISSUE] {issue}")
    for v in result.violations:
        print(f"[VIOLATION] {v.priority.value} {v.description}")

    if args.out_assignments:
        args.out_assignments.parent.mkdir(parents=True, exist_ok=True)
        with args.out_assignments.open("w", newline="") as f:
            w = csv.writer(f)
            w.writerow(["guest_id", "table_id", "seat_index"])
            for guest_id, seat in sorted(result.assignment.items()):
                w.writerow([guest_id, seat.table_id, seat.seat_index])

    graph = RelationshipGraph.from_relationships(relationships, guest_ids=[g.id for g in guests])
    graded = build_report(result.assignment, tables, graph, guests)

    # Print a compact table summary
    for s in graded:
        print(f"[REPORT] {s['table']} grade={s['grade']} mean={s['mean_score']:.2f} "
              f"seated={s['seated']}/{s['capacity']} pos={s['pos_pairs']} neg={s['neg_pairs']}")

    if args.out_report:
        args.out_report.parent.mkdir(parents=True, exist_ok=True)
        with args.out_report.open("w", newline="") as f:
            w = csv.DictWriter(f, fieldnames=[
                "table", "grade", "mean_score", "total_score", "pair_count",
                "pos_pairs", "neg_pairs", "neu_pairs", "seated", "capacity", "members"
            ])
            w.writeheader()
            for s in graded:
                row = dict(s)
                row["mean_score"] = f"{s['mean_score']:.4f}"
                w.writerow(row)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point used by ``seating-engine`` and ``python -m seating_engine.cli``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "distribute":
        _run_distribute(args)
    else:
        _run_optimize(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
