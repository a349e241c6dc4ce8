import logging

from seating_engine.distributor import (
    Strategy,
    distribute,
    distribute_to_tables,
    plan_to_assignment,
    unplaced,
)
from seating_engine.models import Guest, Seat, Table


def _guests(*specs):
    """Build guests from (id, group) pairs."""
    return [Guest(id=gid, first_name=gid.upper(), group=group) for gid, group in specs]


def test_groups_keeps_labelled_bucket_together():
    guests = _guests(("a1", "A"), ("a2", "A"), ("u1", None), ("u2", None), ("u3", None), ("u4", None))
    plan = distribute(guests, table_count=2, table_capacity=4, strategy="groups")
    assert plan == {0: ["a1", "a2"], 1: ["u1", "u2", "u3", "u4"]}


def test_distribution_is_deterministic():
    guests = _guests(("a", "X"), ("b", "Y"), ("c", "X"), ("d", None), ("e", "Y"), ("f", "X"))
    first = distribute(guests, 3, 4, Strategy.GROUPS)
    second = distribute(guests, 3, 4, Strategy.GROUPS)
    assert first == second
    assert sorted(g for ids in first.values() for g in ids) == ["a", "b", "c", "d", "e", "f"]


def test_even_round_robin_and_unplaced():
    guests = _guests(("g1", None), ("g2", None), ("g3", None), ("g4", None), ("g5", None))
    plan = distribute(guests, 2, 2, "even")
    assert plan == {0: ["g1", "g3"], 1: ["g2", "g4"]}
    assert unplaced(guests, plan) == ["g5"]


def test_skip_and_no_tables_return_empty_plan():
    guests = _guests(("a", None))
    assert distribute(guests, 3, 4, "skip") == {}
    assert distribute(guests, 0, 4, "groups") == {}
    assert unplaced(guests, {}) == ["a"]


def test_optimized_matches_groups_preview():
    guests = _guests(("a", "X"), ("b", None), ("c", "X"), ("d", "Y"))
    assert distribute(guests, 2, 3, "optimized") == distribute(guests, 2, 3, "groups")


def test_oversized_group_spills_to_next_table():
    guests = _guests(*[(f"f{i}", "Family") for i in range(1, 6)])
    plan = distribute(guests, 2, 4, "groups")
    assert plan == {0: ["f1", "f2", "f3", "f4"], 1: ["f5"]}


def test_largest_group_is_placed_first():
    guests = _guests(("b1", "B"), ("a1", "A"), ("a2", "A"), ("a3", "A"))
    plan = distribute(guests, 2, 3, "groups")
    assert plan == {0: ["a1", "a2", "a3"], 1: ["b1"]}


def test_plans_respect_capacity():
    guests = _guests(*[(f"g{i}", "ABC"[i % 3]) for i in range(20)])
    plan = distribute(guests, 3, 5, "groups")
    assert all(len(ids) <= 5 for ids in plan.values())
    assert len(unplaced(guests, plan)) == 5


def test_distribute_to_tables_uses_each_capacity():
    tables = [Table("t1", "Small", 2), Table("t2", "Large", 4)]
    guests = _guests(("f1", "F"), ("f2", "F"), ("f3", "F"), ("u1", None), ("u2", None))
    assignment = distribute_to_tables(guests, tables)
    assert assignment.guests_at("t2") == ["f1", "f2", "f3"]
    assert assignment.guests_at("t1") == ["u1", "u2"]
    assert assignment.seat_of("f3") == Seat("t2", 2)
    assert distribute_to_tables(guests, tables, "skip") == distribute_to_tables(guests, [], "groups")


def test_plan_to_assignment_leaves_overflow_unassigned(caplog):
    tables = [Table("t1", "Head", 2)]
    with caplog.at_level(logging.WARNING, logger="seating_engine.distributor"):
        assignment = plan_to_assignment({0: ["a", "b", "c"], 5: ["d"]}, tables)
    assert assignment.to_dict() == {"a": ("t1", 0), "b": ("t1", 1)}
    assert "c" not in assignment and "d" not in assignment
    assert "leaving 1 guests unassigned" in caplog.text
