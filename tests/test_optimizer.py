import asyncio
import threading

import pytest

from seating_engine.errors import CapacityExceededInput, InvalidConstraint
from seating_engine.models import Assignment, Constraint, Guest, Relationship, Score, Table
from seating_engine.optimizer import (
    OptimizationBudget,
    _LocalSearch,
    optimize,
    optimize_async,
    optimize_best_of,
    optimize_in_background,
)

SMALL = OptimizationBudget(max_iterations=3000, stagnation_window=500)


def _guests(*ids, **overrides):
    return [Guest(id=g, first_name=g.upper(), **overrides.get(g, {})) for g in ids]


def _assert_within_capacity(assignment, tables):
    assert assignment.over_capacity(tables) == []
    seats = [s for _, s in assignment.items()]
    assert len(seats) == len(set(seats))


def test_empty_guest_list_skips_search(monkeypatch):
    def boom(self):
        raise AssertionError("search should not run")

    monkeypatch.setattr(_LocalSearch, "run", boom)
    result = optimize([], [Table("t1", "One", 4)], [], [])
    assert result.assignment == Assignment()
    assert result.score == Score(0.0, 0.0)
    assert result.iterations == 0


def test_everything_empty(monkeypatch):
    monkeypatch.setattr(_LocalSearch, "run", lambda self: pytest.fail("search should not run"))
    result = optimize([], [], [], [], {}, SMALL)
    assert result.assignment == Assignment()
    assert result.score == Score(0.0, 0.0)
    assert result.before_score == Score(0.0, 0.0)
    assert result.issues == []


def test_seats_at_missing_tables_count_as_unassigned():
    tables = [Table("t1", "One", 1), Table("t2", "Two", 1)]
    relationships = [Relationship("a", "b", "friend", 5)]
    initial = Assignment.from_tables({"a": "gone", "b": "gone"})
    result = optimize(_guests("a", "b"), tables, relationships, [], initial, SMALL)
    assert result.before_score == Score(0.0, 0.0)
    assert result.score.combined >= result.before_score.combined
    assert result.improvement >= 0
    assert result.newly_seated == 2
    assert result.moved_guests == []
    _assert_within_capacity(result.assignment, tables)


def test_no_tables_returns_empty_assignment():
    result = optimize(_guests("a", "b"), [], [], [])
    assert len(result.assignment) == 0
    assert not result.cancelled


def test_avoid_pair_gets_separated():
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    relationships = [Relationship("a", "b", "avoid", 5)]
    initial = Assignment.from_tables({"a": "t1", "b": "t1"})
    result = optimize(_guests("a", "b"), tables, relationships, [], initial, SMALL)
    assert result.assignment.table_of("a") != result.assignment.table_of("b")
    assert result.before_score.affinity == -10
    assert result.score.affinity == 0
    assert result.improvement == 10


def test_required_keep_apart_beats_partner_affinity():
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    relationships = [Relationship("a", "b", "partner", 5)]
    constraints = [Constraint("c1", "must_not_sit_together", ["a", "b"], "required")]
    initial = Assignment.from_tables({"a": "t1", "b": "t1"})
    result = optimize(_guests("a", "b"), tables, relationships, constraints, initial, SMALL)
    assert result.assignment.table_of("a") != result.assignment.table_of("b")
    assert result.violations == []
    assert result.score.penalty == 0


def test_partners_end_up_together():
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    relationships = [
        Relationship("a", "b", "partner", 5),
        Relationship("c", "d", "partner", 5),
    ]
    initial = Assignment.from_tables({"a": "t1", "c": "t1", "b": "t2", "d": "t2"})
    result = optimize(_guests("a", "b", "c", "d"), tables, relationships, [], initial, SMALL)
    assert result.assignment.table_of("a") == result.assignment.table_of("b")
    assert result.assignment.table_of("c") == result.assignment.table_of("d")
    assert result.score.combined == 10


def test_result_never_exceeds_capacity_and_seats_everyone():
    guest_ids = [f"g{i}" for i in range(10)]
    tables = [Table("t1", "One", 3), Table("t2", "Two", 3), Table("t3", "Three", 4)]
    relationships = [
        Relationship(guest_ids[i], guest_ids[(i * 3 + 1) % 10], "friend" if i % 2 else "avoid", i % 5 + 1)
        for i in range(10)
    ]
    result = optimize(_guests(*guest_ids), tables, relationships, [], budget=SMALL)
    _assert_within_capacity(result.assignment, tables)
    assert len(result.assignment) == 10
    assert result.newly_seated == 10


def test_score_never_drops_below_initial():
    guest_ids = ["a", "b", "c", "d", "e", "f"]
    tables = [Table("t1", "One", 3), Table("t2", "Two", 3)]
    relationships = [
        Relationship("a", "d", "family", 4),
        Relationship("b", "e", "friend", 3),
        Relationship("a", "b", "avoid", 2),
    ]
    constraints = [Constraint("c1", "same_table", ["c", "f"], "preferred")]
    initial = Assignment.from_tables({"a": "t1", "b": "t1", "c": "t1", "d": "t2", "e": "t2", "f": "t2"})
    result = optimize(_guests(*guest_ids), tables, relationships, constraints, initial, SMALL)
    assert result.score.combined >= result.before_score.combined
    _assert_within_capacity(result.assignment, tables)


def test_same_seed_gives_same_result():
    guest_ids = [f"g{i}" for i in range(8)]
    tables = [Table("t1", "One", 4), Table("t2", "Two", 4)]
    relationships = [Relationship(guest_ids[i], guest_ids[7 - i], "friend", i % 5 + 1) for i in range(4)]
    first = optimize(_guests(*guest_ids), tables, relationships, [], budget=SMALL, seed=7)
    second = optimize(_guests(*guest_ids), tables, relationships, [], budget=SMALL, seed=7)
    assert first.assignment == second.assignment
    assert first.score == second.score
    assert first.iterations == second.iterations


def test_overfilled_seed_is_reported_and_repaired():
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    initial = Assignment.from_tables({"a": "t1", "b": "t1", "c": "t1"})
    result = optimize(_guests("a", "b", "c"), tables, [], [], initial, SMALL)
    capacity_issues = [i for i in result.issues if isinstance(i, CapacityExceededInput)]
    assert len(capacity_issues) == 1
    assert capacity_issues[0].table_ids == ["t1"]
    _assert_within_capacity(result.assignment, tables)
    assert len(result.assignment) == 3


def test_preset_cancel_returns_best_so_far():
    cancel = threading.Event()
    cancel.set()
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    result = optimize(_guests("a", "b", "c"), tables, [], [], cancel=cancel)
    assert result.cancelled
    assert result.iterations == 0
    _assert_within_capacity(result.assignment, tables)


def test_declined_guests_are_never_seated():
    guests = _guests("a", "b", "d", d={"rsvp_status": "declined"})
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    constraints = [Constraint("c1", "must_sit_together", ["a", "d"], "required")]
    initial = Assignment.from_tables({"a": "t1", "d": "t1"})
    result = optimize(guests, tables, [], constraints, initial, SMALL)
    assert "d" not in result.assignment
    assert {"a", "b"} <= set(result.assignment)
    assert result.violations == []


def test_invalid_constraints_are_reported_not_raised():
    tables = [Table("t1", "One", 4)]
    constraints = [
        Constraint("empty", "same_table", []),
        Constraint("ghost", "same_table", ["a", "nobody"]),
    ]
    result = optimize(_guests("a", "b"), tables, [], constraints, budget=SMALL)
    ids = sorted(i.constraint_id for i in result.issues if isinstance(i, InvalidConstraint))
    assert ids == ["empty", "ghost"]
    assert len(result.assignment) == 2


def test_newly_seated_and_moved_guests():
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    relationships = [Relationship("a", "c", "family", 5)]
    initial = Assignment.from_tables({"a": "t1", "b": "t1"})
    result = optimize(_guests("a", "b", "c"), tables, relationships, [], initial, SMALL)
    assert result.newly_seated == 1
    expected_moved = [g for g in ("a", "b") if result.assignment.table_of(g) != initial.table_of(g)]
    assert result.moved_guests == expected_moved
    assert result.assignment.table_of("a") == result.assignment.table_of("c")


def test_background_job_completes():
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    relationships = [Relationship("a", "b", "avoid", 3)]
    job = optimize_in_background(_guests("a", "b"), tables, relationships, [], budget=SMALL)
    result = job.result(timeout=30)
    assert job.done()
    assert not job.cancel_requested
    assert result.assignment.table_of("a") != result.assignment.table_of("b")


def test_background_job_can_be_cancelled_mid_run(monkeypatch):
    running = threading.Event()
    propose = _LocalSearch._propose

    def signalling_propose(self):
        running.set()
        return propose(self)

    monkeypatch.setattr(_LocalSearch, "_propose", signalling_propose)
    guest_ids = [f"g{i}" for i in range(12)]
    tables = [Table("t1", "One", 4), Table("t2", "Two", 4), Table("t3", "Three", 4)]
    relationships = [Relationship(guest_ids[i], guest_ids[(i + 5) % 12], "friend", 2) for i in range(12)]
    endless = OptimizationBudget(max_iterations=10_000_000, stagnation_window=10_000_000)

    job = optimize_in_background(_guests(*guest_ids), tables, relationships, [], budget=endless)
    assert running.wait(timeout=10)
    job.cancel()
    result = job.result(timeout=30)

    assert job.cancel_requested
    assert result.cancelled
    assert 0 < result.iterations < endless.max_iterations
    assert len(result.assignment) == 12
    _assert_within_capacity(result.assignment, tables)


def test_async_run_matches_sync_run():
    guests = _guests("a", "b", "c", "d")
    tables = [Table("t1", "One", 2), Table("t2", "Two", 2)]
    relationships = [Relationship("a", "c", "friend", 2), Relationship("b", "d", "friend", 4)]
    expected = optimize(guests, tables, relationships, [], budget=SMALL, seed=3)
    result = asyncio.run(optimize_async(guests, tables, relationships, [], budget=SMALL, seed=3))
    assert result.assignment == expected.assignment
    assert result.score == expected.score


def test_best_of_is_at_least_first_seed():
    guest_ids = [f"g{i}" for i in range(9)]
    tables = [Table("t1", "One", 3), Table("t2", "Two", 3), Table("t3", "Three", 3)]
    relationships = [Relationship(guest_ids[i], guest_ids[(i + 4) % 9], "colleague", 2) for i in range(9)]
    single = optimize(_guests(*guest_ids), tables, relationships, [], budget=SMALL, seed=11)
    best = optimize_best_of([11, 12, 13], _guests(*guest_ids), tables, relationships, [], budget=SMALL)
    assert best.score.combined >= single.score.combined
    _assert_within_capacity(best.assignment, tables)
    with pytest.raises(ValueError):
        optimize_best_of([], _guests(*guest_ids), tables, relationships, [])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_iterations": -1},
        {"stagnation_window": 0},
        {"initial_temperature": 1.0, "final_temperature": 2.0},
        {"final_temperature": 0.0},
    ],
)
def test_budget_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        OptimizationBudget(**kwargs)


def test_budget_temperature_cools():
    budget = OptimizationBudget(max_iterations=100, initial_temperature=4.0, final_temperature=0.04)
    assert budget.temperature(0) == pytest.approx(4.0)
    assert budget.temperature(99) == pytest.approx(0.04)
    assert budget.temperature(50) < budget.temperature(10)
