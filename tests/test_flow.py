import csv
import pathlib

from seating_engine import cli, csv_loader
from seating_engine.models import RsvpStatus

DATA_DIR = pathlib.Path(__file__).parent / "data"


def _load():
    return csv_loader.load_all(
        DATA_DIR / "guests.csv",
        DATA_DIR / "tables.csv",
        DATA_DIR / "relationships.csv",
        DATA_DIR / "constraints.csv",
    )


def test_load_all_reads_every_file():
    guests, tables, relationships, constraints = _load()
    assert len(guests) == 9
    assert [t.id for t in tables] == ["t1", "t2", "t3"]
    assert len(relationships) == 6
    assert [c.id for c in constraints] == ["c1", "c2", "c3"]

    by_id = {g.id: g for g in guests}
    assert by_id["g2"].accessibility_needs == ["wheelchair"]
    assert by_id["g3"].rsvp_status is RsvpStatus.PENDING
    assert by_id["g9"].rsvp_status is RsvpStatus.DECLINED
    assert by_id["g6"].plus_one_of == "g5"
    assert by_id["g7"].group is None
    assert constraints[0].guest_ids == ["g5", "g6"]
    assert constraints[1].description is None
    assert tables[0].y == 50


def test_full_flow(tmp_path, capsys):
    out_assignments = tmp_path / "out" / "assignments.csv"
    out_report = tmp_path / "out" / "report.csv"
    cli.main([
        "optimize",
        "--guests", str(DATA_DIR / "guests.csv"),
        "--tables", str(DATA_DIR / "tables.csv"),
        "--relationships", str(DATA_DIR / "relationships.csv"),
        "--constraints", str(DATA_DIR / "constraints.csv"),
        "--iterations", "5000",
        "--out-assignments", str(out_assignments),
        "--out-report", str(out_report),
    ])
    printed = capsys.readouterr().out
    assert "[SCORE]" in printed
    assert "[VIOLATION] required" not in printed

    guests, tables, _, _ = _load()
    assignment = csv_loader.load_assignment(out_assignments, tables)

    # every attending guest seated, the declined one left out
    attending = {g.id for g in guests if g.attending}
    assert set(assignment) == attending

    # table capacities respected
    assert assignment.over_capacity(tables) == []

    # required constraints hold
    assert assignment.table_of("g5") == assignment.table_of("g6")
    assert assignment.table_of("g7") != assignment.table_of("g8")

    with out_report.open(newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["table"] for r in rows] == ["Head Table", "Table 2", "Table 3"]
    assert all(r["grade"] in {"A", "B", "C", "D", "F"} for r in rows)
    assert sum(int(r["seated"]) for r in rows) == len(attending)


def test_starting_from_saved_assignment(tmp_path, capsys):
    saved = tmp_path / "saved.csv"
    saved.write_text("guest_id,table_id,seat_index\ng5,t1,0\ng6,t2,\n")
    cli.main([
        "optimize",
        "--guests", str(DATA_DIR / "guests.csv"),
        "--tables", str(DATA_DIR / "tables.csv"),
        "--relationships", str(DATA_DIR / "relationships.csv"),
        "--constraints", str(DATA_DIR / "constraints.csv"),
        "--assignments", str(saved),
        "--iterations", "3000",
    ])
    printed = capsys.readouterr().out
    assert "newly_seated=6" in printed


def test_distribute_preview(capsys):
    cli.main([
        "distribute",
        "--guests", str(DATA_DIR / "guests.csv"),
        "--tables", "2",
        "--capacity", "4",
        "--strategy", "groups",
    ])
    printed = capsys.readouterr().out
    assert "Table 1: Alice Moreno, Bruno Moreno, Carla Moreno" in printed
    assert "[UNPLACED] Iris Novak" in printed
