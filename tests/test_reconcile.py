"""
Tests for rosterctl.reconcile — ReconciliationEngine.upsert.

Invariants tested:
  R1: create on an unknown name yields exactly one new record owned by the caller
  R2: slot reuse — the first fully empty row is filled before appending
  R3: self-update refreshes display_name/last_update and diffs only changed cells
  R4: idempotence — repeating the same updates yields an empty diff
  R5: authorization — a foreign record is never mutated by a non-privileged caller
  R6: privileged proxy update locates by discord_id, always rewrites name/timestamp
  R7: lookups are first-match in table order
  R8: missing required columns raise ColumnNotFound
"""

import copy
from datetime import datetime

import pytest

from rosterctl.reconcile import (
    PermissionDenied,
    ReconciliationEngine,
    RecordNotFound,
    find_first,
    normalize_updates,
)
from rosterctl.schema import ColumnNotFound
from rosterctl.types import DEFAULT_HEADER, ActingAccount, Table

SMALL_HEADER = ["name", "discord_id", "display_name", "last_update", "profession_1", "level_1"]


class Clock:
    """Settable clock returning naive local timestamps."""

    def __init__(self, *args):
        self.now = datetime(*args)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(2024, 5, 1, 12, 0, 0)


@pytest.fixture
def engine(clock):
    return ReconciliationEngine(clock=clock)


@pytest.fixture
def alice():
    return ActingAccount(id="U1", display_name="Alice")


@pytest.fixture
def bob():
    return ActingAccount(id="U2", display_name="Bob")


def small_table(*rows):
    return Table(header=list(SMALL_HEADER), rows=[list(r) for r in rows])


class TestNormalization:
    def test_capitalized_and_filtered(self):
        updates = normalize_updates({
            "profession_1": "black smith", "level_1": "MASTER",
            "profession_2": "", "level_2": None, "bogus": "x",
        })
        assert updates == {"profession_1": "Black Smith", "level_1": "Master"}

    def test_find_first_returns_none(self):
        assert find_first([["a"], ["b"]], lambda r: r[0] == "c") is None


class TestR1Create:
    def test_scenario_create_alice(self, engine, alice):
        table = small_table()
        result = engine.upsert(
            table, "alice", normalize_updates({"profession_1": "baker", "level_1": "master"}),
            alice, is_privileged=False,
        )
        assert result.kind == "create-success"
        assert table.rows == [["Alice", "U1", "Alice", "2024-05-01 12:00:00", "Baker", "Master"]]
        assert result.row_index == 0
        assert result.target() == {"name": "Alice", "discord_id": "U1"}

    def test_unspecified_fields_empty(self, engine, alice):
        table = Table(header=list(DEFAULT_HEADER))
        engine.upsert(table, "Alice", {"level_3": "Apprentice"}, alice, False)
        assert len(table.rows) == 1
        row = table.rows[0]
        filled = {DEFAULT_HEADER[i] for i, c in enumerate(row) if c}
        assert filled == {"name", "discord_id", "display_name", "last_update", "level_3"}

    def test_multiword_name_capitalized(self, engine, alice):
        table = small_table()
        result = engine.upsert(table, "sir ALICE of york", {}, alice, False)
        assert result.name == "Sir Alice Of York"
        assert table.rows[0][0] == "Sir Alice Of York"

    def test_create_ignores_target_when_not_privileged(self, engine, alice):
        table = small_table(["Bob", "U2", "Bob", "", "", ""])
        result = engine.upsert(table, "Alice", {}, alice, False, target_identity="U2")
        assert result.kind == "create-success"
        assert table.rows[0][0] == "Bob"
        assert len(table.rows) == 2


class TestR2SlotReuse:
    def test_fills_first_empty_row(self, engine, alice):
        table = small_table(
            ["Bob", "U2", "Bob", "", "", ""],
            ["", "", "", "", "", ""],
            ["   ", "", "", "", "", ""],
        )
        result = engine.upsert(table, "Alice", {}, alice, False)
        assert result.row_index == 1
        assert table.rows[1][:2] == ["Alice", "U1"]
        assert len(table.rows) == 3

    def test_whitespace_row_is_empty(self, engine, alice):
        table = small_table(["Bob", "U2", "Bob", "", "", ""], [" ", "  ", "", "", "", ""])
        result = engine.upsert(table, "Alice", {}, alice, False)
        assert result.row_index == 1

    def test_short_row_padded_counts_as_empty(self, engine, alice):
        table = small_table(["Bob", "U2"], [])
        assert table.rows[1] == [""] * 6
        result = engine.upsert(table, "Alice", {}, alice, False)
        assert result.row_index == 1

    def test_appends_when_no_empty_row(self, engine, alice):
        table = small_table(["Bob", "U2", "Bob", "", "", ""])
        result = engine.upsert(table, "Alice", {}, alice, False)
        assert result.row_index == 1
        assert len(table.rows) == 2


class TestR3SelfUpdate:
    def test_scenario_level_change(self, engine, alice, clock):
        table = small_table(["Alice", "U1", "Alice", "2024-05-01 12:00:00", "Baker", "Master"])
        clock.now = datetime(2024, 5, 2, 9, 30, 0)
        result = engine.upsert(table, "Alice", {"level_1": "Grandmaster"}, alice, False)
        assert result.kind == "update-success"
        assert result.before == {"level_1": "Master"}
        assert result.after == {"level_1": "Grandmaster"}
        assert table.rows[0][3] == "2024-05-02 09:30:00"
        assert table.rows[0][5] == "Grandmaster"

    def test_display_name_refreshed(self, engine):
        table = small_table(["Alice", "U1", "Old Nick", "", "", ""])
        renamed = ActingAccount(id="U1", display_name="New Nick")
        engine.upsert(table, "ALICE", {}, renamed, False)
        assert table.rows[0][2] == "New Nick"

    def test_keeps_stored_name(self, engine, alice):
        table = small_table(["Alice", "U1", "Alice", "", "", ""])
        result = engine.upsert(table, "aLiCe", {}, alice, False)
        assert result.name == "Alice"
        assert table.rows[0][0] == "Alice"


class TestR4Idempotence:
    def test_second_apply_empty_diff(self, engine, alice, clock):
        table = small_table(["Alice", "U1", "Alice", "", "Baker", "Master"])
        updates = {"profession_1": "Smith", "level_1": "Journeyman"}
        first = engine.upsert(table, "Alice", updates, alice, False)
        assert first.after == updates

        clock.now = datetime(2024, 6, 1, 8, 0, 0)
        again = ActingAccount(id="U1", display_name="Alice The Smith")
        second = engine.upsert(table, "Alice", updates, again, False)
        assert second.before == {} and second.after == {}
        assert table.rows[0][3] == "2024-06-01 08:00:00"
        assert table.rows[0][2] == "Alice The Smith"


class TestR5Authorization:
    def test_foreign_record_denied(self, engine, bob):
        table = small_table(["Alice", "U1", "Alice", "ts", "Baker", "Master"])
        snapshot = copy.deepcopy(table.rows)
        with pytest.raises(PermissionDenied) as exc:
            engine.upsert(table, "Alice", {"level_1": "Apprentice"}, bob, False)
        assert exc.value.name == "Alice"
        assert exc.value.owner_id == "U1"
        assert table.rows == snapshot

    def test_privileged_without_target_still_denied(self, engine, bob):
        table = small_table(["Alice", "U1", "Alice", "ts", "Baker", "Master"])
        snapshot = copy.deepcopy(table.rows)
        with pytest.raises(PermissionDenied):
            engine.upsert(table, "Alice", {"level_1": "Apprentice"}, bob, True)
        assert table.rows == snapshot


class TestR6ProxyUpdate:
    def test_updates_target_row(self, engine, bob):
        table = small_table(
            ["Carol", "U3", "Carol", "old", "Miner", "Apprentice"],
            ["Alice", "U1", "Alice", "old", "Baker", "Master"],
        )
        result = engine.upsert(table, "alicia", {"level_1": "Grandmaster"}, bob, True,
                               target_identity="U1")
        assert result.kind == "update-success"
        assert result.row_index == 1
        assert result.after == {"level_1": "Grandmaster"}
        assert table.rows[1][0] == "Alicia"
        assert table.rows[1][2] == "Alice"  # display_name untouched
        assert table.rows[1][3] == "2024-05-01 12:00:00"
        assert table.rows[0][3] == "old"

    def test_empty_diff_still_stamps(self, engine, bob):
        table = small_table(["Alice", "U1", "Alice", "old", "Baker", "Master"])
        result = engine.upsert(table, "Alice", {"level_1": "Master"}, bob, True,
                               target_identity="U1")
        assert result.before == {} and result.after == {}
        assert result.mutated is True
        assert table.rows[0][3] == "2024-05-01 12:00:00"

    def test_target_missing(self, engine, bob):
        table = small_table(["Alice", "U1", "Alice", "old", "Baker", "Master"])
        snapshot = copy.deepcopy(table.rows)
        with pytest.raises(RecordNotFound, match="U9"):
            engine.upsert(table, "Alice", {}, bob, True, target_identity="U9")
        assert table.rows == snapshot


class TestR7FirstMatch:
    def test_duplicate_names_first_wins(self, engine, alice):
        table = small_table(
            ["Alice", "U1", "Alice", "", "Baker", ""],
            ["alice", "U1", "Alice", "", "Miner", ""],
        )
        engine.upsert(table, "Alice", {"level_1": "Master"}, alice, False)
        assert table.rows[0][5] == "Master"
        assert table.rows[1][5] == ""

    def test_duplicate_ids_first_wins(self, engine, bob):
        table = small_table(
            ["Alice", "U1", "Alice", "", "Baker", ""],
            ["Alice2", "U1", "Alice", "", "Miner", ""],
        )
        result = engine.upsert(table, "", {"level_1": "Master"}, bob, True, target_identity="U1")
        assert result.row_index == 0
        assert table.rows[0][0] == "Alice"  # empty name leaves name untouched


class TestR8Schema:
    def test_missing_last_update(self, engine, alice):
        table = Table(header=["name", "discord_id", "display_name"])
        with pytest.raises(ColumnNotFound):
            engine.upsert(table, "Alice", {}, alice, False)
        assert table.rows == []


class TestTimestamp:
    def test_aware_clock_converted_to_zone(self):
        from zoneinfo import ZoneInfo
        utc_noon = datetime(2024, 1, 15, 18, 0, 0, tzinfo=ZoneInfo("UTC"))
        eng = ReconciliationEngine(timezone="America/Chicago", clock=lambda: utc_noon)
        assert eng.timestamp() == "2024-01-15 12:00:00"
