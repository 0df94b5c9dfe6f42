"""
Tests for rosterctl.search — SearchEngine.

Invariants tested:
  Q1: "any" searches every column; results keep table order
  Q2: an unresolvable column fails the whole search (InvalidColumns)
  Q3: the level filter is checked on the companion of the matching column
  Q4: matching is case-insensitive; empty result is a valid outcome
  Q5: only the leading search columns are considered and returned
"""

import pytest

from rosterctl.search import InvalidColumns, SearchEngine
from rosterctl.types import DEFAULT_HEADER, Table


def row(name, did, *pairs):
    cells = [name, did, name, "2024-01-01 00:00:00"]
    for prof, level in pairs:
        cells.extend([prof, level])
    return cells


@pytest.fixture
def table():
    return Table(header=list(DEFAULT_HEADER), rows=[
        row("Alice", "U1", ("Baker", "Master"), ("Smith", "Master")),
        row("Bob", "U2", ("Smith", "Apprentice")),
        row("Carol", "U3", ("Miner", "Journeyman"), ("Baker", "Grandmaster")),
        row("Dave", "U4", ("Carpenter", "Master")),
    ])


@pytest.fixture
def engine():
    return SearchEngine()


class TestQ1Any:
    def test_any_returns_matching_rows_in_order(self, engine, table):
        result = engine.search(table, "baker", "any")
        assert [r[0] for r in result.rows] == ["Alice", "Carol"]

    def test_any_matches_names_too(self, engine, table):
        result = engine.search(table, "dave", "Any")
        assert [r[0] for r in result.rows] == ["Dave"]

    def test_single_matching_cell(self, engine, table):
        result = engine.search(table, "Miner", "any")
        assert result.count == 1
        assert result.rows[0][0] == "Carol"

    def test_row_counted_once(self, engine, table):
        result = engine.search(table, "Alice", "any")
        assert result.count == 1


class TestQ2InvalidColumns:
    def test_unknown_column(self, engine, table):
        with pytest.raises(InvalidColumns) as exc:
            engine.search(table, "Baker", "profession_1, profession_9")
        assert exc.value.columns == ["profession_9"]

    def test_column_beyond_search_width(self, engine, table):
        # level_5 is column 14, outside the 12 searchable columns
        with pytest.raises(InvalidColumns):
            engine.search(table, "Master", "level_5")

    def test_message_lists_accepted_forms(self, engine, table):
        with pytest.raises(InvalidColumns, match="Profession_1"):
            engine.search(table, "x", "bogus")


class TestQ3LevelFilter:
    def test_smith_master_in_profession_2(self, engine, table):
        result = engine.search(table, "Smith", "profession_2", "Master")
        assert [r[0] for r in result.rows] == ["Alice"]

    def test_smith_apprentice_in_profession_2(self, engine, table):
        result = engine.search(table, "Smith", "profession_2", "Apprentice")
        assert result.empty

    def test_level_checked_on_matching_slot(self, engine, table):
        result = engine.search(table, "Baker", "any", "grandmaster")
        assert [r[0] for r in result.rows] == ["Carol"]

    def test_no_level_bare_match(self, engine, table):
        result = engine.search(table, "Smith", "profession_1, profession_2")
        assert [r[0] for r in result.rows] == ["Alice", "Bob"]

    def test_level_filter_on_non_profession_column(self, engine, table):
        result = engine.search(table, "Alice", "name", "Master")
        assert result.empty


class TestQ4CaseAndEmpty:
    def test_case_insensitive_columns_and_values(self, engine, table):
        result = engine.search(table, "cArPeNtEr", "PROFESSION_1", "MASTER")
        assert [r[0] for r in result.rows] == ["Dave"]

    def test_empty_result(self, engine, table):
        result = engine.search(table, "Alchemist", "any")
        assert result.empty
        assert result.count == 0


class TestQ5Width:
    def test_rows_and_header_cut_to_search_width(self, engine, table):
        result = engine.search(table, "Baker", "any")
        assert len(result.header) == 12
        assert all(len(r) == 12 for r in result.rows)

    def test_custom_width(self, table):
        result = SearchEngine(search_columns=6).search(table, "Baker", "any")
        assert len(result.header) == 6
        assert [r[0] for r in result.rows] == ["Alice"]
