"""
Tests for rosterctl.audit — AuditReporter.

Invariants tested:
  A1: every record carries v, ts, kind, level, message, command
  A2: optional fields are omitted (not null) when missing
  A3: levels follow the event kind (info / warning / error)
  A4: report() never raises, even with a broken output stream
  A5: the text line follows the "[KIND] msg | Executor: ... | Target: ..." layout
"""

import io
import json
import logging

import pytest

from rosterctl.audit import AUDIT_SCHEMA_VERSION, EVENTS, AuditReporter, format_line

EXECUTOR = {"discord_id": "U1", "display_name": "Alice"}


@pytest.fixture
def buf():
    """StringIO buffer for capturing JSONL output."""
    return io.StringIO()


@pytest.fixture
def reporter(buf):
    return AuditReporter(output=buf)


def _records(buf):
    buf.seek(0)
    return [json.loads(ln) for ln in buf.read().splitlines() if ln.strip()]


class TestA1RequiredFields:
    REQUIRED = {"v", "ts", "kind", "level", "message", "command"}

    def test_required_present(self, reporter, buf):
        reporter.report("create-success", EXECUTOR, "member-update", {"level_1": "Master"})
        (record,) = _records(buf)
        assert self.REQUIRED <= set(record)
        assert record["v"] == AUDIT_SCHEMA_VERSION
        assert record["options"] == {"level_1": "Master"}

    def test_every_kind_has_a_message(self):
        for kind in ("update-success", "update-denied", "not-found", "create-success",
                     "search-success", "search-empty", "invalid-columns", "internal-error"):
            assert kind in EVENTS


class TestA2Optional:
    def test_missing_optionals_omitted(self, reporter, buf):
        reporter.report("search-empty", EXECUTOR, "member-search")
        (record,) = _records(buf)
        for key in ("target", "options", "before", "after", "results", "error"):
            assert key not in record

    def test_diff_included(self, reporter, buf):
        reporter.report("update-success", EXECUTOR, "member-update", {},
                        target={"name": "Alice", "discord_id": "U1"},
                        before={"level_1": "Master"}, after={"level_1": "Grandmaster"})
        (record,) = _records(buf)
        assert record["before"] == {"level_1": "Master"}
        assert record["after"] == {"level_1": "Grandmaster"}
        assert record["target"]["discord_id"] == "U1"

    def test_empty_diff_kept(self, reporter, buf):
        reporter.report("update-success", EXECUTOR, "member-update", before={}, after={})
        (record,) = _records(buf)
        assert record["before"] == {} and record["after"] == {}


class TestA3Levels:
    @pytest.mark.parametrize("kind,level", [
        ("update-success", logging.INFO),
        ("update-denied", logging.WARNING),
        ("not-found", logging.WARNING),
        ("invalid-columns", logging.WARNING),
        ("internal-error", logging.ERROR),
    ])
    def test_level_by_kind(self, kind, level, caplog):
        with caplog.at_level(logging.DEBUG, logger="rosterctl.audit"):
            AuditReporter().report(kind, EXECUTOR, "member-update")
        assert caplog.records[-1].levelno == level
        assert caplog.records[-1].audit["kind"] == kind


class TestA4FireAndForget:
    def test_closed_stream(self):
        closed = io.StringIO()
        closed.close()
        assert AuditReporter(output=closed).report("search-empty", EXECUTOR, "x") is None

    def test_unserializable_executor(self, buf):
        # default=str keeps odd values printable instead of raising
        record = AuditReporter(output=buf).report("search-empty", {"id": object()}, "x")
        assert record is not None


class TestA5Line:
    def test_layout(self):
        record = AuditReporter.build(
            "update-denied", EXECUTOR, "member-update", {"level_1": "Master"},
            target={"name": "Alice", "discord_id": "U9"},
        )
        line = format_line(record)
        assert line.startswith("[UPDATE FAILED] Unauthorized update attempt")
        assert "| Executor: Alice (U1)" in line
        assert "| Target: Alice (U9)" in line
        assert "| Command: member-update" in line
        assert '| Options: {"level_1": "Master"}' in line

    def test_unknown_target_fields(self):
        record = AuditReporter.build("not-found", EXECUTOR, "member-update",
                                     target={"discord_id": "U7"})
        assert "Target: Unknown (U7)" in format_line(record)
