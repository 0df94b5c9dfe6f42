"""
Audit Reporter — one structured entry per command outcome.

Each call to report() produces a schema-versioned record and emits it to:
- the ``rosterctl.audit`` logger, as a single human-readable line
  (``[KIND] message | Executor: ... | Target: ... | ...``), at the level
  implied by the event kind;
- optionally, a JSONL stream (one compact JSON object per line).

report() is fire-and-forget: it catches all exceptions internally and
never disrupts command handling.  Optional fields that are None are
omitted from the entry.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, TextIO

AUDIT_SCHEMA_VERSION = 1

sink = logging.getLogger("rosterctl.audit")

# kind -> (level, message)
EVENTS: Dict[str, tuple] = {
    "update-success": (logging.INFO, "[UPDATE SUCCESS] Data updated"),
    "update-denied": (logging.WARNING, "[UPDATE FAILED] Unauthorized update attempt"),
    "not-found": (logging.WARNING, "[UPDATE FAILED] Discord ID not found"),
    "create-success": (logging.INFO, "[ADD SUCCESS] Data added"),
    "search-success": (logging.INFO, "[SEARCH SUCCESS] Results found"),
    "search-empty": (logging.INFO, "[SEARCH EMPTY] No results found"),
    "invalid-columns": (logging.WARNING, "[SEARCH FAILED] Invalid columns specified"),
    "internal-error": (logging.ERROR, "[ERROR] Command failed"),
    "logs-view": (logging.INFO, "[LOGS VIEW SUCCESS] Logs viewed"),
    "logs-download": (logging.INFO, "[LOGS DOWNLOAD SUCCESS] Logs downloaded"),
    "logs-clear": (logging.INFO, "[LOGS CLEAR SUCCESS] Logs cleared"),
    "logs-denied": (logging.WARNING, "[LOGS FAILED] Unauthorized access attempt"),
    "logs-missing": (logging.WARNING, "[LOGS FAILED] File not found"),
    "invalid-input": (logging.WARNING, "[COMMAND FAILED] Invalid input"),
}


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def format_line(record: Mapping[str, Any]) -> str:
    """Render a record as the one-line text form used in log files."""
    parts = [record.get("message", record.get("kind", ""))]
    ex = record.get("executor")
    if ex:
        parts.append(f"Executor: {ex.get('display_name', '')} ({ex.get('discord_id', '')})")
    tg = record.get("target")
    if tg:
        parts.append(
            f"Target: {tg.get('name') or 'Unknown'} ({tg.get('discord_id') or 'Unknown'})"
        )
    if record.get("command"):
        parts.append(f"Command: {record['command']}")
    for key, label in (("options", "Options"), ("before", "Before"),
                       ("after", "After"), ("results", "Results"),
                       ("error", "Error")):
        if key in record:
            parts.append(f"{label}: {_dump(record[key])}")
    return " | ".join(parts)


class AuditReporter:
    """Formats and emits command outcome events."""

    def __init__(self, output: Optional[TextIO] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            output: Optional JSONL stream. None → log sink only.
            logger: Log sink. None → the ``rosterctl.audit`` logger.
        """
        self._output = output
        self._logger = logger or sink

    @staticmethod
    def build(
        kind: str,
        executor: Optional[Mapping[str, str]],
        command: str,
        options: Optional[Mapping[str, Any]] = None,
        *,
        target: Optional[Mapping[str, str]] = None,
        before: Optional[Mapping[str, str]] = None,
        after: Optional[Mapping[str, str]] = None,
        results: Optional[Mapping[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the structured entry without emitting it."""
        level, message = EVENTS.get(kind, (logging.INFO, f"[{kind.upper()}]"))
        record: Dict[str, Any] = {
            "v": AUDIT_SCHEMA_VERSION,
            "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "kind": kind,
            "level": logging.getLevelName(level).lower(),
            "message": message,
            "command": command,
        }
        optional = {
            "executor": executor, "target": target, "options": options,
            "before": before, "after": after, "results": results, "error": error,
        }
        record.update({k: dict(v) if isinstance(v, Mapping) else v
                       for k, v in optional.items() if v is not None})
        return record

    def report(self, kind: str, executor, command: str, options=None,
               **fields) -> Optional[Dict[str, Any]]:
        """Build and emit one entry. Fire-and-forget: never raises."""
        try:
            record = self.build(kind, executor, command, options, **fields)
            level = logging.getLevelName(record["level"].upper())
            self._logger.log(level, format_line(record), extra={"audit": record})
            if self._output is not None:
                self._output.write(
                    json.dumps(record, ensure_ascii=False, separators=(",", ":"),
                               default=str) + "\n"
                )
                self._output.flush()
            return record
        except Exception:
            # audit failures must never disrupt command handling
            return None
