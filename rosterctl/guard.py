"""
Log Path Guard — date validation and containment for log file access.

admin-logs takes a user-supplied date that ends up in a file path.  The
guard accepts only ``YYYY-MM-DD`` and verifies the resolved file stays
under the log root.
"""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path

from rosterctl.types import RosterError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class GuardError(RosterError, ValueError):
    """Raised when a guard check fails (bad date, path outside root)."""


class LogGuard:
    """Maps dates to log files under a fixed root."""

    def __init__(self, log_root: Path, prefix: str = "roster"):
        self._root = Path(log_root).resolve()
        self._prefix = prefix

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def validate_date(value: str) -> str:
        """Return ``value`` if it is a real calendar date in YYYY-MM-DD form."""
        if not _DATE_RE.match(value or ""):
            raise GuardError(f"Invalid date '{value}': expected YYYY-MM-DD")
        try:
            date.fromisoformat(value)
        except ValueError:
            raise GuardError(f"Invalid date '{value}': not a calendar date")
        return value

    def path_for(self, day: str) -> Path:
        """Resolve the log file for ``day``; raise GuardError on escape."""
        self.validate_date(day)
        resolved = (self._root / f"{self._prefix}-{day}.log").resolve()
        try:
            resolved.relative_to(self._root)
        except ValueError:
            raise GuardError(
                f"Path outside log root: '{resolved}' is not under '{self._root}'"
            )
        return resolved
