"""
Dated log files and the admin-logs operations (view, download, clear).

setup_logging() attaches a handler that writes ``<prefix>-YYYY-MM-DD.log``
and moves to a new file when the date changes.  File names and the
admin-logs default date both follow the configured timezone.  Retention and
compression are left to the host.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from rosterctl.guard import LogGuard
from rosterctl.types import RosterError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def today_in(timezone: Optional[str] = None) -> Callable[[], date]:
    """Clock returning the current date in ``timezone`` (host local when None)."""
    if not timezone:
        return date.today
    tz = ZoneInfo(timezone)
    return lambda: datetime.now(tz).date()


class LogNotFound(RosterError):
    """No log file exists for the requested date."""

    def __init__(self, day: str):
        super().__init__(f"No log file found for the specified date: {day}.")
        self.day = day


class DatedFileHandler(logging.FileHandler):
    """FileHandler whose target file is named after the current date."""

    def __init__(self, log_dir: str, prefix: str = "roster",
                 today: Callable[[], date] = date.today):
        self._dir = Path(log_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._prefix = prefix
        self._today = today
        self._day = today().isoformat()
        super().__init__(self._path(self._day), encoding="utf-8", delay=True)

    def _path(self, day: str) -> str:
        return str(self._dir / f"{self._prefix}-{day}.log")

    def emit(self, record: logging.LogRecord) -> None:
        day = self._today().isoformat()
        if day != self._day:
            self.acquire()
            try:
                if self.stream is not None:
                    self.stream.close()
                    self.stream = None
                self._day = day
                self.baseFilename = str(Path(self._path(day)).resolve())
            finally:
                self.release()
        super().emit(record)


def setup_logging(
    log_dir: Optional[str] = None,
    *,
    prefix: str = "roster",
    timezone: Optional[str] = None,
    verbose: bool = False,
) -> None:
    """Configure root logging: stderr always, dated files when log_dir is set."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    if log_dir:
        handler = DatedFileHandler(log_dir, prefix=prefix, today=today_in(timezone))
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logging.getLogger().addHandler(handler)


class LogArchive:
    """Read-side access to the dated log files."""

    def __init__(self, log_dir: str, prefix: str = "roster",
                 today: Callable[[], date] = date.today):
        self._guard = LogGuard(Path(log_dir), prefix=prefix)
        self._today = today

    def today(self) -> str:
        return self._today().isoformat()

    def path_for(self, day: Optional[str] = None) -> Path:
        return self._guard.path_for(day or self.today())

    def _existing(self, day: Optional[str]) -> Path:
        path = self.path_for(day)
        if not path.exists():
            raise LogNotFound(day or self.today())
        return path

    def tail(self, day: Optional[str] = None, lines: int = 10) -> str:
        """Last ``lines`` lines of the day's file."""
        text = self._existing(day).read_text(encoding="utf-8")
        return "\n".join(text.split("\n")[-lines:])

    def read_bytes(self, day: Optional[str] = None) -> bytes:
        return self._existing(day).read_bytes()

    def clear(self, day: Optional[str] = None) -> None:
        """Truncate the day's file to zero length."""
        path = self._existing(day)
        path.write_text("", encoding="utf-8")
        logger.debug("Cleared %s", path)
