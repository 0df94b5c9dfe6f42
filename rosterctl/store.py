"""
Row Store Adapter — whole-table load and store.

Backends:
    SqliteTableStore  - local SQLite file (or ":memory:"), versioned
    SheetsTableStore  - a Google Sheets range via the Sheets v4 API

Both expose the same two operations, ``load_table()`` and
``store_table(table)``, and neither offers row-level access.  A command
brackets its load→reconcile→store cycle in ``session()``, which holds a
process-wide lock per store identity so bulk writes are serialized.
The SQLite backend also rejects a write whose snapshot version is stale.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from rosterctl.types import DEFAULT_HEADER, RosterError, Table

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS roster_rows (
    position INTEGER PRIMARY KEY,   -- 0 is the header row
    cells    TEXT NOT NULL          -- JSON array of strings
);

CREATE TABLE IF NOT EXISTS roster_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class BackingStoreError(RosterError):
    """The backing store could not be read or written."""


class StoreConflict(BackingStoreError):
    """The table changed between load and store."""


# ---------------------------------------------------------------------------
# Single-writer serialization
# ---------------------------------------------------------------------------

_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(store_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(store_id)
        if lock is None:
            lock = _locks[store_id] = threading.Lock()
        return lock


def column_letter(n: int) -> str:
    """1-based column number to A1 letters (1 → A, 14 → N, 27 → AA)."""
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


class TableStore:
    """Common contract for whole-table stores."""

    store_id: str = "default"

    @contextmanager
    def session(self) -> Iterator[TableStore]:
        """Hold the per-store write lock for one load/modify/store cycle."""
        lock = _lock_for(self.store_id)
        with lock:
            yield self

    def load_table(self) -> Table:
        raise NotImplementedError

    def store_table(self, table: Table) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteTableStore(TableStore):
    """
    SQLite-backed table.  One row per table row, cells as a JSON array.

    A monotonically increasing ``version`` in roster_meta is returned with
    every load; ``store_table`` refuses a table whose version is older.
    """

    def __init__(self, db_path: str = ":memory:"):
        self._db_path = db_path
        self.store_id = f"sqlite:{db_path}" if db_path != ":memory:" else f"sqlite:{id(self)}"
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.executescript(_SCHEMA_SQL)
            self._conn.execute(
                "INSERT OR IGNORE INTO roster_meta (key, value) VALUES ('version', '0')"
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise BackingStoreError(f"Cannot open store {db_path}: {e}") from e
        logger.info("SqliteTableStore initialized: %s", db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    def _version(self) -> int:
        row = self._conn.execute(
            "SELECT value FROM roster_meta WHERE key='version'"
        ).fetchone()
        return int(row[0]) if row else 0

    def initialize(self, header: Sequence[str] = DEFAULT_HEADER) -> bool:
        """Seed the header row if the table is empty. Returns True if seeded."""
        table = self.load_table()
        if table.header:
            return False
        self.store_table(Table(header=list(header), version=table.version))
        return True

    def load_table(self) -> Table:
        try:
            rows = self._conn.execute(
                "SELECT cells FROM roster_rows ORDER BY position"
            ).fetchall()
            version = self._version()
        except sqlite3.Error as e:
            raise BackingStoreError(f"Failed to load table: {e}") from e
        values = [json.loads(r[0]) for r in rows]
        logger.debug("Loaded %d row(s) from %s (version %d)",
                     len(values), self._db_path, version)
        return Table.from_values(values, version=version)

    def store_table(self, table: Table) -> None:
        try:
            with self._conn:
                current = self._version()
                if table.version is not None and table.version != current:
                    raise StoreConflict(
                        f"Table changed since load (loaded v{table.version}, "
                        f"store is at v{current})"
                    )
                self._conn.execute("DELETE FROM roster_rows")
                self._conn.executemany(
                    "INSERT INTO roster_rows (position, cells) VALUES (?, ?)",
                    [(i, json.dumps(r, ensure_ascii=False))
                     for i, r in enumerate(table.to_values())],
                )
                self._conn.execute(
                    "UPDATE roster_meta SET value=? WHERE key='version'",
                    (str(current + 1),),
                )
        except sqlite3.Error as e:
            raise BackingStoreError(f"Failed to store table: {e}") from e
        table.version = current + 1


# ---------------------------------------------------------------------------
# Google Sheets
# ---------------------------------------------------------------------------


def build_sheets_service(credentials_path: Optional[str] = None):
    """Authenticate and build a Sheets v4 service.

    Uses a service-account key file when one is given and exists,
    otherwise application default credentials.
    """
    import google.auth
    from google.oauth2 import service_account
    from googleapiclient.discovery import build

    if credentials_path and Path(credentials_path).exists():
        creds = service_account.Credentials.from_service_account_file(
            credentials_path, scopes=SHEETS_SCOPES,
        )
    else:
        creds, _ = google.auth.default(scopes=SHEETS_SCOPES)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


class SheetsTableStore(TableStore):
    """A sheet range (columns A through the configured width) as a table."""

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        *,
        max_columns: int = 14,
        credentials_path: Optional[str] = None,
        service=None,
    ):
        self._spreadsheet_id = spreadsheet_id
        self._range = f"{sheet_name}!A:{column_letter(max_columns)}"
        self._credentials_path = credentials_path
        self._service = service
        self.store_id = f"sheets:{spreadsheet_id}:{sheet_name}"

    @property
    def range(self) -> str:
        return self._range

    def _values(self):
        if self._service is None:
            try:
                self._service = build_sheets_service(self._credentials_path)
            except Exception as e:
                raise BackingStoreError(f"Sheets authentication failed: {e}") from e
        return self._service.spreadsheets().values()

    def load_table(self) -> Table:
        from googleapiclient.errors import HttpError

        try:
            resp = self._values().get(
                spreadsheetId=self._spreadsheet_id, range=self._range,
            ).execute()
        except HttpError as e:
            raise BackingStoreError(f"Failed to fetch sheet data: {e}") from e
        values: List[List[str]] = resp.get("values", [])
        logger.debug("Fetched %d row(s) from %s", len(values), self._range)
        return Table.from_values(values)

    def store_table(self, table: Table) -> None:
        from googleapiclient.errors import HttpError

        try:
            self._values().update(
                spreadsheetId=self._spreadsheet_id,
                range=self._range,
                valueInputOption="RAW",
                body={"values": table.to_values()},
            ).execute()
        except HttpError as e:
            raise BackingStoreError(f"Failed to write sheet data: {e}") from e
        logger.debug("Wrote %d row(s) to %s", len(table.rows) + 1, self._range)


def open_store(config) -> TableStore:
    """Build the store described by a StoreConfig."""
    if config.backend == "sheets":
        return SheetsTableStore(
            config.spreadsheet_id,
            config.sheet_name,
            max_columns=config.max_columns,
            credentials_path=config.credentials_path or None,
        )
    return SqliteTableStore(db_path=config.db_path)
