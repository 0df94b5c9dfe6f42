"""
rosterctl — member profession roster over a shared table.

Members register their professions and levels through chat-style
commands; the roster lives in one whole-table store (SQLite or a Google
Sheet) that is loaded, reconciled and written back once per command.
"""

__version__ = "0.1.0"

from rosterctl.types import (
    ActingAccount,
    Reply,
    SearchResult,
    Table,
    UpsertResult,
)
from rosterctl.schema import SchemaResolver
from rosterctl.reconcile import ReconciliationEngine
from rosterctl.search import SearchEngine
from rosterctl.store import SqliteTableStore, SheetsTableStore
from rosterctl.config import RosterConfig
from rosterctl.commands import CommandHandler

__all__ = [
    "__version__",
    "ActingAccount",
    "Reply",
    "SearchResult",
    "Table",
    "UpsertResult",
    "SchemaResolver",
    "ReconciliationEngine",
    "SearchEngine",
    "SqliteTableStore",
    "SheetsTableStore",
    "RosterConfig",
    "CommandHandler",
]
