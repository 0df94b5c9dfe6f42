"""
Reconciliation Engine — upsert of member records against an in-memory table.

Three mutually exclusive paths, tried in this order:

    1. Privileged-proxy update   explicit target + privileged account;
                                 record located by discord_id
    2a. Create                   no record with the requested name;
                                 first fully empty slot, else append
    2b. Self-update              record with the requested name owned by
                                 the acting account
    2c. Denied                   record owned by someone else

Lookup policy: the store does not enforce uniqueness of ``name`` or
``discord_id``.  Every lookup here takes the FIRST row, in table order,
that satisfies its predicate; later duplicates are never touched.

The engine only mutates the Table it is given.  Writing the table back
is the caller's job and happens once, after upsert() returns.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

from rosterctl.schema import SchemaResolver
from rosterctl.types import (
    DISCORD_ID,
    DISPLAY_NAME,
    LAST_UPDATE,
    NAME,
    UPDATE_FIELDS,
    ActingAccount,
    RosterError,
    Row,
    Table,
    UpsertResult,
    capitalize,
    is_blank,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Chicago"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class RecordNotFound(RosterError):
    """No record carries the target discord_id."""

    def __init__(self, discord_id: str):
        super().__init__(f"No member found with Discord ID: {discord_id}")
        self.discord_id = discord_id


class PermissionDenied(RosterError):
    """The record exists but belongs to another account."""

    def __init__(self, name: str, owner_id: str):
        super().__init__("You do not have permission to update this member's data.")
        self.name = name
        self.owner_id = owner_id


def normalize_updates(options: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """Keep the recognized profession/level options that carry a value.

    Values are capitalized per word; empty or missing options are dropped
    so the matching cells stay untouched.
    """
    updates: Dict[str, str] = {}
    for key in UPDATE_FIELDS:
        value = options.get(key)
        if value:
            updates[key] = capitalize(str(value))
    return updates


def find_first(rows: List[Row], predicate: Callable[[Row], bool]) -> Optional[int]:
    """Index of the first row satisfying ``predicate``, or None."""
    for i, row in enumerate(rows):
        if predicate(row):
            return i
    return None


class ReconciliationEngine:
    """Applies member-update semantics to a Table in place."""

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._tz = ZoneInfo(timezone)
        self._clock = clock

    def timestamp(self) -> str:
        """Current time in the configured timezone, as stored in last_update."""
        now = self._clock() if self._clock else datetime.now(self._tz)
        if now.tzinfo is not None:
            now = now.astimezone(self._tz)
        return now.strftime(TIMESTAMP_FORMAT)

    def upsert(
        self,
        table: Table,
        requested_name: str,
        field_updates: Mapping[str, str],
        acting: ActingAccount,
        is_privileged: bool,
        target_identity: Optional[str] = None,
    ) -> UpsertResult:
        """Reconcile one member-update into ``table``.

        Args:
            table: Snapshot to mutate (header + rows).
            requested_name: Free-text member name; capitalized here.
            field_updates: Normalized profession/level values to apply.
            acting: Account issuing the command.
            is_privileged: Whether ``acting`` holds an allowed role.
            target_identity: discord_id to update on someone's behalf.
                Only honored when ``is_privileged`` is true.

        Returns:
            UpsertResult with kind ``update-success`` or ``create-success``.

        Raises:
            RecordNotFound: privileged path, target_identity absent.
            PermissionDenied: name owned by another account.
            ColumnNotFound: the header lacks a required column.
        """
        schema = SchemaResolver(table.header)
        name = capitalize(requested_name) if requested_name else ""
        ts = self.timestamp()

        if target_identity and is_privileged:
            return self._proxy_update(table, schema, name, field_updates, target_identity, ts)
        return self._create_or_self_update(table, schema, name, field_updates, acting, ts)

    # -- Paths --------------------------------------------------------------

    def _proxy_update(
        self, table: Table, schema: SchemaResolver, name: str,
        updates: Mapping[str, str], target_identity: str, ts: str,
    ) -> UpsertResult:
        id_col = schema.require(DISCORD_ID)
        last_col = schema.require(LAST_UPDATE)
        idx = find_first(table.rows, lambda r: r[id_col] == target_identity)
        if idx is None:
            raise RecordNotFound(target_identity)

        row = table.rows[idx]
        before, after = self._apply(row, schema, updates)
        if name:
            row[self._name_col(schema)] = name
        # name and last_update are rewritten even when the diff is empty
        row[last_col] = ts

        logger.debug("Proxy update of %s (row %d): %d field(s) changed",
                     target_identity, idx, len(after))
        return UpsertResult(
            kind="update-success", name=name, discord_id=target_identity,
            row_index=idx, mutated=True, before=before, after=after,
        )

    def _create_or_self_update(
        self, table: Table, schema: SchemaResolver, name: str,
        updates: Mapping[str, str], acting: ActingAccount, ts: str,
    ) -> UpsertResult:
        name_col = self._name_col(schema)
        id_col = schema.require(DISCORD_ID)
        display_col = schema.require(DISPLAY_NAME)
        last_col = schema.require(LAST_UPDATE)

        wanted = name.lower()
        idx = find_first(table.rows, lambda r: r[name_col].lower() == wanted)

        if idx is None:
            row = table.blank_row()
            row[name_col] = name
            row[id_col] = acting.id
            row[display_col] = acting.display_name
            row[last_col] = ts
            for key, value in updates.items():
                col = schema.index_of(key)
                if col is not None:
                    row[col] = value
            slot = find_first(table.rows, lambda r: all(is_blank(c) for c in r))
            if slot is None:
                table.rows.append(row)
                slot = len(table.rows) - 1
            else:
                table.rows[slot] = row
            logger.debug("Created %s in slot %d", name, slot)
            return UpsertResult(
                kind="create-success", name=name, discord_id=acting.id,
                row_index=slot, mutated=True,
            )

        row = table.rows[idx]
        owner = row[id_col]
        current_name = row[name_col]
        if owner != acting.id:
            raise PermissionDenied(current_name, owner)

        row[last_col] = ts
        row[display_col] = acting.display_name
        before, after = self._apply(row, schema, updates)
        logger.debug("Self update of %s (row %d): %d field(s) changed",
                     current_name, idx, len(after))
        return UpsertResult(
            kind="update-success", name=current_name, discord_id=owner,
            row_index=idx, mutated=True, before=before, after=after,
        )

    # -- Helpers ------------------------------------------------------------

    @staticmethod
    def _name_col(schema: SchemaResolver) -> int:
        idx = schema.index_of(NAME)
        return 0 if idx is None else idx

    @staticmethod
    def _apply(row: Row, schema: SchemaResolver, updates: Mapping[str, str]):
        """Apply updates to ``row``; return (before, after) for changed cells."""
        before: Dict[str, str] = {}
        after: Dict[str, str] = {}
        for key, value in updates.items():
            col = schema.index_of(key)
            if col is None or row[col] == value:
                continue
            before[key] = row[col]
            after[key] = value
            row[col] = value
        return before, after
