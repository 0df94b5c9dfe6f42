"""
Roster Data Model

Table/record representation, acting accounts, replies, and the result
objects produced by reconciliation and search.  Also the shared exception
root and the value normalization used by every command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Row = List[str]

EventKind = Literal[
    "update-success", "update-denied", "not-found", "create-success",
    "search-success", "search-empty", "invalid-columns", "internal-error",
    "logs-view", "logs-download", "logs-clear", "logs-denied", "logs-missing",
    "invalid-input",
]

# Logical column names
NAME = "name"
DISCORD_ID = "discord_id"
DISPLAY_NAME = "display_name"
LAST_UPDATE = "last_update"

# Slot number -> (profession column, companion level column)
FIELD_PAIRS: Dict[int, Tuple[str, str]] = {
    n: (f"profession_{n}", f"level_{n}") for n in range(1, 6)
}

# The ten fields a member-update may carry, in option order
UPDATE_FIELDS: Tuple[str, ...] = tuple(
    col for pair in FIELD_PAIRS.values() for col in pair
)

DEFAULT_HEADER: Tuple[str, ...] = (
    NAME, DISCORD_ID, DISPLAY_NAME, LAST_UPDATE, *UPDATE_FIELDS,
)


class RosterError(Exception):
    """Base class for every condition a command can surface."""


def capitalize(value: str) -> str:
    """Capitalize the first letter of every space-separated word.

    The remainder of each word is lower-cased: ``"grand MASTER"`` becomes
    ``"Grand Master"``.
    """
    return " ".join(w[:1].upper() + w[1:].lower() for w in value.split(" "))


def is_blank(cell: Optional[str]) -> bool:
    return cell is None or not str(cell).strip()


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


@dataclass
class Table:
    """
    In-memory snapshot of the backing store for one command.

    ``rows`` excludes the header.  Every row is padded to the header
    width on construction, so ``row[i]`` is always a string.
    """

    header: Row
    rows: List[Row] = field(default_factory=list)
    version: Optional[int] = None

    def __post_init__(self) -> None:
        self.header = [str(h) for h in self.header]
        self.rows = [self.pad(r) for r in self.rows]

    @property
    def width(self) -> int:
        return len(self.header)

    def pad(self, row: List[Optional[str]]) -> Row:
        """Return ``row`` as strings, padded or cut to the header width."""
        cells = ["" if c is None else str(c) for c in row[: self.width]]
        cells.extend([""] * (self.width - len(cells)))
        return cells

    def blank_row(self) -> Row:
        return [""] * self.width

    @classmethod
    def from_values(
        cls, values: List[List[str]], version: Optional[int] = None,
    ) -> Table:
        """Build a table from raw sheet values (first row is the header)."""
        if not values:
            return cls(header=[], rows=[], version=version)
        return cls(header=list(values[0]), rows=[list(r) for r in values[1:]],
                   version=version)

    def to_values(self) -> List[Row]:
        """Header + rows, the shape a bulk write expects."""
        return [list(self.header)] + [list(r) for r in self.rows]

    def restricted(self, max_columns: int) -> Table:
        """Copy limited to the first ``max_columns`` columns."""
        return Table(
            header=self.header[:max_columns],
            rows=[r[:max_columns] for r in self.rows],
            version=self.version,
        )

    def merged(self, narrow: Table) -> Table:
        """Copy with ``narrow``'s cells laid over the leading columns.

        Columns past ``narrow.width`` keep their values; rows that
        ``narrow`` appended get blank trailing cells.
        """
        n = narrow.width
        rows: List[Row] = []
        for i, cells in enumerate(narrow.rows):
            tail = self.rows[i][n:] if i < len(self.rows) else []
            rows.append(list(cells[:n]) + list(tail))
        return Table(
            header=list(narrow.header[:n]) + self.header[n:],
            rows=rows,
            version=narrow.version,
        )


# ---------------------------------------------------------------------------
# Accounts and replies
# ---------------------------------------------------------------------------


@dataclass
class ActingAccount:
    """The account that invoked a command."""

    id: str
    display_name: str = ""
    username: str = ""
    roles: List[str] = field(default_factory=list)

    def descriptor(self) -> Dict[str, str]:
        """Executor fields for audit entries."""
        d = {"discord_id": self.id, "display_name": self.display_name}
        if self.username:
            d["username"] = self.username
        return d


@dataclass
class Attachment:
    filename: str
    data: bytes


@dataclass
class Reply:
    """What the transport sends back: text, optional files, visibility."""

    content: str
    files: List[Attachment] = field(default_factory=list)
    ephemeral: bool = False
    ok: bool = True


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class UpsertResult:
    """Outcome of one reconciliation."""

    kind: EventKind
    name: str
    discord_id: str
    row_index: Optional[int] = None
    mutated: bool = False
    before: Dict[str, str] = field(default_factory=dict)
    after: Dict[str, str] = field(default_factory=dict)

    def target(self) -> Dict[str, str]:
        return {"name": self.name, "discord_id": self.discord_id}


@dataclass
class SearchResult:
    """Matching rows (table order) plus the header used to select them."""

    header: Row
    rows: List[Row] = field(default_factory=list)
    column_indexes: List[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def empty(self) -> bool:
        return not self.rows
