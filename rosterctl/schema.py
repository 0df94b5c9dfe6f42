"""
Schema Resolver — column lookup over a fixed header row.

Names are matched case-insensitively and exactly.  The resolver never
mutates the header it was built from.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from rosterctl.types import FIELD_PAIRS, RosterError


class ColumnNotFound(RosterError):
    """A logical column the code depends on is missing from the header.

    This is a configuration error: the sheet does not have the expected
    schema, and no command can run safely against it.
    """

    def __init__(self, name: str):
        super().__init__(f"Column not found in header: '{name}'")
        self.name = name


class SchemaResolver:
    """Index-by-name and name-by-index over a header row."""

    def __init__(self, header: Sequence[str]):
        self._header: List[str] = list(header)
        self._index: Dict[str, int] = {}
        for i, col in enumerate(self._header):
            # first occurrence wins, mirroring a left-to-right scan
            self._index.setdefault(col.lower(), i)

    @property
    def header(self) -> List[str]:
        return list(self._header)

    def __len__(self) -> int:
        return len(self._header)

    def index_of(self, name: str) -> Optional[int]:
        """Return the column index for ``name``, or None."""
        return self._index.get(name.strip().lower())

    def require(self, name: str) -> int:
        """Return the column index for ``name``; raise ColumnNotFound."""
        idx = self.index_of(name)
        if idx is None:
            raise ColumnNotFound(name)
        return idx

    def name_at(self, index: int) -> str:
        return self._header[index]

    def companion_of(self, index: int) -> Optional[int]:
        """Index of the level column paired with the profession at ``index``.

        Pairing comes from FIELD_PAIRS.  Returns None when the column is
        not a profession column or its level column is absent.
        """
        col = self._header[index].lower()
        for profession, level in FIELD_PAIRS.values():
            if col == profession:
                return self.index_of(level)
        return None
