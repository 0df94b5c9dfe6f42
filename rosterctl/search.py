"""
Search Engine — value/column/level queries over the roster table.

A row matches when, for at least one selected column, its cell equals the
query value (case-insensitive) and, if a level filter is given, the
companion ``level_N`` cell equals the filter.  Evaluation stops at the
first qualifying column; rows keep their table order.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from rosterctl.schema import SchemaResolver
from rosterctl.types import FIELD_PAIRS, RosterError, Row, SearchResult, Table, capitalize

logger = logging.getLogger(__name__)

ANY = "any"
DEFAULT_SEARCH_COLUMNS = 12


class InvalidColumns(RosterError):
    """At least one requested column does not exist."""

    def __init__(self, columns: List[str]):
        super().__init__(
            "One or more specified columns are invalid, Search_for is for "
            "Name/Profession/Expertise, Level is for only Expertise. "
            f"Use \"Any\" or a comma-separated list such as "
            f"{', '.join(p.capitalize() for p, _ in FIELD_PAIRS.values())}."
        )
        self.columns = columns


class SearchEngine:
    """Resolves a search over the first ``search_columns`` columns."""

    def __init__(self, search_columns: int = DEFAULT_SEARCH_COLUMNS):
        self._search_columns = search_columns

    def resolve_columns(self, schema: SchemaResolver, selector: str) -> List[int]:
        """Column indexes for ``selector`` ("any" or "a, b, c").

        Raises InvalidColumns listing every name that did not resolve.
        """
        selector = selector.strip()
        if selector.lower() == ANY:
            return list(range(len(schema)))
        names = [c.strip() for c in selector.split(",")]
        indexes = [schema.index_of(c) for c in names]
        bad = [n for n, i in zip(names, indexes) if i is None]
        if bad:
            raise InvalidColumns(bad)
        return [i for i in indexes if i is not None]

    def search(
        self,
        table: Table,
        query_value: str,
        column_selector: str,
        level_filter: Optional[str] = None,
    ) -> SearchResult:
        view = table.restricted(self._search_columns)
        schema = SchemaResolver(view.header)
        cols = self.resolve_columns(schema, column_selector)

        wanted = capitalize(query_value).lower()
        level = capitalize(level_filter).lower() if level_filter else None
        companions = {i: schema.companion_of(i) for i in cols} if level else {}

        def matches(row: Row) -> bool:
            for i in cols:
                if row[i].lower() != wanted:
                    continue
                if level is None:
                    return True
                comp = companions[i]
                if comp is not None and row[comp].lower() == level:
                    return True
            return False

        rows = [r for r in view.rows if matches(r)]
        logger.debug("Search %r in %s (level=%r): %d match(es)",
                     query_value, column_selector, level_filter, len(rows))
        return SearchResult(header=view.header, rows=rows, column_indexes=cols)
