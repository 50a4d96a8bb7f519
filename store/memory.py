"""
In-memory data store backend.

Keeps each table as a list of row dicts and answers the same queries as
the PostgREST backend, including the "no rows" error code for single-row
fetches. Intended for tests and local runs without a database.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

import structlog

from .base import (
    Action, ContainsAny, DataStore, Eq, In, NO_ROWS_CODE, Query, Row, StoreError
)

logger = structlog.get_logger(__name__)


def _matches(row: Row, flt) -> bool:
    if isinstance(flt, Eq):
        return row.get(flt.column) == flt.value
    if isinstance(flt, In):
        return row.get(flt.column) in flt.values
    if isinstance(flt, ContainsAny):
        needle = flt.text.lower()
        return any(needle in str(row.get(column) or "").lower() for column in flt.columns)
    raise TypeError(f"Unsupported filter: {flt!r}")


class InMemoryStore(DataStore):
    """Data store holding rows in process memory."""

    def __init__(self, tables: Optional[Dict[str, List[Row]]] = None):
        self.tables: Dict[str, List[Row]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }

    def rows(self, table: str) -> List[Row]:
        """Return the live row list of a table."""
        return self.tables.setdefault(table, [])

    async def execute(self, query: Query) -> Union[Row, List[Row]]:
        rows = self.rows(query.table)
        matched = [row for row in rows if all(_matches(row, flt) for flt in query.filters)]

        if query.action == Action.INSERT:
            payload = query.payload if isinstance(query.payload, list) else [query.payload]
            result = [self._insert(rows, new_row) for new_row in payload]
        elif query.action == Action.UPDATE:
            for row in matched:
                row.update(query.payload)
            result = matched
        elif query.action == Action.DELETE:
            doomed = {id(row) for row in matched}
            self.tables[query.table] = [row for row in rows if id(row) not in doomed]
            result = matched
        else:
            result = matched

        if query.order_by:
            column, descending = query.order_by
            result = sorted(
                result,
                key=lambda row: (row.get(column) is not None, row.get(column) or ""),
                reverse=descending,
            )

        result = copy.deepcopy(result)
        if query.action == Action.SELECT and query.columns.strip() != "*":
            columns = [column.strip() for column in query.columns.split(",")]
            result = [{column: row.get(column) for column in columns} for row in result]

        if query.single_row:
            if len(result) != 1:
                raise StoreError(
                    "JSON object requested, multiple (or no) rows returned",
                    code=NO_ROWS_CODE,
                    details=f"The result contains {len(result)} rows",
                    status_code=406,
                )
            return result[0]
        return result

    @staticmethod
    def _insert(rows: List[Row], new_row: Row) -> Row:
        row = dict(new_row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        rows.append(row)
        logger.debug("Row inserted", row_id=row["id"])
        return row
