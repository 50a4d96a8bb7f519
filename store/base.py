"""
Data store capability interface.

Queries are built fluently against a table and executed by a backend:

    books = await (
        store.table("books")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", descending=True)
        .execute()
    )
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# PostgREST code for "JSON object requested, multiple (or no) rows returned"
NO_ROWS_CODE = "PGRST116"

Row = Dict[str, Any]


class StoreError(Exception):
    """Error reported by the data store."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status_code = status_code

    @property
    def is_no_rows(self) -> bool:
        """True when a single-row fetch matched no row."""
        return self.code == NO_ROWS_CODE


class Action(str, Enum):
    """Query actions."""
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Eq:
    """column = value"""
    column: str
    value: Any


@dataclass(frozen=True)
class In:
    """column is one of values"""
    column: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class ContainsAny:
    """Any of columns case-insensitively contains text."""
    columns: Tuple[str, ...]
    text: str


Filter = Union[Eq, In, ContainsAny]


class Query:
    """A single table query, built fluently and run by its store."""

    def __init__(self, store: "DataStore", table: str):
        self.store = store
        self.table = table
        self.action = Action.SELECT
        self.columns = "*"
        self.payload: Union[Row, List[Row], None] = None
        self.filters: List[Filter] = []
        self.order_by: Optional[Tuple[str, bool]] = None
        self.single_row = False

    def select(self, columns: str = "*") -> "Query":
        self.action = Action.SELECT
        self.columns = columns
        return self

    def insert(self, rows: Union[Row, Sequence[Row]]) -> "Query":
        self.action = Action.INSERT
        self.payload = dict(rows) if isinstance(rows, dict) else [dict(r) for r in rows]
        return self

    def update(self, values: Row) -> "Query":
        self.action = Action.UPDATE
        self.payload = dict(values)
        return self

    def delete(self) -> "Query":
        self.action = Action.DELETE
        return self

    def eq(self, column: str, value: Any) -> "Query":
        self.filters.append(Eq(column, value))
        return self

    def in_(self, column: str, values: Sequence[Any]) -> "Query":
        self.filters.append(In(column, tuple(values)))
        return self

    def contains_any(self, columns: Sequence[str], text: str) -> "Query":
        self.filters.append(ContainsAny(tuple(columns), text))
        return self

    def order(self, column: str, descending: bool = False) -> "Query":
        self.order_by = (column, descending)
        return self

    def single(self) -> "Query":
        """Expect exactly one row; the result is a dict instead of a list."""
        self.single_row = True
        return self

    async def execute(self) -> Union[Row, List[Row]]:
        return await self.store.execute(self)

    def __repr__(self) -> str:
        return f"<Query {self.action.value} {self.table} filters={self.filters!r}>"


class DataStore(ABC):
    """Table-scoped query capability over a remote relational store."""

    def table(self, name: str) -> Query:
        return Query(self, name)

    @abstractmethod
    async def execute(self, query: Query) -> Union[Row, List[Row]]:
        """
        Run a query.

        Returns:
            The affected or selected rows, or a single row for ``single()``

        Raises:
            StoreError: If the store rejects the query or cannot be reached
        """

    async def close(self) -> None:
        """Release backend resources."""
