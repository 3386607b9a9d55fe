"""
Abstract storage interface for the TaskQuest analytics engine.

The engine never designs its own persistence; it talks to a relational
backend through three generic operations borrowed from the Supabase client:

- query(table, filters, ordering) -> rows
- rpc(function_name, params) -> result
- upsert(table, rows) -> rows

plus plain insert/update for the few places that write domain rows. The
backend is swappable between a local DuckDB file (development, tests) and a
Supabase PostgREST endpoint (production) without changing service code.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Sequence

# (column, operator, value); operator is one of FILTER_OPERATORS
Filter = tuple[str, str, Any]
# (column, ascending)
Ordering = tuple[str, bool]

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in")


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class RecordNotFoundError(StorageError, LookupError):
    """A procedure's target row does not exist for the calling user."""

    pass


def validate_filters(filters: Optional[Iterable[Filter]]) -> list[Filter]:
    """Normalize filters to a list and reject unknown operators."""
    result = list(filters or [])
    for column, op, _ in result:
        if op not in FILTER_OPERATORS:
            raise StorageError(f"Unsupported filter operator '{op}' on column '{column}'")
    return result


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Every method raises StorageError on failure. Rows are plain dicts keyed
    by column name; callers must tolerate extra or missing optional columns.
    """

    @abstractmethod
    def query(
        self,
        table: str,
        filters: Optional[Sequence[Filter]] = None,
        ordering: Optional[Sequence[Ordering]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Read rows from a table.

        Args:
            table: Table name
            filters: Conjunction of (column, op, value) predicates
            ordering: (column, ascending) pairs applied in order
            limit: Maximum number of rows to return

        Returns:
            Matching rows as dicts

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def rpc(self, function_name: str, params: Optional[dict] = None) -> Any:
        """
        Invoke a named stored procedure.

        The procedures are opaque to the engine; only their call signature
        and return shape are relied upon.

        Raises:
            StorageError: If the procedure is unknown or fails
        """
        pass

    @abstractmethod
    def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: Optional[Sequence[str]] = None,
    ) -> list[dict]:
        """
        Insert rows, updating existing rows that collide on the conflict key.

        Args:
            table: Table name
            rows: Rows to write
            on_conflict: Conflict target columns (defaults to the table key)

        Returns:
            Written rows as stored

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        """Insert new rows and return them as stored."""
        pass

    @abstractmethod
    def update(
        self,
        table: str,
        values: dict,
        filters: Sequence[Filter],
    ) -> list[dict]:
        """Update rows matching ``filters`` and return the updated rows."""
        pass

    def close(self) -> None:
        """Release pooled connections; the backend is unusable afterwards."""
