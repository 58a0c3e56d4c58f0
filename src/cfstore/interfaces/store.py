"""Protocol definition for the typed column store."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..core.schema import Column, Table
    from ..core.types import MarshalledMap, RangeQuery, RowUpdate


class ColumnStore(Protocol):
    """Wide-column store with byte-ordered clustering within a partition."""

    def create_table(self, table: Table) -> bool:
        """Create the table; return False if it already existed."""
        ...

    def describe_table(self, name: str) -> Sequence[Column] | None:
        """Return the live columns of a table, or None if it does not exist."""
        ...

    def add_column(self, name: str, column: Column) -> None:
        """Add a column to an existing table."""
        ...

    def insert(self, name: str, values: RowUpdate, if_not_exists: bool = False) -> bool:
        """Upsert a row; with if_not_exists, return False instead of overwriting.

        None values clear the column.
        """
        ...

    def select(self, query: RangeQuery) -> list[MarshalledMap]:
        """Return matching rows in clustering order."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...
