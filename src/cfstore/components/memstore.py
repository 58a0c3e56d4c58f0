"""In-memory column store implementation.

Uses sortedcontainers.SortedDict to keep each partition's rows ordered by
clustering key, byte-lexicographically, as a wide-column store does.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sortedcontainers import SortedDict

from ..core.errors import StoreError
from ..core.types import MarshalledMap, RangeQuery, RowUpdate

if TYPE_CHECKING:
    from ..core.schema import Column, Table

logger = logging.getLogger(__name__)

ClusteringKey = tuple[bytes, ...]


@dataclass
class _StoredTable:
    name: str
    columns: list[Column]
    primary_key: list[str]
    # partition key -> SortedDict[clustering key -> row]
    partitions: dict[bytes, SortedDict] = field(default_factory=dict)

    @property
    def partition_column(self) -> str:
        return self.primary_key[0]

    @property
    def clustering_columns(self) -> list[str]:
        return self.primary_key[1:]


class MemoryColumnStore:
    """Thread-safe in-memory wide-column store.

    Invariants:
        - The first primary key column selects the partition
        - Rows in a partition are ordered by their remaining key columns, bytewise
        - Inserts merge columns into an existing row (upsert); None clears a column
    """

    def __init__(self):
        self._tables: dict[str, _StoredTable] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _table(self, name: str) -> _StoredTable:
        if self._closed:
            raise StoreError("store is closed")
        table = self._tables.get(name.lower())
        if table is None:
            raise StoreError(f"unknown table {name!r}")
        return table

    def create_table(self, table: Table) -> bool:
        """Create the table; return False if it already existed."""
        with self._lock:
            if self._closed:
                raise StoreError("store is closed")
            key = table.name.lower()
            if key in self._tables:
                return False
            if not table.primary_key:
                raise StoreError(f"table {table.name!r} has no primary key")
            self._tables[key] = _StoredTable(
                name=table.name,
                columns=list(table.columns),
                primary_key=list(table.primary_key),
            )
        logger.info(f"Created table {table.name}")
        return True

    def describe_table(self, name: str) -> Sequence[Column] | None:
        """Return the live columns of a table, or None if it does not exist."""
        with self._lock:
            table = self._tables.get(name.lower())
            return list(table.columns) if table is not None else None

    def add_column(self, name: str, column: Column) -> None:
        """Add a column to an existing table."""
        with self._lock:
            table = self._table(name)
            if any(c.name == column.name for c in table.columns):
                raise StoreError(f"column {column.name!r} already exists in {name!r}")
            table.columns.append(column)
        logger.info(f"Added column {column.name} to {name}")

    def insert(self, name: str, values: RowUpdate, if_not_exists: bool = False) -> bool:
        """Upsert a row; with if_not_exists, return False instead of overwriting.

        None values clear the column.
        """
        with self._lock:
            table = self._table(name)
            known = {c.name for c in table.columns}
            unknown = set(values) - known
            if unknown:
                raise StoreError(f"unknown columns {sorted(unknown)} for table {name!r}")
            missing = [k for k in table.primary_key if values.get(k) is None]
            if missing:
                raise StoreError(f"missing primary key columns {missing} for table {name!r}")

            partition = table.partitions.setdefault(values[table.partition_column], SortedDict())
            ckey: ClusteringKey = tuple(values[k] for k in table.clustering_columns)
            existing = partition.get(ckey)
            if existing is not None and if_not_exists:
                return False
            row = dict(existing) if existing is not None else {}
            for k, v in values.items():
                if v is None:
                    row.pop(k, None)
                else:
                    row[k] = v
            partition[ckey] = row
            return True

    def _iter_partition(
        self, table: _StoredTable, partition: SortedDict, query: RangeQuery
    ) -> Iterator[MarshalledMap]:
        clustering = table.clustering_columns
        if query.less_than is not None and clustering and query.less_than[0] == clustering[0]:
            keys = partition.irange(
                maximum=(query.less_than[1],),
                inclusive=(True, False),
                reverse=query.descending,
            )
        elif query.descending:
            keys = reversed(partition.keys())
        else:
            keys = iter(partition.keys())
        for ckey in keys:
            yield partition[ckey]

    def select(self, query: RangeQuery) -> list[MarshalledMap]:
        """Return matching rows in clustering order.

        The partition key column must be constrained by equality.
        """
        with self._lock:
            table = self._table(query.table)
            pkey = query.equal.get(table.partition_column)
            if pkey is None:
                raise StoreError(
                    f"query on {query.table!r} must restrict partition key {table.partition_column!r}"
                )
            partition = table.partitions.get(pkey)
            if partition is None:
                return []

            results: list[MarshalledMap] = []
            for row in self._iter_partition(table, partition, query):
                if query.limit is not None and len(results) >= query.limit:
                    break
                if any(row.get(k) != v for k, v in query.equal.items()):
                    continue
                if query.less_than is not None:
                    col, bound = query.less_than
                    value = row.get(col)
                    if value is None or not value < bound:
                        continue
                results.append(dict(row))
            return results

    def close(self) -> None:
        """Release all data."""
        with self._lock:
            self._closed = True
            self._tables.clear()
        logger.info("Closed memory column store")
