"""Secondary index bound to an indexed table.

Each Index owns a backing table keyed by (interval, seqid), where the
interval column holds the full partition string of an IndexEntry.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from ..core.errors import ConfigurationError
from ..core.schema import Column, Table
from ..core.types import Interval, MarshalledMap, RangeQuery, SeqID
from .entry import INTERVAL_COLUMN, SEQID_COLUMN, IndexEntry, hex_part, sentinel_entry
from .interval import decr_interval, interval_value
from .marshal import SEQID, VARCHAR, marshal_value
from .scanner import IndexIter

if TYPE_CHECKING:
    from ..core.orm import Orm
    from ..interfaces.indexer import Indexer

logger = logging.getLogger(__name__)


class Index:
    """An index over one table, maintained on every write to it.

    Args:
        table: The indexed table; its primary key must already be set
        indexer: Strategy computing each row's entry
        name: Unique name per indexed table, defaults to indexer.default_name

    Invariants:
        - The backing table gets exactly one sentinel when it is created
        - Entries are only ever inserted, never updated in place
        - No entry is expected in an interval older than the sentinel's
    """

    def __init__(self, table: Table, indexer: Indexer, name: str | None = None):
        self.table = table
        self.indexer = indexer
        self.name = name or indexer.default_name
        self._validate()
        self.backing = self._backing_table()
        self._created: Interval | None = None
        self._created_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Index({self.table.name!r}, {self.name!r})"

    def _validate(self) -> None:
        table = self.table
        if not table.primary_key:
            raise ConfigurationError(f"set the key of {table.name!r} before adding indexes")
        if not table.has_column(SEQID_COLUMN) or table.column(SEQID_COLUMN).type != SEQID:
            raise ConfigurationError(
                f"indexed table {table.name!r} needs a {SEQID_COLUMN!r} column of type {SEQID}"
            )
        if INTERVAL_COLUMN in table.primary_key:
            raise ConfigurationError(
                f"indexed table {table.name!r} cannot use {INTERVAL_COLUMN!r} as a key column"
            )
        for col in self.indexer.columns:
            table.column(col)

    def _backing_table(self) -> Table:
        columns = [Column(INTERVAL_COLUMN, VARCHAR), Column(SEQID_COLUMN, VARCHAR)]
        columns += [self.table.column(k) for k in self.table.primary_key if k != SEQID_COLUMN]
        backing = Table(f"{self.table.name}_{self.name}", columns=columns)
        backing.options.key(INTERVAL_COLUMN, SEQID_COLUMN).on_create(self._insert_sentinel)
        return backing

    def _insert_sentinel(self, orm: Orm, backing: Table) -> None:
        iv: Interval = orm.seqid.current_interval()
        orm.store.insert(backing.name, sentinel_entry(iv).marshal())
        with self._created_lock:
            self._created = iv
        logger.info(f"Inserted sentinel into {backing.name} at interval {iv}")

    def forget_creation_interval(self) -> None:
        """Drop the cached sentinel interval, e.g. when rebound to another store."""
        with self._created_lock:
            self._created = None

    def creation_interval(self, orm: Orm) -> Interval:
        """Return the interval holding this index's sentinel.

        Known once the backing table is created through this index; otherwise
        found by walking back from the current interval, then cached.
        """
        with self._created_lock:
            if self._created is None:
                self._created = self._find_sentinel(orm)
            return self._created

    def _find_sentinel(self, orm: Orm) -> Interval:
        iv: Interval = orm.seqid.current_interval()
        while True:
            query = RangeQuery(
                table=self.backing.name,
                equal={INTERVAL_COLUMN: iv.encode("ascii"), SEQID_COLUMN: b""},
                limit=1,
            )
            if orm.store.select(query):
                logger.info(f"Found sentinel of {self.backing.name} at interval {iv}")
                return iv
            if interval_value(iv) == 0:
                logger.warning(f"No sentinel found in {self.backing.name}")
                return iv
            iv = decr_interval(iv)

    def entry_for(self, mmap: MarshalledMap, orm: Orm) -> IndexEntry:
        """Compute the entry for a marshalled row, filling in its SeqID if unset."""
        return self.indexer.compute_entry(mmap, self.table.primary_key, orm.seqid)

    def add(self, mmap: MarshalledMap, orm: Orm) -> IndexEntry:
        """Write the entry for a marshalled row to the backing table."""
        entry = self.entry_for(mmap, orm)
        orm.store.insert(self.backing.name, entry.marshal())
        logger.debug(f"Indexed {self.table.name} row {entry.seqid} in {entry.partition()}")
        return entry

    def filter_parts(self, *values: Any) -> list[str]:
        """Marshal and hex-encode partition filter values for a scan."""
        if len(values) != len(self.indexer.columns):
            raise ConfigurationError(
                f"index {self.name!r} is partitioned by {list(self.indexer.columns)},"
                f" got {len(values)} values"
            )
        return [
            hex_part(marshal_value(self.table.column(col).type, value))
            for col, value in zip(self.indexer.columns, values)
        ]

    def iter(
        self,
        after: SeqID | str = "",
        limit: int = 0,
        page_size: int | None = None,
        lower_bound: Interval | None = None,
    ) -> IndexIter:
        """Return a fresh scanner over this index, newest entries first."""
        if not self.table.bound:
            raise ConfigurationError(f"table {self.table.name!r} is not bound to an Orm")
        return IndexIter(
            self,
            self.table.orm,
            after=after,
            limit=limit,
            page_size=page_size,
            lower_bound=lower_bound,
        )
