"""Orm implementation - main public API.

Orchestrates the column store, schema, SeqID generation and indexes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..components.entry import SEQID_COLUMN
from ..components.marshal import marshal_value
from ..components.seqid import SnowflakeSeqIDGenerator
from .config import CFStoreConfig
from .errors import AlreadyExistsError, ConfigurationError, NotFoundError
from .schema import Schema, SchemaDiff, Table, diff_live_schema
from .types import MarshalledMap, RangeQuery, RowUpdate, SeqID

if TYPE_CHECKING:
    from ..interfaces.seqid import SeqIDGenerator
    from ..interfaces.store import ColumnStore

logger = logging.getLogger(__name__)

# Attribute holding the stored column values a record was loaded or written with
LOADED_ATTR = "_cfstore_loaded"


class Orm:
    """Maps records to a column store and keeps their indexes.

    Args:
        store: Column store holding the tables
        schema: Tables (and their indexes) to manage
        config: Orm configuration
        seqid: SeqID generator, defaults to a snowflake generator built from config

    Public API:
        - apply_schema_updates(): Create missing tables and columns
        - create(row): Insert a new row, failing if its key exists
        - commit(row): Insert or overwrite a row
        - load_by_key(table, *key): Load a row by primary key
        - exists(table, *key): Test whether a row exists

    Records returned by load_by_key, or written by create or commit, remember
    their stored column values. Committing such a record writes only the
    columns that changed and clears columns set back to None; creating it
    again fails without a store round trip. Dict rows are always written whole.

    Invariants:
        - Index entries are written before the row they point to
        - A row written through an index carries the SeqID its entries use
    """

    def __init__(
        self,
        store: ColumnStore,
        schema: Schema,
        config: CFStoreConfig | None = None,
        seqid: SeqIDGenerator | None = None,
    ):
        self.config = config or CFStoreConfig()
        self.config.validate()
        self.store = store
        self.schema = schema
        self.seqid: SeqIDGenerator = seqid or SnowflakeSeqIDGenerator(
            worker_id=self.config.worker_id, epoch_ms=self.config.seqid_epoch_ms
        )
        schema.bind(self)
        self.schema_updates: SchemaDiff = diff_live_schema(store, schema)

        logger.info(
            f"Initialized Orm with {len(schema.tables)} tables,"
            f" {self.schema_updates.size()} pending schema updates"
        )

    def requires_updates(self) -> bool:
        return self.schema_updates.size() > 0

    def apply_schema_updates(self) -> None:
        """Apply the pending schema updates found at construction."""
        self.schema_updates.apply(self)
        self.schema_updates = SchemaDiff()

    def _table_for(self, row: Any, table: Table | None) -> Table:
        if table is not None:
            return table
        if isinstance(row, dict):
            raise ConfigurationError("pass the table explicitly when writing dict rows")
        return self.schema.table_for(type(row))

    def _key_values(self, table: Table, key: tuple[Any, ...]) -> MarshalledMap:
        if len(key) != len(table.primary_key):
            raise ConfigurationError(
                f"table {table.name!r} has key {table.primary_key}, got {len(key)} values"
            )
        return {
            name: marshal_value(table.column(name).type, value)
            for name, value in zip(table.primary_key, key)
        }

    def _exists(self, table: Table, key_values: MarshalledMap) -> bool:
        return bool(self.store.select(RangeQuery(table=table.name, equal=key_values, limit=1)))

    def _loaded(self, row: Any) -> MarshalledMap | None:
        if isinstance(row, dict):
            return None
        return getattr(row, LOADED_ATTR, None)

    def _remember(self, row: Any, mmap: MarshalledMap) -> None:
        if not isinstance(row, dict):
            object.__setattr__(row, LOADED_ATTR, dict(mmap))

    def _columns_to_commit(
        self, table: Table, mmap: MarshalledMap, loaded: MarshalledMap | None
    ) -> RowUpdate:
        """Return the key plus every column that differs from the loaded values."""
        if loaded is None or any(loaded.get(k) != mmap.get(k) for k in table.primary_key):
            return dict(mmap)
        values: RowUpdate = {k: mmap[k] for k in table.primary_key}
        values.update({k: v for k, v in mmap.items() if loaded.get(k) != v})
        values.update({k: None for k in loaded if k not in mmap})
        return values

    def _write(self, row: Any, table: Table | None, if_not_exists: bool) -> None:
        table = self._table_for(row, table)
        loaded = self._loaded(row)
        mmap = table.marshal(row)
        key_values = {k: mmap[k] for k in table.primary_key if k in mmap}
        if if_not_exists:
            if loaded is not None:
                raise AlreadyExistsError(f"{table.name} row {key_values} was loaded from the store")
            if len(key_values) == len(table.primary_key) and self._exists(table, key_values):
                raise AlreadyExistsError(f"{table.name} row {key_values} already exists")

        for index in table.indexes:
            index.add(mmap, self)

        values = self._columns_to_commit(table, mmap, loaded)
        if len(values) == len(key_values) and loaded is not None:
            logger.debug(f"No changed columns in {table.name} row {key_values}")
        elif not self.store.insert(table.name, values, if_not_exists=if_not_exists):
            raise AlreadyExistsError(f"{table.name} row {key_values} already exists")

        if SEQID_COLUMN in mmap and table.has_column(SEQID_COLUMN):
            seqid = SeqID(mmap[SEQID_COLUMN].decode("ascii"))
            if isinstance(row, dict):
                row[SEQID_COLUMN] = seqid
            else:
                setattr(row, SEQID_COLUMN, seqid)
        self._remember(row, mmap)

    def create(self, row: Any, table: Table | None = None) -> None:
        """Insert a new row and index it.

        Raises:
            AlreadyExistsError: if a row with the same primary key exists
        """
        self._write(row, table, if_not_exists=True)

    def commit(self, row: Any, table: Table | None = None) -> None:
        """Insert or overwrite a row and index it."""
        self._write(row, table, if_not_exists=False)

    def load_by_key(self, table: Table, *key: Any) -> Any:
        """Load a row by its full primary key.

        Raises:
            NotFoundError: if no such row exists
        """
        rows = self.store.select(
            RangeQuery(table=table.name, equal=self._key_values(table, key), limit=1)
        )
        if not rows:
            raise NotFoundError(f"no {table.name} row with key {list(key)}")
        row = table.unmarshal(rows[0])
        self._remember(row, {c.name: rows[0][c.name] for c in table.columns if c.name in rows[0]})
        return row

    def exists(self, table: Table, *key: Any) -> bool:
        return self._exists(table, self._key_values(table, key))

    def close(self) -> None:
        """Close the underlying store."""
        logger.info("Closing Orm")
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
