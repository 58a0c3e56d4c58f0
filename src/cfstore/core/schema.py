"""Table and schema definitions.

A Table describes a column family: its columns (primary key first), the
record type rows are mapped to, and options such as indexes and
on-create hooks. A Schema groups tables, and diff_live_schema compares a
Schema against what the store already holds.
"""

from __future__ import annotations

import dataclasses
import logging
import typing
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..components.indexer import ByColumns, BySeqID
from ..components.marshal import (
    COLUMN_TYPES,
    column_type_for,
    marshal_value,
    storage_type,
    unmarshal_value,
)
from .errors import ConfigurationError
from .types import MarshalledMap

if TYPE_CHECKING:
    from ..components.index import Index
    from ..interfaces.indexer import Indexer
    from ..interfaces.store import ColumnStore
    from .orm import Orm

logger = logging.getLogger(__name__)

OnCreateHook = Callable[["Orm", "Table"], None]


@dataclass(frozen=True)
class Column:
    """Name and type of a column. The type is one of COLUMN_TYPES."""

    name: str
    type: str

    def __post_init__(self):
        if self.type not in COLUMN_TYPES:
            raise ConfigurationError(f"column {self.name!r} has unknown type {self.type!r}")


def columns_from_dataclass(row_type: type) -> list[Column]:
    """Derive columns from a dataclass's annotated fields.

    Fields whose annotation has no column type are not persisted.
    """
    if not dataclasses.is_dataclass(row_type):
        raise ConfigurationError(f"{row_type!r} is not a dataclass")
    hints = typing.get_type_hints(row_type)
    columns = []
    for f in dataclasses.fields(row_type):
        ctype = column_type_for(hints.get(f.name))
        if ctype is None:
            logger.debug(f"Skipping unmapped field {row_type.__name__}.{f.name}")
            continue
        columns.append(Column(f.name, ctype))
    return columns


class TableOptions:
    """Additional properties of a table: primary key, indexes and hooks."""

    def __init__(self, table: Table):
        self.table = table
        self.primary_key: list[str] = []
        self.indexes: list[Index] = []
        self.on_create_hooks: list[OnCreateHook] = []

    def key(self, *columns: str) -> TableOptions:
        """Set the primary key. The first column selects the partition."""
        if not columns:
            raise ConfigurationError(f"table {self.table.name!r} needs at least one key column")
        if self.indexes:
            raise ConfigurationError(f"key of {self.table.name!r} must be set before adding indexes")
        by_name = {c.name: c for c in self.table.columns}
        for name in columns:
            if name not in by_name:
                raise ConfigurationError(f"primary key refers to invalid column {name!r}")
        self.primary_key = list(columns)
        # primary key columns must come first and in order
        rest = [c for c in self.table.columns if c.name not in columns]
        self.table.columns = [by_name[name] for name in columns] + rest
        return self

    def add_index(self, indexer: Indexer, name: str | None = None) -> TableOptions:
        """Attach an index maintained on every write to this table."""
        from ..components.index import Index

        index = Index(self.table, indexer, name=name)
        if any(existing.name == index.name for existing in self.indexes):
            raise ConfigurationError(
                f"table {self.table.name!r} already has an index named {index.name!r}"
            )
        self.indexes.append(index)
        return self

    def add_index_by_seqid(self, name: str | None = None) -> TableOptions:
        return self.add_index(BySeqID(), name=name)

    def add_index_by(self, *columns: str, name: str | None = None) -> TableOptions:
        return self.add_index(ByColumns(*columns), name=name)

    def on_create(self, hook: OnCreateHook) -> TableOptions:
        """Register a hook run once, right after the table is created."""
        self.on_create_hooks.append(hook)
        return self


class Table:
    """A column family and the record type its rows map to.

    Args:
        name: Table name in the store
        row_type: Dataclass rows are unmarshalled into, or None for plain dicts
        columns: Explicit columns; derived from row_type when omitted
        key: Primary key columns, may also be set later via options.key()
    """

    def __init__(
        self,
        name: str,
        row_type: type | None = None,
        columns: list[Column] | None = None,
        key: tuple[str, ...] | list[str] = (),
    ):
        self.name = name
        self.row_type = row_type
        if columns is None:
            if row_type is None:
                raise ConfigurationError(f"table {name!r} needs columns or a row type")
            columns = columns_from_dataclass(row_type)
        names = [c.name for c in columns]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"table {name!r} has duplicate column names")
        self.columns = list(columns)
        self.options = TableOptions(self)
        self._orm: Orm | None = None
        if key:
            self.options.key(*key)

    def __repr__(self) -> str:
        return f"Table({self.name!r})"

    @property
    def primary_key(self) -> list[str]:
        return self.options.primary_key

    @property
    def indexes(self) -> list[Index]:
        return self.options.indexes

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def column(self, name: str) -> Column:
        for c in self.columns:
            if c.name == name:
                return c
        raise ConfigurationError(f"table {self.name!r} has no column {name!r}")

    def create_statement(self) -> str:
        """Return the CQL statement that would create this table."""
        cols = ", ".join(f"{c.name} {storage_type(c.type)}" for c in self.columns)
        return f"CREATE TABLE {self.name} ({cols}, PRIMARY KEY ({', '.join(self.primary_key)}))"

    def bind(self, orm: Orm) -> None:
        if self._orm is not orm:
            for idx in self.indexes:
                idx.forget_creation_interval()
        self._orm = orm

    @property
    def bound(self) -> bool:
        return self._orm is not None

    @property
    def orm(self) -> Orm:
        if self._orm is None:
            raise ConfigurationError(f"table {self.name!r} is not bound to an Orm")
        return self._orm

    def new_row(self, **values: Any) -> Any:
        if self.row_type is None:
            return dict(values)
        return self.row_type(**values)

    def marshal(self, row: Any) -> MarshalledMap:
        """Extract and marshal column values from a row. None values are omitted."""
        mmap: MarshalledMap = {}
        for col in self.columns:
            if isinstance(row, dict):
                value = row.get(col.name)
            else:
                value = getattr(row, col.name, None)
            if value is not None:
                mmap[col.name] = marshal_value(col.type, value)
        return mmap

    def unmarshal(self, mmap: MarshalledMap) -> Any:
        """Build a row from marshalled column values."""
        values = {
            col.name: unmarshal_value(col.type, mmap[col.name])
            for col in self.columns
            if mmap.get(col.name) is not None
        }
        return self.new_row(**values)

    def index(self, name: str) -> Index:
        for idx in self.indexes:
            if idx.name == name:
                return idx
        raise ConfigurationError(f"table {self.name!r} has no index named {name!r}")

    def index_by_seqid(self) -> Index:
        """Return the chronological index of this table."""
        for idx in self.indexes:
            if not idx.indexer.columns:
                return idx
        raise ConfigurationError(f"table {self.name!r} has no SeqID index")

    def index_by(self, *columns: str) -> Index:
        """Return the index partitioned by exactly these columns."""
        for idx in self.indexes:
            if idx.indexer.columns == tuple(columns):
                return idx
        raise ConfigurationError(f"table {self.name!r} has no index by {list(columns)}")


class Schema:
    """A collection of table definitions."""

    def __init__(self, *tables: Table):
        self.tables: dict[str, Table] = {}
        for table in tables:
            self.add(table)

    def add(self, table: Table) -> None:
        if not table.primary_key:
            raise ConfigurationError(f"table {table.name!r} has no primary key")
        taken = {t.name.lower() for t in self.all_tables()}
        for t in [table, *(idx.backing for idx in table.indexes)]:
            if t.name.lower() in taken:
                raise ConfigurationError(f"duplicate table name {t.name!r}")
            taken.add(t.name.lower())
        self.tables[table.name.lower()] = table

    def get(self, name: str) -> Table:
        try:
            return self.tables[name.lower()]
        except KeyError:
            raise ConfigurationError(f"no table named {name!r}") from None

    def table_for(self, row_type: type) -> Table:
        """Return the only table whose rows are of row_type."""
        matches = [t for t in self.tables.values() if t.row_type is row_type]
        if len(matches) != 1:
            raise ConfigurationError(
                f"expected one table for {row_type.__name__}, found {len(matches)}"
            )
        return matches[0]

    def all_tables(self) -> Iterator[Table]:
        """Yield every table, followed by the backing tables of its indexes."""
        for table in self.tables.values():
            yield table
            for idx in table.indexes:
                yield idx.backing

    def bind(self, orm: Orm) -> None:
        for table in self.all_tables():
            table.bind(orm)


@dataclass
class SchemaDiff:
    """Changes required to bring a live keyspace in line with a Schema."""

    creates: list[Table] = field(default_factory=list)
    alters: list[tuple[Table, Column]] = field(default_factory=list)

    def size(self) -> int:
        return len(self.creates) + len(self.alters)

    def apply(self, orm: Orm) -> None:
        """Create missing tables, run their on-create hooks and add missing columns."""
        for table in self.creates:
            if not orm.store.create_table(table):
                logger.info(f"Table {table.name} already exists, skipping on-create hooks")
                continue
            logger.info(f"Created {table.create_statement()}")
            for hook in table.options.on_create_hooks:
                hook(orm, table)
        for table, column in self.alters:
            orm.store.add_column(table.name, column)
            logger.info(f"Added column {column.name} {storage_type(column.type)} to {table.name}")


def diff_live_schema(store: ColumnStore, schema: Schema) -> SchemaDiff:
    """Compare a schema against the store's live tables."""
    diff = SchemaDiff()
    for table in schema.all_tables():
        live = store.describe_table(table.name)
        if live is None:
            diff.creates.append(table)
            continue
        live_types = {c.name: storage_type(c.type) for c in live}
        for col in table.columns:
            if col.name not in live_types:
                diff.alters.append((table, col))
            elif live_types[col.name] != storage_type(col.type):
                raise ConfigurationError(
                    f"column {table.name}.{col.name} is {live_types[col.name]} in the store,"
                    f" but {storage_type(col.type)} in the schema"
                )
    return diff
