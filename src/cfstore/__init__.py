"""cfstore - record mapping and time-bucketed secondary indexes for wide-column stores."""

from .components.index import Index
from .components.indexer import ByColumns, BySeqID
from .components.memstore import MemoryColumnStore
from .components.scanner import IndexIter, ScanResult, ScanState, ScanStatus
from .components.seqid import SnowflakeSeqIDGenerator
from .core.config import CFStoreConfig
from .core.errors import (
    CFStoreError,
    ConfigurationError,
    SeqIDGenerationError,
    EncodingError,
    StoreError,
    NotFoundError,
    AlreadyExistsError,
    ScanError,
    DanglingEntryError,
    ScanCancelledError,
)
from .core.orm import Orm
from .core.schema import Column, Schema, Table
from .core.types import Interval, MarshalledMap, RangeQuery, RowUpdate, SeqID

__all__ = [
    "Index",
    "ByColumns",
    "BySeqID",
    "MemoryColumnStore",
    "IndexIter",
    "ScanResult",
    "ScanState",
    "ScanStatus",
    "SnowflakeSeqIDGenerator",
    "CFStoreConfig",
    "CFStoreError",
    "ConfigurationError",
    "SeqIDGenerationError",
    "EncodingError",
    "StoreError",
    "NotFoundError",
    "AlreadyExistsError",
    "ScanError",
    "DanglingEntryError",
    "ScanCancelledError",
    "Orm",
    "Column",
    "Schema",
    "Table",
    "Interval",
    "MarshalledMap",
    "RangeQuery",
    "RowUpdate",
    "SeqID",
]
