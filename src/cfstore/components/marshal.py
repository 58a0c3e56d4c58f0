"""Column value marshalling.

Converts Python values to and from the byte encodings the column store
keeps, and maps Python annotations to column types.
"""

from __future__ import annotations

import struct
import types
import typing
from datetime import datetime, timezone
from typing import Any

from ..core.errors import EncodingError
from ..core.types import SeqID
from .interval import pad_seqid

# Column types understood by the store
VARCHAR = "varchar"
BIGINT = "bigint"
BOOLEAN = "boolean"
DOUBLE = "double"
BLOB = "blob"
TIMESTAMP = "timestamp"
SEQID = "seqid"

COLUMN_TYPES = (VARCHAR, BIGINT, BOOLEAN, DOUBLE, BLOB, TIMESTAMP, SEQID)

PYTHON_TYPES: dict[Any, str] = {
    str: VARCHAR,
    int: BIGINT,
    bool: BOOLEAN,
    float: DOUBLE,
    bytes: BLOB,
    datetime: TIMESTAMP,
    SeqID: SEQID,
}

# SeqID columns are stored as varchar
STORAGE_TYPES = {SEQID: VARCHAR}


def storage_type(column_type: str) -> str:
    """Return the store-level type a column type is persisted as."""
    return STORAGE_TYPES.get(column_type, column_type)


def column_type_for(annotation: Any) -> str | None:
    """Return the column type for a Python annotation, or None if unmapped.

    Optional annotations map to the type of their non-None member.
    """
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) != 1:
            return None
        annotation = members[0]
    return PYTHON_TYPES.get(annotation)


def marshal_value(column_type: str, value: Any) -> bytes:
    """Encode a Python value as column bytes."""
    try:
        if column_type == VARCHAR:
            return value.encode("utf-8")
        if column_type == SEQID:
            return pad_seqid(str(value)).encode("ascii")
        if column_type == BIGINT:
            return struct.pack(">q", value)
        if column_type == BOOLEAN:
            return b"\x01" if value else b"\x00"
        if column_type == DOUBLE:
            return struct.pack(">d", value)
        if column_type == BLOB:
            return bytes(value)
        if column_type == TIMESTAMP:
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return struct.pack(">q", int(value.timestamp() * 1000))
    except (AttributeError, TypeError, struct.error, OverflowError) as e:
        raise EncodingError(f"cannot marshal {value!r} as {column_type}: {e}") from e
    raise EncodingError(f"unknown column type {column_type!r}")


def unmarshal_value(column_type: str, data: bytes) -> Any:
    """Decode column bytes into a Python value."""
    try:
        if column_type == VARCHAR:
            return data.decode("utf-8")
        if column_type == SEQID:
            return SeqID(data.decode("ascii"))
        if column_type == BIGINT:
            return struct.unpack(">q", data)[0]
        if column_type == BOOLEAN:
            return data != b"\x00" and len(data) > 0
        if column_type == DOUBLE:
            return struct.unpack(">d", data)[0]
        if column_type == BLOB:
            return bytes(data)
        if column_type == TIMESTAMP:
            ms = struct.unpack(">q", data)[0]
            return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (UnicodeDecodeError, struct.error) as e:
        raise EncodingError(f"cannot unmarshal {data!r} as {column_type}: {e}") from e
    raise EncodingError(f"unknown column type {column_type!r}")
