"""Unit tests for column value marshalling."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from cfstore.components.marshal import (
    BIGINT,
    BLOB,
    BOOLEAN,
    DOUBLE,
    SEQID,
    TIMESTAMP,
    VARCHAR,
    column_type_for,
    marshal_value,
    storage_type,
    unmarshal_value,
)
from cfstore.core.errors import EncodingError
from cfstore.core.types import SeqID


def test_known_encodings():
    """Test the byte encodings used for each column type."""
    assert marshal_value(VARCHAR, "héllo") == "héllo".encode("utf-8")
    assert marshal_value(BIGINT, 1) == b"\x00" * 7 + b"\x01"
    assert marshal_value(BIGINT, -1) == b"\xff" * 8
    assert marshal_value(BOOLEAN, True) == b"\x01"
    assert marshal_value(BOOLEAN, False) == b"\x00"
    assert marshal_value(BLOB, bytearray(b"a~b")) == b"a~b"
    assert marshal_value(SEQID, "2s") == b"000000000002s"


def test_decoding_restores_values():
    """Test that decoding inverts encoding for representative values."""
    assert unmarshal_value(DOUBLE, marshal_value(DOUBLE, 2.5)) == 2.5
    assert unmarshal_value(BIGINT, marshal_value(BIGINT, -1234567)) == -1234567
    assert unmarshal_value(BOOLEAN, b"\x00") is False
    assert unmarshal_value(SEQID, b"000000000002s") == "000000000002s"


def test_timestamps_are_millisecond_utc():
    """Test timestamp encoding, treating naive datetimes as UTC."""
    ts = datetime(2020, 5, 17, 12, 30, 15, 250000)
    data = marshal_value(TIMESTAMP, ts)
    assert unmarshal_value(TIMESTAMP, data) == ts.replace(tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "ctype,value",
    [(BIGINT, "nope"), (BIGINT, 2**63), (VARCHAR, 12), (DOUBLE, "x"), ("uuid", 1)],
)
def test_marshal_errors(ctype, value):
    """Test that unencodable values raise EncodingError."""
    with pytest.raises(EncodingError):
        marshal_value(ctype, value)


def test_unmarshal_errors():
    """Test that truncated or invalid bytes raise EncodingError."""
    with pytest.raises(EncodingError):
        unmarshal_value(BIGINT, b"\x00\x01")
    with pytest.raises(EncodingError):
        unmarshal_value(VARCHAR, b"\xff\xfe")


def test_python_type_mapping():
    """Test annotation to column type mapping."""
    assert column_type_for(str) == VARCHAR
    assert column_type_for(int) == BIGINT
    assert column_type_for(bool) == BOOLEAN
    assert column_type_for(SeqID) == SEQID
    assert column_type_for(list) is None
    assert column_type_for(str | None) == VARCHAR
    assert column_type_for(Optional[int]) == BIGINT
    assert column_type_for(int | str) is None
    assert storage_type(SEQID) == VARCHAR
    assert storage_type(BIGINT) == BIGINT
