"""Unit tests for the BySeqID and ByColumns strategies."""

from __future__ import annotations

import struct

import pytest

from cfstore.components.entry import SEQID_COLUMN, hex_part
from cfstore.components.indexer import ByColumns, BySeqID
from cfstore.components.interval import interval
from cfstore.core.errors import ConfigurationError


def test_default_names():
    """Test index names derived from the strategy."""
    assert BySeqID().default_name == "by_seqid"
    assert BySeqID().columns == ()
    assert ByColumns("number").default_name == "by_number"
    assert ByColumns("number", "status").default_name == "by_number_status"


def test_invalid_columns():
    """Test that repeated or SeqID partition columns are rejected."""
    with pytest.raises(ConfigurationError):
        ByColumns("number", "number")
    with pytest.raises(ConfigurationError):
        ByColumns(SEQID_COLUMN)


def test_chronological_entry(generator):
    """Test that BySeqID generates a SeqID and writes it into the row."""
    mmap = {"name": b"alice"}
    entry = BySeqID().compute_entry(mmap, ["name"], generator)

    assert entry.seqid == "0000000000001"
    assert mmap[SEQID_COLUMN] == b"0000000000001"
    assert entry.partition_parts == []
    assert entry.interval == interval(entry.seqid)
    assert entry.foreign_key == {"name": b"alice"}


def test_existing_seqid_is_reused(generator):
    """Test that a row's SeqID is kept and padded, not regenerated."""
    mmap = {"name": b"alice", SEQID_COLUMN: b"2s"}
    entry = BySeqID().compute_entry(mmap, ["name"], generator)
    assert entry.seqid == "000000000002s"
    assert generator.value == 0


def test_partitioned_entry(generator):
    """Test that ByColumns partitions by hex-encoded column values in order."""
    number = struct.pack(">q", 1001)
    mmap = {"name": b"alice", "number": number, "status": b"\x01"}
    entry = ByColumns("number", "status").compute_entry(mmap, ["name"], generator)

    assert entry.partition_parts == [hex_part(number), "01"]
    assert entry.partition() == f"{hex_part(number)}~01~{entry.interval}"


def test_seqid_key_column_is_not_in_foreign_key(generator):
    """Test that the SeqID is carried by the entry rather than its foreign key."""
    mmap = {"name": b"alice", SEQID_COLUMN: b"0000000000005"}
    entry = ByColumns("name").compute_entry(mmap, ["name", SEQID_COLUMN], generator)
    assert entry.foreign_key == {"name": b"alice"}


def test_missing_indexed_value_is_empty_part(generator):
    """Test that an unset indexed column produces an empty partition part."""
    entry = ByColumns("number").compute_entry({"name": b"a"}, ["name"], generator)
    assert entry.partition_parts == [""]
