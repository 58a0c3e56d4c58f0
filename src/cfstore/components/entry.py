"""Index entry codec.

An index entry is stored under the key (partition, seqid) where the
partition string joins the hex-encoded partition parts and the interval
with PARTITION_SEPARATOR. Hex encoding keeps the join unambiguous even when
raw column bytes contain the separator.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field

from ..core.errors import EncodingError
from ..core.types import Interval, MarshalledMap, SeqID
from .interval import interval_value, pad_seqid

PARTITION_SEPARATOR = "~"
INTERVAL_COLUMN = "interval"
SEQID_COLUMN = "seqid"


def hex_part(raw: bytes) -> str:
    """Hex-encode one marshalled column value for use as a partition part."""
    return binascii.hexlify(raw).decode("ascii")


def unhex_part(part: str) -> bytes:
    try:
        return binascii.unhexlify(part)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"malformed partition part {part!r}") from e


@dataclass
class IndexEntry:
    """A logical row of an index backing table.

    Attributes:
        partition_parts: Hex-encoded indexed column values (empty for a chronological index)
        interval: Time bucket of the entry's SeqID
        seqid: Padded SeqID, or "" for a sentinel
        foreign_key: Marshalled primary key of the indexed row
    """

    partition_parts: list[str] = field(default_factory=list)
    interval: Interval = ""
    seqid: SeqID = SeqID("")
    foreign_key: MarshalledMap = field(default_factory=dict)

    @property
    def is_sentinel(self) -> bool:
        return self.seqid == ""

    def partition(self) -> str:
        """Return the stored partition identifier."""
        return PARTITION_SEPARATOR.join([*self.partition_parts, self.interval])

    def marshal(self) -> MarshalledMap:
        """Render the entry as column values for the backing table."""
        mmap: MarshalledMap = {
            INTERVAL_COLUMN: self.partition().encode("ascii"),
            SEQID_COLUMN: pad_seqid(self.seqid).encode("ascii"),
        }
        mmap.update(self.foreign_key)
        return mmap

    @classmethod
    def unmarshal(cls, mmap: MarshalledMap) -> IndexEntry:
        """Decode a backing table row.

        Raises:
            EncodingError: if the partition or SeqID is malformed
        """
        entry = cls()
        raw_partition = mmap.get(INTERVAL_COLUMN)
        if raw_partition:
            try:
                parts = raw_partition.decode("ascii").split(PARTITION_SEPARATOR)
            except UnicodeDecodeError as e:
                raise EncodingError(f"malformed index partition {raw_partition!r}") from e
            *entry.partition_parts, entry.interval = parts
            interval_value(entry.interval)
            for part in entry.partition_parts:
                unhex_part(part)
        raw_seqid = mmap.get(SEQID_COLUMN)
        if raw_seqid:
            try:
                entry.seqid = pad_seqid(raw_seqid.decode("ascii"))
            except UnicodeDecodeError as e:
                raise EncodingError(f"malformed index SeqID {raw_seqid!r}") from e
        entry.foreign_key = {
            k: v for k, v in mmap.items()
            if k not in (INTERVAL_COLUMN, SEQID_COLUMN) and v is not None
        }
        return entry


def sentinel_entry(iv: Interval) -> IndexEntry:
    """Return the sentinel entry marking the oldest edge of an index."""
    return IndexEntry(interval=iv)
