"""Index strategies.

Two strategies exist: a chronological index (BySeqID) and an index
partitioned by the values of one or more columns (ByColumns). Both order
entries by SeqID within each interval.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.errors import ConfigurationError
from ..core.types import MarshalledMap, SeqID
from .entry import SEQID_COLUMN, IndexEntry, hex_part
from .interval import interval, pad_seqid

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..interfaces.seqid import SeqIDGenerator


class ByColumns:
    """Index rows by the given columns, newest first.

    Args:
        columns: Indexed column names, in partition order
    """

    def __init__(self, *columns: str):
        if len(set(columns)) != len(columns):
            raise ConfigurationError(f"indexed columns repeat: {list(columns)}")
        if SEQID_COLUMN in columns:
            raise ConfigurationError("the SeqID column cannot be a partition column")
        self.columns: tuple[str, ...] = tuple(columns)

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.columns!r}"

    @property
    def default_name(self) -> str:
        return "by_" + "_".join(self.columns)

    def partition_parts(self, mmap: MarshalledMap) -> list[str]:
        """Return the hex-encoded indexed column values of a marshalled row."""
        return [hex_part(mmap.get(col) or b"") for col in self.columns]

    def resolve_seqid(self, mmap: MarshalledMap, generator: SeqIDGenerator) -> SeqID:
        """Return the row's SeqID, generating and storing one if unset."""
        raw = mmap.get(SEQID_COLUMN)
        if raw:
            return pad_seqid(raw.decode("ascii"))
        seqid = generator.new()
        mmap[SEQID_COLUMN] = seqid.encode("ascii")
        return seqid

    def compute_entry(
        self,
        mmap: MarshalledMap,
        primary_key: Sequence[str],
        generator: SeqIDGenerator,
    ) -> IndexEntry:
        """Return the index entry for a marshalled row about to be written."""
        seqid = self.resolve_seqid(mmap, generator)
        return IndexEntry(
            partition_parts=self.partition_parts(mmap),
            interval=interval(seqid),
            seqid=seqid,
            foreign_key={k: mmap[k] for k in primary_key if k != SEQID_COLUMN and k in mmap},
        )


class BySeqID(ByColumns):
    """Index rows in reverse SeqID order, without partition columns."""

    def __init__(self):
        super().__init__()

    @property
    def default_name(self) -> str:
        return "by_seqid"
