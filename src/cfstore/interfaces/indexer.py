"""Protocol definition for index strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..components.entry import IndexEntry
    from ..core.types import MarshalledMap
    from .seqid import SeqIDGenerator


class Indexer(Protocol):
    """Computes the index entry for a row about to be written."""

    columns: tuple[str, ...]

    @property
    def default_name(self) -> str:
        """Name used when the index is not given one explicitly."""
        ...

    def partition_parts(self, mmap: MarshalledMap) -> list[str]:
        """Return the hex-encoded partition values of a marshalled row."""
        ...

    def compute_entry(
        self,
        mmap: MarshalledMap,
        primary_key: Sequence[str],
        generator: SeqIDGenerator,
    ) -> IndexEntry:
        """Return the entry for a marshalled row.

        Fills in mmap's SeqID if it is unset, so the row and its entries share it.
        """
        ...
