"""Common type definitions for cfstore.

Defines fundamental types used across all components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NewType

# A SeqID is a zero-padded base-36 rendering of a 64-bit snowflake.
SeqID = NewType("SeqID", str)

# An Interval is a SeqID with its low-order digits dropped.
Interval = str

# Marshalled column values, keyed by column name.
MarshalledMap = dict[str, bytes]

# Column values to write; None clears a column.
RowUpdate = dict[str, bytes | None]


@dataclass
class RangeQuery:
    """A primitive read against one table.

    Selects rows matching every equality predicate and, if given,
    `less_than[0] < less_than[1]`, ordered by clustering key.
    """

    table: str
    equal: MarshalledMap = field(default_factory=dict)
    less_than: tuple[str, bytes] | None = None
    descending: bool = False
    limit: int | None = None
