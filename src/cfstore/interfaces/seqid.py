"""Protocol definition for SeqID generation."""

from __future__ import annotations

from typing import Protocol

from ..core.types import Interval, SeqID


class SeqIDGenerator(Protocol):
    """Source of unique, roughly ascending SeqIDs."""

    def new(self) -> SeqID:
        """Return a fresh padded SeqID.

        Raises SeqIDGenerationError on clock or identity failures.
        """
        ...

    def current_interval(self) -> Interval:
        """Return the interval a SeqID issued now would fall into."""
        ...
