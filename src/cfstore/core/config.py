"""Configuration for cfstore.

Defines all tunable parameters for SeqID generation and index scanning.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError

DANGLING_POLICIES = ("skip", "error")


@dataclass
class CFStoreConfig:
    """Configuration parameters for an Orm and the scanners it creates.

    Attributes:
        worker_id: Snowflake worker identifier embedded in every SeqID
        seqid_epoch_ms: Millisecond epoch SeqID timestamps are relative to
        page_size: Rows per index page query, also the pipeline queue bound
        dangling_entries: "skip" or "error" when an index entry no longer resolves
        queue_poll_seconds: Poll period for blocked pipeline stages
    """

    worker_id: int = 0
    seqid_epoch_ms: int = 1388448000000  # 2013-12-31T00:00:00Z
    page_size: int = 10_000
    dangling_entries: str = "skip"
    queue_poll_seconds: float = 0.1

    def validate(self) -> None:
        """Raise ConfigurationError if any parameter is out of range."""
        if not 0 <= self.worker_id < 1024:
            raise ConfigurationError(f"worker_id must be in [0, 1024), got {self.worker_id}")
        if self.seqid_epoch_ms < 0:
            raise ConfigurationError(f"seqid_epoch_ms must be non-negative, got {self.seqid_epoch_ms}")
        if self.page_size <= 0:
            raise ConfigurationError(f"page_size must be positive, got {self.page_size}")
        if self.dangling_entries not in DANGLING_POLICIES:
            raise ConfigurationError(
                f"dangling_entries must be one of {DANGLING_POLICIES}, got {self.dangling_entries!r}"
            )
        if self.queue_poll_seconds <= 0:
            raise ConfigurationError("queue_poll_seconds must be positive")
