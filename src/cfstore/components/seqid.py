"""Snowflake SeqID generator.

Each SeqID packs a millisecond timestamp, a worker id and a per-millisecond
sequence counter into 64 bits, rendered as a padded base-36 string.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from ..core.errors import ConfigurationError, SeqIDGenerationError
from ..core.types import Interval, SeqID
from .interval import format_seqid, interval

logger = logging.getLogger(__name__)

WORKER_ID_BITS = 10
SEQUENCE_BITS = 12
TIMESTAMP_SHIFT = WORKER_ID_BITS + SEQUENCE_BITS
MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1
MAX_TIMESTAMP = (1 << (64 - TIMESTAMP_SHIFT)) - 1


class SnowflakeSeqIDGenerator:
    """Issues unique, roughly ascending SeqIDs.

    Args:
        worker_id: Identifier of this generator among concurrent writers
        epoch_ms: Millisecond epoch timestamps are measured from
        clock: Callable returning the current time in seconds

    Invariants:
        - SeqIDs from one instance are unique and strictly increasing
        - The high bits of every SeqID decode to its issue time
        - Generation fails rather than reuse a timestamp if the clock moves backwards
    """

    def __init__(
        self,
        worker_id: int = 0,
        epoch_ms: int = 1388448000000,
        clock: Callable[[], float] = time.time,
    ):
        if not 0 <= worker_id <= MAX_WORKER_ID:
            raise ConfigurationError(f"worker_id must be in [0, {MAX_WORKER_ID}], got {worker_id}")
        self.worker_id = worker_id
        self.epoch_ms = epoch_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000) - self.epoch_ms

    def _check_timestamp(self, ms: int) -> None:
        if ms < 0:
            raise SeqIDGenerationError(f"clock is {-ms}ms before the SeqID epoch")
        if ms > MAX_TIMESTAMP:
            raise SeqIDGenerationError("clock is past the last representable SeqID timestamp")

    def new(self) -> SeqID:
        """Generate the next SeqID."""
        with self._lock:
            now = self._now_ms()
            self._check_timestamp(now)
            if now < self._last_ms:
                logger.error(f"Clock moved backwards by {self._last_ms - now}ms")
                raise SeqIDGenerationError(
                    f"clock moved backwards by {self._last_ms - now}ms"
                )
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    # Sequence exhausted for this millisecond; wait for the next tick
                    while now <= self._last_ms:
                        time.sleep(0.0001)
                        now = self._now_ms()
                    self._check_timestamp(now)
            else:
                self._sequence = 0
            self._last_ms = now
            uid = (now << TIMESTAMP_SHIFT) | (self.worker_id << SEQUENCE_BITS) | self._sequence
        return format_seqid(uid)

    def current_interval(self) -> Interval:
        """Return the interval a SeqID issued right now would fall into."""
        now = self._now_ms()
        self._check_timestamp(now)
        return interval(format_seqid(now << TIMESTAMP_SHIFT))
