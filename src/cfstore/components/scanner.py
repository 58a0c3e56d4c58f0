"""Resumable, paginated index scanner.

An IndexIter walks an index backward in time, one interval at a time, and
yields the indexed rows in descending SeqID order. Two background stages
feed the caller:

    stage A: page through the backing table   -> keys queue
    stage B: look up each entry's primary row -> rows queue -> next()

Both queues are bounded by the page size, so at most a page of entries and
a page of rows are in flight at once.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..core.errors import ConfigurationError, DanglingEntryError, ScanCancelledError, ScanError
from ..core.types import Interval, MarshalledMap, RangeQuery, SeqID
from .entry import INTERVAL_COLUMN, SEQID_COLUMN, IndexEntry
from .interval import (
    decr_interval,
    format_interval,
    incr_interval,
    interval,
    interval_to_seqid,
    interval_value,
    pad_seqid,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..core.orm import Orm
    from .index import Index

logger = logging.getLogger(__name__)

# Marks the end of a stage's output
_END = object()


class ScanStatus(Enum):
    """Outcome of a single IndexIter.next() call."""

    ITEM = "item"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class ScanState(Enum):
    """Progress of an index scan."""

    UNINITIALIZED = "uninitialized"
    SCANNING_INTERVAL = "scanning_interval"
    ADVANCING_INTERVAL = "advancing_interval"
    EXHAUSTED = "exhausted"
    ERRORED = "errored"
    CANCELLED = "cancelled"


TERMINAL_STATES = (ScanState.EXHAUSTED, ScanState.ERRORED, ScanState.CANCELLED)


@dataclass
class ScanResult:
    """A row, or the reason there are no more rows."""

    status: ScanStatus
    row: Any = None
    error: ScanError | None = None

    def __bool__(self) -> bool:
        return self.status is ScanStatus.ITEM


class IndexIter:
    """Cursor over an index, newest entries first.

    Args:
        index: Index to scan
        orm: Orm providing the store and SeqID generator
        after: Exclusive upper SeqID bound; empty means "now"
        limit: Maximum number of index entries to retrieve, 0 for no limit
        page_size: Rows per page query, defaults to the Orm config
        lower_bound: Oldest interval to scan, inclusive. Partitioned scans also
            stop at the interval holding the index sentinel.

    A scanner is single-consumer: next(), close() and iteration must not be
    called concurrently. Call close() (or use it as a context manager) to stop
    its background stages before it is exhausted.
    """

    def __init__(
        self,
        index: Index,
        orm: Orm,
        after: SeqID | str = "",
        limit: int = 0,
        page_size: int | None = None,
        lower_bound: Interval | None = None,
    ):
        self.index = index
        self._orm = orm
        self.after: SeqID = pad_seqid(after) if after else SeqID("")
        self.limit = limit
        self.page_size = page_size or orm.config.page_size
        self.lower_bound: Interval | None = (
            format_interval(interval_value(lower_bound)) if lower_bound is not None else None
        )
        self.partition_parts: list[str] = []
        self.state = ScanState.UNINITIALIZED
        self.interval: Interval | None = None
        self.keys_retrieved = 0
        self.last_seqid: SeqID | None = None
        self._floor: Interval | None = None

        self._poll = orm.config.queue_poll_seconds
        self._dangling_policy = orm.config.dangling_entries
        self._error: ScanError | None = None
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._keys: queue.Queue | None = None
        self._rows: queue.Queue | None = None
        self._threads: list[threading.Thread] = []

    def __repr__(self) -> str:
        return f"IndexIter({self.index!r}, state={self.state.value}, after={self.after!r})"

    def by(self, *values: Any) -> IndexIter:
        """Restrict the scan to rows whose indexed columns equal values."""
        if self._rows is not None:
            raise ScanError("cannot change the partition filter of a started scan")
        self.partition_parts = self.index.filter_parts(*values)
        return self

    @property
    def error(self) -> ScanError | None:
        return self._error

    @property
    def exhausted(self) -> bool:
        return self.state is ScanState.EXHAUSTED

    @property
    def cancelled(self) -> bool:
        return self.state is ScanState.CANCELLED

    def _set_state(self, state: ScanState) -> bool:
        """Move to state unless the scan already ended; return whether it moved."""
        with self._lock:
            if self.state in TERMINAL_STATES:
                return False
            self.state = state
            return True

    # Consumer side

    def next(self) -> ScanResult:
        """Block until the next row is available or the scan ends."""
        if self._error is not None:
            return self._errored()
        if self.state is ScanState.EXHAUSTED:
            return ScanResult(ScanStatus.EXHAUSTED)
        if self.state is ScanState.CANCELLED:
            return ScanResult(
                ScanStatus.ERROR,
                error=ScanCancelledError(f"scan of {self.index.backing.name} was closed"),
            )
        if self._rows is None:
            self._start()

        item = self._get(self._rows)
        if item is _END or self._error is not None:
            if self._error is None:
                self._set_state(ScanState.EXHAUSTED)
            self.close()
            if self._error is not None:
                return self._errored()
            return ScanResult(ScanStatus.EXHAUSTED)

        seqid, row = item
        self.last_seqid = seqid
        return ScanResult(ScanStatus.ITEM, row=row)

    def _errored(self) -> ScanResult:
        self.close()
        return ScanResult(ScanStatus.ERROR, error=self._error)

    def __iter__(self) -> Iterator[Any]:
        """Yield rows until exhausted; raise the scan error if one occurred."""
        try:
            while True:
                result = self.next()
                if result.status is ScanStatus.ITEM:
                    yield result.row
                elif result.status is ScanStatus.ERROR:
                    raise result.error
                else:
                    return
        finally:
            self.close()

    def all(self) -> list[Any]:
        return list(self)

    def close(self) -> None:
        """Cancel the scan and wait for its background stages to stop.

        A scan closed before it ended is cancelled; reading from it afterwards
        returns a ScanCancelledError.
        """
        if self._closed.is_set():
            return
        self._set_state(ScanState.CANCELLED)
        self._closed.set()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is current or not thread.is_alive():
                continue
            thread.join(timeout=5.0)
            if thread.is_alive():
                logger.warning(f"{thread.name} did not shut down cleanly")
        logger.debug(f"Closed scan of {self.index.backing.name} after {self.keys_retrieved} keys")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # Pipeline plumbing

    def _start(self) -> None:
        columns = self.index.indexer.columns
        if len(self.partition_parts) != len(columns):
            raise ConfigurationError(
                f"index {self.index.name!r} is partitioned by {list(columns)};"
                f" call by() with {len(columns)} values before scanning"
            )
        self._keys = queue.Queue(maxsize=self.page_size)
        self._rows = queue.Queue(maxsize=self.page_size)
        name = self.index.backing.name
        self._threads = [
            threading.Thread(target=self._scan_intervals, daemon=True, name=f"IndexScan-{name}"),
            threading.Thread(target=self._resolve_entries, daemon=True, name=f"IndexResolve-{name}"),
        ]
        for thread in self._threads:
            thread.start()

    def _put(self, q: queue.Queue, item: Any, abort_on_error: bool) -> bool:
        """Put item on q unless the scan is closed (or failed, if abort_on_error)."""
        while not self._closed.is_set():
            if abort_on_error and self._error is not None:
                return False
            try:
                q.put(item, timeout=self._poll)
                return True
            except queue.Full:
                continue
        return False

    def _get(self, q: queue.Queue) -> Any:
        """Get the next item from q, or _END once the scan is closed or failed."""
        while not self._closed.is_set():
            try:
                return q.get(timeout=self._poll)
            except queue.Empty:
                if self._error is not None:
                    return _END
        return _END

    def _fail(self, e: Exception) -> None:
        """Record the first error of the scan; it stays set from then on."""
        with self._lock:
            if self._error is not None:
                return
            if isinstance(e, ScanError):
                err = e
            else:
                err = ScanError(f"scan of {self.index.backing.name} failed: {e}")
                err.__cause__ = e
            self._error = err
            self.state = ScanState.ERRORED
        logger.exception(f"Scan of {self.index.backing.name} failed: {e}")

    # Stage A: index entries

    def _init_cursor(self) -> None:
        if not self.after:
            self.interval = self._orm.seqid.current_interval()
            self.after = interval_to_seqid(incr_interval(self.interval))
        else:
            self.interval = interval(self.after)
        if self.partition_parts:
            # Partitions hold no sentinel; stop where the index began instead
            self._floor = self.index.creation_interval(self._orm)

    def _query_page(self, limit: int) -> list[MarshalledMap]:
        partition = IndexEntry(partition_parts=self.partition_parts, interval=self.interval).partition()
        query = RangeQuery(
            table=self.index.backing.name,
            equal={INTERVAL_COLUMN: partition.encode("ascii")},
            less_than=(SEQID_COLUMN, self.after.encode("ascii")),
            descending=True,
            limit=limit,
        )
        return self._orm.store.select(query)

    def _at_lower_edge(self) -> bool:
        current = interval_value(self.interval)
        if current == 0:
            return True
        bounds = [b for b in (self.lower_bound, self._floor) if b is not None]
        return any(current <= interval_value(b) for b in bounds)

    def _scan_intervals(self) -> None:
        try:
            self._init_cursor()
            while not self._closed.is_set() and self._error is None:
                limit = self.page_size
                if self.limit:
                    remaining = self.limit - self.keys_retrieved
                    if remaining <= 0:
                        return
                    limit = min(limit, remaining)

                self._set_state(ScanState.SCANNING_INTERVAL)
                rows = self._query_page(limit)
                logger.debug(
                    f"Fetched {len(rows)} entries from {self.index.backing.name}"
                    f" interval {self.interval} before {self.after}"
                )
                for mmap in rows:
                    entry = IndexEntry.unmarshal(mmap)
                    if entry.is_sentinel:
                        logger.debug(f"Reached sentinel at interval {self.interval}")
                        return
                    self.after = entry.seqid
                    self.keys_retrieved += 1
                    if not self._put(self._keys, entry, abort_on_error=True):
                        return

                if len(rows) >= limit:
                    # Full page: the interval may hold more entries before the new cursor
                    continue
                if self._at_lower_edge():
                    return
                self._set_state(ScanState.ADVANCING_INTERVAL)
                self.interval = decr_interval(self.interval)
        except Exception as e:
            self._fail(e)
        finally:
            self._put(self._keys, _END, abort_on_error=True)

    # Stage B: primary rows

    def _resolve(self, entry: IndexEntry) -> Any:
        table = self.index.table
        lookup = dict(entry.foreign_key)
        if SEQID_COLUMN in table.primary_key:
            lookup[SEQID_COLUMN] = entry.seqid.encode("ascii")
        rows = self._orm.store.select(RangeQuery(table=table.name, equal=lookup, limit=1))
        if not rows:
            return self._dangling(entry, "primary row not found")
        mmap = rows[0]
        if mmap.get(SEQID_COLUMN) != entry.seqid.encode("ascii"):
            return self._dangling(entry, "primary row has a different SeqID")
        if self.index.indexer.partition_parts(mmap) != entry.partition_parts:
            return self._dangling(entry, "indexed columns of the primary row changed")
        return table.unmarshal(mmap)

    def _dangling(self, entry: IndexEntry, reason: str) -> None:
        msg = f"index entry {entry.seqid} in {self.index.backing.name}: {reason}"
        if self._dangling_policy == "error":
            raise DanglingEntryError(msg)
        logger.warning(f"Skipping {msg}")
        return None

    def _resolve_entries(self) -> None:
        try:
            while True:
                entry = self._get(self._keys)
                if entry is _END:
                    return
                row = self._resolve(entry)
                if row is None:
                    continue
                if not self._put(self._rows, (entry.seqid, row), abort_on_error=False):
                    return
        except Exception as e:
            self._fail(e)
        finally:
            self._put(self._rows, _END, abort_on_error=False)
