"""SeqID rendering and interval arithmetic.

A SeqID is stored as a 13-digit zero-padded base-36 string so that byte
ordering matches numeric ordering. An interval is the SeqID with its low
8 digits (worker id and sequence counter) dropped.
"""

from __future__ import annotations

from ..core.errors import EncodingError
from ..core.types import Interval, SeqID

DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
SEQID_WIDTH = 13
INTERVAL_SUFFIX = 8
INTERVAL_WIDTH = SEQID_WIDTH - INTERVAL_SUFFIX
MAX_SEQID = 2**64 - 1
MAX_INTERVAL = 36**INTERVAL_WIDTH - 1


def to_base36(n: int) -> str:
    """Render a non-negative integer in lowercase base 36."""
    if n < 0:
        raise EncodingError(f"cannot render negative value {n} in base 36")
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(DIGITS[rem])
    return "".join(reversed(digits))


def parse_base36(s: str) -> int:
    """Parse a base-36 string, raising EncodingError on malformed input."""
    if not s or s.strip() != s or s.startswith(("+", "-")):
        raise EncodingError(f"invalid base-36 value {s!r}")
    try:
        return int(s, 36)
    except ValueError as e:
        raise EncodingError(f"invalid base-36 value {s!r}") from e


def format_seqid(n: int) -> SeqID:
    """Render a 64-bit integer as a padded SeqID."""
    if not 0 <= n <= MAX_SEQID:
        raise EncodingError(f"SeqID value {n} out of 64-bit range")
    return SeqID(to_base36(n).rjust(SEQID_WIDTH, "0"))


def pad_seqid(seqid: str) -> SeqID:
    """Zero-pad a SeqID to the fixed storage width.

    The empty string is the sentinel SeqID and is returned unchanged.
    """
    if seqid == "":
        return SeqID("")
    return format_seqid(parse_base36(seqid))


def seqid_value(seqid: str) -> int:
    return parse_base36(seqid)


def interval(seqid: str) -> Interval:
    """Return the interval bucket a SeqID falls into."""
    if not seqid:
        raise EncodingError("the sentinel SeqID has no interval")
    return pad_seqid(seqid)[:INTERVAL_WIDTH]


def format_interval(n: int) -> Interval:
    if not 0 <= n <= MAX_INTERVAL:
        raise EncodingError(f"interval value {n} out of range")
    return to_base36(n).rjust(INTERVAL_WIDTH, "0")


def interval_value(iv: Interval) -> int:
    return parse_base36(iv)


def incr_interval(iv: Interval) -> Interval:
    """Return the interval one unit after iv."""
    return format_interval(parse_base36(iv) + 1)


def decr_interval(iv: Interval) -> Interval:
    """Return the interval one unit before iv.

    Raises:
        EncodingError: if iv is malformed or already at the floor
    """
    n = parse_base36(iv)
    if n == 0:
        raise EncodingError("cannot decrement the floor interval")
    return format_interval(n - 1)


def interval_to_seqid(iv: Interval) -> SeqID:
    """Return the smallest SeqID belonging to interval iv."""
    return SeqID(format_interval(parse_base36(iv)) + "0" * INTERVAL_SUFFIX)
