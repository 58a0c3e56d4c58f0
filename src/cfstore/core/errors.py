"""Exception hierarchy for cfstore.

Defines all custom exceptions used throughout the implementation.
"""

from __future__ import annotations


class CFStoreError(Exception):
    """Base exception for all cfstore errors."""
    pass


class ConfigurationError(CFStoreError):
    """Raised when a table, index or config is set up incorrectly."""
    pass


class SeqIDGenerationError(CFStoreError):
    """Raised when the SeqID generator cannot issue an identifier."""
    pass


class EncodingError(CFStoreError):
    """Raised when a value, SeqID, interval or index key cannot be encoded or decoded."""
    pass


class StoreError(CFStoreError):
    """Raised when the column store rejects an operation."""
    pass


class NotFoundError(CFStoreError):
    """Raised when a row lookup by key finds nothing."""
    pass


class AlreadyExistsError(CFStoreError):
    """Raised when creating a row whose primary key is already taken."""
    pass


class ScanError(CFStoreError):
    """Raised (and recorded) when an index scan fails."""
    pass


class DanglingEntryError(ScanError):
    """Raised when an index entry no longer resolves to its primary row."""
    pass


class ScanCancelledError(ScanError):
    """Returned when reading from a scan that was closed before it finished."""
    pass
