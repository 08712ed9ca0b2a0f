"""
Exception hierarchy for Merk.

All custom exceptions inherit from MerkError base class.
"""

from typing import Optional


class MerkError(Exception):
    """Base exception for all Merk errors."""
    pass


# Store Errors
class StoreError(MerkError):
    """Base exception for backing store errors."""
    pass


class MissingStoreError(StoreError):
    """Raised when a session is opened without a usable key-value store."""

    def __init__(self, message: str = "Must provide a key-value store instance"):
        super().__init__(message)


class StoreReadError(StoreError):
    """Raised when reading the persisted tree from the store fails."""
    pass


class CorruptStoreError(StoreReadError):
    """Raised when persisted entries cannot be reassembled into a tree."""
    pass


class StoreBackendError(StoreError):
    """Raised by a store backend when its underlying service fails."""
    pass


class StoreWriteError(StoreError):
    """
    Raised when the backing store rejects or fails a batch write.

    The underlying store exception is kept on ``cause`` and chained as
    ``__cause__``.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


# Session Errors
class NotManagedRootError(MerkError):
    """Raised when a session operation receives a value not produced by open()."""

    def __init__(self, message: str = "Must specify a root merk object"):
        super().__init__(message)


# Encoding Errors
class EncodingError(MerkError):
    """Base exception for canonical encoding errors."""
    pass


class UnsupportedValueError(EncodingError):
    """Raised when a value cannot be represented in the tree."""
    pass


class DecodeError(EncodingError):
    """Raised when bytes are not a valid canonical encoding."""
    pass


# Configuration Errors
class ConfigurationError(MerkError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass
