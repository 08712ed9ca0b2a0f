"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Key-value store capability required by merk sessions.

A store is any object exposing ``get``, ``put``, ``delete``, ``batch`` and
``iterate``. Subclassing KeyValueStore is optional; sessions check the
capability by duck typing so that third-party stores can be passed in
directly. Each method may return its result directly or return an
awaitable, in which case the session awaits it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple


STORE_METHODS = ("get", "put", "delete", "batch", "iterate")


class OpType(str, Enum):
    """Batch operation types."""
    PUT = "put"
    DELETE = "del"


@dataclass(frozen=True)
class BatchOp:
    """
    Single operation inside an atomic batch.

    Attributes:
        type: PUT or DELETE
        key: Store key
        value: Value to write (None for DELETE)
    """
    type: OpType
    key: bytes
    value: Optional[bytes] = None

    @classmethod
    def put(cls, key: bytes, value: bytes) -> "BatchOp":
        return cls(OpType.PUT, key, value)

    @classmethod
    def delete(cls, key: bytes) -> "BatchOp":
        return cls(OpType.DELETE, key)


class KeyValueStore(ABC):
    """
    Ordered key-value store.

    Implementations must apply ``batch`` atomically: either every operation
    takes effect or none does.

    Methods may also be coroutines. Plain methods are called directly from
    the ``open`` and ``commit`` coroutines, so a synchronous store blocks the
    event loop for the duration of each call.
    """

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value stored under key, or None."""

    @abstractmethod
    def put(self, key: bytes, value: bytes) -> None:
        """Store value under key."""

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Remove key. Deleting a missing key is not an error."""

    @abstractmethod
    def batch(self, ops: Sequence[BatchOp]) -> None:
        """Apply ops atomically, in order."""

    @abstractmethod
    def iterate(self, prefix: bytes = b"") -> Iterable[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose key starts with prefix, in key order."""


def supports_store_capability(store: Any) -> bool:
    """
    Check whether an object can back a merk session.

    Args:
        store: Candidate store object

    Returns:
        True if every required method is present and callable
    """
    if store is None:
        return False
    return all(callable(getattr(store, name, None)) for name in STORE_METHODS)


def validate_batch(ops: Sequence[BatchOp]) -> List[BatchOp]:
    """
    Check batch operations before any of them is applied.

    Raises:
        ValueError: If an operation is malformed
    """
    checked = []
    for op in ops:
        if not isinstance(op.key, (bytes, bytearray)):
            raise ValueError(f"Batch key must be bytes, got {type(op.key).__name__}")
        if op.type == OpType.PUT:
            if not isinstance(op.value, (bytes, bytearray)):
                raise ValueError(f"Put value for key {op.key!r} must be bytes")
        elif op.type != OpType.DELETE:
            raise ValueError(f"Unknown batch operation type: {op.type!r}")
        checked.append(op)
    return checked
