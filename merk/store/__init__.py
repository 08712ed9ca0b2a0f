"""
Key-value store capability and in-process backend.

SQL and Redis backends live in merk.db and merk.redis.
"""

from merk.store.base import (
    BatchOp,
    KeyValueStore,
    OpType,
    STORE_METHODS,
    supports_store_capability,
)
from merk.store.memory import MemoryStore

__all__ = [
    "BatchOp",
    "KeyValueStore",
    "OpType",
    "STORE_METHODS",
    "supports_store_capability",
    "MemoryStore",
]
