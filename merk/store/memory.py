"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

In-process ordered key-value store.
"""

import bisect
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from merk.logging_config import get_logger
from merk.store.base import BatchOp, KeyValueStore, OpType, validate_batch

logger = get_logger(__name__)


class MemoryStore(KeyValueStore):
    """
    Ordered key-value store held in memory.

    Keys are kept in a sorted list alongside the value dict so that prefix
    iteration is a bisect plus a linear scan. Batches are validated up front
    and applied to copies that replace the live state only when every
    operation succeeded.

    Example:
        >>> store = MemoryStore()
        >>> store.put(b"a", b"1")
        >>> list(store.iterate())
        [(b'a', b'1')]
    """

    def __init__(self, data: Optional[Dict[bytes, bytes]] = None):
        self._data: Dict[bytes, bytes] = dict(data or {})
        self._keys: List[bytes] = sorted(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        self.batch([BatchOp.put(key, value)])

    def delete(self, key: bytes) -> None:
        self.batch([BatchOp.delete(key)])

    def batch(self, ops: Sequence[BatchOp]) -> None:
        ops = validate_batch(ops)

        data = dict(self._data)
        for op in ops:
            key = bytes(op.key)
            if op.type == OpType.PUT:
                data[key] = bytes(op.value)
            else:
                data.pop(key, None)

        self._data = data
        self._keys = sorted(data)

        logger.debug(f"Applied batch of {len(ops)} operations ({len(data)} keys)")

    def iterate(self, prefix: bytes = b"") -> Iterator[Tuple[bytes, bytes]]:
        prefix = bytes(prefix)
        # Snapshot so callers may write while iterating
        keys = self._keys
        data = self._data
        index = bisect.bisect_left(keys, prefix)
        while index < len(keys) and keys[index].startswith(prefix):
            key = keys[index]
            yield key, data[key]
            index += 1
