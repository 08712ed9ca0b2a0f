"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Redis-backed ordered key-value store.

Layout per namespace:
- ``<namespace>:values`` hash mapping store key to value
- ``<namespace>:index`` sorted set of every store key, all with score 0,
  so ZRANGEBYLEX walks keys in byte order
"""

from typing import Iterator, List, Optional, Sequence, Tuple

import redis

from merk.exceptions import StoreBackendError
from merk.logging_config import get_logger
from merk.store.base import BatchOp, KeyValueStore, OpType, validate_batch

logger = get_logger(__name__)


class RedisStore(KeyValueStore):
    """
    Ordered key-value store on Redis.

    Batches are sent as one MULTI/EXEC transaction, so other clients never
    observe a partially applied batch.
    """

    def __init__(self, client: "redis.Redis", namespace: str = "merk"):
        """
        Initialize Redis store.

        Args:
            client: Binary-safe redis.Redis client (decode_responses=False)
            namespace: Prefix for the Redis keys used by this store
        """
        self.client = client
        self.namespace = namespace
        self.values_key = f"{namespace}:values"
        self.index_key = f"{namespace}:index"

    def get(self, key: bytes) -> Optional[bytes]:
        try:
            return self.client.hget(self.values_key, bytes(key))
        except redis.RedisError as e:
            logger.error(f"Redis HGET failed for key {key!r}: {e}")
            raise StoreBackendError(f"Failed to get key {key!r}: {e}") from e

    def put(self, key: bytes, value: bytes) -> None:
        self.batch([BatchOp.put(key, value)])

    def delete(self, key: bytes) -> None:
        self.batch([BatchOp.delete(key)])

    def batch(self, ops: Sequence[BatchOp]) -> None:
        ops = validate_batch(ops)
        if not ops:
            return

        try:
            pipe = self.client.pipeline(transaction=True)
            for op in ops:
                key = bytes(op.key)
                if op.type == OpType.PUT:
                    pipe.hset(self.values_key, key, bytes(op.value))
                    pipe.zadd(self.index_key, {key: 0})
                else:
                    pipe.hdel(self.values_key, key)
                    pipe.zrem(self.index_key, key)
            pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Redis batch of {len(ops)} operations failed: {e}")
            raise StoreBackendError(f"Failed to apply batch: {e}") from e

        logger.debug(f"Applied batch of {len(ops)} operations to {self.namespace}")

    def iterate(self, prefix: bytes = b"") -> Iterator[Tuple[bytes, bytes]]:
        prefix = bytes(prefix)
        lower = b"[" + prefix if prefix else b"-"

        try:
            keys: List[bytes] = []
            for key in self.client.zrangebylex(self.index_key, lower, b"+"):
                if not key.startswith(prefix):
                    break
                keys.append(key)

            values = self.client.hmget(self.values_key, keys) if keys else []
        except redis.RedisError as e:
            logger.error(f"Redis iteration over {self.namespace} failed: {e}")
            raise StoreBackendError(f"Failed to iterate keys: {e}") from e

        missing = [key for key, value in zip(keys, values) if value is None]
        if missing:
            raise StoreBackendError(
                f"Index lists {len(missing)} keys without values, first: {missing[0]!r}"
            )

        return iter(list(zip(keys, values)))
