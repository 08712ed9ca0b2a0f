"""
Redis backend for Merk.
"""

from merk.redis.client import RedisClient
from merk.redis.store import RedisStore

__all__ = [
    "RedisClient",
    "RedisStore",
]
