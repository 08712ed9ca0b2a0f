"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Backing store construction from configuration.
"""

import os

from merk.config.settings import MerkConfig
from merk.exceptions import InvalidConfigurationError
from merk.logging_config import get_logger
from merk.store.base import KeyValueStore
from merk.store.memory import MemoryStore

logger = get_logger(__name__)


def _expand_sqlite_url(url: str) -> str:
    """Expand ``~`` in file-based SQLite URLs and create the parent directory."""
    head = "sqlite:///"
    if not url.startswith(head) or url == head or url.endswith(":memory:"):
        return url

    path = os.path.expanduser(url[len(head):])
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return head + path


def create_store(config: MerkConfig) -> KeyValueStore:
    """
    Build the backing store selected by ``config.store.backend``.

    Backend libraries are imported lazily so that only the selected one must
    be reachable.

    Args:
        config: Loaded configuration

    Returns:
        Ready-to-use key-value store

    Raises:
        InvalidConfigurationError: If the backend name is unknown
    """
    backend = config.store.backend

    if backend == "memory":
        logger.info("Using in-memory store")
        return MemoryStore()

    if backend in ("sqlite", "sql"):
        from merk.db.store import SqlStore

        url = _expand_sqlite_url(config.database.url)
        logger.info(f"Using SQL store backend={backend}")
        return SqlStore.from_url(url, echo=config.database.echo)

    if backend == "redis":
        from merk.redis.client import RedisClient
        from merk.redis.store import RedisStore

        client = RedisClient(config.redis)
        logger.info(f"Using Redis store namespace={config.redis.namespace}")
        return RedisStore(client.client, namespace=config.redis.namespace)

    raise InvalidConfigurationError(f"Unknown store backend: {backend!r}")
