"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Redis connection for the Redis-backed merk store.

Keys and values in a merk tree are arbitrary bytes, so the pool is always
created with ``decode_responses=False``.
"""

from typing import Any, Dict, Optional

import redis

from merk.config.settings import RedisConfig
from merk.exceptions import StoreBackendError
from merk.logging_config import get_logger

logger = get_logger(__name__)


def _pool_options(config: RedisConfig, socket_timeout: float, max_connections: int) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "host": config.host,
        "port": config.port,
        "db": config.db,
        "password": config.password or None,
        "socket_timeout": socket_timeout,
        "socket_connect_timeout": socket_timeout,
        "max_connections": max_connections,
        "decode_responses": False,
    }

    if config.ssl:
        options["connection_class"] = redis.SSLConnection
        for name in ("ssl_ca_certs", "ssl_certfile", "ssl_keyfile"):
            value = getattr(config, name)
            if value:
                options[name] = value

    return options


class RedisClient:
    """
    Owns the connection pool behind a RedisStore.

    Example:
        >>> client = RedisClient(RedisConfig(host="cache"))
        >>> client.require_connection()
        >>> store = RedisStore(client.client, namespace="merk")
    """

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        socket_timeout: float = 5.0,
        max_connections: int = 50,
    ):
        """
        Create the pool. No connection is made until the first command.

        Args:
            config: Host, credentials and TLS settings (defaults if None)
            socket_timeout: Connect and read timeout in seconds
            max_connections: Pool size
        """
        self.config = config or RedisConfig()
        self._pool = redis.ConnectionPool(
            **_pool_options(self.config, socket_timeout, max_connections)
        )
        self.client = redis.Redis(connection_pool=self._pool)

        logger.info(
            "Redis pool created",
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
            ssl=self.config.ssl,
        )

    def ping(self) -> bool:
        """Return True if the server answers PING."""
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping to {self.config.host}:{self.config.port} failed: {e}")
            return False

    def require_connection(self) -> None:
        """
        Fail fast if the server is unreachable.

        Raises:
            StoreBackendError: If ping fails
        """
        if not self.ping():
            raise StoreBackendError(
                f"Redis server {self.config.host}:{self.config.port} is unreachable"
            )

    def close(self) -> None:
        self._pool.disconnect()
        logger.info("Redis pool closed")
