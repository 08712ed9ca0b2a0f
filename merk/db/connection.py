"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Database connection management for the SQL-backed merk store.

Any SQLAlchemy URL works. PostgreSQL is the production target; SQLite is
supported for single-process deployments and tests. In-memory SQLite URLs
are pinned to a single shared connection so every session sees the same
database.

The connection URL is resolved in this priority order:
  1. ``MERK_DB_URL`` environment variable.
  2. The URL passed at construction time.
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

_ENV_URL = "MERK_DB_URL"


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


class DatabaseConnectionManager:
    """
    Owns the SQLAlchemy engine for one database URL.

    Example:
        >>> manager = DatabaseConnectionManager("sqlite:///merk.db")
        >>> manager.initialize()
        >>> with manager.session_scope() as session:
        ...     session.add(MerkEntry(key=b"k", value=b"v"))
    """

    def __init__(self, url: str = "sqlite://", echo: bool = False):
        self.url = os.environ.get(_ENV_URL) or url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = False

    def initialize(self) -> None:
        """Create the engine, verify connectivity, and ensure tables exist.

        Raises ``RuntimeError`` if the database is unreachable.
        """
        if self._initialized:
            logger.debug("Connection manager for %s already initialized", self._safe_url())
            return

        engine_kwargs = dict(echo=self.echo)
        if _is_memory_sqlite(self.url):
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )

        self._engine = create_engine(self.url, **engine_kwargs)

        # Fail fast on an unreachable database
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Connected to database: %s", self._safe_url())
        except OperationalError as e:
            logger.error("Database connection failed: %s", e)
            raise RuntimeError(f"Database connection failed: {e}") from e

        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine,
        )

        from merk.db.models import Base, MerkEntry
        Base.metadata.create_all(self._engine)
        logger.info("Table %s ready", MerkEntry.__tablename__)

        self._initialized = True

    def _safe_url(self) -> str:
        return make_url(self.url).render_as_string(hide_password=True)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError(
                "Database connection manager not initialized. Call initialize() first."
            )
        return self._engine

    def get_session(self) -> Session:
        """New ORM session; the caller closes it."""
        if not self._initialized or self._session_factory is None:
            raise RuntimeError(
                "Database connection manager not initialized. Call initialize() first."
            )
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Transactional scope: commits on success, rolls back on error."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error("Database transaction failed, rolling back: %s", e)
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """Run a trivial query; False if the database cannot be reached."""
        if not self._initialized or self._engine is None:
            return False
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return True
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return False

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database connection manager closed")
        self._engine = None
        self._session_factory = None
        self._initialized = False
