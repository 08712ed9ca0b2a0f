"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

SQL-backed ordered key-value store.
"""

import logging
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import select

from merk.db.connection import DatabaseConnectionManager
from merk.db.models import MerkEntry
from merk.store.base import BatchOp, KeyValueStore, OpType, validate_batch

logger = logging.getLogger(__name__)


class SqlStore(KeyValueStore):
    """
    Key-value store on a single SQL table.

    Each batch runs in one database transaction, which gives all-or-nothing
    application. Iteration orders by the binary key column.

    Example:
        >>> manager = DatabaseConnectionManager("sqlite:///merk.db")
        >>> manager.initialize()
        >>> store = SqlStore(manager)
        >>> root = await merk.open(store)
    """

    def __init__(self, manager: DatabaseConnectionManager):
        """
        Initialize SQL store.

        Args:
            manager: Connection manager (initialized on first use if needed)
        """
        self.manager = manager

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "SqlStore":
        """Create a store with its own initialized connection manager."""
        manager = DatabaseConnectionManager(url, echo=echo)
        manager.initialize()
        return cls(manager)

    def _ensure_initialized(self) -> None:
        if not self.manager.is_initialized:
            self.manager.initialize()

    def get(self, key: bytes) -> Optional[bytes]:
        self._ensure_initialized()
        with self.manager.session_scope() as session:
            entry = session.get(MerkEntry, bytes(key))
            return None if entry is None else bytes(entry.value)

    def put(self, key: bytes, value: bytes) -> None:
        self.batch([BatchOp.put(key, value)])

    def delete(self, key: bytes) -> None:
        self.batch([BatchOp.delete(key)])

    def batch(self, ops: Sequence[BatchOp]) -> None:
        ops = validate_batch(ops)
        self._ensure_initialized()

        with self.manager.session_scope() as session:
            for op in ops:
                key = bytes(op.key)
                if op.type == OpType.PUT:
                    session.merge(MerkEntry(key=key, value=bytes(op.value)))
                else:
                    entry = session.get(MerkEntry, key)
                    if entry is not None:
                        session.delete(entry)
                # Keep later ops in the same batch consistent with earlier ones
                session.flush()

        logger.debug("Committed batch of %d operations", len(ops))

    def iterate(self, prefix: bytes = b"") -> Iterator[Tuple[bytes, bytes]]:
        self._ensure_initialized()
        prefix = bytes(prefix)

        rows: List[Tuple[bytes, bytes]] = []
        with self.manager.session_scope() as session:
            query = (
                select(MerkEntry.key, MerkEntry.value)
                .where(MerkEntry.key >= prefix)
                .order_by(MerkEntry.key)
            )
            for key, value in session.execute(query):
                key = bytes(key)
                if not key.startswith(prefix):
                    break
                rows.append((key, bytes(value)))

        return iter(rows)
