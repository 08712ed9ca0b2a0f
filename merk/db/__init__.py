"""
SQL backend for Merk.

This module provides the SQLAlchemy model, connection management and the
SQL-backed key-value store.
"""

from merk.db.connection import DatabaseConnectionManager
from merk.db.models import Base, MerkEntry
from merk.db.store import SqlStore

__all__ = [
    "Base",
    "MerkEntry",
    "DatabaseConnectionManager",
    "SqlStore",
]
