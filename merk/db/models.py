"""
SQLAlchemy models for the SQL-backed merk store.

One table holds every tree node entry. Keys are binary path encodings, so
ordering by ``key`` gives the store's iteration order.
"""

from sqlalchemy import Column, LargeBinary
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class MerkEntry(Base):
    """
    Single key-value entry.

    Attributes:
        key: Binary store key (length-prefixed namespace + canonical path encoding)
        value: Canonical encoding of the node
    """

    __tablename__ = "merk_entries"

    key = Column(LargeBinary, primary_key=True)
    value = Column(LargeBinary, nullable=False)

    def __repr__(self) -> str:
        return f"<MerkEntry(key={self.key!r}, size={len(self.value or b'')})>"
