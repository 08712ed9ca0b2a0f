"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Merk - content-addressed mutable tree store over an ordered key-value backend.

    import merk

    root = await merk.open(store)
    root["foo"] = {"x": 5}
    await merk.commit(root)
    merk.hash(root).hex()
"""

from merk._version import __version__
from merk.core.session import (
    CommitResult,
    commit,
    committed_hash,
    hash,
    mutations,
    open,
    rollback,
)
from merk.core.tracker import MerkRoot, Mutations, is_managed
from merk.exceptions import (
    MerkError,
    MissingStoreError,
    NotManagedRootError,
    StoreReadError,
    StoreWriteError,
)

__all__ = [
    "__version__",
    "open",
    "commit",
    "rollback",
    "mutations",
    "hash",
    "committed_hash",
    "CommitResult",
    "MerkRoot",
    "Mutations",
    "is_managed",
    "MerkError",
    "MissingStoreError",
    "NotManagedRootError",
    "StoreReadError",
    "StoreWriteError",
]
