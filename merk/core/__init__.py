"""
Core tree engine: canonical encoding, hashing, change tracking, store
translation and session operations.
"""

from merk.core.canonical import decode, encode, values_equal
from merk.core.hasher import DIGEST_SIZE, EMPTY_ROOT_HASH, hash_hex, hash_value
from merk.core.tracker import ChangeTracker, MerkRoot, Mutations, is_managed

__all__ = [
    "encode",
    "decode",
    "values_equal",
    "DIGEST_SIZE",
    "EMPTY_ROOT_HASH",
    "hash_value",
    "hash_hex",
    "ChangeTracker",
    "MerkRoot",
    "Mutations",
    "is_managed",
]
