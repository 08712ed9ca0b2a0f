"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Content hashing for merk trees.

The digest of a tree is SHA-256 over its canonical encoding, so two trees
hash equal exactly when they are structurally equal.
"""

import hashlib
from typing import Any

from merk.core.canonical import encode


DIGEST_SIZE = 32

# SHA-256 of encode({})
EMPTY_ROOT_HASH = bytes.fromhex(
    "f1aaaed143d52fc31a96447a0bbfd3a28013c038ec18daa1e4dca9cefe1988bf"
)


def hash_bytes(data: bytes) -> bytes:
    """
    Hash data using SHA-256.

    Args:
        data: Data to hash

    Returns:
        SHA-256 hash of data
    """
    return hashlib.sha256(data).digest()


def hash_value(value: Any) -> bytes:
    """
    Compute the content hash of a value or subtree.

    Args:
        value: Tree value (see merk.core.canonical for supported kinds)

    Returns:
        32-byte SHA-256 digest of the canonical encoding

    Raises:
        UnsupportedValueError: If the value cannot be encoded
    """
    return hash_bytes(encode(value))


def hash_hex(value: Any) -> str:
    """Hex form of hash_value()."""
    return hash_value(value).hex()
