"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Canonical encoding of tree values.

Every value stored in a merk tree has exactly one byte representation. The
encoding is self-describing (one tag byte per node) so that values of
different kinds never collide, and map entries are written in ascending
UTF-8 byte order of their keys so that insertion order never leaks into the
output. This property is what the content hash and the store key layout
rely on:

    encode(a) == encode(b)  <=>  values_equal(a, b)

Format (lengths and counts are 4-byte big-endian unsigned integers):

    N                           null
    T / F                       true / false
    I <len> <ascii digits>      integer
    D <8 bytes>                 IEEE-754 big-endian double
    S <len> <utf-8 bytes>       text
    L <count> <items...>        list
    M <count> (<S key> <value>)...   map, keys sorted
"""

import math
import struct
from enum import Enum
from typing import Any, List, Mapping, Tuple

from merk.exceptions import DecodeError, UnsupportedValueError


TAG_NULL = b"N"
TAG_TRUE = b"T"
TAG_FALSE = b"F"
TAG_INT = b"I"
TAG_FLOAT = b"D"
TAG_TEXT = b"S"
TAG_LIST = b"L"
TAG_MAP = b"M"

_LENGTH = struct.Struct(">I")
_FLOAT = struct.Struct(">d")

MAX_LENGTH = 0xFFFFFFFF

# Deepest container nesting a tree may hold
MAX_DEPTH = 256


class ValueKind(str, Enum):
    """Kinds of values a tree can hold."""
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    TEXT = "text"
    LIST = "list"
    MAP = "map"


def kind_of(value: Any) -> ValueKind:
    """
    Classify a value.

    ``bool`` is checked before ``int`` since it subclasses it.

    Raises:
        UnsupportedValueError: If the value is not representable in a tree
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, float):
        if not math.isfinite(value):
            raise UnsupportedValueError(f"Non-finite number is not supported: {value!r}")
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    if isinstance(value, Mapping):
        return ValueKind.MAP
    raise UnsupportedValueError(f"Unsupported value type: {type(value).__name__}")


def check_depth(depth: int) -> None:
    """
    Reject container nesting beyond MAX_DEPTH.

    Args:
        depth: Nesting level of the container being entered (root is 1)

    Raises:
        UnsupportedValueError: If depth exceeds MAX_DEPTH
    """
    if depth > MAX_DEPTH:
        raise UnsupportedValueError(f"Tree nesting exceeds maximum depth of {MAX_DEPTH}")


def is_container(value: Any) -> bool:
    """Return True for lists and maps."""
    return kind_of(value) in (ValueKind.LIST, ValueKind.MAP)


def _sorted_items(value: Mapping) -> List[Tuple[bytes, str, Any]]:
    items = []
    for key, child in value.items():
        if not isinstance(key, str):
            raise UnsupportedValueError(
                f"Map keys must be text, got {type(key).__name__}: {key!r}"
            )
        items.append((key.encode("utf-8"), key, child))
    items.sort(key=lambda item: item[0])
    return items


def _pack_length(length: int) -> bytes:
    if length > MAX_LENGTH:
        raise UnsupportedValueError(f"Length {length} exceeds encodable maximum")
    return _LENGTH.pack(length)


def _encode_into(value: Any, out: bytearray, depth: int = 1) -> None:
    kind = kind_of(value)

    if kind is ValueKind.NULL:
        out += TAG_NULL
    elif kind is ValueKind.BOOL:
        out += TAG_TRUE if value else TAG_FALSE
    elif kind is ValueKind.INT:
        digits = str(int(value)).encode("ascii")
        out += TAG_INT + _pack_length(len(digits)) + digits
    elif kind is ValueKind.FLOAT:
        # -0.0 == 0.0, so both must share one encoding
        out += TAG_FLOAT + _FLOAT.pack(0.0 if value == 0.0 else value)
    elif kind is ValueKind.TEXT:
        data = value.encode("utf-8")
        out += TAG_TEXT + _pack_length(len(data)) + data
    elif kind is ValueKind.LIST:
        check_depth(depth)
        out += TAG_LIST + _pack_length(len(value))
        for item in value:
            _encode_into(item, out, depth + 1)
    else:
        check_depth(depth)
        items = _sorted_items(value)
        out += TAG_MAP + _pack_length(len(items))
        for key_bytes, _key, child in items:
            out += TAG_TEXT + _pack_length(len(key_bytes)) + key_bytes
            _encode_into(child, out, depth + 1)


def encode(value: Any) -> bytes:
    """
    Encode a value into its canonical byte representation.

    Args:
        value: None, bool, int, finite float, str, list/tuple or str-keyed mapping

    Returns:
        Canonical encoding of the value

    Raises:
        UnsupportedValueError: If the value (or anything nested in it) is not
            representable or nests deeper than MAX_DEPTH
    """
    out = bytearray()
    _encode_into(value, out)
    return bytes(out)


class _Reader:
    """Cursor over an encoded buffer."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, size: int) -> bytes:
        end = self.pos + size
        if end > len(self.data):
            raise DecodeError(
                f"Truncated encoding: need {size} bytes at offset {self.pos}, "
                f"have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def length(self) -> int:
        return _LENGTH.unpack(self.take(_LENGTH.size))[0]

    def text(self) -> str:
        raw = self.take(self.length())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 text at offset {self.pos}: {e}") from e


def _decode_from(reader: _Reader, depth: int = 1) -> Any:
    tag = reader.take(1)
    if tag in (TAG_LIST, TAG_MAP) and depth > MAX_DEPTH:
        raise DecodeError(f"Nesting deeper than {MAX_DEPTH} at offset {reader.pos - 1}")

    if tag == TAG_NULL:
        return None
    if tag == TAG_TRUE:
        return True
    if tag == TAG_FALSE:
        return False
    if tag == TAG_INT:
        digits = reader.take(reader.length())
        try:
            return int(digits.decode("ascii"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"Invalid integer literal {digits!r}") from e
    if tag == TAG_FLOAT:
        value = _FLOAT.unpack(reader.take(_FLOAT.size))[0]
        if not math.isfinite(value):
            raise DecodeError(f"Non-finite number in encoding: {value!r}")
        return value
    if tag == TAG_TEXT:
        return reader.text()
    if tag == TAG_LIST:
        count = reader.length()
        return [_decode_from(reader, depth + 1) for _ in range(count)]
    if tag == TAG_MAP:
        count = reader.length()
        result = {}
        previous = None
        for _ in range(count):
            if reader.take(1) != TAG_TEXT:
                raise DecodeError(f"Map key at offset {reader.pos - 1} is not text")
            key = reader.text()
            key_bytes = key.encode("utf-8")
            if previous is not None and key_bytes <= previous:
                raise DecodeError(f"Map keys out of canonical order at {key!r}")
            previous = key_bytes
            result[key] = _decode_from(reader, depth + 1)
        return result

    raise DecodeError(f"Unknown tag {tag!r} at offset {reader.pos - 1}")


def decode(data: bytes) -> Any:
    """
    Decode a canonical encoding back into a value.

    Args:
        data: Bytes produced by encode()

    Returns:
        The decoded value (maps come back in canonical key order)

    Raises:
        DecodeError: If data is truncated, malformed, not canonical, or has
            trailing bytes
    """
    reader = _Reader(bytes(data))
    value = _decode_from(reader)
    if reader.pos != len(reader.data):
        raise DecodeError(
            f"Trailing bytes after value: {len(reader.data) - reader.pos} unread"
        )
    return value


def values_equal(a: Any, b: Any, depth: int = 1) -> bool:
    """
    Structural equality of two values.

    Unlike ``==``, kinds must match: ``True`` differs from ``1`` and ``1``
    differs from ``1.0``. Map key order is ignored, list order is not.

    Raises:
        UnsupportedValueError: If either side holds an unsupported value or
            nests deeper than MAX_DEPTH
    """
    kind_a = kind_of(a)
    kind_b = kind_of(b)
    if kind_a is not kind_b:
        return False

    if kind_a is ValueKind.LIST:
        check_depth(depth)
        return len(a) == len(b) and all(values_equal(x, y, depth + 1) for x, y in zip(a, b))
    if kind_a is ValueKind.MAP:
        check_depth(depth)
        if len(a) != len(b):
            return False
        for key in a:
            if key not in b or not values_equal(a[key], b[key], depth + 1):
                return False
        return True
    return a == b
