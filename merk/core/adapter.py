"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Translation between tree paths and backing store entries.

Every node of a tree is stored as one entry:

- key:   ``namespace + encode(list(path))``, where path is the sequence of map
         keys (str) and list indices (int) leading to the node, and the
         namespace is the prefix preceded by its 4-byte big-endian length
- value: ``encode(scalar)`` for leaves, ``encode({})`` for map nodes and
         ``encode([])`` for list nodes

The root has the empty path. Its entry is implied, so an empty store loads
as an empty map.

The length makes namespaces prefix-free: no tree's keys begin with another
tree's namespace, whether one prefix extends the other or is empty.
"""

import inspect
import struct
from typing import Any, Dict, Iterator, List, Sequence, Tuple, Union

from merk.core.canonical import MAX_DEPTH, ValueKind, decode, encode, kind_of
from merk.core.tracker import Mutations
from merk.exceptions import CorruptStoreError, DecodeError, StoreReadError, StoreWriteError
from merk.logging_config import get_logger
from merk.store.base import BatchOp

logger = get_logger(__name__)

PathSegment = Union[str, int]
Path = Tuple[PathSegment, ...]

MAP_NODE = encode({})
LIST_NODE = encode([])

_PREFIX_LENGTH = struct.Struct(">I")


async def resolve(result: Any) -> Any:
    """Await result if the store returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


def namespace_key(prefix: bytes = b"") -> bytes:
    """Key prefix shared by every entry of the tree stored under prefix."""
    return _PREFIX_LENGTH.pack(len(prefix)) + bytes(prefix)


def path_key(path: Sequence[PathSegment], prefix: bytes = b"") -> bytes:
    """
    Store key for a tree path.

    Args:
        path: Map keys and list indices from the root
        prefix: Namespace prefix of the tree

    Returns:
        Collision-free key for the path
    """
    return namespace_key(prefix) + encode(list(path))


def flatten(value: Any, path: Path = ()) -> Iterator[Tuple[Path, bytes]]:
    """
    Yield (path, node encoding) for a value and everything nested in it.

    Args:
        value: Tree value
        path: Path of value itself

    Yields:
        (path, encoded node) pairs, parents before children
    """
    kind = kind_of(value)
    if kind is ValueKind.MAP:
        yield path, MAP_NODE
        for key, child in value.items():
            yield from flatten(child, path + (key,))
    elif kind is ValueKind.LIST:
        yield path, LIST_NODE
        for index, item in enumerate(value):
            yield from flatten(item, path + (index,))
    else:
        yield path, encode(value)


class _ListNode(dict):
    """List under construction during load, keyed by index."""


class StoreAdapter:
    """
    Reads and writes one tree in a key-value store.

    The store may be synchronous or asynchronous; any result that is
    awaitable is awaited. Synchronous stores run on the event loop thread.

    Example:
        >>> adapter = StoreAdapter(MemoryStore())
        >>> value = await adapter.load()
        >>> ops = adapter.plan(mutations)
        >>> await adapter.persist(ops)
    """

    def __init__(self, store: Any, prefix: bytes = b""):
        """
        Initialize store adapter.

        Args:
            store: Object satisfying the key-value store capability
            prefix: Namespace prefix for every key of this tree
        """
        self.store = store
        self.prefix = bytes(prefix)
        self.namespace = namespace_key(self.prefix)

    def key_for(self, path: Sequence[PathSegment]) -> bytes:
        return path_key(path, self.prefix)

    def path_for(self, key: bytes) -> Path:
        """
        Recover the tree path from a store key.

        Raises:
            CorruptStoreError: If the key is not a valid path key
        """
        if not key.startswith(self.namespace):
            raise CorruptStoreError(f"Key {key!r} is outside prefix {self.prefix!r}")
        try:
            segments = decode(key[len(self.namespace):])
        except DecodeError as e:
            raise CorruptStoreError(f"Undecodable store key {key!r}: {e}") from e

        if not isinstance(segments, list) or not all(
            isinstance(s, str) or (isinstance(s, int) and not isinstance(s, bool) and s >= 0)
            for s in segments
        ):
            raise CorruptStoreError(f"Store key {key!r} is not a tree path")
        return tuple(segments)

    def plan(self, mutations: Mutations) -> List[BatchOp]:
        """
        Turn a diff into store operations.

        Nodes present in ``before`` but not in ``after`` are deleted; nodes in
        ``after`` whose encoding differs from ``before`` are written. Nodes
        that appear identically on both sides (maps recursed into by the
        diff) produce nothing.

        Args:
            mutations: Diff between baseline and working value

        Returns:
            Operations sorted by key
        """
        old_nodes = dict(flatten(mutations.before))
        new_nodes = dict(flatten(mutations.after))

        ops = []
        for path in old_nodes.keys() - new_nodes.keys():
            ops.append(BatchOp.delete(self.key_for(path)))
        for path, node in new_nodes.items():
            if old_nodes.get(path) != node:
                ops.append(BatchOp.put(self.key_for(path), node))

        ops.sort(key=lambda op: op.key)
        return ops

    async def persist(self, ops: Sequence[BatchOp]) -> None:
        """
        Apply operations as one atomic batch.

        Args:
            ops: Operations from plan()

        Raises:
            StoreWriteError: If the store fails; the store's own atomicity
                guarantees nothing was applied
        """
        if not ops:
            return
        try:
            await resolve(self.store.batch(list(ops)))
        except Exception as e:
            raise StoreWriteError(f"Failed to write batch of {len(ops)} operations: {e}", cause=e) from e

    async def load(self) -> Dict[str, Any]:
        """
        Reconstruct the persisted tree.

        Returns:
            Persisted value, or an empty map if the store holds nothing

        Raises:
            StoreReadError: If the store fails while reading
            CorruptStoreError: If entries do not form a valid tree
        """
        try:
            entries = await resolve(self.store.iterate(self.namespace))
            if hasattr(entries, "__aiter__"):
                entries = [entry async for entry in entries]
            else:
                entries = list(entries)
        except Exception as e:
            raise StoreReadError(f"Failed to read tree from store: {e}") from e

        nodes = []
        for key, raw in entries:
            path = self.path_for(bytes(key))
            try:
                value = decode(raw)
            except DecodeError as e:
                raise CorruptStoreError(f"Undecodable value at path {list(path)!r}: {e}") from e
            depth = len(path) + 1 if isinstance(value, (dict, list)) else len(path)
            if depth > MAX_DEPTH:
                raise CorruptStoreError(f"Entry {len(path)} levels deep exceeds maximum depth of {MAX_DEPTH}")
            nodes.append((path, value))

        # Parents sort before their children
        nodes.sort(key=lambda node: len(node[0]))

        root: Dict[str, Any] = {}
        containers: Dict[Path, Any] = {(): root}

        for path, value in nodes:
            if not path:
                if not isinstance(value, dict) or value:
                    raise CorruptStoreError(f"Root entry must be a map node, got {value!r}")
                continue

            parent = containers.get(path[:-1])
            segment = path[-1]
            if parent is None:
                raise CorruptStoreError(f"Orphaned entry at path {list(path)!r}")
            if isinstance(parent, _ListNode) != isinstance(segment, int):
                raise CorruptStoreError(f"Path segment {segment!r} does not match parent at {list(path)!r}")

            if isinstance(value, (dict, list)) and value:
                raise CorruptStoreError(f"Container node at path {list(path)!r} must be empty")
            if isinstance(value, dict):
                node: Any = {}
                containers[path] = node
            elif isinstance(value, list):
                node = _ListNode()
                containers[path] = node
            else:
                node = value
            parent[segment] = node

        logger.debug(f"Loaded {len(nodes)} entries from store")

        return self._finalize(root, ())

    def _finalize(self, node: Any, path: Path) -> Any:
        if isinstance(node, _ListNode):
            if set(node) != set(range(len(node))):
                raise CorruptStoreError(f"List at path {list(path)!r} has missing indices")
            return [self._finalize(node[i], path + (i,)) for i in range(len(node))]
        if isinstance(node, dict):
            return {key: self._finalize(child, path + (key,)) for key, child in node.items()}
        return node
