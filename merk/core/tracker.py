"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Change tracking for merk roots.

A managed root is an ordinary ``dict`` that callers edit with plain nested
assignment and deletion. The tracker keeps an independent snapshot of the
last committed state (the baseline) and derives the pending diff by
structural comparison whenever it is asked, so edits never need to be
reported to it.

Diff shape: maps present on both sides are compared key by key and only the
changed branches are reported. Lists and scalars are compared whole and, when
they differ, reported whole on both sides. A key removed from working shows
up only in ``before``; a key added shows up only in ``after``.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from merk.core.canonical import ValueKind, check_depth, kind_of, values_equal
from merk.core.hasher import hash_value
from merk.exceptions import NotManagedRootError, UnsupportedValueError


def clone_value(value: Any, depth: int = 1) -> Any:
    """
    Deep copy a tree value into plain dicts and lists.

    Tuples come back as lists and mappings as plain dicts, so a clone never
    shares mutable state with its source.

    Raises:
        UnsupportedValueError: If the value holds anything a tree cannot store
            or nests deeper than MAX_DEPTH
    """
    kind = kind_of(value)
    if kind is ValueKind.MAP:
        check_depth(depth)
        return {key: clone_value(child, depth + 1) for key, child in value.items()}
    if kind is ValueKind.LIST:
        check_depth(depth)
        return [clone_value(item, depth + 1) for item in value]
    return value


def diff_values(
    baseline: Mapping[str, Any],
    working: Mapping[str, Any],
    depth: int = 1,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Compute the minimal before/after branches separating two maps.

    Args:
        baseline: Last committed map
        working: Current map
        depth: Nesting level of the two maps (root is 1)

    Returns:
        Tuple of (before, after) maps containing only changed branches
    """
    check_depth(depth)
    before: Dict[str, Any] = {}
    after: Dict[str, Any] = {}

    for key, old in baseline.items():
        if key not in working:
            before[key] = clone_value(old, depth + 1)

    for key, new in working.items():
        if key not in baseline:
            after[key] = clone_value(new, depth + 1)
            continue

        old = baseline[key]
        if kind_of(old) is ValueKind.MAP and kind_of(new) is ValueKind.MAP:
            sub_before, sub_after = diff_values(old, new, depth + 1)
            if sub_before or sub_after:
                before[key] = sub_before
                after[key] = sub_after
        elif not values_equal(old, new, depth + 1):
            before[key] = clone_value(old, depth + 1)
            after[key] = clone_value(new, depth + 1)

    return before, after


@dataclass(frozen=True)
class Mutations:
    """
    Pending changes of a managed root relative to its baseline.

    Attributes:
        before: Changed branches as they are in the baseline
        after: Changed branches as they are in the working value
    """
    before: Dict[str, Any]
    after: Dict[str, Any]

    @property
    def is_empty(self) -> bool:
        return not self.before and not self.after

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {"before": self.before, "after": self.after}


class MerkRoot(dict):
    """
    Working value of a merk session.

    Behaves exactly like a dict. The tracker reference lives in a slot, so it
    is neither a key nor visible through ``vars()``. Copies and pickles of a
    root are plain dicts: being managed is not transferable.
    """

    __slots__ = ("_merk_tracker",)

    def __reduce_ex__(self, protocol):
        return (dict, (dict(self),))


class ChangeTracker:
    """
    Baseline bookkeeping for one managed root.

    The tracker owns two independent values: ``baseline`` (a plain dict that
    is never handed out) and ``root`` (the MerkRoot callers mutate). After
    construction, rollback() and acknowledge() the two are structurally
    equal.

    Example:
        >>> tracker = ChangeTracker({})
        >>> tracker.root["a"] = 1
        >>> tracker.diff().after
        {'a': 1}
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        """
        Start tracking a tree.

        Args:
            initial: Starting value for both baseline and working (empty map
                if None)
        """
        if initial is None:
            initial = {}
        if kind_of(initial) is not ValueKind.MAP:
            raise UnsupportedValueError(
                f"Root value must be a map, got {type(initial).__name__}"
            )

        self.session_id = str(uuid.uuid4())
        self.baseline: Dict[str, Any] = clone_value(initial)
        self._baseline_digest: Optional[bytes] = None

        self.root = MerkRoot(clone_value(initial))
        self.root._merk_tracker = self

    def diff(self) -> Mutations:
        """Compare the current working value against the baseline."""
        before, after = diff_values(self.baseline, self.root)
        return Mutations(before=before, after=after)

    @property
    def is_dirty(self) -> bool:
        return not values_equal(self.baseline, self.root)

    def snapshot(self) -> Dict[str, Any]:
        """Independent copy of the current working value."""
        return clone_value(self.root)

    def rollback(self) -> None:
        """Reset the working value to the baseline in place."""
        restored = clone_value(self.baseline)
        self.root.clear()
        self.root.update(restored)

    def acknowledge(
        self,
        snapshot: Optional[Dict[str, Any]] = None,
        digest: Optional[bytes] = None,
    ) -> None:
        """
        Promote a durable working value to baseline.

        Must only be called once the store has confirmed the write.

        Args:
            snapshot: Working value that was persisted (current working value
                if None)
            digest: Content hash of snapshot, if already computed
        """
        self.baseline = clone_value(snapshot if snapshot is not None else self.root)
        self._baseline_digest = digest

    def baseline_digest(self) -> bytes:
        """Content hash of the baseline, cached until the next acknowledge()."""
        if self._baseline_digest is None:
            self._baseline_digest = hash_value(self.baseline)
        return self._baseline_digest


def is_managed(value: Any) -> bool:
    """Return True if value is a root produced by a merk session."""
    return isinstance(value, MerkRoot) and getattr(value, "_merk_tracker", None) is not None


def tracker_for(value: Any) -> ChangeTracker:
    """
    Look up the tracker behind a managed root.

    Raises:
        NotManagedRootError: If value was not produced by a merk session
    """
    if not is_managed(value):
        raise NotManagedRootError()
    return value._merk_tracker
