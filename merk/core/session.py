"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Merk session operations.

A session binds one managed root to one backing store:

    root = await merk.open(store)
    root["foo"] = {"x": 5}
    merk.mutations(root)      # pending diff against the last commit
    await merk.commit(root)   # write the diff, promote working to baseline
    merk.rollback(root)       # or discard it
    merk.hash(root)           # SHA-256 over the canonical encoding

``open`` and ``commit`` talk to the store and are coroutines; everything else
is synchronous and in-memory. A session is meant for one writer: callers must
not mutate a root while a commit on it is in flight.
"""

import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from merk.core.adapter import StoreAdapter, flatten
from merk.core.hasher import hash_value
from merk.core.tracker import ChangeTracker, MerkRoot, Mutations, tracker_for
from merk.exceptions import MissingStoreError, NotManagedRootError, StoreError
from merk.logging_config import get_logger, log_commit, log_store_failure
from merk.monitoring.metrics import (
    CommitStatus,
    MetricsRegistry,
    get_metrics_registry,
    is_metrics_registry_initialized,
)
from merk.store.base import OpType, supports_store_capability

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """
    Outcome of a successful commit.

    Attributes:
        root_hash: Content hash of the committed tree
        puts: Number of entries written
        deletes: Number of entries removed
    """
    root_hash: bytes
    puts: int = 0
    deletes: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.puts or self.deletes)


class MerkSession(ChangeTracker):
    """Change tracker bound to a store adapter."""

    def __init__(
        self,
        initial: Mapping[str, Any],
        adapter: StoreAdapter,
        metrics: Optional[MetricsRegistry] = None,
    ):
        super().__init__(initial)
        self.adapter = adapter
        self.metrics = metrics
        self.log = logger.bind(session_id=self.session_id)


def _session_for(root: Any) -> MerkSession:
    tracker = tracker_for(root)
    if not isinstance(tracker, MerkSession):
        raise NotManagedRootError()
    return tracker


def _resolve_metrics(metrics: Optional[MetricsRegistry]) -> Optional[MetricsRegistry]:
    if metrics is not None:
        return metrics
    if is_metrics_registry_initialized():
        return get_metrics_registry()
    return None


async def open(
    store: Any,
    prefix: bytes = b"",
    metrics: Optional[MetricsRegistry] = None,
) -> MerkRoot:
    """
    Open a session against a key-value store.

    Args:
        store: Object providing get/put/delete/batch/iterate
        prefix: Namespace prefix of this tree inside the store
        metrics: Metrics registry (the global one is used when initialized)

    Returns:
        Managed root holding the persisted tree (empty map for an empty store)

    Raises:
        MissingStoreError: If store does not provide the key-value capability
        StoreReadError: If reading the persisted tree fails
    """
    if not supports_store_capability(store):
        raise MissingStoreError()

    adapter = StoreAdapter(store, prefix=prefix)
    try:
        initial = await adapter.load()
    except StoreError as e:
        log_store_failure(logger, None, "load", e, prefix=adapter.prefix.hex())
        raise

    session = MerkSession(initial, adapter, metrics=_resolve_metrics(metrics))

    if session.metrics is not None:
        # The root node itself is implied, not stored
        session.metrics.record_session_opened(sum(1 for _ in flatten(initial)) - 1)

    session.log.info(
        "merk_opened",
        store_type=type(store).__name__,
        prefix=adapter.prefix.hex(),
        top_level_keys=len(initial),
    )

    return session.root


def mutations(root: Any) -> Mutations:
    """
    Pending changes since the last commit.

    Args:
        root: Managed root from open()

    Returns:
        Mutations with the changed branches before and after

    Raises:
        NotManagedRootError: If root was not produced by open()
        UnsupportedValueError: If the working value holds an unstorable value
    """
    return _session_for(root).diff()


def rollback(root: Any) -> None:
    """
    Discard pending changes, restoring the last committed state in place.

    Args:
        root: Managed root from open()

    Raises:
        NotManagedRootError: If root was not produced by open()
    """
    session = _session_for(root)
    session.rollback()

    if session.metrics is not None:
        session.metrics.record_rollback()

    session.log.debug("merk_rollback")


async def commit(root: Any) -> CommitResult:
    """
    Persist pending changes atomically.

    An empty diff is a successful no-op. On failure neither the store nor the
    session changes and the root stays dirty, so the caller may retry or roll
    back.

    Args:
        root: Managed root from open()

    Returns:
        CommitResult with the committed root hash and operation counts

    Raises:
        NotManagedRootError: If root was not produced by open()
        UnsupportedValueError: If the working value holds an unstorable value
        StoreWriteError: If the store rejects the batch
    """
    session = _session_for(root)
    changes = session.diff()

    if changes.is_empty:
        if session.metrics is not None:
            session.metrics.record_commit(CommitStatus.NOOP)
        session.log.debug("merk_commit_skipped", reason="no_changes")
        return CommitResult(root_hash=session.baseline_digest())

    # Edits made while the batch is in flight stay pending
    snapshot = session.snapshot()
    digest = hash_value(snapshot)
    ops = session.adapter.plan(changes)
    puts = sum(1 for op in ops if op.type == OpType.PUT)
    deletes = len(ops) - puts

    start_time = time.time()
    try:
        await session.adapter.persist(ops)
    except StoreError as e:
        duration = time.time() - start_time
        if session.metrics is not None:
            session.metrics.record_commit(CommitStatus.ERROR, duration_seconds=duration)
        log_store_failure(session.log, session.session_id, "commit", e, ops=len(ops))
        raise
    duration = time.time() - start_time

    session.acknowledge(snapshot, digest)

    if session.metrics is not None:
        session.metrics.record_commit(
            CommitStatus.SUCCESS, puts=puts, deletes=deletes, duration_seconds=duration
        )
    log_commit(
        session.log,
        session_id=session.session_id,
        puts=puts,
        deletes=deletes,
        root_hash=digest.hex(),
        duration_ms=duration * 1000,
    )

    return CommitResult(root_hash=digest, puts=puts, deletes=deletes)


def hash(root: Any) -> bytes:
    """
    Content hash of the current working value.

    Does not require a prior commit and does not change the session.

    Args:
        root: Managed root from open()

    Returns:
        32-byte SHA-256 digest

    Raises:
        NotManagedRootError: If root was not produced by open()
        UnsupportedValueError: If the working value holds an unstorable value
    """
    return hash_value(_session_for(root).root)


def committed_hash(root: Any) -> bytes:
    """
    Content hash of the last committed state of root.

    Raises:
        NotManagedRootError: If root was not produced by open()
    """
    return _session_for(root).baseline_digest()
