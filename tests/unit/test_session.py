"""
Unit tests for merk session operations.

Tests cover:
- Opening sessions against valid and invalid stores
- Mutations, rollback and hashing of managed roots
- Commit persistence, no-op commits and failed commits
- Metrics recording
"""

import pytest
from prometheus_client import CollectorRegistry

import merk
from merk.core.adapter import StoreAdapter
from merk.core.hasher import EMPTY_ROOT_HASH, hash_value
from merk.core.session import CommitResult
from merk.exceptions import (
    CorruptStoreError,
    MissingStoreError,
    NotManagedRootError,
    StoreReadError,
    StoreWriteError,
    UnsupportedValueError,
)
from merk.monitoring.metrics import MetricsRegistry, initialize_metrics_registry
from merk.store.memory import MemoryStore


class TestOpen:
    """Test opening sessions."""

    @pytest.mark.asyncio
    async def test_open_without_store(self):
        with pytest.raises(MissingStoreError, match="Must provide a key-value store instance"):
            await merk.open(None)

    @pytest.mark.asyncio
    async def test_open_with_non_store(self):
        with pytest.raises(MissingStoreError):
            await merk.open({})

    @pytest.mark.asyncio
    async def test_open_with_partial_store(self):
        class GetOnly:
            def get(self, key):
                return None

        with pytest.raises(MissingStoreError):
            await merk.open(GetOnly())

    @pytest.mark.asyncio
    async def test_open_empty_store(self, memory_store):
        root = await merk.open(memory_store)
        assert root == {}
        assert merk.is_managed(root)
        assert merk.mutations(root).is_empty

    @pytest.mark.asyncio
    async def test_open_loads_persisted_tree(self, memory_store, sample_tree):
        first = await merk.open(memory_store)
        first.update(sample_tree)
        await merk.commit(first)

        second = await merk.open(memory_store)
        assert second == sample_tree
        assert second is not first

    @pytest.mark.asyncio
    async def test_open_async_store(self, async_store):
        root = await merk.open(async_store)
        root["a"] = [1, 2]
        await merk.commit(root)
        assert await merk.open(async_store) == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_open_read_failure(self, failing_store):
        failing_store.fail_iterate = True
        with pytest.raises(StoreReadError):
            await merk.open(failing_store)

    @pytest.mark.asyncio
    async def test_open_corrupt_store(self):
        store = MemoryStore({StoreAdapter(MemoryStore()).key_for(("a", "b")): b"N"})
        with pytest.raises(CorruptStoreError):
            await merk.open(store)


class TestMutationsAndRollback:
    """Test inspecting and discarding pending changes."""

    @pytest.mark.asyncio
    async def test_mutations_after_edit(self, memory_store):
        root = await merk.open(memory_store)
        root["foo"] = {"x": 5}
        changes = merk.mutations(root)
        assert changes.before == {}
        assert changes.after == {"foo": {"x": 5}}

    @pytest.mark.asyncio
    async def test_rollback_restores_empty_root(self, memory_store, sample_tree):
        root = await merk.open(memory_store)
        root.update(sample_tree)
        merk.rollback(root)
        assert root == {}
        assert merk.mutations(root).is_empty

    @pytest.mark.asyncio
    async def test_rollback_restores_committed_state(self, memory_store):
        root = await merk.open(memory_store)
        root["a"] = {"b": 1}
        await merk.commit(root)

        root["a"]["b"] = 2
        del root["a"]
        root["c"] = 3
        merk.rollback(root)
        assert root == {"a": {"b": 1}}

    @pytest.mark.asyncio
    async def test_rollback_does_not_touch_store(self, failing_store):
        root = await merk.open(failing_store)
        root["a"] = 1
        failing_store.fail_batch = True
        merk.rollback(root)
        assert failing_store.batch_calls == 0


class TestCommit:
    """Test persisting changes."""

    @pytest.mark.asyncio
    async def test_commit_sample_tree(self, memory_store, sample_tree, sample_tree_hash):
        root = await merk.open(memory_store)
        root.update(sample_tree)

        result = await merk.commit(root)

        assert isinstance(result, CommitResult)
        assert result.root_hash.hex() == sample_tree_hash
        assert merk.hash(root).hex() == sample_tree_hash
        assert merk.committed_hash(root).hex() == sample_tree_hash
        assert merk.mutations(root).is_empty

    @pytest.mark.asyncio
    async def test_commit_counts_operations(self, memory_store):
        root = await merk.open(memory_store)
        root["foo"] = {"x": 5}
        result = await merk.commit(root)
        assert (result.puts, result.deletes) == (2, 0)
        assert result.changed

        del root["foo"]
        result = await merk.commit(root)
        assert (result.puts, result.deletes) == (0, 2)
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_second_commit_is_noop(self, failing_store):
        root = await merk.open(failing_store)
        root["a"] = 1
        first = await merk.commit(root)
        calls = failing_store.batch_calls

        second = await merk.commit(root)

        assert failing_store.batch_calls == calls
        assert not second.changed
        assert second.root_hash == first.root_hash

    @pytest.mark.asyncio
    async def test_commit_empty_session(self, memory_store):
        root = await merk.open(memory_store)
        result = await merk.commit(root)
        assert result == CommitResult(root_hash=EMPTY_ROOT_HASH)

    @pytest.mark.asyncio
    async def test_revert_by_hand_is_noop(self, failing_store):
        root = await merk.open(failing_store)
        root["a"] = 1
        await merk.commit(root)
        calls = failing_store.batch_calls

        root["a"] = 2
        root["a"] = 1
        await merk.commit(root)
        assert failing_store.batch_calls == calls

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_changes_pending(self, failing_store):
        root = await merk.open(failing_store)
        root["a"] = {"b": 1}
        failing_store.fail_batch = True

        with pytest.raises(StoreWriteError, match="disk full"):
            await merk.commit(root)

        assert len(failing_store) == 0
        assert merk.mutations(root).after == {"a": {"b": 1}}
        assert merk.committed_hash(root) == EMPTY_ROOT_HASH

        failing_store.fail_batch = False
        await merk.commit(root)
        assert await merk.open(failing_store) == {"a": {"b": 1}}

    @pytest.mark.asyncio
    async def test_commit_unsupported_value(self, memory_store):
        root = await merk.open(memory_store)
        root["a"] = object()
        with pytest.raises(UnsupportedValueError):
            await merk.commit(root)
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_commit_replaces_structure(self, memory_store):
        root = await merk.open(memory_store)
        root["a"] = {"b": {"c": 1}}
        await merk.commit(root)

        root["a"] = [1, 2]
        await merk.commit(root)
        root["a"] = "flat"
        await merk.commit(root)

        assert await merk.open(memory_store) == {"a": "flat"}
        assert len(memory_store) == 1

    @pytest.mark.asyncio
    async def test_prefixed_sessions_share_store(self, memory_store):
        one = await merk.open(memory_store, prefix=b"one/")
        two = await merk.open(memory_store, prefix=b"two/")
        one["a"] = 1
        two["a"] = 2
        await merk.commit(one)
        await merk.commit(two)

        assert await merk.open(memory_store, prefix=b"one/") == {"a": 1}
        assert await merk.open(memory_store, prefix=b"two/") == {"a": 2}

    @pytest.mark.asyncio
    async def test_default_tree_beside_prefixed_tree(self, memory_store):
        app = await merk.open(memory_store, prefix=b"app/")
        app["a"] = 1
        await merk.commit(app)

        default = await merk.open(memory_store)
        assert default == {}
        default["b"] = {"c": 2}
        await merk.commit(default)

        assert await merk.open(memory_store) == {"b": {"c": 2}}
        assert await merk.open(memory_store, prefix=b"app/") == {"a": 1}

    @pytest.mark.asyncio
    async def test_prefix_extending_another_prefix(self, memory_store):
        inner = await merk.open(memory_store, prefix=b"one/")
        inner["x"] = [1]
        await merk.commit(inner)

        outer = await merk.open(memory_store, prefix=b"one")
        assert outer == {}
        outer["y"] = True
        await merk.commit(outer)

        assert await merk.open(memory_store, prefix=b"one") == {"y": True}
        assert await merk.open(memory_store, prefix=b"one/") == {"x": [1]}


class TestHash:
    """Test content hashes of managed roots."""

    @pytest.mark.asyncio
    async def test_hash_tracks_working_value(self, memory_store):
        root = await merk.open(memory_store)
        assert merk.hash(root) == EMPTY_ROOT_HASH
        root["a"] = 1
        assert merk.hash(root) == hash_value({"a": 1})
        assert merk.committed_hash(root) == EMPTY_ROOT_HASH

    @pytest.mark.asyncio
    async def test_hash_independent_of_edit_order(self, memory_store):
        one = await merk.open(MemoryStore())
        two = await merk.open(MemoryStore())
        one["a"] = 1
        one["b"] = 2
        two["b"] = 2
        two["a"] = 1
        assert merk.hash(one) == merk.hash(two)


class TestNestingDepth:
    """Test trees nested beyond the supported depth."""

    @staticmethod
    def _nested(depth):
        value = None
        for _ in range(depth):
            value = {"n": value}
        return value

    @pytest.mark.asyncio
    async def test_hash_rejects_deep_tree(self, memory_store):
        root = await merk.open(memory_store)
        root["deep"] = self._nested(1200)
        with pytest.raises(UnsupportedValueError, match="maximum depth"):
            merk.hash(root)

    @pytest.mark.asyncio
    async def test_mutations_reject_deep_tree(self, memory_store):
        root = await merk.open(memory_store)
        root["deep"] = self._nested(1200)
        with pytest.raises(UnsupportedValueError):
            merk.mutations(root)

    @pytest.mark.asyncio
    async def test_commit_rejects_deep_tree_and_stays_dirty(self, memory_store):
        root = await merk.open(memory_store)
        root["deep"] = self._nested(1200)
        with pytest.raises(UnsupportedValueError):
            await merk.commit(root)
        assert len(memory_store) == 0

        merk.rollback(root)
        assert root == {}


class TestUnmanagedRoots:
    """Test that operations reject values not produced by open()."""

    @pytest.mark.parametrize("value", [{}, None, {"a": 1}, merk.MerkRoot()])
    def test_sync_operations(self, value):
        for operation in (merk.mutations, merk.rollback, merk.hash, merk.committed_hash):
            with pytest.raises(NotManagedRootError, match="Must specify a root merk object"):
                operation(value)

    @pytest.mark.asyncio
    async def test_commit(self):
        with pytest.raises(NotManagedRootError):
            await merk.commit({})

    @pytest.mark.asyncio
    async def test_copy_of_root_is_unmanaged(self, memory_store):
        root = await merk.open(memory_store)
        with pytest.raises(NotManagedRootError):
            merk.mutations(dict(root))


class TestSessionMetrics:
    """Test metrics recorded by session operations."""

    @pytest.mark.asyncio
    async def test_explicit_registry(self, memory_store):
        metrics = MetricsRegistry(CollectorRegistry())
        root = await merk.open(memory_store, metrics=metrics)
        root["a"] = {"b": 1}
        await merk.commit(root)
        await merk.commit(root)
        merk.rollback(root)

        registry = metrics.registry
        assert registry.get_sample_value("merk_sessions_opened_total") == 1
        assert registry.get_sample_value("merk_commits_total", {"status": "success"}) == 1
        assert registry.get_sample_value("merk_commits_total", {"status": "noop"}) == 1
        assert registry.get_sample_value("merk_commit_ops_total", {"op": "put"}) == 2
        assert registry.get_sample_value("merk_rollbacks_total") == 1
        assert registry.get_sample_value("merk_loaded_entries_sum") == 0

    @pytest.mark.asyncio
    async def test_loaded_entries_counts_nodes(self, memory_store):
        root = await merk.open(memory_store)
        root["a"] = {"b": 1, "c": [True]}
        await merk.commit(root)

        metrics = MetricsRegistry(CollectorRegistry())
        await merk.open(memory_store, metrics=metrics)
        assert metrics.registry.get_sample_value("merk_loaded_entries_sum") == len(memory_store)

    @pytest.mark.asyncio
    async def test_failed_commit_recorded(self, failing_store):
        metrics = MetricsRegistry(CollectorRegistry())
        root = await merk.open(failing_store, metrics=metrics)
        root["a"] = 1
        failing_store.fail_batch = True
        with pytest.raises(StoreWriteError):
            await merk.commit(root)
        assert metrics.registry.get_sample_value(
            "merk_commits_total", {"status": "error"}
        ) == 1

    @pytest.mark.asyncio
    async def test_global_registry_used_when_initialized(self, memory_store):
        metrics = initialize_metrics_registry(CollectorRegistry())
        await merk.open(memory_store)
        assert metrics.registry.get_sample_value("merk_sessions_opened_total") == 1
