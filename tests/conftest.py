"""
Pytest configuration and shared fixtures for Merk tests.
"""

import copy
import os
import tempfile
from pathlib import Path
from typing import Generator, Optional, Sequence

import pytest

from merk.db.connection import DatabaseConnectionManager
from merk.db.store import SqlStore
from merk.monitoring.metrics import reset_metrics_registry
from merk.store.base import BatchOp
from merk.store.memory import MemoryStore


SAMPLE_TREE = {
    "foo": {"x": 5, "y": {"z": 123}},
    "bar": "baz",
}

# SHA-256 of the canonical encoding of SAMPLE_TREE
SAMPLE_TREE_HASH = "7ea5d0801fb1190d84a5aa615e6fd4a1508ccf362517de455b2f04780cb43645"


class FailingStore(MemoryStore):
    """
    Memory store whose batch or iterate can be made to fail on demand.

    A failed batch leaves the data untouched, like a real atomic store.
    """

    def __init__(self, fail_batch: bool = False, fail_iterate: bool = False):
        super().__init__()
        self.fail_batch = fail_batch
        self.fail_iterate = fail_iterate
        self.batch_calls = 0

    def batch(self, ops: Sequence[BatchOp]) -> None:
        self.batch_calls += 1
        if self.fail_batch:
            raise IOError("disk full")
        super().batch(ops)

    def iterate(self, prefix: bytes = b""):
        if self.fail_iterate:
            raise IOError("read error")
        return super().iterate(prefix)


class AsyncMemoryStore:
    """Store whose methods are coroutines, wrapping a MemoryStore."""

    def __init__(self, inner: Optional[MemoryStore] = None):
        self.inner = inner or MemoryStore()

    async def get(self, key):
        return self.inner.get(key)

    async def put(self, key, value):
        self.inner.put(key, value)

    async def delete(self, key):
        self.inner.delete(key)

    async def batch(self, ops):
        self.inner.batch(ops)

    async def iterate(self, prefix=b""):
        return list(self.inner.iterate(prefix))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def memory_store() -> MemoryStore:
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def failing_store() -> FailingStore:
    """Memory store that can be told to fail batches or reads."""
    return FailingStore()


@pytest.fixture
def async_store() -> AsyncMemoryStore:
    """Store with coroutine methods."""
    return AsyncMemoryStore()


@pytest.fixture
def sample_tree() -> dict:
    """Nested tree with a known content hash."""
    return copy.deepcopy(SAMPLE_TREE)


@pytest.fixture
def sample_tree_hash() -> str:
    return SAMPLE_TREE_HASH


@pytest.fixture
def sql_manager() -> Generator[DatabaseConnectionManager, None, None]:
    """Connection manager on an in-memory SQLite database."""
    manager = DatabaseConnectionManager("sqlite://")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def sql_store(sql_manager: DatabaseConnectionManager) -> SqlStore:
    """SQL store on an in-memory SQLite database."""
    return SqlStore(sql_manager)


@pytest.fixture(autouse=True)
def clean_metrics_registry():
    """Make sure no test leaks a global metrics registry into another."""
    reset_metrics_registry()
    yield
    reset_metrics_registry()


# Hypothesis settings for property-based tests
from hypothesis import settings, Verbosity

settings.register_profile("merk", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("merk-ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("merk-dev", max_examples=10, verbosity=Verbosity.verbose)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "merk"))
