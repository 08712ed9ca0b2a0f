#!/usr/bin/env python
"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Merk, a product of Garudex Labs

Demo of a merk session over a SQLite store.

This example opens a tree, edits it with ordinary dict assignment, inspects
the pending mutations, commits, rolls back, and reopens the store to show
what was persisted.
"""

import asyncio
import json
import tempfile
from pathlib import Path

from prometheus_client import CollectorRegistry

import merk
from merk.db.store import SqlStore
from merk.logging_config import setup_logging
from merk.monitoring.metrics import MetricsRegistry


async def run(db_path: Path):
    store = SqlStore.from_url(f"sqlite:///{db_path}")
    metrics = MetricsRegistry(CollectorRegistry())

    root = await merk.open(store, metrics=metrics)
    print(f"Opened empty tree, hash {merk.hash(root).hex()}")

    root["foo"] = {"x": 5, "y": {"z": 123}}
    root["bar"] = "baz"
    print("\nPending mutations:")
    print(json.dumps(merk.mutations(root).to_dict(), indent=2))

    result = await merk.commit(root)
    print(f"\nCommitted {result.puts} puts, {result.deletes} deletes")
    print(f"Root hash: {result.root_hash.hex()}")

    root["foo"]["y"]["z"] = 0
    del root["bar"]
    print("\nEdited, then rolled back:")
    merk.rollback(root)
    print(json.dumps(root, indent=2, sort_keys=True))

    store.manager.close()

    reopened_store = SqlStore.from_url(f"sqlite:///{db_path}")
    reopened = await merk.open(reopened_store)
    print(f"\nReopened tree hash matches: {merk.hash(reopened) == result.root_hash}")
    reopened_store.manager.close()

    print("\nMetrics:")
    print(metrics.generate_metrics().decode("utf-8"))


def main():
    """Run merk session demo."""
    setup_logging(level="INFO", json_format=False)

    with tempfile.TemporaryDirectory() as tmpdir:
        asyncio.run(run(Path(tmpdir) / "merk.db"))


if __name__ == "__main__":
    main()
