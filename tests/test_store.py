import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pose_stream.store import DEFAULT_CAPACITY, PoseStore


def test_store_keeps_last_thousand_entries_in_order():
    store = PoseStore()
    for index in range(DEFAULT_CAPACITY + 5):
        store.append([{"x": 0.5, "y": 0.5}], session_id=f"s{index}")

    entries = store.snapshot()

    assert len(store) == DEFAULT_CAPACITY
    assert [entry.sessionId for entry in entries] == [f"s{index}" for index in range(5, DEFAULT_CAPACITY + 5)]
    assert [entry.id for entry in entries] == sorted(entry.id for entry in entries)


def test_append_fills_defaults():
    store = PoseStore()

    entry = store.append([])

    assert entry.sessionId == "default"
    assert entry.timestamp == entry.receivedAt
    assert entry.receivedAt.endswith("Z")


def test_recent_returns_newest_entries_oldest_first():
    store = PoseStore()
    for index in range(6):
        store.append([], session_id=f"s{index}")

    assert [entry.sessionId for entry in store.recent(3)] == ["s3", "s4", "s5"]
    assert len(store.recent(100)) == 6
    assert store.recent(0) == []


def test_concurrent_appends_respect_capacity_and_unique_ids():
    store = PoseStore(capacity=50)

    def worker():
        for _ in range(100):
            store.append([])

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    entries = store.snapshot()
    assert len(entries) == 50
    assert len({entry.id for entry in entries}) == 50
    assert [entry.id for entry in entries] == list(range(751, 801))


def test_entries_are_immutable():
    entry = PoseStore().append([])

    with pytest.raises(Exception):
        entry.sessionId = "other"


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        PoseStore(capacity=0)
