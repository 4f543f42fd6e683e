from __future__ import annotations

import pytest

from storage import FileDurableStore, MemoryDurableStore, get_durable_store
from utils.exceptions import StorageError


def test_file_store_round_trip(tmp_path) -> None:
    path = tmp_path / "nested" / "queue.json"
    store = FileDurableStore(path)

    assert store.load() is None
    store.save(b'{"items": []}')
    store.save(b'{"items": [1]}')

    assert store.load() == b'{"items": [1]}'
    assert sorted(p.name for p in path.parent.iterdir()) == ["queue.json"]

    store.clear()
    assert store.load() is None


def test_file_store_write_failure_raises_storage_error(tmp_path) -> None:
    store = FileDurableStore(tmp_path / "queue.json")
    (tmp_path / "queue.json").mkdir()

    with pytest.raises(StorageError):
        store.save(b"data")


def test_memory_store_counts_saves() -> None:
    store = MemoryDurableStore(b"seed")

    assert store.load() == b"seed"
    store.save(b"next")
    assert store.load() == b"next"
    assert store.save_count == 1


def test_get_durable_store_providers(tmp_path) -> None:
    assert isinstance(get_durable_store("memory"), MemoryDurableStore)
    assert isinstance(get_durable_store("file", str(tmp_path / "q.json")), FileDurableStore)
    with pytest.raises(ValueError):
        get_durable_store("redis")
