"""LMDB-specific behaviour of the B-tree backend."""
from pathlib import Path

import pytest

from drop.storage import ErrorCode, OpenFailedError, create_store
from drop.storage.adapters.lmdb_store import DEFAULT_MAP_SIZE, LmdbStore


def test_keys_come_back_in_lexicographic_order(lmdb_store):
    lmdb_store.try_insert("b", "2")
    lmdb_store.try_insert("a", "1")
    with lmdb_store.create_cursor() as cursor:
        assert list(cursor) == ["a", "b"]


def test_single_file_layout(tmp_path):
    path = tmp_path / "drop.mdb"
    with create_store(path) as kv:
        kv.store("k", "v")
    assert path.is_file()
    assert Path(f"{path}-lock").exists()


def test_default_map_size():
    assert LmdbStore("drop.mdb").map_size == DEFAULT_MAP_SIZE


def test_map_full_is_reported(tmp_path):
    kv = LmdbStore(tmp_path / "tiny.mdb", map_size=64 * 1024).open()
    try:
        assert kv.store("big", "x" * (1024 * 1024)) is False
        assert kv.last_error() is ErrorCode.STORAGE_FULL
        assert kv.describe_error(kv.last_error()).startswith("MDB_MAP_FULL")
        assert kv.last_error_detail
    finally:
        kv.close()


def test_oversized_key_is_invalid(lmdb_store):
    assert lmdb_store.store("k" * 2048, "v") is False
    assert lmdb_store.last_error() is ErrorCode.INVALID


def test_garbage_file_fails_to_open(tmp_path):
    path = tmp_path / "drop.mdb"
    path.write_bytes(b"this is not an lmdb environment" * 1000)
    with pytest.raises(OpenFailedError) as excinfo:
        LmdbStore(path).open()
    assert excinfo.value.path == str(path)
    assert excinfo.value.detail


def test_conflict_wording(lmdb_store):
    lmdb_store.try_insert("a", "1")
    assert lmdb_store.try_insert("a", "2") is False
    assert lmdb_store.describe_error(lmdb_store.last_error()).startswith("MDB_KEYEXIST")


def test_cursor_snapshot_ignores_later_writes(lmdb_store):
    lmdb_store.store("a", "1")
    with lmdb_store.create_cursor() as cursor:
        assert cursor.first()
        lmdb_store.store("b", "2")
        assert cursor.next() is False
