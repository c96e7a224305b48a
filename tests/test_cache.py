"""Tests for narration cache and key-value storage (Layer 1d)."""

import os
from unittest.mock import patch

import pytest

from manga_narrator.cache import NarrationCache
from manga_narrator.errors import StorageError
from manga_narrator.storage import JsonFileStore, MemoryStore, init_data_dir


# --- Cache keys ---

def test_key_deterministic():
    assert NarrationCache.key("Hello!", "voice", 0.5, 0.3) == NarrationCache.key("Hello!", "voice", 0.5, 0.3)


@pytest.mark.parametrize("args", [
    ("Goodbye!", "voice", 0.5, 0.3),
    ("Hello!", "other", 0.5, 0.3),
    ("Hello!", "voice", 0.6, 0.3),
    ("Hello!", "voice", 0.5, 0.4),
    ("Hello!", "voice", 0.5000001, 0.3),
    ("Hello!", "voice", 0.5, 0.3000001),
])
def test_key_changes_with_any_argument(args):
    assert NarrationCache.key(*args) != NarrationCache.key("Hello!", "voice", 0.5, 0.3)


def test_key_normalizes_case_and_whitespace():
    assert NarrationCache.key("  Hello   There ", "v", 0.5, 0.3) == NarrationCache.key("hello there", "v", 0.5, 0.3)


def test_key_is_filename_safe():
    key = NarrationCache.key("a/b\\c: d?", "voice", 0.5, 0.3)
    assert "/" not in key and "\\" not in key
    assert key.endswith(".mp3")


# --- Cache storage ---

def test_miss_returns_none(cache):
    assert cache.get("audio_v1_missing.mp3") is None


def test_put_then_get(cache):
    cache.put("k.mp3", b"audio")
    assert cache.get("k.mp3") == b"audio"


def test_survives_new_instance(tmp_path):
    NarrationCache(str(tmp_path)).put("k.mp3", b"audio")
    assert NarrationCache(str(tmp_path)).get("k.mp3") == b"audio"


def test_clear(cache):
    cache.put("k.mp3", b"audio")
    cache.clear()
    assert cache.get("k.mp3") is None
    assert os.path.isdir(cache.blobs.directory)


def test_read_failure_is_a_miss(cache):
    cache.put("k.mp3", b"audio")
    with patch.object(cache.blobs, "read", side_effect=OSError("io error")):
        assert cache.get("k.mp3") is None


def test_write_failure_is_swallowed(cache):
    with patch.object(cache.blobs, "write", side_effect=OSError("disk full")):
        cache.put("k.mp3", b"audio")
    assert cache.get("k.mp3") is None


# --- Key-value stores ---

@pytest.mark.parametrize("make_store", [
    lambda tmp_path: MemoryStore(),
    lambda tmp_path: JsonFileStore(str(tmp_path / "store")),
])
def test_store_get_set_remove(make_store, tmp_path):
    store = make_store(tmp_path)
    assert store.get("missing") is None
    store.set("k", {"a": [1, 2]})
    assert store.get("k") == {"a": [1, 2]}
    store.remove("k")
    assert store.get("k") is None
    store.remove("k")


def test_json_store_corrupt_file_raises(tmp_path):
    store = JsonFileStore(str(tmp_path))
    (tmp_path / "k.json").write_text("{not json")
    with pytest.raises(StorageError):
        store.get("k")


def test_init_data_dir_uses_env(tmp_path, monkeypatch):
    monkeypatch.setenv("MANGA_NARRATOR_HOME", str(tmp_path / "home"))
    home = init_data_dir()
    assert home == str(tmp_path / "home")
    assert os.path.isdir(os.path.join(home, "store"))
    assert os.path.isdir(os.path.join(home, "audio_cache"))


def test_key_keeps_full_float_precision():
    assert "_0.3_0.7_" in NarrationCache.key("Hello", "v", 0.3, 0.7)
    assert NarrationCache.key("Hello", "v", 0.3, 0.7) != NarrationCache.key("Hello", "v", 0.3000001, 0.7)
