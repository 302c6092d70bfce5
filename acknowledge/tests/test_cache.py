"""
Unit tests for acknowledge.storage.cache.

DiskCache tests run against pytest's tmp_path; nothing touches the real
user cache directory.
"""
import json
import threading
from pathlib import Path

from acknowledge.config import AcknowledgeConfig
from acknowledge.storage.cache import DiskCache, MemoryCache, user_cache_dir


# ---------------------------------------------------------------------------
# DiskCache
# ---------------------------------------------------------------------------


def test_disk_cache_round_trip(tmp_path):
    """A written value reads back unchanged."""
    cache = DiskCache(tmp_path / "cache")
    value = [{"name": "serde"}, [{"login": "dtolnay", "html_url": "u", "contributions": 9}]]
    cache.write("https://github.com/serde-rs/serde", value)
    assert cache.read("https://github.com/serde-rs/serde") == value


def test_disk_cache_miss_returns_none(tmp_path):
    """A key never written is a miss."""
    assert DiskCache(tmp_path).read("registry,serde") is None


def test_disk_cache_persists_across_instances(tmp_path):
    """Entries survive a new DiskCache over the same directory (no TTL)."""
    DiskCache(tmp_path).write("registry,serde", {"repository": "https://github.com/serde-rs/serde"})
    assert DiskCache(tmp_path).read("registry,serde") == {
        "repository": "https://github.com/serde-rs/serde"
    }


def test_disk_cache_stores_null_values(tmp_path):
    """A cached None value (no repository) is distinguishable from a miss."""
    cache = DiskCache(tmp_path)
    cache.write("registry,internal", {"repository": None})
    assert cache.read("registry,internal") == {"repository": None}


def test_disk_cache_keys_with_unsafe_characters(tmp_path):
    """Keys containing slashes, colons and commas map to distinct files."""
    cache = DiskCache(tmp_path)
    cache.write("https://a/b", 1)
    cache.write("registry,a/b", 2)
    assert cache.read("https://a/b") == 1
    assert cache.read("registry,a/b") == 2
    assert len(list(tmp_path.glob("*.json"))) == 2


def test_disk_cache_corrupt_file_is_a_miss(tmp_path):
    """Unparseable content is treated as a miss, never an exception."""
    cache = DiskCache(tmp_path)
    cache.write("k", "v")
    (entry,) = tmp_path.glob("*.json")
    entry.write_text("{not json", encoding="utf-8")
    assert cache.read("k") is None


def test_disk_cache_foreign_entry_is_a_miss(tmp_path):
    """A file whose stored key differs from the requested key is ignored."""
    cache = DiskCache(tmp_path)
    cache.write("k", "v")
    (entry,) = tmp_path.glob("*.json")
    entry.write_text(json.dumps({"key": "other", "value": "v"}), encoding="utf-8")
    assert cache.read("k") is None


def test_disk_cache_write_failure_is_dropped(tmp_path):
    """A cache directory that cannot be created drops writes silently."""
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    cache = DiskCache(blocker / "cache")
    cache.write("k", "v")
    assert cache.read("k") is None


def test_disk_cache_unserialisable_value_is_dropped(tmp_path):
    """Values JSON cannot encode are dropped and leave no temp files behind."""
    cache = DiskCache(tmp_path)
    cache.write("k", object())
    assert cache.read("k") is None
    assert list(tmp_path.iterdir()) == []


def test_disk_cache_clear(tmp_path):
    """clear() removes every entry."""
    cache = DiskCache(tmp_path / "cache")
    cache.write("a", 1)
    cache.write("b", 2)
    cache.clear()
    assert cache.read("a") is None
    assert not (tmp_path / "cache").exists()


def test_disk_cache_clear_when_missing(tmp_path):
    """Clearing a cache that was never written is a no-op."""
    DiskCache(tmp_path / "never").clear()


def test_disk_cache_concurrent_writers(tmp_path):
    """Threads writing distinct keys never corrupt each other's entries."""
    cache = DiskCache(tmp_path)

    def writer(prefix):
        for i in range(25):
            cache.write(f"{prefix},{i}", {"i": i, "prefix": prefix})

    threads = [threading.Thread(target=writer, args=(p,)) for p in ("registry", "gh", "gl")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for prefix in ("registry", "gh", "gl"):
        for i in range(25):
            assert cache.read(f"{prefix},{i}") == {"i": i, "prefix": prefix}
    assert not list(tmp_path.glob("*.tmp"))


def test_default_directory_uses_cache_name(tmp_path, monkeypatch):
    """Without an explicit directory the cache lives under the user cache dir."""
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    monkeypatch.setattr("acknowledge.storage.cache.sys.platform", "linux")
    cache = DiskCache(config=AcknowledgeConfig(cache_name="ack_test"))
    assert cache.directory == Path(tmp_path) / "ack_test"


def test_user_cache_dir_honours_xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    monkeypatch.setattr("acknowledge.storage.cache.sys.platform", "linux")
    assert user_cache_dir() == Path(tmp_path)


# ---------------------------------------------------------------------------
# MemoryCache
# ---------------------------------------------------------------------------


def test_memory_cache_counts_hits_and_misses():
    """MemoryCache tracks hits and misses for assertions in other tests."""
    cache = MemoryCache({"a": 1})
    assert cache.read("a") == 1
    assert cache.read("b") is None
    assert (cache.hits, cache.misses) == (1, 1)
    assert "a" in cache


def test_memory_cache_returns_copies():
    """Mutating a read value does not change the stored entry."""
    cache = MemoryCache()
    cache.write("k", {"list": [1]})
    cache.read("k")["list"].append(2)
    assert cache.read("k") == {"list": [1]}


def test_memory_cache_clear():
    cache = MemoryCache({"a": 1})
    cache.clear()
    assert "a" not in cache
