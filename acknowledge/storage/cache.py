"""
acknowledge/storage/cache.py — Persistent key → JSON response cache.

Responses from crates.io, GitHub and GitLab-style hosts are cached on disk so
that a second run over the same dependency set makes no network calls.
Entries have no TTL; they persist until ``clear()``.

Layout: one JSON file per key under ``<user cache dir>/<cache_name>/``. The
file name is the SHA-256 of the key, so arbitrary keys (URLs, "registry,serde")
are safe on every filesystem. Writes go to a unique ``.tmp`` file first and are
renamed into place, so concurrent writers on different keys never see a
half-written entry.

Every read or write failure is treated as a miss or a dropped write: the
pipeline always falls back to a live fetch.
"""

import hashlib
import json
import logging
import os
import shutil
import sys
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig

logger = logging.getLogger(__name__)


def user_cache_dir() -> Path:
    """Return the platform cache directory (XDG on Linux)."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    if os.name == "nt":
        local = os.environ.get("LOCALAPPDATA")
        if local:
            return Path(local)
        return Path.home() / "AppData" / "Local"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"


class Cache:
    """Interface shared by the disk cache and the in-memory test double."""

    def read(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def write(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class DiskCache(Cache):
    """JSON-file cache rooted at ``directory``.

    Args:
        directory: Cache root. Defaults to ``user_cache_dir() / config.cache_name``.
        config:    AcknowledgeConfig supplying the cache name.
    """

    def __init__(
        self,
        directory: Optional[Path] = None,
        config: AcknowledgeConfig = DEFAULT_CONFIG,
    ) -> None:
        self._dir = Path(directory) if directory else user_cache_dir() / config.cache_name

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"

    def read(self, key: str) -> Optional[Any]:
        """Return the cached value for *key*, or None on miss or any error."""
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                entry = json.load(fh)
        except FileNotFoundError:
            logger.debug("cache miss: %s", key)
            return None
        except (OSError, ValueError) as exc:
            logger.debug("cache read failed for %s: %s", key, exc)
            return None

        if not isinstance(entry, dict) or entry.get("key") != key:
            logger.debug("cache entry for %s is malformed, ignoring", key)
            return None
        return entry.get("value")

    def write(self, key: str, value: Any) -> None:
        """Store *value* under *key* atomically. Failures are dropped silently."""
        target = self._path(key)
        tmp_name = None
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"key": key, "value": value}, fh)
            os.replace(tmp_name, target)
        except (OSError, TypeError, ValueError) as exc:
            logger.debug("cache write failed for %s: %s", key, exc)
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.remove(tmp_name)
                except OSError:
                    pass

    def clear(self) -> None:
        """Delete every cached entry. Raises OSError if removal fails."""
        if self._dir.exists():
            shutil.rmtree(self._dir)
            logger.info("Cleared cache at %s", self._dir)


class MemoryCache(Cache):
    """In-process cache with the same contract; counts hits and misses."""

    def __init__(self, initial: Optional[dict] = None) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        for key, value in (initial or {}).items():
            self.write(key, value)

    def read(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
            if raw is None:
                self.misses += 1
                return None
            self.hits += 1
        # Round-trip through JSON so callers get the same shapes as from disk.
        return json.loads(raw)

    def write(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError):
            return
        with self._lock:
            self._data[key] = raw

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data
