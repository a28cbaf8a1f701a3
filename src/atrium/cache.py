"""Transient cache for built trees and navigation.

Entries are JSON documents with a time-to-live. A missing, expired, or
unreadable entry is a miss; callers rebuild rather than fail.
"""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from time import monotonic, time
from typing import Any, Protocol

logger = logging.getLogger("atrium.cache")


class TransientCache(Protocol):
    """Key/value store with per-entry expiry."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryCache:
    """In-process cache.

    Values are stored as serialized JSON so a read never shares mutable
    state with the writer, the same as reading back from disk.
    """

    __slots__ = ("_clock", "_entries", "_lock")

    def __init__(self, clock: Callable[[], float] = monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (expires_at, json payload)
        self._entries: dict[str, tuple[float, str]] = {}

    def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at <= now:
                del self._entries[key]
                return None
        return json.loads(payload)

    def set(self, key: str, value: Any, ttl: int) -> None:
        payload = json.dumps(value, default=str)
        with self._lock:
            self._entries[key] = (self._clock() + ttl, payload)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class FileCache:
    """One JSON file per key under *directory*.

    Writes go to a temporary file that is renamed into place, so readers
    see either the old entry or the new one.
    """

    __slots__ = ("_clock", "_directory")

    def __init__(self, directory: str | Path, clock: Callable[[], float] = time) -> None:
        self._directory = Path(directory)
        self._clock = clock

    def _path(self, key: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in key)
        return self._directory / f"{safe}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.debug("Discarding unreadable cache entry %s", path)
            return None

        if not isinstance(envelope, dict) or "value" not in envelope:
            return None
        expires_at = envelope.get("expires_at")
        if not isinstance(expires_at, int | float) or expires_at <= self._clock():
            return None
        return envelope["value"]

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        envelope = {"expires_at": self._clock() + ttl, "value": value}
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(envelope, handle, default=str)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def create_cache(cache_dir: str | Path | None) -> TransientCache:
    """File cache when a directory is configured, memory cache otherwise."""
    if cache_dir is None:
        return MemoryCache()
    return FileCache(cache_dir)
