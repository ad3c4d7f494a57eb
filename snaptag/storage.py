"""
storage.py — Durable key-value stores backing the persistence adapter.

Values are opaque bytes. DirectoryStore keeps one file per key and writes
through a temp file + rename, so a crash mid-write leaves the previous value
intact. Errors are raised to the caller (the adapter reports them).

Stores signal every storage problem with OSError; the adapter converts it
into PersistenceFailure and nothing else.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

from . import PROJECT_NAME

logger = logging.getLogger(f"{PROJECT_NAME.lower()}.storage")

CORRUPT_SUFFIX = ".corrupt"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None:
        """Store value under key. Raises OSError on failure."""
        ...

    def quarantine(self, key: str) -> Optional[str]:
        """Move the value under key aside so later writes cannot replace it.

        Returns where the old value now lives, or None if key was empty.
        Raises OSError on failure.
        """
        ...


class MemoryStore:
    """Dict-backed store, mostly for tests."""

    def __init__(self):
        self.data = {}  # type: dict[str, bytes]

    def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.data[key] = bytes(value)

    def quarantine(self, key: str) -> Optional[str]:
        if key not in self.data:
            return None
        target = key + CORRUPT_SUFFIX
        n = 1
        while target in self.data:
            target = f"{key}{CORRUPT_SUFFIX}.{n}"
            n += 1
        self.data[target] = self.data.pop(key)
        return target


class DirectoryStore:
    """One file per key under a root directory (<root>/<key>.json)."""

    def __init__(self, root: str):
        self.root = root

    def _path(self, key: str) -> str:
        return os.path.join(self.root, f"{key}.json")

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return f.read()

    def set(self, key: str, value: bytes) -> None:
        os.makedirs(self.root, exist_ok=True)
        path = self._path(key)

        # Write to temp file first, then rename (atomic on POSIX)
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "wb") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError as cleanup_err:
                    logger.warning(f"Could not clean up temp file {tmp_path}: {cleanup_err}")
            raise
        logger.debug(f"Wrote {len(value)} bytes → {path}")

    def quarantine(self, key: str) -> Optional[str]:
        """Rename <key>.json to <key>.json.corrupt (or .corrupt.N if taken)."""
        path = self._path(key)
        if not os.path.exists(path):
            return None
        target = path + CORRUPT_SUFFIX
        n = 1
        while os.path.exists(target):
            target = f"{path}{CORRUPT_SUFFIX}.{n}"
            n += 1
        os.rename(path, target)
        return target
