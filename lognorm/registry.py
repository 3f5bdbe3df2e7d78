"""Read positions of tailed sources, persisted so restarts resume in place.

On disk the registry is a JSON object keyed by absolute path::

    {"/var/log/couchdb/couchdb.log": {"offset": 5120, "inode": 393218}}
"""

import json
import os
import logging
import threading
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    offset: int = 0
    inode: int | None = None


def _parse_entry(path: str, entry) -> Position | None:
    if not isinstance(entry, dict):
        return None
    offset = entry.get("offset", 0)
    inode = entry.get("inode")
    if not isinstance(offset, int) or offset < 0:
        logger.warning("Ignoring registry entry for %s: bad offset %r", path, offset)
        return None
    if inode is not None and not isinstance(inode, int):
        inode = None
    return Position(offset, inode)


class OffsetRegistry:
    def __init__(self, registry_file: str):
        self._path = registry_file
        self._positions: dict[str, Position] = {}
        self._lock = threading.Lock()
        self._dirty = False
        self._load()

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    def _load(self):
        if not os.path.exists(self._path):
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load registry %s: %s", self._path, e)
            return
        if not isinstance(data, dict):
            logger.warning("Registry %s is not a JSON object, starting empty", self._path)
            return
        for path, entry in data.items():
            position = _parse_entry(path, entry)
            if position is not None:
                self._positions[path] = position
        logger.info("Loaded %d source position(s) from %s", len(self._positions), self._path)

    def save(self) -> bool:
        """Write positions atomically if anything changed since the last save."""
        with self._lock:
            if not self._dirty:
                return False
            snapshot = {path: asdict(pos) for path, pos in self._positions.items()}
            self._dirty = False
        os.makedirs(os.path.dirname(self._path) or ".", exist_ok=True)
        tmp_path = self._path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._path)
        return True

    def position(self, path: str) -> Position:
        with self._lock:
            return self._positions.get(path, Position())

    def update(self, path: str, offset: int, inode: int | None):
        position = Position(offset, inode)
        with self._lock:
            if self._positions.get(path) != position:
                self._positions[path] = position
                self._dirty = True

    def forget(self, path: str) -> bool:
        """Drop a source that no longer exists; True if it was known."""
        with self._lock:
            if self._positions.pop(path, None) is None:
                return False
            self._dirty = True
            return True
