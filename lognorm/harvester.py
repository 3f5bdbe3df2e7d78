"""LogHarvester: watchdog event handler tailing every file an include glob names.

Files are read as bytes so registry offsets are true byte positions; each
complete line is decoded as UTF-8 (undecodable bytes replaced) and handed to
``on_line(path, line)``. A trailing fragment without a newline is held back
until the rest of the line arrives.
"""

import fnmatch
import glob
import os
import logging
from typing import BinaryIO, Callable

from watchdog.events import FileSystemEventHandler

from lognorm.registry import OffsetRegistry

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


def _static_dir(pattern: str) -> tuple[str, bool]:
    """Return the deepest wildcard-free directory of *pattern* and whether
    watching it has to be recursive."""
    directory = os.path.dirname(pattern)
    recursive = False
    while any(ch in directory for ch in "*?["):
        directory = os.path.dirname(directory)
        recursive = True
    return directory or os.sep, recursive


def path_matches(path: str, pattern: str) -> bool:
    """Match *path* against an include glob the way ``glob.glob`` does.

    Wildcards never cross a path separator, so ``/var/log/*/app.log`` matches
    ``/var/log/a/app.log`` but not ``/var/log/a/b/app.log``.
    """
    parts = os.path.abspath(path).split(os.sep)
    pattern_parts = os.path.abspath(pattern).split(os.sep)
    if len(parts) != len(pattern_parts):
        return False
    return all(fnmatch.fnmatchcase(p, pp) for p, pp in zip(parts, pattern_parts))


class _Tail:
    """Open handle on one source plus the bytes of its unfinished last line."""

    def __init__(self, fh: BinaryIO, inode: int):
        self.fh = fh
        self.inode = inode
        self.partial = b""

    def restart(self) -> None:
        self.fh.seek(0)
        self.partial = b""

    def read_lines(self) -> list[bytes]:
        chunk = self.fh.read()
        if not chunk:
            return []
        *lines, self.partial = (self.partial + chunk).split(b"\n")
        return lines

    def close(self) -> None:
        self.fh.close()


class LogHarvester(FileSystemEventHandler):
    def __init__(self, include_paths: list[str], on_line: Callable[[str, str], None],
                 registry: OffsetRegistry, on_deleted: Callable[[str], object] | None = None):
        super().__init__()
        self._patterns = [os.path.abspath(p) for p in include_paths]
        self._on_line = on_line
        self._registry = registry
        self._on_deleted = on_deleted
        self._tails: dict[str, _Tail] = {}

    def matches(self, path: str) -> bool:
        abs_path = os.path.abspath(path)
        return any(path_matches(abs_path, p) for p in self._patterns)

    def _drop_tail(self, abs_path: str) -> None:
        tail = self._tails.pop(abs_path, None)
        if tail is not None:
            tail.close()

    def _resume_offset(self, abs_path: str, stat: os.stat_result) -> int:
        """Registered offset for *abs_path*, or 0 if the file was replaced or shrank."""
        saved = self._registry.position(abs_path)
        if saved.inode is not None and saved.inode != stat.st_ino:
            logger.info("Source rotated, reading from the top: %s", abs_path)
            return 0
        if stat.st_size < saved.offset:
            logger.info("Source shrank below its saved offset, reading from the top: %s", abs_path)
            return 0
        return saved.offset

    def _open_file(self, path: str) -> _Tail | None:
        """(Re)open *path* positioned where reading should resume."""
        abs_path = os.path.abspath(path)
        self._drop_tail(abs_path)

        try:
            stat = os.stat(abs_path)
            fh = open(abs_path, "rb")
        except FileNotFoundError:
            logger.debug("Source vanished before it could be opened: %s", abs_path)
            return None
        except OSError as e:
            logger.error("Failed to open %s: %s", abs_path, e)
            return None

        offset = self._resume_offset(abs_path, stat)
        fh.seek(offset)
        tail = _Tail(fh, stat.st_ino)
        self._tails[abs_path] = tail
        self._registry.update(abs_path, offset, stat.st_ino)
        logger.debug("Tailing %s from byte %d", abs_path, offset)
        return tail

    def read_new_lines(self, path: str) -> int:
        """Deliver every complete line appended since the last read.

        Returns the number of non-blank lines handed to ``on_line``.
        """
        abs_path = os.path.abspath(path)
        tail = self._tails.get(abs_path) or self._open_file(abs_path)
        if tail is None:
            return 0

        try:
            size = os.stat(abs_path).st_size
        except FileNotFoundError:
            size = None
        if size is not None and size < tail.fh.tell():
            logger.info("Source truncated while tailing: %s", abs_path)
            tail.restart()

        delivered = 0
        for raw in tail.read_lines():
            line = raw.decode(ENCODING, errors="replace").rstrip("\r")
            if line.strip():
                self._on_line(abs_path, line)
                delivered += 1

        # The held-back fragment is re-read on restart, so it is not committed.
        self._registry.update(abs_path, tail.fh.tell() - len(tail.partial), tail.inode)
        return delivered

    def on_modified(self, event):
        if event.is_directory:
            return
        if self.matches(event.src_path):
            self.read_new_lines(event.src_path)

    def on_created(self, event):
        if event.is_directory:
            return
        if self.matches(event.src_path):
            logger.info("Watched file created: %s", event.src_path)
            self._open_file(event.src_path)
            self.read_new_lines(event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            return
        if self.matches(event.dest_path):
            logger.info("Watched file moved into place: %s", event.dest_path)
            self._open_file(event.dest_path)
            self.read_new_lines(event.dest_path)

    def on_deleted(self, event):
        if event.is_directory:
            return
        abs_path = os.path.abspath(event.src_path)
        if not self.matches(abs_path):
            return
        self._drop_tail(abs_path)
        if self._registry.forget(abs_path):
            logger.info("Watched file deleted, position dropped: %s", abs_path)
        if self._on_deleted is not None:
            self._on_deleted(abs_path)

    def startup_read(self) -> list[str]:
        """Catch up on every existing source; returns the paths found."""
        found = sorted({path for p in self._patterns for path in glob.glob(p)})
        for path in found:
            if os.path.isfile(path):
                logger.info("Startup read: %s", path)
                self._open_file(path)
                self.read_new_lines(path)
        return found

    def close_all(self):
        for path in list(self._tails):
            try:
                self._drop_tail(path)
            except OSError as e:
                logger.warning("Failed to close %s: %s", path, e)

    def get_watch_targets(self) -> set[tuple[str, bool]]:
        """Return (directory, recursive) pairs for Observer scheduling."""
        return {_static_dir(p) for p in self._patterns}
