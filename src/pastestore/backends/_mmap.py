"""MmapBackend: file-backed pastes served from read-only memory mappings."""

from __future__ import annotations

import logging
import mmap
import os
import threading
from typing import TYPE_CHECKING

from pastestore.backends._layout import (
    RecoveryTally,
    ensure_root,
    mod_time_of,
    paste_path,
    scan_pastes,
    write_atomically,
)
from pastestore.backends._store import BufferPaste, RecoveryReport, utc_now
from pastestore.errors import PasteNotFoundError
from pastestore.ids import generate_id, parse_id

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta
    from pathlib import Path

    from pastestore.backends._store import PasteInfo

logger = logging.getLogger(__name__)


class _CacheEntry:
    """A live paste: its file, its mapping and the readers currently using it."""

    __slots__ = ("_drained", "mapping", "mod_time", "path", "readers", "size")

    def __init__(self, path: Path, mapping: mmap.mmap, size: int, mod_time: datetime) -> None:
        self.path = path
        self.mapping = mapping
        self.size = size
        self.mod_time = mod_time
        self.readers = 0
        self._drained = threading.Condition()

    def attach(self) -> None:
        with self._drained:
            self.readers += 1

    def detach(self) -> None:
        with self._drained:
            self.readers -= 1
            if self.readers == 0:
                self._drained.notify_all()

    def wait_drained(self) -> None:
        with self._drained:
            self._drained.wait_for(lambda: self.readers == 0)


def _map_file(path: Path) -> _CacheEntry:
    with path.open("rb") as handle:
        st = os.fstat(handle.fileno())
        mapping = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)
    return _CacheEntry(path, mapping, st.st_size, mod_time_of(st))


class MmapBackend:
    """Memory-mapped paste backend.

    Persists pastes exactly like :class:`FileBackend` but keeps every live
    paste mapped, so reads never touch the file again. A delete first
    unpublishes the entry, then waits for in-flight readers before the
    mapping is closed and the file removed.
    """

    def __init__(self, root: str | Path) -> None:
        """Initialize with a root directory, creating it if needed."""
        self._root = ensure_root(root)
        self._entries: dict[str, _CacheEntry] = {}
        self._pending: set[str] = set()
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        """Return the root directory path."""
        return self._root

    def __len__(self) -> int:
        """Return the number of mapped pastes."""
        return len(self._entries)

    def _is_available(self, paste_id: str) -> bool:
        return paste_id not in self._entries and paste_id not in self._pending

    def put(self, content: bytes) -> str:
        """Write bytes to a new file, map it and return its ID."""
        with self._lock:
            paste_id = generate_id(self._is_available)
            self._pending.add(paste_id)
        path = paste_path(self._root, paste_id)
        try:
            write_atomically(path, content)
            try:
                entry = _map_file(path)
            except BaseException:
                path.unlink(missing_ok=True)
                raise
        except BaseException:
            with self._lock:
                self._pending.discard(paste_id)
            raise
        with self._lock:
            self._pending.discard(paste_id)
            self._entries[paste_id] = entry
        return paste_id

    def get(self, paste_id: str) -> BufferPaste:
        """Return a handle reading straight from the paste's mapping.

        The paste cannot be unmapped until the handle is closed.
        """
        paste_id = parse_id(paste_id)
        with self._lock:
            entry = self._entries.get(paste_id)
            if entry is None:
                raise PasteNotFoundError(paste_id)
            entry.attach()
        try:
            return BufferPaste(paste_id, entry.mapping, entry.mod_time, on_close=entry.detach)
        except BaseException:
            entry.detach()
            raise

    def delete(self, paste_id: str) -> int:
        """Delete a paste once its in-flight readers are done, returning its size.

        Blocks the caller until every handle opened before the delete is closed.
        The ID stays claimed until the file is gone. If the file cannot be
        removed the paste is published again and the error propagates.
        """
        paste_id = parse_id(paste_id)
        with self._lock:
            entry = self._entries.pop(paste_id, None)
            if entry is None:
                raise PasteNotFoundError(paste_id)
            self._pending.add(paste_id)
        try:
            entry.wait_drained()
            try:
                entry.path.unlink(missing_ok=True)
            except BaseException:
                with self._lock:
                    self._entries[paste_id] = entry
                raise
            entry.mapping.close()
        finally:
            with self._lock:
                self._pending.discard(paste_id)
        return entry.size

    def recover(
        self,
        admit: Callable[[PasteInfo, timedelta | None], None],
        *,
        lifetime: timedelta,
    ) -> RecoveryReport:
        """Map every persisted paste that is still alive, then admit it."""
        tally = RecoveryTally()
        for info, path, remaining in scan_pastes(self._root, lifetime=lifetime, now=utc_now(), tally=tally):
            entry = _map_file(path)
            with self._lock:
                self._entries[info.paste_id] = entry
            try:
                admit(info, remaining)
            except BaseException:
                with self._lock:
                    self._entries.pop(info.paste_id, None)
                entry.mapping.close()
                raise
            tally.admitted(info)
        report = tally.report()
        logger.info(
            "Recovered and mapped %s pastes (%s bytes) from %s; removed %s expired and %s corrupt",
            report.recovered,
            report.bytes_recovered,
            self._root,
            report.expired,
            report.corrupt,
        )
        return report

    def close(self) -> None:
        """Unmap every paste, waiting for open handles; files stay on disk."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            entry.wait_drained()
            entry.mapping.close()
        logger.debug("Unmapped %s pastes", len(entries))
