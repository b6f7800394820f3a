"""FileBackend: one file per paste in a sharded directory tree."""

from __future__ import annotations

import io
import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from pastestore.backends._layout import (
    RecoveryTally,
    ensure_root,
    mod_time_of,
    paste_path,
    scan_pastes,
    write_atomically,
)
from pastestore.backends._store import Paste, RecoveryReport, utc_now
from pastestore.errors import PasteNotFoundError
from pastestore.ids import generate_id, parse_id

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta

    from _typeshed import WriteableBuffer

    from pastestore.backends._store import PasteInfo

logger = logging.getLogger(__name__)


class PasteFile(Paste):
    """Paste handle streaming from an open file."""

    def __init__(self, paste_id: str, handle: io.BufferedReader, size: int, mod_time: datetime) -> None:
        """Take ownership of ``handle``."""
        super().__init__(paste_id, size, mod_time)
        self._handle = handle

    def readinto(self, buffer: WriteableBuffer) -> int:
        """Read the next bytes of the paste into ``buffer``."""
        self._ensure_open()
        return self._handle.readinto(buffer)

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes at ``offset`` without moving the stream position."""
        self._ensure_open()
        if offset < 0 or size < 0:
            msg = "offset and size must be >= 0."
            raise ValueError(msg)
        position = self._handle.tell()
        try:
            self._handle.seek(offset)
            return self._handle.read(size)
        finally:
            self._handle.seek(position)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the stream position like :meth:`io.IOBase.seek`."""
        self._ensure_open()
        return self._handle.seek(offset, whence)

    def tell(self) -> int:
        """Return the current stream position."""
        self._ensure_open()
        return self._handle.tell()

    def close(self) -> None:
        """Close the underlying file."""
        if self.closed:
            return
        self._handle.close()
        super().close()


class FileBackend:
    """File-system paste backend.

    Store each paste as ``<root>/<shard>/<id>``. The lock only guards claiming
    IDs; file I/O happens outside it.
    """

    def __init__(self, root: str | Path) -> None:
        """Initialize with a root directory, creating it if needed."""
        self._root = ensure_root(root)
        self._pending: set[str] = set()
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        """Return the root directory path."""
        return self._root

    def _is_available(self, paste_id: str) -> bool:
        return paste_id not in self._pending and not paste_path(self._root, paste_id).exists()

    def put(self, content: bytes) -> str:
        """Write bytes to a new file and return its ID."""
        with self._lock:
            paste_id = generate_id(self._is_available)
            self._pending.add(paste_id)
        try:
            write_atomically(paste_path(self._root, paste_id), content)
        finally:
            with self._lock:
                self._pending.discard(paste_id)
        return paste_id

    def get(self, paste_id: str) -> PasteFile:
        """Open a paste file for streaming."""
        paste_id = parse_id(paste_id)
        try:
            handle = paste_path(self._root, paste_id).open("rb")
        except FileNotFoundError:
            raise PasteNotFoundError(paste_id) from None
        st = os.fstat(handle.fileno())
        return PasteFile(paste_id, handle, st.st_size, mod_time_of(st))

    def delete(self, paste_id: str) -> int:
        """Remove a paste file and return its size."""
        paste_id = parse_id(paste_id)
        path = paste_path(self._root, paste_id)
        try:
            size = path.stat().st_size
            path.unlink()
        except FileNotFoundError:
            raise PasteNotFoundError(paste_id) from None
        return size

    def recover(
        self,
        admit: Callable[[PasteInfo, timedelta | None], None],
        *,
        lifetime: timedelta,
    ) -> RecoveryReport:
        """Admit every persisted paste that is still alive."""
        tally = RecoveryTally()
        for info, _path, remaining in scan_pastes(self._root, lifetime=lifetime, now=utc_now(), tally=tally):
            admit(info, remaining)
            tally.admitted(info)
        report = tally.report()
        logger.info(
            "Recovered %s pastes (%s bytes) from %s; removed %s expired and %s corrupt",
            report.recovered,
            report.bytes_recovered,
            self._root,
            report.expired,
            report.corrupt,
        )
        return report

    def close(self) -> None:
        """Nothing to release; pastes stay on disk."""
