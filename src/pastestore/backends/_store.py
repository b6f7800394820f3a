"""PasteBackend: protocol for paste storage backends, plus the shared handle types."""

from __future__ import annotations

import io
import os
from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from _typeshed import ReadableBuffer, WriteableBuffer


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def remaining_lifetime(mod_time: datetime, lifetime: timedelta, *, now: datetime) -> timedelta | None:
    """Return how long a paste written at ``mod_time`` has left, or None when expiration is off."""
    if lifetime <= timedelta(0):
        return None
    return mod_time + lifetime - now


@dataclass(frozen=True, slots=True)
class PasteInfo:
    """One stored paste as seen by recovery."""

    paste_id: str
    size: int
    mod_time: datetime


@dataclass(frozen=True, slots=True)
class RecoveryReport:
    """Result of a backend recovery walk."""

    recovered: int = 0
    expired: int = 0
    corrupt: int = 0
    skipped: int = 0
    bytes_recovered: int = 0


class Paste(io.RawIOBase):
    """Read-only, seekable handle to one stored paste.

    Handles must be closed (or used as context managers); backends may keep
    resources pinned while a handle is open.
    """

    def __init__(self, paste_id: str, size: int, mod_time: datetime) -> None:
        """Initialize with the paste's metadata."""
        super().__init__()
        self.paste_id = paste_id
        self.size = size
        self.mod_time = mod_time

    def readable(self) -> bool:
        """Return True: pastes are always readable."""
        return True

    def seekable(self) -> bool:
        """Return True: pastes support random access."""
        return True

    @abstractmethod
    def readinto(self, buffer: WriteableBuffer) -> int:
        """Copy the next bytes of the paste into ``buffer``."""

    @abstractmethod
    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes at ``offset`` without moving the stream position."""

    def _ensure_open(self) -> None:
        if self.closed:
            msg = f"I/O operation on closed paste {self.paste_id}."
            raise ValueError(msg)


class BufferPaste(Paste):
    """Paste handle reading directly from an in-process buffer without copying it."""

    def __init__(
        self,
        paste_id: str,
        buffer: ReadableBuffer,
        mod_time: datetime,
        *,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        """Wrap ``buffer``; ``on_close`` runs once when the handle is closed."""
        view = memoryview(buffer)
        super().__init__(paste_id, view.nbytes, mod_time)
        self._view = view
        self._position = 0
        self._on_close = on_close

    def readinto(self, buffer: WriteableBuffer) -> int:
        """Copy the next bytes of the paste into ``buffer``."""
        self._ensure_open()
        target = memoryview(buffer).cast("B")
        count = max(0, min(target.nbytes, self.size - self._position))
        target[:count] = self._view[self._position : self._position + count]
        self._position += count
        return count

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes at ``offset`` without moving the stream position."""
        self._ensure_open()
        if offset < 0 or size < 0:
            msg = "offset and size must be >= 0."
            raise ValueError(msg)
        return bytes(self._view[offset : offset + size])

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move the stream position like :meth:`io.IOBase.seek`."""
        self._ensure_open()
        if whence == os.SEEK_SET:
            position = offset
        elif whence == os.SEEK_CUR:
            position = self._position + offset
        elif whence == os.SEEK_END:
            position = self.size + offset
        else:
            msg = f"Invalid whence: {whence}"
            raise ValueError(msg)
        if position < 0:
            msg = f"Negative seek position {position}"
            raise ValueError(msg)
        self._position = position
        return position

    def tell(self) -> int:
        """Return the current stream position."""
        self._ensure_open()
        return self._position

    def close(self) -> None:
        """Release the buffer and run the close callback once."""
        if self.closed:
            return
        self._view.release()
        super().close()
        if self._on_close is not None:
            self._on_close()


@runtime_checkable
class PasteBackend(Protocol):
    """Paste storage protocol.

    Implementations store immutable pastes under generated IDs. Quota and
    expiration are handled by the caller; backends only keep the namespace
    consistent under concurrent use.
    """

    def put(self, content: bytes) -> str:
        """Store ``content`` under a fresh ID and return the ID."""
        ...

    def get(self, paste_id: str) -> Paste:
        """Open a paste for reading; raise PasteNotFoundError when absent."""
        ...

    def delete(self, paste_id: str) -> int:
        """Delete a paste and return its size; raise PasteNotFoundError when absent."""
        ...

    def recover(
        self,
        admit: Callable[[PasteInfo, timedelta | None], None],
        *,
        lifetime: timedelta,
    ) -> RecoveryReport:
        """Rebuild state from persisted pastes and hand each survivor to ``admit``.

        ``admit`` receives the paste and its remaining lifetime (None when
        expiration is disabled). Already-expired and corrupt pastes are
        removed instead of admitted.
        """
        ...

    def close(self) -> None:
        """Release process-local resources held by the backend."""
        ...
