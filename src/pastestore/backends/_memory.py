"""InMemoryBackend: dict-based paste storage without persistence."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from pastestore.backends._store import BufferPaste, RecoveryReport, utc_now
from pastestore.errors import PasteNotFoundError
from pastestore.ids import generate_id, parse_id

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta

    from pastestore.backends._store import PasteInfo


class InMemoryBackend:
    """In-memory paste backend; all pastes are lost when the process exits."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._pastes: dict[str, tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Return the number of stored pastes."""
        return len(self._pastes)

    def put(self, content: bytes) -> str:
        """Store bytes under a fresh ID and return the ID."""
        data = bytes(content)
        with self._lock:
            paste_id = generate_id(lambda candidate: candidate not in self._pastes)
            self._pastes[paste_id] = (data, utc_now())
        return paste_id

    def get(self, paste_id: str) -> BufferPaste:
        """Return a read-only view over the stored bytes."""
        paste_id = parse_id(paste_id)
        with self._lock:
            stored = self._pastes.get(paste_id)
        if stored is None:
            raise PasteNotFoundError(paste_id)
        data, mod_time = stored
        return BufferPaste(paste_id, data, mod_time)

    def delete(self, paste_id: str) -> int:
        """Delete a paste and return its size."""
        paste_id = parse_id(paste_id)
        with self._lock:
            stored = self._pastes.pop(paste_id, None)
        if stored is None:
            raise PasteNotFoundError(paste_id)
        return len(stored[0])

    def recover(
        self,
        admit: Callable[[PasteInfo, timedelta | None], None],  # noqa: ARG002
        *,
        lifetime: timedelta,  # noqa: ARG002
    ) -> RecoveryReport:
        """Return an empty report: nothing survives a restart."""
        return RecoveryReport()

    def close(self) -> None:
        """Drop every paste."""
        with self._lock:
            self._pastes.clear()
