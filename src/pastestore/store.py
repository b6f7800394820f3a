"""PasteStore: quota, expiry and recovery wrapped around one backend."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import TYPE_CHECKING

from pastestore.backends import FileBackend, InMemoryBackend, MmapBackend
from pastestore.errors import EmptyPasteError, PasteTooLargeError
from pastestore.ids import parse_id
from pastestore.quota import Quota
from pastestore.scheduler import DeletionScheduler

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from types import TracebackType

    from pastestore.backends import Paste, PasteBackend, PasteInfo, RecoveryReport
    from pastestore.config import StoreSettings
    from pastestore.quota import QuotaUsage
    from pastestore.scheduler import Timer

logger = logging.getLogger(__name__)


def build_backend(settings: StoreSettings) -> PasteBackend:
    """Create the backend selected by ``settings.backend``."""
    if settings.backend == "memory":
        return InMemoryBackend()
    if settings.backend == "file":
        return FileBackend(settings.storage_root)
    if settings.backend == "mmap":
        return MmapBackend(settings.storage_root)
    msg = f"Unknown backend: {settings.backend!r}"
    raise ValueError(msg)


class PasteStore:
    """Time-limited paste storage with admission control.

    Every stored paste holds one quota reservation until it is deleted,
    either explicitly or by its expiry timer. Call :meth:`recover` once
    before serving requests when using a persistent backend.
    """

    def __init__(
        self,
        backend: PasteBackend,
        *,
        lifetime: timedelta = timedelta(0),
        max_count: int = 0,
        max_bytes: int = 0,
        max_paste_bytes: int = 0,
        timer_factory: Callable[[float, Callable[[], None]], Timer] = threading.Timer,
    ) -> None:
        """Initialize around ``backend``; every limit of 0 is unbounded."""
        if max_paste_bytes < 0:
            msg = "max_paste_bytes must be >= 0."
            raise ValueError(msg)
        self._backend = backend
        self._quota = Quota(max_count=max_count, max_bytes=max_bytes)
        self._scheduler = DeletionScheduler(backend, self._quota, lifetime=lifetime, timer_factory=timer_factory)
        self._max_paste_bytes = max_paste_bytes
        self._recovered = False

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> PasteStore:
        """Build a store and its backend from settings."""
        backend = build_backend(settings)
        logger.info(
            "Starting %s paste store (root=%s, lifetime=%s, max_count=%s, max_bytes=%s)",
            settings.backend,
            settings.storage_root,
            settings.lifetime,
            settings.max_count,
            settings.max_bytes,
        )
        return cls(
            backend,
            lifetime=settings.lifetime,
            max_count=settings.max_count,
            max_bytes=settings.max_bytes,
            max_paste_bytes=settings.max_paste_bytes,
        )

    @property
    def backend(self) -> PasteBackend:
        """Return the underlying backend."""
        return self._backend

    @property
    def scheduler(self) -> DeletionScheduler:
        """Return the deletion scheduler."""
        return self._scheduler

    @property
    def lifetime(self) -> timedelta:
        """Return how long a paste lives (zero when expiration is disabled)."""
        return self._scheduler.lifetime

    def put(self, content: bytes) -> str:
        """Store a paste and return its ID."""
        size = len(content)
        if size == 0:
            raise EmptyPasteError
        if self._max_paste_bytes > 0 and size > self._max_paste_bytes:
            raise PasteTooLargeError(size, self._max_paste_bytes)
        self._quota.reserve(size)
        try:
            paste_id = self._backend.put(content)
        except BaseException:
            self._quota.release(size)
            raise
        self._scheduler.arm(paste_id, size)
        logger.debug("Stored paste %s (%s bytes)", paste_id, size)
        return paste_id

    def get(self, paste_id: str) -> Paste:
        """Open a paste for reading; close the handle when done."""
        return self._backend.get(paste_id)

    def delete(self, paste_id: str) -> None:
        """Delete a paste before it expires.

        If the backend fails to delete it, the paste keeps its quota and its
        expiry timer.
        """
        paste_id = parse_id(paste_id)
        token = self._scheduler.armed(paste_id)
        size = self._backend.delete(paste_id)
        if token is not None:
            self._scheduler.cancel(paste_id, token=token)
        self._quota.release(size)
        logger.debug("Deleted paste %s (%s bytes)", paste_id, size)

    def report(self) -> QuotaUsage:
        """Return current paste count and byte usage."""
        return self._quota.report()

    def expires_at(self, paste: Paste) -> datetime | None:
        """Return when ``paste`` expires, or None when expiration is disabled."""
        if not self._scheduler.enabled:
            return None
        return paste.mod_time + self.lifetime

    def recover(self) -> RecoveryReport:
        """Rebuild quota usage and expiry timers from persisted pastes."""
        if self._recovered:
            msg = "recover() can only run once per store."
            raise RuntimeError(msg)
        self._recovered = True
        return self._backend.recover(self._admit, lifetime=self.lifetime)

    def _admit(self, info: PasteInfo, remaining: timedelta | None) -> None:
        self._quota.reserve(info.size)
        self._scheduler.arm(info.paste_id, info.size, remaining)

    def close(self) -> None:
        """Cancel pending expirations and release backend resources."""
        self._scheduler.shutdown()
        self._backend.close()

    def __enter__(self) -> PasteStore:
        """Return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the store."""
        self.close()
