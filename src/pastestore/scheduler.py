"""DeletionScheduler: one cancelable expiry timer per paste."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

from pastestore.errors import PasteNotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable

    from pastestore.backends import PasteBackend
    from pastestore.quota import Quota

logger = logging.getLogger(__name__)

RETRY_DELAY = timedelta(minutes=1)


class Timer(Protocol):
    """The subset of :class:`threading.Timer` the scheduler relies on."""

    daemon: bool

    def start(self) -> None:
        """Start counting down."""
        ...

    def cancel(self) -> None:
        """Stop the timer if it has not fired yet."""
        ...


class DeletionScheduler:
    """Delete pastes from a backend once their lifetime runs out.

    Each armed paste gets one timer. Firing deletes the paste and releases
    its quota; if the paste is already gone the firing does nothing. A
    firing whose delete fails is retried after :data:`RETRY_DELAY`.
    """

    def __init__(
        self,
        backend: PasteBackend,
        quota: Quota,
        *,
        lifetime: timedelta,
        timer_factory: Callable[[float, Callable[[], None]], Timer] = threading.Timer,
    ) -> None:
        """Initialize for one backend; a zero lifetime disables expiration."""
        if lifetime < timedelta(0):
            msg = "lifetime must be >= 0."
            raise ValueError(msg)
        self._backend = backend
        self._quota = quota
        self._lifetime = lifetime
        self._timer_factory = timer_factory
        self._timers: dict[str, tuple[object, Timer]] = {}
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def lifetime(self) -> timedelta:
        """Return the configured paste lifetime."""
        return self._lifetime

    @property
    def enabled(self) -> bool:
        """Return whether pastes expire at all."""
        return self._lifetime > timedelta(0)

    def arm(self, paste_id: str, size: int, remaining: timedelta | None = None) -> None:
        """Schedule deletion of a paste of ``size`` bytes.

        ``remaining`` defaults to the full lifetime. A non-positive value
        deletes the paste right away, in the caller's thread.
        """
        if not self.enabled:
            return
        if remaining is None:
            remaining = self._lifetime
        if remaining <= timedelta(0):
            self._expire(paste_id, size)
            return

        token = object()
        timer = self._timer_factory(remaining.total_seconds(), lambda: self._fire(paste_id, size, token))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(paste_id, None)
            self._timers[paste_id] = (token, timer)
        if previous is not None:
            previous[1].cancel()
        timer.start()
        logger.debug("Armed deletion of %s in %s", paste_id, remaining)

    def armed(self, paste_id: str) -> object | None:
        """Return a token for the currently armed timer of ``paste_id``, if any."""
        with self._lock:
            current = self._timers.get(paste_id)
        return None if current is None else current[0]

    def cancel(self, paste_id: str, *, token: object | None = None) -> bool:
        """Cancel a pending deletion; return whether one was pending.

        With ``token`` only the timer :meth:`armed` returned it for is
        cancelled, so a timer armed again in the meantime survives.
        """
        with self._lock:
            pending = self._timers.get(paste_id)
            if pending is None or (token is not None and pending[0] is not token):
                return False
            del self._timers[paste_id]
        pending[1].cancel()
        return True

    def pending(self) -> int:
        """Return the number of armed timers."""
        with self._lock:
            return len(self._timers)

    def shutdown(self) -> None:
        """Cancel every pending deletion."""
        with self._lock:
            self._stopped = True
            timers = [timer for _, timer in self._timers.values()]
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def _fire(self, paste_id: str, size: int, token: object) -> None:
        with self._lock:
            current = self._timers.get(paste_id)
            if current is None or current[0] is not token:
                return
            del self._timers[paste_id]
        try:
            self._expire(paste_id, size)
        except Exception:
            logger.exception("Scheduled deletion of %s failed; retrying in %s", paste_id, RETRY_DELAY)
            with self._lock:
                if self._stopped or paste_id in self._timers:
                    return
            self.arm(paste_id, size, RETRY_DELAY)

    def _expire(self, paste_id: str, size: int) -> None:
        try:
            self._backend.delete(paste_id)
        except PasteNotFoundError:
            logger.debug("Paste %s was already deleted", paste_id)
            return
        self._quota.release(size)
        logger.debug("Expired paste %s (%s bytes)", paste_id, size)
