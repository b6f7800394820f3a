"""Quota: admission control over paste count and aggregate bytes."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from pastestore.errors import QuotaExceededError


@dataclass(frozen=True, slots=True)
class QuotaUsage:
    """Snapshot of quota usage; a zero maximum means unbounded."""

    count: int
    bytes: int
    max_count: int = 0
    max_bytes: int = 0

    @property
    def count_ratio(self) -> float | None:
        """Return the filled fraction of the count ceiling, or None when unbounded."""
        if self.max_count <= 0:
            return None
        return self.count / self.max_count

    @property
    def bytes_ratio(self) -> float | None:
        """Return the filled fraction of the byte ceiling, or None when unbounded."""
        if self.max_bytes <= 0:
            return None
        return self.bytes / self.max_bytes


class Quota:
    """Thread-safe counters for stored pastes with optional ceilings.

    Every successful :meth:`reserve` must be paired with exactly one
    :meth:`release` of the same size, either when the paste is deleted or
    when storing it failed.
    """

    def __init__(self, max_count: int = 0, max_bytes: int = 0) -> None:
        """Initialize empty counters; 0 disables a ceiling."""
        if max_count < 0:
            msg = "max_count must be >= 0."
            raise ValueError(msg)
        if max_bytes < 0:
            msg = "max_bytes must be >= 0."
            raise ValueError(msg)
        self._max_count = max_count
        self._max_bytes = max_bytes
        self._count = 0
        self._bytes = 0
        self._lock = threading.Lock()

    @property
    def max_count(self) -> int:
        """Return the paste count ceiling (0 = unbounded)."""
        return self._max_count

    @property
    def max_bytes(self) -> int:
        """Return the aggregate byte ceiling (0 = unbounded)."""
        return self._max_bytes

    def reserve(self, size: int) -> None:
        """Account for one more paste of ``size`` bytes, or raise QuotaExceededError."""
        if size < 0:
            msg = "size must be >= 0."
            raise ValueError(msg)
        with self._lock:
            if self._max_count > 0 and self._count + 1 > self._max_count:
                raise QuotaExceededError("number of pastes", self._count, 1, self._max_count)
            if self._max_bytes > 0 and self._bytes + size > self._max_bytes:
                raise QuotaExceededError("storage size", self._bytes, size, self._max_bytes)
            self._count += 1
            self._bytes += size

    def release(self, size: int) -> None:
        """Give back one paste of ``size`` bytes."""
        with self._lock:
            self._count -= 1
            self._bytes -= size

    def report(self) -> QuotaUsage:
        """Return a consistent snapshot of the counters."""
        with self._lock:
            return QuotaUsage(
                count=self._count,
                bytes=self._bytes,
                max_count=self._max_count,
                max_bytes=self._max_bytes,
            )
