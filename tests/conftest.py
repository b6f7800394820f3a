"""Shared fixtures: a controllable stand-in for threading.Timer."""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest


class FakeTimer:
    """Timer that only fires when a test says so."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class TimerRecorder:
    """Timer factory recording every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]


@pytest.fixture
def timers() -> TimerRecorder:
    return TimerRecorder()


def _set_mod_time(path: Path, when: datetime) -> None:
    timestamp = when.timestamp()
    os.utime(path, (timestamp, timestamp))


@pytest.fixture
def backdate() -> Callable[[Path, datetime], None]:
    """Return a helper that rewrites a file's modification time."""
    return _set_mod_time
