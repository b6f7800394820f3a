"""pastestore: time-limited storage for small immutable pastes."""

import importlib.metadata as importlib_metadata

from pastestore.backends import (
    FileBackend,
    InMemoryBackend,
    MmapBackend,
    Paste,
    PasteBackend,
    PasteInfo,
    RecoveryReport,
)
from pastestore.config import StoreSettings
from pastestore.errors import (
    EmptyPasteError,
    IdExhaustedError,
    InvalidPasteIdError,
    PasteNotFoundError,
    PasteStoreError,
    PasteTooLargeError,
    QuotaExceededError,
)
from pastestore.ids import generate_id, parse_id
from pastestore.quota import Quota, QuotaUsage
from pastestore.scheduler import DeletionScheduler
from pastestore.store import PasteStore, build_backend


def _detect_version() -> str:
    """Return installed package version or a local fallback when metadata is unavailable."""
    try:
        return importlib_metadata.version("pastestore")
    except importlib_metadata.PackageNotFoundError:
        return "0.0.0+unknown"


__version__ = _detect_version()

__all__ = [
    "DeletionScheduler",
    "EmptyPasteError",
    "FileBackend",
    "IdExhaustedError",
    "InMemoryBackend",
    "InvalidPasteIdError",
    "MmapBackend",
    "Paste",
    "PasteBackend",
    "PasteInfo",
    "PasteNotFoundError",
    "PasteStore",
    "PasteStoreError",
    "PasteTooLargeError",
    "Quota",
    "QuotaExceededError",
    "QuotaUsage",
    "RecoveryReport",
    "StoreSettings",
    "build_backend",
    "generate_id",
    "parse_id",
]
