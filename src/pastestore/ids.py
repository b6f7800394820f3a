"""Paste identifiers: random fixed-length hex tokens."""

from __future__ import annotations

import secrets
import string
from typing import TYPE_CHECKING, Final

from pastestore.errors import IdExhaustedError, InvalidPasteIdError

if TYPE_CHECKING:
    from collections.abc import Callable

ID_LENGTH: Final = 8
SHARD_LENGTH: Final = 2
MAX_ATTEMPTS: Final = 10

_HEX_DIGITS: Final = frozenset(string.hexdigits.lower())


def generate_id(is_available: Callable[[str], bool], *, attempts: int = MAX_ATTEMPTS) -> str:
    """Return a random ID accepted by ``is_available``.

    The check is only race-free if the caller holds the lock that also guards
    inserting the returned ID into its namespace.
    """
    if attempts < 1:
        msg = "attempts must be >= 1."
        raise ValueError(msg)
    for _ in range(attempts):
        candidate = secrets.token_hex(ID_LENGTH // 2)
        if is_available(candidate):
            return candidate
    raise IdExhaustedError(attempts)


def parse_id(value: str) -> str:
    """Validate a caller-supplied ID and return its canonical lowercase form."""
    candidate = value.lower()
    if len(candidate) != ID_LENGTH or not set(candidate) <= _HEX_DIGITS:
        raise InvalidPasteIdError(value)
    return candidate


def is_valid_id(value: str) -> bool:
    """Return whether ``value`` is a canonical paste ID."""
    return len(value) == ID_LENGTH and set(value) <= _HEX_DIGITS


def shard_of(paste_id: str) -> str:
    """Return the subdirectory name a paste lives under in file-backed layouts."""
    return paste_id[:SHARD_LENGTH]
