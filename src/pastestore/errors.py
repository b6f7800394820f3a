"""Typed errors for pastestore."""


class PasteStoreError(Exception):
    """Base exception for all pastestore errors."""


class PasteNotFoundError(PasteStoreError):
    """Raised when a paste ID has no live paste in a backend."""

    def __init__(self, paste_id: str) -> None:
        """Initialize with the missing paste's ID."""
        self.paste_id = paste_id
        super().__init__(f"Paste not found: {paste_id}")


class InvalidPasteIdError(PasteStoreError):
    """Raised when a string is not a well-formed paste ID."""

    def __init__(self, value: str) -> None:
        """Initialize with the rejected value."""
        self.value = value
        super().__init__(f"Invalid paste id: {value!r}")


class QuotaExceededError(PasteStoreError):
    """Raised when admitting a paste would exceed a count or byte ceiling."""

    def __init__(self, limit: str, current: int, requested: int, maximum: int) -> None:
        """Initialize with the ceiling that was hit and the usage that hit it."""
        self.limit = limit
        self.current = current
        self.requested = requested
        self.maximum = maximum
        super().__init__(f"Reached maximum {limit}: {current} + {requested} > {maximum}")


class IdExhaustedError(PasteStoreError):
    """Raised when no free paste ID was found within the attempt budget."""

    def __init__(self, attempts: int) -> None:
        """Initialize with the number of candidates that were tried."""
        self.attempts = attempts
        super().__init__(f"No free paste id found after {attempts} attempts")


class EmptyPasteError(PasteStoreError):
    """Raised when storing a paste with no content."""

    def __init__(self) -> None:
        """Initialize with a fixed message."""
        super().__init__("Paste content must not be empty")


class PasteTooLargeError(PasteStoreError):
    """Raised when a single paste is larger than the per-paste size cap."""

    def __init__(self, size: int, limit: int) -> None:
        """Initialize with the paste size and the configured cap."""
        self.size = size
        self.limit = limit
        super().__init__(f"Paste of {size} bytes exceeds the {limit} byte limit")
