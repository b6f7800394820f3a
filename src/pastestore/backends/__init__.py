"""PasteBackend and its in-memory, file and memory-mapped implementations."""

from pastestore.backends._file import FileBackend, PasteFile
from pastestore.backends._memory import InMemoryBackend
from pastestore.backends._mmap import MmapBackend
from pastestore.backends._store import BufferPaste, Paste, PasteBackend, PasteInfo, RecoveryReport

__all__ = [
    "BufferPaste",
    "FileBackend",
    "InMemoryBackend",
    "MmapBackend",
    "Paste",
    "PasteBackend",
    "PasteFile",
    "PasteInfo",
    "RecoveryReport",
]
