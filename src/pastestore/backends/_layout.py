"""On-disk layout shared by the file-backed stores.

Pastes live at ``<root>/<shard>/<id>``, where the shard is the first
characters of the ID. The directory tree is the only index: a file's
modification time is the paste's creation time.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pastestore.backends._store import PasteInfo, RecoveryReport, remaining_lifetime
from pastestore.ids import is_valid_id, shard_of

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_TEMP_PREFIX = "."
_TEMP_SUFFIX = ".tmp"


def ensure_root(root: str | Path) -> Path:
    """Create the storage root if needed and return it as a Path."""
    path = Path(root)
    path.mkdir(parents=True, exist_ok=True)
    return path


def paste_path(root: Path, paste_id: str) -> Path:
    """Return where a paste with ``paste_id`` is stored under ``root``."""
    return root / shard_of(paste_id) / paste_id


def mod_time_of(st: os.stat_result) -> datetime:
    """Convert a stat result's mtime into a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)


def write_atomically(path: Path, content: bytes) -> None:
    """Write ``content`` to ``path`` so readers never observe a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, suffix=_TEMP_SUFFIX, dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def _is_temp_file(name: str) -> bool:
    return name.startswith(_TEMP_PREFIX) and name.endswith(_TEMP_SUFFIX)


@dataclass(slots=True)
class RecoveryTally:
    """Mutable counters accumulated during one recovery walk."""

    recovered: int = 0
    expired: int = 0
    corrupt: int = 0
    skipped: int = 0
    bytes_recovered: int = 0

    def admitted(self, info: PasteInfo) -> None:
        """Count one paste that survived recovery."""
        self.recovered += 1
        self.bytes_recovered += info.size

    def report(self) -> RecoveryReport:
        """Freeze the counters into a RecoveryReport."""
        return RecoveryReport(
            recovered=self.recovered,
            expired=self.expired,
            corrupt=self.corrupt,
            skipped=self.skipped,
            bytes_recovered=self.bytes_recovered,
        )


def scan_pastes(
    root: Path,
    *,
    lifetime: timedelta,
    now: datetime,
    tally: RecoveryTally,
) -> Iterator[tuple[PasteInfo, Path, timedelta | None]]:
    """Walk ``root`` and yield every paste that should be brought back to life.

    Expired pastes, zero-byte files and leftovers of interrupted writes are
    removed on the way. Entries whose names are not paste IDs, or that sit in
    the wrong shard, are left alone and only counted as skipped.
    """
    for shard_dir in sorted(root.iterdir()):
        if not shard_dir.is_dir():
            logger.warning("Skipping unexpected file in storage root: %s", shard_dir)
            tally.skipped += 1
            continue
        for path in sorted(shard_dir.iterdir()):
            st = path.lstat()
            if not stat.S_ISREG(st.st_mode):
                logger.warning("Skipping non-regular entry: %s", path)
                tally.skipped += 1
                continue
            if _is_temp_file(path.name):
                logger.info("Removing leftover of an interrupted write: %s", path)
                path.unlink(missing_ok=True)
                tally.corrupt += 1
                continue
            if not is_valid_id(path.name) or shard_of(path.name) != shard_dir.name:
                logger.warning("Skipping file that is not a paste: %s", path)
                tally.skipped += 1
                continue

            info = PasteInfo(paste_id=path.name, size=st.st_size, mod_time=mod_time_of(st))
            remaining = remaining_lifetime(info.mod_time, lifetime, now=now)
            if remaining is not None and remaining <= timedelta(0):
                logger.debug("Removing expired paste %s", info.paste_id)
                path.unlink(missing_ok=True)
                tally.expired += 1
                continue
            if info.size == 0:
                logger.warning("Removing empty paste file %s", path)
                path.unlink(missing_ok=True)
                tally.corrupt += 1
                continue
            yield info, path, remaining
