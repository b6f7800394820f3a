"""PasteStore over each backend, plus a restart with recovery."""

import logging
import tempfile
from datetime import timedelta
from pathlib import Path

from pastestore import FileBackend, InMemoryBackend, MmapBackend, PasteStore, QuotaExceededError

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# ---- InMemoryBackend ----
# Nothing survives the process; handy for tests.

with PasteStore(InMemoryBackend(), lifetime=timedelta(minutes=5), max_count=1) as store:
    paste_id = store.put(b"hello world")
    with store.get(paste_id) as paste:
        print(f"[memory] {paste_id} -> {paste.read()!r}, expires {store.expires_at(paste)}")
    try:
        store.put(b"second")
    except QuotaExceededError as exc:
        print(f"  second put rejected: {exc}")
    store.delete(paste_id)
    print(f"  after delete: {store.report()}")

# ---- FileBackend / MmapBackend ----
# Both persist to <root>/<shard>/<id>; recovery rebuilds quota and timers.

with tempfile.TemporaryDirectory() as tmpdir:
    root = Path(tmpdir) / "pastes"

    with PasteStore(FileBackend(root), lifetime=timedelta(hours=1)) as store:
        paste_id = store.put(b"persistent data")
        print(f"\n[file] stored {paste_id} under {root / paste_id[:2]}")

    with PasteStore(MmapBackend(root), lifetime=timedelta(hours=1)) as store:
        report = store.recover()
        print(f"[mmap] recovered={report.recovered}, usage={store.report()}")
        with store.get(paste_id) as paste:
            print(f"  read_at(0, 10) = {paste.read_at(0, 10)!r}")
