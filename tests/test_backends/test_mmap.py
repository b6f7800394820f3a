"""Tests for MmapBackend."""

import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import pastestore.backends._mmap as mmap_module
import pastestore.ids as ids_module
from pastestore.backends import BufferPaste, MmapBackend, PasteBackend, PasteInfo
from pastestore.errors import IdExhaustedError, PasteNotFoundError

Backdate = Callable[[Path, datetime], None]


def _wait_until(condition: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            pytest.fail("condition not reached in time")
        time.sleep(0.005)


def test_put_and_get(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"hello world")
    with backend.get(paste_id) as paste:
        assert isinstance(paste, BufferPaste)
        assert paste.read() == b"hello world"
    backend.close()


def test_satisfies_protocol(tmp_path: Path) -> None:
    assert isinstance(MmapBackend(tmp_path), PasteBackend)


def test_put_persists_and_maps_the_file(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"mapped")
    assert (tmp_path / paste_id[:2] / paste_id).read_bytes() == b"mapped"
    assert len(backend) == 1
    assert backend._entries[paste_id].mapping[:] == b"mapped"
    backend.close()


def test_handle_reads_at_random_offsets(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"0123456789")
    with backend.get(paste_id) as paste:
        assert paste.read_at(8, 5) == b"89"
        assert paste.seek(2) == 2
        assert paste.read(3) == b"234"
        assert paste.read_at(0, 2) == b"01"
        assert paste.tell() == 5
    backend.close()


def test_handles_track_readers(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"data")
    entry = backend._entries[paste_id]
    first = backend.get(paste_id)
    second = backend.get(paste_id)
    assert entry.readers == 2
    first.close()
    first.close()
    assert entry.readers == 1
    second.close()
    assert entry.readers == 0
    backend.close()


def test_get_missing_paste_raises(tmp_path: Path) -> None:
    with pytest.raises(PasteNotFoundError):
        MmapBackend(tmp_path).get("deadbeef")


def test_delete_unmaps_and_removes_file(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"hello")
    entry = backend._entries[paste_id]

    assert backend.delete(paste_id) == 5
    assert entry.mapping.closed
    assert not entry.path.exists()
    with pytest.raises(PasteNotFoundError):
        backend.get(paste_id)
    with pytest.raises(PasteNotFoundError):
        backend.delete(paste_id)


def test_delete_waits_for_in_flight_readers(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    content = bytes(range(256)) * 64
    paste_id = backend.put(content)
    path = tmp_path / paste_id[:2] / paste_id
    reader = backend.get(paste_id)

    deleted = threading.Event()

    def delete() -> None:
        backend.delete(paste_id)
        deleted.set()

    deleter = threading.Thread(target=delete)
    deleter.start()
    _wait_until(lambda: paste_id not in backend._entries)

    with pytest.raises(PasteNotFoundError):
        backend.get(paste_id)
    assert not deleted.wait(0.1)
    assert path.exists()
    assert reader.read() == content

    reader.close()
    deleter.join(timeout=5)
    assert deleted.is_set()
    assert not path.exists()


def test_deleted_id_stays_claimed_until_its_file_is_gone(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ids_module.secrets, "token_hex", lambda nbytes: "de" * nbytes)
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"old")
    reader = backend.get(paste_id)

    deleter = threading.Thread(target=backend.delete, args=(paste_id,))
    deleter.start()
    _wait_until(lambda: paste_id not in backend._entries)

    with pytest.raises(IdExhaustedError):
        backend.put(b"new")

    reader.close()
    deleter.join(timeout=5)
    assert backend.put(b"new") == paste_id
    assert (tmp_path / paste_id[:2] / paste_id).read_bytes() == b"new"
    with backend.get(paste_id) as paste:
        assert paste.read() == b"new"
    backend.close()


def test_failed_unlink_keeps_the_paste_mapped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"keep")

    def broken_unlink(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError("read-only file system")

    monkeypatch.setattr(Path, "unlink", broken_unlink)
    with pytest.raises(PermissionError):
        backend.delete(paste_id)

    assert paste_id not in backend._pending
    with backend.get(paste_id) as paste:
        assert paste.read() == b"keep"

    monkeypatch.undo()
    assert backend.delete(paste_id) == 4
    assert not (tmp_path / paste_id[:2] / paste_id).exists()
    backend.close()


def test_failed_mapping_removes_the_written_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    backend = MmapBackend(tmp_path)

    def broken_map(path: Path) -> None:
        raise OSError("mmap failed")

    monkeypatch.setattr(mmap_module, "_map_file", broken_map)
    with pytest.raises(OSError, match="mmap failed"):
        backend.put(b"data")
    assert [p for p in tmp_path.rglob("*") if p.is_file()] == []
    assert backend._pending == set()
    assert len(backend) == 0


def test_recover_maps_before_admitting(tmp_path: Path, backdate: Backdate) -> None:
    first = MmapBackend(tmp_path)
    paste_id = first.put(b"persisted")
    first.close()
    backdate(tmp_path / paste_id[:2] / paste_id, datetime.now(timezone.utc) - timedelta(minutes=10))

    backend = MmapBackend(tmp_path)
    seen: list[tuple[str, bool, timedelta | None]] = []

    def admit(info: PasteInfo, remaining: timedelta | None) -> None:
        seen.append((info.paste_id, info.paste_id in backend._entries, remaining))

    report = backend.recover(admit, lifetime=timedelta(hours=1))

    assert report.recovered == 1
    [(recovered_id, mapped, remaining)] = seen
    assert recovered_id == paste_id
    assert mapped is True
    assert remaining is not None
    assert timedelta(minutes=49) < remaining <= timedelta(minutes=50)
    with backend.get(paste_id) as paste:
        assert paste.read() == b"persisted"
    backend.close()


def test_recover_removes_expired_pastes(tmp_path: Path, backdate: Backdate) -> None:
    first = MmapBackend(tmp_path)
    paste_id = first.put(b"stale")
    first.close()
    path = tmp_path / paste_id[:2] / paste_id
    backdate(path, datetime.now(timezone.utc) - timedelta(days=2))

    backend = MmapBackend(tmp_path)
    report = backend.recover(lambda info, remaining: None, lifetime=timedelta(days=1))

    assert report.expired == 1
    assert not path.exists()
    with pytest.raises(PasteNotFoundError):
        backend.get(paste_id)


def test_recover_drops_entry_when_admit_fails(tmp_path: Path) -> None:
    first = MmapBackend(tmp_path)
    paste_id = first.put(b"data")
    first.close()

    backend = MmapBackend(tmp_path)

    def refuse(info: PasteInfo, remaining: timedelta | None) -> None:
        raise RuntimeError("no room")

    with pytest.raises(RuntimeError, match="no room"):
        backend.recover(refuse, lifetime=timedelta(hours=1))
    assert len(backend) == 0
    assert (tmp_path / paste_id[:2] / paste_id).exists()


def test_close_unmaps_but_keeps_files(tmp_path: Path) -> None:
    backend = MmapBackend(tmp_path)
    paste_id = backend.put(b"keep me")
    entry = backend._entries[paste_id]
    backend.close()
    assert entry.mapping.closed
    assert len(backend) == 0
    assert (tmp_path / paste_id[:2] / paste_id).read_bytes() == b"keep me"
