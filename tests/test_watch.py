import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from localrag_pro.index.schema import WatchEvent
from localrag_pro.ingest.watch import ChangeWatcher, WatchHandle, classify


def _wait_for(pred, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.05)
    return False


def test_classify_maps_event_kinds():
    assert classify(FileCreatedEvent("/w/a.txt")) == [
        WatchEvent(kind="created", paths=frozenset({"/w/a.txt"}))
    ]
    assert classify(FileModifiedEvent("/w/a.txt"))[0].kind == "modified"
    assert classify(FileDeletedEvent("/w/a.txt"))[0].kind == "removed"
    assert classify(DirModifiedEvent("/w")) == []

    moved = classify(FileMovedEvent("/w/a.txt", "/w/b.txt"))
    assert [(e.kind, set(e.paths)) for e in moved] == [
        ("removed", {"/w/a.txt"}),
        ("created", {"/w/b.txt"}),
    ]


def test_handle_records_and_survives_callback_errors():
    seen = []

    def cb(ev):
        seen.append(ev)
        raise RuntimeError("callback blew up")

    h = WatchHandle("/w", on_change=cb)
    assert not h.needs_reindex
    h.on_any_event(FileCreatedEvent("/w/new.md"))
    h.on_any_event(FileDeletedEvent("/w/old.md"))
    assert [e.kind for e in h.events] == ["created", "removed"]
    assert len(seen) == 2
    assert h.needs_reindex


@pytest.fixture
def watcher():
    w = ChangeWatcher()
    yield w
    w.close()


def test_observes_changes_without_reindexing(tmp_path: Path, watcher):
    folder = tmp_path / "docs"
    folder.mkdir()
    handle = watcher.register(folder)
    assert handle.is_alive
    assert handle.folder == str(folder.resolve())

    target = folder.resolve() / "fresh.txt"
    target.write_text("new content", encoding="utf-8")

    assert _wait_for(lambda: any(str(target) in e.paths for e in list(handle.events)))
    assert handle.needs_reindex


def test_register_same_folder_twice_reuses_handle(tmp_path: Path, watcher):
    folder = tmp_path / "docs"
    folder.mkdir()
    first = watcher.register(folder)
    second = watcher.register(str(folder) + "/")
    assert first is second
    assert watcher.folders == [str(folder.resolve())]


def test_register_missing_folder_raises(tmp_path: Path, watcher):
    with pytest.raises(FileNotFoundError):
        watcher.register(tmp_path / "missing")
