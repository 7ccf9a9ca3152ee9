from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..index.schema import WatchEvent

logger = logging.getLogger(__name__)

OnChange = Callable[[WatchEvent], None]

MAX_RECENT_EVENTS = 256


def classify(event: FileSystemEvent) -> List[WatchEvent]:
    """Map a watchdog event onto created/modified/removed; unknown kinds map to nothing."""
    src = str(event.src_path)
    kind = event.event_type
    if kind == "created":
        return [WatchEvent(kind="created", paths=frozenset({src}))]
    if kind == "modified":
        # directory mtime bumps whenever a child changes; the child event is enough
        if event.is_directory:
            return []
        return [WatchEvent(kind="modified", paths=frozenset({src}))]
    if kind == "deleted":
        return [WatchEvent(kind="removed", paths=frozenset({src}))]
    if kind == "moved":
        dest = str(getattr(event, "dest_path", "") or "")
        out = [WatchEvent(kind="removed", paths=frozenset({src}))]
        if dest:
            out.append(WatchEvent(kind="created", paths=frozenset({dest})))
        return out
    return []


def log_change(folder: str) -> OnChange:
    def _notify(ev: WatchEvent) -> None:
        logger.warning(
            "Change detected (%s): %s. You may want to re-index: %s",
            ev.kind,
            sorted(ev.paths),
            folder,
        )

    return _notify


class WatchHandle(FileSystemEventHandler):
    """
    One watched folder. Records what changed; never re-indexes on its own.

    Events arrive on the observer thread, so handling stays short: record,
    flag, notify.
    """

    def __init__(self, folder: str, on_change: Optional[OnChange] = None):
        super().__init__()
        self.folder = folder
        self.on_change = on_change or log_change(folder)
        self.events: Deque[WatchEvent] = deque(maxlen=MAX_RECENT_EVENTS)
        self._needs_reindex = threading.Event()
        self._observer: Optional[Observer] = None

    @property
    def needs_reindex(self) -> bool:
        return self._needs_reindex.is_set()

    @property
    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def on_any_event(self, event: FileSystemEvent) -> None:
        for ev in classify(event):
            self.events.append(ev)
            self._needs_reindex.set()
            try:
                self.on_change(ev)
            except Exception:
                logger.exception("watch callback failed for %s", self.folder)

    def start(self) -> "WatchHandle":
        observer = Observer()
        observer.schedule(self, self.folder, recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.folder)
        return self

    def stop(self, timeout: float = 5.0) -> None:
        """Tear down the observer thread (process shutdown)."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None


class ChangeWatcher:
    """Owns one WatchHandle per folder for the lifetime of the process."""

    def __init__(self, on_change: Optional[OnChange] = None):
        self.on_change = on_change
        self._handles: Dict[str, WatchHandle] = {}
        self._lock = threading.Lock()

    def register(self, folder: str | Path) -> WatchHandle:
        root = Path(folder)
        if not root.is_dir():
            raise FileNotFoundError(f"Cannot watch missing folder: {folder}")
        key = str(root.resolve())
        with self._lock:
            handle = self._handles.get(key)
            if handle is not None and handle.is_alive:
                logger.debug("Already watching %s", key)
                return handle
            handle = WatchHandle(key, on_change=self.on_change).start()
            self._handles[key] = handle
            return handle

    def handle_for(self, folder: str | Path) -> Optional[WatchHandle]:
        with self._lock:
            return self._handles.get(str(Path(folder).resolve()))

    @property
    def folders(self) -> List[str]:
        with self._lock:
            return sorted(self._handles)

    def close(self) -> None:
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for h in handles:
            h.stop()
