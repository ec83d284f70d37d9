"""Tests for the watch-mode event handler."""

from __future__ import annotations

import threading
import time

from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from converge_migrator.scanner import WorkspaceScanner
from converge_migrator.watcher import RescanHandler, watch_and_rescan


def test_changes_wait_for_debounce(workspace):
    handler = RescanHandler(WorkspaceScanner(workspace), debounce_seconds=2.0)
    handler.on_modified(FileModifiedEvent(str(workspace / "src" / "pay.js")))
    handler.on_created(FileCreatedEvent(str(workspace / "app.py")))

    assert handler.take_pending(now=time.time()) == []
    assert handler.take_pending(now=time.time() + 10) == ["app.py", "src/pay.js"]
    assert handler.take_pending(now=time.time() + 20) == []


def test_irrelevant_events_are_ignored(workspace):
    handler = RescanHandler(WorkspaceScanner(workspace), debounce_seconds=0)
    handler.on_modified(FileModifiedEvent(str(workspace / "node_modules" / "x.js")))
    handler.on_modified(FileModifiedEvent(str(workspace / ".hidden.js")))
    handler.on_modified(FileModifiedEvent(str(workspace / "notes.md")))
    handler.on_modified(DirModifiedEvent(str(workspace / "src")))

    assert handler.take_pending(now=time.time() + 10) == []


def test_deleted_file_leaves_cache_on_scan_thread(workspace):
    """The observer thread only queues the removal; take_pending applies it."""
    scanner = WorkspaceScanner(workspace)
    scanner.cache.put("src/pay.js", "sha256:x", [])
    handler = RescanHandler(scanner, debounce_seconds=2.0)

    handler.on_modified(FileModifiedEvent(str(workspace / "src" / "pay.js")))
    handler.on_deleted(FileDeletedEvent(str(workspace / "src" / "pay.js")))
    assert "src/pay.js" in scanner.cache

    assert handler.take_pending(now=time.time()) == []
    assert "src/pay.js" not in scanner.cache
    assert handler.take_pending(now=time.time() + 10) == []


def test_moved_file(workspace):
    scanner = WorkspaceScanner(workspace)
    scanner.cache.put("old.js", "sha256:x", [])
    handler = RescanHandler(scanner, debounce_seconds=0)

    handler.on_moved(FileMovedEvent(str(workspace / "old.js"), str(workspace / "new.js")))

    assert handler.take_pending(now=time.time() + 10) == ["new.js"]
    assert "old.js" not in scanner.cache


def test_watch_stops_on_event(workspace):
    stop = threading.Event()
    stop.set()
    calls = []

    watch_and_rescan(WorkspaceScanner(workspace), lambda paths, result: calls.append(paths), stop_event=stop)

    assert calls == []
