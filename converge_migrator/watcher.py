"""
File watcher for incremental re-scans.

Collects changed candidate files from watchdog events and re-scans them
through WorkspaceScanner.scan_files once changes settle.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from converge_migrator.utils import should_exclude

if TYPE_CHECKING:
    from typing import Any, Callable

    from converge_migrator.models import ScanOptions, ScanResult
    from converge_migrator.scanner import WorkspaceScanner

logger = logging.getLogger(__name__)


class RescanHandler(FileSystemEventHandler):
    """
    Collect paths of changed candidate files.

    Events arrive on the observer thread; ``take_pending`` is called from
    the watch loop. Cache entries of removed files are dropped there too,
    so the cache is only touched by the thread that scans.
    """

    def __init__(
        self,
        scanner: WorkspaceScanner,
        debounce_seconds: float = 2.0,
    ) -> None:
        """
        Args:
            scanner: Scanner whose root and cache are used.
            debounce_seconds: Quiet period before pending changes are re-scanned.
        """
        self.scanner = scanner
        self.debounce_seconds = debounce_seconds
        self._pending: set[str] = set()
        self._removed: set[str] = set()
        self._last_event = 0.0
        self._lock = threading.Lock()

    def _accept(self, src_path: str) -> str | None:
        path = Path(src_path)
        rel_path = self.scanner.relative_path(path)
        if path.name.startswith("."):
            return None
        if should_exclude(rel_path, []):
            return None
        if path.suffix.lower() not in self.scanner.supported_extensions:
            return None
        return rel_path

    def _record(self, src_path: str) -> None:
        rel_path = self._accept(src_path)
        if rel_path is None:
            return
        with self._lock:
            self._pending.add(rel_path)
            self._last_event = time.time()

    def on_modified(self, event: Any) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_created(self, event: Any) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_moved(self, event: Any) -> None:
        if event.is_directory:
            return
        rel_path = self._accept(event.src_path)
        if rel_path is not None:
            with self._lock:
                self._removed.add(rel_path)
                self._pending.discard(rel_path)
        self._record(event.dest_path)

    def on_deleted(self, event: Any) -> None:
        if event.is_directory:
            return
        rel_path = self._accept(event.src_path)
        if rel_path is not None:
            with self._lock:
                self._removed.add(rel_path)
                self._pending.discard(rel_path)

    def take_pending(self, now: float | None = None) -> list[str]:
        """
        Return and clear pending paths once the debounce period has passed.

        Cache entries of files deleted or moved away are discarded on every
        call, debounced or not.
        """
        now = time.time() if now is None else now
        with self._lock:
            removed, self._removed = self._removed, set()
            for rel_path in removed:
                self.scanner.cache.discard(rel_path)
            if not self._pending or now - self._last_event < self.debounce_seconds:
                return []
            paths = sorted(self._pending)
            self._pending.clear()
        return paths


def watch_and_rescan(
    scanner: WorkspaceScanner,
    on_result: Callable[[list[str], ScanResult], None],
    options: ScanOptions | None = None,
    debounce_seconds: float = 2.0,
    stop_event: threading.Event | None = None,
) -> None:
    """
    Watch the scanner's root and re-scan changed files until stopped.

    Args:
        scanner: Scanner to re-scan with (its cache carries over).
        on_result: Called with the changed paths and their scan result.
        options: Scan options for each re-scan.
        debounce_seconds: Quiet period before a re-scan.
        stop_event: Set to stop watching; Ctrl+C also stops.
    """
    handler = RescanHandler(scanner, debounce_seconds=debounce_seconds)

    observer = Observer()
    observer.schedule(handler, str(scanner.root), recursive=True)
    observer.start()
    logger.info("Watching %s for changes", scanner.root)

    try:
        while stop_event is None or not stop_event.is_set():
            time.sleep(0.5)
            paths = handler.take_pending()
            if paths:
                logger.info("Re-scanning %d changed file(s)", len(paths))
                on_result(paths, scanner.scan_files(paths, options))
    except KeyboardInterrupt:
        logger.info("Stopping watcher")
    finally:
        observer.stop()
        observer.join()
