"""Debounced directory watching for Sitkin.

A save in an editor usually produces a burst of file system events. The
first event of a burst opens a window of ``delay`` seconds, and the callback
runs once when the window closes. Events that arrive while the callback is running
schedule one more run afterwards, never a concurrent one.

Key classes and functions:
- Watcher: Watches a directory and calls back after changes.
- watch: Run a Watcher until interrupted.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# Events that never change content.
_IGNORED_EVENT_TYPES = frozenset({"opened", "closed", "closed_no_write"})


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        if all(not p or self.watcher.is_ignored(Path(os.fsdecode(p))) for p in paths):
            logger.debug("Ignoring change to %s", event.src_path)
            return
        self.watcher.notify()


class Watcher:
    """Calls a function after changes under a directory.

    Attributes:
        directory: Directory watched recursively.
        delay: Debounce window in seconds.
        callback: Zero-argument function run after changes.
        ignore: Absolute path whose changes are ignored.
    """

    def __init__(
        self,
        directory: Path,
        delay: float,
        callback: Callable[[], None],
        ignore: str = "gen",
    ):
        self.directory = directory.resolve()
        self.delay = delay
        self.callback = callback
        self.ignore = self.directory / ignore
        self._pending = threading.Event()
        self._stopped = threading.Event()
        self._observer: Observer | None = None

    def is_ignored(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.ignore)
        except ValueError:
            return False
        return True

    def notify(self) -> None:
        """Record a change; the callback runs when the window closes."""
        self._pending.set()

    def start(self) -> None:
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.directory), recursive=True)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        self._stopped.set()
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def run_once(self, timeout: float | None = None) -> bool:
        """Wait for a change, let the window pass, then run the callback.

        Args:
            timeout: Longest time to wait for the first change.

        Returns:
            True if the callback ran, even if it raised. Errors are logged
            so watching continues.
        """
        if not self._pending.wait(timeout):
            return False
        if self._stopped.wait(self.delay):
            return False
        self._pending.clear()
        try:
            self.callback()
        except Exception:
            logger.exception("Error running watch callback")
        return True

    def run_forever(self) -> None:
        while not self._stopped.is_set():
            self.run_once(timeout=0.1)


def watch(
    directory: Path, delay: float, ignore: str, callback: Callable[[], None]
) -> None:
    """Watch a directory and call back after changes until interrupted.

    Args:
        directory: Directory watched recursively.
        delay: Debounce window in seconds.
        ignore: Subpath of directory whose changes are ignored.
        callback: Zero-argument function run after changes.
    """
    watcher = Watcher(directory, delay, callback, ignore=ignore)
    watcher.start()
    try:
        watcher.run_forever()
    finally:
        watcher.stop()
