"""Filesystem watch service that relays report activity to viewers."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from gradebrowser.index.classifier import is_report_file

from .events import ReportEvent, ReportEventKind
from .registry import SubscriberRegistry

LOGGER = logging.getLogger(__name__)


class ReportWatcher:
    """Observe a report root and broadcast raw report events.

    The watcher performs no filtering beyond the report suffix and hidden path
    components; relevance and debouncing belong to each viewer.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        *,
        root: Optional[Path] = None,
        include_hidden: bool = False,
        stop_timeout: float = 5.0,
    ) -> None:
        """Initialize the watcher.

        Args:
            registry: Registry receiving every relayed event.
            root: Directory to observe once started.
            include_hidden: Whether events under dot-directories are relayed.
            stop_timeout: Seconds to wait for the observer thread on stop.
        """

        self._registry = registry
        self._root = root.expanduser().resolve() if root is not None else None
        self._include_hidden = include_hidden
        self._stop_timeout = stop_timeout
        self._lock = threading.RLock()
        self._switch_lock = threading.Lock()
        self._observer: Optional[Observer] = None  # type: ignore[valid-type]

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def root(self) -> Optional[Path]:
        with self._lock:
            return self._root

    @property
    def running(self) -> bool:
        with self._lock:
            return self._observer is not None

    def start(self) -> None:
        """Begin observing the configured root.

        Raises:
            RuntimeError: If the watcher is already running or has no root.
        """

        with self._switch_lock:
            with self._lock:
                if self._observer is not None:
                    raise RuntimeError("ReportWatcher is already running.")
                if self._root is None:
                    raise RuntimeError("ReportWatcher requires a root before starting.")
                root = self._root
            observer = self._start_observer(root)
            with self._lock:
                self._observer = observer

    def stop(self) -> None:
        """Stop observing; safe to call when not running."""
        with self._switch_lock:
            with self._lock:
                observer, self._observer = self._observer, None
            if observer is not None:
                self._shutdown(observer)

    def switch_root(self, root: Path) -> None:
        """Point the watcher at ``root``, restarting the observer if running.

        The root is swapped under the watcher lock so no event handler sees a
        half-switched root. The old observer is stopped with the lock released:
        its dispatch thread may still be delivering an event to a subscriber.
        """

        resolved = root.expanduser().resolve()
        with self._switch_lock:
            with self._lock:
                previous, self._observer = self._observer, None
                self._root = resolved
            if previous is not None:
                self._shutdown(previous)
                observer = self._start_observer(resolved)
                with self._lock:
                    self._observer = observer
        LOGGER.info("Monitoring directory: %s", resolved)

    def relay(self, kind: ReportEventKind, path: str, *, root: Optional[Path] = None) -> int:
        """Broadcast a report event for ``path`` if it names a report file.

        Args:
            kind: Event kind to relay.
            path: Path reported by the filesystem.
            root: Root the event was observed under, used to find hidden
                components. Defaults to the current root.

        Returns:
            int: Number of subscribers that received the event.
        """
        if not is_report_file(path):
            return 0
        if not self._include_hidden and _is_hidden(path, root or self._root):
            return 0
        if kind is ReportEventKind.NEW_REPORT:
            LOGGER.info("New report file detected: %s", path)
        else:
            LOGGER.info("Report file changed: %s", path)
        return self._registry.broadcast(ReportEvent(kind=kind, path=path))

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _start_observer(self, root: Path) -> Observer:  # type: ignore[valid-type]
        observer = Observer()
        observer.schedule(_ReportEventHandler(self, root), str(root), recursive=True)
        observer.start()
        LOGGER.info("Setting up file watcher for: %s", root)
        return observer

    def _shutdown(self, observer: Observer) -> None:  # type: ignore[valid-type]
        observer.stop()
        observer.join(timeout=self._stop_timeout)
        if observer.is_alive():
            LOGGER.warning("File watcher did not stop within %.1fs", self._stop_timeout)


class _ReportEventHandler(FileSystemEventHandler):
    """Translate watchdog callbacks into report events."""

    def __init__(self, watcher: ReportWatcher, root: Path) -> None:
        self._watcher = watcher
        self._root = root

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        if not event.is_directory:
            self._watcher.relay(ReportEventKind.NEW_REPORT, _as_str(event.src_path), root=self._root)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        if not event.is_directory:
            self._watcher.relay(ReportEventKind.REPORT_CHANGED, _as_str(event.src_path), root=self._root)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a filesystem move event by its destination path."""
        if not event.is_directory:
            self._watcher.relay(ReportEventKind.NEW_REPORT, _as_str(event.dest_path), root=self._root)


def _is_hidden(path: str, root: Optional[Path]) -> bool:
    candidate = Path(path)
    if root is not None:
        try:
            candidate = candidate.relative_to(root)
        except ValueError:
            pass
    return any(part.startswith(".") for part in candidate.parts if part not in (".", ".."))


def _as_str(path: str | bytes) -> str:
    return path.decode() if isinstance(path, bytes) else path


__all__ = ["ReportWatcher"]
