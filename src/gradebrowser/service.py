"""Report browser facade shared by every viewer in the process."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from gradebrowser.config import GradeBrowserConfig, resolve_root
from gradebrowser.index.errors import InvalidRootError, ReportNotFoundError
from gradebrowser.index.models import Snapshot, snapshot_payload
from gradebrowser.index.scanner import ReportScanner
from gradebrowser.index.status import read_report
from gradebrowser.viewer.connection import ViewerConnection
from gradebrowser.viewer.reconciler import Reconciler, ViewerStatus, ViewUpdate
from gradebrowser.viewer.timers import Scheduler, ThreadingScheduler
from gradebrowser.watch.registry import SubscriberRegistry
from gradebrowser.watch.service import ReportWatcher

LOGGER = logging.getLogger(__name__)


class ReportBrowser:
    """Queries, commands, and the event stream over one report root.

    One watcher and one subscriber registry are shared by all viewers; each
    viewer gets its own reconciler and connection. Scans never share state,
    so concurrent queries from different viewers do not interfere.
    """

    def __init__(
        self,
        root: Path,
        *,
        config: Optional[GradeBrowserConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        """Initialize the browser.

        Args:
            root: Initial report root; must be an existing directory.
            config: Resolved configuration; defaults are used when omitted.
            scheduler: Timer source for debounce and reconnect delays.

        Raises:
            InvalidRootError: If ``root`` is missing or not a directory.
        """

        self._config = config or GradeBrowserConfig()
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._switch_lock = threading.Lock()
        self._root = self._validate_root(root)
        self._scanner = ReportScanner(
            include_hidden=self._config.index.include_hidden,
            follow_symlinks=self._config.index.follow_symlinks,
        )
        self._registry = SubscriberRegistry()
        self._watcher = ReportWatcher(
            self._registry,
            root=self._root,
            include_hidden=self._config.index.include_hidden,
            stop_timeout=self._config.watch.stop_timeout_seconds,
        )
        self._connections: list[ViewerConnection] = []

    @classmethod
    def from_config(
        cls, config: GradeBrowserConfig, root: str | Path | None = None, **kwargs: Any
    ) -> "ReportBrowser":
        """Build a browser rooted at ``root`` or the configured root."""
        return cls(resolve_root(config, root), config=config, **kwargs)

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    @property
    def root(self) -> Path:
        with self._lock:
            return self._root

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    @property
    def watcher(self) -> ReportWatcher:
        return self._watcher

    def list_assignments(self, root: str | Path | None = None) -> Snapshot:
        """Scan ``root`` (or the current root) into a fresh snapshot."""
        target = Path(root).expanduser() if root is not None else self.root
        return self._scanner.scan(target)

    def list_payload(self, root: str | Path | None = None) -> list[dict[str, Any]]:
        """Return the JSON-ready hierarchy for ``root``."""
        return snapshot_payload(self.list_assignments(root))

    def fetch_report(
        self,
        handout: str,
        timestamp: str,
        check_id: str,
        root: str | Path | None = None,
    ) -> str:
        """Return the raw HTML of one report.

        Args:
            handout: Handout directory name.
            timestamp: Grading run timestamp.
            check_id: Check identifier in any legacy spelling.
            root: Optional root override for this lookup only.

        Raises:
            ReportNotFoundError: If no report matches.
        """

        target = Path(root).expanduser() if root is not None else self.root
        path = self._scanner.find_report(target, handout, timestamp, check_id)
        if path is None:
            raise ReportNotFoundError(f"Report not found: {handout}/{timestamp}/{check_id}")
        try:
            return read_report(path)
        except OSError as exc:
            raise ReportNotFoundError(f"Report not readable: {path}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Commands                                                           #
    # ------------------------------------------------------------------ #

    def set_root(self, root: str | Path) -> Path:
        """Switch scans and the watcher to ``root``.

        Scans read the root once under the browser lock, so each sees either
        the old or the new root. The watcher is switched afterwards with the
        lock released, because a viewer may be scanning from the watcher's
        dispatch thread while the old observer shuts down.

        Raises:
            InvalidRootError: If ``root`` is missing or not a directory; no
                state changes in that case.
        """

        resolved = self._validate_root(Path(root))
        with self._switch_lock:
            with self._lock:
                self._root = resolved
            self._watcher.switch_root(resolved)
        return resolved

    def start(self) -> None:
        """Start the shared watcher."""
        self._watcher.start()

    def stop(self) -> None:
        """Close every viewer connection and stop the watcher."""
        with self._lock:
            connections, self._connections = self._connections, []
        LOGGER.info("Shutting down report browser for %s", self.root)
        for connection in connections:
            connection.close()
        self._watcher.stop()

    def open_viewer(
        self,
        *,
        on_update: Optional[Callable[[ViewUpdate], None]] = None,
        on_status: Optional[Callable[[ViewerStatus], None]] = None,
        connect: bool = True,
    ) -> ViewerConnection:
        """Create a viewer whose reconciler scans the browser's current root.

        Args:
            on_update: Callback receiving each ``ViewUpdate``.
            on_status: Callback receiving ``ViewerStatus`` changes.
            connect: Whether to connect immediately.

        Returns:
            ViewerConnection: The viewer's connection handle.
        """

        reconciler = Reconciler(
            self.list_assignments,
            scheduler=self._scheduler,
            debounce_seconds=self._config.watch.debounce_ms / 1000.0,
            on_update=on_update,
            on_status=on_status,
        )
        connection = ViewerConnection(
            self._registry,
            reconciler,
            scheduler=self._scheduler,
            reconnect_delay=self._config.watch.reconnect_delay_seconds,
        )
        with self._lock:
            self._connections.append(connection)
        if connect:
            connection.connect()
        return connection

    def close_viewer(self, connection: ViewerConnection) -> None:
        with self._lock:
            if connection in self._connections:
                self._connections.remove(connection)
        connection.close()

    @staticmethod
    def _validate_root(root: Path) -> Path:
        candidate = Path(root).expanduser()
        if not candidate.exists():
            raise InvalidRootError(f"Path does not exist: {candidate}")
        if not candidate.is_dir():
            raise InvalidRootError(f"Path is not a directory: {candidate}")
        return candidate.resolve()


__all__ = ["ReportBrowser", "ViewUpdate", "ViewerStatus"]
