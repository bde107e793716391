"""Per-viewer connection to the report event stream."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from gradebrowser.watch.events import ReportEvent
from gradebrowser.watch.registry import SubscriberRegistry, TransportDroppedError

from .reconciler import Reconciler
from .timers import Scheduler, TimerHandle

LOGGER = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY_SECONDS = 3.0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ViewerChannel:
    """In-process delivery channel registered with the subscriber registry."""

    def __init__(
        self,
        deliver: Callable[[ReportEvent], None],
        on_close: Callable[["ViewerChannel"], None],
    ) -> None:
        self._deliver = deliver
        self._on_close = on_close
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, event: ReportEvent) -> None:
        if self._closed.is_set():
            raise TransportDroppedError("Viewer channel is closed.")
        self._deliver(event)

    def close(self) -> None:
        """Close the channel; the owner is notified once."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._on_close(self)


class ViewerConnection:
    """Connect a reconciler to the registry and keep it connected.

    ``DISCONNECTED --connect--> CONNECTED --channel closed--> DISCONNECTED``,
    after which a reconnect is attempted every ``reconnect_delay`` seconds
    until it succeeds or the connection is closed.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        reconciler: Reconciler,
        *,
        scheduler: Scheduler,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
    ) -> None:
        self._registry = registry
        self._reconciler = reconciler
        self._scheduler = scheduler
        self._reconnect_delay = reconnect_delay
        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._channel: Optional[ViewerChannel] = None
        self._retry: Optional[TimerHandle] = None
        self._closed = False
        self.attempts = 0

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def reconciler(self) -> Reconciler:
        return self._reconciler

    def connect(self) -> None:
        """Register a fresh channel and load the initial snapshot."""
        with self._lock:
            if self._closed:
                raise RuntimeError("ViewerConnection has been closed.")
            if self._state is ConnectionState.CONNECTED:
                return
            self.attempts += 1
            channel = ViewerChannel(self._reconciler.handle_event, self._on_channel_closed)
            self._registry.add(channel)
            self._channel = channel
            self._state = ConnectionState.CONNECTED
            self._reconciler.set_connected(True)
            LOGGER.info("Viewer connected")
        try:
            self._reconciler.refresh()
        except Exception:
            self._teardown(channel)
            raise

    def drop(self) -> None:
        """Close the current channel as if the transport went away."""
        with self._lock:
            channel = self._channel
        if channel is not None:
            channel.close()

    def close(self) -> None:
        """Disconnect permanently and cancel any pending retry."""
        with self._lock:
            self._closed = True
            if self._retry is not None:
                self._retry.cancel()
                self._retry = None
            channel = self._channel
        if channel is not None:
            channel.close()
        self._reconciler.close()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _teardown(self, channel: ViewerChannel) -> None:
        self._registry.remove(channel)
        with self._lock:
            if channel is self._channel:
                self._channel = None
                self._state = ConnectionState.DISCONNECTED
                self._reconciler.set_connected(False)

    def _on_channel_closed(self, channel: ViewerChannel) -> None:
        self._registry.remove(channel)
        with self._lock:
            if channel is not self._channel:
                return
            self._channel = None
            self._state = ConnectionState.DISCONNECTED
            self._reconciler.set_connected(False)
            if self._closed:
                LOGGER.info("Viewer closed")
                return
            LOGGER.warning("Viewer disconnected")
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        self._retry = self._scheduler.call_later(self._reconnect_delay, self._attempt_reconnect)

    def _attempt_reconnect(self) -> None:
        with self._lock:
            self._retry = None
            if self._closed or self._state is ConnectionState.CONNECTED:
                return
        LOGGER.info("Attempting to reconnect viewer")
        try:
            self.connect()
        except Exception as exc:
            LOGGER.warning("Reconnect failed: %s", exc)
            with self._lock:
                if not self._closed:
                    self._schedule_reconnect()


__all__ = [
    "DEFAULT_RECONNECT_DELAY_SECONDS",
    "ConnectionState",
    "ViewerChannel",
    "ViewerConnection",
]
