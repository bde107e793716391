"""Subscriber registry used to fan report events out to viewers."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from .events import ReportEvent

LOGGER = logging.getLogger(__name__)


class TransportDroppedError(Exception):
    """Raised by a subscriber whose delivery channel has closed."""


class Subscriber(Protocol):
    """Anything that can receive report events."""

    def send(self, event: ReportEvent) -> None:
        """Deliver ``event``; raise TransportDroppedError once closed."""


class SubscriberRegistry:
    """Thread-safe set of subscribers with explicit add/remove/broadcast.

    Subscribers are added and removed by their owners; the registry only drops
    a subscriber on its own when delivery raises TransportDroppedError.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def add(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)

    def remove(self, subscriber: Subscriber) -> bool:
        """Remove ``subscriber`` and report whether it was registered."""
        with self._lock:
            try:
                self._subscribers.remove(subscriber)
            except ValueError:
                return False
            return True

    def broadcast(self, event: ReportEvent) -> int:
        """Deliver ``event`` to every subscriber.

        Args:
            event: Event to relay.

        Returns:
            int: Number of subscribers that accepted the event.
        """

        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for subscriber in targets:
            try:
                subscriber.send(event)
            except TransportDroppedError:
                LOGGER.info("Dropping disconnected subscriber %r", subscriber)
                self.remove(subscriber)
                continue
            except Exception:  # pragma: no cover - fan-out continues past a faulty viewer
                LOGGER.exception("Subscriber %r failed to handle %s", subscriber, event.kind.value)
                continue
            delivered += 1
        return delivered

    def clear(self) -> list[Subscriber]:
        """Remove and return every subscriber."""
        with self._lock:
            removed, self._subscribers = self._subscribers, []
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def __contains__(self, subscriber: object) -> bool:
        with self._lock:
            return subscriber in self._subscribers


__all__ = ["Subscriber", "SubscriberRegistry", "TransportDroppedError"]
