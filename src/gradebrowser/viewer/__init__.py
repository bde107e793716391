"""Viewer-side selection, reconciliation, and connection handling."""

from .connection import ConnectionState, ViewerChannel, ViewerConnection
from .reconciler import (
    EventRelevance,
    Reconciler,
    ReconcilerState,
    Transition,
    ViewerStatus,
    ViewUpdate,
    assess_event,
    transition,
)
from .selection import EMPTY_SELECTION, Selection, SelectionKey
from .timers import Scheduler, ThreadingScheduler, TimerHandle

__all__ = [
    "ConnectionState",
    "ViewerChannel",
    "ViewerConnection",
    "EventRelevance",
    "Reconciler",
    "ReconcilerState",
    "Transition",
    "ViewerStatus",
    "ViewUpdate",
    "assess_event",
    "transition",
    "EMPTY_SELECTION",
    "Selection",
    "SelectionKey",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
]
