"""Live-update state machine for a single viewer.

Grading runs write many report files in quick succession. The reconciler
decides which raw events matter for the handout being viewed, folds a burst of
new-run activity into one debounced refresh, and restores the viewer's check
by its identifier once the new snapshot arrives.

States::

    IDLE --new run for viewed handout--> ACTIVITY_PENDING (capture check id)
    ACTIVITY_PENDING --more activity--> ACTIVITY_PENDING (restart debounce)
    ACTIVITY_PENDING --debounce elapsed--> APPLYING --reselected--> IDLE

Unrelated events and edits to the run already on screen trigger an immediate
background refresh and leave the state unchanged.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from gradebrowser.index.classifier import GRADING_DIRNAME, is_report_file, is_timestamp_dir
from gradebrowser.index.models import Assignment, Snapshot
from gradebrowser.watch.events import ReportEvent

from .selection import (
    EMPTY_SELECTION,
    Selection,
    auto_select_newest,
    current_assignment,
    current_check,
    current_grade_check,
    current_handout,
    key_for,
    relocate,
    reselect_newest,
)
from .timers import Scheduler, TimerHandle

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.8


class ReconcilerState(str, Enum):
    IDLE = "idle"
    ACTIVITY_PENDING = "activity-pending"
    APPLYING = "applying"


class ViewerStatus(str, Enum):
    """Connection indicator shown to the user."""

    CONNECTED = "connected"
    WAITING = "waiting"
    DISCONNECTED = "disconnected"


class EventRelevance(str, Enum):
    """How a raw report event relates to the current view."""

    IGNORED = "ignored"
    NO_SELECTION = "no-selection"
    UNRELATED = "unrelated"
    SAME_RUN = "same-run"
    NEW_RUN = "new-run"


@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of feeding one event to the state machine.

    Attributes:
        state: State after the event.
        refresh: Whether to re-index immediately.
        capture: Whether to capture the selected check id for restoration.
        restart_timer: Whether to (re)start the debounce window.
    """

    state: ReconcilerState
    refresh: bool = False
    capture: bool = False
    restart_timer: bool = False


@dataclass(frozen=True, slots=True)
class ViewUpdate:
    """Published after every refresh."""

    snapshot: Snapshot
    selection: Selection
    status: ViewerStatus
    grading: bool
    preserved: bool


def assess_event(
    path: str,
    assignment: Optional[Assignment],
    handout_name: Optional[str],
    current_timestamp: Optional[str],
) -> EventRelevance:
    """Classify a raw event path against the handout on screen.

    Args:
        path: Path carried by the event.
        assignment: Assignment currently selected, if any.
        handout_name: Name of the handout currently selected, if any.
        current_timestamp: Timestamp of the grading run on screen.

    Returns:
        EventRelevance: Relevance used to pick a transition.
    """

    if not is_report_file(path):
        return EventRelevance.IGNORED
    if assignment is None or handout_name is None:
        return EventRelevance.NO_SELECTION

    # <root>/<assignment>/<handout>/grading/<timestamp>/<report>
    parts = Path(path).parts
    if len(parts) < 5 or parts[-4] != handout_name or parts[-5] != assignment.name:
        return EventRelevance.UNRELATED

    timestamp = parts[-2]
    if parts[-3] != GRADING_DIRNAME or not is_timestamp_dir(timestamp):
        return EventRelevance.IGNORED
    if timestamp == current_timestamp:
        return EventRelevance.SAME_RUN
    return EventRelevance.NEW_RUN


def transition(state: ReconcilerState, relevance: EventRelevance) -> Transition:
    """Return the transition for ``relevance`` arriving in ``state``."""
    if relevance is EventRelevance.IGNORED:
        return Transition(state)
    if relevance is EventRelevance.NEW_RUN:
        if state is ReconcilerState.ACTIVITY_PENDING:
            return Transition(ReconcilerState.ACTIVITY_PENDING, restart_timer=True)
        return Transition(ReconcilerState.ACTIVITY_PENDING, capture=True, restart_timer=True)
    # NO_SELECTION, UNRELATED, and SAME_RUN re-index in the background.
    return Transition(state, refresh=True)


class Reconciler:
    """Stateful consumer of report events for one viewer."""

    def __init__(
        self,
        load_snapshot: Callable[[], Sequence[Assignment]],
        *,
        scheduler: Scheduler,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_update: Optional[Callable[[ViewUpdate], None]] = None,
        on_status: Optional[Callable[[ViewerStatus], None]] = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            load_snapshot: Callable returning a fresh snapshot from disk.
            scheduler: Scheduler used for the debounce timer.
            debounce_seconds: Quiet period that ends a burst of activity.
            on_update: Callback receiving each published view.
            on_status: Callback receiving status indicator changes.
        """

        self._load_snapshot = load_snapshot
        self._scheduler = scheduler
        self._debounce_seconds = debounce_seconds
        self._on_update = on_update
        self._on_status = on_status
        self._lock = threading.RLock()
        self._state = ReconcilerState.IDLE
        self._status = ViewerStatus.DISCONNECTED
        self._grading = False
        self._snapshot: Snapshot = ()
        self._selection = EMPTY_SELECTION
        self._preserved_check_id: Optional[str] = None
        self._timer: Optional[TimerHandle] = None
        self._timer_generation = 0

    # ------------------------------------------------------------------ #
    # Read-only view                                                     #
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ReconcilerState:
        with self._lock:
            return self._state

    @property
    def status(self) -> ViewerStatus:
        with self._lock:
            return self._status

    @property
    def grading(self) -> bool:
        with self._lock:
            return self._grading

    @property
    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    @property
    def selection(self) -> Selection:
        with self._lock:
            return self._selection

    @property
    def preserved_check_id(self) -> Optional[str]:
        with self._lock:
            return self._preserved_check_id

    # ------------------------------------------------------------------ #
    # Inputs                                                             #
    # ------------------------------------------------------------------ #

    def handle_event(self, event: ReportEvent) -> Transition:
        """Feed one raw report event through the state machine."""
        with self._lock:
            grade_check = current_grade_check(self._snapshot, self._selection)
            handout = current_handout(self._snapshot, self._selection)
            relevance = assess_event(
                event.path,
                current_assignment(self._snapshot, self._selection),
                handout.name if handout else None,
                grade_check.timestamp if grade_check else None,
            )
            step = transition(self._state, relevance)
            LOGGER.debug("%s %s -> %s (%s)", self._state.value, relevance.value, step.state.value, event.path)

            if relevance is not EventRelevance.IGNORED:
                self._grading = True

            if step.capture:
                check = current_check(self._snapshot, self._selection)
                self._preserved_check_id = check.check_id if check else None
                self._set_status(ViewerStatus.WAITING)

            self._state = step.state
            if step.restart_timer:
                self._restart_timer()
            if step.refresh:
                self.refresh()
            return step

    def refresh(self) -> ViewUpdate:
        """Re-scan and keep the current selection by its semantic key."""
        with self._lock:
            key = key_for(self._snapshot, self._selection)
            snapshot = tuple(self._load_snapshot())
            selection = relocate(snapshot, key)
            if selection.assignment < 0:
                selection = auto_select_newest(snapshot)
            return self._publish(snapshot, selection, preserved=False)

    def apply(self) -> ViewUpdate:
        """Finish a burst: re-scan, jump to the newest run, restore the check."""
        with self._lock:
            self._cancel_timer()
            self._state = ReconcilerState.APPLYING
            key = key_for(self._snapshot, self._selection)
            check_id = self._preserved_check_id
            self._preserved_check_id = None
            snapshot = tuple(self._load_snapshot())
            if key.handout is None:
                selection = auto_select_newest(snapshot)
            else:
                selection = reselect_newest(snapshot, key, check_id)
            self._state = ReconcilerState.IDLE
            if self._status is ViewerStatus.WAITING:
                self._set_status(ViewerStatus.CONNECTED)
            return self._publish(snapshot, selection, preserved=check_id is not None)

    def select(self, selection: Selection) -> None:
        """Replace the selection after user navigation."""
        with self._lock:
            self._selection = selection

    def navigate(self, move: Callable[[Sequence[Assignment], Selection], Selection]) -> Selection:
        """Apply a navigation function from :mod:`gradebrowser.viewer.selection`."""
        with self._lock:
            self._selection = move(self._snapshot, self._selection)
            return self._selection

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            if connected:
                pending = self._state is ReconcilerState.ACTIVITY_PENDING
                self._set_status(ViewerStatus.WAITING if pending else ViewerStatus.CONNECTED)
            else:
                self._set_status(ViewerStatus.DISCONNECTED)

    def close(self) -> None:
        """Cancel any pending debounce window."""
        with self._lock:
            self._cancel_timer()
            self._state = ReconcilerState.IDLE
            self._preserved_check_id = None

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _publish(self, snapshot: Snapshot, selection: Selection, *, preserved: bool) -> ViewUpdate:
        self._snapshot = snapshot
        self._selection = selection
        self._grading = False
        update = ViewUpdate(
            snapshot=snapshot,
            selection=selection,
            status=self._status,
            grading=False,
            preserved=preserved,
        )
        if self._on_update is not None:
            self._on_update(update)
        return update

    def _set_status(self, status: ViewerStatus) -> None:
        if status is self._status:
            return
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._scheduler.call_later(
            self._debounce_seconds, lambda: self._on_debounce_elapsed(generation)
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_debounce_elapsed(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation or self._state is not ReconcilerState.ACTIVITY_PENDING:
                return
            self._timer = None
            self.apply()


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "ReconcilerState",
    "ViewerStatus",
    "EventRelevance",
    "Transition",
    "ViewUpdate",
    "assess_event",
    "transition",
    "Reconciler",
]
