"""Viewer selection over an immutable report snapshot.

A ``Selection`` holds positional indices that are only meaningful for the
snapshot they were taken against. Anything that must survive a rescan is
captured as a ``SelectionKey`` (names, timestamp, check id) and resolved
against the new snapshot with ``relocate``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence

from gradebrowser.index.models import Assignment, Check, GradeCheck, Handout, find_assignment

NO_SELECTION = -1


@dataclass(frozen=True, slots=True)
class Selection:
    """Ephemeral indices into one snapshot."""

    assignment: int = NO_SELECTION
    handout: int = NO_SELECTION
    grade_check: int = 0
    check: int = 0

    @property
    def has_handout(self) -> bool:
        return self.assignment >= 0 and self.handout >= 0


EMPTY_SELECTION = Selection()


@dataclass(frozen=True, slots=True)
class SelectionKey:
    """Snapshot-independent identity of what the viewer is looking at."""

    assignment: Optional[str] = None
    handout: Optional[str] = None
    timestamp: Optional[str] = None
    check_id: Optional[str] = None


def current_assignment(snapshot: Sequence[Assignment], selection: Selection) -> Optional[Assignment]:
    if 0 <= selection.assignment < len(snapshot):
        return snapshot[selection.assignment]
    return None


def current_handout(snapshot: Sequence[Assignment], selection: Selection) -> Optional[Handout]:
    assignment = current_assignment(snapshot, selection)
    if assignment is None or not 0 <= selection.handout < len(assignment.handouts):
        return None
    return assignment.handouts[selection.handout]


def current_grade_check(snapshot: Sequence[Assignment], selection: Selection) -> Optional[GradeCheck]:
    handout = current_handout(snapshot, selection)
    if handout is None or not 0 <= selection.grade_check < len(handout.grade_checks):
        return None
    return handout.grade_checks[selection.grade_check]


def current_check(snapshot: Sequence[Assignment], selection: Selection) -> Optional[Check]:
    grade_check = current_grade_check(snapshot, selection)
    if grade_check is None or not 0 <= selection.check < len(grade_check.checks):
        return None
    return grade_check.checks[selection.check]


def key_for(snapshot: Sequence[Assignment], selection: Selection) -> SelectionKey:
    """Capture the semantic identity behind ``selection``."""
    assignment = current_assignment(snapshot, selection)
    handout = current_handout(snapshot, selection)
    grade_check = current_grade_check(snapshot, selection)
    check = current_check(snapshot, selection)
    return SelectionKey(
        assignment=assignment.name if assignment else None,
        handout=handout.name if handout else None,
        timestamp=grade_check.timestamp if grade_check else None,
        check_id=check.check_id if check else None,
    )


def relocate(snapshot: Sequence[Assignment], key: SelectionKey) -> Selection:
    """Resolve ``key`` against ``snapshot``.

    Each level falls back independently: a vanished assignment clears the
    selection, a vanished handout keeps only the assignment, and a vanished
    grade check or check falls back to index 0.
    """

    if key.assignment is None:
        return EMPTY_SELECTION
    assignment_index = find_assignment(snapshot, key.assignment)
    if assignment_index < 0:
        return EMPTY_SELECTION
    assignment = snapshot[assignment_index]

    handout_index = assignment.find_handout(key.handout) if key.handout is not None else NO_SELECTION
    if handout_index < 0:
        return Selection(assignment=assignment_index)
    handout = assignment.handouts[handout_index]

    grade_check_index = 0
    if key.timestamp is not None:
        grade_check_index = max(handout.find_grade_check(key.timestamp), 0)

    check_index = 0
    if key.check_id is not None:
        check_index = max(handout.grade_checks[grade_check_index].find_check(key.check_id), 0)

    return Selection(assignment_index, handout_index, grade_check_index, check_index)


def reselect_newest(
    snapshot: Sequence[Assignment],
    key: SelectionKey,
    check_id: Optional[str],
) -> Selection:
    """Select the newest run of the keyed handout and the check ``check_id`` within it."""
    return relocate(snapshot, replace(key, timestamp=None, check_id=check_id))


def auto_select_newest(snapshot: Sequence[Assignment]) -> Selection:
    """Select the handout whose newest grading run is the most recent overall."""
    newest_timestamp = ""
    best = EMPTY_SELECTION
    for assignment_index, assignment in enumerate(snapshot):
        for handout_index, handout in enumerate(assignment.handouts):
            if not handout.grade_checks:
                continue
            timestamp = handout.grade_checks[0].timestamp
            if timestamp > newest_timestamp:
                newest_timestamp = timestamp
                best = Selection(assignment_index, handout_index, 0, 0)
    return best


def older(snapshot: Sequence[Assignment], selection: Selection) -> Selection:
    """Move to the previous (older) grading run."""
    handout = current_handout(snapshot, selection)
    if handout is None or selection.grade_check >= len(handout.grade_checks) - 1:
        return selection
    return replace(selection, grade_check=selection.grade_check + 1, check=0)


def newer(snapshot: Sequence[Assignment], selection: Selection) -> Selection:
    """Move to the next (newer) grading run."""
    if current_handout(snapshot, selection) is None or selection.grade_check <= 0:
        return selection
    return replace(selection, grade_check=selection.grade_check - 1, check=0)


def newest(snapshot: Sequence[Assignment], selection: Selection) -> Selection:
    if current_handout(snapshot, selection) is None or selection.grade_check == 0:
        return selection
    return replace(selection, grade_check=0, check=0)


def previous_check(snapshot: Sequence[Assignment], selection: Selection) -> Selection:
    if current_grade_check(snapshot, selection) is None or selection.check <= 0:
        return selection
    return replace(selection, check=selection.check - 1)


def next_check(snapshot: Sequence[Assignment], selection: Selection) -> Selection:
    grade_check = current_grade_check(snapshot, selection)
    if grade_check is None or selection.check >= len(grade_check.checks) - 1:
        return selection
    return replace(selection, check=selection.check + 1)


def describe(snapshot: Sequence[Assignment], selection: Selection) -> str:
    """Return the one-line report info shown above the report body."""
    handout = current_handout(snapshot, selection)
    if handout is None or not handout.grade_checks:
        return "No reports available"
    total = len(handout.grade_checks)
    position = total - selection.grade_check
    check = current_check(snapshot, selection)
    if check is not None:
        return f"Viewing: {check.filename} | Check {position}/{total}"
    return f"Check {position}/{total}"


__all__ = [
    "NO_SELECTION",
    "Selection",
    "EMPTY_SELECTION",
    "SelectionKey",
    "current_assignment",
    "current_handout",
    "current_grade_check",
    "current_check",
    "key_for",
    "relocate",
    "reselect_newest",
    "auto_select_newest",
    "older",
    "newer",
    "newest",
    "previous_check",
    "next_check",
    "describe",
]
