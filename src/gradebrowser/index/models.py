"""Snapshot models for the report hierarchy.

Every scan builds a fresh tree of frozen models. Entities carry no stable
identifiers: consumers address them by position inside their parent's ordered
tuple, and must re-resolve by name, timestamp, or check id after a rescan.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CheckStatus(str, Enum):
    """Outcome inferred from a report's content."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"
    UNKNOWN = "unknown"


class SnapshotModel(BaseModel):
    """Shared configuration for immutable snapshot models."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Check(SnapshotModel):
    """One report file inside a grading run.

    Attributes:
        check_id: Raw identifier stem preceding ``-report.html``.
        filename: Report filename.
        display_name: Human label derived from the identifier.
        status: Heuristic outcome for the report.
        path: Absolute path of the report file.
    """

    check_id: str
    filename: str
    display_name: str
    status: CheckStatus = CheckStatus.UNKNOWN
    path: str


class GradeCheck(SnapshotModel):
    """One timestamped grading run; checks are compilation-first."""

    timestamp: str
    path: str
    checks: Tuple[Check, ...] = Field(default_factory=tuple)

    def find_check(self, check_id: str) -> int:
        """Return the index of ``check_id`` within this run, or -1."""
        for index, check in enumerate(self.checks):
            if check.check_id == check_id:
                return index
        return -1


class Handout(SnapshotModel):
    """A handout directory; grade checks are ordered newest first."""

    name: str
    path: str
    grade_checks: Tuple[GradeCheck, ...] = Field(default_factory=tuple)

    @property
    def newest(self) -> GradeCheck:
        return self.grade_checks[0]

    def find_grade_check(self, timestamp: str) -> int:
        for index, grade_check in enumerate(self.grade_checks):
            if grade_check.timestamp == timestamp:
                return index
        return -1


class Assignment(SnapshotModel):
    """A top-level assignment directory and its handouts."""

    name: str
    path: str
    handouts: Tuple[Handout, ...] = Field(default_factory=tuple)

    def find_handout(self, name: str) -> int:
        for index, handout in enumerate(self.handouts):
            if handout.name == name:
                return index
        return -1


Snapshot = Tuple[Assignment, ...]


def find_assignment(snapshot: Sequence[Assignment], name: str) -> int:
    """Return the index of the assignment called ``name``, or -1."""
    for index, assignment in enumerate(snapshot):
        if assignment.name == name:
            return index
    return -1


def snapshot_payload(snapshot: Sequence[Assignment]) -> list[dict[str, Any]]:
    """Return a JSON-ready payload using camelCase keys."""
    return [assignment.model_dump(mode="json", by_alias=True) for assignment in snapshot]


__all__ = [
    "CheckStatus",
    "Check",
    "GradeCheck",
    "Handout",
    "Assignment",
    "Snapshot",
    "find_assignment",
    "snapshot_payload",
]
