"""Recognize grading directories and report filenames.

Report files are named ``<checkId>-report.html``. Three historical identifier
shapes are in circulation and all of them must keep working:

* ``check<task>-<test>`` (dashed)
* ``check<TTtt>`` (four digits: task then test)
* ``check<TT>`` (two digits: task only)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

REPORT_SUFFIX = "-report.html"
GRADING_DIRNAME = "grading"
COMPILATION_LABEL = "Compilation"

_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2}")
_REPORT_RE = re.compile(r"(?P<check_id>.+)-report\.html")
_DASHED_RE = re.compile(r"check(?P<task>\d+)-(?P<test>\d+)")
_FOUR_DIGIT_RE = re.compile(r"check(?P<task>\d{2})(?P<test>\d{2})")
_TWO_DIGIT_RE = re.compile(r"check(?P<task>\d{2})")
_SHORT_RE = re.compile(r"check(?P<task>\d{1,2})")


@dataclass(frozen=True, slots=True)
class CheckName:
    """Parsed identity of a report file.

    Attributes:
        check_id: Raw stem preceding ``-report.html``.
        display_name: Human label derived from the identifier.
        task: Parsed task number, or ``None`` for unrecognized identifiers.
        test: Parsed test number when the identifier carries one.
    """

    check_id: str
    display_name: str
    task: Optional[int] = None
    test: Optional[int] = None

    @property
    def is_compilation(self) -> bool:
        return self.task == 0


def is_timestamp_dir(name: str) -> bool:
    """Return True when ``name`` is exactly ``YYYY-MM-DD-HH-MM-SS``."""
    return _TIMESTAMP_RE.fullmatch(name) is not None


def is_report_file(path: str) -> bool:
    """Return True when ``path`` carries the report filename suffix."""
    return path.endswith(REPORT_SUFFIX)



def parse_check_id(check_id: str) -> CheckName:
    """Derive task/test numbers and a display label for ``check_id``.

    Args:
        check_id: Identifier stem such as ``check0-3`` or ``check0103``.

    Returns:
        CheckName: Parsed identity; unrecognized shapes fall back to the raw
        identifier as their display name.
    """

    match = _DASHED_RE.fullmatch(check_id)
    if match:
        task, test = int(match["task"]), int(match["test"])
        if task == 0:
            return CheckName(check_id, COMPILATION_LABEL, task, test)
        return CheckName(check_id, f"Task {task} - Test {test}", task, test)

    match = _FOUR_DIGIT_RE.fullmatch(check_id)
    if match:
        task, test = int(match["task"]), int(match["test"])
        if task == 0 and test == 0:
            label = COMPILATION_LABEL
        elif task == 0:
            label = f"{COMPILATION_LABEL} {test}"
        else:
            label = f"Task {task} - Test {test}"
        return CheckName(check_id, label, task, test)

    match = _TWO_DIGIT_RE.fullmatch(check_id)
    if match:
        task = int(match["task"])
        label = COMPILATION_LABEL if task == 0 else f"Task {task}"
        return CheckName(check_id, label, task)

    return CheckName(check_id, check_id)


def parse_check_file(filename: str) -> Optional[CheckName]:
    """Parse a report filename, returning ``None`` for non-report files."""
    match = _REPORT_RE.fullmatch(filename)
    if match is None:
        return None
    return parse_check_id(match["check_id"])


def report_filename(check_id: str) -> str:
    return f"{check_id}{REPORT_SUFFIX}"


def check_sort_key(name: CheckName) -> tuple[int, str]:
    """Sort key pinning compilation checks ahead of everything else."""
    return (0 if name.is_compilation else 1, name.check_id)


def candidate_check_ids(check_id: str) -> list[str]:
    """Return ``check_id`` followed by every legacy alias for it.

    Reports may have been written under a short, padded, or dashed identifier;
    lookups try each alias in order before giving up.
    """

    candidates = [check_id]

    match = _DASHED_RE.fullmatch(check_id)
    if match:
        task, test = int(match["task"]), int(match["test"])
        candidates.append(f"check{task:02d}{test:02d}")
        if test == 0:
            candidates.append(f"check{task:02d}")
    else:
        match = _FOUR_DIGIT_RE.fullmatch(check_id)
        if match:
            task, test = int(match["task"]), int(match["test"])
            candidates.append(f"check{task}-{test}")
            if test == 0:
                candidates.append(f"check{task:02d}")
        else:
            match = _SHORT_RE.fullmatch(check_id)
            if match:
                task = int(match["task"])
                candidates.extend(
                    [f"check{task:02d}", f"check{task:02d}00", f"check{task}-0"]
                )

    unique: list[str] = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


__all__ = [
    "REPORT_SUFFIX",
    "GRADING_DIRNAME",
    "COMPILATION_LABEL",
    "CheckName",
    "is_timestamp_dir",
    "is_report_file",
    "parse_check_id",
    "parse_check_file",
    "report_filename",
    "check_sort_key",
    "candidate_check_ids",
]
