"""Synchronous walker that builds report snapshots from disk."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Callable, Iterator, Optional

from .classifier import (
    GRADING_DIRNAME,
    candidate_check_ids,
    check_sort_key,
    is_timestamp_dir,
    parse_check_file,
    report_filename,
)
from .errors import ScanIOError
from .models import Assignment, Check, GradeCheck, Handout, Snapshot
from .status import classify_file

LOGGER = logging.getLogger(__name__)


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _is_plain_name(name: str) -> bool:
    """Return True when ``name`` is a single path component."""
    if name in ("", ".", ".."):
        return False
    return os.sep not in name and (os.altsep is None or os.altsep not in name)


class ReportScanner:
    """Walk ``assignment/handout/grading/timestamp`` trees into snapshots.

    The scanner keeps no state between calls; every ``scan`` re-reads the tree
    so results always reflect the disk at call time. Unreadable nodes are
    skipped without aborting their siblings.
    """

    def __init__(self, *, include_hidden: bool = False, follow_symlinks: bool = True) -> None:
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def scan(self, root: Path) -> Snapshot:
        """Return every assignment under ``root`` that holds at least one report.

        Args:
            root: Directory whose immediate children are assignments.

        Returns:
            Snapshot: Assignments sorted by name, each with handouts sorted by
            name and grade checks sorted newest first.
        """

        root = Path(root).expanduser()
        assignments: list[Assignment] = []
        for assignment_dir in self._safe_subdirs(root):
            assignment = self._scan_assignment(assignment_dir)
            if assignment is not None:
                assignments.append(assignment)
        return tuple(assignments)

    def find_report(
        self,
        root: Path,
        handout: str,
        timestamp: str,
        check_id: str,
    ) -> Optional[Path]:
        """Locate a single report without materializing the tree.

        Args:
            root: Report root directory.
            handout: Handout directory name.
            timestamp: Grading run timestamp directory name.
            check_id: Check identifier in any of its legacy spellings.

        Returns:
            Optional[Path]: Path of the first matching report, or ``None``.
        """

        if not is_timestamp_dir(timestamp):
            return None
        if not _is_plain_name(handout) or not _is_plain_name(check_id):
            return None

        root = Path(root).expanduser()
        candidates = [report_filename(candidate) for candidate in candidate_check_ids(check_id)]
        for assignment_dir in self._safe_subdirs(root):
            run_dir = assignment_dir / handout / GRADING_DIRNAME / timestamp
            for filename in candidates:
                path = run_dir / filename
                if self._is_kind(path, stat.S_ISREG):
                    return path
        return None

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _scan_assignment(self, assignment_dir: Path) -> Optional[Assignment]:
        handouts: list[Handout] = []
        for handout_dir in self._safe_subdirs(assignment_dir):
            grading_dir = handout_dir / GRADING_DIRNAME
            if not self._is_kind(grading_dir, stat.S_ISDIR):
                continue
            handout = self._scan_handout(handout_dir, grading_dir)
            if handout is not None:
                handouts.append(handout)
        if not handouts:
            return None
        return Assignment(name=assignment_dir.name, path=str(assignment_dir), handouts=tuple(handouts))

    def _scan_handout(self, handout_dir: Path, grading_dir: Path) -> Optional[Handout]:
        grade_checks: list[GradeCheck] = []
        for run_dir in self._safe_subdirs(grading_dir):
            if not is_timestamp_dir(run_dir.name):
                continue
            checks = self._scan_run(run_dir)
            if checks:
                grade_checks.append(GradeCheck(timestamp=run_dir.name, path=str(run_dir), checks=checks))
        if not grade_checks:
            return None
        grade_checks.sort(key=lambda grade_check: grade_check.timestamp, reverse=True)
        return Handout(name=handout_dir.name, path=str(handout_dir), grade_checks=tuple(grade_checks))

    def _scan_run(self, run_dir: Path) -> tuple[Check, ...]:
        try:
            entries = self._list(run_dir)
        except ScanIOError as exc:
            LOGGER.debug("%s", exc)
            return ()

        parsed = []
        for entry in entries:
            name = parse_check_file(entry.name)
            if name is None:
                continue
            path = Path(entry.path)
            try:
                if not entry.is_file(follow_symlinks=self.follow_symlinks):
                    continue
                status = classify_file(path)
            except OSError as exc:
                LOGGER.debug("Skipping unreadable report %s: %s", path, exc)
                continue
            parsed.append((name, path, status))

        parsed.sort(key=lambda item: check_sort_key(item[0]))
        return tuple(
            Check(
                check_id=name.check_id,
                filename=path.name,
                display_name=name.display_name,
                status=status,
                path=str(path),
            )
            for name, path, status in parsed
        )

    def _safe_subdirs(self, directory: Path) -> Iterator[Path]:
        """Yield child directories sorted by name; unreadable parents yield nothing."""
        try:
            entries = self._list(directory)
        except ScanIOError as exc:
            LOGGER.debug("%s", exc)
            return
        for entry in entries:
            if not self.include_hidden and _is_hidden(entry.name):
                continue
            try:
                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    yield Path(entry.path)
            except OSError as exc:
                LOGGER.debug("Skipping unreadable entry %s: %s", entry.path, exc)

    def _is_kind(self, path: Path, test: Callable[[int], bool]) -> bool:
        """Stat ``path`` honouring ``follow_symlinks``; unreadable paths match nothing."""
        try:
            mode = os.stat(path, follow_symlinks=self.follow_symlinks).st_mode
        except FileNotFoundError:
            return False
        except OSError as exc:
            LOGGER.debug("Skipping unreadable path %s: %s", path, exc)
            return False
        return test(mode)

    def _list(self, directory: Path) -> list[os.DirEntry[str]]:
        try:
            with os.scandir(directory) as iterator:
                return sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            raise ScanIOError(f"Unable to list {directory}: {exc}") from exc


def scan(root: Path) -> Snapshot:
    """Scan ``root`` with default scanner settings."""
    return ReportScanner().scan(root)


def find_report(root: Path, handout: str, timestamp: str, check_id: str) -> Optional[Path]:
    """Locate a report with default scanner settings."""
    return ReportScanner().find_report(root, handout, timestamp, check_id)


__all__ = ["ReportScanner", "scan", "find_report"]
