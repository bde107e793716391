"""Shared fixtures for GradeBrowser tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import pytest

PASSING_REPORT = "<html><body><p>All tests passed</p></body></html>"
FAILING_REPORT = "<html><body><p>Test failed: expected 3</p></body></html>"
COMPILE_ERROR_REPORT = "<html><body><pre>Compilation failed</pre></body></html>"


def write_report(
    root: Path,
    assignment: str,
    handout: str,
    timestamp: str,
    check_id: str,
    body: str = PASSING_REPORT,
) -> Path:
    """Create a report file inside the standard grading layout.

    Args:
        root: Report root directory.
        assignment: Assignment directory name.
        handout: Handout directory name.
        timestamp: Grading run directory name.
        check_id: Identifier stem for the report filename.
        body: Report markup.

    Returns:
        Path: Path of the written report.
    """
    run_dir = root / assignment / handout / "grading" / timestamp
    run_dir.mkdir(parents=True, exist_ok=True)
    path = run_dir / f"{check_id}-report.html"
    path.write_text(body, encoding="utf-8")
    return path


@dataclass
class FakeTimer:
    delay: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeScheduler:
    """Scheduler that only runs callbacks when a test fires them."""

    timers: list[FakeTimer] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def fire(self) -> int:
        """Run every live timer once and return how many ran."""
        ready = self.active
        self.timers = []
        for timer in ready:
            timer.callback()
        return len(ready)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def report_root(tmp_path: Path) -> Path:
    root = tmp_path / "autolab"
    root.mkdir()
    return root


@pytest.fixture
def make_report(report_root: Path) -> Callable[..., Path]:
    """Return a writer that creates reports under ``report_root``."""

    def _make(assignment: str, handout: str, timestamp: str, check_id: str, body: str = PASSING_REPORT) -> Path:
        return write_report(report_root, assignment, handout, timestamp, check_id, body)

    return _make
