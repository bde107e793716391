"""Tests for the report browser facade."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable

import pytest

from gradebrowser.config import GradeBrowserConfig
from gradebrowser.index.errors import InvalidRootError, ReportNotFoundError
from gradebrowser.service import ReportBrowser
from gradebrowser.viewer.reconciler import ViewUpdate
from gradebrowser.watch.events import ReportEvent, ReportEventKind

from conftest import PASSING_REPORT, FakeScheduler, write_report

MakeReport = Callable[..., Path]


def test_browser_rejects_invalid_root(tmp_path: Path) -> None:
    with pytest.raises(InvalidRootError):
        ReportBrowser(tmp_path / "missing")

    file_root = tmp_path / "file.txt"
    file_root.write_text("not a directory", encoding="utf-8")
    with pytest.raises(InvalidRootError):
        ReportBrowser(file_root)


def test_list_payload_uses_camel_case(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    browser = ReportBrowser(report_root)

    payload = browser.list_payload()

    assert payload[0]["name"] == "A"
    assert payload[0]["handouts"][0]["gradeChecks"][0]["timestamp"] == "2024-01-01-00-00-00"


def test_fetch_report_returns_html(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check03")
    browser = ReportBrowser(report_root)

    assert browser.fetch_report("H1", "2024-01-01-00-00-00", "check3") == PASSING_REPORT


def test_fetch_report_missing_raises(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check03")
    browser = ReportBrowser(report_root)

    with pytest.raises(ReportNotFoundError):
        browser.fetch_report("H1", "2024-01-01-00-00-00", "check04")


def test_set_root_switches_scans(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    write_report(first, "A", "H1", "2024-01-01-00-00-00", "check00")
    write_report(second, "B", "H2", "2024-01-01-00-00-00", "check00")
    browser = ReportBrowser(first)

    assert browser.set_root(second) == second.resolve()

    assert browser.root == second.resolve()
    assert browser.watcher.root == second.resolve()
    assert [assignment.name for assignment in browser.list_assignments()] == ["B"]
    assert [assignment.name for assignment in browser.list_assignments(first)] == ["A"]


def test_set_root_invalid_leaves_state_untouched(report_root: Path, tmp_path: Path) -> None:
    browser = ReportBrowser(report_root)

    with pytest.raises(InvalidRootError):
        browser.set_root(tmp_path / "missing")

    assert browser.root == report_root.resolve()
    assert browser.watcher.root == report_root.resolve()


def test_open_viewer_uses_configured_timings(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    config = GradeBrowserConfig.model_validate(
        {"watch": {"debounce_ms": 250, "reconnect_delay_seconds": 1.5}}
    )
    browser = ReportBrowser(report_root, config=config, scheduler=scheduler)
    updates: list[ViewUpdate] = []

    viewer = browser.open_viewer(on_update=updates.append)

    assert len(browser.registry) == 1
    assert updates and updates[0].selection.has_handout

    path = make_report("A", "H1", "2024-01-02-00-00-00", "check00")
    assert browser.watcher.relay(ReportEventKind.NEW_REPORT, str(path)) == 1
    assert [timer.delay for timer in scheduler.active] == [pytest.approx(0.25)]

    viewer.drop()
    assert [timer.delay for timer in scheduler.active][-1] == pytest.approx(1.5)

    browser.stop()
    assert len(browser.registry) == 0
    assert scheduler.active == []


def test_from_config_uses_configured_root(report_root: Path) -> None:
    config = GradeBrowserConfig.model_validate({"index": {"root": str(report_root)}})

    assert ReportBrowser.from_config(config).root == report_root.resolve()


class ScanningSubscriber:
    """Subscriber that rescans through the browser, as a live viewer does."""

    def __init__(self, browser: ReportBrowser, delay: float) -> None:
        self.browser = browser
        self.delay = delay
        self.entered = threading.Event()
        self.scans: list[list[str]] = []

    def send(self, event: ReportEvent) -> None:
        self.entered.set()
        time.sleep(self.delay)
        self.scans.append([assignment.name for assignment in self.browser.list_assignments()])


def test_set_root_while_viewer_scans_from_watcher_thread(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    (first / "A" / "H1" / "grading" / "2024-01-01-00-00-00").mkdir(parents=True)
    write_report(second, "B", "H2", "2024-01-01-00-00-00", "check00")
    browser = ReportBrowser(first)
    subscriber = ScanningSubscriber(browser, delay=0.5)
    browser.registry.add(subscriber)
    browser.start()
    try:
        write_report(first, "A", "H1", "2024-01-01-00-00-00", "check00")
        assert subscriber.entered.wait(timeout=10)

        switcher = threading.Thread(target=browser.set_root, args=(second,), daemon=True)
        switcher.start()
        switcher.join(timeout=15)

        assert not switcher.is_alive()
        assert browser.root == second.resolve()
        assert browser.watcher.root == second.resolve()
        assert browser.watcher.running is True
        assert subscriber.scans
        assert [assignment.name for assignment in browser.list_assignments()] == ["B"]
    finally:
        browser.registry.remove(subscriber)
        browser.stop()
