"""Tests for the report tree scanner."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from gradebrowser.index.models import CheckStatus, snapshot_payload
from gradebrowser.index.scanner import ReportScanner, find_report, scan

from conftest import COMPILE_ERROR_REPORT, FAILING_REPORT

MakeReport = Callable[..., Path]


def test_scan_builds_four_level_hierarchy(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")

    snapshot = scan(report_root)

    assert [assignment.name for assignment in snapshot] == ["A"]
    handouts = snapshot[0].handouts
    assert [handout.name for handout in handouts] == ["H1"]
    grade_checks = handouts[0].grade_checks
    assert [grade_check.timestamp for grade_check in grade_checks] == ["2024-01-01-00-00-00"]
    checks = grade_checks[0].checks
    assert [(check.check_id, check.display_name) for check in checks] == [
        ("check00", "Compilation"),
        ("check01", "Task 1"),
    ]
    assert checks[0].filename == "check00-report.html"
    assert Path(checks[0].path).is_file()


def test_scan_empty_root_returns_empty_sequence(report_root: Path) -> None:
    (report_root / "A" / "H1").mkdir(parents=True)

    assert scan(report_root) == ()


def test_scan_missing_root_returns_empty_sequence(tmp_path: Path) -> None:
    assert scan(tmp_path / "missing") == ()


def test_scan_orders_names_and_newest_first(report_root: Path, make_report: MakeReport) -> None:
    make_report("B", "H2", "2024-01-01-00-00-00", "check01")
    make_report("A", "H9", "2024-01-01-00-00-00", "check01")
    make_report("A", "H1", "2023-12-31-23-59-59", "check01")
    make_report("A", "H1", "2024-02-01-08-00-00", "check01")
    make_report("A", "H1", "2024-01-15-12-30-00", "check01")

    snapshot = scan(report_root)

    assert [assignment.name for assignment in snapshot] == ["A", "B"]
    assert [handout.name for handout in snapshot[0].handouts] == ["H1", "H9"]
    timestamps = [grade_check.timestamp for grade_check in snapshot[0].handouts[0].grade_checks]
    assert timestamps == ["2024-02-01-08-00-00", "2024-01-15-12-30-00", "2023-12-31-23-59-59"]
    assert all(earlier > later for earlier, later in zip(timestamps, timestamps[1:]))


def test_scan_pins_compilation_checks_first(report_root: Path, make_report: MakeReport) -> None:
    for check_id in ["check0102", "check0-4", "check0101", "check0000"]:
        make_report("A", "H1", "2024-01-01-00-00-00", check_id)

    checks = scan(report_root)[0].handouts[0].grade_checks[0].checks

    assert [check.check_id for check in checks] == ["check0-4", "check0000", "check0101", "check0102"]


def test_scan_prunes_empty_levels(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")
    (report_root / "A" / "H1" / "grading" / "2024-01-02-00-00-00").mkdir()
    (report_root / "A" / "H1" / "grading" / "not-a-timestamp").mkdir()
    (report_root / "A" / "H2" / "grading").mkdir(parents=True)
    (report_root / "A" / "H3").mkdir()
    (report_root / "Empty" / "H1" / "grading" / "2024-01-01-00-00-00").mkdir(parents=True)
    run_dir = report_root / "A" / "H1" / "grading" / "2024-01-01-00-00-00"
    (run_dir / "notes.txt").write_text("ignore me", encoding="utf-8")

    snapshot = scan(report_root)

    assert [assignment.name for assignment in snapshot] == ["A"]
    assert [handout.name for handout in snapshot[0].handouts] == ["H1"]
    assert len(snapshot[0].handouts[0].grade_checks) == 1
    assert [check.check_id for check in snapshot[0].handouts[0].grade_checks[0].checks] == ["check01"]


def test_scan_classifies_status(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00", COMPILE_ERROR_REPORT)
    make_report("A", "H1", "2024-01-01-00-00-00", "check01", FAILING_REPORT)
    make_report("A", "H1", "2024-01-01-00-00-00", "check02")
    make_report("A", "H1", "2024-01-01-00-00-00", "check03", "<p>hello</p>")

    checks = scan(report_root)[0].handouts[0].grade_checks[0].checks

    assert [check.status for check in checks] == [
        CheckStatus.ERROR,
        CheckStatus.FAIL,
        CheckStatus.PASS,
        CheckStatus.UNKNOWN,
    ]


def test_scan_is_idempotent(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    make_report("A", "H2", "2024-01-02-00-00-00", "check0-1")

    assert scan(report_root) == scan(report_root)


def test_scan_skips_hidden_directories(report_root: Path, make_report: MakeReport) -> None:
    make_report(".cache", "H1", "2024-01-01-00-00-00", "check01")
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")

    assert [assignment.name for assignment in scan(report_root)] == ["A"]
    hidden_too = ReportScanner(include_hidden=True).scan(report_root)
    assert [assignment.name for assignment in hidden_too] == [".cache", "A"]


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="requires POSIX permissions as non-root")
def test_scan_unreadable_node_does_not_abort_siblings(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")
    make_report("B", "H1", "2024-01-01-00-00-00", "check01")
    locked = report_root / "A" / "H1" / "grading"
    locked.chmod(0)
    try:
        snapshot = scan(report_root)
    finally:
        locked.chmod(0o755)

    assert [assignment.name for assignment in snapshot] == ["B"]


def test_snapshot_payload_uses_camel_case(report_root: Path, make_report: MakeReport) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check0003")

    payload = snapshot_payload(scan(report_root))

    check = payload[0]["handouts"][0]["gradeChecks"][0]["checks"][0]
    assert check["checkId"] == "check0003"
    assert check["displayName"] == "Compilation 3"
    assert check["status"] == "pass"


def test_find_report_tries_legacy_identifiers(report_root: Path, make_report: MakeReport) -> None:
    padded = make_report("A", "H1", "2024-01-01-00-00-00", "check03")
    dashed = make_report("A", "H1", "2024-01-01-00-00-00", "check0-2")

    assert find_report(report_root, "H1", "2024-01-01-00-00-00", "check3") == padded
    assert find_report(report_root, "H1", "2024-01-01-00-00-00", "check03") == padded
    assert find_report(report_root, "H1", "2024-01-01-00-00-00", "check0002") == dashed


def test_find_report_searches_every_assignment(report_root: Path, make_report: MakeReport) -> None:
    expected = make_report("B", "H7", "2024-01-01-00-00-00", "check01")
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")

    assert find_report(report_root, "H7", "2024-01-01-00-00-00", "check01") == expected


@pytest.mark.parametrize(
    ("handout", "timestamp", "check_id"),
    [
        ("H1", "2024-01-01-00-00-00", "check09"),
        ("H2", "2024-01-01-00-00-00", "check01"),
        ("H1", "2024-01-01-00-00-01", "check01"),
        ("H1", "../../etc", "check01"),
        ("..", "2024-01-01-00-00-00", "check01"),
    ],
)
def test_find_report_returns_none_when_missing(
    report_root: Path, make_report: MakeReport, handout: str, timestamp: str, check_id: str
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")

    assert find_report(report_root, handout, timestamp, check_id) is None


@pytest.mark.parametrize(
    "check_id",
    ["../../../../../outside/secret", "../secret", "..", ".", "", "sub/check01"],
)
def test_find_report_rejects_path_like_check_ids(
    tmp_path: Path, report_root: Path, make_report: MakeReport, check_id: str
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check01")
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret-report.html").write_text("secret", encoding="utf-8")
    (report_root / "A" / "H1" / "grading" / "secret-report.html").write_text("secret", encoding="utf-8")

    assert find_report(report_root, "H1", "2024-01-01-00-00-00", check_id) is None


@pytest.mark.skipif(os.name != "posix", reason="requires POSIX symlinks")
def test_follow_symlinks_applies_to_grading_directory(tmp_path: Path, report_root: Path) -> None:
    elsewhere = tmp_path / "elsewhere"
    run_dir = elsewhere / "grading" / "2024-01-01-00-00-00"
    run_dir.mkdir(parents=True)
    (run_dir / "check01-report.html").write_text("All tests passed", encoding="utf-8")
    handout = report_root / "A" / "H1"
    handout.mkdir(parents=True)
    (handout / "grading").symlink_to(elsewhere / "grading", target_is_directory=True)

    followed = ReportScanner(follow_symlinks=True)
    not_followed = ReportScanner(follow_symlinks=False)

    assert [assignment.name for assignment in followed.scan(report_root)] == ["A"]
    assert not_followed.scan(report_root) == ()
    assert followed.find_report(report_root, "H1", "2024-01-01-00-00-00", "check01") is not None
