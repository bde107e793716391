"""Tests for viewer connections and reconnect behavior."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from gradebrowser.index.models import Snapshot
from gradebrowser.index.scanner import scan
from gradebrowser.viewer.connection import ConnectionState, ViewerConnection
from gradebrowser.viewer.reconciler import Reconciler, ViewerStatus
from gradebrowser.watch.events import ReportEvent, ReportEventKind
from gradebrowser.watch.registry import SubscriberRegistry

from conftest import FakeScheduler

MakeReport = Callable[..., Path]


class FlakyLoader:
    """Snapshot loader that fails a configurable number of times."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.failures = 0
        self.calls = 0

    def __call__(self) -> Snapshot:
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise OSError("report root unavailable")
        return scan(self.root)


def _connection(
    loader: Callable[[], Snapshot], scheduler: FakeScheduler
) -> tuple[ViewerConnection, SubscriberRegistry, list[ViewerStatus]]:
    registry = SubscriberRegistry()
    statuses: list[ViewerStatus] = []
    reconciler = Reconciler(loader, scheduler=scheduler, on_status=statuses.append)
    connection = ViewerConnection(registry, reconciler, scheduler=scheduler, reconnect_delay=3.0)
    return connection, registry, statuses


def test_connect_registers_and_loads_snapshot(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    connection, registry, statuses = _connection(FlakyLoader(report_root), scheduler)

    connection.connect()

    assert connection.state is ConnectionState.CONNECTED
    assert len(registry) == 1
    assert statuses == [ViewerStatus.CONNECTED]
    assert [assignment.name for assignment in connection.reconciler.snapshot] == ["A"]
    assert connection.reconciler.selection.has_handout is True


def test_events_flow_from_registry_to_reconciler(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    connection, registry, _ = _connection(FlakyLoader(report_root), scheduler)
    connection.connect()

    path = make_report("A", "H1", "2024-01-02-00-00-00", "check00")
    assert registry.broadcast(ReportEvent(ReportEventKind.NEW_REPORT, str(path))) == 1

    assert connection.reconciler.status is ViewerStatus.WAITING
    assert len(scheduler.active) == 1


def test_drop_schedules_reconnect(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    connection, registry, statuses = _connection(FlakyLoader(report_root), scheduler)
    connection.connect()

    connection.drop()

    assert connection.state is ConnectionState.DISCONNECTED
    assert len(registry) == 0
    assert statuses[-1] is ViewerStatus.DISCONNECTED
    assert [timer.delay for timer in scheduler.active] == [pytest.approx(3.0)]

    scheduler.fire()

    assert connection.state is ConnectionState.CONNECTED
    assert len(registry) == 1
    assert connection.attempts == 2
    assert statuses[-1] is ViewerStatus.CONNECTED


def test_reconnect_retries_until_it_succeeds(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    loader = FlakyLoader(report_root)
    connection, registry, _ = _connection(loader, scheduler)
    connection.connect()
    loader.failures = 3

    connection.drop()
    for _ in range(3):
        assert scheduler.fire() == 1
        assert connection.state is ConnectionState.DISCONNECTED
        assert len(registry) == 0

    assert scheduler.fire() == 1
    assert connection.state is ConnectionState.CONNECTED
    assert connection.attempts == 5
    assert scheduler.active == []


def test_initial_connect_failure_propagates(report_root: Path, scheduler: FakeScheduler) -> None:
    loader = FlakyLoader(report_root)
    loader.failures = 1
    connection, registry, _ = _connection(loader, scheduler)

    with pytest.raises(OSError):
        connection.connect()

    assert connection.state is ConnectionState.DISCONNECTED
    assert len(registry) == 0


def test_close_cancels_pending_reconnect(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    connection, registry, _ = _connection(FlakyLoader(report_root), scheduler)
    connection.connect()
    connection.drop()

    connection.close()

    assert scheduler.active == []
    assert len(registry) == 0
    with pytest.raises(RuntimeError):
        connection.connect()


def test_close_while_connected_does_not_reconnect(
    report_root: Path, make_report: MakeReport, scheduler: FakeScheduler
) -> None:
    make_report("A", "H1", "2024-01-01-00-00-00", "check00")
    connection, registry, statuses = _connection(FlakyLoader(report_root), scheduler)
    connection.connect()

    connection.close()

    assert connection.state is ConnectionState.DISCONNECTED
    assert len(registry) == 0
    assert scheduler.active == []
    assert statuses[-1] is ViewerStatus.DISCONNECTED
