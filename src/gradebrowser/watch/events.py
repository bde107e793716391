"""Events relayed from the report watcher to connected viewers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ReportEventKind(str, Enum):
    """Kinds of report activity the watcher relays."""

    NEW_REPORT = "new-report"
    REPORT_CHANGED = "report-changed"


@dataclass(frozen=True, slots=True)
class ReportEvent:
    """A raw report change, delivered unfiltered to every viewer.

    Attributes:
        kind: Whether the report was created or modified.
        path: Absolute path of the report file that changed.
    """

    kind: ReportEventKind
    path: str

    @property
    def json_payload(self) -> dict[str, Any]:
        return {"event": self.kind.value, "data": {"filePath": self.path}}


__all__ = ["ReportEventKind", "ReportEvent"]
