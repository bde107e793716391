"""Report index: classification, status heuristics, and tree scanning."""

from .classifier import (
    REPORT_SUFFIX,
    CheckName,
    candidate_check_ids,
    is_report_file,
    is_timestamp_dir,
    parse_check_file,
    parse_check_id,
)
from .errors import GradeBrowserError, InvalidRootError, ReportNotFoundError, ScanIOError
from .models import (
    Assignment,
    Check,
    CheckStatus,
    GradeCheck,
    Handout,
    Snapshot,
    find_assignment,
    snapshot_payload,
)
from .scanner import ReportScanner, find_report, scan
from .status import classify

__all__ = [
    "REPORT_SUFFIX",
    "CheckName",
    "candidate_check_ids",
    "is_report_file",
    "is_timestamp_dir",
    "parse_check_file",
    "parse_check_id",
    "GradeBrowserError",
    "InvalidRootError",
    "ReportNotFoundError",
    "ScanIOError",
    "Assignment",
    "Check",
    "CheckStatus",
    "GradeCheck",
    "Handout",
    "Snapshot",
    "find_assignment",
    "snapshot_payload",
    "ReportScanner",
    "find_report",
    "scan",
    "classify",
]
