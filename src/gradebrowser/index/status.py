"""Heuristic pass/fail classification of report HTML.

The reports are free-form HTML produced by the grading pipeline, so the
outcome is inferred from marker substrings rather than parsed. Markers are
tested in a fixed priority so that a report carrying several signals always
resolves the same way. Student output that happens to contain a marker (for
example the literal word ``FAILED``) will be misclassified; that is a known
limitation of the format.
"""

from __future__ import annotations

from pathlib import Path

from .models import CheckStatus


COMPILE_FAILURE_MARKERS = ("Compilation failed", "COMPILATION FAILED", "compilation-error")
ERROR_SECTION_MARKER = 'class="errors"'
NO_ERRORS_PLACEHOLDER = "No errors"
FAILED_TEST_MARKERS = ("FAILED", "Test failed", 'class="fail"')
EXCEPTION_MARKER = "Exception"
STACK_FRAME_MARKERS = ("\tat ", "    at ")
PASS_MARKERS = ("PASSED", "Test passed", "All tests passed", 'class="pass"', "SUCCESS")


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def _has_error_section(text: str) -> bool:
    return ERROR_SECTION_MARKER in text and NO_ERRORS_PLACEHOLDER not in text


def _has_stack_trace(text: str) -> bool:
    return EXCEPTION_MARKER in text and _contains_any(text, STACK_FRAME_MARKERS)


def classify(html_text: str) -> CheckStatus:
    """Return the status signalled by a report's text.

    Args:
        html_text: Raw report markup.

    Returns:
        CheckStatus: ``error`` for compile failures, ``fail`` for error
        sections, failed tests, or stack traces, ``pass`` for success markers,
        and ``unknown`` otherwise.
    """

    if _contains_any(html_text, COMPILE_FAILURE_MARKERS):
        return CheckStatus.ERROR
    if (
        _has_error_section(html_text)
        or _contains_any(html_text, FAILED_TEST_MARKERS)
        or _has_stack_trace(html_text)
    ):
        return CheckStatus.FAIL
    if _contains_any(html_text, PASS_MARKERS):
        return CheckStatus.PASS
    return CheckStatus.UNKNOWN


def read_report(path: Path) -> str:
    """Read a report body, replacing undecodable bytes."""
    return path.read_text(encoding="utf-8", errors="replace")


def classify_file(path: Path) -> CheckStatus:
    """Classify the report stored at ``path``.

    Raises:
        OSError: If the report cannot be read.
    """
    return classify(read_report(path))


__all__ = ["classify", "classify_file", "read_report"]
