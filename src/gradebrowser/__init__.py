"""GradeBrowser: index grading report trees and follow new runs as they land."""

from importlib import metadata as _metadata

from gradebrowser.service import ReportBrowser

__all__ = ["ReportBrowser", "__version__"]


def __getattr__(name: str):
    if name == "__version__":
        return _metadata.version("gradebrowser")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
