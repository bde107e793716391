"""Report index errors."""


class GradeBrowserError(Exception):
    """Base exception for report index operations."""


class InvalidRootError(GradeBrowserError):
    """Raised when a requested root is missing or is not a directory."""


class ScanIOError(GradeBrowserError):
    """Raised when a single node of the report tree cannot be read."""


class ReportNotFoundError(GradeBrowserError):
    """Raised when a targeted report lookup finds no matching file."""
