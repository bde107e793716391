"""Configuration models describing GradeBrowser settings."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GradeBrowserBaseModel(BaseModel):
    """Shared configuration for GradeBrowser Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class IndexSettings(GradeBrowserBaseModel):
    """Settings that govern how the report tree is scanned.

    Attributes:
        root: Directory holding assignment folders; defaults to the working directory.
        include_hidden: Whether dot-directories are scanned and watched.
        follow_symlinks: Whether symbolic links to directories are traversed.
    """

    root: Optional[str] = None
    include_hidden: bool = False
    follow_symlinks: bool = True


class WatchSettings(GradeBrowserBaseModel):
    """Live-update behavior.

    Attributes:
        debounce_ms: Quiet period that folds a burst of new reports into one refresh.
        reconnect_delay_seconds: Fixed delay between viewer reconnect attempts.
        stop_timeout_seconds: Time to wait for the observer thread on shutdown.
    """

    debounce_ms: int = Field(default=800, ge=0)
    reconnect_delay_seconds: float = Field(default=3.0, gt=0)
    stop_timeout_seconds: float = Field(default=5.0, gt=0)


class LoggingSettings(GradeBrowserBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: str = "WARNING"


class CLIOptions(GradeBrowserBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class GradeBrowserConfig(GradeBrowserBaseModel):
    """Top-level configuration struct for GradeBrowser.

    Attributes:
        index: Report tree scanning settings.
        watch: Live-update settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    index: IndexSettings = Field(default_factory=IndexSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "GradeBrowserBaseModel",
    "IndexSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "GradeBrowserConfig",
]
