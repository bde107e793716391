"""Configuration management for GradeBrowser."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import GradeBrowserConfig
from .resolver import ENV_PREFIX, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.gradebrowser/config.yaml")
LEGACY_ROOT_ENV = "AUTOLAB_ROOT"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # GradeBrowser configuration file
    # Generated automatically; manage via the `gradebrowser config set` command.
    """
)


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> GradeBrowserConfig:
        """Load configuration from disk, then layer environment and CLI overrides.

        Args:
            cli_overrides: Dotted-key overrides from the command line.
            include_env: Whether environment variables participate.
            ensure_file: Create the configuration file with defaults if missing.
            env_overrides: Environment mapping to use instead of ``os.environ``.

        Returns:
            GradeBrowserConfig: Resolved configuration.

        Raises:
            ConfigError: If the file or any override is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_data: Mapping[str, str] | None = None
        if include_env:
            env_data = env_overrides if env_overrides is not None else self._env

        return resolve_with_precedence(
            defaults=GradeBrowserConfig(),
            file_overrides=self._read_file(),
            env_overrides=self._extract_env(env_data) if env_data else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def save(self, config: GradeBrowserConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, GradeBrowserConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(GradeBrowserConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        legacy_root = env.get(LEGACY_ROOT_ENV)
        if legacy_root:
            overrides["index"] = {"root": legacy_root}

        for key, raw_value in env.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
            if not path:
                continue
            try:
                value: Any = yaml.safe_load(raw_value)
            except yaml.YAMLError:
                value = raw_value

            node = overrides
            for segment in path[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
            node[path[-1]] = value

        return overrides


def resolve_root(config: GradeBrowserConfig, override: str | Path | None = None) -> Path:
    """Return the report root from ``override``, the config, or the working directory."""
    candidate = override if override is not None else config.index.root
    if candidate is None or str(candidate) == "":
        return Path.cwd()
    return Path(candidate).expanduser()


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LEGACY_ROOT_ENV",
    "GradeBrowserConfig",
    "resolve_with_precedence",
    "resolve_root",
    "flatten_for_env",
    "ConfigError",
]
