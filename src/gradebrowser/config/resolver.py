"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Iterable, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import GradeBrowserConfig

ENV_PREFIX = "GRADEBROWSER__"


def resolve_with_precedence(
    *,
    defaults: GradeBrowserConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> GradeBrowserConfig:
    """Layer overrides onto ``defaults``; later sources win.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the YAML configuration file.
        env_overrides: Nested values derived from environment variables.
        cli_overrides: Values supplied on the command line; keys may be dotted.

    Returns:
        GradeBrowserConfig: Validated configuration.

    Raises:
        ConfigError: If an override is malformed or fails validation.
    """

    merged = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for source_name, source in layers:
        if source is not None:
            merged = _deep_merge(merged, _expand_dotted(source, source_name=source_name))

    try:
        return GradeBrowserConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: GradeBrowserConfig) -> Dict[str, str]:
    """Render the config as ``GRADEBROWSER__SECTION__KEY`` variables."""
    flat: Dict[str, str] = {}
    for path, value in _leaves([], config.model_dump(mode="python")):
        key = ENV_PREFIX + "__".join(part.upper() for part in path)
        if isinstance(value, list):
            flat[key] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[key] = "null" if value is None else str(value)
    return flat


def _leaves(prefix: list[str], value: Any) -> Iterable[tuple[list[str], Any]]:
    if isinstance(value, dict):
        for key, child in value.items():
            yield from _leaves(prefix + [str(key)], child)
    else:
        yield prefix, value


def _expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    label = source_name.capitalize()
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{label} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label} override keys must be strings.")
        path = key.split(".")
        node = result
        for segment in path[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(f"{label} override for {key} conflicts with existing value.")
            node = child
        if isinstance(value, MappingABC):
            existing = node.get(path[-1])
            nested = _expand_dotted(value, source_name=source_name)
            node[path[-1]] = _deep_merge(existing, nested) if isinstance(existing, dict) else nested
        else:
            node[path[-1]] = value
    return result


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "resolve_with_precedence", "flatten_for_env"]
