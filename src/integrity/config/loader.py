"""Config loading entry points for the integrity tool."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from pydantic import ValidationError

from .models import IntegrityConfig

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for earlier interpreters
    import tomli as tomllib  # type: ignore[assignment]

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "integrity.default.yaml"

ENV_OVERRIDES: Mapping[str, str] = {
    "INTEGRITY_THREADS": "runtime.parallelism",
    "INTEGRITY_CHUNK_SIZE": "runtime.chunk_size",
    "INTEGRITY_ALGORITHM": "hashing.default_algorithm",
}


class ConfigError(RuntimeError):
    """Raised when configuration files cannot be loaded or validated."""


def load_config(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> IntegrityConfig:
    """Load the configuration, layering defaults, `path`, environment and `overrides`.

    Later layers win key by key; nested sections are merged rather than
    replaced, so ``{"runtime.parallelism": 4}`` keeps the other runtime keys.
    """

    settings = _parse_file(DEFAULT_CONFIG_PATH)
    layers = [
        _parse_file(path) if path else {},
        _nest_dotted(_environment_overrides()),
        _nest_dotted(overrides or {}),
    ]
    for layer in layers:
        _apply_layer(settings, layer)

    try:
        return IntegrityConfig.model_validate(settings)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def dump_example_config(dest: Path) -> None:
    """Write the default configuration to ``dest``."""

    suffix = dest.suffix.lower()
    if suffix == ".toml":
        raise ConfigError("TOML export is not supported yet; use a YAML destination.")

    dest.parent.mkdir(parents=True, exist_ok=True)
    settings = _parse_file(DEFAULT_CONFIG_PATH)
    if suffix == ".json":
        dest.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    else:
        dest.write_text(yaml.safe_dump(settings, sort_keys=False), encoding="utf-8")


def _environment_overrides() -> dict[str, str]:
    """Collect non-empty ``INTEGRITY_*`` variables as dotted overrides."""

    result: dict[str, str] = {}
    for variable, key in ENV_OVERRIDES.items():
        value = os.getenv(variable, "").strip()
        if value:
            result[key] = value
    return result


_PARSERS: Mapping[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".toml": tomllib.loads,
    ".json": json.loads,
}


def _parse_file(path: Path) -> dict[str, Any]:
    """Parse a settings file into a fresh dict; an empty file yields ``{}``."""

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise ConfigError(f"Unsupported config format for {path}; use one of {', '.join(sorted(_PARSERS))}")
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file {path} does not exist.") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    try:
        payload = parser(text)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, ValueError) as exc:
        raise ConfigError(f"Cannot parse config file {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError(f"{path} must hold a mapping of sections, not {type(payload).__name__}.")
    return payload


def _apply_layer(settings: dict[str, Any], layer: Mapping[str, Any]) -> None:
    """Merge `layer` into `settings` in place, descending into shared sections."""

    for key, value in layer.items():
        current = settings.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _apply_layer(current, value)
        elif isinstance(value, Mapping):
            settings[key] = {}
            _apply_layer(settings[key], value)
        else:
            settings[key] = value


def _nest_dotted(flat: Mapping[str, Any]) -> dict[str, Any]:
    """Turn ``{"runtime.parallelism": 4}`` into ``{"runtime": {"parallelism": 4}}``."""

    nested: dict[str, Any] = {}
    for key, value in flat.items():
        *sections, leaf = str(key).split(".")
        target = nested
        for section in sections:
            if not isinstance(target.get(section), dict):
                target[section] = {}
            target = target[section]
        _apply_layer(target, {leaf: value})
    return nested


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "ENV_OVERRIDES",
    "dump_example_config",
    "load_config",
]
