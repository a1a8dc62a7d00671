"""
Configuration loader for Reflect.

Reads reflect.yaml (explicit path, then the working directory, then the
project root), validates it against ReflectSettings and applies
environment overrides on top.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from reflect.config.schema import ReflectSettings
from reflect.exceptions import ConfigurationError

CONFIG_FILENAME = "reflect.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Locate reflect.yaml in the working directory or the project root."""
    cwd_candidate = (start or Path.cwd()) / CONFIG_FILENAME
    if cwd_candidate.is_file():
        return cwd_candidate

    current = Path(__file__).resolve()
    for parent in current.parents:
        candidate = parent / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.lower().strip()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{name} must be a boolean (true/false), got '{value}'"
    )


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if environ.get("REFLECT_ENV"):
        overrides["env"] = environ["REFLECT_ENV"]
    if environ.get("REFLECT_LOG_LEVEL"):
        overrides["log_level"] = environ["REFLECT_LOG_LEVEL"]
    if environ.get("REFLECT_DATA_DIR"):
        overrides["data_dir"] = environ["REFLECT_DATA_DIR"]
    if "REFLECT_DEMO_MODE" in environ:
        overrides["demo_mode"] = _parse_bool(
            "REFLECT_DEMO_MODE", environ["REFLECT_DEMO_MODE"]
        )
    return overrides


def load_settings(
    config_path: Optional[str | Path] = None,
    environ: Optional[dict[str, str]] = None,
) -> ReflectSettings:
    """
    Load and validate Reflect's configuration.

    Args:
        config_path: Optional explicit path to reflect.yaml. Without one,
                     a missing file simply means "all defaults".
        environ: Environment to read overrides from (default: os.environ).

    Returns:
        Validated ReflectSettings instance.

    Raises:
        ConfigurationError: The file is missing (explicit path only),
                            not a mapping, or fails validation.
    """
    environ = dict(os.environ) if environ is None else environ

    if config_path is not None:
        path: Optional[Path] = Path(config_path)
        if not path.is_file():
            raise ConfigurationError(
                f"Config not found: {path}", config_path=str(path)
            )
    else:
        path = find_config_file()

    raw: dict[str, Any] = {}
    if path is not None:
        with open(path, "r") as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Could not parse {path}:\n{e}", config_path=str(path)
                ) from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Config must be a mapping: {path}", config_path=str(path)
            )
        raw = loaded or {}

    raw.update(_env_overrides(environ))

    try:
        return ReflectSettings(**raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid Reflect config:\n{e}",
            config_path=str(path) if path else None,
        ) from e
