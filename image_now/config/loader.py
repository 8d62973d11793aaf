"""YAML configuration loading for image_now."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Union

import yaml

PathLike = Union[str, Path]

CONFIG_ENV_VAR = "IMAGE_NOW_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"


def _merge_dicts(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> None:
    """Fold nested override sections into the loaded settings; scalars and lists replace."""
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, MutableMapping) and isinstance(value, Mapping):
            _merge_dicts(current, value)
        else:
            base[key] = copy.deepcopy(value)


def resolve_config_path(path: Optional[PathLike] = None) -> Path:
    """Explicit path first, then ``$IMAGE_NOW_CONFIG``, then the bundled defaults."""
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(
    path: Optional[PathLike] = None, *, overrides: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Read the YAML settings file and layer ``overrides`` on top of it.

    Raises:
        FileNotFoundError: If the resolved path does not exist.
        ValueError: If the document root is not a mapping.
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    if overrides:
        _merge_dicts(data, overrides)
    return data


def get_section(config: Mapping[str, Any], section: str, default: Optional[Any] = None) -> Any:
    """Deep copy of one settings section, so callers can tweak it without touching ``config``."""
    return copy.deepcopy(config.get(section, default))


__all__ = ["load_config", "get_section", "resolve_config_path", "DEFAULT_CONFIG_PATH", "CONFIG_ENV_VAR"]
