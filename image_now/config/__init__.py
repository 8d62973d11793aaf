"""Configuration helpers for image_now."""

from .loader import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, get_section, load_config, resolve_config_path

__all__ = ["CONFIG_ENV_VAR", "DEFAULT_CONFIG_PATH", "load_config", "get_section", "resolve_config_path"]
