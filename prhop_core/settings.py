"""User settings loaded from config.yaml with environment overrides."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from prhop_core.paths import config_dir

DEFAULT_LOCK_TIMEOUT = 5.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class SettingsError(ValueError):
    """Raised when config.yaml exists but cannot be used."""


@dataclass
class Settings:
    """Effective prhop settings."""
    auto_prune: bool = True
    debug: bool = False
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT


def settings_file() -> Path:
    return config_dir() / "config.yaml"


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise SettingsError(f"{name} must be a boolean (got {raw!r})")


def _bool_key(data: dict, key: str, default: bool, path: Path) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise SettingsError(f"{path}: '{key}' must be true or false")
    return value


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from *path* (default: the XDG config file).

    A missing file yields the defaults. PRHOP_AUTO_PRUNE and PRHOP_DEBUG
    override the file.
    """
    path = path or settings_file()
    data: dict = {}
    if path.exists():
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SettingsError(f"{path}: invalid YAML: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise SettingsError(f"{path}: expected a mapping at the top level")
        data = loaded

    settings = Settings(
        auto_prune=_bool_key(data, "auto_prune", True, path),
        debug=_bool_key(data, "debug", False, path),
    )

    timeout = data.get("lock_timeout", DEFAULT_LOCK_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise SettingsError(f"{path}: 'lock_timeout' must be a positive number of seconds")
    settings.lock_timeout = float(timeout)

    env_prune = _env_flag("PRHOP_AUTO_PRUNE")
    if env_prune is not None:
        settings.auto_prune = env_prune
    env_debug = _env_flag("PRHOP_DEBUG")
    if env_debug is not None:
        settings.debug = env_debug

    return settings
