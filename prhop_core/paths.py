"""Centralized path management for prhop.

prhop follows the XDG base directory layout:
- $XDG_CONFIG_HOME/prhop/  - config.yaml
- $XDG_DATA_HOME/prhop/    - known-repos.json registry and debug logs
- $XDG_CACHE_HOME/prhop/   - managed clones (clones/<owner>/<name>)

Each falls back to the usual ~/.config, ~/.local/share and ~/.cache
locations when the environment variable is unset or empty.
"""

import logging
import os
import shlex
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_NAME = "prhop"


def _xdg_dir(env_var: str, *fallback: str) -> Path:
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home().joinpath(*fallback) / APP_NAME


def config_dir() -> Path:
    """Return the config directory (not created)."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def data_dir() -> Path:
    """Return the data directory holding the known-repos registry (not created)."""
    return _xdg_dir("XDG_DATA_HOME", ".local", "share")


def cache_dir() -> Path:
    """Return the cache directory holding managed clones (not created)."""
    return _xdg_dir("XDG_CACHE_HOME", ".cache")


def known_repos_file() -> Path:
    return data_dir() / "known-repos.json"


def debug_dir(create: bool = True) -> Path:
    """Return the debug/logs directory, creating it unless *create* is False."""
    d = data_dir() / "debug"
    if create:
        d.mkdir(parents=True, exist_ok=True)
    return d


def command_log_file(create: bool = True) -> Path:
    """Path of the shared log that all prhop processes append to."""
    return debug_dir(create) / f"{APP_NAME}.log"


def debug_enabled() -> bool:
    """Check whether debug logging is on (PRHOP_DEBUG or the debug setting)."""
    from prhop_core.settings import load_settings, SettingsError

    try:
        return load_settings().debug
    except SettingsError:
        return False


class _DebugLogHandler(RotatingFileHandler):
    """RotatingFileHandler that creates the debug directory on first write."""

    def _open(self):
        Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        return super()._open()


def configure_logger(name: str, max_bytes: int = 10_000_000) -> logging.Logger:
    """Configure a logger that writes to the debug log with rotation.

    Args:
        name: Logger name (e.g., "prhop.locator")
        max_bytes: Maximum log file size before rotation (default 10MB)

    Both the debug directory and the file are created on the first
    record, so importing a module that configures a logger touches
    nothing on disk.
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    handler = _DebugLogHandler(
        command_log_file(create=False),
        maxBytes=max_bytes,
        backupCount=1,
        delay=True,
    )
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(handler)
    logger.propagate = False

    if debug_enabled():
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    return logger


def log_shell_command(cmd: list[str] | str, prefix: str = "shell", returncode: int | None = None) -> None:
    """Log a shell command to the central command log.

    Args:
        cmd: Command list or string to log
        prefix: Prefix for the log entry (e.g., "git", "gh")
        returncode: If provided, logs as completion with return code
    """
    cmd_str = shlex.join(cmd) if isinstance(cmd, list) else cmd

    try:
        from datetime import datetime
        timestamp = datetime.now().strftime("%H:%M:%S")

        if returncode is not None:
            if returncode == 0:
                entry = f"{timestamp} INFO  {prefix} done: {cmd_str}\n"
            else:
                entry = f"{timestamp} WARN  {prefix} failed (rc={returncode}): {cmd_str}\n"
        else:
            entry = f"{timestamp} INFO  {prefix}: {cmd_str}\n"

        with open(command_log_file(), "a") as f:
            f.write(entry)
    except (OSError, IOError):
        pass  # Silently fail if we can't write to log
