"""Shared test helpers for prhop_core tests."""

import os
import subprocess
import tempfile

import pytest

# Keep loggers configured at import time (and anything else that resolves
# XDG paths) away from the real home directory.
_SANDBOX = tempfile.mkdtemp(prefix="prhop-tests-")
for _var, _sub in (("XDG_CONFIG_HOME", "config"), ("XDG_DATA_HOME", "data"),
                   ("XDG_CACHE_HOME", "cache")):
    os.environ[_var] = os.path.join(_SANDBOX, _sub)
os.environ.pop("PRHOP_DEBUG", None)
os.environ.pop("PRHOP_AUTO_PRUNE", None)


@pytest.fixture(autouse=True)
def xdg_dirs(tmp_path, monkeypatch):
    """Point the XDG directories at a per-test temp dir."""
    dirs = {}
    for var, sub in (("XDG_CONFIG_HOME", "config"), ("XDG_DATA_HOME", "data"),
                     ("XDG_CACHE_HOME", "cache")):
        d = tmp_path / "xdg" / sub
        monkeypatch.setenv(var, str(d))
        dirs[sub] = d
    monkeypatch.delenv("PRHOP_DEBUG", raising=False)
    monkeypatch.delenv("PRHOP_AUTO_PRUNE", raising=False)
    return dirs


def make_git_repo(path, remote_url=None):
    """Create a git repository at *path*, optionally with an origin remote."""
    path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init"], cwd=path, check=True, capture_output=True)
    if remote_url:
        subprocess.run(
            ["git", "remote", "add", "origin", remote_url],
            cwd=path, check=True, capture_output=True,
        )
    return path
