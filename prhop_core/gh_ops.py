"""GitHub CLI wrapper for clone and PR checkout operations."""

import json
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from prhop_core.paths import log_shell_command
from prhop_core.repo_ref import RepoRef


class GhNotAvailable(RuntimeError):
    """Raised when the gh CLI is missing or not authenticated."""


def _check_gh():
    """Check that gh CLI is installed and authenticated. Raise with guidance if not."""
    if not shutil.which("gh"):
        raise GhNotAvailable(
            "prhop requires the GitHub CLI (gh).\n"
            "Install it: https://cli.github.com"
        )

    result = subprocess.run(
        ["gh", "auth", "status"],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise GhNotAvailable(
            "gh CLI is not authenticated.\n"
            "Run: gh auth login"
        )


def run_gh(*args: str, cwd: Optional[str | Path] = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a gh CLI command.

    Logs every invocation to the command log.
    """
    _check_gh()
    cmd = ["gh", *args]
    log_shell_command(cmd, prefix="gh")
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
    )
    if result.returncode != 0:
        log_shell_command(cmd, prefix="gh", returncode=result.returncode)
    return result


def checkout_pr(repo: RepoRef, number: int, workdir: Optional[str | Path] = None) -> subprocess.CompletedProcess:
    """Run ``gh pr checkout`` for PR *number* of *repo* inside *workdir*."""
    return run_gh(
        "pr", "checkout", str(number),
        "--repo", str(repo),
        cwd=workdir or None,
        check=False,
    )


def clone_repo(repo: RepoRef, dest: Path) -> subprocess.CompletedProcess:
    return run_gh("repo", "clone", str(repo), str(dest), check=False)


def pr_head_branch(repo: RepoRef, number: int) -> Optional[str]:
    """Return the head branch name of a PR, or None if it cannot be fetched."""
    result = run_gh(
        "pr", "view", str(number),
        "--repo", str(repo),
        "--json", "headRefName",
        check=False,
    )
    if result.returncode != 0 or not result.stdout.strip():
        return None
    try:
        info = json.loads(result.stdout)
    except json.JSONDecodeError:
        return None
    return info.get("headRefName") or None
