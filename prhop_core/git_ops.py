"""Git fetch, worktree, branch and remote inspection operations."""

import subprocess
from pathlib import Path
from typing import Optional

from prhop_core.paths import log_shell_command
from prhop_core.repo_ref import RepoRef, parse_remote_url


def get_git_root(start_path: Path | None = None) -> Path | None:
    """Find the git repository root from the given path or cwd.

    Walks up the directory tree looking for .git (a directory for a
    regular clone, a file for a linked worktree).
    """
    path = start_path or Path.cwd()
    path = path.resolve()

    while path != path.parent:
        if (path / ".git").exists():
            return path
        path = path.parent

    # Check root directory too
    if (path / ".git").exists():
        return path
    return None


def run_git(*args: str, cwd: Optional[str | Path] = None, check: bool = True) -> subprocess.CompletedProcess:
    """Run a git command and return result.

    Logs every invocation to the command log.
    """
    cmd = ["git", *args]
    log_shell_command(cmd, prefix="git")
    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
    )
    if result.returncode != 0:
        log_shell_command(cmd, prefix="git", returncode=result.returncode)
    return result


def remote_url(path: Path, remote: str = "origin") -> str | None:
    """Return the URL of *remote* in the repo at *path*, or None."""
    try:
        result = run_git("remote", "get-url", remote, cwd=path, check=False)
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    return url or None


def detect_repo(start_path: Path | None = None) -> tuple[RepoRef | None, Path | None]:
    """Identify the GitHub repository containing *start_path* (default cwd).

    Returns ``(repo, git_root)``. ``repo`` is None when the directory is
    not inside a git repository or its origin is not a GitHub remote.
    """
    git_root = get_git_root(start_path)
    if git_root is None:
        return None, None
    url = remote_url(git_root)
    if not url:
        return None, git_root
    return parse_remote_url(url), git_root


def current_branch(workdir: Optional[str | Path] = None) -> str | None:
    """Return the checked-out branch name, or None (detached HEAD, not a repo)."""
    result = run_git("branch", "--show-current", cwd=workdir, check=False)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def fetch_all(repo_path: Path) -> subprocess.CompletedProcess:
    return run_git("fetch", "--all", cwd=repo_path, check=False)


def fetch_pr_ref(repo_path: Path, number: int, local_branch: str) -> subprocess.CompletedProcess:
    """Fetch ``pull/<number>/head`` from origin into *local_branch*.

    Works for fork PRs too, since GitHub exposes every PR head on the
    base repository.
    """
    return run_git(
        "fetch", "origin", f"pull/{number}/head:{local_branch}",
        cwd=repo_path, check=False,
    )


def add_worktree(repo_path: Path, worktree_path: Path, branch: str) -> subprocess.CompletedProcess:
    return run_git("worktree", "add", str(worktree_path), branch, cwd=repo_path, check=False)


def remove_worktree(repo_path: Path, worktree_path: Path) -> subprocess.CompletedProcess:
    return run_git("worktree", "remove", str(worktree_path), cwd=repo_path, check=False)


def delete_branch(repo_path: Path, branch: str) -> subprocess.CompletedProcess:
    return run_git("branch", "-D", branch, cwd=repo_path, check=False)
