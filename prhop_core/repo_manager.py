"""Clone, PR checkout and worktree side effects against local repositories.

``RepoManager`` is the capability the checkout planner drives;
``GhRepoManager`` implements it with local git plus the gh CLI.
"""

import shutil
from pathlib import Path
from typing import Optional, Protocol

from prhop_core import gh_ops, git_ops
from prhop_core.paths import configure_logger
from prhop_core.repo_ref import RepoRef

_log = configure_logger("prhop.repo_manager")


class RepoOperationError(Exception):
    """Raised when a clone, checkout or worktree step fails."""

    def __init__(self, message: str, output: str = ""):
        output = (output or "").strip()
        super().__init__(f"{message}: {output}" if output else message)
        self.output = output


class RepoManager(Protocol):
    def checkout_at(self, repo: RepoRef, number: int, work_dir: Optional[str] = None) -> str:
        """Check out PR *number* inside *work_dir* (cwd if empty); return the local branch."""
        ...

    def clone_repo(self, repo: RepoRef, target_path: str) -> None:
        """Clone *repo* to *target_path*, or fetch if a clone is already there."""
        ...

    def create_worktree(self, repo_path: str, number: int, branch: str, worktree_path: str) -> None:
        """Add a worktree at *worktree_path* holding PR *number*."""
        ...


def _output(result) -> str:
    return ((result.stderr or "") + (result.stdout or "")).strip()


class GhRepoManager:
    """RepoManager backed by ``git`` and ``gh``."""

    def checkout_at(self, repo: RepoRef, number: int, work_dir: Optional[str] = None) -> str:
        result = gh_ops.checkout_pr(repo, number, work_dir or None)
        if result.returncode != 0:
            raise RepoOperationError(f"checking out PR #{number}", _output(result))

        # gh pr checkout reports the branch on stderr in a free-form
        # message, so ask git which branch is now checked out.
        branch = git_ops.current_branch(work_dir or None)
        if not branch:
            _log.info("checkout_at: branch detection failed for PR #%d, using fallback", number)
            return f"PR #{number}"
        return branch

    def clone_repo(self, repo: RepoRef, target_path: str) -> None:
        target = Path(target_path)

        if (target / ".git").is_dir():
            _log.info("clone_repo: %s already cloned at %s, fetching", repo, target)
            result = git_ops.fetch_all(target)
            if result.returncode != 0:
                raise RepoOperationError("fetching in existing clone", _output(result))
            return

        # Exists but is not a clone: leftovers from an interrupted clone.
        if target.exists() or target.is_symlink():
            _log.info("clone_repo: removing corrupt clone at %s", target)
            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                else:
                    target.unlink()
            except OSError as e:
                raise RepoOperationError(f"removing corrupt clone at {target}", str(e)) from e

        target.parent.mkdir(parents=True, exist_ok=True)

        result = gh_ops.clone_repo(repo, target)
        if result.returncode != 0:
            shutil.rmtree(target, ignore_errors=True)
            raise RepoOperationError(f"cloning {repo}", _output(result))
        _log.info("clone_repo: cloned %s to %s", repo, target)

    def create_worktree(self, repo_path: str, number: int, branch: str, worktree_path: str) -> None:
        # Never reuse the PR's head branch name locally: a fork PR whose
        # head is "main" would otherwise clobber the local main.
        local_branch = f"pr-{number}"
        repo = Path(repo_path)
        wt = Path(worktree_path)

        result = git_ops.fetch_pr_ref(repo, number, local_branch)
        if result.returncode != 0:
            raise RepoOperationError(f"fetching PR #{number} ref", _output(result))

        preexisting = wt.exists()
        result = git_ops.add_worktree(repo, wt, local_branch)
        if result.returncode != 0:
            error = RepoOperationError("creating worktree", _output(result))
            self._cleanup_worktree(repo, wt, local_branch, remove_dir=not preexisting)
            raise error
        _log.info("create_worktree: PR #%d (%s) at %s", number, branch, wt)

    @staticmethod
    def _cleanup_worktree(repo: Path, wt: Path, local_branch: str, remove_dir: bool = True) -> None:
        """Best-effort rollback of a failed worktree add. Errors are discarded.

        A directory that was already at *wt* before the add belongs to the
        user and is left alone.
        """
        steps = [lambda: git_ops.delete_branch(repo, local_branch)]
        if remove_dir:
            steps.insert(0, lambda: git_ops.remove_worktree(repo, wt))
        for step in steps:
            try:
                step()
            except Exception as e:
                _log.debug("create_worktree cleanup failed: %s", e)
