"""Decide where a PR checkout should happen and drive the side effects.

``SmartCheckout.plan`` is pure: it classifies a ``CheckoutContext`` plus an
already-validated known path into one of three strategies. The caller
runs ``RepoLocator.validate`` beforehand (it touches the filesystem and
git), then calls the ``execute_*`` method matching the plan. No state is
kept between ``plan`` and ``execute_*``.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from prhop_core import git_ops
from prhop_core.locator import RepoLocator, Source
from prhop_core.paths import configure_logger
from prhop_core.repo_manager import RepoManager
from prhop_core.repo_ref import RepoRef

_log = configure_logger("prhop.smart_checkout")

# Characters that must not reach a worktree directory name
_BRANCH_UNSAFE = str.maketrans({"/": "-", "\\": "-", ":": "-", " ": "-"})


class CheckoutStrategy(Enum):
    LOCAL = "local"            # cwd is the browsed repo: check out in place
    KNOWN_PATH = "known_path"  # registry has a valid clone elsewhere
    NEEDS_CLONE = "needs_clone"


@dataclass
class CheckoutContext:
    """Where the user is, and which repo they are browsing."""
    browsing_repo: RepoRef
    cwd_repo: Optional[RepoRef]  # None when cwd is not a recognisable repo
    cwd_path: str


@dataclass
class CheckoutPlan:
    strategy: CheckoutStrategy
    target_path: str = ""
    is_known_path: bool = False
    # Always set, so a NEEDS_CLONE plan can be acted on immediately
    cache_clone_path: str = ""


def detect_context(browsing_repo: RepoRef, cwd: Optional[Path] = None) -> CheckoutContext:
    """Build a CheckoutContext from the current directory.

    ``cwd_path`` is the git root when cwd is inside a repository, so a
    checkout started from a subdirectory still targets the repo root.
    """
    cwd = (cwd or Path.cwd()).resolve()
    cwd_repo, git_root = git_ops.detect_repo(cwd)
    return CheckoutContext(
        browsing_repo=browsing_repo,
        cwd_repo=cwd_repo,
        cwd_path=str(git_root or cwd),
    )


def sanitize_branch_name(branch: str) -> str:
    return branch.translate(_BRANCH_UNSAFE)


class SmartCheckout:
    """Checkout decision cascade over a RepoManager and the known-repos registry."""

    def __init__(self, repo_mgr: RepoManager, locator: RepoLocator):
        self.repo_mgr = repo_mgr
        self.locator = locator

    def plan(self, ctx: CheckoutContext, known_path: str = "",
             known_path_valid: bool = False) -> CheckoutPlan:
        """Classify the situation. Performs no I/O.

        *known_path* / *known_path_valid* come from ``locator.validate``.
        """
        plan = CheckoutPlan(
            strategy=CheckoutStrategy.NEEDS_CLONE,
            cache_clone_path=self.locator.cache_clone_path(ctx.browsing_repo),
        )

        if ctx.cwd_repo is not None and ctx.cwd_repo == ctx.browsing_repo:
            plan.strategy = CheckoutStrategy.LOCAL
            plan.target_path = ctx.cwd_path
            return plan

        if known_path_valid and known_path:
            plan.strategy = CheckoutStrategy.KNOWN_PATH
            plan.target_path = known_path
            plan.is_known_path = True
            return plan

        return plan

    def learn(self, ctx: CheckoutContext) -> bool:
        """Remember the cwd repo's location as ``detected``.

        Skips the write when the registry already maps the repo to this
        path. Returns True if the registry was updated.
        """
        if ctx.cwd_repo is None:
            return False
        if self.locator.lookup(ctx.cwd_repo) == ctx.cwd_path:
            return False
        self.locator.register(ctx.cwd_repo, ctx.cwd_path, Source.DETECTED)
        return True

    def execute_clone(self, repo: RepoRef, target_path: str) -> None:
        """Clone *repo* and record the clone in the registry.

        A failed clone propagates and leaves the registry untouched.
        """
        self.repo_mgr.clone_repo(repo, target_path)
        self.locator.register(repo, target_path, Source.CLONED)

    def execute_checkout(self, repo: RepoRef, number: int, work_dir: str) -> str:
        """Check out PR *number* in *work_dir*; return the local branch name."""
        return self.repo_mgr.checkout_at(repo, number, work_dir)

    def execute_worktree(self, repo: RepoRef, number: int, branch: str, base_path: str) -> str:
        """Create a worktree for PR *number* under *base_path*; return its path."""
        wt_path = self.worktree_path(number, branch, base_path)
        _log.info("execute_worktree: %s#%d -> %s", repo, number, wt_path)
        self.repo_mgr.create_worktree(base_path, number, branch, wt_path)
        return wt_path

    @staticmethod
    def worktree_path(number: int, branch: str, base_path: str) -> str:
        """Path a worktree for PR *number* would get: ``<base>/.worktrees/pr-N-<branch>``."""
        return str(Path(base_path) / ".worktrees" / f"pr-{number}-{sanitize_branch_name(branch)}")
