"""Tests for prhop_core.smart_checkout: planning and execution."""

from pathlib import Path
from unittest.mock import patch

import pytest

from prhop_core.locator import RepoLocator, Source
from prhop_core.repo_manager import RepoOperationError
from prhop_core.repo_ref import RepoRef
from prhop_core.smart_checkout import (
    CheckoutContext,
    CheckoutStrategy,
    SmartCheckout,
    detect_context,
    sanitize_branch_name,
)

REPO = RepoRef("indrasvat", "vivecaka")
OTHER = RepoRef("someone", "else")


class FakeRepoManager:
    """Records calls; fails on demand."""

    def __init__(self, checkout_branch="feat/test", clone_err=None,
                 checkout_err=None, worktree_err=None):
        self.checkout_branch = checkout_branch
        self.clone_err = clone_err
        self.checkout_err = checkout_err
        self.worktree_err = worktree_err
        self.checkout_calls = []
        self.clone_calls = []
        self.worktree_calls = []

    def checkout_at(self, repo, number, work_dir=None):
        self.checkout_calls.append((repo, number, work_dir))
        if self.checkout_err:
            raise self.checkout_err
        return self.checkout_branch

    def clone_repo(self, repo, target_path):
        self.clone_calls.append((repo, target_path))
        if self.clone_err:
            raise self.clone_err

    def create_worktree(self, repo_path, number, branch, worktree_path):
        self.worktree_calls.append((repo_path, number, branch, worktree_path))
        if self.worktree_err:
            raise self.worktree_err


@pytest.fixture
def locator(tmp_path):
    return RepoLocator(data_path=tmp_path / "known.json", cache_root=tmp_path / "cache",
                       lock_timeout=2.0, auto_prune=True)


@pytest.fixture
def rm():
    return FakeRepoManager()


@pytest.fixture
def uc(rm, locator):
    return SmartCheckout(rm, locator)


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------

class TestPlan:
    def test_local(self, uc):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=REPO, cwd_path="/code/vivecaka")
        plan = uc.plan(ctx, "", False)
        assert plan.strategy is CheckoutStrategy.LOCAL
        assert plan.target_path == "/code/vivecaka"
        assert plan.is_known_path is False

    def test_local_is_case_insensitive(self, uc):
        ctx = CheckoutContext(browsing_repo=REPO,
                              cwd_repo=RepoRef("IndrasVat", "ViveCaka"), cwd_path="/c")
        assert uc.plan(ctx).strategy is CheckoutStrategy.LOCAL

    def test_local_wins_over_known_path(self, uc):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=REPO, cwd_path="/here")
        plan = uc.plan(ctx, "/elsewhere", True)
        assert plan.strategy is CheckoutStrategy.LOCAL
        assert plan.target_path == "/here"

    def test_known_path(self, uc):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=OTHER, cwd_path="/code/else")
        plan = uc.plan(ctx, "/x", True)
        assert plan.strategy is CheckoutStrategy.KNOWN_PATH
        assert plan.target_path == "/x"
        assert plan.is_known_path is True

    def test_known_path_when_cwd_not_a_repo(self, uc):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=None, cwd_path="/tmp")
        plan = uc.plan(ctx, "/x", True)
        assert plan.strategy is CheckoutStrategy.KNOWN_PATH

    def test_needs_clone_when_known_path_invalid(self, uc, locator):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=OTHER, cwd_path="/code/else")
        plan = uc.plan(ctx, "/x", False)
        assert plan.strategy is CheckoutStrategy.NEEDS_CLONE
        assert plan.target_path == ""
        assert plan.is_known_path is False
        assert plan.cache_clone_path == locator.cache_clone_path(REPO)
        assert plan.cache_clone_path

    def test_needs_clone_when_known_path_empty(self, uc):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=None, cwd_path="/tmp")
        assert uc.plan(ctx, "", True).strategy is CheckoutStrategy.NEEDS_CLONE

    @pytest.mark.parametrize("cwd_repo,known,valid", [
        (REPO, "", False),
        (OTHER, "/x", True),
        (None, "", False),
    ])
    def test_cache_clone_path_always_set(self, uc, locator, cwd_repo, known, valid):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=cwd_repo, cwd_path="/c")
        assert uc.plan(ctx, known, valid).cache_clone_path == locator.cache_clone_path(REPO)

    def test_plan_does_no_io(self, rm, locator):
        uc = SmartCheckout(rm, locator)
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=OTHER, cwd_path="/c")
        with patch.object(locator, "lookup") as lookup, patch.object(locator, "validate") as validate:
            uc.plan(ctx, "/x", True)
        lookup.assert_not_called()
        validate.assert_not_called()
        assert not locator.data_path.exists()
        assert rm.checkout_calls == rm.clone_calls == rm.worktree_calls == []


# ---------------------------------------------------------------------------
# execute_*
# ---------------------------------------------------------------------------

class TestExecuteClone:
    def test_success_registers_cloned(self, uc, rm, locator):
        uc.execute_clone(REPO, "/tmp/clone")
        assert rm.clone_calls == [(REPO, "/tmp/clone")]
        assert locator.lookup(REPO) == "/tmp/clone"
        assert locator.all()[0].source is Source.CLONED

    def test_failure_leaves_registry_untouched(self, locator):
        rm = FakeRepoManager(clone_err=RepoOperationError("cloning indrasvat/vivecaka", "boom"))
        uc = SmartCheckout(rm, locator)

        with pytest.raises(RepoOperationError, match="boom"):
            uc.execute_clone(REPO, "/tmp/clone")

        assert locator.lookup(REPO) is None
        assert not locator.data_path.exists()


class TestExecuteCheckout:
    def test_returns_branch(self, uc, rm):
        assert uc.execute_checkout(REPO, 42, "/code") == "feat/test"
        assert rm.checkout_calls == [(REPO, 42, "/code")]

    def test_error_propagates(self, locator):
        err = RepoOperationError("checking out PR #42", "no such PR")
        uc = SmartCheckout(FakeRepoManager(checkout_err=err), locator)
        with pytest.raises(RepoOperationError) as exc_info:
            uc.execute_checkout(REPO, 42, "/code")
        assert exc_info.value is err


class TestWorktree:
    def test_path_sanitization(self):
        assert SmartCheckout.worktree_path(42, "feature/add:thing", "/base") == \
            "/base/.worktrees/pr-42-feature-add-thing"

    def test_path_backslash_and_space(self, uc):
        assert uc.worktree_path(7, "a\\b c", "/repo") == "/repo/.worktrees/pr-7-a-b-c"

    def test_sanitized_name_has_no_separator(self):
        assert "/" not in sanitize_branch_name("../../etc/passwd")

    def test_execute_worktree(self, uc, rm):
        path = uc.execute_worktree(REPO, 42, "feat/auth", "/code/vivecaka")
        assert path == "/code/vivecaka/.worktrees/pr-42-feat-auth"
        assert rm.worktree_calls == [("/code/vivecaka", 42, "feat/auth", path)]

    def test_execute_worktree_does_not_register(self, uc, locator):
        uc.execute_worktree(REPO, 1, "main", "/code")
        assert locator.all() == []

    def test_execute_worktree_error_propagates(self, locator):
        uc = SmartCheckout(FakeRepoManager(worktree_err=RepoOperationError("creating worktree")), locator)
        with pytest.raises(RepoOperationError, match="creating worktree"):
            uc.execute_worktree(REPO, 42, "main", "/code")


# ---------------------------------------------------------------------------
# learn / detect_context
# ---------------------------------------------------------------------------

class TestLearn:
    def test_registers_detected(self, uc, locator):
        ctx = CheckoutContext(browsing_repo=OTHER, cwd_repo=REPO, cwd_path="/code/vivecaka")
        assert uc.learn(ctx) is True
        assert locator.lookup(REPO) == "/code/vivecaka"
        assert locator.all()[0].source is Source.DETECTED

    def test_skips_when_already_known(self, uc, locator):
        locator.register(REPO, "/code/vivecaka", Source.CLONED)
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=REPO, cwd_path="/code/vivecaka")
        assert uc.learn(ctx) is False
        assert locator.all()[0].source is Source.CLONED

    def test_no_cwd_repo(self, uc, locator):
        ctx = CheckoutContext(browsing_repo=REPO, cwd_repo=None, cwd_path="/tmp")
        assert uc.learn(ctx) is False
        assert not locator.data_path.exists()


class TestDetectContext:
    @patch("prhop_core.smart_checkout.git_ops.detect_repo")
    def test_inside_repo_uses_git_root(self, mock_detect, tmp_path):
        mock_detect.return_value = (REPO, tmp_path)
        ctx = detect_context(OTHER, cwd=tmp_path / "sub")
        assert ctx.browsing_repo == OTHER
        assert ctx.cwd_repo == REPO
        assert ctx.cwd_path == str(tmp_path)

    @patch("prhop_core.smart_checkout.git_ops.detect_repo")
    def test_outside_repo(self, mock_detect, tmp_path):
        mock_detect.return_value = (None, None)
        ctx = detect_context(REPO, cwd=tmp_path)
        assert ctx.cwd_repo is None
        assert ctx.cwd_path == str(tmp_path.resolve())

    def test_real_repo(self, tmp_path):
        from conftest import make_git_repo

        repo_dir = make_git_repo(tmp_path / "vivecaka", "git@github.com:indrasvat/vivecaka.git")
        (repo_dir / "pkg").mkdir()
        ctx = detect_context(REPO, cwd=repo_dir / "pkg")
        assert ctx.cwd_repo == REPO
        assert Path(ctx.cwd_path) == repo_dir.resolve()
