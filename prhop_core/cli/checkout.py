"""Smart PR checkout command for the prhop CLI.

Learns the current repo's location, validates the registered path of the
browsed repo, plans a strategy and executes it.
"""

from pathlib import Path

import click

from prhop_core import gh_ops
from prhop_core.cli import cli
from prhop_core.cli.helpers import cli_errors, make_checkout, make_locator, parse_repo_arg
from prhop_core.paths import configure_logger
from prhop_core.smart_checkout import CheckoutPlan, CheckoutStrategy, detect_context

_log = configure_logger("prhop.cli.checkout")


def _describe_plan(plan: CheckoutPlan) -> str:
    if plan.strategy is CheckoutStrategy.LOCAL:
        return f"local: check out in the current repo at {plan.target_path}"
    if plan.strategy is CheckoutStrategy.KNOWN_PATH:
        return f"known path: check out in {plan.target_path}"
    return f"needs clone: no local clone found (default destination {plan.cache_clone_path})"


@cli.command("checkout")
@click.argument("repo", metavar="OWNER/NAME", callback=parse_repo_arg)
@click.argument("number", type=click.IntRange(min=1))
@click.option("--worktree", is_flag=True, default=False,
              help="Create a .worktrees/pr-N-<branch> worktree instead of switching branches")
@click.option("--branch", default=None,
              help="PR head branch name used for the worktree directory (looked up via gh if omitted)")
@click.option("--clone-to", "clone_to", default=None, type=click.Path(file_okay=False),
              help="Where to clone when no local clone exists (default: the managed cache)")
@click.option("-y", "--yes", is_flag=True, default=False, help="Clone without asking")
@click.option("--dry-run", is_flag=True, default=False, help="Print the plan and exit")
def checkout_cmd(repo, number: int, worktree: bool, branch: str | None,
                 clone_to: str | None, yes: bool, dry_run: bool):
    """Check out PR NUMBER of OWNER/NAME, wherever that repo lives.

    \b
    Strategies, in order:
      local       the current directory is OWNER/NAME: check out here
      known path  OWNER/NAME is registered at a valid clone: check out there
      needs clone clone it (asks first unless --yes), then check out
    """
    locator = make_locator()
    uc = make_checkout(locator)
    ctx = detect_context(repo)

    with cli_errors():
        if not dry_run:
            uc.learn(ctx)
        known_path = locator.validate(repo)
        plan = uc.plan(ctx, known_path or "", known_path is not None)
        _log.info("checkout %s#%d: %s", repo, number, plan.strategy.value)
        click.echo(f"Plan: {_describe_plan(plan)}")
        if dry_run:
            if worktree and branch and plan.target_path:
                click.echo(f"Worktree: {uc.worktree_path(number, branch, plan.target_path)}")
            return

        target = plan.target_path
        if plan.strategy is CheckoutStrategy.NEEDS_CLONE:
            target = str(Path(clone_to).expanduser().resolve()) if clone_to else plan.cache_clone_path
            if not yes and not click.confirm(f"Clone {repo} to {target}?", default=True):
                raise click.Abort()
            click.echo(f"Cloning {repo} into {target}...")
            uc.execute_clone(repo, target)

        if worktree:
            if branch is None:
                branch = gh_ops.pr_head_branch(repo, number)
                if branch is None:
                    raise click.ClickException(
                        f"Could not determine the head branch of {repo}#{number}; pass --branch")
            wt_path = uc.execute_worktree(repo, number, branch, target)
            click.echo(f"Worktree for PR #{number} ready at {wt_path}")
            return

        local_branch = uc.execute_checkout(repo, number, target)
        click.echo(f"Checked out {local_branch} in {target}")
