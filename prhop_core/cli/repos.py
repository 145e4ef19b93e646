"""Known-repos registry commands for the prhop CLI.

Registers the ``repos`` group and its subcommands on the top-level ``cli``.
"""

from pathlib import Path

import click

from prhop_core import git_ops
from prhop_core.cli import cli
from prhop_core.cli.helpers import cli_errors, make_locator, parse_repo_arg
from prhop_core.locator import Source, is_valid_repo_dir
from prhop_core.paths import configure_logger

_log = configure_logger("prhop.cli.repos")


@cli.group()
def repos():
    """Manage the known-repos registry."""


@repos.command("list")
def repos_list():
    """List every known repo location."""
    entries = make_locator().all()
    if not entries:
        click.echo("No known repos.")
        return
    width = max(len(str(e.repo)) for e in entries)
    for e in sorted(entries, key=lambda e: str(e.repo).lower()):
        seen = e.last_seen.strftime("%Y-%m-%d %H:%M")
        click.echo(f"  {str(e.repo):<{width}}  {e.source.value:<8}  {seen}  {e.path}")


@repos.command("add")
@click.argument("repo", metavar="OWNER/NAME", callback=parse_repo_arg)
@click.argument("path", required=False, type=click.Path(exists=True, file_okay=False))
def repos_add(repo, path: str | None):
    """Register PATH (default: the current repo root) as the checkout of OWNER/NAME."""
    if path is None:
        root = git_ops.get_git_root()
        if root is None:
            raise click.UsageError("Not inside a git repository; pass PATH explicitly.")
        target = root
    else:
        target = Path(path).resolve()

    if not is_valid_repo_dir(target, repo):
        click.echo(
            f"Warning: {target} does not look like a clone of {repo} "
            f"(missing .git or origin remote mismatch).",
            err=True,
        )
    with cli_errors():
        make_locator().register(repo, str(target), Source.MANUAL)
    click.echo(f"Registered {repo} -> {target}")


@repos.command("remove")
@click.argument("repo", metavar="OWNER/NAME", callback=parse_repo_arg)
def repos_remove(repo):
    """Forget the registered location of OWNER/NAME."""
    locator = make_locator()
    existed = locator.lookup(repo) is not None
    with cli_errors():
        locator.remove(repo)
    click.echo(f"Removed {repo}" if existed else f"{repo} was not registered")


@repos.command("where")
@click.argument("repo", metavar="OWNER/NAME", callback=parse_repo_arg)
@click.option("--no-prune", is_flag=True, default=False,
              help="Keep the entry even if it turns out to be stale")
def repos_where(repo, no_prune: bool):
    """Print the validated local path of OWNER/NAME."""
    locator = make_locator()
    with cli_errors():
        path = locator.validate(repo, prune=False if no_prune else None)
    if path is None:
        click.echo(f"No valid location for {repo}. "
                   f"A managed clone would go to {locator.cache_clone_path(repo)}", err=True)
        raise SystemExit(1)
    click.echo(path)


@repos.command("validate")
@click.argument("repo", metavar="[OWNER/NAME]", required=False, callback=parse_repo_arg)
@click.option("--no-prune", is_flag=True, default=False,
              help="Report stale entries without removing them")
def repos_validate(repo, no_prune: bool):
    """Check registered locations, pruning the stale ones."""
    locator = make_locator()
    if repo and locator.lookup(repo) is None:
        click.echo(f"{repo} is not registered", err=True)
        raise SystemExit(1)
    targets = [repo] if repo else [e.repo for e in locator.all()]
    if not targets:
        click.echo("No known repos.")
        return

    stale = 0
    with cli_errors():
        for r in targets:
            path = locator.validate(r, prune=False if no_prune else None)
            if path is None:
                stale += 1
                action = "stale" if no_prune else "stale, removed"
                click.echo(f"  ✗ {r} ({action})")
            else:
                click.echo(f"  ✓ {r} {path}")
    _log.info("repos validate: %d checked, %d stale", len(targets), stale)
    if repo and stale:
        raise SystemExit(1)
