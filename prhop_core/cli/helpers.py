"""Shared helpers for the prhop CLI package.

HelpGroup, repo argument parsing, and construction of the registry and
checkout objects used by the command submodules.
"""

from contextlib import contextmanager

import click

from prhop_core.gh_ops import GhNotAvailable
from prhop_core.locator import LocatorLockTimeout, RepoLocator
from prhop_core.paths import configure_logger
from prhop_core.repo_manager import GhRepoManager, RepoOperationError
from prhop_core.repo_ref import RepoRef
from prhop_core.settings import SettingsError
from prhop_core.smart_checkout import SmartCheckout

_log = configure_logger("prhop.cli")

# Shared Click settings: make -h and --help both work everywhere
CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


class HelpGroup(click.Group):
    """Click Group that treats 'help' as an alias for --help everywhere.

    Handles ``prhop repos help`` (help as the command name on a group) and
    ``prhop repos list help`` (help as an arg to a leaf command).
    """

    group_class = type  # auto-propagate HelpGroup to child groups

    def resolve_command(self, ctx, args):
        if args and args[0] == "help":
            if super().get_command(ctx, "help") is not None:
                return super().resolve_command(ctx, args)
            args = ["--help"] + args[1:]
        cmd_name, cmd, remaining = super().resolve_command(ctx, args)
        if (remaining and remaining[0] == "help"
                and cmd is not None and not isinstance(cmd, click.Group)):
            remaining = ["--help"] + remaining[1:]
        return cmd_name, cmd, remaining


def parse_repo_arg(ctx, param, value):
    """Click callback turning OWNER/NAME into a RepoRef."""
    if value is None:
        return None
    try:
        return RepoRef.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param)


def make_locator() -> RepoLocator:
    return RepoLocator()


def make_checkout(locator: RepoLocator | None = None) -> SmartCheckout:
    return SmartCheckout(GhRepoManager(), locator or make_locator())


@contextmanager
def cli_errors():
    """Turn prhop's expected failures into clean ClickExceptions."""
    try:
        yield
    except (RepoOperationError, LocatorLockTimeout, GhNotAvailable, SettingsError) as e:
        _log.warning("command failed: %s", e)
        raise click.ClickException(str(e)) from e
