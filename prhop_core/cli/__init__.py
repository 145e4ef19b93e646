"""Click CLI definitions for prhop.

The ``cli`` Click group and ``main`` entry point live here. Shared helpers
are in ``cli.helpers``. Command groups are split into submodules:
- cli.repos     - known-repos registry management
- cli.checkout  - smart PR checkout
"""

import click

from prhop_core.cli.helpers import CONTEXT_SETTINGS, HelpGroup


@click.group(cls=HelpGroup, context_settings=CONTEXT_SETTINGS)
def cli():
    """prhop: check out GitHub PRs wherever their repo lives on disk."""


# ---------------------------------------------------------------------------
# Import submodules to register their commands on ``cli``.
# This must be at the bottom of the file, after ``cli`` is defined.
# ---------------------------------------------------------------------------
from prhop_core.cli import repos, checkout  # noqa: E402, F401


def main():
    cli()
