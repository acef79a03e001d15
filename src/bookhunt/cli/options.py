# ABOUTME: Shared Click options for bookhunt CLI commands.
# ABOUTME: Provides reusable decorators for the --prefs database path and the --type site list.

from pathlib import Path

import click

from bookhunt.prefs.connection import DEFAULT_PREFS_PATH
from bookhunt.search.sites import ListType

prefs_option = click.option(
    "--prefs",
    "prefs_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Path to site preferences database (default: {DEFAULT_PREFS_PATH})",
)

list_type_option = click.option(
    "-t",
    "--type",
    "list_type",
    type=click.Choice([lt.value for lt in ListType]),
    default=ListType.DATA.value,
    show_default=True,
    help="Which site list to work on.",
)
