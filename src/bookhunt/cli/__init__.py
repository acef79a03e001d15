# ABOUTME: CLI package for bookhunt, built on Click.
# ABOUTME: Defines the root command group, the --verbose log switch and registers subcommands.

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from bookhunt.cli.commands import isbn_cmd, search_cmd, sites_cmd


@click.group()
@click.version_option(package_name="bookhunt")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log search details to stderr.")
def cli(verbose: bool) -> None:
    """bookhunt - look up book metadata across many online sources at once."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
            force=True,
        )


cli.add_command(search_cmd.search)
cli.add_command(sites_cmd.sites)
cli.add_command(isbn_cmd.isbn)
