"""Salary Calc CLI - Command-line interface for gross-to-net salary estimates."""

import logging
import os

import click

from salarycalc import __version__

from .compute_commands import compute
from .profile_commands import profile as profile_group
from .rules_commands import rules as rules_group
from .settings_commands import settings as settings_group


@click.group()
@click.version_option(version=__version__, prog_name="salary-calc")
def cli():
    """Salary Calc - Gross-to-net salary and employer cost estimates.

    Computes income tax, social contributions, net pay and total cost to
    employer from versioned per-country rule documents.

    Configuration is loaded from (in order):

    \b
    1. SALARY_CALC_CONFIG_PATH environment variable
    2. ~/.config/salary-calc/ (XDG default)

    Set LOG_LEVEL=DEBUG to trace rule loading and resolution.
    """
    pass


cli.add_command(compute)
cli.add_command(rules_group)
cli.add_command(settings_group)
cli.add_command(profile_group)


def main():
    """Entry point for the CLI."""
    log_level = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s.%(msecs)03d %(levelname)s: %(message)s",
        datefmt="%H:%M:%S"
    )
    cli()


if __name__ == "__main__":
    main()
