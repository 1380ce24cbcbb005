"""Profile CLI commands for Salary Calc.

Manages calculation defaults (profile.yaml) used when compute options are omitted.
"""

import click
import yaml

from salarycalc.sdk import (
    ProfileDefaults,
    ProfileValidationError,
    get_profile_path,
    load_profile,
    set_profile_value,
)


@click.group()
def profile():
    """Manage calculation defaults (profile.yaml)."""
    pass


@profile.command("show")
def profile_show():
    """Show profile location and defaults."""
    path = get_profile_path()
    click.echo(f"Profile: {path}")
    click.echo(f"File exists: {path.exists()}")
    click.echo()

    try:
        defaults = load_profile()
    except ProfileValidationError as e:
        raise click.ClickException(str(e))

    click.echo(yaml.dump(defaults.model_dump(), default_flow_style=False, sort_keys=False).rstrip())


@profile.command("set")
@click.argument("key", type=click.Choice(sorted(ProfileDefaults.model_fields)))
@click.argument("value")
def profile_set(key, value):
    """Set a calculation default.

    VALUE is parsed as YAML, so numbers stay numbers and "null" clears a value.

    Examples:
        salary-calc profile set country DE
        salary-calc profile set tax_class III
        salary-calc profile set children_count 2
    """
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError as e:
        raise click.BadParameter(str(e), param_hint="VALUE")

    # Class and region keys are strings even when they look numeric
    if key in ("country", "tax_class", "region") and parsed is not None:
        parsed = str(parsed)

    try:
        path = set_profile_value(key, parsed)
    except ProfileValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"Set {key}: {parsed}")
    click.echo(f"Saved to: {path}")
