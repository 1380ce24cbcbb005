"""Settings CLI commands for Salary Calc.

Manages settings.json - rules location and diagnostics preferences.
"""

import click

from salarycalc.sdk import (
    clear_setting,
    get_diagnostics,
    get_rules_base,
    get_settings_path,
    load_settings,
    set_setting,
)


@click.group()
def settings():
    """Manage settings (settings.json).

    Available settings:
    - rules_base: directory or http(s) URL holding rules-XX.json files
    - diagnostics: tax class check mode (runtime, load, off)
    - strict_diagnostics: fail instead of warn on tax class findings (true/false)
    """
    pass


@settings.command("show")
def settings_show():
    """Show current settings and their effective values."""
    settings_path = get_settings_path()
    current = load_settings()

    click.echo(f"Settings file: {settings_path}")
    click.echo(f"File exists: {settings_path.exists()}")
    click.echo()

    if not current:
        click.echo("No settings configured (using defaults).")
    else:
        click.echo("Current settings:")
        for key, value in current.items():
            click.echo(f"  {key}: {value}")

    mode, strict = get_diagnostics()
    click.echo()
    click.echo("Effective values:")
    click.echo(f"  rules_base: {get_rules_base()}")
    click.echo(f"  diagnostics: {mode}")
    click.echo(f"  strict_diagnostics: {strict}")


@settings.command("set")
@click.argument("key")
@click.argument("value")
def settings_set(key, value):
    """Set KEY to VALUE in settings.json.

    Examples:
        salary-calc settings set rules_base https://example.org/rules
        salary-calc settings set diagnostics load
        salary-calc settings set strict_diagnostics true
    """
    if key == "strict_diagnostics":
        lowered = value.strip().lower()
        if lowered not in ("true", "false"):
            raise click.BadParameter("must be true or false", param_hint="VALUE")
        value = lowered == "true"

    try:
        path = set_setting(key, value)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"Set {key}: {value}")
    click.echo(f"Saved to: {path}")


@settings.command("clear")
@click.argument("key")
def settings_clear(key):
    """Remove KEY from settings.json (revert to default)."""
    if clear_setting(key):
        click.echo(f"Cleared {key} setting.")
    else:
        click.echo(f"{key} was not set.")
