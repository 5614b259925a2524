"""Key Vault lifecycle CLI (kvlc).

Usage:
    kvlc run                     # Run the full workflow
    kvlc run -p westus2 -s eastus2
    kvlc config                  # Show the resolved configuration
    kvlc names vault1 --count 3  # Preview generated names
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import click

from . import __version__
from .config import Config, ConfigurationError
from .errors import AuthenticationError
from .main import main as run_main
from .main import setup_logging
from .naming import create_random_name
from .security import load_credentials

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
MAX_PREVIEW_NAMES = 50


@click.group()
@click.version_option(version=__version__, prog_name="kvlc")
def cli() -> None:
    """Key Vault lifecycle CLI (kvlc).

    Provisions two Key Vaults in a fresh resource group, exercises access
    policy and configuration updates, then tears everything down.

    \b
    Required environment:
        CLIENT_ID, CLIENT_SECRET, TENANT_ID, SUBSCRIPTION_ID, OBJECT_ID
    """
    pass


@cli.command()
@click.option("--group-location", "-g", help="Resource group region")
@click.option("--primary-location", "-p", help="Region of the first vault")
@click.option("--secondary-location", "-s", help="Region of the second vault")
@click.option("--timeout", "-t", type=int, help="Seconds to wait per long-running operation")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
)
def run(
    group_location: str | None,
    primary_location: str | None,
    secondary_location: str | None,
    timeout: int | None,
    log_level: str,
) -> None:
    """Run the vault provisioning workflow.

    Exits non-zero if the workflow or its cleanup failed.
    """
    setup_logging(getattr(logging, log_level.upper()))

    overrides: dict[str, Any] = {}
    if group_location:
        overrides["resource_group_location"] = group_location.lower()
    if primary_location:
        overrides["primary_vault_location"] = primary_location.lower()
    if secondary_location:
        overrides["secondary_vault_location"] = secondary_location.lower()
    if timeout is not None:
        overrides["operation_timeout_seconds"] = timeout

    sys.exit(run_main(overrides))


@cli.command("config")
def show_config() -> None:
    """Show the resolved configuration (secrets are never printed)."""
    try:
        credentials = load_credentials()
        config = Config.from_env()
    except (AuthenticationError, ConfigurationError) as e:
        raise click.ClickException(str(e)) from e

    click.echo("Key Vault lifecycle configuration")
    click.echo("=" * 40)
    click.echo(f"Client ID:          {credentials.client_id}")
    click.echo(f"Tenant ID:          {config.tenant_id}")
    click.echo(f"Subscription ID:    {config.subscription_id}")
    click.echo(f"Principal (object): {config.object_id}")
    click.echo(f"Group location:     {config.resource_group_location}")
    click.echo(f"Vault #1 location:  {config.primary_vault_location}")
    click.echo(f"Vault #2 location:  {config.secondary_vault_location}")
    click.echo(f"Operation timeout:  {config.operation_timeout_seconds}s")
    click.echo(f"Audit logging:      {'on' if config.enable_audit_logging else 'off'}")


@cli.command()
@click.argument("prefix")
@click.option("--count", "-n", default=1, show_default=True, help="Number of names")
@click.option("--max-length", default=24, show_default=True, help="Maximum name length")
def names(prefix: str, count: int, max_length: int) -> None:
    """Preview names generated for PREFIX."""
    if not 1 <= count <= MAX_PREVIEW_NAMES:
        raise click.BadParameter(f"must be between 1 and {MAX_PREVIEW_NAMES}", param_hint="--count")
    try:
        for _ in range(count):
            click.echo(create_random_name(prefix, max_length=max_length))
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
