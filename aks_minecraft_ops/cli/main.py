"""Main CLI entry point for AKS Minecraft Ops."""

import sys
from pathlib import Path

import click

from aks_minecraft_ops import __author__, __version__
from aks_minecraft_ops.cli.cleanup_commands import cleanup
from aks_minecraft_ops.cli.config import DEFAULT_CONFIG_PATH, load_cli_config
from aks_minecraft_ops.cli.deploy_commands import check, deploy, status
from aks_minecraft_ops.config import SUPPORTED_REGIONS, config as app_config
from aks_minecraft_ops.exceptions import ConfigurationError
from aks_minecraft_ops.logging_config import setup_logging


@click.group()
@click.option('--config-file', '-c', default=DEFAULT_CONFIG_PATH,
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config_file, verbose):
    """AKS Minecraft CLI - Deploy and tear down a Minecraft server on AKS."""

    # Setup logging
    if verbose:
        try:
            setup_logging()
        except ConfigurationError as e:
            click.echo(f"❌ {e.message}", err=True)
            sys.exit(1)

    # Ensure context object exists
    ctx.ensure_object(dict)

    # Load configuration
    config_path = Path(config_file).expanduser()
    ctx.obj['config'] = load_cli_config(config_path)
    ctx.obj['config_path'] = config_path


@cli.command()
def regions():
    """List the regions the demo is tested in."""

    click.echo("Supported regions:")
    for region in SUPPORTED_REGIONS:
        marker = " (default)" if region == app_config.azure.default_region else ""
        click.echo(f"   {region}{marker}")


@cli.command()
def version():
    """Show version information."""

    click.echo("AKS Minecraft Ops CLI")
    click.echo(f"Version: {__version__}")
    click.echo(f"Author: {__author__}")


cli.add_command(deploy)
cli.add_command(cleanup)
cli.add_command(status)
cli.add_command(check)


def main():
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\n👋 Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
