"""CLI command for tearing down demo resource groups."""

import sys
from dataclasses import replace

import click

from aks_minecraft_ops.cli.config import save_cli_config
from aks_minecraft_ops.cli.deploy_commands import build_clients
from aks_minecraft_ops.config import config
from aks_minecraft_ops.exceptions import (
    AksOpsError,
    ResourceGroupNotFoundError,
    TeardownTimeoutError,
    ValidationError,
)
from aks_minecraft_ops.models.identity import resource_group_name_for
from aks_minecraft_ops.services.executor import OperationExecutor
from aks_minecraft_ops.services.teardown import TeardownCoordinator


@click.command('cleanup')
@click.option('--prefix', '-p', help='Resource prefix (defaults to the last deployment)')
@click.option('--all', 'include_all', is_flag=True, help='Delete every demo resource group in the subscription')
@click.option('--yes', '-y', 'assume_yes', is_flag=True, help='Skip confirmation prompt')
@click.option('--timeout-minutes', type=float, help='Give up waiting after this many minutes (default: 20)')
@click.option('--poll-seconds', type=float, help='Seconds between status checks (default: 30)')
@click.pass_context
def cleanup(ctx, prefix, include_all, assume_yes, timeout_minutes, poll_seconds):
    """Delete the demo resource groups and wait for Azure to finish."""

    cli_config = ctx.obj['config']
    if not include_all:
        prefix = prefix or cli_config.get('prefix')

    polling = config.polling
    if timeout_minutes is not None:
        polling = replace(polling, teardown_timeout_seconds=timeout_minutes * 60)
    if poll_seconds is not None:
        polling = replace(polling, teardown_interval_seconds=poll_seconds)

    azure, kubectl = build_clients()
    coordinator = TeardownCoordinator(azure, kubectl, OperationExecutor(reporter=click.echo), polling=polling)

    try:
        targets = coordinator.resolve_targets(prefix=prefix, include_all=include_all)
    except ResourceGroupNotFoundError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)
    except ValidationError as e:
        click.echo(f"❌ Invalid input: {e.message}", err=True)
        sys.exit(1)
    except AksOpsError as e:
        click.echo(f"❌ Failed to look up resource groups: {e}", err=True)
        sys.exit(1)

    click.echo("🗑️  Resource groups to delete:")
    for target in targets:
        click.echo(f"   - {target}")

    if not assume_yes:
        if not click.confirm(f"Delete {len(targets)} resource group(s)? This cannot be undone", default=False):
            click.echo("Cleanup cancelled")
            return

    report = coordinator.teardown(targets)

    click.echo(f"\n📊 Teardown finished in {int(report.elapsed_seconds)}s")
    click.echo(f"   Deleted: {report.completed}")
    click.echo(f"   Failed: {report.failed}")
    click.echo(f"   Still running: {report.running}")

    for target, error in report.failed_targets.items():
        click.echo(f"   ❌ {target}: {error}")

    if not report.success:
        error = TeardownTimeoutError(report.running_targets, polling.teardown_timeout_seconds)
        click.echo(f"⚠️  {error.message}", err=True)
        click.echo("   Deletion continues in Azure; check with 'az group list'", err=True)
        sys.exit(1)

    # Forget the last deployment once its group is gone
    saved = cli_config.get('prefix')
    saved_group = resource_group_name_for(saved) if saved else None
    if saved_group in targets and saved_group not in report.failed_targets:
        cli_config['prefix'] = None
        try:
            save_cli_config(ctx.obj['config_path'], cli_config)
        except OSError as e:
            click.echo(f"⚠️  Could not save CLI config: {e}", err=True)
