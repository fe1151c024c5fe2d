"""CLI commands for deploying and inspecting the demo."""

import sys

import click
from tabulate import tabulate

from aks_minecraft_ops.cli.config import resolve_request, save_cli_config
from aks_minecraft_ops.clients.azure_cli import AzureCliClient
from aks_minecraft_ops.clients.base import CommandRunner
from aks_minecraft_ops.clients.kubectl import KubectlClient
from aks_minecraft_ops.config import config
from aks_minecraft_ops.exceptions import AksOpsError, FatalOperationError, ValidationError
from aks_minecraft_ops.manifests import SERVICE_NAME, WORKLOAD_NAME, WORKLOAD_SELECTOR
from aks_minecraft_ops.models.identity import (
    MINECRAFT_PORT,
    StorageKind,
    cluster_name_for,
    resource_group_name_for,
)
from aks_minecraft_ops.models.results import ProvisioningReport
from aks_minecraft_ops.services.executor import OperationExecutor
from aks_minecraft_ops.services.provisioning import ProvisioningPipeline


def build_clients():
    """Create the Azure and Kubernetes clients used by every command."""
    runner = CommandRunner()
    azure = AzureCliClient(runner=runner, long_timeout=config.azure.command_timeout)
    kubectl = KubectlClient(runner=runner)
    return azure, kubectl


def _print_steps(steps):
    rows = [
        [step.name, step.outcome.value, step.error_message or ""]
        for step in steps
    ]
    click.echo(tabulate(rows, headers=['Step', 'Outcome', 'Detail'], tablefmt='grid'))


def print_summary(report: ProvisioningReport):
    identity = report.identity

    click.echo("\n📋 Deployment summary")
    _print_steps(report.steps)

    click.echo(f"\n   Resource group:  {identity.resource_group_name}")
    click.echo(f"   AKS cluster:     {identity.cluster_name}")
    if identity.storage_account_name:
        click.echo(f"   Storage account: {identity.storage_account_name}")

    if report.warnings:
        click.echo("\n⚠️  Warnings:")
        for warning in report.warnings:
            click.echo(f"   - {warning}")

    causes = report.likely_causes()
    for stage, reasons in causes.items():
        click.echo(f"\n🔎 {stage} not reached; earlier failures that may explain it:")
        for reason in reasons:
            click.echo(f"   - {reason}")

    if report.endpoint:
        click.echo(f"\n🎉 Connect your Minecraft client to {report.endpoint}")
    else:
        click.echo(f"\n⏳ No external IP yet. Run 'aks-minecraft status --prefix {identity.prefix}' shortly.")


@click.command('deploy')
@click.option('--prefix', '-p', help='Resource prefix (3-10 lowercase letters or digits)')
@click.option('--region', '-r', help='Azure region')
@click.option('--kubernetes-version', '-k', help='AKS Kubernetes version (Azure default if omitted)')
@click.option('--storage', '-s', type=click.Choice([k.value for k in StorageKind]),
              default=StorageKind.FILES.value, help='Storage backend (default: files)')
@click.option('--node-count', type=int, help='Node pool size')
@click.option('--manifest-dir', type=click.Path(file_okay=False), help='Directory with workload manifests')
@click.option('--yes', '-y', 'assume_yes', is_flag=True, help='Accept prompts (e.g. unsupported region)')
@click.pass_context
def deploy(ctx, prefix, region, kubernetes_version, storage, node_count, manifest_dir, assume_yes):
    """Provision the AKS cluster, storage and Minecraft server."""

    cli_config = ctx.obj['config']

    try:
        request = resolve_request(
            prefix=prefix,
            region=region,
            storage=storage,
            kubernetes_version=kubernetes_version,
            node_count=node_count,
            manifest_dir=manifest_dir,
            assume_yes=assume_yes,
            cli_config=cli_config
        )
    except ValidationError as e:
        click.echo(f"❌ Invalid input: {e.message}", err=True)
        sys.exit(1)

    identity = request.identity
    click.echo(f"🚀 Deploying {identity.cluster_name} to {identity.region} ({storage} storage)")

    azure, kubectl = build_clients()
    executor = OperationExecutor(reporter=click.echo)
    pipeline = ProvisioningPipeline(azure, kubectl, executor)

    try:
        report = pipeline.run(request)
    except FatalOperationError as e:
        click.echo(f"\n❌ Deployment stopped: {e.message}", err=True)
        click.echo("Steps completed before the failure (re-run with the same prefix to resume):")
        _print_steps(executor.history)
        sys.exit(1)
    except AksOpsError as e:
        click.echo(f"\n❌ Deployment stopped: {e}", err=True)
        sys.exit(1)

    print_summary(report)

    cli_config.update({'prefix': identity.prefix, 'region': identity.region, 'storage': storage})
    try:
        save_cli_config(ctx.obj['config_path'], cli_config)
    except OSError as e:
        click.echo(f"⚠️  Could not save CLI config: {e}", err=True)


@click.command('status')
@click.option('--prefix', '-p', help='Resource prefix (defaults to the last deployment)')
@click.option('--rollout', is_flag=True, help='Wait for the server deployment rollout to finish')
@click.option('--rollout-timeout', default=300, type=int, help='Rollout wait in seconds (default: 300)')
@click.pass_context
def status(ctx, prefix, rollout, rollout_timeout):
    """Show the state of a deployed demo."""

    prefix = prefix or ctx.obj['config'].get('prefix')
    if not prefix:
        click.echo("❌ No prefix given and no previous deployment recorded", err=True)
        sys.exit(1)

    rg = resource_group_name_for(prefix)
    cluster_name = cluster_name_for(prefix)
    azure, kubectl = build_clients()

    try:
        if not azure.group_exists(rg):
            click.echo(f"❌ No resource group found: {rg}", err=True)
            sys.exit(1)

        cluster = azure.aks_show(rg, cluster_name)
        if not cluster:
            click.echo(f"Resource group {rg} exists but cluster {cluster_name} does not")
            sys.exit(1)

        azure.aks_get_credentials(rg, cluster_name)
        nodes = kubectl.list_nodes()
        pods = kubectl.list_pods(WORKLOAD_SELECTOR)
        ips = kubectl.get_service_ingress(SERVICE_NAME)
    except AksOpsError as e:
        click.echo(f"❌ Failed to get status: {e}", err=True)
        sys.exit(1)

    power_state = (cluster.get('powerState') or {}).get('code', 'Unknown')
    rows = [
        ['Resource group', rg],
        ['Cluster', f"{cluster_name} ({cluster.get('provisioningState', 'Unknown')}, {power_state})"],
        ['Nodes ready', f"{sum(1 for n in nodes if n.ready)}/{len(nodes)}"],
        ['Server pods', ", ".join(f"{p.name}={p.phase}" for p in pods) or "none"],
        ['Endpoint', f"{ips[0]}:{MINECRAFT_PORT}" if ips else "pending"],
    ]
    click.echo(tabulate(rows, tablefmt='grid'))

    if rollout:
        click.echo(f"Waiting for deployment/{WORKLOAD_NAME} rollout...")
        try:
            click.echo(kubectl.rollout_status(WORKLOAD_NAME, timeout=rollout_timeout))
        except AksOpsError as e:
            click.echo(f"⚠️  Rollout not complete: {e.message}", err=True)
            sys.exit(1)


@click.command('check')
def check():
    """Check that az and kubectl are installed and Azure is logged in."""

    ok = True
    for binary in ('az', 'kubectl'):
        if CommandRunner.is_installed(binary):
            click.echo(f"✅ {binary} found")
        else:
            click.echo(f"❌ {binary} not found on PATH", err=True)
            ok = False

    if ok:
        azure, _ = build_clients()
        try:
            account = azure.account_show() or {}
            click.echo(f"✅ Logged in to subscription {account.get('name', 'unknown')} ({account.get('id', '?')})")
        except AksOpsError as e:
            click.echo(f"❌ Not logged in to Azure (run 'az login'): {e.message}", err=True)
            ok = False

    if not ok:
        sys.exit(1)
