"""CLI configuration persistence and pre-run request resolution."""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
from pydantic import ValidationError as PydanticValidationError

from aks_minecraft_ops.config import config, Config, SUPPORTED_REGIONS
from aks_minecraft_ops.exceptions import ValidationError
from aks_minecraft_ops.models.identity import (
    ProvisioningRequest,
    ResourceIdentity,
    StorageKind,
    storage_mode_for,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = '~/.aks-minecraft/config.json'


def load_cli_config(config_path: Path) -> Dict[str, Any]:
    """Load CLI configuration from file."""

    default_config = {
        'prefix': None,
        'region': config.azure.default_region,
        'storage': StorageKind.FILES.value,
    }

    if not config_path.exists():
        return default_config

    try:
        with open(config_path, 'r') as f:
            saved = json.load(f)

        # Merge with defaults
        merged_config = default_config.copy()
        merged_config.update(saved)

        return merged_config

    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        return default_config


def save_cli_config(config_path: Path, cli_config: Dict[str, Any]) -> None:
    """Save CLI configuration to file."""

    # Ensure directory exists
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(cli_config, f, indent=2)


def _validation_message(error: PydanticValidationError) -> str:
    return "; ".join(err['msg'] for err in error.errors())


def resolve_request(
    prefix: Optional[str],
    region: Optional[str],
    storage: str = StorageKind.FILES.value,
    kubernetes_version: Optional[str] = None,
    node_count: Optional[int] = None,
    manifest_dir: Optional[str] = None,
    assume_yes: bool = False,
    cli_config: Optional[Dict[str, Any]] = None,
    app_config: Optional[Config] = None,
    prompt: Callable[..., Any] = click.prompt,
    confirm: Callable[..., bool] = click.confirm
) -> ProvisioningRequest:
    """Turn raw CLI input into a validated ProvisioningRequest.

    Every interactive question is asked here so the pipeline itself never
    blocks on input. Raises ValidationError on bad input or a declined
    region override.
    """
    cli_config = cli_config or {}
    app_config = app_config or config

    if not prefix:
        prefix = prompt("Resource prefix (3-10 lowercase letters or digits)")
    region = (region or cli_config.get('region') or app_config.azure.default_region).strip().lower()

    try:
        identity = ResourceIdentity(prefix=prefix, region=region)
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e), field='prefix', value=prefix) from e

    if region not in SUPPORTED_REGIONS:
        click.echo(f"⚠️  Region '{region}' is not in the supported list: {', '.join(SUPPORTED_REGIONS)}")
        if not assume_yes and not confirm(f"Proceed with region '{region}' anyway?", default=False):
            raise ValidationError(f"Unsupported region '{region}'", field='region', value=region)

    kind = StorageKind(storage)
    vm_size = app_config.azure.nvme_vm_size if kind == StorageKind.NVME else app_config.azure.files_vm_size

    try:
        return ProvisioningRequest(
            identity=identity,
            storage=storage_mode_for(kind),
            kubernetes_version=kubernetes_version,
            node_count=node_count or app_config.azure.node_count,
            node_vm_size=vm_size,
            manifest_dir=manifest_dir or app_config.manifests.manifest_dir
        )
    except PydanticValidationError as e:
        raise ValidationError(_validation_message(e)) from e
