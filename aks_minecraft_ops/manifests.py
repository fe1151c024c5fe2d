"""Storage class generation and the ordered workload manifest set."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import yaml

from aks_minecraft_ops.config import ManifestConfig
from aks_minecraft_ops.models.identity import (
    ResourceIdentity,
    StorageKind,
    StorageMode,
    FilesStorage,
)

WORKLOAD_NAME = "minecraft-server"
WORKLOAD_SELECTOR = f"app={WORKLOAD_NAME}"
SERVICE_NAME = "minecraft-server"
PVC_NAME = "minecraft-data"
CONFIG_MAP_NAME = "minecraft-config"

STORAGE_CLASS_NAMES = {
    StorageKind.FILES: "minecraft-azurefile",
    StorageKind.NVME: "minecraft-local-nvme",
}

AZURE_FILES_PROVISIONER = "file.csi.azure.com"

# Teardown removes these before the resource group goes away.
WORKLOAD_OBJECTS = [
    ("deployment", WORKLOAD_NAME),
    ("service", SERVICE_NAME),
    ("persistentvolumeclaim", PVC_NAME),
    ("configmap", CONFIG_MAP_NAME),
] + [("storageclass", name) for name in STORAGE_CLASS_NAMES.values()]


@dataclass
class ManifestFile:
    """One workload manifest in apply order."""
    label: str
    path: Path

    @property
    def exists(self) -> bool:
        return self.path.is_file()


def generate_storage_class(identity: ResourceIdentity, storage: StorageMode) -> Dict[str, Any]:
    """Build the StorageClass the workload's volume claim binds to."""
    storage_class: Dict[str, Any] = {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "StorageClass",
        "metadata": {
            "name": STORAGE_CLASS_NAMES[storage.kind],
            "labels": {"app": WORKLOAD_NAME}
        },
        "reclaimPolicy": "Delete",
        "allowVolumeExpansion": True,
    }

    if isinstance(storage, FilesStorage):
        if not identity.storage_account_name:
            raise ValueError("Azure Files storage class needs a storage account")
        storage_class["provisioner"] = AZURE_FILES_PROVISIONER
        storage_class["volumeBindingMode"] = "Immediate"
        storage_class["parameters"] = {
            "resourceGroup": identity.resource_group_name,
            "storageAccount": identity.storage_account_name,
            "shareName": storage.share_name,
            "skuName": storage.sku,
        }
        storage_class["mountOptions"] = [
            "dir_mode=0777",
            "file_mode=0777",
            "uid=1000",
            "gid=1000",
            "mfsymlinks",
            "cache=strict",
            "nosharesock",
        ]
    else:
        storage_class["provisioner"] = storage.provisioner
        storage_class["volumeBindingMode"] = "WaitForFirstConsumer"
        storage_class["parameters"] = {"acstor.azure.com/storagepool": "ephemeraldisk-nvme"}

    return storage_class


def render_manifest(manifest: Dict[str, Any]) -> str:
    return yaml.safe_dump(manifest, sort_keys=False)


def manifest_files(kind: StorageKind, manifest_dir: str, manifest_config: ManifestConfig) -> List[ManifestFile]:
    """PVC, deployment and service manifests, in the order they must be applied."""
    base = Path(manifest_dir)
    return [
        ManifestFile("PVC", base / manifest_config.pvc_files[StorageKind(kind).value]),
        ManifestFile("deployment", base / manifest_config.deployment_file),
        ManifestFile("service", base / manifest_config.service_file),
    ]
