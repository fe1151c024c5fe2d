"""Resource identity and provisioning request models."""

import random
import re
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

PREFIX_PATTERN = re.compile(r"^[a-z0-9]{3,10}$")
MINECRAFT_PORT = 25565


class StorageKind(str, Enum):
    """Supported storage backends."""
    FILES = "files"
    NVME = "nvme"


class FilesStorage(BaseModel):
    """Azure Files backend: a premium file share in a dedicated storage account."""
    model_config = ConfigDict(frozen=True)

    kind: StorageKind = Field(default=StorageKind.FILES, frozen=True)
    share_name: str = Field(default="minecraft-data", description="File share name")
    quota_gb: int = Field(default=100, ge=100, le=102400, description="Share quota in GB")
    sku: str = Field(default="Premium_LRS", description="Storage account SKU")


class LocalNvmeStorage(BaseModel):
    """Azure Container Storage backed by the nodes' local NVMe disks."""
    model_config = ConfigDict(frozen=True)

    kind: StorageKind = Field(default=StorageKind.NVME, frozen=True)
    provisioner: str = Field(default="localdisk.csi.acstor.io", description="CSI provisioner")


StorageMode = Union[FilesStorage, LocalNvmeStorage]


def storage_mode_for(kind: Union[StorageKind, str]) -> StorageMode:
    """Build the default storage mode variant for a storage kind."""
    kind = StorageKind(kind)
    if kind == StorageKind.NVME:
        return LocalNvmeStorage()
    return FilesStorage()


def validate_prefix(value: str) -> str:
    """Check a resource prefix: 3-10 lowercase alphanumerics."""
    if not isinstance(value, str) or not PREFIX_PATTERN.match(value):
        raise ValueError("prefix must be 3-10 lowercase letters or digits")
    return value


RESOURCE_GROUP_MARKER = "minecraft-aks-demo"


def resource_group_name_for(prefix: str) -> str:
    return f"rg-{prefix}-{RESOURCE_GROUP_MARKER}"


def cluster_name_for(prefix: str) -> str:
    return f"{prefix}-minecraft-aks"


def prefix_from_resource_group(name: str) -> Optional[str]:
    """Inverse of resource_group_name_for; None for groups that do not follow the pattern."""
    suffix = f"-{RESOURCE_GROUP_MARKER}"
    if not (name.startswith("rg-") and name.endswith(suffix)):
        return None
    prefix = name[len("rg-"):-len(suffix)]
    return prefix or None


def generate_storage_account_name(prefix: str, rng: Optional[random.Random] = None) -> str:
    """Storage account names embed a random 3-digit suffix to stay globally unique."""
    rng = rng or random.Random()
    return f"{prefix}storage{rng.randint(100, 999)}"


class ResourceIdentity(BaseModel):
    """Names of every Azure resource a provisioning run touches."""
    model_config = ConfigDict(frozen=True)

    prefix: str = Field(..., description="Resource prefix (3-10 lowercase alphanumerics)")
    region: str = Field(..., min_length=1, description="Azure region")
    storage_account_name: Optional[str] = Field(None, description="Storage account, once known")

    @field_validator('prefix')
    @classmethod
    def check_prefix(cls, v):
        return validate_prefix(v)

    @property
    def resource_group_name(self) -> str:
        return resource_group_name_for(self.prefix)

    @property
    def cluster_name(self) -> str:
        return cluster_name_for(self.prefix)

    @property
    def storage_account_prefix(self) -> str:
        return f"{self.prefix}storage"

    def with_storage_account(self, name: str) -> 'ResourceIdentity':
        """Return a copy bound to the given storage account."""
        return self.model_copy(update={'storage_account_name': name})


class ProvisioningRequest(BaseModel):
    """Fully resolved and validated input to a provisioning run."""
    model_config = ConfigDict(frozen=True)

    identity: ResourceIdentity
    storage: StorageMode = Field(default_factory=FilesStorage)
    kubernetes_version: Optional[str] = Field(None, description="AKS Kubernetes version")
    node_count: int = Field(default=2, ge=1, le=10, description="Node pool size")
    node_vm_size: str = Field(..., description="Node pool VM size")
    manifest_dir: str = Field(default="k8s", description="Directory holding workload manifests")

    @property
    def storage_kind(self) -> StorageKind:
        return self.storage.kind
