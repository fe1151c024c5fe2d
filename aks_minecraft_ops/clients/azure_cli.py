"""Azure CLI client for resource groups, AKS, storage and role assignments."""

import logging
from typing import Any, Dict, List, Optional, Union

from aks_minecraft_ops.clients.base import CommandRunner, CommandResult, BackgroundCommand
from aks_minecraft_ops.exceptions import ExternalCommandError

logger = logging.getLogger(__name__)

# az error codes, matched case-insensitively in stderr
_NOT_FOUND_CODES = (
    "resourcenotfound",
    "resourcegroupnotfound",
)


def is_not_found(error: ExternalCommandError) -> bool:
    """True if an az failure means the queried resource does not exist."""
    if error.returncode in (124, 127):
        return False
    stderr = (error.stderr or "").lower()
    return error.returncode == 3 or any(code in stderr for code in _NOT_FOUND_CODES)


class AzureCliClient:
    """Thin wrapper over ``az`` returning parsed JSON payloads."""

    def __init__(self, runner: Optional[CommandRunner] = None, az_binary: str = "az",
                 long_timeout: int = 1800):
        """Initialize Azure CLI client.

        Args:
            runner: Command runner (a default one is created if omitted)
            az_binary: Path to the az binary
            long_timeout: Timeout in seconds for cluster create/update calls
        """
        self.runner = runner or CommandRunner()
        self.az_binary = az_binary
        self.long_timeout = long_timeout

    def _az(self, *args: str, timeout: Optional[int] = None) -> Any:
        result = self.runner.run([self.az_binary, *args, "--output", "json"], timeout=timeout)
        return result.json()

    def _az_or_none(self, *args: str) -> Any:
        try:
            return self._az(*args)
        except ExternalCommandError as e:
            if is_not_found(e):
                return None
            raise

    # Account

    def account_show(self) -> Dict[str, Any]:
        """Return the signed-in subscription; fails when not logged in."""
        return self._az("account", "show")

    # Resource groups

    def group_exists(self, name: str) -> bool:
        return bool(self._az("group", "exists", "--name", name))

    def group_show(self, name: str) -> Optional[Dict[str, Any]]:
        return self._az_or_none("group", "show", "--name", name)

    def group_create(self, name: str, region: str) -> Dict[str, Any]:
        logger.info(f"Creating resource group {name} in {region}")
        return self._az("group", "create", "--name", name, "--location", region)

    def group_list(self, name_filter: str) -> List[Dict[str, Any]]:
        query = f"[?contains(name, '{name_filter}')]"
        return self._az("group", "list", "--query", query) or []

    def group_delete(self, name: str, background: bool = True) -> Union[BackgroundCommand, CommandResult]:
        """Delete a resource group.

        With ``background`` the deletion runs as a detached process and its
        handle is returned immediately.
        """
        args = [self.az_binary, "group", "delete", "--name", name, "--yes"]
        if background:
            logger.info(f"Starting background deletion of resource group {name}")
            return self.runner.start(args)
        return self.runner.run(args, timeout=self.long_timeout)

    # AKS

    def aks_show(self, resource_group: str, name: str) -> Optional[Dict[str, Any]]:
        return self._az_or_none("aks", "show", "--resource-group", resource_group, "--name", name)

    def aks_create(
        self,
        resource_group: str,
        name: str,
        region: str,
        node_count: int,
        node_vm_size: str,
        kubernetes_version: Optional[str] = None,
        enable_container_storage: bool = False
    ) -> Dict[str, Any]:
        args = [
            "aks", "create",
            "--resource-group", resource_group,
            "--name", name,
            "--location", region,
            "--node-count", str(node_count),
            "--node-vm-size", node_vm_size,
            "--enable-managed-identity",
            "--generate-ssh-keys",
        ]
        if kubernetes_version:
            args += ["--kubernetes-version", kubernetes_version]
        if enable_container_storage:
            args += ["--enable-azure-container-storage", "ephemeralDisk",
                     "--storage-pool-option", "NVMe"]

        logger.info(f"Creating AKS cluster {name} ({node_count} x {node_vm_size})")
        return self._az(*args, timeout=self.long_timeout)

    def aks_enable_container_storage(self, resource_group: str, name: str) -> Dict[str, Any]:
        return self._az(
            "aks", "update",
            "--resource-group", resource_group,
            "--name", name,
            "--enable-azure-container-storage", "ephemeralDisk",
            "--storage-pool-option", "NVMe",
            timeout=self.long_timeout
        )

    def aks_get_credentials(self, resource_group: str, name: str) -> None:
        self.runner.run([
            self.az_binary, "aks", "get-credentials",
            "--resource-group", resource_group,
            "--name", name,
            "--overwrite-existing",
        ])

    def aks_principal_id(self, resource_group: str, name: str) -> str:
        """Principal id of the cluster's system-assigned managed identity."""
        principal = self._az(
            "aks", "show",
            "--resource-group", resource_group,
            "--name", name,
            "--query", "identity.principalId"
        )
        if not principal:
            raise ExternalCommandError(
                f"Cluster {name} has no managed identity principal",
                command=["az", "aks", "show"],
                returncode=1
            )
        return principal

    # Storage

    def storage_account_list(self, resource_group: str, prefix: str) -> List[Dict[str, Any]]:
        query = f"[?starts_with(name, '{prefix}')]"
        return self._az_or_none(
            "storage", "account", "list",
            "--resource-group", resource_group,
            "--query", query
        ) or []

    def storage_account_create(
        self,
        name: str,
        resource_group: str,
        region: str,
        sku: str = "Premium_LRS",
        kind: str = "FileStorage",
        min_tls_version: str = "TLS1_2"
    ) -> Dict[str, Any]:
        logger.info(f"Creating storage account {name} ({sku}, {kind})")
        return self._az(
            "storage", "account", "create",
            "--name", name,
            "--resource-group", resource_group,
            "--location", region,
            "--sku", sku,
            "--kind", kind,
            "--min-tls-version", min_tls_version,
            "--https-only", "true"
        )

    def storage_account_id(self, name: str, resource_group: str) -> str:
        account_id = self._az(
            "storage", "account", "show",
            "--name", name,
            "--resource-group", resource_group,
            "--query", "id"
        )
        if not account_id:
            raise ExternalCommandError(
                f"Storage account {name} has no resource id",
                command=["az", "storage", "account"],
                returncode=1
            )
        return account_id

    def file_share_exists(self, account: str, resource_group: str, share: str) -> bool:
        payload = self._az(
            "storage", "share-rm", "exists",
            "--storage-account", account,
            "--resource-group", resource_group,
            "--name", share
        ) or {}
        return bool(payload.get("exists"))

    def file_share_create(self, account: str, resource_group: str, share: str,
                          quota_gb: int) -> Dict[str, Any]:
        logger.info(f"Creating file share {share} ({quota_gb} GB) in {account}")
        return self._az(
            "storage", "share-rm", "create",
            "--storage-account", account,
            "--resource-group", resource_group,
            "--name", share,
            "--quota", str(quota_gb),
            "--enabled-protocols", "SMB"
        )

    # Role assignments

    def role_assignment_create(self, principal_id: str, role: str, scope: str) -> Dict[str, Any]:
        return self._az(
            "role", "assignment", "create",
            "--assignee-object-id", principal_id,
            "--assignee-principal-type", "ServicePrincipal",
            "--role", role,
            "--scope", scope
        )
