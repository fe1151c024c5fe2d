"""Existence checks that let repeated runs reuse what is already there."""

import logging
from typing import Any, Callable, Optional

from aks_minecraft_ops.clients.azure_cli import AzureCliClient
from aks_minecraft_ops.services.executor import OperationExecutor

logger = logging.getLogger(__name__)


class IdempotencyProber:
    """Read-only queries issued before each create step."""

    def __init__(self, azure: AzureCliClient, executor: Optional[OperationExecutor] = None):
        self.azure = azure
        self.executor = executor

    def probe_existing(self, kind: str, query: Callable[[], Any]) -> Optional[str]:
        """Run ``query`` and return the identity it found, or None.

        ``query`` returns a name, a record with a ``name`` key, a list of such
        records (the first one wins), or None. With an executor the query is
        reported through it and a failure raises FatalOperationError.
        """
        if self.executor:
            found = self.executor.query(f"Check existing {kind}", query)
        else:
            found = query()

        if isinstance(found, list):
            found = found[0] if found else None
        if isinstance(found, dict):
            found = found.get('name')
        if isinstance(found, bool):
            raise TypeError(f"Boolean probe for {kind} needs a name; use a name-returning query")

        if found:
            logger.info(f"Found existing {kind}: {found}")
        else:
            logger.info(f"No existing {kind} found")
        return found or None

    def resource_group(self, name: str) -> Optional[str]:
        return self.probe_existing("resource group", lambda: self.azure.group_show(name))

    def cluster(self, resource_group: str, name: str) -> Optional[str]:
        return self.probe_existing("AKS cluster", lambda: self.azure.aks_show(resource_group, name))

    def storage_account(self, resource_group: str, prefix: str) -> Optional[str]:
        """First account whose name starts with ``prefix``, in the order az returns them."""
        return self.probe_existing(
            "storage account",
            lambda: self.azure.storage_account_list(resource_group, prefix)
        )

    def file_share(self, account: str, resource_group: str, share: str) -> Optional[str]:
        return self.probe_existing(
            "file share",
            lambda: share if self.azure.file_share_exists(account, resource_group, share) else None
        )
