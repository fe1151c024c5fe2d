"""Pytest configuration and fixtures."""

import random
from pathlib import Path

import pytest

from aks_minecraft_ops.clients.base import CommandResult
from aks_minecraft_ops.clients.kubectl import NodeInfo, PodInfo
from aks_minecraft_ops.config import AzureConfig, ManifestConfig, PollingConfig
from aks_minecraft_ops.exceptions import ExternalCommandError
from aks_minecraft_ops.models.identity import (
    FilesStorage,
    LocalNvmeStorage,
    ProvisioningRequest,
    ResourceIdentity,
)


class FakeHandle:
    """Background task that finishes after a number of is_done() checks."""

    def __init__(self, checks_until_done: int = 0, returncode: int = 0, stderr: str = ""):
        self.checks_left = checks_until_done
        self.returncode = returncode
        self.stderr = stderr

    def is_done(self) -> bool:
        if self.checks_left <= 0:
            return True
        self.checks_left -= 1
        return False

    def result(self) -> CommandResult:
        return CommandResult(args=["az", "group", "delete"], returncode=self.returncode, stderr=self.stderr)


class NeverDoneHandle:
    """Background task that never finishes."""

    def is_done(self) -> bool:
        return False

    def result(self) -> CommandResult:
        raise RuntimeError("still running")


class FakeAzure:
    """In-memory stand-in for AzureCliClient that records every call."""

    def __init__(self):
        self.calls = []
        self.groups = set()
        self.clusters = set()
        self.storage_accounts = []
        self.shares = set()
        self.failures = {}
        self.delete_handles = {}

    def _record(self, method, *args):
        self.calls.append((method,) + args)
        if method in self.failures:
            raise self.failures[method]

    def called(self, method):
        return [call for call in self.calls if call[0] == method]

    def account_show(self):
        self._record("account_show")
        return {"name": "demo-subscription", "id": "sub-1"}

    def group_exists(self, name):
        self._record("group_exists", name)
        return name in self.groups

    def group_show(self, name):
        self._record("group_show", name)
        return {"name": name} if name in self.groups else None

    def group_create(self, name, region):
        self._record("group_create", name, region)
        self.groups.add(name)
        return {"name": name, "location": region}

    def group_list(self, name_filter):
        self._record("group_list", name_filter)
        return [{"name": name} for name in sorted(self.groups) if name_filter in name]

    def group_delete(self, name, background=True):
        self._record("group_delete", name)
        return self.delete_handles.get(name, FakeHandle())

    def aks_show(self, resource_group, name):
        self._record("aks_show", resource_group, name)
        if name in self.clusters:
            return {"name": name, "provisioningState": "Succeeded", "powerState": {"code": "Running"}}
        return None

    def aks_create(self, resource_group, name, region, node_count, node_vm_size,
                   kubernetes_version=None, enable_container_storage=False):
        self._record("aks_create", resource_group, name, region, node_count, node_vm_size,
                     kubernetes_version, enable_container_storage)
        self.clusters.add(name)
        return {"name": name}

    def aks_enable_container_storage(self, resource_group, name):
        self._record("aks_enable_container_storage", resource_group, name)
        return {"name": name}

    def aks_get_credentials(self, resource_group, name):
        self._record("aks_get_credentials", resource_group, name)

    def aks_principal_id(self, resource_group, name):
        self._record("aks_principal_id", resource_group, name)
        return "principal-123"

    def storage_account_list(self, resource_group, prefix):
        self._record("storage_account_list", resource_group, prefix)
        return [{"name": name} for name in self.storage_accounts if name.startswith(prefix)]

    def storage_account_create(self, name, resource_group, region, sku="Premium_LRS",
                               kind="FileStorage", min_tls_version="TLS1_2"):
        self._record("storage_account_create", name, resource_group, region, sku, kind)
        self.storage_accounts.append(name)
        return {"name": name}

    def storage_account_id(self, name, resource_group):
        self._record("storage_account_id", name, resource_group)
        return f"/subscriptions/sub-1/resourceGroups/{resource_group}/storageAccounts/{name}"

    def file_share_exists(self, account, resource_group, share):
        self._record("file_share_exists", account, resource_group, share)
        return (account, share) in self.shares

    def file_share_create(self, account, resource_group, share, quota_gb):
        self._record("file_share_create", account, resource_group, share, quota_gb)
        self.shares.add((account, share))
        return {"name": share}

    def role_assignment_create(self, principal_id, role, scope):
        self._record("role_assignment_create", principal_id, role, scope)
        return {"principalId": principal_id}


class FakeKubectl:
    """In-memory stand-in for KubectlClient."""

    def __init__(self):
        self.node_responses = [[NodeInfo("aks-node-0", "Ready"), NodeInfo("aks-node-1", "Ready")]]
        self.pod_responses = [[PodInfo("minecraft-server-abc", "Running")]]
        self.ingress = ["20.1.2.3"]
        self.context = "demo01-minecraft-aks"
        self.applied = []
        self.deleted = []
        self.apply_failures = {}
        self.delete_failures = {}
        self.resets = 0

    def reset(self):
        self.resets += 1

    def current_context(self):
        return self.context

    def list_nodes(self):
        if len(self.node_responses) > 1:
            return self.node_responses.pop(0)
        return self.node_responses[0]

    def list_pods(self, selector):
        if len(self.pod_responses) > 1:
            return self.pod_responses.pop(0)
        return self.pod_responses[0]

    def get_service_ingress(self, name):
        return list(self.ingress)

    def apply_manifest(self, path=None, content=None):
        key = Path(path).name if path else "inline"
        self.applied.append(key if path else content)
        if key in self.apply_failures:
            raise self.apply_failures[key]
        return f"{key} configured"

    def rollout_status(self, deployment, timeout=300):
        return f"deployment \"{deployment}\" successfully rolled out"

    def delete_resource(self, kind, name, ignore_not_found=True):
        self.deleted.append((kind, name))
        if kind in self.delete_failures:
            raise self.delete_failures[kind]
        return True


def command_error(message="boom", returncode=1, stderr=""):
    return ExternalCommandError(message, command=["az", "test"], returncode=returncode, stderr=stderr)


@pytest.fixture
def fake_azure():
    return FakeAzure()


@pytest.fixture
def fake_kubectl():
    return FakeKubectl()


@pytest.fixture
def fast_polling():
    """Polling config with tiny attempt counts."""
    return PollingConfig(
        interval_seconds=15.0,
        node_max_attempts=3,
        pod_max_attempts=3,
        teardown_interval_seconds=30.0,
        teardown_timeout_seconds=120.0
    )


@pytest.fixture
def manifest_dir(tmp_path):
    """Directory holding every workload manifest."""
    manifests = ManifestConfig()
    for name in list(manifests.pvc_files.values()) + [manifests.deployment_file, manifests.service_file]:
        (tmp_path / name).write_text("apiVersion: v1\nkind: List\nitems: []\n")
    return tmp_path


@pytest.fixture
def files_request(manifest_dir):
    return ProvisioningRequest(
        identity=ResourceIdentity(prefix="demo01", region="northeurope"),
        storage=FilesStorage(),
        node_count=2,
        node_vm_size=AzureConfig().files_vm_size,
        manifest_dir=str(manifest_dir)
    )


@pytest.fixture
def nvme_request(manifest_dir):
    return ProvisioningRequest(
        identity=ResourceIdentity(prefix="demo01", region="northeurope"),
        storage=LocalNvmeStorage(),
        node_count=2,
        node_vm_size=AzureConfig().nvme_vm_size,
        manifest_dir=str(manifest_dir)
    )


@pytest.fixture
def seeded_rng():
    return random.Random(42)


@pytest.fixture
def make_handle():
    """Factory for background task handles."""
    return FakeHandle


@pytest.fixture
def never_done_handle():
    return NeverDoneHandle()


@pytest.fixture
def make_command_error():
    return command_error
