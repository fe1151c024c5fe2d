"""Provisioning pipeline for the AKS Minecraft demo."""

import logging
import random
import time
from typing import Callable, Optional

from aks_minecraft_ops.clients.azure_cli import AzureCliClient
from aks_minecraft_ops.clients.kubectl import KubectlClient
from aks_minecraft_ops.config import config, AzureConfig, PollingConfig, ManifestConfig
from aks_minecraft_ops.manifests import (
    SERVICE_NAME,
    WORKLOAD_SELECTOR,
    generate_storage_class,
    manifest_files,
    render_manifest,
)
from aks_minecraft_ops.models.identity import (
    FilesStorage,
    ProvisioningRequest,
    ResourceIdentity,
    StorageKind,
    StorageMode,
    MINECRAFT_PORT,
    generate_storage_account_name,
)
from aks_minecraft_ops.models.results import PollOutcome, PollState, ProvisioningReport
from aks_minecraft_ops.services.executor import OperationExecutor
from aks_minecraft_ops.services.prober import IdempotencyProber
from aks_minecraft_ops.utils.polling import poll_until, nodes_ready_predicate, pod_running_predicate

logger = logging.getLogger(__name__)


class ProvisioningPipeline:
    """Runs the provisioning steps in order, stopping at the first fatal failure.

    Required steps raise FatalOperationError through the executor; nothing
    already created is rolled back, since re-running with the same prefix
    picks up where the last run stopped.
    """

    def __init__(
        self,
        azure: AzureCliClient,
        kubectl: KubectlClient,
        executor: OperationExecutor,
        prober: Optional[IdempotencyProber] = None,
        azure_config: Optional[AzureConfig] = None,
        polling: Optional[PollingConfig] = None,
        manifest_config: Optional[ManifestConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None
    ):
        self.azure = azure
        self.kubectl = kubectl
        self.executor = executor
        self.prober = prober or IdempotencyProber(azure, executor)
        self.azure_config = azure_config or config.azure
        self.polling = polling or config.polling
        self.manifest_config = manifest_config or config.manifests
        self.sleep = sleep
        self.rng = rng or random.Random()

    def _progress(self, line: str):
        logger.info(line)
        if self.executor.reporter:
            self.executor.reporter(line)

    def run(self, request: ProvisioningRequest) -> ProvisioningReport:
        """Provision everything ``request`` describes and return the run report."""
        identity = request.identity
        report = ProvisioningReport(identity=identity)
        first_step = len(self.executor.history)

        logger.info(
            f"Provisioning {identity.cluster_name} in {identity.region} "
            f"with {request.storage_kind.value} storage"
        )

        self._ensure_resource_group(identity)
        cluster_reused = self._ensure_cluster(request)

        if isinstance(request.storage, FilesStorage):
            identity = self._ensure_files_storage(identity, request.storage)
        else:
            self._ensure_container_storage(identity, cluster_reused)
        report.identity = identity

        self._bind_credentials(identity)
        report.nodes_ready = self._wait_for_nodes(report)
        self._apply_storage_class(identity, request.storage)
        self._apply_manifests(request, report)
        report.workload_ready = self._wait_for_workload(report)
        report.endpoint_ip = self._report_connection_info()

        report.steps = self.executor.history[first_step:]
        return report

    def _ensure_resource_group(self, identity: ResourceIdentity):
        name = identity.resource_group_name
        step = "Create resource group"

        if self.prober.resource_group(name):
            self.executor.skip(step, f"{name} already exists", payload=name)
            return

        self.executor.execute(step, lambda: self.azure.group_create(name, identity.region))

    def _ensure_cluster(self, request: ProvisioningRequest) -> bool:
        """Create the cluster unless it exists. Returns True when it was reused."""
        identity = request.identity
        rg = identity.resource_group_name
        name = identity.cluster_name
        step = "Create AKS cluster"

        if self.prober.cluster(rg, name):
            self.executor.skip(step, f"{name} already exists", payload=name)
            return True

        self.executor.execute(step, lambda: self.azure.aks_create(
            resource_group=rg,
            name=name,
            region=identity.region,
            node_count=request.node_count,
            node_vm_size=request.node_vm_size,
            kubernetes_version=request.kubernetes_version,
            enable_container_storage=request.storage_kind == StorageKind.NVME
        ))
        return False

    def _ensure_container_storage(self, identity: ResourceIdentity, cluster_reused: bool):
        # A freshly created cluster got the extension at create time.
        if not cluster_reused:
            return
        self.executor.execute(
            "Enable container storage",
            lambda: self.azure.aks_enable_container_storage(identity.resource_group_name, identity.cluster_name),
            continue_on_error=True
        )

    def _ensure_files_storage(self, identity: ResourceIdentity, storage: FilesStorage) -> ResourceIdentity:
        rg = identity.resource_group_name

        account = self.prober.storage_account(rg, identity.storage_account_prefix)
        if account:
            self.executor.skip("Create storage account", f"reusing {account}", payload=account)
        else:
            account = generate_storage_account_name(identity.prefix, self.rng)
            self.executor.execute("Create storage account", lambda: self.azure.storage_account_create(
                name=account,
                resource_group=rg,
                region=identity.region,
                sku=storage.sku,
                kind=self.azure_config.storage_account_kind,
                min_tls_version=self.azure_config.min_tls_version
            ))
        identity = identity.with_storage_account(account)

        if self.prober.file_share(account, rg, storage.share_name):
            self.executor.skip("Create file share", f"{storage.share_name} already exists",
                               payload=storage.share_name)
        else:
            self.executor.execute("Create file share", lambda: self.azure.file_share_create(
                account, rg, storage.share_name, storage.quota_gb
            ))

        principal_id = self.executor.execute(
            "Get cluster identity",
            lambda: self.azure.aks_principal_id(rg, identity.cluster_name)
        ).payload
        account_id = self.executor.execute(
            "Get storage account id",
            lambda: self.azure.storage_account_id(account, rg)
        ).payload

        # The grant may already exist from an earlier run.
        self.executor.execute(
            "Assign storage role",
            lambda: self.azure.role_assignment_create(principal_id, self.azure_config.role_name, account_id),
            continue_on_error=True
        )
        return identity

    def _bind_credentials(self, identity: ResourceIdentity):
        self.executor.execute(
            "Get cluster credentials",
            lambda: self.azure.aks_get_credentials(identity.resource_group_name, identity.cluster_name)
        )
        self.kubectl.reset()

    def _wait_for_nodes(self, report: ProvisioningReport) -> bool:
        def show(state: PollState):
            if state.observed is not None:
                ready, total = state.observed
                self._progress(f"   Nodes ready: {ready}/{total} (check {state.attempt}/{state.max_attempts})")

        outcome = poll_until(
            nodes_ready_predicate(self.kubectl),
            max_attempts=self.polling.node_max_attempts,
            interval=self.polling.interval_seconds,
            sleep=self.sleep,
            on_attempt=show,
            name="node readiness"
        )
        if outcome == PollOutcome.TIMED_OUT:
            message = "Not all nodes reported Ready in time; continuing anyway"
            self.executor.warn("Wait for nodes", message)
            report.warnings.append(message)
            return False
        return True

    def _apply_storage_class(self, identity: ResourceIdentity, storage: StorageMode):
        content = render_manifest(generate_storage_class(identity, storage))
        self.executor.execute(
            "Apply storage class",
            lambda: self.kubectl.apply_manifest(content=content),
            continue_on_error=True
        )

    def _apply_manifests(self, request: ProvisioningRequest, report: ProvisioningReport):
        files = manifest_files(request.storage_kind, request.manifest_dir, self.manifest_config)

        for manifest in files:
            step = f"Apply {manifest.label} manifest"
            if not manifest.exists:
                message = f"{manifest.path} not found"
                self.executor.skip(step, message)
                report.warnings.append(f"{step}: {message}")
                continue

            path = str(manifest.path)
            self.executor.execute(step, lambda: self.kubectl.apply_manifest(path=path), continue_on_error=True)

    def _wait_for_workload(self, report: ProvisioningReport) -> bool:
        def show(state: PollState):
            phases = ", ".join(phase for _, phase in state.observed) if state.observed else "no pods yet"
            self._progress(f"   Server pod: {phases} (check {state.attempt}/{state.max_attempts})")

        outcome = poll_until(
            pod_running_predicate(self.kubectl, WORKLOAD_SELECTOR),
            max_attempts=self.polling.pod_max_attempts,
            interval=self.polling.interval_seconds,
            sleep=self.sleep,
            on_attempt=show,
            name="server pod"
        )
        if outcome == PollOutcome.TIMED_OUT:
            message = "Minecraft server pod is not Running yet; check it with 'aks-minecraft status'"
            self.executor.warn("Wait for workload", message)
            report.warnings.append(message)
            return False
        return True

    def _report_connection_info(self) -> Optional[str]:
        result = self.executor.execute(
            "Get LoadBalancer IP",
            lambda: self.kubectl.get_service_ingress(SERVICE_NAME),
            continue_on_error=True
        )
        ips = result.payload if result.succeeded else None

        if ips:
            self._progress(f"🎮 Minecraft server: {ips[0]}:{MINECRAFT_PORT}")
            return ips[0]

        self._progress(
            "⏳ External IP not assigned yet. Check again in a few minutes with "
            f"'aks-minecraft status' or 'kubectl get service {SERVICE_NAME}'"
        )
        return None
