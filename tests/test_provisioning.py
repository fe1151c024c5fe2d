"""Tests for the provisioning pipeline."""

import re

import pytest

from aks_minecraft_ops.clients.kubectl import NodeInfo, PodInfo
from aks_minecraft_ops.exceptions import FatalOperationError
from aks_minecraft_ops.models.identity import FilesStorage
from aks_minecraft_ops.models.results import Outcome
from aks_minecraft_ops.services.executor import OperationExecutor
from aks_minecraft_ops.services.provisioning import ProvisioningPipeline


class TestProvisioningPipeline:
    """Test cases for ProvisioningPipeline."""

    @pytest.fixture
    def lines(self):
        return []

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def pipeline(self, fake_azure, fake_kubectl, fast_polling, lines, sleeps, seeded_rng):
        executor = OperationExecutor(reporter=lines.append)
        return ProvisioningPipeline(
            fake_azure,
            fake_kubectl,
            executor,
            polling=fast_polling,
            sleep=sleeps.append,
            rng=seeded_rng
        )

    def test_fresh_files_deployment(self, pipeline, fake_azure, fake_kubectl, files_request):
        """Test a first run creates everything and reports the endpoint."""
        report = pipeline.run(files_request)

        assert fake_azure.called("group_create") == [
            ("group_create", "rg-demo01-minecraft-aks-demo", "northeurope")
        ]
        aks_create = fake_azure.called("aks_create")[0]
        assert aks_create[1:3] == ("rg-demo01-minecraft-aks-demo", "demo01-minecraft-aks")
        assert aks_create[-1] is False

        account = report.identity.storage_account_name
        assert re.match(r"^demo01storage\d{3}$", account)
        assert fake_azure.called("file_share_create") == [
            ("file_share_create", account, "rg-demo01-minecraft-aks-demo", "minecraft-data", 100)
        ]
        role_call = fake_azure.called("role_assignment_create")[0]
        assert role_call[1] == "principal-123"
        assert role_call[2] == "Storage Account Contributor"
        assert role_call[3].endswith(f"/storageAccounts/{account}")

        assert fake_kubectl.resets == 1
        assert fake_kubectl.applied[1:] == [
            "minecraft-pvc-azurefile.yaml",
            "minecraft-deployment.yaml",
            "minecraft-service.yaml",
        ]
        assert f"storageAccount: {account}" in fake_kubectl.applied[0]

        assert report.nodes_ready is True
        assert report.workload_ready is True
        assert report.endpoint == "20.1.2.3:25565"
        assert report.failed_steps == []
        assert report.warnings == []
        assert "Create resource group" in report.created
        assert "Create AKS cluster" in report.created

    def test_second_run_reuses_everything(self, pipeline, fake_azure, files_request):
        """Test a repeat run with the same prefix creates nothing new."""
        first = pipeline.run(files_request)
        second = pipeline.run(files_request)

        assert len(fake_azure.called("group_create")) == 1
        assert len(fake_azure.called("aks_create")) == 1
        assert len(fake_azure.called("storage_account_create")) == 1
        assert len(fake_azure.called("file_share_create")) == 1

        assert second.created == []
        assert set(second.reused) == {
            "Create resource group",
            "Create AKS cluster",
            "Create storage account",
            "Create file share",
        }
        assert second.identity.storage_account_name == first.identity.storage_account_name
        assert second.endpoint == first.endpoint

    def test_report_steps_cover_only_this_run(self, pipeline, files_request):
        """Test each report lists only its own run's steps."""
        first = pipeline.run(files_request)
        second = pipeline.run(files_request)

        assert len(second.steps) == len(first.steps)
        assert second.steps[0].outcome == Outcome.SKIPPED

    def test_files_mode_never_touches_container_storage(self, pipeline, fake_azure, fake_kubectl,
                                                        files_request):
        """Test Azure Files mode makes no NVMe calls, even on a reused cluster."""
        fake_azure.clusters.add("demo01-minecraft-aks")

        pipeline.run(files_request)

        assert fake_azure.called("aks_enable_container_storage") == []
        assert "minecraft-pvc-nvme.yaml" not in fake_kubectl.applied

    def test_nvme_mode_skips_file_storage(self, pipeline, fake_azure, fake_kubectl, nvme_request):
        """Test NVMe mode creates no storage account or share."""
        report = pipeline.run(nvme_request)

        assert fake_azure.called("storage_account_list") == []
        assert fake_azure.called("storage_account_create") == []
        assert fake_azure.called("file_share_create") == []
        assert fake_azure.called("role_assignment_create") == []
        assert fake_azure.called("aks_create")[0][-1] is True
        # Cluster was created with the extension already enabled
        assert fake_azure.called("aks_enable_container_storage") == []

        assert "minecraft-pvc-nvme.yaml" in fake_kubectl.applied
        assert "localdisk.csi.acstor.io" in fake_kubectl.applied[0]
        assert report.identity.storage_account_name is None

    def test_nvme_mode_enables_container_storage_on_reused_cluster(self, pipeline, fake_azure,
                                                                  nvme_request):
        """Test a reused cluster gets container storage enabled."""
        fake_azure.groups.add("rg-demo01-minecraft-aks-demo")
        fake_azure.clusters.add("demo01-minecraft-aks")

        pipeline.run(nvme_request)

        assert fake_azure.called("aks_create") == []
        assert fake_azure.called("aks_enable_container_storage") == [
            ("aks_enable_container_storage", "rg-demo01-minecraft-aks-demo", "demo01-minecraft-aks")
        ]

    def test_reuses_existing_storage_account(self, pipeline, fake_azure, files_request):
        """Test an existing account with the prefix is reused instead of created."""
        fake_azure.storage_accounts.append("demo01storage512")

        report = pipeline.run(files_request)

        assert fake_azure.called("storage_account_create") == []
        assert report.identity.storage_account_name == "demo01storage512"

    def test_storage_sku_comes_from_storage_mode(self, pipeline, fake_azure, fake_kubectl, files_request):
        """Test the account and its storage class both use the SKU of the chosen storage mode."""
        request = files_request.model_copy(update={"storage": FilesStorage(sku="Standard_LRS")})

        pipeline.run(request)

        assert fake_azure.called("storage_account_create")[0][4] == "Standard_LRS"
        assert "skuName: Standard_LRS" in fake_kubectl.applied[0]

    def test_missing_manifest_does_not_block_later_ones(self, pipeline, fake_kubectl, files_request,
                                                        manifest_dir):
        """Test a missing deployment manifest is skipped and the service still applied."""
        (manifest_dir / "minecraft-deployment.yaml").unlink()

        report = pipeline.run(files_request)

        assert fake_kubectl.applied[1:] == ["minecraft-pvc-azurefile.yaml", "minecraft-service.yaml"]
        assert any("minecraft-deployment.yaml not found" in w for w in report.warnings)
        skipped = [s for s in report.steps if s.name == "Apply deployment manifest"]
        assert skipped[0].outcome == Outcome.SKIPPED

    def test_failed_manifest_apply_continues(self, pipeline, fake_kubectl, files_request,
                                             make_command_error):
        """Test a failing apply is recorded and the next manifest still applied."""
        fake_kubectl.apply_failures["minecraft-pvc-azurefile.yaml"] = make_command_error("bad pvc")

        report = pipeline.run(files_request)

        assert "minecraft-service.yaml" in fake_kubectl.applied
        assert [s.name for s in report.failed_steps] == ["Apply PVC manifest"]

    def test_required_step_failure_stops_pipeline(self, pipeline, fake_azure, fake_kubectl,
                                                  files_request, make_command_error):
        """Test a cluster creation failure is fatal and nothing later runs."""
        fake_azure.failures["aks_create"] = make_command_error("quota exceeded", returncode=2)

        with pytest.raises(FatalOperationError) as exc_info:
            pipeline.run(files_request)

        assert exc_info.value.operation == "Create AKS cluster"
        assert exc_info.value.code == 2
        assert len(fake_azure.called("group_create")) == 1
        assert fake_azure.called("storage_account_create") == []
        assert fake_azure.called("aks_get_credentials") == []
        assert fake_kubectl.applied == []

    def test_failed_lookup_stops_before_create(self, pipeline, fake_azure, files_request,
                                               make_command_error, lines):
        """Test an existence check that errors is reported and never treated as absence."""
        fake_azure.failures["group_show"] = make_command_error("Please run 'az login'", returncode=1)

        with pytest.raises(FatalOperationError) as exc_info:
            pipeline.run(files_request)

        assert exc_info.value.operation == "Check existing resource group"
        assert fake_azure.called("group_create") == []
        assert any(line.startswith("❌ Check existing resource group failed") for line in lines)

    def test_role_assignment_failure_is_recoverable(self, pipeline, fake_azure, fake_kubectl,
                                                    files_request, make_command_error):
        """Test a failed role grant is linked to a workload that never starts."""
        fake_azure.failures["role_assignment_create"] = make_command_error("already exists")
        fake_kubectl.pod_responses = [[PodInfo("minecraft-server-abc", "Pending")]]

        report = pipeline.run(files_request)

        assert report.workload_ready is False
        assert [s.name for s in report.failed_steps] == ["Assign storage role"]
        causes = report.likely_causes()
        assert list(causes) == ["WorkloadReady"]
        assert causes["WorkloadReady"][0].startswith("Assign storage role")

    def test_node_poll_with_zero_nodes_times_out(self, pipeline, fake_kubectl, files_request, sleeps):
        """Test an empty node list never counts as ready."""
        fake_kubectl.node_responses = [[]]

        report = pipeline.run(files_request)

        assert report.nodes_ready is False
        assert any("nodes" in w for w in report.warnings)
        # 3 node checks: 2 sleeps; pods satisfied at once
        assert sleeps == [15.0, 15.0]
        # The pipeline still went on to deploy the workload
        assert "minecraft-service.yaml" in fake_kubectl.applied

    def test_node_poll_waits_for_all_nodes(self, pipeline, fake_kubectl, files_request, lines, sleeps):
        """Test node polling continues until every node is Ready."""
        fake_kubectl.node_responses = [
            [NodeInfo("aks-node-0", "Ready"), NodeInfo("aks-node-1", "NotReady")],
            [NodeInfo("aks-node-0", "Ready"), NodeInfo("aks-node-1", "Ready")],
        ]

        report = pipeline.run(files_request)

        assert report.nodes_ready is True
        assert sleeps == [15.0]
        assert any("Nodes ready: 1/2" in line for line in lines)
        assert any("Nodes ready: 2/2" in line for line in lines)

    def test_pending_ip_is_not_a_failure(self, pipeline, fake_kubectl, files_request, lines):
        """Test a missing LoadBalancer IP reports a deferred check."""
        fake_kubectl.ingress = []

        report = pipeline.run(files_request)

        assert report.endpoint is None
        assert report.failed_steps == []
        assert any("External IP not assigned yet" in line for line in lines)
        assert "ConnectionInfoReported" not in report.likely_causes()

    def test_endpoint_is_reported(self, pipeline, files_request, lines):
        """Test the endpoint line uses the Minecraft port."""
        pipeline.run(files_request)

        assert "🎮 Minecraft server: 20.1.2.3:25565" in lines
