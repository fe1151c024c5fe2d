"""Configuration management for AKS Minecraft Ops."""

import os
from typing import Dict, Optional, Tuple
from dataclasses import dataclass, field


SUPPORTED_REGIONS: Tuple[str, ...] = (
    "northeurope",
    "westeurope",
    "uksouth",
    "swedencentral",
    "francecentral",
    "germanywestcentral",
    "eastus",
    "eastus2",
    "westus2",
    "westus3",
    "centralus",
    "southcentralus",
    "canadacentral",
    "australiaeast",
    "japaneast",
    "southeastasia",
)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class AzureConfig:
    """Azure resource defaults."""
    default_region: str = "northeurope"
    node_count: int = 2
    files_vm_size: str = "Standard_D4s_v5"
    nvme_vm_size: str = "Standard_L8s_v3"
    storage_account_kind: str = "FileStorage"
    min_tls_version: str = "TLS1_2"
    role_name: str = "Storage Account Contributor"
    command_timeout: int = 1800  # aks create can take a while


@dataclass
class PollingConfig:
    """Polling and timeout configuration."""
    interval_seconds: float = 15.0
    node_max_attempts: int = 40
    pod_max_attempts: int = 40
    teardown_interval_seconds: float = 30.0
    teardown_timeout_seconds: float = 20 * 60


@dataclass
class ManifestConfig:
    """Kubernetes manifest locations, keyed by storage mode."""
    manifest_dir: str = "k8s"
    pvc_files: Dict[str, str] = field(default_factory=lambda: {
        "files": "minecraft-pvc-azurefile.yaml",
        "nvme": "minecraft-pvc-nvme.yaml",
    })
    deployment_file: str = "minecraft-deployment.yaml"
    service_file: str = "minecraft-service.yaml"


@dataclass
class Config:
    """Main configuration class."""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    azure: AzureConfig = field(default_factory=AzureConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    manifests: ManifestConfig = field(default_factory=ManifestConfig)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        config = cls()

        # Logging config
        config.logging.level = os.getenv('AKS_MC_LOG_LEVEL', config.logging.level)
        config.logging.file_path = os.getenv('AKS_MC_LOG_FILE')

        # Azure config
        config.azure.default_region = os.getenv('AKS_MC_REGION', config.azure.default_region)
        config.azure.node_count = int(os.getenv('AKS_MC_NODE_COUNT', str(config.azure.node_count)))

        # Polling config
        config.polling.interval_seconds = float(
            os.getenv('AKS_MC_POLL_INTERVAL', str(config.polling.interval_seconds))
        )
        config.polling.teardown_timeout_seconds = float(
            os.getenv('AKS_MC_TEARDOWN_TIMEOUT', str(config.polling.teardown_timeout_seconds))
        )

        # Manifest config
        config.manifests.manifest_dir = os.getenv('AKS_MC_MANIFEST_DIR', config.manifests.manifest_dir)

        return config


# Global configuration instance
config = Config.from_env()
