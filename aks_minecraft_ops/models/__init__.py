"""Data models for provisioning runs."""

from .identity import (
    ResourceIdentity,
    ProvisioningRequest,
    StorageKind,
    StorageMode,
    FilesStorage,
    LocalNvmeStorage,
    storage_mode_for,
    generate_storage_account_name,
    MINECRAFT_PORT,
)
from .results import (
    Outcome,
    OperationResult,
    PollState,
    PollOutcome,
    TerminalState,
    TeardownJob,
    TeardownReport,
    ProvisioningReport,
)

__all__ = [
    'ResourceIdentity',
    'ProvisioningRequest',
    'StorageKind',
    'StorageMode',
    'FilesStorage',
    'LocalNvmeStorage',
    'storage_mode_for',
    'generate_storage_account_name',
    'MINECRAFT_PORT',
    'Outcome',
    'OperationResult',
    'PollState',
    'PollOutcome',
    'TerminalState',
    'TeardownJob',
    'TeardownReport',
    'ProvisioningReport',
]
