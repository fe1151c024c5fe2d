"""Provisioning, probing and teardown services."""

from .executor import OperationExecutor
from .prober import IdempotencyProber
from .provisioning import ProvisioningPipeline
from .teardown import TeardownCoordinator

__all__ = [
    'OperationExecutor',
    'IdempotencyProber',
    'ProvisioningPipeline',
    'TeardownCoordinator'
]
