"""Clients for the external control planes: Azure CLI and Kubernetes."""

from .base import CommandRunner, CommandResult, BackgroundCommand
from .azure_cli import AzureCliClient
from .kubectl import KubectlClient, NodeInfo, PodInfo

__all__ = [
    'CommandRunner',
    'CommandResult',
    'BackgroundCommand',
    'AzureCliClient',
    'KubectlClient',
    'NodeInfo',
    'PodInfo'
]
