"""
AKS Minecraft Ops

Provisions and tears down an Azure Kubernetes Service cluster running a
Minecraft Java Edition server for live demos, backed by Azure Files or
Azure Container Storage on local NVMe.
"""

__version__ = "0.1.0"
__author__ = "AKS Minecraft Ops"
