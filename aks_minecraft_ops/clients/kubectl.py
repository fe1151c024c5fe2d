"""Cluster client: reads and deletes via the Kubernetes API, apply and rollout via kubectl."""

import logging
import os
import tempfile
from dataclasses import dataclass
from functools import wraps
from typing import List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from aks_minecraft_ops.clients.base import CommandRunner
from aks_minecraft_ops.exceptions import ExternalCommandError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass
class NodeInfo:
    """A cluster node and its readiness."""
    name: str
    phase: str

    @property
    def ready(self) -> bool:
        return self.phase == "Ready"


@dataclass
class PodInfo:
    """A pod and its lifecycle phase."""
    name: str
    phase: str

    @property
    def running(self) -> bool:
        return self.phase == "Running"


def wrap_api_error(func):
    """Decorator to turn Kubernetes API errors into ExternalCommandError."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ApiException as e:
            raise ExternalCommandError(
                f"Kubernetes API call {func.__name__} failed: {e.reason}",
                command=[func.__name__],
                returncode=e.status or 1,
                stderr=str(e.body or e.reason),
                error_code=ErrorCode.KUBERNETES_API_ERROR
            ) from e

    return wrapper


class KubectlClient:
    """Cluster-orchestration client for the demo workload."""

    def __init__(self, runner: Optional[CommandRunner] = None, kubectl_binary: str = "kubectl",
                 namespace: str = "default", kubeconfig_path: Optional[str] = None):
        """Initialize the cluster client.

        Args:
            runner: Command runner for kubectl invocations
            kubectl_binary: Path to the kubectl binary
            namespace: Namespace holding the workload
            kubeconfig_path: Path to kubeconfig file (None for the default location)
        """
        self.runner = runner or CommandRunner()
        self.kubectl_binary = kubectl_binary
        self.namespace = namespace
        self.kubeconfig_path = kubeconfig_path
        self._core_v1 = None
        self._apps_v1 = None
        self._storage_v1 = None

    def reset(self):
        """Drop cached API clients so the next call re-reads the kubeconfig."""
        self._core_v1 = None
        self._apps_v1 = None
        self._storage_v1 = None

    def _ensure_clients(self):
        if self._core_v1 is None:
            config.load_kube_config(config_file=self.kubeconfig_path)
            self._core_v1 = client.CoreV1Api()
            self._apps_v1 = client.AppsV1Api()
            self._storage_v1 = client.StorageV1Api()

    @property
    def core_v1(self):
        self._ensure_clients()
        return self._core_v1

    @property
    def apps_v1(self):
        self._ensure_clients()
        return self._apps_v1

    @property
    def storage_v1(self):
        self._ensure_clients()
        return self._storage_v1

    def current_context(self) -> Optional[str]:
        """Name of the active kubeconfig context, or None if there is none."""
        try:
            _, active = config.list_kube_config_contexts(config_file=self.kubeconfig_path)
        except (config.ConfigException, FileNotFoundError) as e:
            logger.debug(f"No active kubeconfig context: {e}")
            return None
        return active.get('name') if active else None

    @wrap_api_error
    def list_nodes(self) -> List[NodeInfo]:
        nodes = []
        for node in self.core_v1.list_node().items:
            conditions = (node.status.conditions or []) if node.status else []
            ready = any(c.type == "Ready" and c.status == "True" for c in conditions)
            nodes.append(NodeInfo(name=node.metadata.name, phase="Ready" if ready else "NotReady"))
        return nodes

    @wrap_api_error
    def list_pods(self, selector: str) -> List[PodInfo]:
        response = self.core_v1.list_namespaced_pod(
            namespace=self.namespace,
            label_selector=selector
        )
        return [
            PodInfo(name=pod.metadata.name, phase=(pod.status.phase if pod.status else None) or "Unknown")
            for pod in response.items
        ]

    @wrap_api_error
    def get_service_ingress(self, name: str) -> List[str]:
        """External IPs assigned to a LoadBalancer service (empty while pending)."""
        try:
            service = self.core_v1.read_namespaced_service(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return []
            raise

        load_balancer = service.status.load_balancer if service.status else None
        ingress = (load_balancer.ingress if load_balancer else None) or []
        return [entry.ip for entry in ingress if entry.ip]

    @wrap_api_error
    def delete_resource(self, kind: str, name: str, ignore_not_found: bool = True) -> bool:
        """Delete one object. Returns False if it did not exist and that is ignored."""
        deleters = {
            "deployment": lambda: self.apps_v1.delete_namespaced_deployment(name=name, namespace=self.namespace),
            "service": lambda: self.core_v1.delete_namespaced_service(name=name, namespace=self.namespace),
            "persistentvolumeclaim": lambda: self.core_v1.delete_namespaced_persistent_volume_claim(
                name=name, namespace=self.namespace
            ),
            "configmap": lambda: self.core_v1.delete_namespaced_config_map(name=name, namespace=self.namespace),
            "storageclass": lambda: self.storage_v1.delete_storage_class(name=name),
        }
        if kind not in deleters:
            raise ValueError(f"Unsupported resource kind: {kind}")

        try:
            deleters[kind]()
        except ApiException as e:
            if e.status == 404 and ignore_not_found:
                logger.info(f"{kind}/{name} not found, nothing to delete")
                return False
            raise

        logger.info(f"Deleted {kind}/{name}")
        return True

    def apply_manifest(self, path: Optional[str] = None, content: Optional[str] = None) -> str:
        """kubectl apply a manifest file or an in-memory manifest."""
        if (path is None) == (content is None):
            raise ValueError("Exactly one of path or content is required")

        if path is not None:
            return self._apply_file(path)

        fd, temp_path = tempfile.mkstemp(suffix=".yaml", prefix="aks-minecraft-")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            return self._apply_file(temp_path)
        finally:
            os.unlink(temp_path)

    def _apply_file(self, path: str) -> str:
        result = self.runner.run(
            [self.kubectl_binary, "apply", "-f", path, "--namespace", self.namespace],
            timeout=120
        )
        return result.stdout.strip()

    def rollout_status(self, deployment: str, timeout: int = 300) -> str:
        result = self.runner.run(
            [self.kubectl_binary, "rollout", "status", f"deployment/{deployment}",
             "--namespace", self.namespace, f"--timeout={timeout}s"],
            timeout=timeout + 30
        )
        return result.stdout.strip()
