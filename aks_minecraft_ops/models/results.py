"""Result types produced by the executor, poller, pipeline and teardown."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from aks_minecraft_ops.models.identity import ResourceIdentity, MINECRAFT_PORT


class Outcome(Enum):
    """Outcome of a single executed operation."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class OperationResult:
    """Result of one external call made through the executor."""
    name: str
    outcome: Outcome
    payload: Any = None
    code: Optional[int] = None
    error_message: Optional[str] = None

    @classmethod
    def Success(cls, name: str, payload: Any = None) -> 'OperationResult':
        return cls(name=name, outcome=Outcome.SUCCESS, payload=payload)

    @classmethod
    def Failed(cls, name: str, code: int, error_message: Optional[str] = None) -> 'OperationResult':
        return cls(name=name, outcome=Outcome.FAILED, code=code, error_message=error_message)

    @classmethod
    def Skipped(cls, name: str, payload: Any = None, reason: Optional[str] = None) -> 'OperationResult':
        return cls(name=name, outcome=Outcome.SKIPPED, payload=payload, error_message=reason)

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILED

    @property
    def skipped(self) -> bool:
        return self.outcome == Outcome.SKIPPED


@dataclass
class PollState:
    """One observation inside a poll loop."""
    attempt: int
    max_attempts: int
    observed: Any
    satisfied: bool


class PollOutcome(Enum):
    """How a poll loop ended."""
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"


class TerminalState(Enum):
    """State of a background deletion task."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TaskHandle(Protocol):
    """Anything that can report whether a background task finished and how."""

    def is_done(self) -> bool: ...

    def result(self) -> Any: ...


@dataclass
class TeardownJob:
    """A background resource-group deletion.

    Only the background task changes its own state; the coordinator reads it.
    """
    target_resource_group: str
    handle: TaskHandle

    @property
    def terminal_state(self) -> TerminalState:
        if not self.handle.is_done():
            return TerminalState.PENDING
        if self.handle.result().returncode == 0:
            return TerminalState.SUCCEEDED
        return TerminalState.FAILED

    @property
    def error_message(self) -> Optional[str]:
        if self.terminal_state != TerminalState.FAILED:
            return None
        result = self.handle.result()
        return (result.stderr or "").strip() or f"exit code {result.returncode}"


@dataclass
class TeardownReport:
    """Aggregate outcome of a teardown run."""
    completed: int
    failed: int
    running: int
    timed_out: bool
    elapsed_seconds: float
    jobs: List[TeardownJob] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.running == 0

    @property
    def running_targets(self) -> List[str]:
        return [j.target_resource_group for j in self.jobs if j.terminal_state == TerminalState.PENDING]

    @property
    def failed_targets(self) -> Dict[str, str]:
        return {
            j.target_resource_group: j.error_message or ""
            for j in self.jobs
            if j.terminal_state == TerminalState.FAILED
        }


# Recoverable steps whose failure can explain a later shortfall.
_WARNING_EFFECTS = {
    "Assign storage role": ("WorkloadReady", "the cluster may lack permission to mount the file share"),
    "Enable container storage": ("WorkloadReady", "the NVMe storage pool may be missing"),
    "Apply storage class": ("WorkloadReady", "the volume claim has no storage class to bind to"),
    "Apply PVC manifest": ("WorkloadReady", "the server pod has no volume to mount"),
    "Apply deployment manifest": ("WorkloadReady", "no server pod was created"),
    "Apply service manifest": ("ConnectionInfoReported", "no LoadBalancer service exists"),
}


@dataclass
class ProvisioningReport:
    """Everything a provisioning run did, for the final summary."""
    identity: ResourceIdentity
    steps: List[OperationResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    nodes_ready: bool = False
    workload_ready: bool = False
    endpoint_ip: Optional[str] = None

    @property
    def endpoint(self) -> Optional[str]:
        if not self.endpoint_ip:
            return None
        return f"{self.endpoint_ip}:{MINECRAFT_PORT}"

    @property
    def created(self) -> List[str]:
        return [s.name for s in self.steps if s.succeeded and s.name.startswith("Create")]

    @property
    def reused(self) -> List[str]:
        return [s.name for s in self.steps if s.skipped and s.name.startswith("Create")]

    @property
    def failed_steps(self) -> List[OperationResult]:
        return [s for s in self.steps if s.failed]

    def likely_causes(self) -> Dict[str, List[str]]:
        """Map each unmet best-effort stage to the earlier failures that may explain it."""
        unmet = set()
        if not self.workload_ready:
            unmet.add("WorkloadReady")
        if not self.endpoint_ip:
            unmet.add("ConnectionInfoReported")

        causes: Dict[str, List[str]] = {}
        for step in self.steps:
            if not (step.failed or step.skipped):
                continue
            effect = _WARNING_EFFECTS.get(step.name)
            if effect and effect[0] in unmet:
                causes.setdefault(effect[0], []).append(f"{step.name}: {effect[1]}")
        return causes
