"""Parallel teardown of demo resource groups."""

import logging
import time
from typing import Callable, Iterable, List, Optional

from tabulate import tabulate

from aks_minecraft_ops.clients.azure_cli import AzureCliClient
from aks_minecraft_ops.clients.base import CommandResult
from aks_minecraft_ops.clients.kubectl import KubectlClient
from aks_minecraft_ops.config import config, PollingConfig
from aks_minecraft_ops.exceptions import ResourceGroupNotFoundError, ValidationError
from aks_minecraft_ops.manifests import WORKLOAD_OBJECTS
from aks_minecraft_ops.models.identity import (
    RESOURCE_GROUP_MARKER,
    cluster_name_for,
    prefix_from_resource_group,
    resource_group_name_for,
    validate_prefix,
)
from aks_minecraft_ops.models.results import TeardownJob, TeardownReport, TerminalState
from aks_minecraft_ops.services.executor import OperationExecutor

logger = logging.getLogger(__name__)

_STATE_LABELS = {
    TerminalState.PENDING: "⏳ deleting",
    TerminalState.SUCCEEDED: "✅ deleted",
    TerminalState.FAILED: "❌ failed",
}


class _FailedStart:
    """Handle for a deletion that could not even be launched."""

    def __init__(self, code: int, message: str):
        self._result = CommandResult(args=[], returncode=code or 1, stderr=message)

    def is_done(self) -> bool:
        return True

    def result(self) -> CommandResult:
        return self._result


class TeardownCoordinator:
    """Deletes resource groups concurrently and watches them to completion.

    Each deletion is a detached ``az group delete`` process. The coordinator
    only reads job states; it never cancels a deletion, so on timeout the
    remaining deletions keep running in Azure.
    """

    def __init__(
        self,
        azure: AzureCliClient,
        kubectl: KubectlClient,
        executor: OperationExecutor,
        polling: Optional[PollingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.azure = azure
        self.kubectl = kubectl
        self.executor = executor
        self.polling = polling or config.polling
        self.sleep = sleep
        self.clock = clock

    def _progress(self, text: str):
        logger.info(text)
        if self.executor.reporter:
            self.executor.reporter(text)

    def resolve_targets(self, prefix: Optional[str] = None, include_all: bool = False) -> List[str]:
        """Resource groups to delete.

        Raises ResourceGroupNotFoundError when nothing matches.
        """
        if include_all:
            names: List[str] = []
            for group in self.azure.group_list(RESOURCE_GROUP_MARKER):
                name = group.get('name')
                if name and name not in names:
                    names.append(name)
            if not names:
                raise ResourceGroupNotFoundError(f"*{RESOURCE_GROUP_MARKER}*")
            return names

        if not prefix:
            raise ValidationError("A prefix is required unless all demo groups are targeted", field='prefix')
        try:
            validate_prefix(prefix)
        except ValueError as e:
            raise ValidationError(str(e), field='prefix', value=prefix) from e

        name = resource_group_name_for(prefix)
        if not self.azure.group_exists(name):
            raise ResourceGroupNotFoundError(name)
        return [name]

    def clean_workload(self, targets: Iterable[str]) -> bool:
        """Best-effort removal of the demo's Kubernetes objects.

        Only runs when the active kubeconfig context points at the cluster of
        one of the ``targets`` resource groups.
        """
        clusters = {
            cluster_name_for(prefix)
            for prefix in (prefix_from_resource_group(target) for target in targets)
            if prefix
        }
        # az aks get-credentials names the context after the cluster
        context = self.kubectl.current_context()
        if context not in clusters:
            self._progress("ℹ️  Active kubectl context is not a cluster being torn down; skipping workload cleanup")
            return False

        self._progress(f"🧹 Removing workload objects from context {context}")
        for kind, name in WORKLOAD_OBJECTS:
            self.executor.execute(
                f"Delete {kind}/{name}",
                lambda kind=kind, name=name: self.kubectl.delete_resource(kind, name, ignore_not_found=True),
                continue_on_error=True
            )
        return True

    def start_jobs(self, targets: Iterable[str]) -> List[TeardownJob]:
        jobs = []
        for target in targets:
            result = self.executor.execute(
                f"Start deletion of {target}",
                lambda target=target: self.azure.group_delete(target, background=True),
                continue_on_error=True
            )
            handle = result.payload if result.succeeded else _FailedStart(result.code, result.error_message or "")
            jobs.append(TeardownJob(target_resource_group=target, handle=handle))
        return jobs

    def render_status(self, jobs: List[TeardownJob], elapsed: float) -> str:
        rows = [
            [job.target_resource_group, _STATE_LABELS[job.terminal_state]]
            for job in jobs
        ]
        minutes, seconds = divmod(int(elapsed), 60)
        table = tabulate(rows, headers=['Resource Group', 'Status'], tablefmt='grid')
        return f"Elapsed {minutes:02d}:{seconds:02d}\n{table}"

    def wait_for_jobs(self, jobs: List[TeardownJob]) -> TeardownReport:
        """Poll every job until all are terminal or the global timeout passes."""
        started = self.clock()
        deadline = started + self.polling.teardown_timeout_seconds
        timed_out = False

        while True:
            elapsed = self.clock() - started
            states = [job.terminal_state for job in jobs]
            self._progress(self.render_status(jobs, elapsed))

            if TerminalState.PENDING not in states:
                break
            if self.clock() >= deadline:
                timed_out = True
                break

            remaining = deadline - self.clock()
            self.sleep(max(0.0, min(self.polling.teardown_interval_seconds, remaining)))

        states = [job.terminal_state for job in jobs]
        report = TeardownReport(
            completed=states.count(TerminalState.SUCCEEDED),
            failed=states.count(TerminalState.FAILED),
            running=states.count(TerminalState.PENDING),
            timed_out=timed_out,
            elapsed_seconds=self.clock() - started,
            jobs=jobs
        )

        if timed_out:
            logger.warning(f"Teardown timed out with {report.running} deletion(s) still in progress")
        return report

    def teardown(self, targets: Iterable[str]) -> TeardownReport:
        """Delete every target resource group and report how it went."""
        targets = list(dict.fromkeys(targets))
        if not targets:
            raise ResourceGroupNotFoundError("(no targets)")

        self.clean_workload(targets)
        jobs = self.start_jobs(targets)
        return self.wait_for_jobs(jobs)
