"""Bounded fixed-interval polling for cluster and workload readiness."""

import logging
import time
from typing import Callable, Optional

from aks_minecraft_ops.models.results import PollState, PollOutcome

logger = logging.getLogger(__name__)

Predicate = Callable[[int, int], PollState]


def poll_until(
    predicate: Predicate,
    max_attempts: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Optional[Callable[[PollState], None]] = None,
    name: str = "condition"
) -> PollOutcome:
    """Call ``predicate`` until it is satisfied or attempts run out.

    Args:
        predicate: Called with (attempt, max_attempts); returns a PollState
        max_attempts: Hard cap on the number of checks
        interval: Seconds to wait between checks
        sleep: Sleep function (injectable for tests)
        on_attempt: Optional callback receiving each observed PollState
        name: Label used in log messages

    Exhaustion is not an error: the caller decides whether to warn and go on.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            state = predicate(attempt, max_attempts)
        except Exception as e:
            logger.warning(f"Check {attempt}/{max_attempts} for {name} failed: {e}")
            state = PollState(attempt=attempt, max_attempts=max_attempts, observed=None, satisfied=False)

        if on_attempt:
            on_attempt(state)

        if state.satisfied:
            logger.info(f"{name} satisfied after {attempt} attempt(s)")
            return PollOutcome.SATISFIED

        if attempt < max_attempts:
            sleep(interval)

    logger.warning(f"{name} not satisfied after {max_attempts} attempts")
    return PollOutcome.TIMED_OUT


def nodes_ready_predicate(kubectl) -> Predicate:
    """Satisfied when every node reports Ready and there is at least one node."""
    def check(attempt: int, max_attempts: int) -> PollState:
        nodes = kubectl.list_nodes()
        total = len(nodes)
        ready = sum(1 for node in nodes if node.ready)
        return PollState(
            attempt=attempt,
            max_attempts=max_attempts,
            observed=(ready, total),
            satisfied=total > 0 and ready == total
        )

    return check


def pod_running_predicate(kubectl, selector: str) -> Predicate:
    """Satisfied when at least one pod matching ``selector`` is Running."""
    def check(attempt: int, max_attempts: int) -> PollState:
        pods = kubectl.list_pods(selector)
        return PollState(
            attempt=attempt,
            max_attempts=max_attempts,
            observed=[(pod.name, pod.phase) for pod in pods],
            satisfied=any(pod.running for pod in pods)
        )

    return check
