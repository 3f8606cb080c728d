# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/deploy/wait.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..errors import ClusterError
from ..k8s.client import ClusterClient
from ..k8s.resources import TEKTON_CONFIG
from ..observers.dispatcher import EventBus
from ..observers.events import WaiterAttempt, WaiterSucceeded, WaiterTimedOut, new_ctx
from ..utils.retry import BackoffPolicy
from .operator import TEKTON_CONFIG_NAME

log = logging.getLogger("streamstress")

POD_NAMESPACES = ("openshift-pipelines", "tekton-pipelines")
POD_SELECTOR = "app.kubernetes.io/part-of=tekton-pipelines"
OPERATOR_LOGS_CMD = "oc logs -n openshift-pipelines deploy/openshift-pipelines-operator"

DEFAULT_POLICY = BackoffPolicy(initial=10, cap=30, max_attempts=20)
DEFAULT_TIMEOUT = 900.0


@dataclass(frozen=True)
class ConvergenceResult:
    converged: bool
    attempts: int
    ready: bool
    missing_images: Tuple[str, ...]
    message: str


def image_matches(expected: str, running: str) -> bool:
    return expected in running or running in expected


def missing_images(expected: Iterable[str], running: Sequence[str]) -> List[str]:
    return [e for e in expected if not any(image_matches(e, r) for r in running)]


class ReconciliationWaiter:
    """
    Polls until the operator has rolled the new images out.

    Converged means, in the same poll: TektonConfig Ready=True and every
    expected image running in a tekton pod.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        policy: BackoffPolicy = DEFAULT_POLICY,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        observers: Optional[List] = None,
        run_id: Optional[str] = None,
        context: Optional[str] = None,
    ):
        self.cluster = cluster
        self.policy = policy
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock
        self.bus = EventBus(observers)
        self.run_id = run_id or new_ctx()["run_id"]
        self.context = context

    def is_ready(self) -> bool:
        doc = self.cluster.get_custom(TEKTON_CONFIG, TEKTON_CONFIG_NAME)
        return doc is not None and doc.condition_is_true("Ready")

    def running_images(self) -> List[str]:
        images: List[str] = []
        for ns in POD_NAMESPACES:
            try:
                pods = self.cluster.list_pods(ns, POD_SELECTOR)
            except ClusterError as e:
                log.debug("waiter: could not list pods in %s: %s", ns, e)
                continue
            for pod in pods:
                for c in pod.get("spec.containers", []) or []:
                    if c.get("image"):
                        images.append(c["image"])
                for s in pod.get("status.containerStatuses", []) or []:
                    if s.get("image"):
                        images.append(s["image"])
        return images

    def _ctx(self):
        return new_ctx(self.context, self.run_id)

    def wait(self, expected: Sequence[str]) -> ConvergenceResult:
        expected = list(expected)
        deadline = self.clock() + self.timeout
        delays = self.policy.delays()
        ready = False
        missing: List[str] = list(expected)
        last_error: Optional[ClusterError] = None
        attempt = 0

        while attempt < self.policy.max_attempts:
            attempt += 1
            try:
                ready = self.is_ready()
            except ClusterError as e:
                log.debug("waiter: could not read TektonConfig: %s", e)
                last_error = e
                ready = False
            missing = missing_images(expected, self.running_images())
            self.bus.emit(
                WaiterAttempt(
                    **self._ctx(),
                    attempt=attempt,
                    max_attempts=self.policy.max_attempts,
                    ready=ready,
                    missing=list(missing),
                )
            )
            log.debug("waiter: attempt %d ready=%s missing=%d", attempt, ready, len(missing))

            if ready and not missing:
                self.bus.emit(WaiterSucceeded(**self._ctx(), attempts=attempt))
                log.info("Operator converged after %d attempt(s)", attempt)
                return ConvergenceResult(True, attempt, True, (), f"converged after {attempt} attempt(s)")

            if attempt >= self.policy.max_attempts:
                break
            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            self.sleep(min(next(delays), remaining))

        parts = [f"operator did not converge after {attempt} attempt(s)"]
        parts.append(f"TektonConfig Ready={'True' if ready else 'False'}")
        if missing:
            parts.append("images not yet running: " + ", ".join(missing))
        if last_error is not None and not ready:
            parts.append(f"last TektonConfig read failed: {last_error}")
        parts.append(f"check the operator logs: {OPERATOR_LOGS_CMD}")
        message = "; ".join(parts)

        self.bus.emit(WaiterTimedOut(**self._ctx(), attempts=attempt, message=message))
        log.warning(message)
        return ConvergenceResult(False, attempt, ready, tuple(missing), message)
