# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/bootstrap/setup_manager.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..deploy.operator import (
    INSTALL_OPERATOR_HINT,
    OPERATOR_NAMES,
    OPERATOR_NAMESPACES,
    TEKTON_CONFIG_NAME,
    ensure_image_pull_rbac,
)
from ..config.settings import DEFAULT_IMAGE_NAMESPACE
from ..errors import ClusterError
from ..k8s.client import ClusterClient
from ..k8s.resources import IMAGE_REGISTRY_CONFIG, ROUTE, SUBSCRIPTION, TEKTON_CONFIG
from ..observers.dispatcher import EventBus
from ..observers.events import (
    BootstrapStepFinished,
    BootstrapStepStarted,
    BootstrapSummary,
    new_ctx,
)
from ..registry.bridge import ENABLE_ROUTE_HINT, ROUTE_NAME, ROUTE_NAMESPACE
from ..utils.retry import BackoffPolicy, retry

log = logging.getLogger("streamstress")

SUBSCRIPTION_NAME = "openshift-pipelines-operator"
SUBSCRIPTION_NAMESPACE = "openshift-operators"
SUBSCRIPTION_SPEC = {
    "channel": "latest",
    "name": "openshift-pipelines-operator-rh",
    "source": "redhat-operators",
    "sourceNamespace": "openshift-marketplace",
    "installPlanApproval": "Automatic",
}
TEKTON_CONFIG_SPEC = {"targetNamespace": "openshift-pipelines", "profile": "all"}

ROUTE_TIMEOUT, ROUTE_INTERVAL = 30.0, 2.0
OPERATOR_TIMEOUT, OPERATOR_INTERVAL = 300.0, 5.0
CRD_RETRY = BackoffPolicy(initial=5, cap=30, max_attempts=6)


class StepFailed(Exception):
    """Raised by a bootstrap step that could not reach its goal."""


@dataclass(frozen=True)
class StepOutcome:
    name: str
    ok: bool
    warnings: List[str] = field(default_factory=list)
    detail: Optional[str] = None


@dataclass(frozen=True)
class BootstrapStep:
    name: str
    action: Callable[[], str]
    hint: str


@dataclass
class BootstrapReport:
    steps: List[StepOutcome] = field(default_factory=list)

    @property
    def completed_steps(self) -> int:
        return len(self.steps)

    @property
    def warnings(self) -> List[str]:
        return [w for s in self.steps for w in s.warnings]

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.steps)


class ClusterBootstrapper:
    """
    Prepares a cluster for promotions. Every step is idempotent and safe to
    re-run; a failing step is recorded as a warning and the next one runs.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        image_namespace: str = DEFAULT_IMAGE_NAMESPACE,
        *,
        observers: Optional[List] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        run_id: Optional[str] = None,
        context: Optional[str] = None,
    ):
        self.cluster = cluster
        self.image_namespace = image_namespace
        self.bus = EventBus(observers)
        self.sleep = sleep
        self.clock = clock
        self.run_id = run_id or new_ctx()["run_id"]
        self.context = context

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _ctx(self):
        return new_ctx(self.context, self.run_id)

    def _poll(self, check: Callable[[], bool], timeout: float, interval: float) -> bool:
        deadline = self.clock() + timeout
        while True:
            if check():
                return True
            if self.clock() + interval > deadline:
                return False
            self.sleep(interval)

    def steps(self) -> List[BootstrapStep]:
        return [
            BootstrapStep("registry-config", self.configure_registry,
                          "oc edit configs.imageregistry.operator.openshift.io/cluster"),
            BootstrapStep("registry-route", self.wait_for_route, ENABLE_ROUTE_HINT),
            BootstrapStep("namespace-rbac", self.ensure_namespace,
                          f"oc new-project {self.image_namespace} && oc policy add-role-to-group "
                          f"system:image-puller system:authenticated -n {self.image_namespace}"),
            BootstrapStep("operator-subscription", self.ensure_operator, INSTALL_OPERATOR_HINT),
            BootstrapStep("operator-ready", self.wait_for_operator,
                          "oc get csv -n openshift-operators; oc get installplan -n openshift-operators"),
            BootstrapStep("tekton-config", self.ensure_tekton_config,
                          "oc get crd tektonconfigs.operator.tekton.dev; oc get tektonconfig config"),
        ]

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def configure_registry(self) -> str:
        doc = self.cluster.get_custom(IMAGE_REGISTRY_CONFIG, "cluster")
        if doc is None:
            raise StepFailed("image registry config 'cluster' not found")

        spec = {}
        if doc.get("spec.managementState") == "Removed":
            spec["managementState"] = "Managed"
        if doc.get("spec.defaultRoute") is not True:
            spec["defaultRoute"] = True
        if not doc.get("spec.storage"):
            spec["storage"] = {"emptyDir": {}}

        if not spec:
            return "already configured"
        self.cluster.patch_custom(IMAGE_REGISTRY_CONFIG, "cluster", {"spec": spec})
        return "patched " + ", ".join(sorted(spec))

    def wait_for_route(self) -> str:
        def has_host() -> bool:
            route = self.cluster.get_custom(ROUTE, ROUTE_NAME, namespace=ROUTE_NAMESPACE)
            return bool(route and route.get("spec.host"))

        if not self._poll(has_host, ROUTE_TIMEOUT, ROUTE_INTERVAL):
            raise StepFailed(f"route {ROUTE_NAMESPACE}/{ROUTE_NAME} not ready after {ROUTE_TIMEOUT:.0f}s")
        route = self.cluster.get_custom(ROUTE, ROUTE_NAME, namespace=ROUTE_NAMESPACE)
        return route.get("spec.host") if route else "ready"

    def ensure_namespace(self) -> str:
        done = []
        if not self.cluster.namespace_exists(self.image_namespace):
            self.cluster.create_namespace(self.image_namespace)
            done.append(f"created namespace {self.image_namespace}")
        if ensure_image_pull_rbac(self.cluster, self.image_namespace):
            done.append("created image-puller rolebinding")
        return "; ".join(done) or "already present"

    def ensure_operator(self) -> str:
        if self.cluster.get_custom(TEKTON_CONFIG, TEKTON_CONFIG_NAME) is not None:
            return "operator already installed"
        if self.cluster.get_custom(SUBSCRIPTION, SUBSCRIPTION_NAME, namespace=SUBSCRIPTION_NAMESPACE) is not None:
            return "subscription already present"
        self.cluster.create_custom(
            SUBSCRIPTION,
            {
                "apiVersion": SUBSCRIPTION.api_version,
                "kind": SUBSCRIPTION.kind,
                "metadata": {"name": SUBSCRIPTION_NAME, "namespace": SUBSCRIPTION_NAMESPACE},
                "spec": dict(SUBSCRIPTION_SPEC),
            },
            namespace=SUBSCRIPTION_NAMESPACE,
        )
        return "created subscription"

    def wait_for_operator(self) -> str:
        found: List[str] = []

        def available() -> bool:
            for ns in OPERATOR_NAMESPACES:
                for name in OPERATOR_NAMES:
                    dep = self.cluster.read_deployment(ns, name)
                    if dep is not None and dep.condition_is_true("Available"):
                        found.append(f"{ns}/{name}")
                        return True
            return False

        if not self._poll(available, OPERATOR_TIMEOUT, OPERATOR_INTERVAL):
            raise StepFailed(f"operator deployment not Available after {OPERATOR_TIMEOUT:.0f}s")
        return f"{found[-1]} available"

    def ensure_tekton_config(self) -> str:
        if self.cluster.get_custom(TEKTON_CONFIG, TEKTON_CONFIG_NAME) is not None:
            return "already present"

        body = {
            "apiVersion": TEKTON_CONFIG.api_version,
            "kind": TEKTON_CONFIG.kind,
            "metadata": {"name": TEKTON_CONFIG_NAME},
            "spec": dict(TEKTON_CONFIG_SPEC),
        }

        # the CRD may still be registering right after the subscription
        @retry(
            policy=CRD_RETRY,
            retry_on=(ClusterError,),
            on_retry=lambda n, e, d: log.debug("tekton-config: attempt %d failed (%s), retrying in %.0fs", n, e, d),
            sleep=self.sleep,
        )
        def create() -> str:
            try:
                self.cluster.create_custom(TEKTON_CONFIG, body)
            except ClusterError as e:
                if e.status == 409:
                    return "already present"
                raise
            return "created"

        return create()

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run_step(self, step: BootstrapStep) -> StepOutcome:
        self.bus.emit(BootstrapStepStarted(**self._ctx(), step=step.name))
        try:
            detail = step.action()
        except Exception as e:
            warning = f"{step.name}: {e} (fix: {step.hint})"
            log.warning("Bootstrap step %s failed: %s", step.name, e)
            log.debug("Bootstrap step %s failed", step.name, exc_info=True)
            outcome = StepOutcome(step.name, ok=False, warnings=[warning], detail=step.hint)
        else:
            log.info("Bootstrap step %s: %s", step.name, detail)
            outcome = StepOutcome(step.name, ok=True, detail=detail)
        self.bus.emit(
            BootstrapStepFinished(**self._ctx(), step=step.name, ok=outcome.ok, detail=outcome.detail)
        )
        return outcome

    def run(self) -> BootstrapReport:
        report = BootstrapReport()
        for step in self.steps():
            report.steps.append(self.run_step(step))
        self.bus.emit(
            BootstrapSummary(**self._ctx(), completed=report.completed_steps, warnings=report.warnings)
        )
        return report
