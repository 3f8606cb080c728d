# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/deploy/executor.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..bootstrap.setup_manager import BootstrapReport, ClusterBootstrapper
from ..build.builders import BuiltImage
from ..build.coordinator import BuildCoordinator, BuildOutcome, all_succeeded
from ..build.specs import ComponentSpec
from ..config.models import ComponentsConfig
from ..config.settings import DEFAULT_IMAGE_NAMESPACE
from ..errors import DeployError, StreamstressError
from ..execution.runner import CommandRunner
from ..k8s.client import ClusterClient
from ..observers.dispatcher import EventBus
from ..observers.events import (
    DeployFailed,
    DeployStarted,
    DeploySummary,
    ImagesMapped,
    InstallerSetsDeleted,
    OperatorLocated,
    OperatorPatched,
    new_ctx,
)
from ..registry.bridge import RegistryBridge
from .installer_sets import InvalidationTrigger
from .mapping import ImageMapping, build_image_mappings, format_mapping_table, to_internal_registry
from .operator import PatchResult, PatchTarget, ensure_image_pull_rbac, make_patcher, verify_operator
from .wait import ConvergenceResult, ReconciliationWaiter

log = logging.getLogger("streamstress")


@dataclass(frozen=True)
class ComponentDeployOutcome:
    component: str
    ok: bool
    mappings: ImageMapping = field(default_factory=list)
    target: Optional[PatchTarget] = None
    patch: Optional[PatchResult] = None
    invalidated: int = 0
    convergence: Optional[ConvergenceResult] = None
    warning: Optional[str] = None
    error: Optional[str] = None

    @property
    def converged(self) -> bool:
        return self.ok and self.warning is None


@dataclass
class DeployReport:
    outcomes: List[ComponentDeployOutcome] = field(default_factory=list)
    aborted: bool = False
    reason: Optional[str] = None

    @property
    def invalidated(self) -> Dict[str, int]:
        return {o.component: o.invalidated for o in self.outcomes}

    @property
    def failed(self) -> List[ComponentDeployOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def unconverged(self) -> List[ComponentDeployOutcome]:
        return [o for o in self.outcomes if o.ok and o.warning]

    @property
    def deployed_and_converged(self) -> bool:
        return not self.aborted and bool(self.outcomes) and all(o.converged for o in self.outcomes)

    def summary(self) -> str:
        if self.aborted:
            return f"deploy aborted: {self.reason}"
        lines = []
        for o in self.outcomes:
            if not o.ok:
                lines.append(f"✗ {o.component}: {o.error}")
            elif o.warning:
                lines.append(f"! {o.component}: deployed, not converged ({o.warning})")
            else:
                lines.append(f"✓ {o.component}: deployed, {o.invalidated} installer set(s) regenerated")
        return "\n".join(lines)


class DeploymentOrchestrator:
    """
    Rolls built images into the live operator, one component at a time:
    verify -> map -> locate -> patch -> rbac -> invalidate -> wait.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        config: ComponentsConfig,
        *,
        strategy: str = "deployment",
        waiter: Optional[ReconciliationWaiter] = None,
        internal_registry: bool = True,
        wait: bool = True,
        observers: Optional[List] = None,
        run_id: Optional[str] = None,
        context: Optional[str] = None,
    ):
        self.cluster = cluster
        self.config = config
        self.patcher = make_patcher(strategy, cluster)
        self.invalidator = InvalidationTrigger(cluster)
        self.internal_registry = internal_registry
        self.wait = wait
        self.bus = EventBus(observers)
        self.run_id = run_id or new_ctx()["run_id"]
        self.context = context
        self.waiter = waiter or ReconciliationWaiter(
            cluster, observers=observers, run_id=self.run_id, context=context
        )

    def _ctx(self):
        return new_ctx(self.context, self.run_id)

    def _pull_registry(self, registry: str) -> str:
        return to_internal_registry(registry) if self.internal_registry else registry.rstrip("/")

    @staticmethod
    def _image_namespace(pull_registry: str) -> str:
        _, _, path = pull_registry.partition("/")
        return path.split("/", 1)[0] if path else DEFAULT_IMAGE_NAMESPACE

    def deploy_component(
        self, component: str, registry: str, built: Sequence[BuiltImage]
    ) -> ComponentDeployOutcome:
        """Raises DeployError; convergence failure is only a warning."""
        self.bus.emit(DeployStarted(**self._ctx(), component=component, registry=registry))
        phase = "verify"
        try:
            verify_operator(self.cluster)

            phase = "mapping"
            pull_registry = self._pull_registry(registry)
            mappings = build_image_mappings(self.config, component, pull_registry, built)
            self.bus.emit(ImagesMapped(**self._ctx(), component=component, mappings=[list(m) for m in mappings]))
            log.info("Image mappings for %s:\n%s", component, format_mapping_table(mappings))

            phase = "locate"
            target = self.patcher.locate()
            self.bus.emit(OperatorLocated(**self._ctx(), namespace=target.namespace, name=target.name))

            phase = "patch"
            result = self.patcher.patch_env(target, mappings)
            self.bus.emit(
                OperatorPatched(
                    **self._ctx(),
                    component=component,
                    namespace=target.namespace,
                    name=target.name,
                    strategy=self.patcher.name,
                    updated=result.updated,
                    added=result.added,
                )
            )

            phase = "rbac"
            if self.internal_registry:
                ensure_image_pull_rbac(self.cluster, self._image_namespace(pull_registry))

            phase = "invalidate"
            prefix = self.config.get(component).installer_set_prefix
            deleted = self.invalidator.invalidate(component, prefix)
            self.bus.emit(InstallerSetsDeleted(**self._ctx(), component=component, deleted=deleted))
        except Exception as e:
            self.bus.emit(DeployFailed(**self._ctx(), component=component, phase=phase, error=str(e)))
            raise DeployError(component, phase, e) from e

        # patch is applied from here on; wait problems are warnings
        convergence = None
        warning = None
        if self.wait:
            try:
                convergence = self.waiter.wait([ref for _, ref in mappings])
            except StreamstressError as e:
                warning = f"could not confirm reconciliation of {component}: {e}"
                log.warning(warning)
            else:
                if not convergence.converged:
                    warning = convergence.message

        return ComponentDeployOutcome(
            component=component,
            ok=True,
            mappings=mappings,
            target=target,
            patch=result,
            invalidated=deleted,
            convergence=convergence,
            warning=warning,
        )

    def deploy_all(self, outcomes: Sequence[BuildOutcome], registry: str) -> DeployReport:
        if not outcomes:
            return DeployReport(aborted=True, reason="nothing was built")
        if not all_succeeded(outcomes):
            failed = [o.component for o in outcomes if not o.ok]
            reason = f"build failed for {', '.join(failed)}; refusing to deploy a partial set"
            log.error(reason)
            return DeployReport(aborted=True, reason=reason)

        report = DeployReport()
        for o in outcomes:
            try:
                report.outcomes.append(self.deploy_component(o.component, registry, o.images or ()))
            except DeployError as e:
                log.error("%s", e)
                report.outcomes.append(ComponentDeployOutcome(component=o.component, ok=False, error=str(e)))

        self.bus.emit(
            DeploySummary(
                **self._ctx(),
                ok=len(report.outcomes) - len(report.failed),
                failed=len(report.failed),
                unconverged=len(report.unconverged),
            )
        )
        return report


@dataclass
class PromotionReport:
    builds: List[BuildOutcome]
    deploy: DeployReport
    bootstrap: Optional[BootstrapReport] = None

    @property
    def ok(self) -> bool:
        return all_succeeded(self.builds) and self.deploy.deployed_and_converged


def promote(
    specs: Sequence[ComponentSpec],
    *,
    config: ComponentsConfig,
    cluster: ClusterClient,
    bridge: Optional[RegistryBridge] = None,
    runner: Optional[CommandRunner] = None,
    registry: Optional[str] = None,
    external_registry: Optional[str] = None,
    bootstrap: bool = True,
    login: bool = True,
    strategy: str = "deployment",
    max_workers: Optional[int] = None,
    waiter: Optional[ReconciliationWaiter] = None,
    observers: Optional[List] = None,
    run_id: Optional[str] = None,
    context: Optional[str] = None,
) -> PromotionReport:
    """bootstrap -> build all -> deploy all."""
    runner = runner or CommandRunner()
    bridge = bridge or RegistryBridge(runner=runner)
    run_id = run_id or new_ctx()["run_id"]

    boot = None
    if bootstrap:
        boot = ClusterBootstrapper(
            cluster, bridge.settings.image_namespace, observers=observers, run_id=run_id, context=context
        ).run()

    route = bridge.resolve(registry)
    if login:
        bridge.login(route)
    target = bridge.target(route)

    builds = BuildCoordinator(
        config,
        target,
        runner=runner,
        observers=observers,
        max_workers=max_workers,
        external_registry=external_registry,
        bridge=bridge,
        docker_config=bridge.settings.docker_config_dir,
        run_id=run_id,
        context=context,
    ).build_all(specs)

    orchestrator = DeploymentOrchestrator(
        cluster,
        config,
        strategy=strategy,
        waiter=waiter,
        internal_registry=external_registry is None,
        observers=observers,
        run_id=run_id,
        context=context,
    )
    deploy = orchestrator.deploy_all(builds, external_registry or target)
    return PromotionReport(builds=builds, deploy=deploy, bootstrap=boot)
