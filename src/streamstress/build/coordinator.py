# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/build/coordinator.py
from __future__ import annotations

import logging
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config.models import ComponentConfig, ComponentsConfig
from ..execution.runner import CommandRunner
from ..observers.dispatcher import EventBus
from ..observers.events import BuildPhaseChanged, BuildSummary, new_ctx
from ..registry.bridge import RegistryBridge
from .builders import BuiltImage, docker_build, ko_build
from .source import clone_with_ref, resolve_commit_before_date
from .specs import ComponentSpec

log = logging.getLogger("streamstress")


class BuildPhase(str, Enum):
    QUEUED = "queued"
    CLONING = "cloning"
    BUILDING = "building"
    PUSHING = "pushing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildOutcome:
    """Result of one component pipeline. A failure never carries images."""

    component: str
    images: Optional[Tuple[BuiltImage, ...]]
    error: Optional[str]
    elapsed: float

    @property
    def ok(self) -> bool:
        return self.error is None and self.images is not None

    @classmethod
    def success(cls, component: str, images: Iterable[BuiltImage], elapsed: float) -> "BuildOutcome":
        return cls(component=component, images=tuple(images), error=None, elapsed=elapsed)

    @classmethod
    def failure(cls, component: str, error: str, elapsed: float) -> "BuildOutcome":
        return cls(component=component, images=None, error=error, elapsed=elapsed)


def all_succeeded(outcomes: Iterable[BuildOutcome]) -> bool:
    return all(o.ok for o in outcomes)


class BuildCoordinator:
    """
    Runs one clone -> build (-> push) pipeline per component in parallel.

    Every pipeline is isolated: whatever it raises ends up in its own
    failed BuildOutcome and the others carry on. build_all() returns only
    after all pipelines have finished.
    """

    def __init__(
        self,
        config: ComponentsConfig,
        registry: str,
        runner: Optional[CommandRunner] = None,
        observers: Optional[List] = None,
        max_workers: Optional[int] = None,
        external_registry: Optional[str] = None,
        bridge: Optional[RegistryBridge] = None,
        *,
        docker_config: Optional[Path] = None,
        workdir: Optional[Path] = None,
        run_id: Optional[str] = None,
        context: Optional[str] = None,
    ):
        self.config = config
        self.registry = registry
        self.runner = runner or CommandRunner(label="build")
        self.bus = EventBus(observers)
        self.max_workers = max_workers
        self.external_registry = external_registry
        self.bridge = bridge
        self.docker_config = docker_config
        self.workdir = workdir
        self.run_id = run_id or new_ctx()["run_id"]
        self.context = context

        if external_registry and bridge is None:
            self.bridge = RegistryBridge(runner=self.runner)

    # ---------------------------------------------------------------

    def _phase(self, component: str, phase: BuildPhase, detail: Optional[str] = None) -> None:
        self.bus.emit(
            BuildPhaseChanged(
                **new_ctx(self.context, self.run_id),
                component=component,
                phase=phase.value,
                detail=detail,
            )
        )

    def build_all(self, specs: Sequence[ComponentSpec]) -> List[BuildOutcome]:
        """One outcome per spec, in spec order."""
        specs = list(specs)
        if not specs:
            return []

        for spec in specs:
            self._phase(spec.name, BuildPhase.QUEUED, str(spec))

        outcomes: Dict[int, BuildOutcome] = {}
        workers = self.max_workers or len(specs)
        log.info("Building %d component(s) with %d worker(s)", len(specs), workers)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="build") as ex:
            futures = {ex.submit(self.build_one, spec): i for i, spec in enumerate(specs)}
            for fut in as_completed(futures):
                i = futures[fut]
                outcomes[i] = fut.result()

        ordered = [outcomes[i] for i in range(len(specs))]
        self.bus.emit(
            BuildSummary(
                **new_ctx(self.context, self.run_id),
                ok=[o.component for o in ordered if o.ok],
                failed=[o.component for o in ordered if not o.ok],
            )
        )
        return ordered

    def build_one(self, spec: ComponentSpec) -> BuildOutcome:
        """Never raises."""
        start = time.monotonic()

        if not self.config.has(spec.name):
            msg = f"Component '{spec.name}' not found in config"
            self._phase(spec.name, BuildPhase.FAILED, msg)
            return BuildOutcome.failure(spec.name, msg, 0.0)

        try:
            images = self._pipeline(spec, self.config.get(spec.name))
        except Exception as e:
            elapsed = time.monotonic() - start
            log.error("Build of %s failed after %.1fs: %s", spec.name, elapsed, e)
            log.debug("Build of %s failed", spec.name, exc_info=True)
            self._phase(spec.name, BuildPhase.FAILED, str(e))
            return BuildOutcome.failure(spec.name, str(e), elapsed)

        elapsed = time.monotonic() - start
        self._phase(spec.name, BuildPhase.DONE, f"{len(images)} image(s) in {elapsed:.1f}s")
        return BuildOutcome.success(spec.name, images, elapsed)

    def _pipeline(self, spec: ComponentSpec, cfg: ComponentConfig) -> List[BuiltImage]:
        with tempfile.TemporaryDirectory(prefix=f"streamstress-{spec.name}-", dir=self.workdir) as tmp:
            src = Path(tmp) / spec.name

            ref = spec.git_ref
            if not ref and spec.as_of_date:
                ref = resolve_commit_before_date(self.runner, cfg.repo, spec.as_of_date)
            self._phase(spec.name, BuildPhase.CLONING, ref or "HEAD")
            clone_with_ref(self.runner, cfg.repo, src, ref)

            self._phase(spec.name, BuildPhase.BUILDING, cfg.build_system)
            if cfg.build_system == "docker":
                images = docker_build(self.runner, src, self.registry, cfg.images)
            else:
                images = ko_build(
                    self.runner, src, self.registry, cfg.import_paths, docker_config=self.docker_config
                )

        if self.external_registry:
            self._phase(spec.name, BuildPhase.PUSHING, self.external_registry)
            images = [
                BuiltImage(
                    name=img.name,
                    pullspec=self.bridge.push_external(img.pullspec, self.external_registry, img.name),
                )
                for img in images
            ]
        return images
