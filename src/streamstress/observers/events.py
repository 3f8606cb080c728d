# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                 # ISO timestamp
    run_id: str             # correlates all events in a single invocation
    context: Optional[str]  # kube-context

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(context: Optional[str] = None, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "context": context,
    }


# ---------------------------------------------------------------------
# Build pipeline
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BuildPhaseChanged(BaseEvent):
    component: str
    phase: str          # queued | cloning | building | pushing | done | failed
    detail: Optional[str] = None

@dataclass(frozen=True)
class BuildSummary(BaseEvent):
    ok: List[str]
    failed: List[str]


# ---------------------------------------------------------------------
# Deploy lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DeployStarted(BaseEvent):
    component: str
    registry: str

@dataclass(frozen=True)
class ImagesMapped(BaseEvent):
    component: str
    mappings: List[List[str]]

@dataclass(frozen=True)
class OperatorLocated(BaseEvent):
    namespace: str
    name: str

@dataclass(frozen=True)
class OperatorPatched(BaseEvent):
    component: str
    namespace: str
    name: str
    strategy: str
    updated: int
    added: int

@dataclass(frozen=True)
class InstallerSetsDeleted(BaseEvent):
    component: str
    deleted: int

@dataclass(frozen=True)
class DeployFailed(BaseEvent):
    component: str
    phase: str
    error: str


# ---------------------------------------------------------------------
# Waiter lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class WaiterAttempt(BaseEvent):
    attempt: int
    max_attempts: int
    ready: bool
    missing: List[str]

@dataclass(frozen=True)
class WaiterSucceeded(BaseEvent):
    attempts: int

@dataclass(frozen=True)
class WaiterTimedOut(BaseEvent):
    attempts: int
    message: str


# ---------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BootstrapStepStarted(BaseEvent):
    step: str

@dataclass(frozen=True)
class BootstrapStepFinished(BaseEvent):
    step: str
    ok: bool
    detail: Optional[str] = None

@dataclass(frozen=True)
class BootstrapSummary(BaseEvent):
    completed: int
    warnings: List[str]


# ---------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class DeploySummary(BaseEvent):
    ok: int
    failed: int
    unconverged: int
