# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/observers/logger.py
from __future__ import annotations
import logging
from typing import Optional, Tuple
from .events import (
    BaseEvent,
    BootstrapStepFinished,
    BuildPhaseChanged,
    BuildSummary,
    DeployFailed,
    DeploySummary,
    WaiterAttempt,
    WaiterTimedOut,
)

_CTX_FIELDS = ("ts", "run_id", "context")


def describe(event: BaseEvent) -> Tuple[int, str]:
    """Log level and one-line message for an event."""
    if isinstance(event, BuildPhaseChanged):
        level = logging.WARNING if event.phase == "failed" else logging.DEBUG
        msg = f"build {event.component}: {event.phase}"
        return level, msg + (f" ({event.detail})" if event.detail else "")
    if isinstance(event, BuildSummary):
        level = logging.WARNING if event.failed else logging.INFO
        return level, f"builds finished: ok={event.ok} failed={event.failed}"
    if isinstance(event, DeployFailed):
        return logging.WARNING, f"deploy of {event.component} failed during {event.phase}: {event.error}"
    if isinstance(event, WaiterAttempt):
        return logging.DEBUG, (
            f"reconcile poll {event.attempt}/{event.max_attempts}: "
            f"ready={event.ready} missing={len(event.missing)}"
        )
    if isinstance(event, WaiterTimedOut):
        return logging.WARNING, event.message
    if isinstance(event, BootstrapStepFinished) and not event.ok:
        return logging.WARNING, f"bootstrap step {event.step} failed: {event.detail}"
    if isinstance(event, DeploySummary):
        level = logging.WARNING if (event.failed or event.unconverged) else logging.INFO
        return level, f"deploy finished: ok={event.ok} failed={event.failed} unconverged={event.unconverged}"

    fields = ", ".join(f"{k}={v}" for k, v in event.dict().items() if k not in _CTX_FIELDS)
    return logging.INFO, f"[EVENT] {event.__class__.__name__}: {fields}"


class LoggerObserver:
    """Mirrors events into the log. Failures log at WARNING, poll noise at DEBUG."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("streamstress")

    def notify(self, event: BaseEvent) -> None:
        level, msg = describe(event)
        self.logger.log(level, "%s", msg)
