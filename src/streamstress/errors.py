# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/errors.py
from __future__ import annotations

from typing import Optional, Sequence


class StreamstressError(RuntimeError):
    """Base class for streamstress failures. Carries an optional fix hint."""

    def __init__(self, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n  hint: {self.hint}"
        return self.message


class ConfigurationError(StreamstressError):
    """Unknown component, bad config file, or missing image mapping."""


class CommandError(StreamstressError):
    """An external tool exited non-zero."""

    def __init__(
        self,
        cmd: Sequence[str],
        returncode: int,
        stderr: str = "",
        *,
        hint: Optional[str] = None,
    ):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        super().__init__(
            f"{' '.join(self.cmd)} failed (exit {returncode}): {self.stderr}",
            hint=hint,
        )


class ClusterError(StreamstressError):
    """A cluster API call failed."""

    def __init__(self, message: str, *, status: Optional[int] = None, hint: Optional[str] = None):
        super().__init__(message, hint=hint)
        self.status = status


class RegistryError(StreamstressError):
    """Registry discovery, login or transfer failed."""


class BuildError(StreamstressError):
    """A component build pipeline failed."""


class ImageMappingError(ConfigurationError):
    """A built image has no IMAGE_ env var mapping."""


class OperatorNotFoundError(ClusterError):
    """The pipelines operator (or its controller deployment) is not installed."""


class DeployError(StreamstressError):
    """Deploying a component to the live operator failed."""

    def __init__(self, component: str, phase: str, cause: Exception):
        super().__init__(f"deploy of '{component}' failed during {phase}: {cause}")
        self.component = component
        self.phase = phase
        self.cause = cause
