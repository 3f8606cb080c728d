# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/build/specs.py
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, List, Optional

from ..errors import ConfigurationError

KNOWN_COMPONENTS = (
    "pipeline",
    "triggers",
    "chains",
    "results",
    "manual-approval-gate",
    "console-plugin",
)

_PR_REF = re.compile(r"^pr/(\d+)$")


@dataclass(frozen=True)
class ComponentSpec:
    """A component to build, optionally pinned to a git ref or an as-of date."""

    name: str
    git_ref: Optional[str] = field(default=None, compare=False)
    as_of_date: Optional[str] = field(default=None, compare=False)

    def __str__(self) -> str:
        if self.git_ref:
            return f"{self.name}:{self.git_ref}"
        if self.as_of_date:
            return f"{self.name}@{self.as_of_date}"
        return self.name


def resolve_git_ref(ref: str) -> str:
    """pr/123 -> refs/pull/123/head; anything else unchanged."""
    m = _PR_REF.match(ref)
    if m:
        return f"refs/pull/{m.group(1)}/head"
    return ref


def parse_component_specs(text: str) -> List[ComponentSpec]:
    """Parse "pipeline,triggers:v0.60.0,chains:pr/42"."""
    specs: List[ComponentSpec] = []
    for raw in text.split(","):
        item = raw.strip()
        if not item:
            continue
        name, sep, ref = item.partition(":")
        name = name.strip()
        if name not in KNOWN_COMPONENTS:
            raise ConfigurationError(
                f"Unknown component '{name}'. Valid: {', '.join(KNOWN_COMPONENTS)}"
            )
        ref = ref.strip()
        if sep and not ref:
            raise ConfigurationError(f"Empty git ref for component '{name}'")
        specs.append(ComponentSpec(name=name, git_ref=ref or None))
    if not specs:
        raise ConfigurationError("No components specified")
    return specs


def default_specs() -> List[ComponentSpec]:
    return [ComponentSpec(name=n) for n in KNOWN_COMPONENTS]


def validate_date(value: str) -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ConfigurationError(f"Invalid date '{value}', expected YYYY-MM-DD") from None
    return value


def apply_as_of_date(specs: Iterable[ComponentSpec], date: str) -> List[ComponentSpec]:
    """Attach *date* to every spec that has no explicit ref."""
    validate_date(date)
    return [s if s.git_ref else replace(s, as_of_date=date) for s in specs]
