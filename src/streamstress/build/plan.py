# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/build/plan.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from ..config.models import ComponentsConfig
from ..errors import BuildError
from ..execution.runner import CommandRunner
from .source import resolve_commit_before_date
from .specs import ComponentSpec, resolve_git_ref

log = logging.getLogger("streamstress")

UNRESOLVED = "N/A"


@dataclass(frozen=True)
class ResolvedComponent:
    name: str
    repo: str
    ref: str
    commit: str
    build_system: str
    images: int


def _ls_remote(runner: CommandRunner, repo: str, ref: str) -> str:
    res = runner.run(["git", "ls-remote", repo, ref])
    if res.returncode != 0:
        return UNRESOLVED
    first = (res.stdout or "").strip().split()
    return first[0][:12] if first else UNRESOLVED


def resolve_components(
    specs: Sequence[ComponentSpec], config: ComponentsConfig, runner: CommandRunner
) -> List[ResolvedComponent]:
    """What a build would check out, without cloning anything."""
    rows: List[ResolvedComponent] = []
    for spec in specs:
        cfg = config.get(spec.name)
        if spec.git_ref:
            ref = spec.git_ref
            commit = _ls_remote(runner, cfg.repo, resolve_git_ref(spec.git_ref))
        elif spec.as_of_date:
            ref = f"as of {spec.as_of_date}"
            try:
                commit = resolve_commit_before_date(runner, cfg.repo, spec.as_of_date)[:12]
            except BuildError as e:
                log.debug("could not resolve %s as of %s: %s", spec.name, spec.as_of_date, e)
                commit = UNRESOLVED
        else:
            ref = "HEAD"
            commit = _ls_remote(runner, cfg.repo, "HEAD")
        rows.append(
            ResolvedComponent(
                name=spec.name,
                repo=cfg.repo,
                ref=ref,
                commit=commit,
                build_system=cfg.build_system,
                images=len(cfg.image_names()),
            )
        )
    return rows


def format_plan_table(rows: Sequence[ResolvedComponent]) -> str:
    headers = ("COMPONENT", "REF", "COMMIT", "BUILD", "IMAGES", "REPO")
    data = [(r.name, r.ref, r.commit, r.build_system, str(r.images), r.repo) for r in rows]
    widths = [max(len(h), *(len(row[i]) for row in data)) if data else len(h) for i, h in enumerate(headers)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip()]
    for row in data:
        lines.append("  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip())
    return "\n".join(lines)
