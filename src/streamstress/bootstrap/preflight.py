# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/bootstrap/preflight.py
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from typing import List, Optional

from ..errors import RegistryError
from ..execution.runner import CommandRunner
from ..registry.bridge import RegistryBridge

log = logging.getLogger("streamstress")

REQUIRED_TOOLS = {
    "oc": "install the OpenShift CLI: https://mirror.openshift.com/pub/openshift-v4/clients/ocp/",
    "ko": "go install github.com/google/ko@latest",
    "git": "install git from your package manager",
    "go": "install Go: https://go.dev/dl/",
    "gh": "install the GitHub CLI: https://cli.github.com/",
    "skopeo": "install skopeo from your package manager",
}


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str
    hint: Optional[str] = None


def check_tools() -> List[CheckResult]:
    results = []
    for tool, hint in REQUIRED_TOOLS.items():
        path = shutil.which(tool)
        if path:
            results.append(CheckResult(f"tool:{tool}", True, path))
        else:
            results.append(CheckResult(f"tool:{tool}", False, "not found on PATH", hint))
    return results


def check_cluster_auth(runner: CommandRunner) -> CheckResult:
    res = runner.run(["oc", "whoami"])
    if res.returncode == 0 and res.stdout.strip():
        return CheckResult("cluster-auth", True, f"logged in as {res.stdout.strip()}")
    return CheckResult("cluster-auth", False, (res.stderr or "not logged in").strip(), "oc login <api-url>")


def check_operator(runner: CommandRunner) -> CheckResult:
    res = runner.run(["oc", "get", "tektonconfig", "config", "-o", "name"])
    if res.returncode == 0:
        return CheckResult("operator", True, "TektonConfig 'config' present")
    return CheckResult(
        "operator",
        False,
        (res.stderr or "TektonConfig 'config' not found").strip(),
        "install OpenShift Pipelines from OperatorHub or run the bootstrap",
    )


def check_registry_route(runner: CommandRunner) -> CheckResult:
    try:
        host = RegistryBridge(runner=runner).discover_route()
    except RegistryError as e:
        return CheckResult("registry-route", False, e.message, e.hint)
    return CheckResult("registry-route", True, host)


def run_preflight(runner: Optional[CommandRunner] = None) -> List[CheckResult]:
    runner = runner or CommandRunner(label="preflight")
    results = check_tools()
    auth = check_cluster_auth(runner)
    results.append(auth)
    if auth.ok:
        results.append(check_operator(runner))
        results.append(check_registry_route(runner))
    for r in results:
        if not r.ok:
            log.warning("preflight %s: %s (fix: %s)", r.name, r.detail, r.hint)
    return results


def format_report(results: List[CheckResult]) -> str:
    lines = []
    for r in results:
        mark = "✓" if r.ok else "✗"
        lines.append(f"{mark} {r.name}: {r.detail}")
        if not r.ok and r.hint:
            lines.append(f"    fix: {r.hint}")
    return "\n".join(lines)
