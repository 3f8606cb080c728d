# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/deploy/operator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..errors import ClusterError, OperatorNotFoundError
from ..k8s.client import ClusterClient
from ..k8s.resources import CLUSTER_SERVICE_VERSION, TEKTON_CONFIG
from .mapping import ImageMapping

log = logging.getLogger("streamstress")

OPERATOR_NAMESPACES = ("openshift-pipelines", "openshift-operators", "tekton-pipelines")
OPERATOR_NAMES = ("openshift-pipelines-operator", "tekton-operator")
OPERATOR_SELECTORS = ("app.kubernetes.io/name=openshift-pipelines-operator", "app=tekton-operator")
LIFECYCLE_CONTAINER = "openshift-pipelines-operator-lifecycle"
CSV_NAME_MARKER = "openshift-pipelines-operator"

TEKTON_CONFIG_NAME = "config"
IMAGE_PULLER_BINDING = "image-puller-all-authenticated"

INSTALL_OPERATOR_HINT = (
    "install OpenShift Pipelines from OperatorHub, or let the bootstrap step create the "
    "openshift-pipelines-operator-rh Subscription"
)


@dataclass(frozen=True)
class PatchTarget:
    namespace: str
    name: str
    kind: str = "Deployment"

    def __str__(self) -> str:
        return f"{self.kind.lower()}/{self.name} -n {self.namespace}"


@dataclass(frozen=True)
class PatchResult:
    updated: int
    added: int


class EnvPatchStrategy(Protocol):
    """Finds the operator and rewrites its lifecycle container env."""

    name: str

    def locate(self) -> PatchTarget: ...

    def patch_env(self, target: PatchTarget, mappings: ImageMapping) -> PatchResult: ...


# ---------------------------------------------------------------------
# env merge shared by both strategies
# ---------------------------------------------------------------------

def merge_env(env: Optional[List[Dict[str, Any]]], mappings: ImageMapping) -> Tuple[List[Dict[str, Any]], int, int]:
    """
    Overwrite matching names (dropping valueFrom), append the rest in mapping
    order, keep everything else as is. Returns (env, updated, added).
    """
    merged = [dict(e) for e in (env or [])]
    index = {e.get("name"): i for i, e in enumerate(merged)}
    updated = added = 0
    for key, value in mappings:
        if key in index:
            entry = merged[index[key]]
            entry["value"] = value
            entry.pop("valueFrom", None)
            updated += 1
        else:
            merged.append({"name": key, "value": value})
            index[key] = len(merged) - 1
            added += 1
    return merged, updated, added


def _find_container(containers: Sequence[Dict[str, Any]], where: str) -> int:
    for i, c in enumerate(containers or []):
        if c.get("name") == LIFECYCLE_CONTAINER:
            return i
    raise OperatorNotFoundError(
        f"container '{LIFECYCLE_CONTAINER}' not found in {where}",
        hint="the operator layout changed; check `oc get deploy -n openshift-pipelines -o yaml`",
    )


# ---------------------------------------------------------------------
# checks
# ---------------------------------------------------------------------

def verify_operator(cluster: ClusterClient) -> None:
    try:
        found = cluster.get_custom(TEKTON_CONFIG, TEKTON_CONFIG_NAME)
    except ClusterError as e:
        if e.status == 403:
            raise ClusterError(
                f"not allowed to read TektonConfig '{TEKTON_CONFIG_NAME}'",
                status=403,
                hint="grant get on tektonconfigs.operator.tekton.dev or log in as cluster-admin",
            ) from e
        raise
    if found is None:
        raise OperatorNotFoundError(
            f"TektonConfig '{TEKTON_CONFIG_NAME}' not found: OpenShift Pipelines operator is not installed",
            status=404,
            hint=INSTALL_OPERATOR_HINT,
        )


def ensure_image_pull_rbac(cluster: ClusterClient, namespace: str) -> bool:
    """Let every authenticated user pull from *namespace*. Returns True when created."""
    if cluster.role_binding_exists(namespace, IMAGE_PULLER_BINDING):
        log.debug("rolebinding %s/%s already present", namespace, IMAGE_PULLER_BINDING)
        return False
    cluster.create_role_binding(
        namespace,
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "RoleBinding",
            "metadata": {"name": IMAGE_PULLER_BINDING, "namespace": namespace},
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": "system:image-puller",
            },
            "subjects": [
                {
                    "apiGroup": "rbac.authorization.k8s.io",
                    "kind": "Group",
                    "name": "system:authenticated",
                }
            ],
        },
    )
    log.info("Created rolebinding %s in %s", IMAGE_PULLER_BINDING, namespace)
    return True


# ---------------------------------------------------------------------
# strategies
# ---------------------------------------------------------------------

class DeploymentPatcher:
    """
    Patches the operator Deployment directly.

    The operator reconciles the env of its own lifecycle container from
    its Deployment, so writing it there survives the next reconcile.
    """

    name = "deployment"

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster
        self._target: Optional[PatchTarget] = None

    def locate(self) -> PatchTarget:
        if self._target is not None:
            return self._target

        skipped: List[str] = []
        for ns in OPERATOR_NAMESPACES:
            for name in OPERATOR_NAMES:
                try:
                    doc = self.cluster.read_deployment(ns, name)
                except ClusterError as e:
                    log.debug("skipping %s/%s: %s", ns, name, e)
                    skipped.append(f"{ns}/{name}: {e}")
                    continue
                if doc is not None:
                    self._target = PatchTarget(ns, name)
                    log.debug("operator deployment found: %s", self._target)
                    return self._target

        for ns in OPERATOR_NAMESPACES:
            for selector in OPERATOR_SELECTORS:
                try:
                    found = self.cluster.list_deployments(ns, selector)
                except ClusterError as e:
                    log.debug("skipping %s in %s: %s", selector, ns, e)
                    skipped.append(f"{ns} {selector}: {e}")
                    continue
                if found:
                    self._target = PatchTarget(ns, found[0].name)
                    log.debug("operator deployment found by %s: %s", selector, self._target)
                    return self._target

        message = (
            "operator deployment not found; checked "
            f"namespaces [{', '.join(OPERATOR_NAMESPACES)}], "
            f"names [{', '.join(OPERATOR_NAMES)}], "
            f"selectors [{', '.join(OPERATOR_SELECTORS)}]"
        )
        if skipped:
            message += "; lookups that failed: " + "; ".join(skipped)
        raise OperatorNotFoundError(message, hint=INSTALL_OPERATOR_HINT)

    def patch_env(self, target: PatchTarget, mappings: ImageMapping) -> PatchResult:
        doc = self.cluster.read_deployment(target.namespace, target.name)
        if doc is None:
            raise OperatorNotFoundError(f"deployment {target} disappeared before it could be patched")

        doc = doc.copy()
        containers = doc.get("spec.template.spec.containers", []) or []
        i = _find_container(containers, str(target))
        env, updated, added = merge_env(containers[i].get("env"), mappings)
        doc.set(["spec", "template", "spec", "containers", i, "env"], env)

        self.cluster.replace_deployment(target.namespace, target.name, doc)
        log.info("Patched %s: %d updated, %d added", target, updated, added)
        return PatchResult(updated=updated, added=added)


class CsvPatcher:
    """Patches the deployment spec embedded in the operator ClusterServiceVersion."""

    name = "csv"

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster
        self._target: Optional[PatchTarget] = None

    def locate(self) -> PatchTarget:
        if self._target is not None:
            return self._target
        for ns in OPERATOR_NAMESPACES:
            for csv in self.cluster.list_custom(CLUSTER_SERVICE_VERSION, namespace=ns):
                if CSV_NAME_MARKER in (csv.name or ""):
                    self._target = PatchTarget(ns, csv.name, kind="ClusterServiceVersion")
                    return self._target
        raise OperatorNotFoundError(
            f"no ClusterServiceVersion named like '{CSV_NAME_MARKER}' in "
            f"[{', '.join(OPERATOR_NAMESPACES)}]",
            hint=INSTALL_OPERATOR_HINT,
        )

    def patch_env(self, target: PatchTarget, mappings: ImageMapping) -> PatchResult:
        doc = self.cluster.get_custom(CLUSTER_SERVICE_VERSION, target.name, namespace=target.namespace)
        if doc is None:
            raise OperatorNotFoundError(f"{target} disappeared before it could be patched")
        doc = doc.copy()

        deployments = doc.get("spec.install.spec.deployments", []) or []
        for d, dep in enumerate(deployments):
            containers = (((dep.get("spec") or {}).get("template") or {}).get("spec") or {}).get("containers") or []
            if any(c.get("name") == LIFECYCLE_CONTAINER for c in containers):
                break
        else:
            raise OperatorNotFoundError(
                f"container '{LIFECYCLE_CONTAINER}' not found in any deployment of {target}"
            )

        c = _find_container(containers, str(target))
        env, updated, added = merge_env(containers[c].get("env"), mappings)
        doc.set(
            ["spec", "install", "spec", "deployments", d, "spec", "template", "spec", "containers", c, "env"],
            env,
        )
        self.cluster.replace_custom(CLUSTER_SERVICE_VERSION, target.name, doc, namespace=target.namespace)
        log.info("Patched %s: %d updated, %d added", target, updated, added)
        return PatchResult(updated=updated, added=added)


STRATEGIES = {DeploymentPatcher.name: DeploymentPatcher, CsvPatcher.name: CsvPatcher}


def make_patcher(strategy: str, cluster: ClusterClient) -> EnvPatchStrategy:
    try:
        return STRATEGIES[strategy](cluster)
    except KeyError:
        raise ValueError(f"unknown patch strategy '{strategy}' (expected one of {', '.join(STRATEGIES)})") from None
