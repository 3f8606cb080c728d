# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/k8s/resources.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceKind:
    """group/version/kind/plural of a custom resource served by an extension."""

    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool = False

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"

    def __str__(self) -> str:
        return f"{self.plural}.{self.group}"


TEKTON_CONFIG = ResourceKind("operator.tekton.dev", "v1alpha1", "TektonConfig", "tektonconfigs")
TEKTON_INSTALLER_SET = ResourceKind(
    "operator.tekton.dev", "v1alpha1", "TektonInstallerSet", "tektoninstallersets"
)
CLUSTER_SERVICE_VERSION = ResourceKind(
    "operators.coreos.com", "v1alpha1", "ClusterServiceVersion", "clusterserviceversions", namespaced=True
)
SUBSCRIPTION = ResourceKind(
    "operators.coreos.com", "v1alpha1", "Subscription", "subscriptions", namespaced=True
)
IMAGE_REGISTRY_CONFIG = ResourceKind("imageregistry.operator.openshift.io", "v1", "Config", "configs")
ROUTE = ResourceKind("route.openshift.io", "v1", "Route", "routes", namespaced=True)
