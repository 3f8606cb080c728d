# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/k8s/client.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from ..errors import ClusterError
from .document import Document
from .resources import ResourceKind

log = logging.getLogger("streamstress")


def _rbac_hint(what: str) -> str:
    return f"the current user is not allowed to {what}; check `oc auth can-i` or log in as cluster-admin"


class ClusterClient:
    """
    Thin facade over the kubernetes client APIs used by deploy and bootstrap.

    Everything comes back as plain dicts wrapped in Document so callers never
    deal with generated model classes. Reads return None on 404; every other
    ApiException is raised as ClusterError carrying the HTTP status.
    """

    def __init__(
        self,
        *,
        api_client: Optional[client.ApiClient] = None,
        context: Optional[str] = None,
    ):
        self.api_client = api_client or client.ApiClient()
        self.context = context
        self.core = client.CoreV1Api(self.api_client)
        self.apps = client.AppsV1Api(self.api_client)
        self.rbac = client.RbacAuthorizationV1Api(self.api_client)
        self.custom = client.CustomObjectsApi(self.api_client)

    @classmethod
    def connect(cls, context: Optional[str] = None) -> "ClusterClient":
        """In-cluster service account first, then kubeconfig (optionally a named context)."""
        try:
            config.load_incluster_config()
            log.debug("k8s: using in-cluster configuration")
        except ConfigException:
            try:
                config.load_kube_config(context=context)
            except ConfigException as e:
                raise ClusterError(
                    f"could not load kubeconfig: {e}",
                    hint="run `oc login` first or set KUBECONFIG",
                ) from e
            log.debug("k8s: using kubeconfig context=%s", context or "<current>")
        return cls(context=context)

    # ---------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------

    def _to_doc(self, obj: Any) -> Document:
        if isinstance(obj, dict):
            return Document(obj)
        return Document(self.api_client.sanitize_for_serialization(obj))

    def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except ApiException as e:
            hint = _rbac_hint(what) if e.status == 403 else None
            raise ClusterError(
                f"failed to {what}: {e.status} {e.reason}", status=e.status, hint=hint
            ) from e

    def _read(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Document]:
        try:
            obj = self._call(what, fn, *args, **kwargs)
        except ClusterError as e:
            if e.status == 404:
                return None
            raise
        return self._to_doc(obj)

    # ---------------------------------------------------------------
    # apps/v1 deployments
    # ---------------------------------------------------------------

    def read_deployment(self, namespace: str, name: str) -> Optional[Document]:
        return self._read(
            f"read deployment {namespace}/{name}",
            self.apps.read_namespaced_deployment,
            name=name,
            namespace=namespace,
        )

    def list_deployments(self, namespace: str, label_selector: str) -> List[Document]:
        resp = self._call(
            f"list deployments in {namespace}",
            self.apps.list_namespaced_deployment,
            namespace=namespace,
            label_selector=label_selector,
        )
        return [self._to_doc(d) for d in resp.items]

    def replace_deployment(self, namespace: str, name: str, doc: Document) -> Document:
        obj = self._call(
            f"replace deployment {namespace}/{name}",
            self.apps.replace_namespaced_deployment,
            name=name,
            namespace=namespace,
            body=doc.to_dict(),
        )
        return self._to_doc(obj)

    # ---------------------------------------------------------------
    # core/v1
    # ---------------------------------------------------------------

    def list_pods(self, namespace: str, label_selector: str) -> List[Document]:
        resp = self._call(
            f"list pods in {namespace}",
            self.core.list_namespaced_pod,
            namespace=namespace,
            label_selector=label_selector,
        )
        return [self._to_doc(p) for p in resp.items]

    def namespace_exists(self, name: str) -> bool:
        return self._read(f"read namespace {name}", self.core.read_namespace, name=name) is not None

    def create_namespace(self, name: str) -> None:
        body = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}
        self._call(f"create namespace {name}", self.core.create_namespace, body=body)

    # ---------------------------------------------------------------
    # rbac
    # ---------------------------------------------------------------

    def role_binding_exists(self, namespace: str, name: str) -> bool:
        found = self._read(
            f"read rolebinding {namespace}/{name}",
            self.rbac.read_namespaced_role_binding,
            name=name,
            namespace=namespace,
        )
        return found is not None

    def create_role_binding(self, namespace: str, body: Dict[str, Any]) -> None:
        name = body.get("metadata", {}).get("name", "?")
        self._call(
            f"create rolebinding {namespace}/{name}",
            self.rbac.create_namespaced_role_binding,
            namespace=namespace,
            body=body,
        )

    # ---------------------------------------------------------------
    # custom resources
    # ---------------------------------------------------------------

    def get_custom(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> Optional[Document]:
        if kind.namespaced:
            return self._read(
                f"get {kind} {namespace}/{name}",
                self.custom.get_namespaced_custom_object,
                kind.group, kind.version, namespace, kind.plural, name,
            )
        return self._read(
            f"get {kind} {name}",
            self.custom.get_cluster_custom_object,
            kind.group, kind.version, kind.plural, name,
        )

    def list_custom(self, kind: ResourceKind, namespace: Optional[str] = None) -> List[Document]:
        if kind.namespaced and namespace:
            resp = self._call(
                f"list {kind} in {namespace}",
                self.custom.list_namespaced_custom_object,
                kind.group, kind.version, namespace, kind.plural,
            )
        else:
            resp = self._call(
                f"list {kind}",
                self.custom.list_cluster_custom_object,
                kind.group, kind.version, kind.plural,
            )
        return [Document(item) for item in (resp or {}).get("items", [])]

    def create_custom(self, kind: ResourceKind, body: Dict[str, Any], namespace: Optional[str] = None) -> Document:
        if kind.namespaced:
            obj = self._call(
                f"create {kind} in {namespace}",
                self.custom.create_namespaced_custom_object,
                kind.group, kind.version, namespace, kind.plural, body,
            )
        else:
            obj = self._call(
                f"create {kind}",
                self.custom.create_cluster_custom_object,
                kind.group, kind.version, kind.plural, body,
            )
        return Document(obj)

    def replace_custom(self, kind: ResourceKind, name: str, doc: Document, namespace: Optional[str] = None) -> Document:
        if kind.namespaced:
            obj = self._call(
                f"replace {kind} {namespace}/{name}",
                self.custom.replace_namespaced_custom_object,
                kind.group, kind.version, namespace, kind.plural, name, doc.to_dict(),
            )
        else:
            obj = self._call(
                f"replace {kind} {name}",
                self.custom.replace_cluster_custom_object,
                kind.group, kind.version, kind.plural, name, doc.to_dict(),
            )
        return Document(obj)

    def patch_custom(
        self, kind: ResourceKind, name: str, patch: Dict[str, Any], namespace: Optional[str] = None
    ) -> Document:
        """JSON merge patch."""
        if kind.namespaced:
            obj = self._call(
                f"patch {kind} {namespace}/{name}",
                self.custom.patch_namespaced_custom_object,
                kind.group, kind.version, namespace, kind.plural, name, patch,
            )
        else:
            obj = self._call(
                f"patch {kind} {name}",
                self.custom.patch_cluster_custom_object,
                kind.group, kind.version, kind.plural, name, patch,
            )
        return Document(obj)

    def delete_custom(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> None:
        if kind.namespaced:
            self._call(
                f"delete {kind} {namespace}/{name}",
                self.custom.delete_namespaced_custom_object,
                kind.group, kind.version, namespace, kind.plural, name,
            )
        else:
            self._call(
                f"delete {kind} {name}",
                self.custom.delete_cluster_custom_object,
                kind.group, kind.version, kind.plural, name,
            )
