import copy

import pytest

from streamstress.config.models import ComponentsConfig
from streamstress.errors import ClusterError
from streamstress.k8s.document import Document


def _deep_merge(dst, src):
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = copy.deepcopy(v)


def _matches(labels, selector):
    for term in selector.split(","):
        k, _, v = term.partition("=")
        if (labels or {}).get(k) != v:
            return False
    return True


def deployment(namespace, name, env=None, labels=None, container="openshift-pipelines-operator-lifecycle",
               available=False):
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "labels": labels or {}, "resourceVersion": "1"},
        "spec": {"template": {"spec": {"containers": [
            {"name": container, "image": "quay.io/op:1", "env": list(env or [])},
        ]}}},
        "status": {"conditions": [{"type": "Available", "status": "True" if available else "False"}]},
    }


def pod(namespace, *images):
    return {
        "metadata": {"namespace": namespace, "labels": {"app.kubernetes.io/part-of": "tekton-pipelines"}},
        "spec": {"containers": [{"name": f"c{i}", "image": img} for i, img in enumerate(images)]},
    }


class FakeCluster:
    """In-memory stand-in for ClusterClient."""

    def __init__(self):
        self.deployments = {}
        self.custom = {}
        self.pods = {}
        self.namespaces = set()
        self.role_bindings = {}
        self.calls = []
        self.fail = {}  # method name -> exception

    def _rec(self, method, *args):
        self.calls.append((method,) + args)
        exc = self.fail.get(method)
        if exc is not None:
            raise exc

    # seeding
    def add_deployment(self, obj):
        self.deployments[(obj["metadata"]["namespace"], obj["metadata"]["name"])] = obj

    def add_custom(self, kind, obj, namespace=None):
        self.custom[(kind.plural, namespace, obj["metadata"]["name"])] = obj

    # apps
    def read_deployment(self, namespace, name):
        self._rec("read_deployment", namespace, name)
        obj = self.deployments.get((namespace, name))
        return Document(copy.deepcopy(obj)) if obj else None

    def list_deployments(self, namespace, label_selector):
        self._rec("list_deployments", namespace, label_selector)
        return [Document(copy.deepcopy(d)) for (ns, _), d in self.deployments.items()
                if ns == namespace and _matches(d["metadata"].get("labels"), label_selector)]

    def replace_deployment(self, namespace, name, doc):
        self._rec("replace_deployment", namespace, name)
        self.deployments[(namespace, name)] = copy.deepcopy(doc.to_dict())
        return doc

    # core
    def list_pods(self, namespace, label_selector):
        self._rec("list_pods", namespace, label_selector)
        return [Document(copy.deepcopy(p)) for p in self.pods.get(namespace, [])
                if _matches(p["metadata"].get("labels"), label_selector)]

    def namespace_exists(self, name):
        self._rec("namespace_exists", name)
        return name in self.namespaces

    def create_namespace(self, name):
        self._rec("create_namespace", name)
        self.namespaces.add(name)

    # rbac
    def role_binding_exists(self, namespace, name):
        self._rec("role_binding_exists", namespace, name)
        return (namespace, name) in self.role_bindings

    def create_role_binding(self, namespace, body):
        self._rec("create_role_binding", namespace, body["metadata"]["name"])
        self.role_bindings[(namespace, body["metadata"]["name"])] = body

    # custom resources
    def get_custom(self, kind, name, namespace=None):
        self._rec("get_custom", kind.plural, name, namespace)
        obj = self.custom.get((kind.plural, namespace, name))
        return Document(copy.deepcopy(obj)) if obj else None

    def list_custom(self, kind, namespace=None):
        self._rec("list_custom", kind.plural, namespace)
        return [Document(copy.deepcopy(o)) for (plural, ns, _), o in self.custom.items()
                if plural == kind.plural and (namespace is None or ns == namespace)]

    def create_custom(self, kind, body, namespace=None):
        self._rec("create_custom", kind.plural, body["metadata"]["name"], namespace)
        key = (kind.plural, namespace, body["metadata"]["name"])
        if key in self.custom:
            raise ClusterError("already exists", status=409)
        self.custom[key] = copy.deepcopy(body)
        return Document(copy.deepcopy(body))

    def replace_custom(self, kind, name, doc, namespace=None):
        self._rec("replace_custom", kind.plural, name, namespace)
        self.custom[(kind.plural, namespace, name)] = copy.deepcopy(doc.to_dict())
        return doc

    def patch_custom(self, kind, name, patch, namespace=None):
        self._rec("patch_custom", kind.plural, name, namespace)
        obj = self.custom[(kind.plural, namespace, name)]
        _deep_merge(obj, patch)
        return Document(copy.deepcopy(obj))

    def delete_custom(self, kind, name, namespace=None):
        self._rec("delete_custom", kind.plural, name, namespace)
        key = (kind.plural, namespace, name)
        if key not in self.custom:
            raise ClusterError(f"{name} not found", status=404)
        del self.custom[key]


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def components():
    return ComponentsConfig.model_validate({
        "pipeline": {
            "repo": "https://github.com/tektoncd/pipeline",
            "import_paths": ["./cmd/controller", "./cmd/webhook"],
            "images": {"controller": "IMAGE_PIPELINES_CONTROLLER", "webhook": "IMAGE_PIPELINES_WEBHOOK"},
        },
        "triggers": {
            "repo": "https://github.com/tektoncd/triggers",
            "import_paths": ["./cmd/controller"],
            "images": {"controller": "IMAGE_TRIGGERS_CONTROLLER"},
        },
        "console-plugin": {
            "repo": "https://github.com/openshift-pipelines/console-plugin",
            "build_system": "docker",
            "images": {"console-plugin": "IMAGE_PIPELINES_CONSOLE_PLUGIN"},
            "installer_set_prefix": "consoleplugin",
        },
    })


class Clock:
    """Fake monotonic clock; sleep() advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def sleep(self, s):
        self.sleeps.append(s)
        self.now += s

    def __call__(self):
        return self.now


class ScriptedCluster(FakeCluster):
    """
    TektonConfig turns Ready from poll *ready_at* and *images* start running
    from poll *images_at* (1-based, counted by the clock's sleeps). None: never.
    """

    def __init__(self, clock, ready_at, images_at, images=()):
        super().__init__()
        self.clock = clock
        self.ready_at = ready_at
        self.images_at = images_at
        self.images = tuple(images)
        self.custom[("tektonconfigs", None, "config")] = {"metadata": {"name": "config"}, "status": {}}

    @property
    def poll(self):
        return len(self.clock.sleeps) + 1

    def get_custom(self, kind, name, namespace=None):
        ready = self.ready_at is not None and self.poll >= self.ready_at
        self.custom[("tektonconfigs", None, "config")]["status"] = {
            "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
        }
        return super().get_custom(kind, name, namespace)

    def list_pods(self, namespace, label_selector):
        if namespace == "openshift-pipelines" and self.images_at is not None and self.poll >= self.images_at:
            self.pods[namespace] = [pod(namespace, *self.images)]
        return super().list_pods(namespace, label_selector)
