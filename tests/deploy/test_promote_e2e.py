import subprocess
import types
from pathlib import Path

from conftest import Clock, ScriptedCluster, deployment

from streamstress.build.specs import parse_component_specs
from streamstress.config.settings import RegistrySettings
from streamstress.deploy.executor import promote
from streamstress.deploy.wait import ReconciliationWaiter
from streamstress.k8s.resources import TEKTON_INSTALLER_SET
from streamstress.registry.bridge import RegistryBridge

ROUTE = "default-route-openshift-image-registry.apps.x"
INTERNAL = "image-registry.openshift-image-registry.svc:5000/tekton-upstream"


class FakeTools:
    def __init__(self):
        self.calls = []

    def __call__(self, argv, capture_output=False, text=False, check=False, cwd=None, env=None):
        self.calls.append(argv)
        out = ""
        if argv[:3] == ["oc", "get", "route"]:
            out = ROUTE
        elif argv[:3] == ["oc", "whoami", "-t"]:
            out = "sha256~token"
        elif argv[0] == "ko":
            component = Path(cwd).name
            repo = env["KO_DOCKER_REPO"]
            out = "".join(
                f"{repo}/{p.rsplit('/', 1)[-1]}@sha256:{component}-{p.rsplit('/', 1)[-1]}\n" for p in argv[4:]
            )
        return types.SimpleNamespace(returncode=0, stdout=out, stderr="")


def test_pipeline_and_triggers_promoted_end_to_end(monkeypatch, tmp_path, components):
    tools = FakeTools()
    monkeypatch.setattr(subprocess, "run", tools)

    clock = Clock()
    expected = [
        f"{INTERNAL}/controller@sha256:pipeline-controller",
        f"{INTERNAL}/webhook@sha256:pipeline-webhook",
        f"{INTERNAL}/controller@sha256:triggers-controller",
    ]
    cluster = ScriptedCluster(clock, ready_at=2, images_at=3, images=expected)
    cluster.add_deployment(deployment("openshift-pipelines", "openshift-pipelines-operator"))
    cluster.add_deployment(deployment("tekton-pipelines", "tekton-operator"))
    for name in ("pipeline-main-deployment-a1", "pipeline-pre-b2", "triggers-main-static-c3", "results-post-d4"):
        cluster.add_custom(TEKTON_INSTALLER_SET, {"metadata": {"name": name}})

    bridge = RegistryBridge(settings=RegistrySettings(
        docker_config_dir=tmp_path / "docker", containers_auth_file=tmp_path / "auth.json",
    ))
    waiter = ReconciliationWaiter(cluster, sleep=clock.sleep, clock=clock)

    report = promote(
        parse_component_specs("pipeline,triggers:v0.60.0"),
        config=components,
        cluster=cluster,
        bridge=bridge,
        bootstrap=False,
        waiter=waiter,
    )

    # builds
    assert [b.ok for b in report.builds] == [True, True]
    git = [a for a in tools.calls if a[0] == "git"]
    assert any(a[:2] == ["git", "clone"] and "https://github.com/tektoncd/pipeline" in a for a in git)
    assert any(a[:2] == ["git", "fetch"] and a[-2:] == ["https://github.com/tektoncd/triggers", "v0.60.0"]
               for a in git)
    assert not any(a[:2] == ["git", "clone"] and "https://github.com/tektoncd/triggers" in a for a in git)

    # deploy
    pipeline, triggers = report.deploy.outcomes
    assert pipeline.target.namespace == "openshift-pipelines"
    assert pipeline.target.name == "openshift-pipelines-operator"
    assert (pipeline.patch.updated, pipeline.patch.added) == (0, 2)
    assert report.deploy.invalidated == {"pipeline": 2, "triggers": 1}
    remaining = [n for (p, _, n) in cluster.custom if p == "tektoninstallersets"]
    assert remaining == ["results-post-d4"]

    # convergence
    assert pipeline.convergence.converged and pipeline.convergence.attempts <= 3
    assert triggers.convergence.converged
    assert report.deploy.deployed_and_converged
    assert report.ok

    env = cluster.deployments[("openshift-pipelines", "openshift-pipelines-operator")][
        "spec"]["template"]["spec"]["containers"][0]["env"]
    assert {e["name"] for e in env} == {
        "IMAGE_PIPELINES_CONTROLLER", "IMAGE_PIPELINES_WEBHOOK", "IMAGE_TRIGGERS_CONTROLLER",
    }
