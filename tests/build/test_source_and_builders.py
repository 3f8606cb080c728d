import subprocess
import types
from pathlib import Path

import pytest

from streamstress.build import builders
from streamstress.build.builders import BuiltImage, docker_build, ko_build
from streamstress.build.source import clone_with_ref, parse_github_url, resolve_commit_before_date
from streamstress.errors import BuildError
from streamstress.execution.runner import CommandRunner


class SpyRun:
    def __init__(self, handler=None):
        self.calls = []
        self.handler = handler

    def __call__(self, argv, capture_output=False, text=False, check=False, cwd=None, env=None):
        self.calls.append(types.SimpleNamespace(argv=argv, cwd=cwd, env=env))
        if self.handler:
            r = self.handler(argv)
            if r is not None:
                return types.SimpleNamespace(returncode=r[0], stdout=r[1], stderr=r[2])
        return types.SimpleNamespace(returncode=0, stdout="", stderr="")


def test_clone_with_ref_fetches_resolved_ref(monkeypatch, tmp_path: Path):
    spy = SpyRun()
    monkeypatch.setattr(subprocess, "run", spy)

    clone_with_ref(CommandRunner(), "https://github.com/tektoncd/pipeline", tmp_path / "src", "pr/42")

    argvs = [c.argv for c in spy.calls]
    assert argvs == [
        ["git", "init", str(tmp_path / "src")],
        ["git", "fetch", "--depth", "1", "https://github.com/tektoncd/pipeline", "refs/pull/42/head"],
        ["git", "checkout", "FETCH_HEAD"],
    ]
    assert spy.calls[1].cwd == str(tmp_path / "src")


def test_clone_without_ref_is_shallow_clone(monkeypatch, tmp_path: Path):
    spy = SpyRun()
    monkeypatch.setattr(subprocess, "run", spy)
    clone_with_ref(CommandRunner(), "https://github.com/tektoncd/chains", tmp_path / "chains")
    assert [c.argv for c in spy.calls] == [
        ["git", "clone", "--depth", "1", "https://github.com/tektoncd/chains", str(tmp_path / "chains")]
    ]


def test_clone_failure_is_build_error(monkeypatch, tmp_path: Path):
    spy = SpyRun(lambda argv: (128, "", "couldn't find remote ref v9") if argv[1] == "fetch" else None)
    monkeypatch.setattr(subprocess, "run", spy)
    with pytest.raises(BuildError) as ei:
        clone_with_ref(CommandRunner(), "https://github.com/tektoncd/triggers", tmp_path / "t", "v9")
    assert "couldn't find remote ref v9" in str(ei.value)


def test_parse_github_url():
    assert parse_github_url("https://github.com/tektoncd/pipeline.git") == ("tektoncd", "pipeline")
    assert parse_github_url("git@github.com:openshift-pipelines/console-plugin") == (
        "openshift-pipelines", "console-plugin")
    with pytest.raises(BuildError):
        parse_github_url("https://gitlab.com/a/b")


def test_commit_before_date(monkeypatch):
    spy = SpyRun(lambda argv: (0, "0123456789abcdef\n", ""))
    monkeypatch.setattr(subprocess, "run", spy)
    sha = resolve_commit_before_date(CommandRunner(), "https://github.com/tektoncd/pipeline", "2024-05-01")
    assert sha == "0123456789abcdef"
    assert spy.calls[0].argv[2] == "repos/tektoncd/pipeline/commits?per_page=1&until=2024-05-01T23:59:59Z"


@pytest.mark.parametrize("err,needle", [
    ("API rate limit exceeded for user", "gh auth login"),
    ("HTTP 404: Not Found", "components.yaml"),
])
def test_commit_before_date_errors_are_actionable(monkeypatch, err, needle):
    monkeypatch.setattr(subprocess, "run", SpyRun(lambda argv: (1, "", err)))
    with pytest.raises(BuildError) as ei:
        resolve_commit_before_date(CommandRunner(), "https://github.com/tektoncd/pipeline", "2024-05-01")
    assert needle in str(ei.value)


def test_ko_build_env_and_parsing(monkeypatch, tmp_path: Path):
    out = (
        "2024/05/01 12:00:00 Using base ...\n"
        "reg.apps.x/tekton-upstream/controller@sha256:aaa\n"
    )
    spy = SpyRun(lambda argv: (0, out, "") if argv[0] == "ko" else None)
    monkeypatch.setattr(subprocess, "run", spy)

    images = ko_build(
        CommandRunner(), tmp_path, "reg.apps.x/tekton-upstream", ["./cmd/controller", "./cmd/webhook"],
        docker_config=tmp_path / "docker",
    )

    call = spy.calls[0]
    assert call.argv == ["ko", "build", "--base-import-paths", "--sbom=none", "./cmd/controller", "./cmd/webhook"]
    assert call.env["KO_DOCKER_REPO"] == "reg.apps.x/tekton-upstream"
    assert call.env["GOFLAGS"] == "-mod=vendor"
    assert call.env["DOCKER_CONFIG"] == str(tmp_path / "docker")
    assert images == [
        BuiltImage("controller", "reg.apps.x/tekton-upstream/controller@sha256:aaa"),
        BuiltImage("webhook", "reg.apps.x/tekton-upstream/webhook"),
    ]
    assert images[0].digest == "sha256:aaa"
    assert images[1].digest is None


def test_ko_build_failure_embeds_stderr(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(subprocess, "run", SpyRun(lambda argv: (1, "", "go: inconsistent vendoring")))
    with pytest.raises(BuildError) as ei:
        ko_build(CommandRunner(), tmp_path, "reg/ns", ["./cmd/controller"])
    assert "inconsistent vendoring" in str(ei.value)


def test_docker_build_with_podman_digestfile(monkeypatch, tmp_path: Path):
    def handler(argv):
        for a in argv:
            if a.startswith("--digestfile="):
                Path(a.split("=", 1)[1]).write_text("sha256:ccc")
        return None

    spy = SpyRun(handler)
    monkeypatch.setattr(subprocess, "run", spy)
    monkeypatch.setattr(builders.shutil, "which", lambda name: "/usr/bin/podman" if name == "podman" else None)

    images = docker_build(CommandRunner(), tmp_path, "reg/ns", {"console-plugin": "IMAGE_PIPELINES_CONSOLE_PLUGIN"})

    assert spy.calls[0].argv == ["podman", "build", "-t", "reg/ns/console-plugin", "."]
    assert spy.calls[1].argv[:3] == ["podman", "push", "--tls-verify=false"]
    assert images == [BuiltImage("console-plugin", "reg/ns/console-plugin@sha256:ccc")]


def test_docker_fallback_reads_repo_digest(monkeypatch, tmp_path: Path):
    def handler(argv):
        if argv[:2] == ["docker", "inspect"]:
            return 0, "reg/ns/console-plugin@sha256:ddd\n", ""
        return None

    spy = SpyRun(handler)
    monkeypatch.setattr(subprocess, "run", spy)
    monkeypatch.setattr(builders.shutil, "which", lambda name: None)

    images = docker_build(CommandRunner(), tmp_path, "reg/ns", {"console-plugin": "X"})
    assert [c.argv[:2] for c in spy.calls] == [["docker", "build"], ["docker", "push"], ["docker", "inspect"]]
    assert images[0].pullspec == "reg/ns/console-plugin@sha256:ddd"
