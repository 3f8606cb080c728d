import subprocess

import pytest

from streamstress.errors import CommandError
from streamstress.execution.runner import CommandRunner


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


def test_run_captures_text_and_layers_env(monkeypatch):
    seen = {}

    def fake_run(argv, capture_output=False, text=False, check=False, cwd=None, env=None):
        seen.update(argv=argv, capture_output=capture_output, text=text, cwd=cwd, env=env)
        return DummyCP(0, "hello\n")

    monkeypatch.setattr(subprocess, "run", fake_run)
    monkeypatch.setenv("EXISTING", "1")

    res = CommandRunner().run(["ko", "build"], cwd="/src", env={"KO_DOCKER_REPO": "reg/ns"})

    assert res.stdout == "hello\n"
    assert seen["argv"] == ["ko", "build"]
    assert seen["capture_output"] and seen["text"]
    assert seen["cwd"] == "/src"
    assert seen["env"]["KO_DOCKER_REPO"] == "reg/ns"
    assert seen["env"]["EXISTING"] == "1"


def test_run_without_env_inherits(monkeypatch):
    seen = {}

    def fake_run(argv, **kw):
        seen.update(kw)
        return DummyCP(0)

    monkeypatch.setattr(subprocess, "run", fake_run)
    CommandRunner().run(["git", "status"])
    assert seen["env"] is None


def test_check_raises_with_stderr(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(1, "", "fatal: bad ref"))

    with pytest.raises(CommandError) as ei:
        CommandRunner().run(["git", "fetch"], check=True, hint="check the ref")
    assert ei.value.returncode == 1
    assert "fatal: bad ref" in str(ei.value)
    assert "hint: check the ref" in str(ei.value)


def test_non_zero_without_check_returns(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(2, "", "x"))
    assert CommandRunner().run(["oc", "whoami"]).returncode == 2


def test_missing_binary_is_command_error(monkeypatch):
    def fake_run(argv, **kw):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", fake_run)
    with pytest.raises(CommandError) as ei:
        CommandRunner().run(["skopeo", "inspect"])
    assert ei.value.returncode == 127


def test_dry_run_skips_execution(monkeypatch):
    def fake_run(argv, **kw):
        raise AssertionError("should not run")

    monkeypatch.setattr(subprocess, "run", fake_run)
    res = CommandRunner(dry_run=True).run(["oc", "delete", "all"])
    assert res.returncode == 0
    assert res.args == ["oc", "delete", "all"]
