# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/build/builders.py
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..errors import BuildError, CommandError
from ..execution.runner import CommandRunner

log = logging.getLogger("streamstress")

PathArg = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class BuiltImage:
    name: str       # short image name, e.g. "controller"
    pullspec: str   # registry/name@sha256:... (or registry/name when unpinned)

    @property
    def pinned(self) -> bool:
        return "@sha256:" in self.pullspec

    @property
    def digest(self) -> Optional[str]:
        if not self.pinned:
            return None
        return self.pullspec.split("@", 1)[1]


def image_name_for(import_path: str) -> str:
    return import_path.rstrip("/").rsplit("/", 1)[-1]


def _parse_ko_output(stdout: str, registry: str) -> Dict[str, str]:
    """ko prints one pinned reference per built image on stdout."""
    prefix = registry.rstrip("/") + "/"
    found: Dict[str, str] = {}
    for line in stdout.splitlines():
        ref = line.strip()
        if not ref.startswith(prefix) or "@sha256:" not in ref:
            continue
        name = ref[len(prefix):].split("@", 1)[0].split(":", 1)[0]
        found[name] = ref
    return found


def ko_build(
    runner: CommandRunner,
    source_dir: PathArg,
    registry: str,
    import_paths: Sequence[str],
    *,
    docker_config: Optional[PathArg] = None,
) -> List[BuiltImage]:
    if not import_paths:
        raise BuildError(f"no import paths to build in {source_dir}")

    env = {"KO_DOCKER_REPO": registry, "GOFLAGS": "-mod=vendor"}
    if docker_config:
        env["DOCKER_CONFIG"] = str(docker_config)

    try:
        res = runner.run(
            ["ko", "build", "--base-import-paths", "--sbom=none", *import_paths],
            check=True,
            cwd=source_dir,
            env=env,
        )
    except CommandError as e:
        raise BuildError(f"ko build failed in {source_dir}:\n{e.stderr}") from e

    reported = _parse_ko_output(res.stdout or "", registry)
    images: List[BuiltImage] = []
    for path in import_paths:
        name = image_name_for(path)
        pullspec = reported.get(name)
        if pullspec is None:
            log.warning("ko did not report a digest for %s, using tag-less reference", name)
            pullspec = f"{registry.rstrip('/')}/{name}"
        images.append(BuiltImage(name=name, pullspec=pullspec))
    return images


def container_tool() -> str:
    """podman when available, docker otherwise."""
    return "podman" if shutil.which("podman") else "docker"


def docker_build(
    runner: CommandRunner,
    source_dir: PathArg,
    registry: str,
    images: Mapping[str, str],
    *,
    tool: Optional[str] = None,
) -> List[BuiltImage]:
    """Build and push each declared image from *source_dir*; return digest-pinned refs."""
    if not images:
        raise BuildError(f"no images declared for container build in {source_dir}")
    tool = tool or container_tool()
    src = Path(source_dir)
    built: List[BuiltImage] = []

    for name in images:
        tag = f"{registry.rstrip('/')}/{name}"
        try:
            runner.run([tool, "build", "-t", tag, "."], check=True, cwd=src)
            if tool == "podman":
                digest_file = src / f".{name}.digest"
                runner.run(
                    [tool, "push", "--tls-verify=false", f"--digestfile={digest_file}", tag],
                    check=True,
                    cwd=src,
                )
                digest = digest_file.read_text().strip()
            else:
                runner.run([tool, "push", tag], check=True, cwd=src)
                repo_digest = runner.run(
                    [tool, "inspect", "--format", "{{index .RepoDigests 0}}", tag],
                    check=True,
                ).stdout.strip()
                digest = repo_digest.rsplit("@", 1)[-1]
        except CommandError as e:
            raise BuildError(f"{tool} build/push of {name} failed:\n{e.stderr}") from e
        except OSError as e:
            raise BuildError(f"could not read pushed digest for {name}: {e}") from e

        if not digest.startswith("sha256:"):
            raise BuildError(f"{tool} returned no digest for {tag}")
        built.append(BuiltImage(name=name, pullspec=f"{tag}@{digest}"))
        log.debug("built %s@%s", tag, digest)

    return built
