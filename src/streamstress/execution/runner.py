# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/execution/runner.py
from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Union

from ..errors import CommandError

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

log = logging.getLogger("streamstress")


@dataclass
class CommandRunner:
    """
    Runs external tools (git, ko, oc, podman, skopeo, gh) and logs
    the command, its output and its exit code.
    """

    dry_run: bool = False
    label: Optional[str] = None

    def run(
        self,
        cmd: Cmd,
        *,
        check: bool = False,
        cwd: Union[str, "os.PathLike[str]", None] = None,
        env: Optional[Mapping[str, str]] = None,
        hint: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """
        Run *cmd* with captured text output.

        env: extra variables layered over the current environment.
        check: raise CommandError (with stderr embedded) on non-zero exit.
        """
        label = self.label or "cmd"
        argv = [str(c) for c in cmd]
        cmd_str = " ".join(argv)

        log.debug("[%s] $ %s", label, cmd_str)

        if self.dry_run:
            log.debug("[%s] dry-run: skipped execution", label)
            return subprocess.CompletedProcess(args=argv, returncode=0, stdout="", stderr="")

        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        start = time.time()
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                check=False,
                cwd=str(cwd) if cwd else None,
                env=full_env,
            )
        except FileNotFoundError as e:
            raise CommandError(argv, 127, f"{argv[0]}: command not found", hint=hint) from e

        duration = time.time() - start

        if result.stdout:
            log.debug("[%s][stdout]\n%s", label, result.stdout.rstrip())
        if result.stderr:
            log.debug("[%s][stderr]\n%s", label, result.stderr.rstrip())
        log.debug("[%s][exit %s] (%.2fs)", label, result.returncode, duration)

        if check and result.returncode != 0:
            raise CommandError(argv, result.returncode, result.stderr or result.stdout, hint=hint)

        return result
