# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/build/source.py
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional, Tuple, Union

from ..errors import BuildError, CommandError
from ..execution.runner import CommandRunner
from .specs import resolve_git_ref

log = logging.getLogger("streamstress")

_GITHUB_URL = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$")


def clone_with_ref(
    runner: CommandRunner,
    repo_url: str,
    dest: Union[str, "os.PathLike[str]"],
    git_ref: Optional[str] = None,
) -> Path:
    """
    Shallow clone *repo_url* into *dest*.

    With a ref (tag, branch, sha, pr/N) the repo is initialised empty and the
    single ref fetched, so refs that are not branch heads work too.
    """
    dest = Path(dest)
    try:
        if git_ref:
            resolved = resolve_git_ref(git_ref)
            log.debug("clone %s @ %s -> %s", repo_url, resolved, dest)
            runner.run(["git", "init", str(dest)], check=True)
            runner.run(["git", "fetch", "--depth", "1", repo_url, resolved], check=True, cwd=dest)
            runner.run(["git", "checkout", "FETCH_HEAD"], check=True, cwd=dest)
        else:
            log.debug("clone %s -> %s", repo_url, dest)
            runner.run(["git", "clone", "--depth", "1", repo_url, str(dest)], check=True)
    except CommandError as e:
        where = f" at {git_ref}" if git_ref else ""
        raise BuildError(f"clone of {repo_url}{where} failed: {e.stderr}") from e
    return dest


def parse_github_url(url: str) -> Tuple[str, str]:
    m = _GITHUB_URL.search(url.strip())
    if not m:
        raise BuildError(f"not a GitHub repository URL: {url}")
    return m.group(1), m.group(2)


def resolve_commit_before_date(runner: CommandRunner, repo_url: str, date: str) -> str:
    """Last commit on the default branch at or before end of *date* (UTC)."""
    owner, repo = parse_github_url(repo_url)
    res = runner.run(
        [
            "gh", "api",
            f"repos/{owner}/{repo}/commits?per_page=1&until={date}T23:59:59Z",
            "--jq", ".[0].sha",
        ]
    )
    if res.returncode != 0:
        err = (res.stderr or "").strip()
        lowered = err.lower()
        if "rate limit" in lowered:
            raise BuildError(
                f"GitHub API rate limit hit resolving {owner}/{repo} at {date}",
                hint="authenticate with `gh auth login` or wait for the limit to reset",
            )
        if "not found" in lowered or "404" in lowered:
            raise BuildError(
                f"repository {owner}/{repo} not found",
                hint="check the repo URL in config/components.yaml",
            )
        raise BuildError(f"gh api failed for {owner}/{repo}: {err}", hint="is `gh` installed and authenticated?")

    sha = (res.stdout or "").strip()
    if not sha or sha == "null":
        raise BuildError(f"no commits found in {owner}/{repo} on or before {date}")
    log.debug("%s/%s as of %s -> %s", owner, repo, date, sha)
    return sha
