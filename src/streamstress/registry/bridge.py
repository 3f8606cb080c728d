# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/registry/bridge.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.settings import RegistrySettings
from ..errors import CommandError, RegistryError
from ..execution.runner import CommandRunner

log = logging.getLogger("streamstress")

ROUTE_NAME = "default-route"
ROUTE_NAMESPACE = "openshift-image-registry"
ENABLE_ROUTE_HINT = (
    "oc patch configs.imageregistry.operator.openshift.io/cluster "
    "--patch '{\"spec\":{\"defaultRoute\":true}}' --type=merge"
)


class RegistryBridge:
    """
    Connects the local build tools to the cluster's image registry.

    oc writes registry credentials in the container-runtime store
    (~/.config/containers/auth.json) while ko only reads the docker
    convention (~/.docker/config.json); sync_credentials() bridges the two.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, settings: Optional[RegistrySettings] = None):
        self.runner = runner or CommandRunner(label="registry")
        self.settings = settings or RegistrySettings.from_env()

    # ---------------- address ----------------

    def discover_route(self) -> str:
        res = self.runner.run(
            ["oc", "get", "route", ROUTE_NAME, "-n", ROUTE_NAMESPACE, "-o", "jsonpath={.spec.host}"]
        )
        host = (res.stdout or "").strip()
        if res.returncode != 0 or not host:
            raise RegistryError(
                f"registry route {ROUTE_NAMESPACE}/{ROUTE_NAME} not found"
                + (f": {res.stderr.strip()}" if res.stderr else ""),
                hint=ENABLE_ROUTE_HINT,
            )
        log.debug("registry: discovered route %s", host)
        return host

    def resolve(self, override: Optional[str] = None) -> str:
        chosen = override or self.settings.registry_override
        if chosen:
            log.info("Using registry override %s", chosen)
            return chosen
        return self.discover_route()

    def target(self, route: str) -> str:
        """Where images are pushed: <route>/<namespace>."""
        return f"{route.rstrip('/')}/{self.settings.image_namespace}"

    # ---------------- credentials ----------------

    def login(self, route: str) -> List[str]:
        try:
            token = self.runner.run(
                ["oc", "whoami", "-t"], check=True, hint="log in to the cluster with `oc login`"
            ).stdout.strip()
        except CommandError as e:
            raise RegistryError(f"could not obtain a session token: {e.stderr}", hint=e.hint) from e
        if not token:
            raise RegistryError("oc whoami -t returned an empty token", hint="log in with a token-based `oc login`")

        try:
            self.runner.run(
                ["oc", "registry", "login", f"--registry={route}", f"--token={token}", "--insecure=true"],
                check=True,
            )
        except CommandError as e:
            raise RegistryError(f"registry login to {route} failed: {e.stderr}") from e

        log.info("Logged in to registry %s", route)
        return self.sync_credentials()

    def sync_credentials(self) -> List[str]:
        """
        Copy auths from the container-runtime store into docker config.json.

        Fresh entries win per host; other hosts and other top-level keys are kept.
        Returns the hosts that were written.
        """
        src = self.settings.containers_auth_path()
        dest = self.settings.docker_config_path()

        if not src.exists():
            log.debug("registry: %s does not exist, nothing to sync", src)
            return []

        try:
            source = json.loads(src.read_text())
        except (OSError, ValueError) as e:
            raise RegistryError(f"could not read credentials from {src}: {e}") from e
        if not isinstance(source, dict):
            raise RegistryError(f"could not read credentials from {src}: expected a JSON object")
        fresh: Dict[str, Any] = source.get("auths") or {}
        if not isinstance(fresh, dict):
            raise RegistryError(f"could not read credentials from {src}: \"auths\" is not an object")

        if dest.exists():
            merged = self._read_destination(dest)
            auths = merged.get("auths")
            if not isinstance(auths, dict):
                auths = {}
            auths.update(fresh)
            merged["auths"] = auths
        else:
            merged = source

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(json.dumps(merged, indent=2) + "\n")
        except OSError as e:
            raise RegistryError(f"could not write credentials to {dest}: {e}") from e

        hosts = list(fresh)
        log.debug("registry: synced %d auth entries into %s", len(hosts), dest)
        return hosts

    @staticmethod
    def _read_destination(dest: Path) -> Dict[str, Any]:
        try:
            data = json.loads(dest.read_text())
        except ValueError:
            backup = dest.with_name(dest.name + ".bak")
            dest.replace(backup)
            log.warning("registry: %s was not valid JSON, moved aside to %s", dest, backup)
            return {}
        if not isinstance(data, dict):
            backup = dest.with_name(dest.name + ".bak")
            dest.replace(backup)
            log.warning("registry: %s was not a JSON object, moved aside to %s", dest, backup)
            return {}
        return data

    # ---------------- transfer ----------------

    def inspect_digest(self, ref: str, *, tls_verify: bool = True) -> str:
        cmd = ["skopeo", "inspect", "--format", "{{.Digest}}"]
        if not tls_verify:
            cmd.append("--tls-verify=false")
        cmd.append(f"docker://{ref}")
        try:
            digest = self.runner.run(cmd, check=True).stdout.strip()
        except CommandError as e:
            raise RegistryError(f"could not inspect {ref}: {e.stderr}") from e
        if not digest.startswith("sha256:"):
            raise RegistryError(f"unexpected digest for {ref}: {digest!r}")
        return digest

    def push_external(self, pinned_ref: str, external_registry: str, name: str, tag: str = "latest") -> str:
        """Copy an image to *external_registry* and return the digest-pinned destination."""
        base = f"{external_registry.rstrip('/')}/{name}"
        dest = f"{base}:{tag}"
        try:
            self.runner.run(
                [
                    "skopeo", "copy", "--src-tls-verify=false",
                    f"docker://{pinned_ref}", f"docker://{dest}",
                ],
                check=True,
                hint=f"check that you are logged in to {external_registry}",
            )
        except CommandError as e:
            raise RegistryError(f"push of {pinned_ref} to {dest} failed: {e.stderr}", hint=e.hint) from e
        digest = self.inspect_digest(dest)
        log.info("Pushed %s -> %s@%s", pinned_ref, base, digest)
        return f"{base}@{digest}"
