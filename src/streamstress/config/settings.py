# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_IMAGE_NAMESPACE = "tekton-upstream"


@dataclass(frozen=True)
class RegistrySettings:
    """
    Registry/credential inputs taken from the environment.

    registry_override:    STREAMSTRESS_REGISTRY, skips route discovery
    docker_config_dir:    DOCKER_CONFIG, where ko reads config.json
    containers_auth_file: REGISTRY_AUTH_FILE, where oc/podman write auth.json
    """

    registry_override: Optional[str] = None
    docker_config_dir: Optional[Path] = None
    containers_auth_file: Optional[Path] = None
    image_namespace: str = DEFAULT_IMAGE_NAMESPACE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RegistrySettings":
        env = os.environ if environ is None else environ
        docker = env.get("DOCKER_CONFIG")
        auth = env.get("REGISTRY_AUTH_FILE")
        return cls(
            registry_override=env.get("STREAMSTRESS_REGISTRY") or None,
            docker_config_dir=Path(docker) if docker else None,
            containers_auth_file=Path(auth) if auth else None,
            image_namespace=env.get("STREAMSTRESS_IMAGE_NAMESPACE") or DEFAULT_IMAGE_NAMESPACE,
        )

    def docker_config_path(self) -> Path:
        base = self.docker_config_dir or (Path.home() / ".docker")
        return base / "config.json"

    def containers_auth_path(self) -> Path:
        return self.containers_auth_file or (Path.home() / ".config" / "containers" / "auth.json")
