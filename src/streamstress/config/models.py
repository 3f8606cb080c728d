# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/config/models.py

from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, Field, RootModel

from ..errors import ConfigurationError


class ComponentConfig(BaseModel):
    """Build and deploy settings for one upstream component (pipeline, triggers, ...)."""

    repo: str
    # Import paths for ko build (e.g. ["./cmd/controller", "./cmd/webhook"])
    import_paths: List[str] = Field(default_factory=list)
    # short image name (e.g. "controller") -> IMAGE_ env var on the operator
    images: Dict[str, str] = Field(default_factory=dict)
    build_system: Literal["ko", "docker"] = "ko"
    # Some components use a different slug for their installer sets
    installer_set_prefix: Optional[str] = None

    def image_names(self) -> List[str]:
        """Names the configured build system is expected to produce."""
        if self.build_system == "docker":
            return list(self.images)
        return [p.rstrip("/").rsplit("/", 1)[-1] for p in self.import_paths]


class ComponentsConfig(RootModel[Dict[str, ComponentConfig]]):
    """Top-level document: keys are component names."""

    def get(self, name: str) -> ComponentConfig:
        try:
            return self.root[name]
        except KeyError:
            raise ConfigurationError(
                f"Component '{name}' not found in config "
                f"(configured: {', '.join(sorted(self.root)) or 'none'})"
            ) from None

    def has(self, name: str) -> bool:
        return name in self.root

    def names(self) -> List[str]:
        return list(self.root)
