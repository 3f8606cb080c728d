# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/deploy/mapping.py
from __future__ import annotations

from typing import List, Sequence, Tuple

from ..build.builders import BuiltImage
from ..config.models import ComponentsConfig
from ..config.settings import DEFAULT_IMAGE_NAMESPACE
from ..errors import ImageMappingError

INTERNAL_REGISTRY = "image-registry.openshift-image-registry.svc:5000"

# (env var key, full image reference)
ImageMapping = List[Tuple[str, str]]


def to_internal_registry(registry: str) -> str:
    """
    default-route-openshift-image-registry.apps.example.com/tekton-upstream
      -> image-registry.openshift-image-registry.svc:5000/tekton-upstream

    Pods pull through the in-cluster service, not the external route.
    """
    _, sep, path = registry.strip().strip("/").partition("/")
    namespace = path if sep and path else DEFAULT_IMAGE_NAMESPACE
    return f"{INTERNAL_REGISTRY}/{namespace}"


def build_image_mappings(
    config: ComponentsConfig,
    component: str,
    registry: str,
    built: Sequence[BuiltImage],
) -> ImageMapping:
    """All-or-nothing: any image without an env key fails the whole mapping."""
    if not config.has(component):
        raise ImageMappingError(f"Component '{component}' not found in config")
    keys = config.get(component).images
    base = registry.rstrip("/")

    mappings: ImageMapping = []
    for img in built:
        key = keys.get(img.name)
        if key is None:
            raise ImageMappingError(
                f"No IMAGE_ env var mapping for image '{img.name}' of component '{component}'",
                hint=f"add '{img.name}' under {component}.images in config/components.yaml",
            )
        ref = f"{base}/{img.name}"
        if img.digest:
            ref = f"{ref}@{img.digest}"
        mappings.append((key, ref))

    if not mappings:
        raise ImageMappingError(f"No images to map for component '{component}'")
    return mappings


def format_mapping_table(mappings: ImageMapping) -> str:
    if not mappings:
        return ""
    width = max(len(k) for k, _ in mappings)
    return "\n".join(f"  {k.ljust(width)}  {v}" for k, v in mappings)
