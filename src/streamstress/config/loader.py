# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/config/loader.py

import logging
import os
import yaml
from pathlib import Path
from pydantic import ValidationError

from .models import ComponentsConfig
from ..errors import ConfigurationError

log = logging.getLogger("streamstress")

DEFAULT_CONFIG_PATH = Path("config") / "components.yaml"


def default_config_path() -> Path:
    """config/components.yaml relative to the current directory."""
    return DEFAULT_CONFIG_PATH


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path | None = None) -> ComponentsConfig:
    """
    Load and validate the static component configuration.

    The document maps component name -> {repo, import_paths, images,
    build_system, installer_set_prefix}. It is read once per run and
    treated as read-only afterwards.
    """
    path = Path(path) if path else default_config_path()
    log.debug("Loading component config from %s", path)

    try:
        data = _load_yaml(path)
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file: {path}: {e}",
            hint="run from the repository root or pass an explicit config path",
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config: {path}: {e}") from e

    try:
        return ComponentsConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e
