# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/deploy/installer_sets.py
from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import ClusterError
from ..k8s.client import ClusterClient
from ..k8s.resources import TEKTON_INSTALLER_SET

log = logging.getLogger("streamstress")


def installer_set_prefixes(component: str, override: Optional[str] = None) -> List[str]:
    p = override or component
    return [f"{p}-main-deployment-", f"{p}-main-static-", f"{p}-post-", f"{p}-pre-"]


class InvalidationTrigger:
    """
    Deletes a component's TektonInstallerSets so the operator regenerates
    them from the freshly patched env.
    """

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster

    def invalidate(self, component: str, prefix_override: Optional[str] = None) -> int:
        prefixes = tuple(installer_set_prefixes(component, prefix_override))
        deleted = 0
        for item in self.cluster.list_custom(TEKTON_INSTALLER_SET):
            name = item.name or ""
            if not name.startswith(prefixes):
                continue
            try:
                self.cluster.delete_custom(TEKTON_INSTALLER_SET, name)
            except ClusterError as e:
                log.warning("Could not delete installer set %s: %s", name, e)
                continue
            log.debug("deleted installer set %s", name)
            deleted += 1
        log.info("Deleted %d installer set(s) for %s", deleted, component)
        return deleted
