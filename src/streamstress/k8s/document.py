# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/k8s/document.py
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence, Union

PathLike = Union[str, Sequence[Union[str, int]]]

_MISSING = object()


def _split(path: PathLike) -> List[Union[str, int]]:
    """
    "spec.install.spec.deployments.0.name" -> ["spec", "install", "spec", "deployments", 0, "name"]
    Numeric segments index lists.
    """
    if isinstance(path, str):
        parts: List[Union[str, int]] = []
        for seg in path.split("."):
            parts.append(int(seg) if seg.isdigit() else seg)
        return parts
    return list(path)


class Document:
    """
    Schema-less cluster object (custom resources we only read or path-patch:
    TektonConfig, ClusterServiceVersion, TektonInstallerSet, ...).
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = data if data is not None else {}

    # ---------------- identity ----------------

    @property
    def name(self) -> Optional[str]:
        return self.get("metadata.name")

    @property
    def namespace(self) -> Optional[str]:
        return self.get("metadata.namespace")

    @property
    def kind(self) -> Optional[str]:
        return self.data.get("kind")

    # ---------------- path access ----------------

    def get(self, path: PathLike, default: Any = None) -> Any:
        node: Any = self.data
        for seg in _split(path):
            if isinstance(seg, int):
                if not isinstance(node, list) or seg >= len(node):
                    return default
                node = node[seg]
            else:
                if not isinstance(node, dict):
                    return default
                node = node.get(seg, _MISSING)
                if node is _MISSING:
                    return default
        return node

    def set(self, path: PathLike, value: Any) -> None:
        """Set *value* at *path*, creating intermediate mappings. List indices must exist."""
        parts = _split(path)
        if not parts:
            raise ValueError("empty path")
        node: Any = self.data
        for seg, nxt in zip(parts, parts[1:]):
            if isinstance(seg, int):
                if not isinstance(node, list) or seg >= len(node):
                    raise KeyError(f"index {seg} out of range in path {path!r}")
                node = node[seg]
            else:
                if not isinstance(node, dict):
                    raise KeyError(f"cannot descend into {type(node).__name__} at {seg!r} in {path!r}")
                if seg not in node or node[seg] is None:
                    node[seg] = [] if isinstance(nxt, int) else {}
                node = node[seg]
        last = parts[-1]
        if isinstance(last, int):
            if not isinstance(node, list) or last >= len(node):
                raise KeyError(f"index {last} out of range in path {path!r}")
            node[last] = value
        else:
            if not isinstance(node, dict):
                raise KeyError(f"cannot set {last!r} on {type(node).__name__} in {path!r}")
            node[last] = value

    # ---------------- conventions ----------------

    def condition(self, ctype: str) -> Optional[Dict[str, Any]]:
        for cond in self.get("status.conditions", []) or []:
            if isinstance(cond, dict) and cond.get("type") == ctype:
                return cond
        return None

    def condition_is_true(self, ctype: str) -> bool:
        cond = self.condition(ctype)
        return bool(cond) and str(cond.get("status")) == "True"

    def copy(self) -> "Document":
        return Document(copy.deepcopy(self.data))

    def to_dict(self) -> Dict[str, Any]:
        return self.data

    def __repr__(self) -> str:
        return f"Document(kind={self.kind!r}, name={self.name!r})"
