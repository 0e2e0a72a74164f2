"""Cluster inventory models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Node:
    """A cluster node and the pod address ranges assigned to it."""

    name: str
    pod_cidr: str = ""
    pod_cidrs: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Node":
        spec = data.get("spec") or {}
        return cls(
            name=(data.get("metadata") or {}).get("name", ""),
            pod_cidr=spec.get("podCIDR") or "",
            pod_cidrs=list(spec.get("podCIDRs") or []),
        )

    def pod_ranges(self) -> list[str]:
        """Pod ranges of this node, preferring the dual-stack list."""
        if self.pod_cidrs:
            return list(self.pod_cidrs)
        if self.pod_cidr:
            return [self.pod_cidr]
        return []
