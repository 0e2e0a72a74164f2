"""Source and derived policy models."""

import copy
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from augpolicy.core.errors import InvalidPolicyError
from augpolicy.core.models.status import PolicyStatus

SOURCE_GROUP = "networking.ayoy.se"
SOURCE_VERSION = "v1alpha1"
SOURCE_PLURAL = "networkpolicies"
SOURCE_KIND = "NetworkPolicy"
SOURCE_API_VERSION = f"{SOURCE_GROUP}/{SOURCE_VERSION}"

DEFAULT_PROTOCOL = "TCP"

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration string such as "30s", "5m" or "1h30m".

    Raises:
        ValueError: If the string is not a valid duration.
    """
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    if not text:
        raise ValueError(f"invalid duration {value!r}")

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")

    return timedelta(seconds=sign * seconds)


def format_duration(value: timedelta) -> str:
    """Format a timedelta as a Go-style duration string."""
    total = value.total_seconds()
    if total == 0:
        return "0s"

    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)

    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if minutes:
        parts.append(f"{int(minutes)}m")
    if seconds or not parts:
        parts.append(f"{seconds:g}s")
    return sign + "".join(parts)


@dataclass(frozen=True)
class PolicyPort:
    """A port constraint of an egress rule."""

    protocol: str | None = None
    port: int | str | None = None
    end_port: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolicyPort":
        return cls(
            protocol=data.get("protocol"),
            port=data.get("port"),
            end_port=data.get("endPort"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.protocol is not None:
            result["protocol"] = self.protocol
        if self.port is not None:
            result["port"] = self.port
        if self.end_port is not None:
            result["endPort"] = self.end_port
        return result

    def with_defaults(self) -> "PolicyPort":
        """Return a copy with the protocol defaulted the way the API server does."""
        return PolicyPort(
            protocol=self.protocol or DEFAULT_PROTOCOL,
            port=self.port,
            end_port=self.end_port,
        )


@dataclass
class EgressRule:
    """A hostname-based egress rule of the source policy."""

    ports: list[PolicyPort] = field(default_factory=list)
    hostnames: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EgressRule":
        return cls(
            ports=[PolicyPort.from_dict(p) for p in data.get("ports") or []],
            hostnames=[peer["hostname"] for peer in data.get("to") or [] if peer.get("hostname")],
        )


@dataclass
class SourcePolicySpec:
    """Spec of the hostname-based source policy."""

    pod_selector: dict[str, Any] = field(default_factory=dict)
    policy_types: list[str] = field(default_factory=list)
    egress: list[EgressRule] = field(default_factory=list)
    resolution_interval: timedelta | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourcePolicySpec":
        interval = data.get("resolutionInterval")
        return cls(
            pod_selector=data.get("podSelector") or {},
            policy_types=list(data.get("policyTypes") or []),
            egress=[EgressRule.from_dict(rule) for rule in data.get("egress") or []],
            resolution_interval=parse_duration(interval) if interval else None,
        )

    def hostnames(self) -> list[str]:
        """All hostnames referenced by the egress rules, first-seen order, no duplicates."""
        seen: dict[str, None] = {}
        for rule in self.egress:
            for hostname in rule.hostnames:
                seen.setdefault(hostname, None)
        return list(seen)


@dataclass
class SourcePolicy:
    """The hostname-based custom NetworkPolicy resource."""

    name: str
    namespace: str
    spec: SourcePolicySpec = field(default_factory=SourcePolicySpec)
    status: PolicyStatus = field(default_factory=PolicyStatus)

    # Kubernetes metadata
    uid: str | None = None
    generation: int | None = None
    resource_version: str | None = None

    # Complete Kubernetes manifest
    raw_manifest: dict[str, Any] | None = None

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> "SourcePolicy":
        """
        Parse a source policy manifest.

        Raises:
            InvalidPolicyError: If the spec or status is malformed.
        """
        metadata = manifest.get("metadata", {})
        try:
            spec = SourcePolicySpec.from_dict(manifest.get("spec") or {})
            status = PolicyStatus.from_dict(manifest.get("status") or {})
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            raise InvalidPolicyError(metadata.get("namespace"), metadata.get("name"), e) from e

        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            spec=spec,
            status=status,
            uid=metadata.get("uid"),
            generation=metadata.get("generation"),
            resource_version=metadata.get("resourceVersion"),
            raw_manifest=manifest,
        )

    def get_full_name(self) -> str:
        """Get fully qualified policy name."""
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class IPBlockPeer:
    """An address-block peer of a derived egress rule."""

    cidr: str

    def to_dict(self) -> dict[str, Any]:
        return {"ipBlock": {"cidr": self.cidr}}


@dataclass
class DerivedEgressRule:
    """An egress rule with hostnames expanded into address blocks."""

    ports: list[PolicyPort] = field(default_factory=list)
    peers: list[IPBlockPeer] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DerivedEgressRule":
        peers = []
        for peer in data.get("to") or []:
            ip_block = peer.get("ipBlock") or {}
            if ip_block.get("cidr"):
                peers.append(IPBlockPeer(cidr=ip_block["cidr"]))
        return cls(
            ports=[PolicyPort.from_dict(p) for p in data.get("ports") or []],
            peers=peers,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.ports:
            result["ports"] = [p.to_dict() for p in self.ports]
        if self.peers:
            result["to"] = [p.to_dict() for p in self.peers]
        return result


@dataclass
class DerivedPolicySpec:
    """Spec of the standard networking.k8s.io/v1 NetworkPolicy."""

    pod_selector: dict[str, Any] = field(default_factory=dict)
    policy_types: list[str] = field(default_factory=list)
    egress: list[DerivedEgressRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DerivedPolicySpec":
        return cls(
            pod_selector=data.get("podSelector") or {},
            policy_types=list(data.get("policyTypes") or []),
            egress=[DerivedEgressRule.from_dict(rule) for rule in data.get("egress") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"podSelector": self.pod_selector}
        if self.policy_types:
            result["policyTypes"] = list(self.policy_types)
        if self.egress:
            result["egress"] = [rule.to_dict() for rule in self.egress]
        return result

    def _effective_policy_types(self) -> list[str]:
        # The API server fills in policyTypes when it is left empty
        if self.policy_types:
            return list(self.policy_types)
        return ["Ingress", "Egress"] if self.egress else ["Ingress"]

    def semantically_equal(self, other: "DerivedPolicySpec") -> bool:
        """Compare two specs, ignoring differences introduced by server-side defaulting."""
        if (self.pod_selector or {}) != (other.pod_selector or {}):
            return False
        if self._effective_policy_types() != other._effective_policy_types():
            return False
        if len(self.egress) != len(other.egress):
            return False

        for mine, theirs in zip(self.egress, other.egress):
            if mine.peers != theirs.peers:
                return False
            if [p.with_defaults() for p in mine.ports] != [p.with_defaults() for p in theirs.ports]:
                return False

        return True


@dataclass(frozen=True)
class OwnerReference:
    """Controller reference from a derived object to its source."""

    api_version: str
    kind: str
    name: str
    uid: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


@dataclass
class DerivedPolicy:
    """The IP-based NetworkPolicy synthesized from a source policy."""

    name: str
    namespace: str
    spec: DerivedPolicySpec = field(default_factory=DerivedPolicySpec)
    owner: OwnerReference | None = None
    resource_version: str | None = None
    labels: dict[str, str] = field(default_factory=dict)

    # Manifest as read from the cluster, None for synthesized policies
    raw_manifest: dict[str, Any] | None = None

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> "DerivedPolicy":
        metadata = manifest.get("metadata", {})
        owner = None
        for ref in metadata.get("ownerReferences") or []:
            if ref.get("controller"):
                owner = OwnerReference(
                    api_version=ref.get("apiVersion", ""),
                    kind=ref.get("kind", ""),
                    name=ref.get("name", ""),
                    uid=ref.get("uid", ""),
                )
                break

        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            spec=DerivedPolicySpec.from_dict(manifest.get("spec") or {}),
            owner=owner,
            resource_version=metadata.get("resourceVersion"),
            labels=metadata.get("labels") or {},
            raw_manifest=manifest,
        )

    def to_manifest(self) -> dict[str, Any]:
        """
        Build the manifest to send to the cluster.

        A policy read from the cluster keeps its stored metadata, so
        annotations and labels set by others survive; only the spec is
        replaced.
        """
        if self.raw_manifest is not None:
            manifest = copy.deepcopy(self.raw_manifest)
            manifest.setdefault("apiVersion", "networking.k8s.io/v1")
            manifest.setdefault("kind", "NetworkPolicy")
            manifest["spec"] = self.spec.to_dict()
            manifest.pop("status", None)
            return manifest

        metadata: dict[str, Any] = {"name": self.name, "namespace": self.namespace}
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.owner:
            metadata["ownerReferences"] = [self.owner.to_dict()]
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version

        return {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "NetworkPolicy",
            "metadata": metadata,
            "spec": self.spec.to_dict(),
        }

    def get_full_name(self) -> str:
        """Get fully qualified policy name."""
        return f"{self.namespace}/{self.name}"
