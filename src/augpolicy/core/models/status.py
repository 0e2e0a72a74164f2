"""Status and condition models."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

CONDITION_READY = "Ready"


class ConditionStatus(Enum):
    """Kubernetes condition status values."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(Enum):
    """Reasons reported on the Ready condition."""

    RECONCILED = "Reconciled"
    RESOLUTION_FAILED = "ResolutionFailed"


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Condition:
    """A single status condition, keyed by type."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    observed_generation: int | None = None
    last_transition_time: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Condition":
        try:
            status = ConditionStatus(data.get("status", "Unknown"))
        except ValueError:
            status = ConditionStatus.UNKNOWN

        return cls(
            type=data.get("type", ""),
            status=status,
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            observed_generation=data.get("observedGeneration"),
            last_transition_time=_parse_timestamp(data.get("lastTransitionTime")),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
        }
        if self.observed_generation is not None:
            result["observedGeneration"] = self.observed_generation
        if self.last_transition_time is not None:
            result["lastTransitionTime"] = _format_timestamp(self.last_transition_time)
        return result


def set_condition(conditions: list[Condition], condition: Condition) -> list[Condition]:
    """
    Upsert a condition by type.

    If a condition of the same type exists with the same status, its
    last transition time is kept. If the status changed, the new
    condition's transition time is used. A condition whose type is not
    present yet is appended.

    Returns:
        A new list; the input list is not modified.
    """
    result = list(conditions)
    for i, existing in enumerate(result):
        if existing.type != condition.type:
            continue
        if existing.status == condition.status:
            condition = replace(condition, last_transition_time=existing.last_transition_time)
        result[i] = condition
        return result

    result.append(condition)
    return result


@dataclass
class PolicyStatus:
    """Status of a source policy."""

    conditions: list[Condition] = field(default_factory=list)
    resolved_addresses: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PolicyStatus":
        return cls(
            conditions=[Condition.from_dict(c) for c in data.get("conditions") or []],
            resolved_addresses={
                host: list(addresses) for host, addresses in (data.get("resolvedAddresses") or {}).items()
            },
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.conditions:
            result["conditions"] = [c.to_dict() for c in self.conditions]
        if self.resolved_addresses:
            result["resolvedAddresses"] = {host: list(addresses) for host, addresses in self.resolved_addresses.items()}
        return result

    def get_condition(self, condition_type: str) -> Condition | None:
        """Get a condition by type."""
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def is_ready(self) -> bool:
        """Check if the Ready condition is True."""
        ready = self.get_condition(CONDITION_READY)
        return ready is not None and ready.status == ConditionStatus.TRUE
