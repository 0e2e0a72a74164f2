"""Core domain models for augpolicy."""

from augpolicy.core.models.cluster import Node
from augpolicy.core.models.policy import (
    SOURCE_API_VERSION,
    SOURCE_GROUP,
    SOURCE_KIND,
    SOURCE_PLURAL,
    SOURCE_VERSION,
    DerivedEgressRule,
    DerivedPolicy,
    DerivedPolicySpec,
    EgressRule,
    IPBlockPeer,
    OwnerReference,
    PolicyPort,
    SourcePolicy,
    SourcePolicySpec,
    format_duration,
    parse_duration,
)
from augpolicy.core.models.status import (
    CONDITION_READY,
    Condition,
    ConditionReason,
    ConditionStatus,
    PolicyStatus,
    set_condition,
)

__all__ = [
    "CONDITION_READY",
    "Condition",
    "ConditionReason",
    "ConditionStatus",
    "DerivedEgressRule",
    "DerivedPolicy",
    "DerivedPolicySpec",
    "EgressRule",
    "IPBlockPeer",
    "Node",
    "OwnerReference",
    "PolicyPort",
    "PolicyStatus",
    "SOURCE_API_VERSION",
    "SOURCE_GROUP",
    "SOURCE_KIND",
    "SOURCE_PLURAL",
    "SOURCE_VERSION",
    "SourcePolicy",
    "SourcePolicySpec",
    "format_duration",
    "parse_duration",
    "set_condition",
]
