"""Synthesis of IP-based NetworkPolicies from hostname-based ones."""

from collections.abc import Mapping

from augpolicy.core.models import (
    SOURCE_API_VERSION,
    SOURCE_GROUP,
    SOURCE_KIND,
    DerivedEgressRule,
    DerivedPolicy,
    DerivedPolicySpec,
    IPBlockPeer,
    OwnerReference,
    SourcePolicy,
)

MANAGED_LABEL = f"{SOURCE_GROUP}/managed"
MANAGED_LABEL_VALUE = "true"


class PolicySynthesizer:
    """
    Build the desired standard NetworkPolicy for a source policy.

    Each hostname expands into one ipBlock peer per resolved address, in
    the order the hostnames and addresses are given. Hostnames without
    addresses contribute no peers. Ports are copied unchanged. The output
    depends only on the inputs, so repeated calls with the same data
    produce equal objects.
    """

    def synthesize(self, source: SourcePolicy, resolved: Mapping[str, list[str]]) -> DerivedPolicy:
        egress = []
        for rule in source.spec.egress:
            peers = [
                IPBlockPeer(cidr=cidr)
                for hostname in rule.hostnames
                for cidr in resolved.get(hostname, [])
            ]
            egress.append(DerivedEgressRule(ports=list(rule.ports), peers=peers))

        owner = None
        if source.uid:
            owner = OwnerReference(
                api_version=SOURCE_API_VERSION,
                kind=SOURCE_KIND,
                name=source.name,
                uid=source.uid,
            )

        return DerivedPolicy(
            name=source.name,
            namespace=source.namespace,
            spec=DerivedPolicySpec(
                pod_selector=source.spec.pod_selector,
                policy_types=list(source.spec.policy_types),
                egress=egress,
            ),
            owner=owner,
            labels={MANAGED_LABEL: MANAGED_LABEL_VALUE},
        )
