"""Prometheus metrics for augpolicy."""

from prometheus_client import REGISTRY, CollectorRegistry, Counter

METRIC_PREFIX = "augmented_networkpolicy"


class Metrics:
    """
    Counters exported by the operator.

    Counters are registered on the given registry so that independent
    instances (e.g. in tests) do not collide on the global one.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else REGISTRY

        self.policy_creations = Counter(
            f"{METRIC_PREFIX}_creations",
            "Total number of standard NetworkPolicies created",
            registry=self.registry,
        )
        self.policy_deletions = Counter(
            f"{METRIC_PREFIX}_deletions",
            "Total number of augmented NetworkPolicies detected as deleted",
            registry=self.registry,
        )
        self.dns_changes = Counter(
            f"{METRIC_PREFIX}_dns_changes",
            "Total number of standard NetworkPolicy spec updates due to DNS changes",
            registry=self.registry,
        )
        self.ip_filtered = Counter(
            f"{METRIC_PREFIX}_ip_filtered",
            "Total number of resolved IP addresses filtered out by IP filter",
            ["hostname"],
            registry=self.registry,
        )
        self.dns_resolution_changes = Counter(
            f"{METRIC_PREFIX}_dns_resolution_changes",
            "Total number of times DNS resolution results changed for a hostname",
            ["hostname"],
            registry=self.registry,
        )


_default: Metrics | None = None


def default_metrics() -> Metrics:
    """Get the process-wide metrics instance registered on the global registry."""
    global _default
    if _default is None:
        _default = Metrics()
    return _default
