"""Shared fixtures and in-memory fakes for unit tests."""

import copy

import pytest
from prometheus_client import CollectorRegistry

from augpolicy.core.errors import ApplyError, InventoryListError, NotFoundError
from augpolicy.core.interfaces import NodeInventory, PolicyStore
from augpolicy.core.models import DerivedPolicy, Node, PolicyStatus, SourcePolicy
from augpolicy.metrics import Metrics


class InMemoryPolicyStore(PolicyStore):
    """Policy store backed by dictionaries, recording every write."""

    def __init__(self):
        self.sources: dict[str, SourcePolicy] = {}
        self.derived: dict[str, DerivedPolicy] = {}
        self.creates: list[DerivedPolicy] = []
        self.updates: list[DerivedPolicy] = []
        self.status_updates: list[PolicyStatus] = []
        self.fail_create = False
        self.fail_update = False
        self.fail_status = False

    def add_source(self, manifest: dict) -> SourcePolicy:
        policy = SourcePolicy.from_manifest(manifest)
        self.sources[policy.get_full_name()] = policy
        return policy

    async def get_source_policy(self, namespace, name):
        key = f"{namespace}/{name}"
        if key not in self.sources:
            raise NotFoundError("NetworkPolicy", namespace, name)
        return copy.deepcopy(self.sources[key])

    async def list_source_policies(self, namespace=None):
        return [copy.deepcopy(p) for p in self.sources.values() if namespace in (None, p.namespace)]

    async def get_derived_policy(self, namespace, name):
        policy = self.derived.get(f"{namespace}/{name}")
        return copy.deepcopy(policy) if policy else None

    async def create_derived_policy(self, policy):
        if self.fail_create:
            raise ApplyError("create failed")
        self.creates.append(copy.deepcopy(policy))
        self.derived[policy.get_full_name()] = copy.deepcopy(policy)

    async def update_derived_policy(self, policy):
        if self.fail_update:
            raise ApplyError("update failed")
        self.updates.append(copy.deepcopy(policy))
        self.derived[policy.get_full_name()] = copy.deepcopy(policy)

    async def update_source_status(self, policy, status):
        if self.fail_status:
            raise ApplyError("status update failed")
        self.status_updates.append(copy.deepcopy(status))
        stored = self.sources.get(policy.get_full_name())
        if stored is not None:
            stored.status = copy.deepcopy(status)


class FakeNodeInventory(NodeInventory):
    """Node inventory returning a fixed node list, or failing on demand."""

    def __init__(self, nodes: list[Node] | None = None):
        self.nodes = list(nodes or [])
        self.fail = False
        self.calls = 0

    async def list_nodes(self):
        self.calls += 1
        if self.fail:
            raise InventoryListError("nodes are forbidden")
        return list(self.nodes)


def source_manifest(
    hosts_per_rule: list[list[str]],
    name: str = "allow-example",
    namespace: str = "default",
    interval: str | None = None,
    ports: list[dict] | None = None,
) -> dict:
    """Build a source policy manifest with one egress rule per host list."""
    spec: dict = {
        "podSelector": {"matchLabels": {"app": "web"}},
        "policyTypes": ["Egress"],
        "egress": [
            {
                "ports": ports if ports is not None else [{"protocol": "TCP", "port": 443}],
                "to": [{"hostname": host} for host in hosts],
            }
            for hosts in hosts_per_rule
        ],
    }
    if interval:
        spec["resolutionInterval"] = interval

    return {
        "apiVersion": "networking.ayoy.se/v1alpha1",
        "kind": "NetworkPolicy",
        "metadata": {"name": name, "namespace": namespace, "uid": "uid-1234", "generation": 1},
        "spec": spec,
    }


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return Metrics(registry=registry)


@pytest.fixture
def store():
    return InMemoryPolicyStore()


@pytest.fixture
def inventory():
    return FakeNodeInventory()


@pytest.fixture
def make_source():
    return source_manifest
