"""Unit tests for the kopf handlers."""

import asyncio
from datetime import timedelta

import kopf
import pytest

from augpolicy.core.errors import InvalidPolicyError
from augpolicy.core.models import Node
from augpolicy.core.services import NetworkPolicyReconciler
from augpolicy.dns import FilteringResolver, IPFilter, PodCIDRProvider, StaticResolver
from augpolicy.k8s.operator import MAX_BACKOFF, PolicyOperator, backoff_delay


class FakeStopped:
    """Stand-in for kopf's daemon stop flag that stops after N waits."""

    def __init__(self, waits_before_stop: int = 1):
        self.waits_before_stop = waits_before_stop
        self.timeouts: list[float] = []

    def __bool__(self):
        return len(self.timeouts) >= self.waits_before_stop

    async def wait(self, timeout=None):
        self.timeouts.append(timeout)


@pytest.fixture
def operator(store, metrics):
    dns = StaticResolver({"example.com": ["93.184.216.34/32"]})
    resolver = FilteringResolver(dns, IPFilter(), metrics)
    return PolicyOperator(NetworkPolicyReconciler(store, resolver, metrics))


def _counter(registry, name):
    return registry.get_sample_value(f"augmented_networkpolicy_{name}_total") or 0.0


class TestBackoff:
    """Test the retry delay schedule."""

    @pytest.mark.parametrize(("retry", "expected"), [(0, 1.0), (1, 2.0), (2, 4.0), (8, 256.0), (9, MAX_BACKOFF), (20, MAX_BACKOFF)])
    def test_backoff_delay(self, retry, expected):
        assert backoff_delay(retry) == expected


class TestResolveDaemon:
    """Test the per-policy resolution loop."""

    def test_creates_policy_and_sleeps_for_interval(self, operator, store, make_source):
        store.add_source(make_source([["example.com"]], interval="10m"))
        stopped = FakeStopped(waits_before_stop=2)

        asyncio.run(operator.resolve_daemon(name="allow-example", namespace="default", stopped=stopped))

        assert len(store.creates) == 1
        assert len(store.updates) == 0
        assert stopped.timeouts == [600.0, 600.0]

    def test_returns_when_policy_is_gone(self, operator, store):
        stopped = FakeStopped()

        asyncio.run(operator.resolve_daemon(name="missing", namespace="default", stopped=stopped))

        assert stopped.timeouts == []

    def test_store_failure_is_retried_with_backoff(self, operator, store, make_source):
        store.add_source(make_source([["example.com"]]))
        store.fail_create = True

        with pytest.raises(kopf.TemporaryError) as exc_info:
            asyncio.run(operator.resolve_daemon(name="allow-example", namespace="default", stopped=FakeStopped(), retry=2))

        assert exc_info.value.delay == 4.0

    def test_invalid_policy_does_not_affect_others(self, operator, store, make_source, monkeypatch):
        store.add_source(make_source([["example.com"]], name="good"))
        original = store.get_source_policy

        async def get_source_policy(namespace, name):
            if name == "bad":
                raise InvalidPolicyError(namespace, name, "invalid duration '5 minutes'")
            return await original(namespace, name)

        monkeypatch.setattr(store, "get_source_policy", get_source_policy)

        with pytest.raises(kopf.TemporaryError, match="5 minutes"):
            asyncio.run(operator.resolve_daemon(name="bad", namespace="default", stopped=FakeStopped()))

        asyncio.run(operator.resolve_daemon(name="good", namespace="default", stopped=FakeStopped()))

        assert [p.name for p in store.creates] == ["good"]


class TestSpecChange:
    """Test the spec update handler."""

    def test_reconciles_immediately(self, operator, store, make_source):
        store.add_source(make_source([["example.com"]]))

        asyncio.run(operator.on_spec_change(name="allow-example", namespace="default"))

        assert len(store.creates) == 1

    def test_concurrent_passes_for_one_policy_are_serialized(self, operator, store, make_source):
        store.add_source(make_source([["example.com"]]))

        async def run():
            await asyncio.gather(
                operator.on_spec_change(name="allow-example", namespace="default"),
                operator.on_spec_change(name="allow-example", namespace="default"),
            )

        asyncio.run(run())

        assert len(store.creates) == 1
        assert len(store.updates) == 0


class TestEvents:
    """Test the raw event handler."""

    def test_deletion_is_counted(self, operator, registry):
        asyncio.run(operator.on_event(event={"type": "DELETED"}, name="allow-example", namespace="default"))

        assert _counter(registry, "deletions") == 1.0
        assert operator._locks == {}

    def test_other_events_are_ignored(self, operator, store, registry, make_source):
        store.add_source(make_source([["example.com"]]))

        asyncio.run(operator.on_event(event={"type": "MODIFIED"}, name="allow-example", namespace="default"))

        assert _counter(registry, "deletions") == 0.0
        assert store.creates == []


class TestLifecycle:
    """Test startup, cleanup and the health report."""

    def test_startup_installs_pod_cidrs_before_returning(self, store, metrics, inventory):
        inventory.nodes = [Node("n1", pod_cidrs=["10.244.0.0/24"])]
        ip_filter = IPFilter()

        async def run():
            provider = PodCIDRProvider(inventory, ip_filter, interval=timedelta(hours=1))
            operator = PolicyOperator(NetworkPolicyReconciler(store, StaticResolver({}), metrics), provider)
            settings = kopf.OperatorSettings()

            await operator.on_startup(settings=settings)
            denylist = ip_filter.dynamic_denylist
            report = await operator.report_pod_cidrs()
            await operator.on_cleanup()
            return settings, denylist, report, operator

        settings, denylist, report, operator = asyncio.run(run())

        assert denylist == ["10.244.0.0/24"]
        assert report == {"enabled": True, "ready": True, "denylist": ["10.244.0.0/24"]}
        assert settings.persistence.finalizer == "networking.ayoy.se/finalizer"
        assert settings.posting.enabled is False
        assert operator._provider_task is None

    def test_report_without_provider(self, operator):
        assert asyncio.run(operator.report_pod_cidrs()) == {"enabled": False}

    def test_register(self, operator):
        registry = operator.register(kopf.OperatorRegistry())

        assert isinstance(registry, kopf.OperatorRegistry)
