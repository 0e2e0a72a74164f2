"""kopf handlers driving reconciliation of hostname-based NetworkPolicies."""

import asyncio
import logging
from datetime import timedelta
from typing import Any

import kopf

from augpolicy.core.errors import AugPolicyError
from augpolicy.core.models import SOURCE_GROUP, SOURCE_PLURAL, SOURCE_VERSION
from augpolicy.core.services.reconciler import NetworkPolicyReconciler, ReconcileResult
from augpolicy.dns.podcidr import PodCIDRProvider

logger = logging.getLogger(__name__)

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 300.0


def backoff_delay(retry: int) -> float:
    """Exponential retry delay: 1s doubling per failed attempt, capped at 5m."""
    return min(INITIAL_BACKOFF * 2 ** max(retry, 0), MAX_BACKOFF)


class PolicyOperator:
    """
    Bind the reconciler to kopf.

    Every source policy gets a daemon that runs a pass, then sleeps for
    the requeue delay the pass returned, until kopf stops it. Spec
    changes trigger an extra pass right away. Passes for the same policy
    are serialized; different policies reconcile concurrently. Store
    failures become kopf.TemporaryError so kopf retries with exponential
    backoff.

    The pod CIDR provider, when configured, is started by the startup
    handler and has installed its first denylist before kopf begins
    watching policies.
    """

    def __init__(
        self,
        reconciler: NetworkPolicyReconciler,
        pod_cidr_provider: PodCIDRProvider | None = None,
    ):
        self.reconciler = reconciler
        self.pod_cidr_provider = pod_cidr_provider
        self._locks: dict[str, asyncio.Lock] = {}
        self._provider_stop: asyncio.Event | None = None
        self._provider_task: asyncio.Task[None] | None = None

    def register(self, registry: kopf.OperatorRegistry) -> kopf.OperatorRegistry:
        """Register all handlers on a kopf registry."""
        resource = (SOURCE_GROUP, SOURCE_VERSION, SOURCE_PLURAL)

        kopf.on.startup(id="startup", registry=registry)(self.on_startup)
        kopf.on.cleanup(id="cleanup", registry=registry)(self.on_cleanup)
        kopf.on.probe(id="pod-cidrs", registry=registry)(self.report_pod_cidrs)
        kopf.daemon(*resource, id="resolve", cancellation_timeout=10.0, registry=registry)(self.resolve_daemon)
        kopf.on.update(*resource, id="spec-changed", field="spec", registry=registry)(self.on_spec_change)
        kopf.on.event(*resource, id="events", registry=registry)(self.on_event)
        return registry

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Run one pass, never concurrently with another pass for the same policy."""
        key = f"{namespace}/{name}"
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            return await self.reconciler.reconcile(namespace, name)

    async def _reconcile_or_retry(self, namespace: str, name: str, retry: int) -> ReconcileResult:
        try:
            return await self.reconcile(namespace, name)
        except AugPolicyError as e:
            delay = backoff_delay(retry)
            logger.error("Reconciliation of %s/%s failed, retrying in %gs: %s", namespace, name, delay, e)
            raise kopf.TemporaryError(str(e), delay=delay) from e

    async def resolve_daemon(self, name: str, namespace: str, stopped: Any, retry: int = 0, **_: Any) -> None:
        """Re-resolve a policy for as long as it exists."""
        while not stopped:
            result = await self._reconcile_or_retry(namespace, name, retry)
            if result.requeue_after is None:
                return
            retry = 0
            await stopped.wait(result.requeue_after.total_seconds())

    async def on_spec_change(self, name: str, namespace: str, retry: int = 0, **_: Any) -> None:
        """Reconcile as soon as the spec of a policy changes."""
        await self._reconcile_or_retry(namespace, name, retry)

    async def on_event(self, event: dict[str, Any], name: str, namespace: str, **_: Any) -> None:
        """Account for deleted policies."""
        if event.get("type") != "DELETED":
            return

        # The derived policy is garbage collected through its owner reference
        try:
            await self.reconcile(namespace, name)
        except AugPolicyError as e:
            logger.error("Failed to process deletion of %s/%s: %s", namespace, name, e)
        finally:
            self._locks.pop(f"{namespace}/{name}", None)

    async def on_startup(self, settings: kopf.OperatorSettings, **_: Any) -> None:
        """Configure kopf and install the first pod CIDR denylist."""
        settings.posting.enabled = False
        settings.persistence.finalizer = f"{SOURCE_GROUP}/finalizer"
        settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=SOURCE_GROUP)
        settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(prefix=SOURCE_GROUP)

        if self.pod_cidr_provider:
            self._provider_stop = asyncio.Event()
            self._provider_task = asyncio.create_task(self.pod_cidr_provider.start(self._provider_stop))
            await self.pod_cidr_provider.ready.wait()

        logger.info("Operator started")

    async def on_cleanup(self, **_: Any) -> None:
        """Stop the pod CIDR provider."""
        if self._provider_stop:
            self._provider_stop.set()
        if self._provider_task:
            await asyncio.gather(self._provider_task, return_exceptions=True)
            self._provider_task = None

        logger.info("Operator stopped")

    async def report_pod_cidrs(self, **_: Any) -> dict[str, Any]:
        """Report whether the dynamic denylist is loaded."""
        if self.pod_cidr_provider is None:
            return {"enabled": False}

        return {
            "enabled": True,
            "ready": self.pod_cidr_provider.ready.is_set(),
            "denylist": self.pod_cidr_provider.ip_filter.dynamic_denylist,
        }
