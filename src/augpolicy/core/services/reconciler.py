"""Reconciliation of hostname-based NetworkPolicies."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from augpolicy.core.errors import NotFoundError, ResolutionError
from augpolicy.core.interfaces import AddressResolver, PolicyStore
from augpolicy.core.models import (
    CONDITION_READY,
    Condition,
    ConditionReason,
    ConditionStatus,
    DerivedPolicy,
    PolicyStatus,
    SourcePolicy,
    SourcePolicySpec,
    set_condition,
)
from augpolicy.core.services.synthesizer import PolicySynthesizer
from augpolicy.metrics import Metrics, default_metrics

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION_INTERVAL = timedelta(minutes=5)
MIN_RESOLUTION_INTERVAL = timedelta(seconds=30)
DEFAULT_RESOLVE_TIMEOUT = 10.0


def requeue_interval(spec: SourcePolicySpec) -> timedelta:
    """Get the re-resolution interval of a policy, clamped to the minimum."""
    interval = DEFAULT_RESOLUTION_INTERVAL if spec.resolution_interval is None else spec.resolution_interval
    if interval < MIN_RESOLUTION_INTERVAL:
        logger.info(
            "resolutionInterval %s too low, using minimum %s",
            interval,
            MIN_RESOLUTION_INTERVAL,
        )
        interval = MIN_RESOLUTION_INTERVAL
    return interval


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation pass."""

    requeue_after: timedelta | None = None

    # Details of the pass, for logging and the CLI
    deleted: bool = False
    created: bool = False
    updated: bool = False
    resolved_addresses: dict[str, list[str]] = field(default_factory=dict)
    resolution_errors: list[str] = field(default_factory=list)


class NetworkPolicyReconciler:
    """
    Reconcile one hostname-based NetworkPolicy into a standard one.

    A pass fetches the source policy, resolves its hostnames, synthesizes
    the desired NetworkPolicy, creates or updates it when it differs,
    writes the status and returns when to run again. Resolution failures
    only affect the failing hostname. Store failures raise ApplyError and
    are retried by the caller.
    """

    def __init__(
        self,
        store: PolicyStore,
        resolver: AddressResolver,
        metrics: Metrics | None = None,
        synthesizer: PolicySynthesizer | None = None,
        resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT,
    ):
        self.store = store
        self.resolver = resolver
        self.metrics = metrics or default_metrics()
        self.synthesizer = synthesizer or PolicySynthesizer()
        self.resolve_timeout = resolve_timeout

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        try:
            source = await self.store.get_source_policy(namespace, name)
        except NotFoundError:
            logger.info("NetworkPolicy %s/%s not found, likely deleted", namespace, name)
            self.metrics.policy_deletions.inc()
            return ReconcileResult(deleted=True)

        result = ReconcileResult()
        result.resolved_addresses, result.resolution_errors = await self._resolve_all(source)

        desired = self.synthesizer.synthesize(source, result.resolved_addresses)
        result.created, result.updated = await self._apply(desired)

        await self._update_status(source, result.resolved_addresses, result.resolution_errors)

        result.requeue_after = requeue_interval(source.spec)
        return result

    async def _resolve_all(self, source: SourcePolicy) -> tuple[dict[str, list[str]], list[str]]:
        resolved: dict[str, list[str]] = {}
        errors: list[str] = []

        for hostname in source.spec.hostnames():
            try:
                resolved[hostname] = await asyncio.wait_for(
                    self.resolver.resolve(hostname), timeout=self.resolve_timeout
                )
            except asyncio.TimeoutError:
                logger.error("Timed out resolving hostname %s for %s", hostname, source.get_full_name())
                errors.append(f'failed to resolve "{hostname}": timed out after {self.resolve_timeout:g}s')
            except ResolutionError as e:
                logger.error("Failed to resolve hostname %s for %s: %s", hostname, source.get_full_name(), e.cause)
                errors.append(f'failed to resolve "{hostname}": {e.cause}')

        return resolved, errors

    async def _apply(self, desired: DerivedPolicy) -> tuple[bool, bool]:
        """Create or update the derived policy. Returns (created, updated)."""
        existing = await self.store.get_derived_policy(desired.namespace, desired.name)

        if existing is None:
            logger.info("Creating standard NetworkPolicy %s", desired.get_full_name())
            await self.store.create_derived_policy(desired)
            self.metrics.policy_creations.inc()
            return True, False

        if existing.spec.semantically_equal(desired.spec):
            return False, False

        existing.spec = desired.spec
        logger.info("Updating standard NetworkPolicy %s", desired.get_full_name())
        await self.store.update_derived_policy(existing)
        self.metrics.dns_changes.inc()
        return False, True

    async def _update_status(
        self,
        source: SourcePolicy,
        resolved: dict[str, list[str]],
        errors: list[str],
    ) -> None:
        if errors:
            condition = Condition(
                type=CONDITION_READY,
                status=ConditionStatus.FALSE,
                reason=ConditionReason.RESOLUTION_FAILED.value,
                message=f"failed to resolve some hostnames: {'; '.join(errors)}",
                observed_generation=source.generation,
                last_transition_time=datetime.now(timezone.utc),
            )
        else:
            condition = Condition(
                type=CONDITION_READY,
                status=ConditionStatus.TRUE,
                reason=ConditionReason.RECONCILED.value,
                message="All hostnames resolved successfully",
                observed_generation=source.generation,
                last_transition_time=datetime.now(timezone.utc),
            )

        status = PolicyStatus(
            conditions=set_condition(source.status.conditions, condition),
            resolved_addresses=dict(resolved),
        )
        await self.store.update_source_status(source, status)
        source.status = status
