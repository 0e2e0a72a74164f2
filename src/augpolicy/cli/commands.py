"""CLI command implementations."""

import json
import logging
from datetime import timedelta

import kopf
from prometheus_client import start_http_server
from rich.console import Console
from rich.table import Table

from augpolicy.core.errors import AugPolicyError, FilterConfigurationError, ResolutionError
from augpolicy.core.models import CONDITION_READY, SourcePolicy
from augpolicy.core.services import NetworkPolicyReconciler
from augpolicy.dns import FilteringResolver, IPFilter, NetResolver, PodCIDRProvider
from augpolicy.k8s.client import K8sClient
from augpolicy.k8s.operator import PolicyOperator
from augpolicy.metrics import default_metrics
from augpolicy.utils import OperatorConfig

console = Console()
logger = logging.getLogger(__name__)


async def run_operator_async(config: OperatorConfig, namespace: str | None) -> None:
    """Wire the operator together and run it until interrupted."""
    try:
        ip_filter = IPFilter(config.ip_allowlist, config.ip_denylist)
    except FilterConfigurationError as e:
        logger.error("Invalid IP filter configuration: %s", e)
        raise SystemExit(1) from e

    logger.info(
        "IP filter configured: denylist=%s allowlist=%s autoDetectPodCIDR=%s",
        ip_filter.denylist,
        ip_filter.allowlist,
        config.auto_detect_pod_cidr,
    )

    metrics = default_metrics()
    if config.metrics_port:
        start_http_server(config.metrics_port, registry=metrics.registry)
        logger.info("Serving metrics on :%d", config.metrics_port)

    k8s_client = K8sClient(config.kubeconfig)
    resolver = FilteringResolver(NetResolver(timeout=config.resolve_timeout), ip_filter, metrics)
    reconciler = NetworkPolicyReconciler(k8s_client, resolver, metrics, resolve_timeout=config.resolve_timeout)

    provider = None
    if config.auto_detect_pod_cidr:
        provider = PodCIDRProvider(
            k8s_client, ip_filter, interval=timedelta(seconds=config.pod_cidr_refresh_interval)
        )

    registry = PolicyOperator(reconciler, pod_cidr_provider=provider).register(kopf.OperatorRegistry())
    liveness_endpoint = f"http://0.0.0.0:{config.health_port}/healthz" if config.health_port else None

    logger.info("Starting operator")
    try:
        # kopf installs its own SIGINT/SIGTERM handling
        await kopf.operator(
            registry=registry,
            standalone=True,
            clusterwide=namespace is None,
            namespaces=[namespace] if namespace else [],
            liveness_endpoint=liveness_endpoint,
        )
    finally:
        await k8s_client.close()


async def resolve_async(config: OperatorConfig, hostname: str, output: str) -> None:
    """Resolve a hostname and show which addresses pass the IP filter."""
    try:
        ip_filter = IPFilter(config.ip_allowlist, config.ip_denylist)
    except FilterConfigurationError as e:
        console.print(f"Error: {e}")
        return

    try:
        addresses = await NetResolver(timeout=config.resolve_timeout).resolve(hostname)
    except ResolutionError as e:
        console.print(f"Error: {e}")
        return

    verdicts = [(cidr, ip_filter.is_allowed(cidr)) for cidr in addresses]

    if output == "json":
        print(json.dumps({"hostname": hostname, "addresses": [{"cidr": c, "allowed": a} for c, a in verdicts]}, indent=2))
        return

    if not verdicts:
        console.print(f"{hostname} did not resolve to any address")
        return

    table = Table(title=hostname)
    table.add_column("ADDRESS")
    table.add_column("VERDICT")
    for cidr, allowed in verdicts:
        table.add_row(cidr, "[green]allowed[/green]" if allowed else "[red]filtered[/red]")

    console.print(table)


async def list_policies_async(config: OperatorConfig, namespace: str | None, output: str) -> None:
    """List hostname-based NetworkPolicies and their resolution status."""
    k8s_client = K8sClient(config.kubeconfig)
    try:
        policies = await k8s_client.list_source_policies(namespace)
    except (AugPolicyError, ConnectionError) as e:
        console.print(f"Error: {e}")
        return
    finally:
        await k8s_client.close()

    if output == "json":
        _output_json(policies)
    else:
        _output_table(policies)


def _ready_columns(policy: SourcePolicy) -> tuple[str, str]:
    ready = policy.status.get_condition(CONDITION_READY)
    if ready is None:
        return "Unknown", ""
    return ready.status.value, ready.reason


def _output_table(policies: list[SourcePolicy]) -> None:
    """Output policies as a table."""
    if not policies:
        console.print("No policies found")
        return

    table = Table()
    table.add_column("NAMESPACE")
    table.add_column("NAME")
    table.add_column("READY")
    table.add_column("REASON")
    table.add_column("HOSTNAMES")
    table.add_column("RESOLVED")

    for policy in policies:
        ready, reason = _ready_columns(policy)
        table.add_row(
            policy.namespace,
            policy.name,
            ready,
            reason,
            str(len(policy.spec.hostnames())),
            str(len(policy.status.resolved_addresses)),
        )

    console.print(table)


def _output_json(policies: list[SourcePolicy]) -> None:
    """Output policies as JSON."""
    policy_data = []
    for policy in policies:
        ready, reason = _ready_columns(policy)
        policy_data.append(
            {
                "name": policy.name,
                "namespace": policy.namespace,
                "ready": ready,
                "reason": reason,
                "hostnames": policy.spec.hostnames(),
                "resolvedAddresses": policy.status.resolved_addresses,
            }
        )

    print(json.dumps(policy_data, indent=2))
