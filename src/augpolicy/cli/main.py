"""Main CLI entry point."""

import asyncio
from typing import Any

import click

from augpolicy.cli.commands import list_policies_async, resolve_async, run_operator_async
from augpolicy.utils import OperatorConfig, load_config, setup_logging


def _split(values: tuple[str, ...]) -> list[str] | None:
    """Flatten repeatable, comma-separated CIDR options. None when not given."""
    if not values:
        return None
    return [item.strip() for value in values for item in value.split(",") if item.strip()]


def _load(obj: dict[str, Any], **overrides: Any) -> OperatorConfig:
    """Load configuration with the group and command options applied, then set up logging."""
    try:
        config = load_config(obj["config_path"], {**obj["overrides"], **overrides})
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    setup_logging(config.log_level)
    return config


@click.group()
@click.version_option()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="YAML configuration file")
@click.option("--kubeconfig", help="Path to kubeconfig (in-cluster config is tried first when omitted)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, kubeconfig: str | None, log_level: str | None) -> None:
    """augpolicy - Hostname-based egress NetworkPolicies for Kubernetes."""
    ctx.obj = {"config_path": config_path, "overrides": {"kubeconfig": kubeconfig, "log_level": log_level}}


@cli.command("run")
@click.option("--ip-denylist", multiple=True, help="CIDRs to block from resolved IPs (comma-separated, repeatable)")
@click.option("--ip-allowlist", multiple=True, help="CIDRs to allow; when set only matching IPs pass (unless denied)")
@click.option("--auto-detect-pod-cidr/--no-auto-detect-pod-cidr", default=None, help="Deny pod CIDRs read from nodes")
@click.option("--metrics-port", type=int, help="Port of the Prometheus endpoint (0 disables it)")
@click.option("--health-port", type=int, help="Port of the /healthz endpoint (0 disables it)")
@click.option("--namespace", "-n", help="Only reconcile policies in this namespace")
@click.pass_obj
def run(
    obj: dict[str, Any],
    ip_denylist: tuple[str, ...],
    ip_allowlist: tuple[str, ...],
    auto_detect_pod_cidr: bool | None,
    metrics_port: int | None,
    health_port: int | None,
    namespace: str | None,
) -> None:
    """Run the operator."""
    config = _load(
        obj,
        ip_denylist=_split(ip_denylist),
        ip_allowlist=_split(ip_allowlist),
        auto_detect_pod_cidr=auto_detect_pod_cidr,
        metrics_port=metrics_port,
        health_port=health_port,
    )
    asyncio.run(run_operator_async(config, namespace))


@cli.command("resolve")
@click.argument("hostname")
@click.option("--ip-denylist", multiple=True, help="CIDRs to block (comma-separated, repeatable)")
@click.option("--ip-allowlist", multiple=True, help="CIDRs to allow (comma-separated, repeatable)")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.pass_obj
def resolve(
    obj: dict[str, Any],
    hostname: str,
    ip_denylist: tuple[str, ...],
    ip_allowlist: tuple[str, ...],
    output: str,
) -> None:
    """Resolve a hostname and show which addresses pass the IP filter."""
    config = _load(obj, ip_denylist=_split(ip_denylist), ip_allowlist=_split(ip_allowlist))
    asyncio.run(resolve_async(config, hostname, output))


@cli.command("list")
@click.option("--namespace", "-n", help="Kubernetes namespace to scan (all namespaces if not specified)")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.pass_obj
def list_policies(obj: dict[str, Any], namespace: str | None, output: str) -> None:
    """List hostname-based NetworkPolicies and their resolution status."""
    asyncio.run(list_policies_async(_load(obj), namespace, output))


if __name__ == "__main__":
    cli()
