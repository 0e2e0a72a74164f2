"""Kubernetes client implementation."""

import asyncio
import copy
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from augpolicy.core.errors import ApplyError, InvalidPolicyError, InventoryListError, NotFoundError
from augpolicy.core.interfaces import NodeInventory, PolicyStore
from augpolicy.core.models import (
    SOURCE_API_VERSION,
    SOURCE_GROUP,
    SOURCE_KIND,
    SOURCE_PLURAL,
    SOURCE_VERSION,
    DerivedPolicy,
    Node,
    PolicyStatus,
    SourcePolicy,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Failures below the API layer: refused connections, timeouts, exhausted retries
TRANSPORT_ERRORS = (HTTPError, OSError)


class K8sClient(PolicyStore, NodeInventory):
    """Kubernetes client implementation."""

    def __init__(self, kubeconfig_path: str | None = None):
        """Initialize Kubernetes client."""
        self.kubeconfig_path = kubeconfig_path
        self._api_client: client.ApiClient | None = None
        self._core_v1: client.CoreV1Api | None = None
        self._networking_v1: client.NetworkingV1Api | None = None
        self._custom_objects: client.CustomObjectsApi | None = None

    async def _ensure_connected(self) -> None:
        """Ensure client is connected."""
        if self._api_client is None:
            try:
                if self.kubeconfig_path:
                    config.load_kube_config(config_file=self.kubeconfig_path)
                else:
                    # Try in-cluster config first, then default kubeconfig
                    try:
                        config.load_incluster_config()
                    except config.ConfigException:
                        config.load_kube_config()

                self._api_client = client.ApiClient()
                self._core_v1 = client.CoreV1Api(self._api_client)
                self._networking_v1 = client.NetworkingV1Api(self._api_client)
                self._custom_objects = client.CustomObjectsApi(self._api_client)

            except Exception as e:
                raise ConnectionError(f"Failed to connect to Kubernetes cluster: {e}") from e

    def is_connected(self) -> bool:
        """Check if client is connected to cluster."""
        return self._api_client is not None

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking API call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert an API model to its camelCase manifest form."""
        assert self._api_client is not None
        return self._api_client.sanitize_for_serialization(obj)

    async def get_source_policy(self, namespace: str, name: str) -> SourcePolicy:
        """Get a hostname-based NetworkPolicy."""
        try:
            await self._ensure_connected()
            assert self._custom_objects is not None
            resource = await self._run(
                self._custom_objects.get_namespaced_custom_object,
                group=SOURCE_GROUP,
                version=SOURCE_VERSION,
                namespace=namespace,
                plural=SOURCE_PLURAL,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(SOURCE_KIND, namespace, name) from e
            raise ApplyError(f"Failed to get NetworkPolicy {namespace}/{name}: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise ApplyError(f"Failed to get NetworkPolicy {namespace}/{name}: {e}") from e

        return SourcePolicy.from_manifest(resource)

    async def list_source_policies(self, namespace: str | None = None) -> list[SourcePolicy]:
        """List hostname-based NetworkPolicies. Malformed items are logged and skipped."""
        try:
            await self._ensure_connected()
            assert self._custom_objects is not None
            if namespace:
                response = await self._run(
                    self._custom_objects.list_namespaced_custom_object,
                    group=SOURCE_GROUP,
                    version=SOURCE_VERSION,
                    namespace=namespace,
                    plural=SOURCE_PLURAL,
                )
            else:
                response = await self._run(
                    self._custom_objects.list_cluster_custom_object,
                    group=SOURCE_GROUP,
                    version=SOURCE_VERSION,
                    plural=SOURCE_PLURAL,
                )
        except ApiException as e:
            if e.status == 404:
                # CRD not installed
                return []
            raise ApplyError(f"Failed to list NetworkPolicies: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise ApplyError(f"Failed to list NetworkPolicies: {e}") from e

        items = response.get("items", [])
        if not isinstance(items, list):
            return []

        policies = []
        for item in items:
            try:
                policies.append(SourcePolicy.from_manifest(item))
            except InvalidPolicyError as e:
                logger.warning("Skipping %s", e)
        return policies

    async def get_derived_policy(self, namespace: str, name: str) -> DerivedPolicy | None:
        """Get a standard NetworkPolicy."""
        try:
            await self._ensure_connected()
            assert self._networking_v1 is not None
            response = await self._run(
                self._networking_v1.read_namespaced_network_policy,
                name=name,
                namespace=namespace,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise ApplyError(f"Failed to get existing NetworkPolicy {namespace}/{name}: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise ApplyError(f"Failed to get existing NetworkPolicy {namespace}/{name}: {e}") from e

        return DerivedPolicy.from_manifest(self._to_dict(response))

    async def create_derived_policy(self, policy: DerivedPolicy) -> None:
        """Create a standard NetworkPolicy."""
        try:
            await self._ensure_connected()
            assert self._networking_v1 is not None
            await self._run(
                self._networking_v1.create_namespaced_network_policy,
                namespace=policy.namespace,
                body=policy.to_manifest(),
            )
        except (ApiException, *TRANSPORT_ERRORS) as e:
            raise ApplyError(f"Failed to create NetworkPolicy {policy.get_full_name()}: {e}") from e

    async def update_derived_policy(self, policy: DerivedPolicy) -> None:
        """Replace the spec of a standard NetworkPolicy, keeping its stored metadata."""
        try:
            await self._ensure_connected()
            assert self._networking_v1 is not None
            await self._run(
                self._networking_v1.replace_namespaced_network_policy,
                name=policy.name,
                namespace=policy.namespace,
                body=policy.to_manifest(),
            )
        except (ApiException, *TRANSPORT_ERRORS) as e:
            raise ApplyError(f"Failed to update NetworkPolicy {policy.get_full_name()}: {e}") from e

    async def update_source_status(self, policy: SourcePolicy, status: PolicyStatus) -> None:
        """Replace the status subresource of a hostname-based NetworkPolicy."""
        # Full replace so that hostnames dropped from resolvedAddresses disappear
        body = copy.deepcopy(policy.raw_manifest) if policy.raw_manifest else {
            "apiVersion": SOURCE_API_VERSION,
            "kind": SOURCE_KIND,
            "metadata": {"name": policy.name, "namespace": policy.namespace},
        }
        if policy.resource_version:
            body.setdefault("metadata", {})["resourceVersion"] = policy.resource_version
        body["status"] = status.to_dict()

        try:
            await self._ensure_connected()
            assert self._custom_objects is not None
            await self._run(
                self._custom_objects.replace_namespaced_custom_object_status,
                group=SOURCE_GROUP,
                version=SOURCE_VERSION,
                namespace=policy.namespace,
                plural=SOURCE_PLURAL,
                name=policy.name,
                body=body,
            )
        except (ApiException, *TRANSPORT_ERRORS) as e:
            raise ApplyError(f"Failed to update status of {policy.get_full_name()}: {e}") from e

    async def list_nodes(self) -> list[Node]:
        """List cluster nodes with their pod CIDRs."""
        try:
            await self._ensure_connected()
            assert self._core_v1 is not None
            response = await self._run(self._core_v1.list_node)
        except (ApiException, *TRANSPORT_ERRORS) as e:
            raise InventoryListError(f"Failed to list nodes: {e}") from e

        return [Node.from_dict(self._to_dict(node)) for node in response.items]

    async def close(self) -> None:
        """Close the client connection."""
        if self._api_client and hasattr(self._api_client, 'close'):
            if asyncio.iscoroutinefunction(self._api_client.close):
                await self._api_client.close()
            else:
                self._api_client.close()
        self._api_client = None
        self._core_v1 = None
        self._networking_v1 = None
        self._custom_objects = None
