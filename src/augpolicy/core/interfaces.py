"""Core interfaces for augpolicy."""

from abc import ABC, abstractmethod

from .models import DerivedPolicy, Node, PolicyStatus, SourcePolicy


class AddressResolver(ABC):
    """Interface for hostname resolvers."""

    @abstractmethod
    async def resolve(self, hostname: str) -> list[str]:
        """
        Resolve a hostname to addresses in CIDR notation.

        IPv4 addresses are returned as /32 and IPv6 addresses as /128.

        Args:
            hostname: DNS name to resolve

        Returns:
            List of CIDR strings

        Raises:
            ResolutionError: If the hostname cannot be resolved.
        """
        pass


class AddressFilter(ABC):
    """Interface for deciding whether a resolved address may be used."""

    @abstractmethod
    def is_allowed(self, cidr: str) -> bool:
        """Check if an address in CIDR notation is permitted."""
        pass


class PolicyStore(ABC):
    """Interface for reading and writing policy objects in the cluster."""

    @abstractmethod
    async def get_source_policy(self, namespace: str, name: str) -> SourcePolicy:
        """
        Get a hostname-based source policy.

        Raises:
            NotFoundError: If the policy does not exist.
        """
        pass

    @abstractmethod
    async def list_source_policies(self, namespace: str | None = None) -> list[SourcePolicy]:
        """List source policies, in one namespace or across all namespaces."""
        pass

    @abstractmethod
    async def get_derived_policy(self, namespace: str, name: str) -> DerivedPolicy | None:
        """Get the derived NetworkPolicy, or None if it does not exist."""
        pass

    @abstractmethod
    async def create_derived_policy(self, policy: DerivedPolicy) -> None:
        """Create a derived NetworkPolicy."""
        pass

    @abstractmethod
    async def update_derived_policy(self, policy: DerivedPolicy) -> None:
        """Replace the spec of an existing derived NetworkPolicy."""
        pass

    @abstractmethod
    async def update_source_status(self, policy: SourcePolicy, status: PolicyStatus) -> None:
        """Replace the status of a source policy."""
        pass


class NodeInventory(ABC):
    """Interface for listing cluster nodes."""

    @abstractmethod
    async def list_nodes(self) -> list[Node]:
        """
        List all nodes in the cluster.

        Raises:
            InventoryListError: If the nodes cannot be listed.
        """
        pass
