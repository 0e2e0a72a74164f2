"""IP filtering of resolved addresses and DNS change detection."""

import ipaddress
import logging
import threading
from collections.abc import Iterable

from augpolicy.core.errors import FilterConfigurationError
from augpolicy.core.interfaces import AddressFilter, AddressResolver
from augpolicy.metrics import Metrics, default_metrics
from augpolicy.utils.locks import ReadWriteLock

logger = logging.getLogger(__name__)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_cidrs(cidrs: Iterable[str], list_name: str) -> list[Network]:
    """
    Parse CIDR strings into networks.

    Host bits are allowed and masked off, so "10.0.0.1/8" means 10.0.0.0/8.

    Raises:
        FilterConfigurationError: If any entry is not a valid CIDR.
    """
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
        except ValueError as e:
            raise FilterConfigurationError(f"invalid {list_name} CIDR {cidr!r}: {e}") from e
    return networks


class IPFilter(AddressFilter):
    """
    Filter IP addresses against an allowlist and static and dynamic denylists.

    Rules, in order:
    - Unparseable addresses are denied (fail-closed).
    - Addresses in the static or dynamic denylist are denied.
    - If the allowlist is non-empty, only addresses in it are allowed.
    - Otherwise the address is allowed.

    The dynamic denylist can be replaced at runtime as a whole; it is
    read under a shared lock and swapped under an exclusive one.
    """

    def __init__(self, allowlist: Iterable[str] = (), denylist: Iterable[str] = ()):
        self._allowlist = parse_cidrs(allowlist, "allowlist")
        self._denylist = parse_cidrs(denylist, "denylist")
        self._dynamic_denylist: list[Network] = []
        self._lock = ReadWriteLock()

    @property
    def allowlist(self) -> list[str]:
        return [str(n) for n in self._allowlist]

    @property
    def denylist(self) -> list[str]:
        return [str(n) for n in self._denylist]

    @property
    def dynamic_denylist(self) -> list[str]:
        with self._lock.read_locked():
            return [str(n) for n in self._dynamic_denylist]

    def is_allowed(self, cidr: str) -> bool:
        """Check if an address in CIDR (or plain IP) notation passes the filter."""
        try:
            ip = ipaddress.ip_interface(cidr.strip()).ip
        except (ValueError, AttributeError):
            return False

        if any(ip in network for network in self._denylist):
            return False

        with self._lock.read_locked():
            if any(ip in network for network in self._dynamic_denylist):
                return False

        if self._allowlist:
            return any(ip in network for network in self._allowlist)

        return True

    def set_dynamic_denylist(self, cidrs: Iterable[str]) -> None:
        """
        Replace the dynamic denylist.

        The new list replaces the previous one entirely; an empty list
        clears it. If any entry is invalid the previous list is kept.

        Raises:
            FilterConfigurationError: If any entry is not a valid CIDR.
        """
        networks = parse_cidrs(cidrs, "dynamic denylist")
        with self._lock.write_locked():
            self._dynamic_denylist = networks


def _normalize(cidrs: Iterable[str]) -> list[str]:
    return sorted(set(cidrs))


class FilteringResolver(AddressResolver):
    """
    Resolver that filters results through an AddressFilter.

    It also remembers the last filtered result per hostname and counts
    changes between consecutive resolutions, which can indicate DNS
    rebinding. The first resolution of a hostname is never a change.
    """

    def __init__(
        self,
        inner: AddressResolver,
        address_filter: AddressFilter,
        metrics: Metrics | None = None,
    ):
        self.inner = inner
        self.filter = address_filter
        self.metrics = metrics or default_metrics()
        self._lock = threading.Lock()
        self._last_seen: dict[str, list[str]] = {}

    async def resolve(self, hostname: str) -> list[str]:
        cidrs = await self.inner.resolve(hostname)

        allowed = []
        for cidr in cidrs:
            if self.filter.is_allowed(cidr):
                allowed.append(cidr)
            else:
                logger.info("Filtered resolved IP %s for hostname %s", cidr, hostname)
                self.metrics.ip_filtered.labels(hostname=hostname).inc()

        self._record(hostname, allowed)
        return allowed

    def _record(self, hostname: str, allowed: list[str]) -> None:
        current = _normalize(allowed)
        with self._lock:
            previous = self._last_seen.get(hostname)
            if previous is not None and previous != current:
                logger.info(
                    "DNS resolution change detected for %s: previous=%s current=%s",
                    hostname,
                    previous,
                    current,
                )
                self.metrics.dns_resolution_changes.labels(hostname=hostname).inc()
            self._last_seen[hostname] = current

    def last_seen(self, hostname: str) -> list[str] | None:
        """Get the last filtered result recorded for a hostname."""
        with self._lock:
            previous = self._last_seen.get(hostname)
            return list(previous) if previous is not None else None
