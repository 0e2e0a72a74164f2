"""Hostname resolvers."""

import asyncio
import ipaddress
import socket

from augpolicy.core.errors import ResolutionError
from augpolicy.core.interfaces import AddressResolver

DEFAULT_TIMEOUT = 10.0


def to_cidr(address: str) -> str:
    """
    Convert an IP address to CIDR notation.

    Returns:
        "<ip>/32" for IPv4, "<ip>/128" for IPv6, or "" if the address is not an IP.
    """
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return ""
    return f"{ip}/{ip.max_prefixlen}"


class NetResolver(AddressResolver):
    """Resolve hostnames using the system resolver."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    async def resolve(self, hostname: str) -> list[str]:
        """Resolve a hostname to a sorted, deduplicated list of CIDR strings."""
        loop = asyncio.get_running_loop()

        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ResolutionError(hostname, f"timed out after {self.timeout:g}s") from e
        except (socket.gaierror, OSError, UnicodeError) as e:
            raise ResolutionError(hostname, e) from e

        cidrs = set()
        for _family, _type, _proto, _canonname, sockaddr in infos:
            # Scoped IPv6 answers carry a zone suffix that is not valid in a CIDR
            cidr = to_cidr(str(sockaddr[0]).split("%", 1)[0])
            if cidr:
                cidrs.add(cidr)

        return sorted(cidrs)


class StaticResolver(AddressResolver):
    """
    Resolver returning pre-configured answers.

    Hostnames mapped to an exception raise it wrapped in a ResolutionError;
    unknown hostnames resolve to an empty list.
    """

    def __init__(
        self,
        results: dict[str, list[str]] | None = None,
        errors: dict[str, Exception | str] | None = None,
    ):
        self.results = dict(results or {})
        self.errors = dict(errors or {})
        self.calls: list[str] = []

    async def resolve(self, hostname: str) -> list[str]:
        self.calls.append(hostname)
        if hostname in self.errors:
            raise ResolutionError(hostname, self.errors[hostname])
        return list(self.results.get(hostname, []))
