"""Hostname resolution and address filtering."""

from augpolicy.dns.filter import FilteringResolver, IPFilter
from augpolicy.dns.podcidr import PodCIDRProvider
from augpolicy.dns.resolver import NetResolver, StaticResolver, to_cidr

__all__ = ["FilteringResolver", "IPFilter", "NetResolver", "PodCIDRProvider", "StaticResolver", "to_cidr"]
