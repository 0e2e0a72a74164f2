"""augpolicy - Hostname-based egress NetworkPolicies for Kubernetes."""

from augpolicy.cli import cli

__version__ = "0.1.0"
__all__ = ["cli"]
