"""Core domain models and interfaces for augpolicy."""

from augpolicy.core.interfaces import AddressFilter, AddressResolver, NodeInventory, PolicyStore
from augpolicy.core.models import DerivedPolicy, PolicyStatus, SourcePolicy

__all__ = ["AddressFilter", "AddressResolver", "DerivedPolicy", "NodeInventory", "PolicyStatus", "PolicyStore", "SourcePolicy"]
