"""Core services for augpolicy."""

from augpolicy.core.services.reconciler import NetworkPolicyReconciler, ReconcileResult, requeue_interval
from augpolicy.core.services.synthesizer import PolicySynthesizer

__all__ = ["NetworkPolicyReconciler", "PolicySynthesizer", "ReconcileResult", "requeue_interval"]
