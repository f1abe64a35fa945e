"""
Reconciler plugins package.

Reconciler plugins own the reconciliation logic for one or more resource types.
They are discovered via Python entry points (group: 'no8s.reconcilers').
"""

from plugins.reconcilers.base import (
    ReconcilerPlugin,
    ReconcilerContext,
    ReconcileResult,
    ResourceStatus,
)
from plugins.reconcilers.endpoints import EndpointReconciler

__all__ = [
    "ReconcilerPlugin",
    "ReconcilerContext",
    "ReconcileResult",
    "ResourceStatus",
    "EndpointReconciler",
]
