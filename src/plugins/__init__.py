"""
Plugin system for the endpoint reconciler.

This package provides the reconciler plugin contract and the Inference
Endpoints reconciler that implements it.
"""

from plugins.reconcilers import (
    EndpointReconciler,
    ReconcilerPlugin,
    ReconcilerContext,
    ReconcileResult,
    ResourceStatus,
)

__all__ = [
    "EndpointReconciler",
    "ReconcilerPlugin",
    "ReconcilerContext",
    "ReconcileResult",
    "ResourceStatus",
]
