"""
Reconciler Plugin Base - Contract between the operator and its reconcilers.

The operator discovers reconcilers through the 'no8s.reconcilers' entry point
group, hands each one a ReconcilerContext and lets it run its own loop. The
context is the reconciler's only window onto persisted resources: it reads
desired specs and writes back status, outputs and history.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ResourceStatus(Enum):
    """Lifecycle status the operator stores for each resource."""

    PENDING = "pending"
    RECONCILING = "reconciling"
    READY = "ready"
    FAILED = "failed"
    DELETING = "deleting"


@dataclass
class ReconcileResult:
    """Outcome of reconciling one resource."""

    success: bool = False
    message: str = ""
    # Seconds until the operator should try again; None means do not requeue
    requeue_after: Optional[int] = None
    # What was done to the managed object (created, updated, unchanged, deleted)
    action: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)


class ReconcilerContext:
    """
    Operator services available to a running reconciler.

    Every call is forwarded to `store`, the operator's persistence layer.
    Only the coroutines used below are required of it, so tests and
    alternative hosts can pass any object that provides them.
    """

    def __init__(self, store: Any, shutdown_event: asyncio.Event):
        self.store = store
        self.shutdown_event = shutdown_event

    async def get_resources_needing_reconciliation(
        self,
        resource_type_names: List[str],
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """
        Fetch the next batch of resources that are out of date.

        Args:
            resource_type_names: Only resources of these types are returned.
            limit: Batch size.

        Returns:
            Resource dicts with at least id, name, spec, status and generation.
        """
        return await self.store.get_resources_needing_reconciliation_by_type(
            resource_type_names=resource_type_names,
            limit=limit,
        )

    async def update_status(
        self,
        resource_id: int,
        status: str,
        message: str = "",
        observed_generation: Optional[int] = None,
    ) -> None:
        """
        Set a resource's status.

        Args:
            resource_id: The resource ID.
            status: A ResourceStatus value; anything else raises ValueError.
            message: Shown to users alongside the status.
            observed_generation: Generation that was just applied, if any.
        """
        await self.store.update_resource_status(
            resource_id=resource_id,
            status=ResourceStatus(status),
            message=message,
            observed_generation=observed_generation,
        )

    async def update_outputs(self, resource_id: int, outputs: Dict[str, Any]) -> None:
        """Replace a resource's published outputs."""
        await self.store.update_resource_outputs(resource_id, outputs)

    async def record_reconciliation(
        self,
        resource_id: int,
        result: ReconcileResult,
        duration_seconds: Optional[float] = None,
        trigger_reason: Optional[str] = None,
        drift_detected: bool = False,
    ) -> None:
        """
        Append one attempt to the resource's reconciliation history.

        Failed attempts store result.message as the error message.
        """
        await self.store.record_reconciliation(
            resource_id=resource_id,
            success=result.success,
            phase="completed" if result.success else "failed",
            error_message=result.message if not result.success else None,
            duration_seconds=duration_seconds,
            trigger_reason=trigger_reason,
            drift_detected=drift_detected,
        )

    async def remove_finalizer(self, resource_id: int, finalizer: str) -> None:
        await self.store.remove_finalizer(resource_id, finalizer)

    async def get_finalizers(self, resource_id: int) -> List[str]:
        return await self.store.get_finalizers(resource_id)

    async def hard_delete_resource(self, resource_id: int) -> bool:
        """
        Remove a resource for good once it is marked deleted and unblocked.

        Returns:
            True if the store deleted it.
        """
        return await self.store.hard_delete_resource(resource_id)


class ReconcilerPlugin(ABC):
    """
    A reconciler owns one or more resource types.

    The operator calls start() once and expects it to loop until
    ctx.shutdown_event is set or stop() is called. reconcile() handles a
    single resource and reports through the context.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin name; also the finalizer this reconciler places on resources."""

    @property
    @abstractmethod
    def resource_types(self) -> List[str]:
        """Names of the resource types this reconciler handles."""

    @abstractmethod
    async def start(self, ctx: ReconcilerContext) -> None:
        """Run the reconciliation loop until shutdown."""

    @abstractmethod
    async def reconcile(
        self, resource: Dict[str, Any], ctx: ReconcilerContext
    ) -> ReconcileResult:
        """
        Bring one resource's managed object in line with its spec.

        Args:
            resource: The resource dict from the store.
            ctx: Context for status, output and finalizer updates.

        Returns:
            The outcome; failures are reported here rather than raised.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Ask a running loop to exit after the current resource."""
