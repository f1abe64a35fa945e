"""
Inference Endpoint Reconciler - Reconciler plugin for InferenceEndpoint resources.

Each resource's spec is an endpoint manifest. The reconciler reads the live
endpoint, decides between create, update and no-op, and publishes the
normalized snapshot (with observed status) as the resource's outputs.
Resources are reconciled one at a time.
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional

from client import HuggingFaceEndpointsClient
from config import ReconcilerConfig, get_config
from endpoint_spec import endpoint_from_spec, endpoint_to_spec
from endpoints import Endpoint, Scaling
from engine import EndpointEngine
from errors import (
    ConfigurationError,
    EndpointError,
    MalformedResponseError,
    NotFoundError,
    ValidationError,
)
from plugins.reconcilers.base import (
    ReconcilerContext,
    ReconcilerPlugin,
    ReconcileResult,
    ResourceStatus,
)

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "InferenceEndpoint"

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_UNCHANGED = "unchanged"
ACTION_DELETED = "deleted"

# Errors that will not go away by trying again with the same spec
PERMANENT_ERRORS = (ValidationError, ConfigurationError, MalformedResponseError)


def determine_trigger_reason(resource: Dict[str, Any]) -> str:
    """Determine why this reconciliation was triggered."""
    if resource.get("status") == ResourceStatus.DELETING.value:
        return "deletion"
    elif resource.get("last_reconcile_time") is None:
        return "initial"
    elif resource.get("generation", 0) > resource.get("observed_generation", 0):
        return "spec_change"
    elif resource.get("status") == ResourceStatus.FAILED.value:
        return "retry"
    else:
        return "scheduled"


def with_remote_defaults(desired: Endpoint, current: Endpoint) -> Endpoint:
    """
    Fill optionals left unset in desired with the values the remote chose.

    An omitted optional means "remote default applies", so the live value
    is what desired effectively asks for when comparing snapshots.
    """
    scaling = desired.compute.scaling
    if scaling.scale_to_zero_timeout is None:
        scaling = Scaling(
            min_replica=scaling.min_replica,
            max_replica=scaling.max_replica,
            scale_to_zero_timeout=current.compute.scaling.scale_to_zero_timeout,
        )

    model = desired.model
    if model.revision is None:
        model = replace(model, revision=current.model.revision)
    if model.task is None:
        model = replace(model, task=current.model.task)

    account_id = desired.account_id
    if account_id is None:
        account_id = current.account_id

    return replace(
        desired,
        account_id=account_id,
        compute=replace(desired.compute, scaling=scaling),
        model=model,
    )


class EndpointReconciler(ReconcilerPlugin):
    """
    Reconciles InferenceEndpoint resources against Hugging Face Inference
    Endpoints.
    """

    def __init__(
        self,
        engine: Optional[EndpointEngine] = None,
        config: Optional[ReconcilerConfig] = None,
    ):
        self._engine = engine
        self._config = config
        self._stopping = False

    @property
    def name(self) -> str:
        return "huggingface_endpoints"

    @property
    def resource_types(self) -> List[str]:
        return [RESOURCE_TYPE]

    @property
    def config(self) -> ReconcilerConfig:
        if self._config is None:
            self._config = get_config().reconciler
        return self._config

    @property
    def engine(self) -> EndpointEngine:
        """
        The engine, built from configuration on first use.

        Raises:
            ConfigurationError: If the client configuration is incomplete.
        """
        if self._engine is None:
            cfg = get_config()
            client = HuggingFaceEndpointsClient.from_config(cfg.client)
            self._engine = EndpointEngine(client, config=cfg.engine)
        return self._engine

    async def start(self, ctx: ReconcilerContext) -> None:
        logger.info(
            f"Starting endpoint reconciler (interval={self.config.reconcile_interval}s, "
            f"batch={self.config.batch_limit})"
        )
        self._stopping = False

        while not ctx.shutdown_event.is_set() and not self._stopping:
            try:
                resources = await ctx.get_resources_needing_reconciliation(
                    self.resource_types, limit=self.config.batch_limit
                )
                if resources:
                    logger.info(
                        f"Found {len(resources)} endpoints needing reconciliation"
                    )
                for resource in resources:
                    if ctx.shutdown_event.is_set() or self._stopping:
                        break
                    await self.reconcile_and_record(resource, ctx)
            except Exception as e:
                logger.error(f"Error in endpoint reconciliation loop: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    ctx.shutdown_event.wait(), timeout=self.config.reconcile_interval
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Endpoint reconciler loop exited")

    async def stop(self) -> None:
        logger.info("Stopping endpoint reconciler")
        self._stopping = True

    async def reconcile_and_record(
        self, resource: Dict[str, Any], ctx: ReconcilerContext
    ) -> ReconcileResult:
        """Reconcile one resource and record the attempt in history."""
        start_time = time.monotonic()
        trigger_reason = determine_trigger_reason(resource)

        result = await self.reconcile(resource, ctx)

        # Only a scheduled pass that had to update means the live endpoint drifted
        drift_detected = trigger_reason == "scheduled" and result.action == ACTION_UPDATED
        if drift_detected:
            logger.info(f"Drift detected for endpoint '{resource['name']}'")

        await ctx.record_reconciliation(
            resource_id=resource["id"],
            result=result,
            duration_seconds=time.monotonic() - start_time,
            trigger_reason=trigger_reason,
            drift_detected=drift_detected,
        )
        return result

    async def reconcile(
        self, resource: Dict[str, Any], ctx: ReconcilerContext
    ) -> ReconcileResult:
        if resource.get("status") == ResourceStatus.DELETING.value:
            return await self._reconcile_deletion(resource, ctx)

        resource_id = resource["id"]
        name = resource["name"]

        await ctx.update_status(
            resource_id, ResourceStatus.RECONCILING.value, message="Starting reconciliation"
        )

        try:
            desired = endpoint_from_spec(resource.get("spec") or {}, name=name)
            engine = self.engine

            try:
                current = await engine.refresh(name)
            except NotFoundError:
                current = None

            if current is None:
                endpoint = await engine.create_or_converge(desired)
                action = ACTION_CREATED
            elif with_remote_defaults(desired, current) == current:
                endpoint = current
                action = ACTION_UNCHANGED
            else:
                endpoint = await engine.apply_update(name, desired)
                action = ACTION_UPDATED

        except EndpointError as e:
            return await self._fail(resource, ctx, e)

        outputs = endpoint_to_spec(endpoint, include_status=True, redact_secrets=True)
        await ctx.update_outputs(resource_id, outputs)

        message = f"Endpoint {action} (state: {endpoint.status.state})"
        await ctx.update_status(
            resource_id,
            ResourceStatus.READY.value,
            message=message,
            observed_generation=resource.get("generation"),
        )
        logger.info(f"Reconciled endpoint '{name}': {message}")

        return ReconcileResult(
            success=True, message=message, action=action, outputs=outputs
        )

    async def _reconcile_deletion(
        self, resource: Dict[str, Any], ctx: ReconcilerContext
    ) -> ReconcileResult:
        resource_id = resource["id"]
        name = resource["name"]

        try:
            await self.engine.destroy(name)
        except EndpointError as e:
            message = f"Failed to delete endpoint: {e.message}"
            logger.error(f"Failed to delete endpoint '{name}': {e.message}")
            # Stay in deleting so the next pass retries the delete
            await ctx.update_status(
                resource_id, ResourceStatus.DELETING.value, message=message
            )
            return ReconcileResult(
                success=False,
                message=message,
                requeue_after=self.config.requeue_after,
            )

        await ctx.remove_finalizer(resource_id, self.name)
        remaining = await ctx.get_finalizers(resource_id)
        if not remaining:
            await ctx.hard_delete_resource(resource_id)
            logger.info(f"Destroyed and deleted resource {name}")
        else:
            logger.info(f"Finalizer removed for {name}, waiting on: {remaining}")

        return ReconcileResult(
            success=True, message="Endpoint deleted", action=ACTION_DELETED
        )

    async def _fail(
        self, resource: Dict[str, Any], ctx: ReconcilerContext, error: EndpointError
    ) -> ReconcileResult:
        message = error.message
        logger.error(f"Failed to reconcile endpoint '{resource['name']}': {message}")

        await ctx.update_status(
            resource["id"], ResourceStatus.FAILED.value, message=message
        )

        requeue_after = None
        if not isinstance(error, PERMANENT_ERRORS):
            requeue_after = self.config.requeue_after

        return ReconcileResult(
            success=False, message=message, requeue_after=requeue_after
        )
