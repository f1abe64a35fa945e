"""
Reconciliation Engine - Create-or-converge, refresh, update and destroy.

Each operation is a single reconciliation unit moving through
Planned -> Resolving -> (Creating | Updating) -> Normalizing -> Applied,
or Failed from any phase. Remote calls are sequential and awaited one at a
time; the engine holds no mutable state between calls, and every update is a
full replace of the sections it sends. The list-then-create sequence is not
atomic: a concurrent creator of the same name makes our create fail remotely,
and that failure is surfaced unless retry_conflict_as_update is enabled.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from client import EndpointsClient
from config import EngineConfig
from endpoints import Endpoint, validate_endpoint
from errors import (
    ConflictError,
    EndpointError,
    NotFoundError,
    RemoteOperationError,
    RemoteUnavailableError,
    ValidationError,
)
from resolver import ExistenceResolver
from wire import from_wire_response, to_create_request, to_update_request

logger = logging.getLogger(__name__)


class ReconcilePhase(Enum):
    """Phases of a single reconciliation unit."""

    PLANNED = "planned"
    RESOLVING = "resolving"
    CREATING = "creating"
    UPDATING = "updating"
    NORMALIZING = "normalizing"
    APPLIED = "applied"
    FAILED = "failed"


PhaseObserver = Callable[[str, str, ReconcilePhase], None]


@dataclass
class ReconcileUnit:
    """Tracks the phase of one engine operation on one endpoint."""

    operation: str
    name: str
    phase: ReconcilePhase = ReconcilePhase.PLANNED
    history: List[ReconcilePhase] = field(default_factory=list)
    observer: Optional[PhaseObserver] = None

    def __post_init__(self):
        self._record(self.phase)

    def advance(self, phase: ReconcilePhase) -> None:
        logger.debug(
            f"{self.operation} '{self.name}': {self.phase.value} -> {phase.value}"
        )
        self.phase = phase
        self._record(phase)

    def fail(self, error: Exception) -> None:
        logger.error(
            f"{self.operation} '{self.name}' failed during {self.phase.value}: {error}"
        )
        self.advance(ReconcilePhase.FAILED)

    def _record(self, phase: ReconcilePhase) -> None:
        self.history.append(phase)
        if self.observer is not None:
            self.observer(self.operation, self.name, phase)


def _require_name(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ValidationError("name", "must be a non-empty string")


class EndpointEngine:
    """
    Reconciles desired endpoint configurations against the remote API.

    Returns normalized Endpoints (with fresh Status) or raises a typed
    EndpointError. Nothing is persisted and nothing is retried here; the
    caller stores the returned snapshot and decides on retries.
    """

    def __init__(
        self,
        client: EndpointsClient,
        resolver: Optional[ExistenceResolver] = None,
        config: Optional[EngineConfig] = None,
        observer: Optional[PhaseObserver] = None,
    ):
        self.client = client
        self.resolver = resolver or ExistenceResolver(client)
        self.config = config or EngineConfig()
        self.observer = observer

    def _unit(self, operation: str, name: str) -> ReconcileUnit:
        return ReconcileUnit(operation=operation, name=name, observer=self.observer)

    async def create_or_converge(self, desired: Endpoint) -> Endpoint:
        """
        Create the endpoint, or update it if one of that name already exists.

        Re-applying the same configuration is idempotent even when the remote
        endpoint was provisioned out-of-band.

        Args:
            desired: The desired endpoint configuration.

        Returns:
            The normalized endpoint as reported by the remote.

        Raises:
            ValidationError: Before any remote call, if desired is malformed.
            RemoteUnavailableError: If existence cannot be determined.
            RemoteOperationError: If the create or update is rejected.
            MalformedResponseError: If the response cannot be mapped.
        """
        unit = self._unit("create_or_converge", getattr(desired, "name", ""))
        try:
            validate_endpoint(desired)

            unit.advance(ReconcilePhase.RESOLVING)
            exists = await self.resolver.exists(desired.name)

            if exists:
                logger.info(f"Endpoint '{desired.name}' exists, converging by update")
                unit.advance(ReconcilePhase.UPDATING)
                raw = await self._update(desired.name, desired, converging=True)
            else:
                logger.info(f"Endpoint '{desired.name}' not found, creating")
                unit.advance(ReconcilePhase.CREATING)
                raw = await self._create(desired, unit)

            return self._normalize(raw, unit)

        except EndpointError as e:
            unit.fail(e)
            raise

    async def refresh(self, name: str) -> Endpoint:
        """
        Read the endpoint back from the remote.

        Raises:
            NotFoundError: If the endpoint no longer exists.
            RemoteUnavailableError: On transport or auth failure.
            MalformedResponseError: If the response cannot be mapped.
        """
        unit = self._unit("refresh", name)
        try:
            _require_name(name)
            try:
                raw = await self.client.get(name)
            except EndpointError:
                raise
            except Exception as e:
                raise RemoteUnavailableError(f"Failed to read endpoint '{name}': {e}")

            return self._normalize(raw, unit)

        except NotFoundError:
            logger.info(f"Endpoint '{name}' not found on refresh")
            unit.advance(ReconcilePhase.FAILED)
            raise
        except EndpointError as e:
            unit.fail(e)
            raise

    async def apply_update(self, name: str, desired: Endpoint) -> Endpoint:
        """
        Overwrite an endpoint known to exist; last writer wins.

        Raises:
            ValidationError: If desired is malformed or its name differs.
            NotFoundError: If the endpoint does not exist.
            RemoteOperationError: If the update is rejected.
        """
        unit = self._unit("apply_update", name)
        try:
            _require_name(name)
            validate_endpoint(desired)
            if desired.name != name:
                raise ValidationError(
                    "name",
                    f"'{desired.name}' does not match endpoint '{name}'; "
                    f"endpoint names cannot be changed",
                )

            unit.advance(ReconcilePhase.UPDATING)
            raw = await self._update(name, desired, converging=False)
            return self._normalize(raw, unit)

        except EndpointError as e:
            unit.fail(e)
            raise

    async def destroy(self, name: str) -> None:
        """
        Delete an endpoint. An already absent endpoint counts as deleted.

        Raises:
            RemoteUnavailableError: On transport or auth failure.
            RemoteOperationError: If the delete is rejected.
        """
        unit = self._unit("destroy", name)
        try:
            _require_name(name)
            try:
                await self.client.delete(name)
            except NotFoundError:
                logger.warning(f"Endpoint '{name}' already absent, nothing to delete")
            except EndpointError:
                raise
            except Exception as e:
                raise RemoteUnavailableError(f"Failed to delete endpoint '{name}': {e}")
            else:
                logger.info(f"Deleted endpoint '{name}'")

            unit.advance(ReconcilePhase.APPLIED)

        except EndpointError as e:
            unit.fail(e)
            raise

    async def list_endpoints(self) -> List[Endpoint]:
        """
        List and normalize every endpoint in the namespace.

        Raises:
            RemoteUnavailableError: If listing fails.
            MalformedResponseError: If any record cannot be mapped.
        """
        try:
            records = await self.client.list()
        except EndpointError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to list endpoints: {e}")

        return [from_wire_response(record) for record in records]

    # Private helper methods

    async def _create(self, desired: Endpoint, unit: ReconcileUnit):
        payload = to_create_request(desired)
        try:
            return await self.client.create(payload)
        except ConflictError as e:
            if not self.config.retry_conflict_as_update:
                raise
            logger.warning(
                f"Endpoint '{desired.name}' was created concurrently "
                f"({e.message}), retrying as update"
            )
            unit.advance(ReconcilePhase.UPDATING)
            return await self._update(desired.name, desired, converging=True)
        except EndpointError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"Failed to create endpoint '{desired.name}': {e}")

    async def _update(self, name: str, desired: Endpoint, converging: bool):
        payload = to_update_request(desired)
        try:
            return await self.client.update(name, payload)
        except NotFoundError as e:
            if not converging:
                raise
            # Listed a moment ago, gone now
            raise RemoteOperationError(
                f"Endpoint '{name}' disappeared before it could be updated: "
                f"{e.message}",
                status=404,
            )
        except EndpointError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"Failed to update endpoint '{name}': {e}")

    def _normalize(self, raw, unit: ReconcileUnit) -> Endpoint:
        unit.advance(ReconcilePhase.NORMALIZING)
        endpoint = from_wire_response(raw)
        unit.advance(ReconcilePhase.APPLIED)
        return endpoint
