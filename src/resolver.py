"""
Existence Resolver - Does a named endpoint already exist remotely?

The remote API has no exists/head primitive, so the answer comes from
listing the namespace and scanning for an exact, case-sensitive name match.
"""

import logging

from client import EndpointsClient
from errors import EndpointError, MalformedResponseError, RemoteUnavailableError

logger = logging.getLogger(__name__)


class ExistenceResolver:
    """Answers existence queries against the remote endpoint inventory."""

    def __init__(self, client: EndpointsClient):
        self.client = client

    async def exists(self, name: str) -> bool:
        """
        Check whether an endpoint named `name` exists remotely.

        Args:
            name: Endpoint name, matched exactly and case-sensitively.

        Returns:
            True if a listed record carries this name.

        Raises:
            RemoteUnavailableError: If listing fails; existence is then unknown.
            MalformedResponseError: If a listed record has no name.
        """
        try:
            records = await self.client.list()
        except (RemoteUnavailableError, MalformedResponseError):
            raise
        except EndpointError as e:
            raise RemoteUnavailableError(
                f"Cannot determine whether endpoint '{name}' exists: {e.message}"
            )
        except Exception as e:
            raise RemoteUnavailableError(
                f"Cannot determine whether endpoint '{name}' exists: {e}"
            )

        for index, record in enumerate(records):
            if not isinstance(record, dict) or "name" not in record:
                raise MalformedResponseError(
                    f"items.{index}.name", "listed endpoint record has no name"
                )
            if record["name"] == name:
                logger.debug(f"Endpoint '{name}' found among {len(records)} endpoints")
                return True

        logger.debug(f"Endpoint '{name}' not found among {len(records)} endpoints")
        return False
