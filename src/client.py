"""
Endpoints Client - Boundary to the remote Inference Endpoints control plane.

EndpointsClient is the contract the engine depends on. The shipped
implementation talks to the Hugging Face Inference Endpoints REST API and
translates HTTP failures into the typed errors the engine propagates.
Requests are issued once; there is no retry or backoff at this layer.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from config import ClientConfig
from errors import (
    ConflictError,
    EndpointError,
    MalformedResponseError,
    NotFoundError,
    RemoteOperationError,
    RemoteUnavailableError,
)

logger = logging.getLogger(__name__)


class EndpointsClient(ABC):
    """
    Abstract remote client over the endpoint resource.

    All operations return decoded JSON records in the remote's wire shape.
    """

    @abstractmethod
    async def list(self) -> List[Dict[str, Any]]:
        """
        List all endpoints in the namespace.

        Raises:
            RemoteUnavailableError: On transport or auth failure.
        """
        pass

    @abstractmethod
    async def get(self, name: str) -> Dict[str, Any]:
        """
        Get a single endpoint record.

        Raises:
            NotFoundError: If no endpoint has this name.
        """
        pass

    @abstractmethod
    async def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create an endpoint from a wire create request."""
        pass

    @abstractmethod
    async def update(self, name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Update an endpoint from a wire update request."""
        pass

    @abstractmethod
    async def delete(self, name: str) -> None:
        """
        Delete an endpoint.

        Raises:
            NotFoundError: If no endpoint has this name.
        """
        pass


class HuggingFaceEndpointsClient(EndpointsClient):
    """
    Client for the Hugging Face Inference Endpoints API (v2).

    Endpoints live under {host}/v2/endpoint/{namespace}; authentication is a
    bearer token.
    """

    def __init__(self, host: str, namespace: str, token: str, timeout: int = 30):
        self.host = host.rstrip("/")
        self.namespace = namespace
        self._token = token
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg: ClientConfig) -> "HuggingFaceEndpointsClient":
        """
        Build a client from configuration.

        Raises:
            ConfigurationError: If host, namespace or token is missing.
        """
        cfg.validate()
        logger.debug(
            f"Creating Inference Endpoints client: host={cfg.host}, "
            f"namespace={cfg.namespace}, timeout={cfg.timeout}s"
        )
        return cls(
            host=cfg.host,
            namespace=cfg.namespace,
            token=cfg.token,
            timeout=cfg.timeout,
        )

    def __repr__(self) -> str:
        return (
            f"HuggingFaceEndpointsClient(host={self.host!r}, "
            f"namespace={self.namespace!r})"
        )

    async def list(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", self._url(), "list endpoints")
        if isinstance(body, list):
            return body
        if isinstance(body, dict) and isinstance(body.get("items"), list):
            return body["items"]
        raise MalformedResponseError("items", "list response has no 'items' array")

    async def get(self, name: str) -> Dict[str, Any]:
        return await self._request("GET", self._url(name), "get endpoint", name=name)

    async def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        name = payload.get("name", "")
        logger.info(f"Creating endpoint '{name}' in namespace {self.namespace}")
        return await self._request(
            "POST", self._url(), "create endpoint", name=name, payload=payload
        )

    async def update(self, name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Updating endpoint '{name}' in namespace {self.namespace}")
        return await self._request(
            "PUT", self._url(name), "update endpoint", name=name, payload=payload
        )

    async def delete(self, name: str) -> None:
        logger.info(f"Deleting endpoint '{name}' in namespace {self.namespace}")
        await self._request("DELETE", self._url(name), "delete endpoint", name=name)

    # Private helper methods

    def _url(self, name: Optional[str] = None) -> str:
        base = f"{self.host}/v2/endpoint/{quote(self.namespace, safe='')}"
        if name is None:
            return base
        return f"{base}/{quote(name, safe='')}"

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for API requests."""
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        name: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue one HTTP request and decode the JSON body.

        Raises:
            NotFoundError, ConflictError, RemoteOperationError,
            RemoteUnavailableError, MalformedResponseError
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, headers=self._get_headers(), json=payload
                ) as response:
                    if response.status >= 400:
                        text = await response.text()
                        raise self._error_for_status(
                            response.status, text, operation, name
                        )
                    if response.status == 204:
                        return None
                    return await response.json(content_type=None)

        except EndpointError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Failed to {operation}: {e!r}")
            raise RemoteUnavailableError(f"Failed to {operation}: {e!r}")
        except ValueError as e:
            raise MalformedResponseError("(root)", f"invalid JSON body: {e}")

    def _error_for_status(
        self, status: int, text: str, operation: str, name: Optional[str]
    ) -> EndpointError:
        """Translate an HTTP error status into a typed error."""
        message = _remote_message(text) or f"HTTP {status}"
        logger.debug(f"{operation} returned HTTP {status}: {message}")

        if status == 404 and name is not None:
            return NotFoundError(name, message)
        if status == 409:
            return ConflictError(message, status=status)
        if status in (401, 403):
            return RemoteUnavailableError(
                f"Failed to {operation}: authentication rejected (HTTP {status}): "
                f"{message}"
            )
        if status >= 500:
            return RemoteUnavailableError(
                f"Failed to {operation}: HTTP {status}: {message}"
            )
        return RemoteOperationError(message, status=status)


def _remote_message(text: str) -> str:
    """Extract the remote-provided error message from a response body."""
    try:
        body = json.loads(text)
    except ValueError:
        return text.strip()

    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return text.strip()
