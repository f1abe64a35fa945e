"""
Endpoint Errors - Typed failures raised by the reconciliation engine.

Every engine operation either succeeds or raises one of these. Nothing here
is retried internally; the caller decides whether to retry the operation.
"""

from typing import Optional


class EndpointError(Exception):
    """Base class for all endpoint reconciliation errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(EndpointError):
    """Raised when the remote client configuration is incomplete."""


class ValidationError(EndpointError):
    """Raised when a desired endpoint configuration is malformed."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.reason = message
        super().__init__(f"{field}: {message}")


class RemoteUnavailableError(EndpointError):
    """Raised when the remote API cannot be reached or rejects our credentials."""


class NotFoundError(EndpointError):
    """Raised when the remote API reports the named endpoint does not exist."""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"Endpoint '{name}' not found")


class RemoteOperationError(EndpointError):
    """Raised when the remote API rejects an operation (quota, invalid SKU, ...)."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class ConflictError(RemoteOperationError):
    """Raised when a create collides with an existing endpoint of the same name."""


class MalformedResponseError(EndpointError):
    """Raised when the remote API returns a shape we cannot interpret."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Malformed response at {field}: {message}")
