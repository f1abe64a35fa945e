"""
Endpoint Domain Model - Declarative configuration of an inference endpoint.

An Endpoint carries two categories of fields: declarative fields supplied by
the caller (the desired state) and the remote-observed Status, which only the
remote system produces. Status never takes part in equality, so two snapshots
compare on what the caller declared.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import ClassVar, Dict, Optional

from errors import ValidationError


def _require_text(value: str, field_name: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValidationError(field_name, "must be a non-empty string")


def _require_int(value: int, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field_name, f"must be an integer, got {value!r}")


def _check_env(env: Dict[str, str], field_name: str) -> None:
    if not isinstance(env, dict):
        raise ValidationError(field_name, "must be a mapping of strings to strings")
    for key, value in env.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValidationError(
                f"{field_name}.{key}", "environment keys and values must be strings"
            )


@dataclass(frozen=True)
class Credentials:
    """Registry credentials for a custom container image."""

    username: str
    password: str = field(repr=False)

    def __post_init__(self):
        _require_text(self.username, "model.image.custom.credentials.username")
        _require_text(self.password, "model.image.custom.credentials.password")


@dataclass(frozen=True)
class Image:
    """
    Base of the runtime image union.

    Exactly one concrete variant is ever set on a Model. Use from_variants()
    when the variants arrive as two independently optional values.
    """

    kind: ClassVar[str] = ""

    @staticmethod
    def from_variants(
        huggingface: Optional["HuggingfaceImage"] = None,
        custom: Optional["CustomImage"] = None,
    ) -> "Image":
        """
        Select the single populated image variant.

        Raises:
            ValidationError: If both or neither variant is given.
        """
        if huggingface is not None and custom is not None:
            raise ValidationError(
                "model.image", "exactly one of 'huggingface' or 'custom' must be set"
            )
        if huggingface is not None:
            return huggingface
        if custom is not None:
            return custom
        raise ValidationError(
            "model.image", "one of 'huggingface' or 'custom' must be set"
        )


@dataclass(frozen=True)
class HuggingfaceImage(Image):
    """Pre-built Hugging Face runtime; only environment variables are tunable."""

    kind: ClassVar[str] = "huggingface"

    env: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        _check_env(self.env, "model.image.huggingface.env")


@dataclass(frozen=True)
class CustomImage(Image):
    """Arbitrary container image pulled from a registry."""

    kind: ClassVar[str] = "custom"

    url: str = ""
    port: Optional[int] = None
    health_route: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    credentials: Optional[Credentials] = None

    def __post_init__(self):
        _require_text(self.url, "model.image.custom.url")
        if self.port is not None:
            _require_int(self.port, "model.image.custom.port")
            if not 0 < self.port < 65536:
                raise ValidationError(
                    "model.image.custom.port", f"{self.port} is not a valid port"
                )
        _check_env(self.env, "model.image.custom.env")


@dataclass(frozen=True)
class Scaling:
    """Replica bounds; scale_to_zero_timeout of None defers to the remote default."""

    min_replica: int
    max_replica: int
    scale_to_zero_timeout: Optional[int] = None

    def __post_init__(self):
        _require_int(self.min_replica, "compute.scaling.min_replica")
        _require_int(self.max_replica, "compute.scaling.max_replica")
        if self.scale_to_zero_timeout is not None:
            _require_int(
                self.scale_to_zero_timeout, "compute.scaling.scale_to_zero_timeout"
            )
        if self.min_replica < 0:
            raise ValidationError("compute.scaling.min_replica", "must be >= 0")
        if self.max_replica < 0:
            raise ValidationError("compute.scaling.max_replica", "must be >= 0")
        if self.min_replica > self.max_replica:
            raise ValidationError(
                "compute.scaling.min_replica",
                f"min_replica ({self.min_replica}) must not exceed "
                f"max_replica ({self.max_replica})",
            )
        if self.scale_to_zero_timeout is not None and self.scale_to_zero_timeout < 0:
            raise ValidationError(
                "compute.scaling.scale_to_zero_timeout", "must be >= 0"
            )


@dataclass(frozen=True)
class Compute:
    """Remote hardware SKU and its scaling policy."""

    accelerator: str
    instance_size: str
    instance_type: str
    scaling: Scaling

    def __post_init__(self):
        _require_text(self.accelerator, "compute.accelerator")
        _require_text(self.instance_size, "compute.instance_size")
        _require_text(self.instance_type, "compute.instance_type")


@dataclass(frozen=True)
class Model:
    """Model artifact served by the endpoint. revision of None means latest."""

    framework: str
    repository: str
    image: Image
    revision: Optional[str] = None
    task: Optional[str] = None

    def __post_init__(self):
        _require_text(self.framework, "model.framework")
        _require_text(self.repository, "model.repository")
        if not isinstance(self.image, (HuggingfaceImage, CustomImage)):
            raise ValidationError(
                "model.image", "one of 'huggingface' or 'custom' must be set"
            )


@dataclass(frozen=True)
class Cloud:
    """Placement of the endpoint (the remote calls this 'provider')."""

    region: str
    vendor: str

    def __post_init__(self):
        _require_text(self.region, "provider.region")
        _require_text(self.vendor, "provider.vendor")


@dataclass(frozen=True)
class User:
    id: str = ""
    name: str = ""


@dataclass(frozen=True)
class Status:
    """Remote-observed state. Read-only: produced by the remote on every read."""

    state: str
    created_at: datetime
    updated_at: datetime
    created_by: User = field(default_factory=User)
    updated_by: User = field(default_factory=User)
    message: str = ""
    error_message: str = ""
    ready_replica: int = 0
    target_replica: int = 0
    url: str = ""
    # Only set for privately networked endpoints
    private_service_name: Optional[str] = None


@dataclass(frozen=True)
class Endpoint:
    """
    A managed inference endpoint.

    name is the natural key; uniqueness is enforced remotely. account_id is
    only set for organization-scoped endpoints.
    """

    name: str
    compute: Compute
    model: Model
    placement: Cloud
    type: str
    account_id: Optional[str] = None
    status: Optional[Status] = field(default=None, compare=False)

    def __post_init__(self):
        _require_text(self.name, "name")
        _require_text(self.type, "type")
        if not isinstance(self.compute, Compute):
            raise ValidationError("compute", "is required")
        if not isinstance(self.model, Model):
            raise ValidationError("model", "is required")
        if not isinstance(self.placement, Cloud):
            raise ValidationError("provider", "is required")

    @property
    def image(self) -> Image:
        return self.model.image

    def declarative(self) -> "Endpoint":
        """Return a copy stripped of remote-observed status."""
        return replace(self, status=None)


def validate_endpoint(endpoint: Endpoint) -> Endpoint:
    """
    Re-run construction checks on an endpoint and its nested values.

    Called by the engine before any remote call is issued.

    Raises:
        ValidationError: Naming the first offending field.
    """
    if not isinstance(endpoint, Endpoint):
        raise ValidationError("endpoint", f"expected Endpoint, got {type(endpoint)}")
    endpoint.__post_init__()
    endpoint.compute.__post_init__()
    endpoint.compute.scaling.__post_init__()
    endpoint.model.__post_init__()
    endpoint.model.image.__post_init__()
    if isinstance(endpoint.model.image, CustomImage) and endpoint.model.image.credentials:
        endpoint.model.image.credentials.__post_init__()
    endpoint.placement.__post_init__()
    return endpoint
