"""
Wire Mapper - Translation between the domain model and the remote API shape.

Outgoing payloads carry declarative fields only: Status is never sent, and
unset optionals are omitted rather than sent as null so the remote default
applies. Incoming records are schema-checked, their image variant selected,
null env maps normalized to {} and timestamps parsed as strict RFC 3339.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from endpoints import (
    Cloud,
    Compute,
    Credentials,
    CustomImage,
    Endpoint,
    HuggingfaceImage,
    Image,
    Model,
    Scaling,
    Status,
    User,
)
from errors import MalformedResponseError, ValidationError
from validation import schema_errors

logger = logging.getLogger(__name__)

# Sections of an update request; each is independently optional on the wire
UPDATE_SECTIONS = ("compute", "model", "type")

RFC3339_PATTERN = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})[Tt]([0-9]{2}):([0-9]{2}):([0-9]{2})(\.[0-9]+)?"
    r"([Zz]|[+-][0-9]{2}:[0-9]{2})"
)

_STRING = {"type": "string"}
_NULLABLE_STRING = {"type": ["string", "null"]}
_NULLABLE_INTEGER = {"type": ["integer", "null"]}
_ENV = {"type": ["object", "null"], "additionalProperties": {"type": "string"}}
_USER = {
    "type": ["object", "null"],
    "properties": {"id": _NULLABLE_STRING, "name": _NULLABLE_STRING},
}

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "compute", "model", "provider", "type", "status"],
    "properties": {
        "accountId": _NULLABLE_STRING,
        "name": {"type": "string", "minLength": 1},
        "type": _STRING,
        "compute": {
            "type": "object",
            "required": ["accelerator", "instanceSize", "instanceType", "scaling"],
            "properties": {
                "accelerator": _STRING,
                "instanceSize": _STRING,
                "instanceType": _STRING,
                "scaling": {
                    "type": "object",
                    "required": ["minReplica", "maxReplica"],
                    "properties": {
                        "minReplica": {"type": "integer"},
                        "maxReplica": {"type": "integer"},
                        "scaleToZeroTimeout": _NULLABLE_INTEGER,
                    },
                },
            },
        },
        "model": {
            "type": "object",
            "required": ["framework", "repository", "image"],
            "properties": {
                "framework": _STRING,
                "repository": _STRING,
                "revision": _NULLABLE_STRING,
                "task": _NULLABLE_STRING,
                "image": {
                    "type": "object",
                    "properties": {
                        "huggingface": {
                            "type": ["object", "null"],
                            "properties": {"env": _ENV},
                        },
                        "custom": {
                            "type": ["object", "null"],
                            "required": ["url"],
                            "properties": {
                                "url": _STRING,
                                "port": _NULLABLE_INTEGER,
                                "healthRoute": _NULLABLE_STRING,
                                "env": _ENV,
                                "credentials": {
                                    "type": ["object", "null"],
                                    "required": ["username", "password"],
                                    "properties": {
                                        "username": _STRING,
                                        "password": _STRING,
                                    },
                                },
                            },
                        },
                    },
                },
            },
        },
        "provider": {
            "type": "object",
            "required": ["region", "vendor"],
            "properties": {"region": _STRING, "vendor": _STRING},
        },
        "status": {
            "type": "object",
            "required": ["state", "createdAt", "updatedAt"],
            "properties": {
                "state": _STRING,
                "createdAt": _STRING,
                "updatedAt": _STRING,
                "createdBy": _USER,
                "updatedBy": _USER,
                "message": _NULLABLE_STRING,
                "errorMessage": _NULLABLE_STRING,
                "readyReplica": _NULLABLE_INTEGER,
                "targetReplica": _NULLABLE_INTEGER,
                "url": _NULLABLE_STRING,
                "private": {
                    "type": ["object", "null"],
                    "properties": {"serviceName": _NULLABLE_STRING},
                },
            },
        },
    },
}


# Timestamps


def parse_timestamp(value: Any, field: str) -> datetime:
    """
    Parse a strict RFC 3339 timestamp into an aware datetime.

    Fractional seconds beyond microsecond precision are truncated.

    Raises:
        MalformedResponseError: If the value is not RFC 3339.
    """
    if not isinstance(value, str):
        raise MalformedResponseError(field, f"expected RFC 3339 string, got {value!r}")

    match = RFC3339_PATTERN.fullmatch(value)
    if not match:
        raise MalformedResponseError(field, f"'{value}' is not an RFC 3339 timestamp")

    year, month, day, hour, minute, second, fraction, offset = match.groups()
    microsecond = int((fraction[1:] + "000000")[:6]) if fraction else 0

    if offset in ("Z", "z"):
        tzinfo = timezone.utc
    else:
        sign = 1 if offset[0] == "+" else -1
        delta = timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6]))
        tzinfo = timezone(sign * delta)

    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            microsecond,
            tzinfo=tzinfo,
        )
    except ValueError as e:
        raise MalformedResponseError(field, f"'{value}' is out of range: {e}")


def format_timestamp(value: datetime) -> str:
    """
    Format an aware datetime as RFC 3339 without fractional seconds.

    UTC is written as 'Z', any other offset as +HH:MM / -HH:MM.
    """
    offset = value.utcoffset()
    if offset is None:
        raise ValueError("Cannot format a naive datetime as RFC 3339")

    base = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if offset == timedelta(0):
        return base + "Z"

    sign = "+" if offset >= timedelta(0) else "-"
    total_minutes = abs(int(offset.total_seconds())) // 60
    return f"{base}{sign}{total_minutes // 60:02d}:{total_minutes % 60:02d}"


# Domain -> wire


def _image_to_wire(image: Image) -> Dict[str, Any]:
    if isinstance(image, HuggingfaceImage):
        return {"huggingface": {"env": dict(image.env)}}

    if isinstance(image, CustomImage):
        custom: Dict[str, Any] = {"url": image.url, "env": dict(image.env)}
        if image.port is not None:
            custom["port"] = image.port
        if image.health_route is not None:
            custom["healthRoute"] = image.health_route
        if image.credentials is not None:
            custom["credentials"] = {
                "username": image.credentials.username,
                "password": image.credentials.password,
            }
        return {"custom": custom}

    raise ValidationError("model.image", f"unsupported image variant {type(image)}")


def _compute_to_wire(compute: Compute) -> Dict[str, Any]:
    scaling: Dict[str, Any] = {
        "minReplica": compute.scaling.min_replica,
        "maxReplica": compute.scaling.max_replica,
    }
    if compute.scaling.scale_to_zero_timeout is not None:
        scaling["scaleToZeroTimeout"] = compute.scaling.scale_to_zero_timeout

    return {
        "accelerator": compute.accelerator,
        "instanceSize": compute.instance_size,
        "instanceType": compute.instance_type,
        "scaling": scaling,
    }


def _model_to_wire(model: Model) -> Dict[str, Any]:
    wire: Dict[str, Any] = {
        "framework": model.framework,
        "image": _image_to_wire(model.image),
        "repository": model.repository,
    }
    if model.revision is not None:
        wire["revision"] = model.revision
    if model.task is not None:
        wire["task"] = model.task
    return wire


def to_create_request(endpoint: Endpoint) -> Dict[str, Any]:
    """
    Build the create payload for an endpoint.

    Args:
        endpoint: The desired endpoint. Its status, if any, is ignored.

    Returns:
        Wire create request with unset optionals omitted.
    """
    payload: Dict[str, Any] = {
        "name": endpoint.name,
        "compute": _compute_to_wire(endpoint.compute),
        "model": _model_to_wire(endpoint.model),
        "provider": {
            "region": endpoint.placement.region,
            "vendor": endpoint.placement.vendor,
        },
        "type": endpoint.type,
    }
    if endpoint.account_id is not None:
        payload["accountId"] = endpoint.account_id
    return payload


def to_update_request(
    endpoint: Endpoint, sections: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """
    Build the update payload for an endpoint.

    Every section is optional on the wire. The engine always sends all of
    them, so an update is a full replace of compute, model and type.

    Args:
        endpoint: The desired endpoint. Its status, if any, is ignored.
        sections: Subset of UPDATE_SECTIONS to include (default: all).

    Returns:
        Wire update request.

    Raises:
        ValueError: If an unknown section is requested.
    """
    wanted = list(sections) if sections is not None else list(UPDATE_SECTIONS)
    unknown = [s for s in wanted if s not in UPDATE_SECTIONS]
    if unknown:
        raise ValueError(
            f"Unknown update section(s): {', '.join(unknown)}. "
            f"Valid sections: {', '.join(UPDATE_SECTIONS)}"
        )

    payload: Dict[str, Any] = {}
    if "compute" in wanted:
        payload["compute"] = _compute_to_wire(endpoint.compute)
    if "model" in wanted:
        payload["model"] = _model_to_wire(endpoint.model)
    if "type" in wanted:
        payload["type"] = endpoint.type
    return payload


def status_to_wire(status: Status) -> Dict[str, Any]:
    """Render an observed status in the remote's shape."""
    return {
        "state": status.state,
        "message": status.message,
        "errorMessage": status.error_message,
        "readyReplica": status.ready_replica,
        "targetReplica": status.target_replica,
        "url": status.url,
        "createdAt": format_timestamp(status.created_at),
        "createdBy": {"id": status.created_by.id, "name": status.created_by.name},
        "updatedAt": format_timestamp(status.updated_at),
        "updatedBy": {"id": status.updated_by.id, "name": status.updated_by.name},
        "private": (
            {"serviceName": status.private_service_name}
            if status.private_service_name is not None
            else None
        ),
    }


def to_wire_response(endpoint: Endpoint) -> Dict[str, Any]:
    """
    Render a normalized endpoint as a full remote record, status included.

    Raises:
        ValueError: If the endpoint has no observed status.
    """
    if endpoint.status is None:
        raise ValueError(f"Endpoint '{endpoint.name}' has no observed status")
    record = to_create_request(endpoint)
    record["status"] = status_to_wire(endpoint.status)
    return record


# Wire -> domain


def _wire_field(field: str) -> str:
    """Translate a snake_case domain field path to its camelCase wire path."""
    # Environment variable names are user data and keep their spelling
    head, sep, tail = field.partition(".env.")
    parts = []
    for part in head.split("."):
        first, *rest = part.split("_")
        parts.append(first + "".join(word.capitalize() for word in rest))
    return ".".join(parts) + sep + tail


def _env_from_wire(env: Optional[Dict[str, str]]) -> Dict[str, str]:
    # null and absent both normalize to an empty mapping
    return dict(env) if env else {}


def _image_from_wire(image: Dict[str, Any]) -> Image:
    huggingface = image.get("huggingface")
    custom = image.get("custom")

    if huggingface is not None and custom is not None:
        raise MalformedResponseError(
            "model.image", "both 'huggingface' and 'custom' are set"
        )

    if huggingface is not None:
        return HuggingfaceImage(env=_env_from_wire(huggingface.get("env")))

    if custom is not None:
        credentials = custom.get("credentials")
        return CustomImage(
            url=custom["url"],
            port=custom.get("port"),
            health_route=custom.get("healthRoute"),
            env=_env_from_wire(custom.get("env")),
            credentials=(
                Credentials(
                    username=credentials["username"],
                    password=credentials["password"],
                )
                if credentials is not None
                else None
            ),
        )

    raise MalformedResponseError(
        "model.image", "neither 'huggingface' nor 'custom' is set"
    )


def _user_from_wire(user: Optional[Dict[str, Any]]) -> User:
    if not user:
        return User()
    return User(id=user.get("id") or "", name=user.get("name") or "")


def _status_from_wire(status: Dict[str, Any]) -> Status:
    private = status.get("private") or {}
    return Status(
        state=status["state"],
        created_at=parse_timestamp(status["createdAt"], "status.createdAt"),
        updated_at=parse_timestamp(status["updatedAt"], "status.updatedAt"),
        created_by=_user_from_wire(status.get("createdBy")),
        updated_by=_user_from_wire(status.get("updatedBy")),
        message=status.get("message") or "",
        error_message=status.get("errorMessage") or "",
        ready_replica=int(status.get("readyReplica") or 0),
        target_replica=int(status.get("targetReplica") or 0),
        url=status.get("url") or "",
        private_service_name=private.get("serviceName"),
    )


def from_wire_response(wire: Dict[str, Any]) -> Endpoint:
    """
    Map a raw remote endpoint record to a normalized Endpoint.

    Args:
        wire: Decoded JSON record returned by the remote API.

    Returns:
        Endpoint with declarative fields and a fresh Status.

    Raises:
        MalformedResponseError: If the record is missing required fields,
            has both/neither image variants, or carries a bad timestamp.
    """
    errors = schema_errors(wire, RESPONSE_SCHEMA)
    if errors:
        path, message = errors[0]
        raise MalformedResponseError(path, message)

    compute = wire["compute"]
    scaling = compute["scaling"]
    model = wire["model"]
    provider = wire["provider"]

    status = _status_from_wire(wire["status"])

    try:
        image = _image_from_wire(model["image"])
        endpoint = Endpoint(
            name=wire["name"],
            account_id=wire.get("accountId"),
            compute=Compute(
                accelerator=compute["accelerator"],
                instance_size=compute["instanceSize"],
                instance_type=compute["instanceType"],
                scaling=Scaling(
                    min_replica=int(scaling["minReplica"]),
                    max_replica=int(scaling["maxReplica"]),
                    scale_to_zero_timeout=scaling.get("scaleToZeroTimeout"),
                ),
            ),
            model=Model(
                framework=model["framework"],
                repository=model["repository"],
                image=image,
                revision=model.get("revision"),
                task=model.get("task"),
            ),
            placement=Cloud(region=provider["region"], vendor=provider["vendor"]),
            type=wire["type"],
            status=status,
        )
    except ValidationError as e:
        raise MalformedResponseError(_wire_field(e.field), e.reason)

    logger.debug(
        f"Mapped remote record for endpoint '{endpoint.name}' "
        f"(image={image.kind}, state={status.state})"
    )
    return endpoint
