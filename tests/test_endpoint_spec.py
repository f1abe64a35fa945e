"""Unit tests for endpoint_spec.py - Declarative endpoint manifests."""

import pytest

from endpoint_spec import (
    ENDPOINT_SPEC_SCHEMA,
    REDACTED,
    endpoint_from_spec,
    endpoint_to_spec,
)
from endpoints import CustomImage
from errors import ValidationError
from validation import validate_schema
from wire import from_wire_response


class TestEndpointFromSpec:
    """Tests for endpoint_from_spec()."""

    def test_builds_endpoint(self, sample_spec, sample_endpoint):
        endpoint = endpoint_from_spec(sample_spec, name="my-endpoint")

        assert endpoint == sample_endpoint
        assert endpoint.status is None

    def test_name_from_manifest(self, sample_spec):
        sample_spec["name"] = "from-manifest"
        assert endpoint_from_spec(sample_spec).name == "from-manifest"

    def test_name_required(self, sample_spec):
        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec)
        assert exc_info.value.field == "name"

    def test_name_mismatch(self, sample_spec):
        sample_spec["name"] = "other"

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "name"
        assert "does not match" in exc_info.value.message

    def test_status_rejected(self, sample_spec):
        sample_spec["status"] = {"state": "running"}

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "status"

    def test_unknown_field_rejected(self, sample_spec):
        sample_spec["compute"]["gpu_count"] = 4

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "compute"

    def test_missing_section(self, sample_spec):
        del sample_spec["provider"]

        with pytest.raises(ValidationError, match="provider"):
            endpoint_from_spec(sample_spec, name="my-endpoint")

    def test_negative_replica_names_field(self, sample_spec):
        sample_spec["compute"]["scaling"]["min_replica"] = -1

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "compute.scaling.min_replica"

    def test_min_above_max(self, sample_spec):
        sample_spec["compute"]["scaling"]["min_replica"] = 5

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "compute.scaling.min_replica"

    def test_both_image_variants(self, sample_spec):
        sample_spec["model"]["image"]["custom"] = {"url": "ghcr.io/acme/server"}

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "model.image"

    def test_no_image_variant(self, sample_spec):
        sample_spec["model"]["image"] = {}

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "model.image"

    def test_custom_image(self, sample_spec):
        sample_spec["model"]["image"] = {
            "custom": {
                "url": "ghcr.io/acme/server:1.2.0",
                "port": 8080,
                "health_route": "/health",
                "credentials": {"username": "acme", "password": "s3cret"},
            }
        }

        endpoint = endpoint_from_spec(sample_spec, name="my-endpoint")

        assert isinstance(endpoint.image, CustomImage)
        assert endpoint.image.health_route == "/health"
        assert endpoint.image.env == {}
        assert endpoint.image.credentials.password == "s3cret"

    def test_invalid_port(self, sample_spec):
        sample_spec["model"]["image"] = {"custom": {"url": "x", "port": 0}}

        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(sample_spec, name="my-endpoint")
        assert exc_info.value.field == "model.image.custom.port"

    def test_non_dict_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            endpoint_from_spec(["not", "a", "manifest"], name="x")
        assert exc_info.value.field == "(root)"


class TestEndpointToSpec:
    """Tests for endpoint_to_spec()."""

    def test_round_trip(self, sample_spec, sample_endpoint):
        spec = endpoint_to_spec(sample_endpoint)

        assert spec["name"] == "my-endpoint"
        assert endpoint_from_spec(spec) == sample_endpoint

    def test_omits_unset_optionals(self, custom_endpoint):
        spec = endpoint_to_spec(custom_endpoint)

        assert "account_id" not in spec
        assert "revision" not in spec["model"]
        assert "scale_to_zero_timeout" not in spec["compute"]["scaling"]

    def test_status_excluded_by_default(self, wire_record):
        endpoint = from_wire_response(wire_record)
        assert "status" not in endpoint_to_spec(endpoint)

    def test_include_status(self, wire_record):
        endpoint = from_wire_response(wire_record)
        status = endpoint_to_spec(endpoint, include_status=True)["status"]

        assert status["state"] == "running"
        assert status["created_at"] == "2024-01-01T00:00:00Z"
        assert status["updated_by"] == {"id": "u-2", "name": "bob"}
        assert status["private"] is None

    def test_include_status_without_status(self, sample_endpoint):
        assert "status" not in endpoint_to_spec(sample_endpoint, include_status=True)

    def test_redact_secrets(self, custom_endpoint):
        spec = endpoint_to_spec(custom_endpoint, redact_secrets=True)
        credentials = spec["model"]["image"]["custom"]["credentials"]

        assert credentials == {"username": "acme", "password": REDACTED}

    def test_secrets_kept_by_default(self, custom_endpoint):
        spec = endpoint_to_spec(custom_endpoint)
        assert spec["model"]["image"]["custom"]["credentials"]["password"] == "s3cret"


class TestEndpointSpecSchema:
    def test_schema_is_valid(self):
        is_valid, error = validate_schema(ENDPOINT_SPEC_SCHEMA)
        assert is_valid is True
        assert error is None
