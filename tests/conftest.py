"""Pytest configuration and fixtures."""

import copy
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from endpoints import (
    Cloud,
    Compute,
    Credentials,
    CustomImage,
    Endpoint,
    HuggingfaceImage,
    Model,
    Scaling,
)


def make_wire_record(name="my-endpoint", **overrides):
    """Build a remote endpoint record as the API returns it."""
    record = {
        "accountId": None,
        "name": name,
        "type": "protected",
        "compute": {
            "accelerator": "gpu",
            "instanceSize": "x1",
            "instanceType": "nvidia-a10g",
            "scaling": {"minReplica": 0, "maxReplica": 2, "scaleToZeroTimeout": 15},
        },
        "model": {
            "framework": "pytorch",
            "repository": "openai-community/gpt2",
            "revision": "main",
            "task": "text-generation",
            "image": {"huggingface": {"env": {"MAX_BATCH_SIZE": "8"}}},
        },
        "provider": {"region": "us-east-1", "vendor": "aws"},
        "status": {
            "state": "running",
            "message": "Endpoint is running",
            "errorMessage": None,
            "readyReplica": 1,
            "targetReplica": 1,
            "url": "https://abc123.us-east-1.aws.endpoints.huggingface.cloud",
            "createdAt": "2024-01-01T00:00:00Z",
            "createdBy": {"id": "u-1", "name": "alice"},
            "updatedAt": "2024-01-02T12:30:45Z",
            "updatedBy": {"id": "u-2", "name": "bob"},
            "private": None,
        },
    }
    record.update(overrides)
    return record


@pytest.fixture
def wire_record():
    """A running Hugging Face image endpoint record."""
    return make_wire_record()


@pytest.fixture
def custom_wire_record():
    """A running custom image endpoint record."""
    record = make_wire_record(name="custom-endpoint")
    record["model"]["image"] = {
        "custom": {
            "url": "ghcr.io/acme/server:1.2.0",
            "port": 8080,
            "healthRoute": "/health",
            "env": {"MODEL_ID": "/repository"},
            "credentials": {"username": "acme", "password": "s3cret"},
        }
    }
    return record


@pytest.fixture
def sample_endpoint():
    """A desired Hugging Face image endpoint."""
    return Endpoint(
        name="my-endpoint",
        compute=Compute(
            accelerator="gpu",
            instance_size="x1",
            instance_type="nvidia-a10g",
            scaling=Scaling(min_replica=0, max_replica=2, scale_to_zero_timeout=15),
        ),
        model=Model(
            framework="pytorch",
            repository="openai-community/gpt2",
            image=HuggingfaceImage(env={"MAX_BATCH_SIZE": "8"}),
            revision="main",
            task="text-generation",
        ),
        placement=Cloud(region="us-east-1", vendor="aws"),
        type="protected",
    )


@pytest.fixture
def custom_endpoint():
    """A desired custom image endpoint with only required fields set."""
    return Endpoint(
        name="custom-endpoint",
        compute=Compute(
            accelerator="cpu",
            instance_size="x2",
            instance_type="intel-icl",
            scaling=Scaling(min_replica=1, max_replica=1),
        ),
        model=Model(
            framework="custom",
            repository="acme/classifier",
            image=CustomImage(
                url="ghcr.io/acme/server:1.2.0",
                port=8080,
                health_route="/health",
                credentials=Credentials(username="acme", password="s3cret"),
            ),
        ),
        placement=Cloud(region="eu-west-1", vendor="aws"),
        type="public",
    )


@pytest.fixture
def mock_client(wire_record):
    """Create a mock remote endpoints client."""
    client = AsyncMock()
    client.list = AsyncMock(return_value=[])
    client.get = AsyncMock(return_value=copy.deepcopy(wire_record))
    client.create = AsyncMock(return_value=copy.deepcopy(wire_record))
    client.update = AsyncMock(return_value=copy.deepcopy(wire_record))
    client.delete = AsyncMock(return_value=None)
    return client


@pytest.fixture
def mock_store():
    """Create a mock operator resource store."""
    store = AsyncMock()
    store.get_resources_needing_reconciliation_by_type = AsyncMock(return_value=[])
    store.update_resource_status = AsyncMock()
    store.update_resource_outputs = AsyncMock()
    store.record_reconciliation = AsyncMock()
    store.remove_finalizer = AsyncMock()
    store.get_finalizers = AsyncMock(return_value=[])
    store.hard_delete_resource = AsyncMock(return_value=True)
    return store


@pytest.fixture
def sample_spec():
    """Declarative manifest matching sample_endpoint."""
    return {
        "type": "protected",
        "compute": {
            "accelerator": "gpu",
            "instance_size": "x1",
            "instance_type": "nvidia-a10g",
            "scaling": {"min_replica": 0, "max_replica": 2, "scale_to_zero_timeout": 15},
        },
        "model": {
            "framework": "pytorch",
            "repository": "openai-community/gpt2",
            "revision": "main",
            "task": "text-generation",
            "image": {"huggingface": {"env": {"MAX_BATCH_SIZE": "8"}}},
        },
        "provider": {"region": "us-east-1", "vendor": "aws"},
    }


@pytest.fixture
def sample_resource(sample_spec):
    """Sample operator resource data for testing."""
    return {
        "id": 1,
        "name": "my-endpoint",
        "resource_type_name": "InferenceEndpoint",
        "resource_type_version": "v1",
        "spec": sample_spec,
        "metadata": {},
        "outputs": {},
        "status": "pending",
        "status_message": None,
        "generation": 1,
        "observed_generation": 0,
        "retry_count": 0,
        "last_reconcile_time": None,
    }


def session_returning(status, json_body=None, text=""):
    """
    Build a patched aiohttp.ClientSession return value whose request()
    yields a single response.
    """
    mock_resp = AsyncMock()
    mock_resp.status = status
    mock_resp.json = AsyncMock(return_value=json_body)
    mock_resp.text = AsyncMock(return_value=text)

    mock_session = AsyncMock()
    mock_session.request = MagicMock(
        return_value=AsyncMock(
            __aenter__=AsyncMock(return_value=mock_resp),
            __aexit__=AsyncMock(return_value=False),
        )
    )

    session_cm = AsyncMock(
        __aenter__=AsyncMock(return_value=mock_session),
        __aexit__=AsyncMock(return_value=False),
    )
    return session_cm, mock_session


@pytest.fixture
def shutdown_event():
    return asyncio.Event()
