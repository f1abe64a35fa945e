"""
Configuration module for the endpoint reconciler.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from errors import ConfigurationError

DEFAULT_HOST = "https://api.endpoints.huggingface.cloud"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class ClientConfig:
    """Inference Endpoints API connection settings."""

    host: str = DEFAULT_HOST
    namespace: str = ""
    token: str = field(default="", repr=False)  # Never log token
    timeout: int = 30  # seconds, per request

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            host=os.getenv("HF_ENDPOINTS_HOST", DEFAULT_HOST),
            namespace=os.getenv("HF_ENDPOINTS_NAMESPACE", ""),
            token=os.getenv("HF_TOKEN", ""),
            timeout=int(os.getenv("HF_ENDPOINTS_TIMEOUT", "30")),
        )

    def validate(self) -> None:
        """
        Check that host, namespace and token are all set.

        Raises:
            ConfigurationError: Listing every missing setting.
        """
        problems: List[str] = []
        if not self.host:
            problems.append("host: huggingface api host unknown or empty")
        if not self.namespace:
            problems.append("namespace: huggingface api namespace unknown or empty")
        if not self.token:
            problems.append("token: huggingface api token unknown or empty")
        if self.timeout <= 0:
            problems.append("timeout: must be a positive number of seconds")

        if problems:
            raise ConfigurationError(
                "invalid configuration: " + "; ".join(problems)
            )


@dataclass
class EngineConfig:
    """Reconciliation engine behaviour."""

    # Turn a duplicate-name rejection on create into an update
    retry_conflict_as_update: bool = False

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            retry_conflict_as_update=_env_bool("RETRY_CONFLICT_AS_UPDATE"),
        )


@dataclass
class ReconcilerConfig:
    """Reconciler plugin loop configuration."""

    reconcile_interval: int = 60  # seconds
    batch_limit: int = 10
    requeue_after: int = 300  # seconds, for retryable failures

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            reconcile_interval=int(os.getenv("RECONCILE_INTERVAL", "60")),
            batch_limit=int(os.getenv("RECONCILE_BATCH_LIMIT", "10")),
            requeue_after=int(os.getenv("REQUEUE_AFTER", "300")),
        )


@dataclass
class Config:
    """Main configuration object."""

    client: ClientConfig
    engine: EngineConfig
    reconciler: ReconcilerConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            client=ClientConfig.from_env(),
            engine=EngineConfig.from_env(),
            reconciler=ReconcilerConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            client=ClientConfig(),
            engine=EngineConfig(),
            reconciler=ReconcilerConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
