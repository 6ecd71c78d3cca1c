"""
Configuration module for the MetaKube Project reconciler.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_METAKUBE_ENDPOINT = "https://metakube.syseleven.de"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass
class MetaKubeConfig:
    """MetaKube API access configuration."""

    endpoint: str = DEFAULT_METAKUBE_ENDPOINT
    request_timeout: float = 30.0  # seconds, per HTTP request
    max_connections: int = 20
    provider_config_paths: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        paths_str = os.getenv("PROVIDER_CONFIG_PATHS", "")
        paths = [p.strip() for p in paths_str.split(",") if p.strip()]

        return cls(
            endpoint=os.getenv("METAKUBE_ENDPOINT", DEFAULT_METAKUBE_ENDPOINT),
            request_timeout=_env_float("METAKUBE_REQUEST_TIMEOUT", 30.0),
            max_connections=_env_int("METAKUBE_MAX_CONNECTIONS", 20),
            provider_config_paths=paths,
        )


@dataclass
class ControllerConfig:
    """Reconciliation pass configuration."""

    reconcile_interval: int = 60  # seconds between passes of an in-sync record
    max_concurrent_reconciles: int = 5
    pass_timeout: float = 120.0  # deadline for a single pass

    # Exponential backoff configuration
    backoff_base_delay: int = 60  # base delay in seconds
    backoff_max_delay: int = 3600  # max delay in seconds (1 hour)
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            reconcile_interval=_env_int("RECONCILE_INTERVAL", 60),
            max_concurrent_reconciles=_env_int("MAX_CONCURRENT_RECONCILES", 5),
            pass_timeout=_env_float("RECONCILE_PASS_TIMEOUT", 120.0),
            backoff_base_delay=_env_int("BACKOFF_BASE_DELAY", 60),
            backoff_max_delay=_env_int("BACKOFF_MAX_DELAY", 3600),
            backoff_jitter_factor=_env_float("BACKOFF_JITTER_FACTOR", 0.1),
        )


@dataclass
class LoggingConfig:
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        return cls(log_level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Config:
    """Main configuration object."""

    metakube: MetaKubeConfig
    controller: ControllerConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            metakube=MetaKubeConfig.from_env(),
            controller=ControllerConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            metakube=MetaKubeConfig(),
            controller=ControllerConfig(),
            logging=LoggingConfig(),
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
