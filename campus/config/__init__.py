"""Configuration providers for the session manager and its HTTP surface."""

from .provider import (
    APIConfig,
    ConfigProvider,
    EnvConfigProvider,
    IdentityConfig,
    SessionConfig,
    StorageConfig,
)

__all__ = [
    "APIConfig",
    "ConfigProvider",
    "EnvConfigProvider",
    "IdentityConfig",
    "SessionConfig",
    "StorageConfig",
]
