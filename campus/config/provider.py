"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import List, Optional, Protocol
from urllib.parse import urlparse


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass
class IdentityConfig:
    """Identity provider (GoTrue) configuration."""
    url: Optional[str]
    anon_key: Optional[str]
    signup_redirect_url: Optional[str]
    request_timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        """Check if the identity provider is reachable in principle."""
        return bool(self.url) and bool(self.anon_key)

    @property
    def project_ref(self) -> str:
        """First label of the provider host, e.g. ``abcd`` for ``abcd.supabase.co``."""
        if not self.url:
            return "local"
        host = urlparse(self.url).hostname or "local"
        return host.split(".")[0]

    @property
    def storage_key(self) -> str:
        """Credential store key holding the persisted session bundle."""
        return f"sb-{self.project_ref}-auth-token"


@dataclass
class SessionConfig:
    """Session lifecycle configuration."""
    init_timeout: float = 10.0
    stale_grace: float = 3600.0
    refresh_margin: float = 300.0
    breaker_window: float = 5.0
    breaker_threshold: int = 3
    key_patterns: List[str] = field(default_factory=lambda: ["sb-*", "*supabase*"])


@dataclass
class StorageConfig:
    """Credential storage configuration."""
    backend: str
    redis_url: str
    key_prefix: str


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    debug: bool
    log_level: str
    cors_origins: List[str]


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_identity_config(self) -> IdentityConfig:
        """Get identity provider configuration."""
        ...

    def get_session_config(self) -> SessionConfig:
        """Get session lifecycle configuration."""
        ...

    def get_storage_config(self) -> StorageConfig:
        """Get credential storage configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_identity_config(self) -> IdentityConfig:
        """Get identity provider configuration from environment variables."""
        url = os.getenv("SUPABASE_URL")
        return IdentityConfig(
            url=url.rstrip("/") if url else None,
            anon_key=os.getenv("SUPABASE_ANON_KEY"),
            signup_redirect_url=os.getenv("SIGNUP_REDIRECT_URL"),
            request_timeout=_env_float("IDENTITY_REQUEST_TIMEOUT", "10"),
        )

    def get_session_config(self) -> SessionConfig:
        """Get session lifecycle configuration from environment variables."""
        patterns = os.getenv("CREDENTIAL_KEY_PATTERNS", "sb-*,*supabase*").split(",")
        threshold = _env_int("BREAKER_THRESHOLD", "3")
        if threshold < 1:
            raise ValueError("BREAKER_THRESHOLD must be at least 1")

        return SessionConfig(
            init_timeout=_env_float("SESSION_INIT_TIMEOUT", "10"),
            stale_grace=_env_float("SESSION_STALE_GRACE", "3600"),
            refresh_margin=_env_float("SESSION_REFRESH_MARGIN", "300"),
            breaker_window=_env_float("BREAKER_WINDOW", "5"),
            breaker_threshold=threshold,
            key_patterns=[p.strip() for p in patterns if p.strip()],
        )

    def get_storage_config(self) -> StorageConfig:
        """Get credential storage configuration from environment variables."""
        backend = os.getenv("CREDENTIAL_BACKEND", "redis").lower()
        if backend not in ("redis", "memory"):
            raise ValueError(
                f"CREDENTIAL_BACKEND must be 'redis' or 'memory', got {backend!r}"
            )

        return StorageConfig(
            backend=backend,
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            key_prefix=os.getenv("CREDENTIAL_KEY_PREFIX", "campus:credentials:"),
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=int(os.getenv("API_PORT", "8080")),
            host=os.getenv("API_HOST", "0.0.0.0"),
            debug=_env_bool("API_DEBUG"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        )
