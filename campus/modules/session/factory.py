"""
Session Factory following Black Box Design principles.

This factory:
- Constructs the session stack based on configuration
- Wires dependencies together
- Returns only the manager facade (hiding implementation)
"""

import logging
import time
from typing import Any, Callable, Optional

import httpx

from ...config.provider import ConfigProvider, SessionConfig
from ..identity.client import HttpIdentityProvider
from ..identity.interfaces import IdentityProvider
from ..profile.loader import ProfileLoader
from ..profile.store import HttpProfileStore, ProfileStore
from ..storage import CredentialStore, InMemoryCredentialStore, RedisCredentialStore
from .manager import SessionManager
from .restart import ForceRestart, restart_process

logger = logging.getLogger(__name__)


class SessionFactory:
    """
    Factory for building the session stack.

    This is the composition root that:
    - Creates the credential store, identity client and profile loader
    - Wires them into one SessionManager
    - Returns only the public interface
    """

    @staticmethod
    def build(
        config_provider: ConfigProvider,
        redis_client: Optional[Any] = None,
        force_restart: Optional[ForceRestart] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> SessionManager:
        """
        Build the complete session stack.

        Args:
            config_provider: Configuration provider
            redis_client: Redis client, required for the redis credential backend
            force_restart: Override for the last-resort restart
            http_client: Optional shared HTTP client for the identity backend

        Returns:
            SessionManager facade (hides all implementation details)
        """
        identity_config = config_provider.get_identity_config()
        session_config = config_provider.get_session_config()
        storage_config = config_provider.get_storage_config()

        if storage_config.backend == "redis":
            if redis_client is None:
                raise ValueError("Redis credential backend selected but no Redis client was provided")
            logger.info(f"Building session stack with Redis credential store ({storage_config.key_prefix})")
            store: CredentialStore = RedisCredentialStore(redis_client, prefix=storage_config.key_prefix)
        else:
            logger.info("Building session stack with in-memory credential store")
            store = InMemoryCredentialStore()

        identity = HttpIdentityProvider(identity_config, store, http_client=http_client)
        profile_store = HttpProfileStore(identity_config, http_client=http_client)

        return SessionManager(
            identity=identity,
            profile_loader=ProfileLoader(profile_store),
            store=store,
            config=session_config,
            force_restart=force_restart or restart_process,
        )

    @staticmethod
    def build_for_testing(
        identity: IdentityProvider,
        profile_store: ProfileStore,
        store: Optional[CredentialStore] = None,
        config: Optional[SessionConfig] = None,
        force_restart: Optional[ForceRestart] = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> SessionManager:
        """
        Build the session stack around fake collaborators.

        Args:
            identity: Fake identity provider
            profile_store: Fake profile store
            store: Credential store (defaults to an empty in-memory store)
            config: Session settings
            force_restart: Restart hook; defaults to a no-op so tests never exec
            clock: Wall clock
            monotonic: Breaker clock

        Returns:
            SessionManager for testing
        """
        return SessionManager(
            identity=identity,
            profile_loader=ProfileLoader(profile_store),
            store=store if store is not None else InMemoryCredentialStore(),
            config=config,
            force_restart=force_restart or (lambda: None),
            clock=clock,
            monotonic=monotonic,
        )
