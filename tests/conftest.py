"""
Shared pytest fixtures for Campus Session tests.

This module provides common fixtures including:
- FakeIdentityProvider: scriptable identity provider with event emission
- FakeProfileStore: profile rows with optional blocking and failures
- FakeClock: manually advanced clock for expiry and breaker tests
- Redis mocks for the credential store
"""

import asyncio
import fnmatch
import json
import os
import sys
import time
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from campus.config.provider import SessionConfig
from campus.modules.identity import AuthEvent, AuthEventKind, Session, Subscription, User
from campus.modules.profile import ProfileStoreError
from campus.modules.session import SessionFactory
from campus.modules.storage import InMemoryCredentialStore

NOW = 1_700_000_000.0


def make_session(
    user_id: str = "user-123",
    email: str = "ana@example.com",
    expires_at: Optional[float] = None,
    access_token: str = "access-1",
    refresh_token: str = "refresh-1",
) -> Session:
    """Build a session bundle for tests."""
    return Session(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=3600,
        expires_at=int(expires_at if expires_at is not None else NOW + 3600),
        user=User(id=user_id, email=email),
    )


def stored_bundle(expires_at: Optional[float]) -> str:
    """Serialized bundle as the identity client persists it."""
    payload: Dict[str, Any] = {"access_token": "a", "refresh_token": "r", "user": {"id": "user-123"}}
    if expires_at is not None:
        payload["expires_at"] = expires_at
    return json.dumps(payload)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = NOW):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Identity Provider Fake
# =============================================================================

class FakeIdentityProvider:
    """
    In-memory identity provider.

    ``get_session`` returns ``current_session`` or raises ``session_error``;
    when ``session_gate`` is set to an unset asyncio.Event the call hangs until
    the event is set.
    """

    def __init__(self):
        self.current_session: Optional[Session] = None
        self.session_error: Optional[BaseException] = None
        self.session_gate: Optional[asyncio.Event] = None
        self.sign_in_error: Optional[BaseException] = None
        self.sign_out_error: Optional[BaseException] = None
        self.refresh_error: Optional[BaseException] = None
        self.get_session_calls = 0
        self.sign_in_calls: List[tuple] = []
        self.sign_out_calls = 0
        self.subscriptions: List[Subscription] = []

    def subscribe(self, callback) -> Subscription:
        subscription = Subscription(callback, on_unsubscribe=self.subscriptions.remove)
        self.subscriptions.append(subscription)
        return subscription

    def emit(self, kind, session: Optional[Session] = None) -> None:
        event = AuthEvent(kind=kind, session=session)
        for subscription in list(self.subscriptions):
            subscription.dispatch(event)

    async def get_session(self) -> Optional[Session]:
        self.get_session_calls += 1
        if self.session_gate is not None:
            await self.session_gate.wait()
        if self.session_error is not None:
            raise self.session_error
        return self.current_session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        self.sign_in_calls.append((email, password))
        if self.sign_in_error is not None:
            raise self.sign_in_error
        session = make_session(email=email)
        self.current_session = session
        self.emit(AuthEventKind.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[Session]:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        return None

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.current_session = None
        self.emit(AuthEventKind.SIGNED_OUT)

    async def refresh_session(self) -> Session:
        if self.refresh_error is not None:
            raise self.refresh_error
        session = make_session(access_token="access-2", expires_at=NOW + 7200)
        self.current_session = session
        self.emit(AuthEventKind.TOKEN_REFRESHED, session)
        return session

    async def update_user(self, attributes: Dict[str, Any]) -> Session:
        raise NotImplementedError


# =============================================================================
# Profile Store Fake
# =============================================================================

class FakeProfileStore:
    """Profile rows keyed by user id."""

    def __init__(self, rows: Optional[Dict[str, Dict[str, Any]]] = None):
        self.rows = rows if rows is not None else {
            "user-123": {"id": "user-123", "full_name": "Ana Ruiz", "role": "estudiante"},
        }
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[BaseException] = None

    async def fetch_profile_by_identity(self, user_id: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        self.calls.append(user_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if user_id not in self.rows:
            raise ProfileStoreError(f"No profile row for {user_id}", status=406)
        return self.rows[user_id]


# =============================================================================
# Session Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeClock(start=100.0)


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def profile_store():
    return FakeProfileStore()


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore()


@pytest.fixture
def restarts():
    """Records every forced restart instead of exec'ing the process."""
    return []


@pytest.fixture
def session_config():
    return SessionConfig(init_timeout=0.2)


@pytest.fixture
def manager(identity, profile_store, credential_store, session_config, restarts, clock, monotonic):
    return SessionFactory.build_for_testing(
        identity=identity,
        profile_store=profile_store,
        store=credential_store,
        config=session_config,
        force_restart=lambda: restarts.append(time.monotonic()),
        clock=clock,
        monotonic=monotonic,
    )


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

@pytest.fixture
def mock_redis_with_data():
    """
    Redis mock with in-memory data storage for more realistic tests.

    This allows testing code that reads back what it writes.
    """
    storage = {}

    redis = AsyncMock()

    async def mock_set(key, value, *args, **kwargs):
        storage[key] = value
        return True

    async def mock_get(key):
        return storage.get(key)

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            if key in storage:
                del storage[key]
                count += 1
        return count

    async def mock_keys(pattern):
        return [k for k in storage.keys() if fnmatch.fnmatchcase(k, pattern)]

    redis.set = mock_set
    redis.get = mock_get
    redis.delete = mock_delete
    redis.keys = mock_keys
    redis._storage = storage  # Expose for test assertions

    return redis


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
