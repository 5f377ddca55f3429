"""
Session manager facade.

Owns one instance of every stateful piece (state, gate, breaker, single-flight
table) so independent managers never share flags.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ...config.provider import SessionConfig
from ..identity.interfaces import IdentityProvider
from ..identity.models import AuthError, Session, User
from ..profile.loader import ProfileLoader
from ..profile.models import Profile
from ..storage import CredentialStore, CredentialStoreError
from .breaker import BreakerConfig, RefreshStormBreaker
from .events import EventStreamConsumer
from .initializer import SessionInitializer
from .restart import ForceRestart, restart_process
from .state import SessionSnapshot, SessionState, StateListener

logger = logging.getLogger(__name__)


@dataclass
class AuthActionResult:
    """Outcome of a sign-in or sign-up request."""
    error: Optional[str] = None
    confirmation_required: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class SessionManager:
    """
    Session lifecycle manager.

    This is the only object UI collaborators talk to:
    - ``snapshot`` is the read-only view of ``{user, session, profile, loading}``
    - ``sign_in`` / ``sign_up`` / ``sign_out`` delegate to the identity provider
    - state updates arrive through the provider's notifications
    """

    def __init__(
        self,
        identity: IdentityProvider,
        profile_loader: ProfileLoader,
        store: CredentialStore,
        config: Optional[SessionConfig] = None,
        force_restart: ForceRestart = restart_process,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the manager with injected collaborators.

        Args:
            identity: Identity provider client
            profile_loader: Profile loader (owns the single-flight table)
            store: Persisted credential store
            config: Session lifecycle settings
            force_restart: Last-resort recovery, called when the refresh breaker trips
            clock: Wall-clock source for expiry checks
            monotonic: Monotonic clock for the refresh breaker
        """
        self.identity = identity
        self.profile_loader = profile_loader
        self.store = store
        self.config = config or SessionConfig()
        self.clock = clock

        self.state = SessionState()
        self._gate = asyncio.Event()
        self.breaker = RefreshStormBreaker(
            BreakerConfig(
                window_seconds=self.config.breaker_window,
                threshold=self.config.breaker_threshold,
            ),
            clock=monotonic,
        )
        self.consumer = EventStreamConsumer(
            state=self.state,
            gate=self._gate,
            breaker=self.breaker,
            profile_loader=profile_loader,
            store=store,
            force_restart=force_restart,
        )
        self.initializer = SessionInitializer(
            store=store,
            identity=identity,
            profile_loader=profile_loader,
            state=self.state,
            gate=self._gate,
            config=self.config,
            clock=clock,
        )

        self._init_task: Optional[asyncio.Task] = None
        self._started = False
        self._closed = False

    # Read-only view

    @property
    def snapshot(self) -> SessionSnapshot:
        return self.state.snapshot

    @property
    def user(self) -> Optional[User]:
        return self.state.user

    @property
    def session(self) -> Optional[Session]:
        return self.state.session

    @property
    def profile(self) -> Optional[Profile]:
        return self.state.profile

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def initialized(self) -> bool:
        return self._gate.is_set()

    def add_listener(self, listener: StateListener) -> None:
        self.state.add_listener(listener)

    def remove_listener(self, listener: StateListener) -> None:
        self.state.remove_listener(listener)

    # Lifecycle

    async def start(self, wait: bool = True) -> None:
        """
        Subscribe to notifications and run the initializer.

        Args:
            wait: Block until initialization completes (or times out)
        """
        if self._started:
            raise RuntimeError("SessionManager already started")
        self._started = True

        self.consumer.attach(self.identity)
        self.consumer.start()
        self._init_task = asyncio.create_task(self.initializer.run())
        if wait:
            await self._init_task

    async def wait_initialized(self) -> None:
        await self._gate.wait()

    async def close(self) -> None:
        """Unsubscribe, cancel pending timers and stop background work."""
        if self._closed:
            return
        self._closed = True

        await self.consumer.stop()
        self.initializer.cancel()
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
            try:
                await self._init_task
            except asyncio.CancelledError:
                pass

        for client in (self.identity, self.profile_loader.store):
            if hasattr(client, "aclose"):
                await client.aclose()
        logger.info("Session manager closed")

    async def __aenter__(self) -> "SessionManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Actions

    async def sign_in(self, email: str, password: str) -> AuthActionResult:
        """Sign in; the resulting SIGNED_IN notification updates the state."""
        try:
            await self.identity.sign_in_with_password(email, password)
        except AuthError as e:
            logger.info(f"Sign-in rejected for {email}: {e.message}")
            return AuthActionResult(error=e.message)
        except Exception as e:
            logger.error(f"Unexpected error signing in {email}: {e}")
            return AuthActionResult(error="Unexpected error while signing in")
        return AuthActionResult()

    async def sign_up(self, email: str, password: str, full_name: str) -> AuthActionResult:
        try:
            session = await self.identity.sign_up(email, password, full_name)
        except AuthError as e:
            logger.info(f"Sign-up rejected for {email}: {e.message}")
            return AuthActionResult(error=e.message)
        except Exception as e:
            logger.error(f"Unexpected error signing up {email}: {e}")
            return AuthActionResult(error="Unexpected error while creating the account")
        return AuthActionResult(confirmation_required=session is None)

    async def sign_out(self) -> None:
        """Sign out remotely, then clear local state and persisted credentials."""
        try:
            await self.identity.sign_out()
        except Exception as e:
            logger.error(f"Error signing out: {e}")
        finally:
            self.state.clear()
            try:
                await self.store.remove_all()
            except CredentialStoreError as e:
                logger.error(f"Failed to clear credential store on sign-out: {e}")

    async def refresh_session(self) -> Session:
        """
        Force a token renewal.

        Raises:
            AuthError: If the provider rejects the refresh; an invalid refresh
                credential also signs the user out
        """
        try:
            return await self.identity.refresh_session()
        except AuthError as e:
            logger.error(f"Failed to refresh session: {e.message}")
            await self.handle_auth_error(e)
            raise

    async def check_and_refresh_session(self) -> bool:
        """
        Renew the session if it expires within the configured margin.

        Returns:
            True if an active session exists afterwards
        """
        try:
            session = await self.identity.get_session()
        except Exception as e:
            logger.error(f"Error checking session: {e}")
            return False

        if session is None:
            logger.info("No active session found")
            return False

        if session.expires_within(self.config.refresh_margin, now=self.clock()):
            logger.info("Session expiring soon, refreshing")
            try:
                await self.refresh_session()
            except AuthError:
                return False
        return True

    async def handle_auth_error(self, error: Exception) -> bool:
        """
        Recover from an unusable refresh credential.

        Returns:
            True if the error was an invalid refresh credential and the user
            has been signed out
        """
        if not isinstance(error, AuthError) or not error.is_invalid_refresh_token:
            return False

        logger.warning(f"Session expired, signing out: {error.message}")
        await self.sign_out()
        return True
