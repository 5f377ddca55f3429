"""
Session initializer.

Produces the first authoritative session state:

1. Arm a timeout; when it fires the state is forced to logged-out and the
   running sequence is cancelled.
2. Scan the credential store; one unreadable or long-expired session entry
   wipes the whole store.
3. Ask the identity provider for the current session.
4. Load the profile for that identity.
5. Commit the result, finish loading and open the initialization gate.
"""

import asyncio
import fnmatch
import json
import logging
import time
from typing import Callable, Optional

from ...config.provider import SessionConfig
from ..identity.interfaces import IdentityProvider
from ..identity.models import AuthError, Session
from ..profile.loader import ProfileLoader
from ..profile.models import Profile
from ..storage import CredentialStore, CredentialStoreError
from .state import SessionState

logger = logging.getLogger(__name__)


class SessionInitializer:
    def __init__(
        self,
        *,
        store: CredentialStore,
        identity: IdentityProvider,
        profile_loader: ProfileLoader,
        state: SessionState,
        gate: asyncio.Event,
        config: SessionConfig,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize with injected collaborators.

        Args:
            store: Persisted credential store to scan
            identity: Identity provider client
            profile_loader: Single-flight profile loader
            state: Session state to populate
            gate: Initialization gate, set exactly once when this run completes
            config: Timeout and staleness settings
            clock: Wall-clock source in epoch seconds (compared with ``expires_at``)
        """
        self.store = store
        self.identity = identity
        self.profile_loader = profile_loader
        self.state = state
        self.gate = gate
        self.config = config
        self.clock = clock

        self.timed_out = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        """Run the startup sequence to completion or until the timeout fires."""
        if self._task is not None:
            raise RuntimeError("Session initializer can only run once")

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.config.init_timeout, self._on_timeout)
        self._task = asyncio.create_task(self._initialize())
        try:
            await self._task
        except asyncio.CancelledError:
            # Cancelled by our own timeout: the state has already been reset
            if not self.timed_out:
                self._cancel_timer()
                raise

    def cancel(self) -> None:
        """Tear down: clear the timer and abandon the sequence without touching state."""
        self._cancel_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _initialize(self) -> None:
        # The timer stays armed until _complete runs, so every exit path opens the gate
        try:
            await self._restore()
        except Exception:
            logger.exception("Unexpected error during session initialization")
            self._complete(None)

    async def _restore(self) -> None:
        try:
            corrupt_key = await self._find_corrupt_entry()
        except CredentialStoreError as e:
            logger.error(f"Credential store unreadable during startup: {e}")
            self._complete(None)
            return

        if corrupt_key is not None:
            await self._wipe_store()
            self._complete(None)
            return

        try:
            session = await self.identity.get_session()
        except AuthError as e:
            logger.error(f"Error getting session: {e.message}")
            if e.is_invalid_refresh_token:
                await self._wipe_store()
            self._complete(None)
            return
        except Exception as e:
            logger.error(f"Error initializing auth: {e}")
            self._complete(None)
            return

        if session is None:
            logger.info("No active session found")
            self._complete(None)
            return

        profile = await self.profile_loader.fetch_profile(session)
        self._complete(session, profile)

    async def _find_corrupt_entry(self) -> Optional[str]:
        now = self.clock()
        for key in await self.store.list_keys():
            if not self._is_session_key(key):
                continue

            try:
                raw = await self.store.get(key)
            except Exception as e:
                logger.warning(f"Credential entry {key} is unreadable ({e}), wiping credential store")
                return key
            if raw is None:
                continue

            problem = self._inspect(raw, now)
            if problem:
                logger.warning(f"Credential entry {key} is {problem}, wiping credential store")
                return key
        return None

    def _is_session_key(self, key: str) -> bool:
        return any(fnmatch.fnmatchcase(key, pattern) for pattern in self.config.key_patterns)

    def _inspect(self, raw: str, now: float) -> Optional[str]:
        try:
            data = json.loads(raw)
        except ValueError:
            return "unparsable"

        if not isinstance(data, dict) or data.get("expires_at") is None:
            return None

        try:
            expires_at = float(data["expires_at"])
        except (TypeError, ValueError):
            return "carrying an unreadable expiry"

        if expires_at < now - self.config.stale_grace:
            return "expired"
        return None

    async def _wipe_store(self) -> None:
        try:
            await self.store.remove_all()
        except CredentialStoreError as e:
            logger.error(f"Failed to wipe credential store: {e}")

    def _complete(self, session: Optional[Session], profile: Optional[Profile] = None) -> None:
        # No await between this check and the commit below
        if self.timed_out:
            logger.info("Discarding initialization result that arrived after the timeout")
            return

        self._cancel_timer()
        if session is not None:
            self.state.set_authenticated(session, profile)
        else:
            self.state.clear()
        self.state.finish_loading()
        self.gate.set()

    def _on_timeout(self) -> None:
        self._timer = None
        if self.gate.is_set():
            return

        self.timed_out = True
        logger.warning(f"Session initialization exceeded {self.config.init_timeout}s, continuing signed out")
        self.state.clear()
        self.state.finish_loading()
        self.gate.set()

        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
