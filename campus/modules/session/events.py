"""
Event stream consumer.

Applies identity-provider notifications to the session state once startup has
finished. Notifications are queued on arrival and handled one at a time, in
order, by a single worker task.
"""

import asyncio
import inspect
import logging
from typing import Optional

from ..identity.interfaces import IdentityProvider, Subscription
from ..identity.models import AuthEvent, AuthEventKind
from ..profile.loader import ProfileLoader
from ..storage import CredentialStore, CredentialStoreError
from .breaker import RefreshStormBreaker
from .restart import ForceRestart
from .state import SessionState

logger = logging.getLogger(__name__)


def _kind_name(event: AuthEvent) -> str:
    return getattr(event.kind, "value", str(event.kind))


class EventStreamConsumer:
    def __init__(
        self,
        *,
        state: SessionState,
        gate: asyncio.Event,
        breaker: RefreshStormBreaker,
        profile_loader: ProfileLoader,
        store: CredentialStore,
        force_restart: ForceRestart,
    ):
        self.state = state
        self.gate = gate
        self.breaker = breaker
        self.profile_loader = profile_loader
        self.store = store
        self.force_restart = force_restart

        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None

    def attach(self, identity: IdentityProvider) -> Subscription:
        """Subscribe to ``identity``; notifications flow into ``dispatch``."""
        if self._subscription is not None:
            raise RuntimeError("Event stream consumer is already subscribed")
        self._subscription = identity.subscribe(self.dispatch)
        return self._subscription

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())

    def dispatch(self, event: AuthEvent) -> None:
        """Entry point called by the subscription for every notification."""
        if not self.gate.is_set():
            logger.debug(f"Ignoring {_kind_name(event)} received before initialization completed")
            return
        self._queue.put_nowait(event)

    async def drain(self) -> None:
        """Wait until every queued notification has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            except Exception:
                logger.exception(f"Failed to apply {_kind_name(event)}")
            finally:
                self._queue.task_done()

    async def handle(self, event: AuthEvent) -> None:
        """Apply one notification to the session state."""
        kind = _kind_name(event)
        if not self.gate.is_set():
            logger.debug(f"Ignoring {kind} received before initialization completed")
            return

        logger.info(f"Auth event: {kind}")

        if kind == AuthEventKind.TOKEN_REFRESHED.value:
            await self._on_token_refreshed(event)
        elif kind == AuthEventKind.SIGNED_IN.value:
            await self._on_signed_in(event)
        elif kind == AuthEventKind.SIGNED_OUT.value:
            self.state.clear()
        elif kind == AuthEventKind.USER_UPDATED.value:
            if event.session is None:
                logger.warning("USER_UPDATED without a session, ignoring")
                return
            if not self.state.replace_identity(event.session):
                logger.debug("USER_UPDATED while signed out, ignoring")
        else:
            logger.debug(f"No state change for {kind}")

    async def _on_token_refreshed(self, event: AuthEvent) -> None:
        if self.breaker.tripped:
            logger.warning("Refresh breaker already tripped, dropping renewal")
            return

        if self.breaker.record_renewal():
            await self._recover_from_storm()
            return

        if event.session is None:
            return
        if not self.state.replace_session(event.session):
            logger.debug("TOKEN_REFRESHED while signed out, ignoring")

    async def _on_signed_in(self, event: AuthEvent) -> None:
        session = event.session
        if session is None:
            logger.warning("SIGNED_IN without a session, ignoring")
            return

        profile = await self.profile_loader.fetch_profile(session)
        self.state.set_authenticated(session, profile)

    async def _recover_from_storm(self) -> None:
        try:
            await self.store.remove_all()
        except CredentialStoreError as e:
            logger.error(f"Failed to wipe credential store during storm recovery: {e}")

        self.state.clear()

        result = self.force_restart()
        if inspect.isawaitable(result):
            await result
