"""Identity provider interfaces following Black Box Design principles."""
from typing import Any, Callable, Dict, Optional, Protocol

from .models import AuthEvent, Session


EventCallback = Callable[[AuthEvent], None]


class Subscription:
    """
    Handle returned by ``IdentityProvider.subscribe``.

    The provider calls ``dispatch`` for every notification; the subscriber
    calls ``unsubscribe`` once it no longer wants them. Dispatch after
    unsubscribe is a no-op.
    """

    def __init__(self, callback: EventCallback, on_unsubscribe: Optional[Callable[["Subscription"], None]] = None):
        self._callback = callback
        self._on_unsubscribe = on_unsubscribe
        self.active = True

    def dispatch(self, event: AuthEvent) -> None:
        if not self.active:
            return
        self._callback(event)

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_unsubscribe:
            self._on_unsubscribe(self)


class IdentityProvider(Protocol):
    """Protocol for identity provider clients - allows swappable implementations."""

    async def get_session(self) -> Optional[Session]:
        """
        Return the current session, refreshing it first if it is about to expire.

        Raises:
            AuthError: If the provider rejects the stored credentials
        """
        ...

    def subscribe(self, callback: EventCallback) -> Subscription:
        """Register ``callback`` for lifecycle notifications."""
        ...

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        ...

    async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[Session]:
        """Create an account; returns None when email confirmation is pending."""
        ...

    async def sign_out(self) -> None:
        ...

    async def refresh_session(self) -> Session:
        ...

    async def update_user(self, attributes: Dict[str, Any]) -> Session:
        ...
