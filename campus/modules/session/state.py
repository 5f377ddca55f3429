"""
Session state - the single source of truth exposed to UI collaborators.

State is held as one frozen snapshot that is swapped wholesale on every
transition, so readers always see a complete ``{user, session, profile,
loading}`` tuple.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from ..identity.models import Session, User
from ..profile.models import Profile

logger = logging.getLogger(__name__)

StateListener = Callable[["SessionSnapshot"], None]


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session state."""

    user: Optional[User] = None
    session: Optional[Session] = None
    profile: Optional[Profile] = None
    loading: bool = True

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.session is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form; tokens are left out."""
        session = None
        if self.session is not None:
            session = {
                "token_type": self.session.token_type,
                "expires_at": self.session.expires_at,
            }
        return {
            "user": self.user.model_dump() if self.user else None,
            "session": session,
            "profile": self.profile.model_dump() if self.profile else None,
            "loading": self.loading,
        }


class SessionState:
    """Owner of the current snapshot."""

    def __init__(self):
        self._snapshot = SessionSnapshot()
        self._listeners: List[StateListener] = []

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def user(self) -> Optional[User]:
        return self._snapshot.user

    @property
    def session(self) -> Optional[Session]:
        return self._snapshot.session

    @property
    def profile(self) -> Optional[Profile]:
        return self._snapshot.profile

    @property
    def loading(self) -> bool:
        return self._snapshot.loading

    def set_authenticated(self, session: Session, profile: Optional[Profile]) -> None:
        """Populate user, session and profile in one transition."""
        self._commit(replace(self._snapshot, user=session.user, session=session, profile=profile))

    def replace_session(self, session: Session) -> bool:
        """
        Swap the token bundle only; user and profile stay as they are.

        Returns False (and changes nothing) when nobody is signed in, since a
        session without a user would be a torn state.
        """
        if self._snapshot.user is None:
            return False
        self._commit(replace(self._snapshot, session=session))
        return True

    def replace_identity(self, session: Session) -> bool:
        """
        Swap user and session; the profile is kept.

        Returns False (and changes nothing) when nobody is signed in.
        """
        if self._snapshot.user is None:
            return False
        self._commit(replace(self._snapshot, user=session.user, session=session))
        return True

    def clear(self) -> None:
        self._commit(replace(self._snapshot, user=None, session=None, profile=None))

    def finish_loading(self) -> None:
        if self._snapshot.loading:
            self._commit(replace(self._snapshot, loading=False))

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _commit(self, snapshot: SessionSnapshot) -> None:
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session state listener failed")
