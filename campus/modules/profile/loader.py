import logging
from typing import Optional

from pydantic import ValidationError

from ..identity.models import Session
from .models import Profile
from .singleflight import SingleFlight
from .store import ProfileStore, ProfileStoreError

logger = logging.getLogger(__name__)


class ProfileLoader:
    """
    Fetches the profile for a session identity.

    Never raises: remote failures and overlapping calls both yield None.
    """

    def __init__(self, store: ProfileStore, single_flight: Optional[SingleFlight] = None):
        self.store = store
        self.single_flight = single_flight or SingleFlight()

    async def fetch_profile(self, session: Session) -> Optional[Profile]:
        """
        Fetch the profile for ``session.user``.

        Args:
            session: Active session; its access token authorizes the lookup

        Returns:
            Profile with the user's email attached, or None on error or when a
            fetch for the same identity is already running
        """
        user_id = session.user.id
        if self.single_flight.in_flight(user_id):
            logger.debug(f"Profile fetch for {user_id} already in flight, skipping")
            return None

        return await self.single_flight.run(user_id, lambda: self._fetch(session))

    async def _fetch(self, session: Session) -> Optional[Profile]:
        user = session.user
        try:
            row = await self.store.fetch_profile_by_identity(user.id, session.access_token)
        except ProfileStoreError as e:
            logger.error(f"Error fetching profile for {user.id}: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error fetching profile for {user.id}: {e}")
            return None

        if not row:
            return None

        try:
            return Profile.model_validate({**row, "email": user.email})
        except ValidationError as e:
            logger.error(f"Malformed profile row for {user.id}: {e}")
            return None
