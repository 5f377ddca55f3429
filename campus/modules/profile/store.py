"""
Profile record store.

The session manager only depends on ``ProfileStore``; ``HttpProfileStore``
reads the ``profiles`` table through the backend's PostgREST endpoint.
"""

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from ...config.provider import IdentityConfig

logger = logging.getLogger(__name__)


class ProfileStoreError(Exception):
    """Raised when a profile record cannot be fetched."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ProfileStore(Protocol):
    """Protocol for profile record lookups."""

    async def fetch_profile_by_identity(self, user_id: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch the raw profile row for ``user_id``.

        Raises:
            ProfileStoreError: If the row is missing or the request fails
        """
        ...


class HttpProfileStore:
    """PostgREST-backed profile lookups."""

    # Ask PostgREST for exactly one object instead of an array
    SINGLE_OBJECT = "application/vnd.pgrst.object+json"

    def __init__(self, config: IdentityConfig, http_client: Optional[httpx.AsyncClient] = None, table: str = "profiles"):
        """
        Initialize the store.

        Args:
            config: Identity configuration (backend URL and anon key)
            http_client: Optional pre-built client
            table: Table holding profile rows
        """
        self.config = config
        self.table = table
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            base_url=config.url,
            timeout=config.request_timeout,
        )

    async def fetch_profile_by_identity(self, user_id: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        headers = {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {access_token or self.config.anon_key}",
            "Accept": self.SINGLE_OBJECT,
        }
        try:
            response = await self.http.get(
                f"/rest/v1/{self.table}",
                params={"id": f"eq.{user_id}", "select": "*"},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise ProfileStoreError(f"Profile request failed: {e}") from e

        if response.status_code == 406:
            raise ProfileStoreError(f"No profile row for {user_id}", status=406)
        if response.status_code >= 400:
            raise ProfileStoreError(
                f"Profile request returned HTTP {response.status_code}: {response.text}",
                status=response.status_code,
            )
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()
