"""
GoTrue identity provider client implementing the IdentityProvider interface.

This module follows Black Box Design principles:
- Accepts configuration and the credential store via dependency injection
- Persists the session bundle under one store key
- Emits lifecycle notifications to subscribers
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ...config.provider import IdentityConfig
from ..storage import CredentialStore
from .interfaces import EventCallback, Subscription
from .models import AuthError, AuthEvent, AuthEventKind, Session, User

logger = logging.getLogger(__name__)

# Refresh this many seconds before the access token actually expires
EXPIRY_MARGIN = 10


class HttpIdentityProvider:
    """
    Identity provider backed by a GoTrue REST endpoint.

    This class is a black box that:
    - Signs users in and out over HTTP
    - Keeps the current session in the credential store
    - Refreshes an expiring session transparently in ``get_session``
    - Notifies subscribers of every lifecycle change
    """

    def __init__(
        self,
        config: IdentityConfig,
        store: CredentialStore,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the client with injected dependencies.

        Args:
            config: Identity provider configuration
            store: Credential store used to persist the session bundle
            http_client: Optional pre-built client (tests pass a mock transport)
            clock: Wall-clock source in epoch seconds
        """
        if not config.is_configured:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required for the identity provider")

        self.config = config
        self.store = store
        self.storage_key = config.storage_key
        self.clock = clock
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            base_url=config.url,
            timeout=config.request_timeout,
        )
        self._subscriptions: List[Subscription] = []

    # Subscriptions

    def subscribe(self, callback: EventCallback) -> Subscription:
        subscription = Subscription(callback, on_unsubscribe=self._subscriptions.remove)
        self._subscriptions.append(subscription)
        return subscription

    def _emit(self, kind: AuthEventKind, session: Optional[Session]) -> None:
        event = AuthEvent(kind=kind, session=session)
        logger.debug(f"Emitting {kind.value} to {len(self._subscriptions)} subscriber(s)")
        for subscription in list(self._subscriptions):
            try:
                subscription.dispatch(event)
            except Exception:
                logger.exception(f"Subscriber failed while handling {kind.value}")

    # Session access

    async def get_session(self) -> Optional[Session]:
        session = await self._load()
        if session is None:
            return None

        if session.expires_within(EXPIRY_MARGIN, now=self.clock()):
            logger.info("Stored session is expiring, refreshing")
            return await self._refresh(session.refresh_token)

        return session

    async def refresh_session(self) -> Session:
        session = await self._load()
        if session is None:
            raise AuthError("Auth session missing!", status=400, code="session_not_found")
        return await self._refresh(session.refresh_token)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        payload = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = Session.from_token_response(payload, now=self.clock())
        await self._save(session)
        self._emit(AuthEventKind.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[Session]:
        params = {}
        if self.config.signup_redirect_url:
            params["redirect_to"] = self.config.signup_redirect_url

        body: Dict[str, Any] = {"email": email, "password": password}
        if full_name:
            body["data"] = {"full_name": full_name}

        payload = await self._request("POST", "/auth/v1/signup", params=params, json=body)

        # Without an access token the account awaits email confirmation
        if not payload.get("access_token"):
            logger.info(f"Sign-up for {email} pending email confirmation")
            return None

        session = Session.from_token_response(payload, now=self.clock())
        await self._save(session)
        self._emit(AuthEventKind.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        session = await self._load()
        try:
            if session is not None:
                await self._request("POST", "/auth/v1/logout", access_token=session.access_token)
        except AuthError as e:
            # Token already revoked or unknown: the local sign-out still stands
            if e.status not in (401, 403, 404):
                raise
            logger.debug(f"Ignoring logout rejection: {e.message}")
        finally:
            await self.store.remove(self.storage_key)
            self._emit(AuthEventKind.SIGNED_OUT, None)

    async def update_user(self, attributes: Dict[str, Any]) -> Session:
        session = await self.get_session()
        if session is None:
            raise AuthError("Auth session missing!", status=400, code="session_not_found")

        payload = await self._request("PUT", "/auth/v1/user", json=attributes, access_token=session.access_token)
        updated = session.model_copy(update={"user": User.model_validate(payload)})
        await self._save(updated)
        self._emit(AuthEventKind.USER_UPDATED, updated)
        return updated

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    # Internals

    async def _refresh(self, refresh_token: str) -> Session:
        try:
            payload = await self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": refresh_token},
            )
        except AuthError as e:
            if e.is_invalid_refresh_token:
                logger.warning(f"Refresh token rejected, dropping stored session: {e.message}")
                await self.store.remove(self.storage_key)
            raise

        session = Session.from_token_response(payload, now=self.clock())
        await self._save(session)
        self._emit(AuthEventKind.TOKEN_REFRESHED, session)
        return session

    async def _load(self) -> Optional[Session]:
        raw = await self.store.get(self.storage_key)
        if not raw:
            return None
        try:
            return Session.from_storage(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable session bundle: {e}")
            await self.store.remove(self.storage_key)
            return None

    async def _save(self, session: Session) -> None:
        await self.store.set(self.storage_key, session.to_storage())

    def _headers(self, access_token: Optional[str]) -> Dict[str, str]:
        return {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {access_token or self.config.anon_key}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        access_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = await self.http.request(
            method,
            path,
            params=params,
            json=json,
            headers=self._headers(access_token),
        )
        if response.status_code >= 400:
            raise _error_from_response(response)
        if not response.content:
            return {}
        return response.json()


def _error_from_response(response: httpx.Response) -> AuthError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or body.get("error")
        or response.text
        or f"HTTP {response.status_code}"
    )
    code = body.get("error_code")
    if code is None and isinstance(body.get("error"), str):
        code = body["error"]
    return AuthError(str(message), status=response.status_code, code=code)
