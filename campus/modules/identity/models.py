"""
Identity data models.

Sessions and users are frozen: every update produces a new object, so the
session state never holds a half-updated bundle.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import jwt
from pydantic import BaseModel, ConfigDict, Field

# Substrings GoTrue puts in refresh failures that cannot be retried
INVALID_REFRESH_MARKERS = ("Invalid Refresh Token", "Refresh Token Not Found")
INVALID_REFRESH_CODES = {"refresh_token_not_found", "refresh_token_already_used"}


class AuthEventKind(str, Enum):
    """Lifecycle notifications emitted by the identity provider."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


class User(BaseModel):
    """Authenticated identity as returned by the provider."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    app_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Session(BaseModel):
    """Token bundle for an authenticated identity plus its expiry."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    user: User

    @classmethod
    def from_token_response(cls, payload: Dict[str, Any], now: Optional[float] = None) -> "Session":
        """
        Build a session from a GoTrue token response.

        ``expires_at`` is taken from the payload, computed from ``expires_in``,
        or read from the access token's ``exp`` claim, in that order.
        """
        data = dict(payload)
        if data.get("expires_at") is None:
            now = time.time() if now is None else now
            if data.get("expires_in") is not None:
                data["expires_at"] = int(now + int(data["expires_in"]))
            else:
                data["expires_at"] = _token_expiry(data.get("access_token", ""))
        return cls.model_validate(data)

    @classmethod
    def from_storage(cls, raw: str) -> "Session":
        return cls.model_validate_json(raw)

    def to_storage(self) -> str:
        return self.model_dump_json()

    def expires_within(self, seconds: float, now: Optional[float] = None) -> bool:
        """True if the session expires in less than ``seconds`` (or has no expiry)."""
        if self.expires_at is None:
            return True
        now = time.time() if now is None else now
        return self.expires_at - now < seconds


def _token_expiry(access_token: str) -> Optional[int]:
    # The signature is the provider's business; only the claim is needed here
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = claims.get("exp")
    return int(exp) if exp is not None else None


@dataclass(frozen=True)
class AuthEvent:
    """A single notification from the identity provider."""

    kind: Union[AuthEventKind, str]
    session: Optional[Session] = None


class AuthError(Exception):
    """Error reported by the identity provider."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    @property
    def is_invalid_refresh_token(self) -> bool:
        """The stored refresh credential is unusable and must be discarded."""
        if self.code in INVALID_REFRESH_CODES:
            return True
        return any(marker in self.message for marker in INVALID_REFRESH_MARKERS)

    def __repr__(self) -> str:
        return f"AuthError(message={self.message!r}, status={self.status}, code={self.code!r})"
