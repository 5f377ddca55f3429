"""
Session API data models.

These models define the request and response bodies of the HTTP surface
offered to UI collaborators.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

# Request Models (API Input)


class SignInRequest(BaseModel):
    """Email/password sign-in."""

    email: str = Field(..., description="Account email", min_length=3, max_length=320)
    password: str = Field(..., description="Account password", min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        """Reject obviously malformed addresses before calling the provider."""
        v = v.strip()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v


class SignUpRequest(SignInRequest):
    """Account creation."""

    password: str = Field(..., description="Account password", min_length=6)
    full_name: str = Field(..., description="Display name stored on the profile", min_length=1, max_length=200)


# Response Models (API Output)


class AuthActionResponse(BaseModel):
    """Result of sign-in or sign-up."""

    ok: bool
    error: Optional[str] = None
    confirmation_required: bool = False


class SessionStateResponse(BaseModel):
    """Read-only view of the session state."""

    user: Optional[Dict[str, Any]] = None
    session: Optional[Dict[str, Any]] = None
    profile: Optional[Dict[str, Any]] = None
    loading: bool
    authenticated: bool


class RefreshResponse(BaseModel):
    """Result of a forced token renewal."""

    refreshed: bool
    expires_at: Optional[int] = None
    error: Optional[str] = None
