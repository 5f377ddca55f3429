"""
API Module - Black Box Interface

Purpose: Request/response contracts of the session HTTP surface
Interface: Pydantic models imported by campus.main
Hidden: Validation rules
"""

from .models import (
    AuthActionResponse,
    RefreshResponse,
    SessionStateResponse,
    SignInRequest,
    SignUpRequest,
)

__all__ = [
    "AuthActionResponse",
    "RefreshResponse",
    "SessionStateResponse",
    "SignInRequest",
    "SignUpRequest",
]
