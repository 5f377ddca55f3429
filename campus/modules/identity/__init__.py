"""
Identity Module - Black Box Interface

Purpose: Talk to the hosted identity provider
Interface: get_session(), subscribe(), sign_in_with_password(), sign_out()
Hidden: REST endpoints, token persistence, refresh mechanics

This module can be replaced with any other identity provider client without
affecting the session manager.
"""

from .client import HttpIdentityProvider
from .interfaces import EventCallback, IdentityProvider, Subscription
from .models import AuthError, AuthEvent, AuthEventKind, Session, User

__all__ = [
    "AuthError",
    "AuthEvent",
    "AuthEventKind",
    "EventCallback",
    "HttpIdentityProvider",
    "IdentityProvider",
    "Session",
    "Subscription",
    "User",
]
