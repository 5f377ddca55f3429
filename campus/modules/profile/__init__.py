"""
Profile Module - Black Box Interface

Purpose: Load the application profile for an authenticated identity
Interface: ProfileLoader.fetch_profile()
Hidden: Row store access, role normalization, duplicate-fetch suppression

Can be replaced with any profile source without affecting the session manager.
"""

from .loader import ProfileLoader
from .models import KNOWN_ROLES, Profile, normalize_role
from .singleflight import SingleFlight
from .store import HttpProfileStore, ProfileStore, ProfileStoreError

__all__ = [
    "HttpProfileStore",
    "KNOWN_ROLES",
    "Profile",
    "ProfileLoader",
    "ProfileStore",
    "ProfileStoreError",
    "SingleFlight",
    "normalize_role",
]
