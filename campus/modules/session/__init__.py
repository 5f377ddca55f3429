"""
Session Module - Black Box Interface

Purpose: Establish, synchronize and recover the user's authentication session
Interface: SessionManager.start(), snapshot, sign_in(), sign_out(), close()
Hidden: Startup scan, notification gating, refresh-storm breaker, state commits

Replaceable with any session backend exposing the same facade.
"""

from .breaker import BreakerConfig, BreakerState, RefreshStormBreaker
from .events import EventStreamConsumer
from .factory import SessionFactory
from .initializer import SessionInitializer
from .manager import AuthActionResult, SessionManager
from .restart import restart_process
from .state import SessionSnapshot, SessionState

__all__ = [
    "AuthActionResult",
    "BreakerConfig",
    "BreakerState",
    "EventStreamConsumer",
    "RefreshStormBreaker",
    "SessionFactory",
    "SessionInitializer",
    "SessionManager",
    "SessionSnapshot",
    "SessionState",
    "restart_process",
]
