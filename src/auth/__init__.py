"""
Session and access control for the admin console.

The session (user + bearer token) is persisted locally so a restart keeps the
user logged in; `AccessGuard` gates navigation on it.
"""

from .guard import AccessGuard, Decision, GuardState, Navigator, SessionExpiryHandler
from .models import Session, User
from .storage import JsonFileStorage, MemoryStorage
from .store import SessionStore

__all__ = [
    "AccessGuard",
    "Decision",
    "GuardState",
    "JsonFileStorage",
    "MemoryStorage",
    "Navigator",
    "Session",
    "SessionExpiryHandler",
    "SessionStore",
    "User",
]
