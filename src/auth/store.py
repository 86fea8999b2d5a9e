from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .models import Session, User
from .storage import SessionStorage


logger = logging.getLogger(__name__)

USER_KEY = "user"
TOKEN_KEY = "token"


class SessionStore:
    """
    Single source of truth for "who is logged in".

    Usage
    - `initialize()` once at startup restores a persisted session without any
      validation round-trip; an invalid token surfaces on the first API call.
    - `login(user, token)` only after a successful authentication exchange.
    - `logout()` clears process state and storage; calling it twice is fine.

    The two persisted entries (`user`, `token`) are always written and
    removed together. Mutations are serialized with a lock.
    """

    def __init__(self, storage: SessionStorage) -> None:
        self._storage = storage
        self._session: Optional[Session] = None
        self._initialized = False
        self._lock = threading.RLock()

    # -------- Accessors --------
    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def user(self) -> Optional[User]:
        s = self._session
        return s.user if s is not None else None

    @property
    def token(self) -> Optional[str]:
        s = self._session
        return s.token if s is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    # -------- Lifecycle --------
    def initialize(self) -> Optional[Session]:
        """Restore the persisted session, if any. Returns it (or None)."""
        with self._lock:
            raw_user = self._storage.get(USER_KEY)
            token = self._storage.get(TOKEN_KEY)
            self._session = None
            if raw_user is not None and token:
                try:
                    self._session = Session(user=User.model_validate(json.loads(raw_user)), token=token)
                except (ValueError, ValidationError) as ex:
                    logger.warning("Persisted session is invalid (%s); clearing it", ex)
            if self._session is None and (raw_user is not None or token is not None):
                # Half a session is no session
                self._clear_storage()
            self._initialized = True
            if self._session is not None:
                logger.info("Session restored for %s", self._session.user.email)
            return self._session

    def login(self, user: Union[User, Dict[str, Any]], token: str) -> Session:
        """Store the authenticated user + token in memory and in storage."""
        u = user if isinstance(user, User) else User.model_validate(user or {})
        session = Session(user=u, token=token)
        with self._lock:
            self._session = session
            self._storage.set(USER_KEY, u.model_dump_json())
            self._storage.set(TOKEN_KEY, session.token)
            self._initialized = True
        logger.info("Logged in as %s", u.email)
        return session

    def logout(self) -> None:
        with self._lock:
            had_session = self._session is not None
            self._session = None
            self._clear_storage()
            self._initialized = True
        if had_session:
            logger.info("Logged out")

    def _clear_storage(self) -> None:
        self._storage.remove(USER_KEY)
        self._storage.remove(TOKEN_KEY)


__all__ = ["SessionStore", "USER_KEY", "TOKEN_KEY"]
