from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Collection, List, Literal, Optional

from .store import SessionStore


logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


class GuardState(str, Enum):
    PENDING = "pending"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Decision:
    """Outcome of resolving a path.

    - render: show `target` (the requested path)
    - redirect: go to `target` instead
    - placeholder: session not restored yet; show a neutral placeholder
    """

    kind: Literal["render", "redirect", "placeholder"]
    target: str

    @property
    def is_redirect(self) -> bool:
        return self.kind == "redirect"


class Navigator:
    """Current location plus history; the only thing allowed to move it is `go`."""

    def __init__(self, start: str = LOGIN_PATH) -> None:
        self._current = start
        self._history: List[str] = [start]
        self._lock = threading.Lock()

    @property
    def current(self) -> str:
        return self._current

    @property
    def history(self) -> List[str]:
        with self._lock:
            return list(self._history)

    def go(self, path: str) -> None:
        with self._lock:
            self._current = path
            self._history.append(path)
        logger.debug("Navigated to %s", path)


class AccessGuard:
    """
    Routing gate over the session state.

    Rules
    - pending (store not initialized): placeholder, never a redirect.
    - `/login`: rendered only when logged out; otherwise redirect home.
    - known protected paths: rendered only when logged in; otherwise `/login`.
    - unknown paths: home when logged in, `/login` otherwise.
    """

    def __init__(self, store: SessionStore, routes: Optional[Collection[str]] = None) -> None:
        self._store = store
        self._routes = routes

    @property
    def state(self) -> GuardState:
        if not self._store.initialized:
            return GuardState.PENDING
        if self._store.is_authenticated:
            return GuardState.AUTHENTICATED
        return GuardState.UNAUTHENTICATED

    def resolve(self, path: str) -> Decision:
        state = self.state
        if state is GuardState.PENDING:
            return Decision("placeholder", path)

        logged_in = state is GuardState.AUTHENTICATED
        if path == LOGIN_PATH:
            return Decision("redirect", HOME_PATH) if logged_in else Decision("render", path)

        if self._routes is not None and not self._is_known(path):
            return Decision("redirect", HOME_PATH if logged_in else LOGIN_PATH)

        if not logged_in:
            return Decision("redirect", LOGIN_PATH)
        return Decision("render", path)

    def _is_known(self, path: str) -> bool:
        for route in self._routes or ():
            if route == path:
                return True
            # "/ventas/<id>" style patterns
            if route.endswith("/*") and path.startswith(route[:-1]) and len(path) > len(route) - 1:
                return True
        return False


class SessionExpiryHandler:
    """
    The single authorization-failure observer.

    Clears the session first, then forces navigation to the login screen
    unless the user is already there (no redirect loop).
    """

    def __init__(self, store: SessionStore, navigator: Navigator) -> None:
        self._store = store
        self._navigator = navigator

    def __call__(self, _error: object = None) -> None:
        self._store.logout()
        if self._navigator.current != LOGIN_PATH:
            logger.warning("Session expired; redirecting to %s", LOGIN_PATH)
            self._navigator.go(LOGIN_PATH)


__all__ = [
    "AccessGuard",
    "Decision",
    "GuardState",
    "Navigator",
    "SessionExpiryHandler",
    "LOGIN_PATH",
    "HOME_PATH",
]
