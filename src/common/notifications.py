from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional


logger = logging.getLogger(__name__)

Severity = Literal["success", "info", "warn", "error"]

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warn": logging.INFO,
    "error": logging.WARNING,
}


@dataclass(frozen=True)
class Notification:
    """A transient message for the user (the dashboard's toast).

    Attributes
    - severity: success | info | warn | error
    - summary: short title, e.g. "Éxito"
    - detail: the message body; server messages are carried verbatim
    """

    severity: Severity
    summary: str
    detail: str

    def format(self) -> str:
        marker = {"success": "✔", "info": "ℹ", "warn": "!", "error": "✖"}[self.severity]
        return f"{marker} {self.summary}: {self.detail}" if self.summary else f"{marker} {self.detail}"


class Notifier:
    """
    Collects notifications emitted by pages.

    - Keeps every notification in order; `drain()` hands them to a renderer.
    - An optional listener is called synchronously for each one.
    - Thread-safe, since concurrent loaders may report failures.
    """

    def __init__(self, listener: Optional[Callable[[Notification], None]] = None) -> None:
        self._items: List[Notification] = []
        self._lock = threading.Lock()
        self._listener = listener

    def show(self, severity: Severity, summary: str, detail: str) -> Notification:
        note = Notification(severity=severity, summary=summary, detail=detail)
        logger.log(_LOG_LEVELS[severity], "[%s] %s: %s", severity, summary, detail)
        with self._lock:
            self._items.append(note)
        if self._listener is not None:
            self._listener(note)
        return note

    def success(self, detail: str, summary: str = "Éxito") -> Notification:
        return self.show("success", summary, detail)

    def info(self, detail: str, summary: str = "Info") -> Notification:
        return self.show("info", summary, detail)

    def warn(self, detail: str, summary: str = "Atención") -> Notification:
        return self.show("warn", summary, detail)

    def error(self, detail: str, summary: str = "Error") -> Notification:
        return self.show("error", summary, detail)

    @property
    def items(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    @property
    def last(self) -> Optional[Notification]:
        with self._lock:
            return self._items[-1] if self._items else None

    def has_errors(self) -> bool:
        return any(n.severity == "error" for n in self.items)

    def drain(self) -> List[Notification]:
        with self._lock:
            out, self._items = self._items, []
        return out


__all__ = ["Notification", "Notifier", "Severity"]
