from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet


# Environment variable names
ENV_API_URL = "EXOGENA_API_URL"
ENV_SESSION_FILE = "EXOGENA_SESSION_FILE"
ENV_FERNET_KEY = "EXOGENA_FERNET_KEY"
ENV_TIMEOUT = "EXOGENA_TIMEOUT"
ENV_LOG_LEVEL = "EXOGENA_LOG_LEVEL"

DEFAULT_API_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 15.0
DEFAULT_LOG_LEVEL = "WARNING"


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _default_session_file() -> Path:
    return Path.home() / ".exogena" / "session.json"


def _parse_timeout(raw: Optional[str]) -> float:
    if raw is None:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError as ex:
        raise RuntimeError(f"Invalid configuration {ENV_TIMEOUT}: {raw!r}") from ex
    if value <= 0:
        raise RuntimeError(f"Invalid configuration {ENV_TIMEOUT}: must be > 0")
    return value


def _parse_fernet_key(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    try:
        Fernet(raw.encode("utf-8"))
    except ValueError as ex:
        # Never echo the key itself
        raise RuntimeError(f"Invalid configuration {ENV_FERNET_KEY}: not a Fernet key") from ex
    return raw


def _parse_log_level(raw: str) -> int:
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        raise RuntimeError(f"Invalid configuration {ENV_LOG_LEVEL}: {raw!r}")
    return level


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration for the admin console.

    Fields
    - api_url: base URL of the remote API (no trailing slash).
    - session_file: where the persisted session (user + token) lives.
    - fernet_key: optional key; when set the session file is encrypted at rest.
    - timeout: HTTP timeout in seconds.
    - log_level: numeric logging level.
    """

    api_url: str = DEFAULT_API_URL
    session_file: Path = _default_session_file()
    fernet_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    log_level: int = logging.WARNING

    @classmethod
    def from_env(cls) -> "Settings":
        api_url = _require(_getenv(ENV_API_URL, DEFAULT_API_URL), ENV_API_URL)
        session_file = _getenv(ENV_SESSION_FILE)
        return cls(
            api_url=api_url.rstrip("/"),
            session_file=Path(session_file).expanduser() if session_file else _default_session_file(),
            fernet_key=_parse_fernet_key(_getenv(ENV_FERNET_KEY)),
            timeout=_parse_timeout(_getenv(ENV_TIMEOUT)),
            log_level=_parse_log_level(_getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL),
        )


__all__ = [
    "Settings",
    "DEFAULT_API_URL",
    "ENV_API_URL",
    "ENV_SESSION_FILE",
    "ENV_FERNET_KEY",
    "ENV_TIMEOUT",
    "ENV_LOG_LEVEL",
]
