from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken


logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    """Key-value persistence with the semantics of browser local storage."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


class MemoryStorage:
    """Dict-backed storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """
    Single JSON file holding string entries, optionally encrypted at rest.

    - File content is `{key: value, ...}`; with a Fernet key it is the
      Fernet token of that JSON.
    - Loaded lazily on first access.
    - A corrupt or undecryptable file is logged and treated as empty; it is
      overwritten by the next write.
    - Writes go to a temp file in the same directory, then `os.replace`.
    - Removing the last entry deletes the file.
    """

    def __init__(self, path: os.PathLike[str] | str, *, fernet_key: Optional[str | bytes] = None) -> None:
        self._path = Path(path)
        self._fernet = _to_fernet(fernet_key) if fernet_key else None
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        self._ensure_loaded()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._ensure_loaded()
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        self._ensure_loaded()
        if key in self._data:
            del self._data[key]
            self._save()

    # -------- Internal --------
    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self._path.exists():
            return
        try:
            raw = self._path.read_bytes()
            if self._fernet is not None:
                raw = self._fernet.decrypt(raw)
            data = json.loads(raw.decode("utf-8"))
        except InvalidToken:
            logger.warning("Session file %s could not be decrypted; ignoring it", self._path)
            return
        except (OSError, ValueError) as ex:
            logger.warning("Session file %s is unreadable (%s); ignoring it", self._path, ex)
            return
        if isinstance(data, dict):
            self._data = {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self) -> None:
        if not self._data:
            self._path.unlink(missing_ok=True)
            return
        payload = json.dumps(self._data, separators=(",", ":"), sort_keys=True).encode("utf-8")
        if self._fernet is not None:
            payload = self._fernet.encrypt(payload)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self._path.name, suffix=".tmp", dir=self._path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


__all__ = ["SessionStorage", "MemoryStorage", "JsonFileStorage"]
