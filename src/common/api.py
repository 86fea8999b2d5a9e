from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from .config import DEFAULT_API_URL


logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)
NETWORK_ERROR_MESSAGE = "No se pudo conectar con el servidor"

TokenProvider = Callable[[], Optional[str]]
AuthFailureObserver = Callable[["ApiAuthError"], None]


class ApiError(RuntimeError):
    """Base error for the API gateway."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ApiNetworkError(ApiError):
    """No response was received (connection refused, DNS, timeout...)."""


class ApiResponseError(ApiError):
    """The server answered with an error status; `message` is the server's text."""


class ApiAuthError(ApiResponseError):
    """The server rejected the credentials (401) or the operation (403)."""


def extract_message(payload: Any) -> Optional[str]:
    """Return the human-readable message of an error payload, if any.

    The API uses `message` for authentication errors and `error` for the rest.
    """
    if isinstance(payload, dict):
        for key in ("message", "error"):
            val = payload.get(key)
            if isinstance(val, str) and val:
                return val
    return None


class ApiGateway:
    """
    Shared HTTP dispatch layer for the remote API.

    Notes
    - Every request carries `Authorization: Bearer <token>` when the token
      provider returns one.
    - 401/403 responses notify the single authorization-failure observer and
      then raise `ApiAuthError`. The observer owns the session clearing and the
      redirect; the gateway never navigates by itself.
    - Transport failures raise `ApiNetworkError` and never reach the observer.
    - No retries: every failure is reported once to the caller.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider or (lambda: None)
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=self._base_url, timeout=self._timeout)
        self._on_auth_failure: Optional[AuthFailureObserver] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ApiGateway":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def set_auth_failure_observer(self, observer: Optional[AuthFailureObserver]) -> None:
        """Install (or remove with None) the authorization-failure observer."""
        self._on_auth_failure = observer

    # --------------- Public API ---------------
    def get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json_body: Any = None) -> Any:
        return self.request("POST", path, json_body=json_body)

    def put(self, path: str, json_body: Any = None) -> Any:
        return self.request("PUT", path, json_body=json_body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
    ) -> Any:
        """Dispatch a request and return the decoded JSON body (None when empty)."""
        url = self._url(path)
        try:
            resp = self._client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            logger.error("%s %s failed without response: %s", method, url, exc)
            raise ApiNetworkError(NETWORK_ERROR_MESSAGE) from exc

        payload = self._decode(resp)
        if resp.is_success:
            return payload

        message = extract_message(payload) or f"HTTP {resp.status_code}"
        if resp.status_code in AUTH_FAILURE_STATUSES:
            logger.warning("Sesión inválida o expirada (%s %s -> %s)", method, url, resp.status_code)
            err = ApiAuthError(message, status_code=resp.status_code, payload=payload)
            if self._on_auth_failure is not None:
                self._on_auth_failure(err)
            raise err

        logger.info("%s %s -> %s: %s", method, url, resp.status_code, message)
        raise ApiResponseError(message, status_code=resp.status_code, payload=payload)

    # --------------- Internal ---------------
    def _url(self, path: str) -> str:
        # Absolute so injected clients without a base_url work too
        return f"{self._base_url}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            # Non-JSON bodies (HTML error pages) keep a short excerpt
            return {"error": resp.text[:200]} if not resp.is_success else resp.text


__all__ = [
    "ApiGateway",
    "ApiError",
    "ApiNetworkError",
    "ApiResponseError",
    "ApiAuthError",
    "extract_message",
    "NETWORK_ERROR_MESSAGE",
]
