from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import ValidationError

from auth.guard import HOME_PATH
from auth.store import SessionStore
from common.api import ApiError, ApiGateway, ApiNetworkError, extract_message
from common.notifications import Notifier

from .base import Page


logger = logging.getLogger(__name__)

DEFAULT_LOGIN_ERROR = "Credenciales incorrectas"
MISSING_TOKEN_ERROR = "No se recibió un token del servidor"
INVALID_USER_ERROR = "El servidor devolvió un usuario inválido"


class LoginPage(Page):
    """
    Email/password login.

    On success the session is stored, a greeting is shown and the user is
    sent to the dashboard. Any failure leaves the session untouched and
    shows one error notification.
    """

    path = "/login"
    title = "Control de Activaciones"

    def __init__(
        self,
        gateway: ApiGateway,
        notifier: Notifier,
        store: SessionStore,
        *,
        navigate: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(gateway, notifier)
        self.store = store
        self.loading = False
        self._navigate = navigate

    def submit(self, email: str, password: str) -> bool:
        if not email or not password:
            self.notifier.warn("Ingresa usuario y contraseña")
            return False

        self.loading = True
        try:
            data = self.gateway.post("/auth/login", {"email": email, "password": password})
        except ApiError as exc:
            if isinstance(exc, ApiNetworkError):
                detail = exc.message
            else:
                detail = extract_message(exc.payload) or DEFAULT_LOGIN_ERROR
            self.notifier.error(detail, summary="Error de acceso")
            return False
        finally:
            self.loading = False

        data = data if isinstance(data, dict) else {}
        token = data.get("token")
        if not isinstance(token, str) or not token.strip():
            logger.warning("Login response for %s carried no token", email)
            self.notifier.error(MISSING_TOKEN_ERROR, summary="Error de acceso")
            return False

        try:
            session = self.store.login(data.get("usuario") or {}, token)
        except ValidationError as ex:
            logger.warning("Login response for %s carried an unusable user: %s", email, ex)
            self.notifier.error(INVALID_USER_ERROR, summary="Error de acceso")
            return False
        self.notifier.success(f"Hola, {session.user.display_name}", summary="Bienvenido")
        if self._navigate is not None:
            self._navigate(HOME_PATH)
        return True

    def render(self) -> str:
        return "Exógena 2025\n" + self.title


__all__ = ["LoginPage", "DEFAULT_LOGIN_ERROR", "MISSING_TOKEN_ERROR", "INVALID_USER_ERROR"]
