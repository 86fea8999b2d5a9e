from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from common.api import ApiError, ApiNetworkError, ApiResponseError, extract_message

from .base import Page


logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "Error inesperado en el servidor"


@dataclass(frozen=True)
class KeyResult:
    """Fields of a `POST /generar-clave` response."""

    serial_erp: str
    ano_medios: str
    mac_servidor: str
    clave_generada: str

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "KeyResult":
        def _s(key: str) -> str:
            val = data.get(key)
            return "" if val is None else str(val)

        return cls(
            serial_erp=_s("serialERP"),
            ano_medios=_s("anoMedios"),
            mac_servidor=_s("macServidor"),
            clave_generada=_s("claveGenerada"),
        )


class KeyGeneratorPage(Page):
    """
    Forwards a Base64 ERP serial to the API and shows the generated key.

    The page does no decoding of its own; the server's error text is shown
    verbatim.
    """

    path = "/generar-clave"
    title = "Generador de Claves"

    def __init__(self, gateway, notifier) -> None:
        super().__init__(gateway, notifier)
        self.serial = ""
        self.result: Optional[KeyResult] = None
        self.error: Optional[str] = None
        self.loading = False

    def generate(self, serial: str) -> Optional[KeyResult]:
        self.serial = serial or ""
        if not self.serial.strip():
            self.notifier.warn("Debes ingresar un serial Base64")
            return None

        self.loading = True
        try:
            data = self.gateway.post("/generar-clave", {"serial": self.serial})
        except ApiError as exc:
            if isinstance(exc, ApiResponseError):
                message = extract_message(exc.payload) or UNEXPECTED_ERROR
            elif isinstance(exc, ApiNetworkError):
                message = exc.message
            else:
                message = UNEXPECTED_ERROR
            self.result = None
            self.error = message
            self.notifier.error(message, summary="No se pudo generar")
            return None
        finally:
            self.loading = False

        if not isinstance(data, dict):
            logger.error("Unexpected /generar-clave payload: %r", data)
            self.result = None
            self.error = UNEXPECTED_ERROR
            self.notifier.error(UNEXPECTED_ERROR, summary="No se pudo generar")
            return None

        self.result = KeyResult.from_payload(data)
        self.error = None
        self.notifier.success("Clave generada correctamente")
        return self.result

    def render(self) -> str:
        lines = [self.title]
        if self.error:
            lines.append(f"Error: {self.error}")
        if self.result is not None:
            r = self.result
            lines.extend(
                [
                    f"Serial ERP:      {r.serial_erp}",
                    f"Año medios:      {r.ano_medios}",
                    f"MAC servidor:    {r.mac_servidor}",
                    f"Clave generada:  {r.clave_generada}",
                ]
            )
        return "\n".join(lines)


__all__ = ["KeyGeneratorPage", "KeyResult", "UNEXPECTED_ERROR"]
