from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Callable, List, Optional

from pydantic import Field, ValidationError, field_validator

from common.api import ApiError, ApiGateway
from common.formatting import fmt_cop, fmt_date, parse_datetime, render_table
from common.notifications import Notifier

from .base import FormModel, IdField, Record, as_list, error_detail


logger = logging.getLogger(__name__)

DEFAULT_METHOD = "transferencia"
INVALID_AMOUNT = "Por favor ingrese un monto válido"


class PaymentForm(FormModel):
    venta_id: IdField = None
    monto_pagado: float = 0
    fecha_pago: date = Field(default_factory=date.today)
    metodo_pago: str = DEFAULT_METHOD

    @field_validator("fecha_pago", mode="before")
    @classmethod
    def _parse_fecha(cls, v: Any) -> Any:
        dt = parse_datetime(v)
        return dt.date() if dt is not None else v


class PaymentsSection:
    """
    Payment history of one sale, embedded in the sale form.

    Notes
    - A new sale (no id) has no history and issues no request.
    - `refresh()` may run off the calling thread; a result that arrives
      after `unmount()` or after the sale changed is discarded.
    - `register()` validates the amount locally before posting.
    """

    def __init__(
        self,
        gateway: ApiGateway,
        notifier: Notifier,
        sale_id: Optional[int] = None,
        *,
        on_registered: Optional[Callable[[], None]] = None,
    ) -> None:
        self.gateway = gateway
        self.notifier = notifier
        self.payments: List[Record] = []
        self.mounted = False
        self._sale_id = sale_id
        self._on_registered = on_registered
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def sale_id(self) -> Optional[int]:
        return self._sale_id

    def set_sale(self, sale_id: Optional[int]) -> None:
        with self._lock:
            self._sale_id = sale_id
            self._generation += 1
            self.payments = []

    def mount(self) -> None:
        self.mounted = True
        self.refresh()

    def unmount(self) -> None:
        with self._lock:
            self.mounted = False
            self._generation += 1

    # -------- Loading --------
    def _fetch(self, sale_id: int) -> List[Record]:
        return as_list(self.gateway.get(f"/pagos/venta/{sale_id}"))

    def _apply(self, generation: int, payments: List[Record]) -> bool:
        with self._lock:
            if not self.mounted or generation != self._generation:
                logger.debug("Discarding late payments result for sale %s", self._sale_id)
                return False
            self.payments = payments
            return True

    def refresh(self) -> bool:
        """Reload the history; False when the request failed or the result was stale."""
        with self._lock:
            sale_id, generation = self._sale_id, self._generation
        if sale_id is None:
            self.payments = []
            return True
        try:
            payments = self._fetch(sale_id)
        except ApiError as exc:
            logger.error("Error al obtener pagos de la venta %s: %s", sale_id, exc.message)
            return False
        return self._apply(generation, payments)

    # -------- Register --------
    def register(
        self,
        monto_pagado: Any,
        *,
        fecha_pago: Any = None,
        metodo_pago: str = DEFAULT_METHOD,
    ) -> bool:
        if self._sale_id is None:
            self.notifier.warn("Guarde la venta antes de registrar pagos")
            return False
        try:
            form: Optional[PaymentForm] = PaymentForm(
                venta_id=self._sale_id,
                monto_pagado=monto_pagado or 0,
                fecha_pago=fecha_pago or date.today(),
                metodo_pago=metodo_pago or DEFAULT_METHOD,
            )
        except ValidationError:
            form = None
        if form is None or form.monto_pagado <= 0:
            logger.info("Payment rejected for sale %s: %r", self._sale_id, monto_pagado)
            self.notifier.warn(INVALID_AMOUNT)
            return False

        try:
            self.gateway.post("/pagos", form.payload())
        except ApiError as exc:
            self.notifier.error(error_detail("Error al registrar pago", exc))
            return False

        self.notifier.success("Pago registrado")
        self.refresh()
        if self._on_registered is not None:
            self._on_registered()
        return True

    # -------- View --------
    @property
    def total_paid(self) -> float:
        total = 0.0
        for p in self.payments:
            try:
                total += float(p.get("monto_pagado") or 0)
            except (TypeError, ValueError):
                continue
        return total

    def render(self) -> str:
        rows = [
            [fmt_date(p.get("fecha_pago")), p.get("metodo_pago"), fmt_cop(p.get("monto_pagado"), decimals=2)]
            for p in self.payments
        ]
        table = render_table(
            rows,
            (("Fecha", "fecha_pago"), ("Método", "metodo_pago"), ("Monto", "monto_pagado")),
            empty_message="No hay pagos registrados",
        )
        return "Historial de Pagos\n" + table


__all__ = ["PaymentForm", "PaymentsSection", "DEFAULT_METHOD"]
