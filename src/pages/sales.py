from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from pydantic import Field, ValidationError, field_validator

from common.api import ApiError, ApiGateway
from common.formatting import fmt_cop, fmt_date, get_path, parse_datetime, render_table
from common.notifications import Notifier

from .base import (
    EntityPage,
    FormModel,
    FormValidationError,
    IdField,
    Page,
    Record,
    as_list,
    error_detail,
    load_concurrently,
)
from .payments import PaymentsSection


logger = logging.getLogger(__name__)

FIRST_YEAR = 2022
YEAR_OPTIONS = tuple(range(FIRST_YEAR, FIRST_YEAR + 10))
NEW_SALE = "nueva"


def _current_year() -> int:
    return date.today().year


def sale_status(record: Record) -> str:
    """PAGADO when settled, SALDO $0 when nothing is owed, PENDIENTE otherwise."""
    summary = record.get("resumen_financiero") or {}
    if summary.get("esta_paga"):
        return "PAGADO"
    try:
        balance = float(summary.get("saldo_pendiente") or 0)
    except (TypeError, ValueError):
        balance = 0.0
    if "saldo_pendiente" in summary and balance <= 0:
        return "SALDO $0"
    return "PENDIENTE"


def parse_sale_id(raw: Any) -> Optional[int]:
    """Route parameter → sale id; "nueva" or anything non-numeric means a new sale."""
    if raw is None or raw == NEW_SALE:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    text = str(raw).strip()
    return int(text) if text.isdigit() else None


class SaleForm(FormModel):
    cliente_id: IdField = None
    vendedor_id: IdField = None
    serial_erp_id: IdField = None
    ano_gravable: int = Field(default_factory=_current_year)
    ano_venta: int = Field(default_factory=_current_year)
    fecha_venta: date = Field(default_factory=date.today)
    valor_total: float = 0
    observaciones: Optional[str] = ""

    @field_validator("fecha_venta", mode="before")
    @classmethod
    def _parse_fecha(cls, v: Any) -> Any:
        dt = parse_datetime(v)
        return dt.date() if dt is not None else v


class SalesListPage(EntityPage):
    """Sales of one year with their payment status."""

    path = "/ventas"
    title = "Registro de Ventas"
    resource = "/ventas"
    search_fields = (
        "clientes.razon_social",
        "clientes.nit",
        "seriales_erp.serial_erp",
        "vendedores.nombre",
    )
    columns = (
        ("ID", "id"),
        ("Fecha", "fecha_venta"),
        ("Cliente", "clientes.razon_social"),
        ("Serial", "seriales_erp.serial_erp"),
        ("Valor Total", "valor_total"),
        ("Saldo", "resumen_financiero.saldo_pendiente"),
        ("Estado", "resumen_financiero"),
    )
    empty_message = "No hay ventas registradas para el año."
    msg_load_error = "Error al cargar ventas"

    def __init__(self, gateway: ApiGateway, notifier: Notifier, *, year: Optional[int] = None) -> None:
        super().__init__(gateway, notifier)
        self.year = year or _current_year()

    def list_params(self) -> Optional[Dict[str, Any]]:
        return {"ano": self.year}

    def set_year(self, year: int) -> bool:
        self.year = int(year)
        return self.load()

    def table_row(self, record: Record) -> List[Any]:
        row = super().table_row(record)
        row[1] = fmt_date(record.get("fecha_venta"))
        row[4] = fmt_cop(record.get("valor_total"), decimals=2)
        row[5] = fmt_cop(get_path(record, "resumen_financiero.saldo_pendiente"), decimals=2)
        row[6] = sale_status(record)
        return row

    def render(self) -> str:
        rows = [self.table_row(r) for r in self.visible_rows]
        return f"{self.title} {self.year}\n" + render_table(rows, self.columns, empty_message=self.empty_message)


class SaleFormPage(Page):
    """
    Create or edit a sale.

    Loads clients and sellers concurrently; an existing sale also loads the
    serials of its client before the form is bound so the serial selector has
    its options. Saving navigates back to the sales list.
    """

    path = "/ventas/*"
    title = "Venta"

    def __init__(
        self,
        gateway: ApiGateway,
        notifier: Notifier,
        sale_id: Any = None,
        *,
        navigate: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(gateway, notifier)
        self.sale_id = parse_sale_id(sale_id)
        self.form = SaleForm()
        self.clients: List[Record] = []
        self.sellers: List[Record] = []
        self.serials: List[Record] = []
        self.record: Optional[Record] = None
        self.saving = False
        self._navigate = navigate
        self.payments = PaymentsSection(gateway, notifier, self.sale_id, on_registered=self._reload_record)

    @property
    def is_new(self) -> bool:
        return self.sale_id is None

    def mount(self) -> None:
        super().mount()
        self.payments.mount()

    def unmount(self) -> None:
        super().unmount()
        self.payments.unmount()

    def load(self) -> bool:
        try:
            catalogs = load_concurrently(
                self.gateway,
                {"clientes": ("/clientes", None), "vendedores": ("/vendedores", None)},
            )
            self.clients = as_list(catalogs["clientes"])
            self.sellers = as_list(catalogs["vendedores"])

            if self.sale_id is None:
                self.form = SaleForm()
                self.serials = []
                return True

            record = self.gateway.get(f"/ventas/{self.sale_id}")
            record = record if isinstance(record, dict) else {}
            client_id = record.get("cliente_id")
            # Serial options must exist before the form is bound
            self.serials = as_list(self.gateway.get(f"/seriales/cliente/{client_id}")) if client_id else []
        except ApiError as exc:
            self.notifier.error(error_detail("No se pudo conectar con el servidor", exc))
            return False

        try:
            form = SaleForm.model_validate(record)
        except ValidationError as ex:
            logger.warning("Sale %s cannot be bound to the form: %s", self.sale_id, ex)
            self.notifier.error("La venta tiene datos inválidos")
            return False
        self.record = record
        self.form = form
        return True

    def _reload_record(self) -> None:
        if self.sale_id is None:
            return
        try:
            record = self.gateway.get(f"/ventas/{self.sale_id}")
        except ApiError as exc:
            logger.error("Error recargando la venta %s: %s", self.sale_id, exc.message)
            return
        if isinstance(record, dict):
            self.record = record

    def select_client(self, client_id: Any) -> bool:
        """Bind a client and reload its serials; the previous serial is cleared."""
        self.form.cliente_id = client_id
        self.form.serial_erp_id = None
        self.serials = []
        if self.form.cliente_id is None:
            return True
        try:
            self.serials = as_list(self.gateway.get(f"/seriales/cliente/{self.form.cliente_id}"))
        except ApiError as exc:
            logger.error("Error seriales %s", exc.message)
            self.notifier.error(error_detail("No se pudieron cargar los seriales del cliente", exc))
            return False
        return True

    def update_form(self, **changes: Any) -> SaleForm:
        if "cliente_id" in changes:
            client_id = changes.pop("cliente_id")
            try:
                self.select_client(client_id)
            except ValidationError as ex:
                raise FormValidationError("Valor inválido para cliente_id") from ex
        for name, value in changes.items():
            if name not in SaleForm.model_fields:
                raise FormValidationError(f"Campo desconocido: {name}")
            try:
                setattr(self.form, name, value)
            except ValidationError as ex:
                raise FormValidationError(f"Valor inválido para {name}") from ex
        return self.form

    def validate(self, form: SaleForm) -> None:
        if form.cliente_id is None or form.serial_erp_id is None or form.valor_total <= 0:
            raise FormValidationError("Campos obligatorios incompletos")

    def save(self) -> bool:
        try:
            self.validate(self.form)
        except FormValidationError as ve:
            logger.info("Sale form rejected: %s", ve.message)
            self.notifier.warn(ve.message)
            return False

        self.saving = True
        try:
            if self.sale_id is not None:
                self.gateway.put(f"/ventas/{self.sale_id}", self.form.payload())
            else:
                self.gateway.post("/ventas", self.form.payload())
        except ApiError as exc:
            self.notifier.error(error_detail("Error al guardar", exc))
            return False
        finally:
            self.saving = False

        self.notifier.success("Guardado correctamente")
        if self._navigate is not None:
            self._navigate("/ventas")
        return True

    def render(self) -> str:
        f = self.form
        client = next((c for c in self.clients if c.get("id") == f.cliente_id), {})
        seller = next((s for s in self.sellers if s.get("id") == f.vendedor_id), {})
        serial = next((s for s in self.serials if s.get("id") == f.serial_erp_id), {})
        header = "Nueva Venta" if self.is_new else f"Editar Venta #{self.sale_id}"
        client_label = client.get("razon_social", "")
        if client.get("nit"):
            client_label += f" ({client['nit']})"
        lines = [
            header,
            f"Cliente:        {client_label}".rstrip(),
            f"Vendedor:       {seller.get('nombre', '')}".rstrip(),
            f"Serial:         {serial.get('serial_erp', '')}".rstrip(),
            f"Año gravable:   {f.ano_gravable}",
            f"Año venta:      {f.ano_venta}",
            f"Fecha venta:    {fmt_date(f.fecha_venta)}",
            f"Valor total:    {fmt_cop(f.valor_total, decimals=2)}",
            f"Observaciones:  {f.observaciones or ''}".rstrip(),
        ]
        if self.record is not None:
            lines.append(f"Estado:         {sale_status(self.record)}")
        if not self.is_new:
            lines.extend(["", self.payments.render()])
        return "\n".join(lines)


__all__ = [
    "SaleForm",
    "SaleFormPage",
    "SalesListPage",
    "parse_sale_id",
    "sale_status",
    "YEAR_OPTIONS",
]
