from __future__ import annotations

from typing import Any, List, Optional

from .base import EntityPage, FormModel, FormValidationError, IdField, Record


class ClientForm(FormModel):
    nit: str = ""
    razon_social: str = ""
    email: str = ""
    telefono: Optional[str] = ""
    direccion: Optional[str] = ""
    vendedor_id: IdField = None
    activo: bool = True


class ClientsPage(EntityPage):
    """Client list with seller assignment; search over NIT, name, email and seller."""

    path = "/clientes"
    title = "Gestión de Clientes"
    resource = "/clientes"
    form_model = ClientForm
    companions = {"vendedores": "/vendedores"}
    search_fields = ("nit", "razon_social", "email", "vendedores.nombre")
    columns = (
        ("ID", "id"),
        ("NIT", "nit"),
        ("Razón Social", "razon_social"),
        ("Email", "email"),
        ("Vendedor", "vendedores.nombre"),
        ("Seriales", "seriales_erp"),
        ("Estado", "activo"),
    )
    empty_message = "No se encontraron clientes."

    msg_load_error = "No se pudieron cargar los datos"
    msg_created = "Cliente creado"
    msg_updated = "Cliente actualizado"
    msg_confirm_delete = "¿Estás seguro de eliminar este cliente?"
    msg_deleted = "Cliente borrado"

    def validate(self, form: ClientForm) -> None:  # type: ignore[override]
        if not form.nit.strip() or not form.razon_social.strip():
            raise FormValidationError("NIT y Razón Social son obligatorios")

    @property
    def sellers(self) -> List[Record]:
        return self.options.get("vendedores", [])

    def table_row(self, record: Record) -> List[Any]:
        row = super().table_row(record)
        row[5] = len(record.get("seriales_erp") or [])
        row[6] = "ACTIVO" if record.get("activo") else "INACTIVO"
        return row
