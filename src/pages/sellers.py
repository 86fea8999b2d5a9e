from __future__ import annotations

from typing import Any, List, Optional

from .base import EntityPage, FormModel, FormValidationError, Record


class SellerForm(FormModel):
    nombre: str = ""
    email: str = ""
    telefono: Optional[str] = ""
    activo: bool = True


class SellersPage(EntityPage):
    path = "/vendedores"
    title = "Vendedores"
    resource = "/vendedores"
    form_model = SellerForm
    search_fields = ("nombre", "email", "telefono")
    columns = (
        ("ID", "id"),
        ("Nombre", "nombre"),
        ("Email", "email"),
        ("Teléfono", "telefono"),
        ("Estado", "activo"),
    )
    empty_message = "No hay vendedores registrados."

    msg_load_error = "No se pudieron cargar los vendedores"
    msg_created = "Vendedor creado"
    msg_updated = "Vendedor actualizado"
    msg_confirm_delete = "¿Estás seguro de eliminar este vendedor?"
    msg_deleted = "Vendedor eliminado"

    def validate(self, form: SellerForm) -> None:  # type: ignore[override]
        if not form.nombre.strip():
            raise FormValidationError("El nombre del vendedor es obligatorio")

    def table_row(self, record: Record) -> List[Any]:
        row = super().table_row(record)
        row[4] = "ACTIVO" if record.get("activo") else "INACTIVO"
        return row
