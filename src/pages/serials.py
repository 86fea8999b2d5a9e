from __future__ import annotations

from typing import Any, List

from .base import EntityPage, FormModel, FormValidationError, IdField, Record


class SerialForm(FormModel):
    serial_erp: str = ""
    nombre_software: str = ""
    cliente_id: IdField = None
    activo: bool = True


class SerialsPage(EntityPage):
    """ERP license serials, each bound to a client."""

    path = "/seriales"
    title = "Control de Seriales ERP"
    resource = "/seriales"
    form_model = SerialForm
    companions = {"clientes": "/clientes"}
    search_fields = ("serial_erp", "nombre_software", "clientes.razon_social", "clientes.nit")
    columns = (
        ("ID", "id"),
        ("Serial", "serial_erp"),
        ("Software", "nombre_software"),
        ("Cliente", "clientes.razon_social"),
        ("Estado", "activo"),
    )
    empty_message = "No se encontraron seriales."

    msg_load_error = "Error al cargar datos"
    msg_created = "Serial registrado"
    msg_updated = "Serial actualizado"
    msg_confirm_delete = "¿Estás seguro de eliminar este serial?"
    msg_deleted = "Serial eliminado"
    msg_delete_error = "No se pudo eliminar"

    def validate(self, form: SerialForm) -> None:  # type: ignore[override]
        if not form.serial_erp.strip() or form.cliente_id is None or not form.nombre_software.strip():
            raise FormValidationError(self.msg_required)

    @property
    def clients(self) -> List[Record]:
        return self.options.get("clientes", [])

    def table_row(self, record: Record) -> List[Any]:
        row = super().table_row(record)
        row[4] = "ACTIVO" if record.get("activo") else "INACTIVO"
        return row
