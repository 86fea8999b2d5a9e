from __future__ import annotations

from typing import Any, List

from common.formatting import fmt_date

from .base import EntityPage, Record


class ActivationsPage(EntityPage):
    """Read-only activation log; records can only be deleted."""

    path = "/activaciones"
    title = "Historial de Activaciones"
    resource = "/activaciones"
    search_fields = (
        "nombre_equipo",
        "mac_servidor",
        "ventas.clientes.razon_social",
        "ventas.seriales_erp.serial_erp",
        "ip_origen",
    )
    columns = (
        ("ID", "id"),
        ("Fecha/Hora", "fecha_activacion"),
        ("Cliente", "ventas.clientes.razon_social"),
        ("NIT", "ventas.clientes.nit"),
        ("Software", "ventas.seriales_erp.nombre_software"),
        ("Serial", "ventas.seriales_erp.serial_erp"),
        ("Equipo", "nombre_equipo"),
        ("MAC", "mac_servidor"),
        ("IP Origen", "ip_origen"),
    )
    empty_message = "No se encontraron registros de activación."

    msg_load_error = "No se pudieron cargar las activaciones"
    msg_confirm_delete = "¿Estás seguro de eliminar este registro de activación?"
    msg_deleted = "Registro eliminado correctamente"
    msg_delete_error = "Error al eliminar:"

    def table_row(self, record: Record) -> List[Any]:
        row = super().table_row(record)
        row[1] = fmt_date(record.get("fecha_activacion"), with_time=True)
        row[2] = row[2] or "N/A"
        return row
