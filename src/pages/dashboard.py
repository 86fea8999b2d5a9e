from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from common.api import ApiError
from common.formatting import fmt_cop, get_path

from .base import Page


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatCard:
    label: str
    value: str
    sub_value: str


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def build_cards(data: Optional[Dict[str, Any]]) -> List[StatCard]:
    """Map `/dashboard/stats` to the four summary cards; missing values read as 0."""
    stats = data or {}
    clients = int(_number(get_path(stats, "resumen.clientes")))
    sellers = int(_number(get_path(stats, "resumen.vendedores")))
    ratio = _number(get_path(stats, "finanzas.porcentaje_recaudo"))
    return [
        StatCard("CLIENTES ACTIVOS", str(clients), f"{sellers} Vendedores"),
        StatCard("FACTURACIÓN TOTAL", fmt_cop(get_path(stats, "finanzas.total_facturado")), "Ventas registradas"),
        StatCard("RECAUDO", fmt_cop(get_path(stats, "finanzas.total_recaudado")), f"{ratio:.1f}% de efectividad"),
        StatCard("CARTERA PENDIENTE", fmt_cop(get_path(stats, "finanzas.cartera_pendiente")), "Cobros por realizar"),
    ]


class DashboardPage(Page):
    path = "/dashboard"
    title = "Panel Principal"

    def __init__(self, gateway, notifier) -> None:
        super().__init__(gateway, notifier)
        self.data: Optional[Dict[str, Any]] = None
        self.loading = True

    def load(self) -> bool:
        # Failures only reach the log; the cards fall back to zeros
        self.loading = True
        try:
            data = self.gateway.get("/dashboard/stats")
        except ApiError as exc:
            logger.error("Error cargando estadísticas: %s", exc.message)
            return False
        finally:
            self.loading = False
        self.data = data if isinstance(data, dict) else None
        return True

    @property
    def cards(self) -> List[StatCard]:
        return build_cards(self.data)

    def render(self) -> str:
        lines = [self.title]
        for card in self.cards:
            lines.append(f"{card.label:<20} {card.value:>18}  {card.sub_value}")
        return "\n".join(lines)


__all__ = ["DashboardPage", "StatCard", "build_cards"]
