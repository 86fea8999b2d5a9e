from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple


Column = Tuple[str, str]  # (header, dotted field path)


def get_path(record: Any, path: str) -> Any:
    """Resolve a dotted path ("ventas.clientes.nit") in nested dicts; None if missing."""
    cur = record
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def fmt_cop(value: Any, *, decimals: int = 0) -> str:
    """Format an amount in Colombian pesos: `$ 1.234.567` (es-CO separators)."""
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        amount = 0.0
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.{decimals}f}"
    # Swap US separators for es-CO ones
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}$ {text}"


def parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def fmt_date(value: Any, *, with_time: bool = False) -> str:
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return dt.strftime("%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "SÍ" if value else "NO"
    return str(value)


def render_table(rows: Iterable[Any], columns: Sequence[Column], *, empty_message: str = "Sin registros.") -> str:
    """Render rows as a fixed-width text table.

    Rows may be dicts (columns are dotted paths) or already-formatted lists.
    """
    body: List[List[str]] = []
    for row in rows:
        if isinstance(row, dict):
            body.append([_cell(get_path(row, path)) for _, path in columns])
        else:
            body.append([_cell(v) for v in row])
    if not body:
        return empty_message

    headers = [h for h, _ in columns]
    widths = [len(h) for h in headers]
    for line in body:
        for i, cell in enumerate(line):
            widths[i] = max(widths[i], len(cell))

    def _line(cells: Sequence[str]) -> str:
        return "  ".join(c.ljust(widths[i]) for i, c in enumerate(cells)).rstrip()

    out = [_line(headers), _line(["-" * w for w in widths])]
    out.extend(_line(line) for line in body)
    return "\n".join(out)


__all__ = [
    "Column",
    "get_path",
    "fmt_cop",
    "fmt_date",
    "parse_datetime",
    "render_table",
]
