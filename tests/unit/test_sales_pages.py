from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Dict, List, Tuple

import httpx
import pytest

from common.api import ApiGateway
from common.notifications import Notifier
from pages.base import FormValidationError
from pages.payments import DEFAULT_METHOD, INVALID_AMOUNT, PaymentsSection
from pages.sales import YEAR_OPTIONS, SaleFormPage, SalesListPage, parse_sale_id, sale_status


BASE = "http://api.test/api"

SALE = {
    "id": 7,
    "cliente_id": 1,
    "vendedor_id": 4,
    "serial_erp_id": 30,
    "ano_gravable": 2024,
    "ano_venta": 2025,
    "fecha_venta": "2025-02-10T00:00:00.000Z",
    "valor_total": "1500000",
    "observaciones": "Licencia anual",
    "resumen_financiero": {"saldo_pendiente": 500000, "esta_paga": False},
}


class _FakeApi:
    def __init__(self, routes: Dict[Tuple[str, str], Any]) -> None:
        self.routes = dict(routes)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        resp = self.routes.get((request.method, path))
        if resp is None:
            return httpx.Response(404, json={"error": f"no route {request.method} {path}"})
        if callable(resp):
            return resp(request)
        return httpx.Response(200, json=resp)

    def paths(self, method: str) -> List[str]:
        return [r.url.path.removeprefix("/api") for r in self.requests if r.method == method]


def _gateway(api: _FakeApi) -> ApiGateway:
    return ApiGateway(BASE, client=httpx.Client(transport=httpx.MockTransport(api)))


def _form_routes() -> Dict[Tuple[str, str], Any]:
    return {
        ("GET", "/clientes"): [{"id": 1, "razon_social": "Acme SAS", "nit": "900123"}, {"id": 2, "razon_social": "Beta"}],
        ("GET", "/vendedores"): [{"id": 4, "nombre": "Carlos"}],
        ("GET", "/ventas/7"): SALE,
        ("GET", "/seriales/cliente/1"): [{"id": 30, "serial_erp": "S-30"}],
        ("GET", "/seriales/cliente/2"): [{"id": 40, "serial_erp": "S-40"}],
        ("GET", "/pagos/venta/7"): [
            {"id": 1, "monto_pagado": "1000000", "fecha_pago": "2025-02-11", "metodo_pago": "efectivo"},
        ],
    }


# -------- Sales list --------
def test_sales_list_filters_by_year():
    seen: List[httpx.Request] = []

    def ventas(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[SALE])

    api = _FakeApi({("GET", "/ventas"): ventas})
    page = SalesListPage(_gateway(api), Notifier(), year=2024)
    page.mount()
    page.set_year(2025)

    assert [r.url.params["ano"] for r in seen] == ["2024", "2025"]
    out = page.render()
    assert out.startswith("Registro de Ventas 2025")
    assert "10/02/2025" in out
    assert "$ 1.500.000,00" in out
    assert "PENDIENTE" in out


def test_sales_list_defaults_to_current_year():
    page = SalesListPage(_gateway(_FakeApi({})), Notifier())
    assert page.year == date.today().year
    assert page.list_params() == {"ano": date.today().year}
    assert YEAR_OPTIONS[0] == 2022 and YEAR_OPTIONS[-1] == 2031


def test_sales_list_load_error_message():
    api = _FakeApi({("GET", "/ventas"): lambda r: httpx.Response(500, json={"error": "fallo"})})
    notifier = Notifier()
    SalesListPage(_gateway(api), notifier, year=2025).mount()
    assert notifier.last is not None and notifier.last.detail == "Error al cargar ventas fallo"


@pytest.mark.parametrize(
    "summary,expected",
    [
        ({"esta_paga": True, "saldo_pendiente": 0}, "PAGADO"),
        ({"esta_paga": False, "saldo_pendiente": 0}, "SALDO $0"),
        ({"esta_paga": False, "saldo_pendiente": 10}, "PENDIENTE"),
        (None, "PENDIENTE"),
    ],
)
def test_sale_status(summary, expected):
    assert sale_status({"resumen_financiero": summary}) == expected


def test_parse_sale_id():
    assert parse_sale_id("nueva") is None
    assert parse_sale_id(None) is None
    assert parse_sale_id("12") == 12
    assert parse_sale_id(5) == 5
    assert parse_sale_id("x") is None


# -------- Sale form --------
def test_existing_sale_loads_catalogs_record_and_client_serials():
    api = _FakeApi(_form_routes())
    page = SaleFormPage(_gateway(api), Notifier(), "7")
    page.mount()

    assert not page.is_new
    assert len(page.clients) == 2 and len(page.sellers) == 1
    assert page.serials == [{"id": 30, "serial_erp": "S-30"}]
    f = page.form
    assert (f.cliente_id, f.vendedor_id, f.serial_erp_id) == (1, 4, 30)
    assert f.fecha_venta == date(2025, 2, 10)
    assert f.valor_total == 1500000
    # Serials requested only after the sale told us the client
    gets = api.paths("GET")
    assert gets.index("/seriales/cliente/1") > gets.index("/ventas/7")
    assert len(page.payments.payments) == 1

    out = page.render()
    assert "Editar Venta #7" in out
    assert "Acme SAS (900123)" in out
    assert "Historial de Pagos" in out


def test_new_sale_has_defaults_and_no_payment_requests():
    api = _FakeApi(_form_routes())
    page = SaleFormPage(_gateway(api), Notifier(), "nueva")
    page.mount()

    assert page.is_new
    assert page.form.ano_venta == date.today().year
    assert page.serials == []
    assert not any(p.startswith("/pagos") for p in api.paths("GET"))
    assert "Nueva Venta" in page.render()


def test_changing_client_clears_serial_and_reloads_list():
    api = _FakeApi(_form_routes())
    page = SaleFormPage(_gateway(api), Notifier(), 7)
    page.mount()

    page.update_form(cliente_id="2")

    assert page.form.cliente_id == 2
    assert page.form.serial_erp_id is None
    assert page.serials == [{"id": 40, "serial_erp": "S-40"}]


def test_sale_validation_blocks_incomplete_form():
    api = _FakeApi(_form_routes())
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, "nueva")
    page.mount()

    page.update_form(cliente_id=1, valor_total=0)
    assert page.save() is False
    assert api.paths("POST") == []
    assert notifier.last is not None and notifier.last.detail == "Campos obligatorios incompletos"


def test_update_form_rejects_bad_values():
    page = SaleFormPage(_gateway(_FakeApi(_form_routes())), Notifier(), "nueva")
    with pytest.raises(FormValidationError):
        page.update_form(valor_total="mucho")
    with pytest.raises(FormValidationError):
        page.update_form(inventado=1)


def test_create_sale_posts_and_navigates_back():
    api = _FakeApi({**_form_routes(), ("POST", "/ventas"): {"id": 8}})
    went: List[str] = []
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, "nueva", navigate=went.append)
    page.mount()

    page.update_form(cliente_id="1", serial_erp_id="30", vendedor_id="4", valor_total="2000000", fecha_venta="2025-03-01")
    assert page.save() is True

    body = json.loads(next(r for r in api.requests if r.method == "POST").content)
    assert body["cliente_id"] == 1 and body["serial_erp_id"] == 30 and body["vendedor_id"] == 4
    assert body["valor_total"] == 2000000
    assert body["fecha_venta"] == "2025-03-01"
    assert went == ["/ventas"]
    assert notifier.last is not None and notifier.last.detail == "Guardado correctamente"


def test_edit_sale_puts_and_reports_server_error():
    api = _FakeApi({**_form_routes(), ("PUT", "/ventas/7"): lambda r: httpx.Response(400, json={"error": "Serial en uso"})})
    went: List[str] = []
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, 7, navigate=went.append)
    page.mount()

    assert page.save() is False
    assert api.paths("PUT") == ["/ventas/7"]
    assert went == []
    assert notifier.last is not None and notifier.last.detail == "Error al guardar Serial en uso"


def test_sale_form_load_failure_notifies():
    api = _FakeApi({("GET", "/clientes"): [], ("GET", "/vendedores"): lambda r: httpx.Response(503, json={"error": "mantenimiento"})})
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, "nueva")
    assert page.load() is False
    assert notifier.last is not None
    assert notifier.last.detail == "No se pudo conectar con el servidor mantenimiento"


# -------- Payments --------
def test_register_payment_posts_and_refreshes():
    api = _FakeApi({**_form_routes(), ("POST", "/pagos"): {"id": 2}})
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, 7)
    page.mount()

    assert page.payments.register("250000", fecha_pago="2025-03-02") is True

    body = json.loads(next(r for r in api.requests if r.method == "POST").content)
    assert body == {"venta_id": 7, "monto_pagado": 250000, "fecha_pago": "2025-03-02", "metodo_pago": DEFAULT_METHOD}
    assert notifier.last is not None and notifier.last.detail == "Pago registrado"
    # History and the sale's balance are both reloaded
    assert api.paths("GET").count("/pagos/venta/7") == 2
    assert api.paths("GET").count("/ventas/7") == 2


@pytest.mark.parametrize("amount", [0, "-5", "", "abc", None])
def test_register_rejects_non_positive_amounts(amount):
    api = _FakeApi(_form_routes())
    notifier = Notifier()
    section = PaymentsSection(_gateway(api), notifier, 7)

    assert section.register(amount) is False
    assert api.paths("POST") == []
    assert notifier.last is not None and notifier.last.detail == INVALID_AMOUNT


def test_register_requires_saved_sale():
    notifier = Notifier()
    section = PaymentsSection(_gateway(_FakeApi({})), notifier, None)
    assert section.register(100) is False
    assert notifier.last is not None and notifier.last.severity == "warn"


def test_register_error_is_shown():
    api = _FakeApi({("POST", "/pagos"): lambda r: httpx.Response(400, json={"error": "Excede el saldo"})})
    notifier = Notifier()
    section = PaymentsSection(_gateway(api), notifier, 7)
    assert section.register(100) is False
    assert notifier.last is not None and notifier.last.detail == "Error al registrar pago Excede el saldo"


def test_payments_total_and_render():
    section = PaymentsSection(_gateway(_FakeApi(_form_routes())), Notifier(), 7)
    section.mount()
    assert section.total_paid == 1000000
    out = section.render()
    assert "11/02/2025" in out and "efectivo" in out and "$ 1.000.000,00" in out


def test_refresh_failure_is_only_logged():
    notifier = Notifier()
    section = PaymentsSection(_gateway(_FakeApi({})), notifier, 7)
    section.mount()
    assert section.payments == []
    assert notifier.items == []


def test_unmounted_section_discards_late_results():
    release = threading.Event()
    started = threading.Event()

    def slow_payments(request: httpx.Request) -> httpx.Response:
        started.set()
        release.wait(5)
        return httpx.Response(200, json=[{"id": 1, "monto_pagado": 10}])

    api = _FakeApi({("GET", "/pagos/venta/7"): slow_payments})
    section = PaymentsSection(_gateway(api), Notifier(), 7)
    section.mounted = True

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(section.refresh)
        assert started.wait(5)
        section.unmount()
        release.set()
        assert future.result(5) is False

    assert section.payments == []


def test_background_refresh_applies_when_still_mounted():
    api = _FakeApi({("GET", "/pagos/venta/7"): [{"id": 1, "monto_pagado": 10}]})
    section = PaymentsSection(_gateway(api), Notifier(), 7)
    section.mounted = True

    with ThreadPoolExecutor(max_workers=1) as pool:
        assert pool.submit(section.refresh).result(5) is True

    assert section.payments == [{"id": 1, "monto_pagado": 10}]


def test_sale_change_discards_previous_sale_results():
    release = threading.Event()
    started = threading.Event()

    def slow(request: httpx.Request) -> httpx.Response:
        started.set()
        release.wait(5)
        return httpx.Response(200, json=[{"id": 1}])

    api = _FakeApi({("GET", "/pagos/venta/7"): slow})
    section = PaymentsSection(_gateway(api), Notifier(), 7)
    section.mounted = True

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(section.refresh)
        assert started.wait(5)
        section.set_sale(None)
        release.set()
        assert future.result(5) is False

    assert section.sale_id is None
    assert section.payments == []


def test_leaving_sale_form_discards_payments_still_loading():
    release = threading.Event()
    started = threading.Event()

    def slow_payments(request: httpx.Request) -> httpx.Response:
        started.set()
        release.wait(5)
        return httpx.Response(200, json=[{"id": 1, "monto_pagado": 10}])

    api = _FakeApi({**_form_routes(), ("GET", "/pagos/venta/7"): slow_payments})
    page = SaleFormPage(_gateway(api), Notifier(), 7)

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(page.mount)
        assert started.wait(5)
        page.unmount()
        release.set()
        future.result(5)

    assert page.mounted is False
    assert page.payments.payments == []


# -------- Records with null fields --------
def test_sale_with_null_fields_binds_defaults():
    record = {**SALE, "fecha_venta": None, "valor_total": None, "observaciones": None, "vendedor_id": None}
    api = _FakeApi({**_form_routes(), ("GET", "/ventas/7"): record})
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, 7)

    assert page.load() is True

    assert page.form.fecha_venta == date.today()
    assert page.form.valor_total == 0
    assert page.form.observaciones == ""
    assert page.form.vendedor_id is None
    assert page.form.cliente_id == 1
    assert notifier.items == []
    assert "Venta" in page.render()


def test_sale_that_cannot_be_bound_is_reported():
    api = _FakeApi({**_form_routes(), ("GET", "/ventas/7"): {**SALE, "valor_total": "mucho"}})
    notifier = Notifier()
    page = SaleFormPage(_gateway(api), notifier, 7)

    assert page.load() is False

    assert page.record is None
    assert notifier.last is not None and notifier.last.severity == "error"
    assert notifier.last.detail == "La venta tiene datos inválidos"
