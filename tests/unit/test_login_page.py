from __future__ import annotations

import json
from typing import List, Tuple

import httpx
import pytest

from auth.guard import HOME_PATH, LOGIN_PATH, Navigator, SessionExpiryHandler
from auth.storage import MemoryStorage
from auth.store import SessionStore
from common.api import ApiGateway
from common.notifications import Notifier
from pages.login import DEFAULT_LOGIN_ERROR, INVALID_USER_ERROR, MISSING_TOKEN_ERROR, LoginPage


BASE = "http://api.test/api"


class _LoginApi:
    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _setup(api: _LoginApi) -> Tuple[LoginPage, SessionStore, MemoryStorage, Navigator, Notifier]:
    storage = MemoryStorage()
    store = SessionStore(storage)
    store.initialize()
    nav = Navigator(LOGIN_PATH)
    gw = ApiGateway(BASE, token_provider=lambda: store.token, client=httpx.Client(transport=httpx.MockTransport(api)))
    gw.set_auth_failure_observer(SessionExpiryHandler(store, nav))
    notifier = Notifier()
    page = LoginPage(gw, notifier, store, navigate=nav.go)
    return page, store, storage, nav, notifier


def test_successful_login_stores_session_and_goes_home():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"id": 1, "name": "Ana", "email": "ana@x.co"}, "token": "T"}))
    page, store, storage, nav, notifier = _setup(api)

    assert page.submit("ana@x.co", "secret") is True

    assert store.is_authenticated and store.token == "T"
    assert storage.get("token") == "T"
    assert nav.current == HOME_PATH
    note = notifier.last
    assert note is not None and note.severity == "success"
    assert note.summary == "Bienvenido"
    assert note.detail == "Hola, Ana"
    assert json.loads(api.requests[0].content) == {"email": "ana@x.co", "password": "secret"}
    assert str(api.requests[0].url) == f"{BASE}/auth/login"


def test_greeting_falls_back_to_generic_name():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"email": "x@x.co"}, "token": "T"}))
    page, _, _, _, notifier = _setup(api)
    page.submit("x@x.co", "p")
    assert notifier.last is not None and notifier.last.detail == "Hola, Usuario"


def test_missing_token_is_a_failure():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"email": "x@x.co"}}))
    page, store, storage, nav, notifier = _setup(api)

    assert page.submit("x@x.co", "p") is False

    assert not store.is_authenticated
    assert storage.snapshot() == {}
    assert nav.current == LOGIN_PATH
    assert notifier.last is not None
    assert notifier.last.severity == "error"
    assert notifier.last.detail == MISSING_TOKEN_ERROR


def test_rejected_credentials_show_server_message_without_redirect():
    api = _LoginApi(httpx.Response(401, json={"message": "Usuario o clave inválidos"}))
    page, store, _, nav, notifier = _setup(api)

    assert page.submit("x@x.co", "bad") is False

    assert not store.is_authenticated
    # Already on the login screen: no navigation at all
    assert nav.history == [LOGIN_PATH]
    assert notifier.last is not None
    assert notifier.last.summary == "Error de acceso"
    assert notifier.last.detail == "Usuario o clave inválidos"


def test_rejection_without_message_uses_default():
    api = _LoginApi(httpx.Response(400, json={}))
    page, _, _, _, notifier = _setup(api)
    page.submit("x@x.co", "bad")
    assert notifier.last is not None and notifier.last.detail == DEFAULT_LOGIN_ERROR


def test_network_failure_reports_connectivity():
    api = _LoginApi(httpx.ConnectError("refused"))
    page, store, _, _, notifier = _setup(api)

    assert page.submit("x@x.co", "p") is False
    assert not store.is_authenticated
    assert notifier.last is not None and notifier.last.detail == "No se pudo conectar con el servidor"


@pytest.mark.parametrize("email,password", [("", "p"), ("x@x.co", ""), ("", "")])
def test_blank_fields_are_rejected_locally(email, password):
    api = _LoginApi(httpx.Response(200, json={}))
    page, _, _, _, notifier = _setup(api)

    assert page.submit(email, password) is False
    assert api.requests == []
    assert notifier.last is not None
    assert notifier.last.severity == "warn"
    assert notifier.last.detail == "Ingresa usuario y contraseña"


def test_login_then_logout_leaves_storage_empty():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"email": "x@x.co"}, "token": "T"}))
    page, store, storage, _, _ = _setup(api)
    page.submit("x@x.co", "p")

    store.logout()

    assert storage.snapshot() == {}


def test_login_stub_scenario_persists_user_and_token():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"id": 1, "email": "a@b.com"}, "token": "T1"}))
    page, _, storage, nav, _ = _setup(api)

    page.submit("a@b.com", "x")

    assert json.loads(storage.get("user"))["id"] == 1
    assert storage.get("token") == "T1"
    assert nav.current == HOME_PATH


def test_blank_token_is_treated_as_missing():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"email": "x@x.co"}, "token": "   "}))
    page, store, storage, nav, notifier = _setup(api)

    assert page.submit("x@x.co", "p") is False

    assert not store.is_authenticated
    assert storage.snapshot() == {}
    assert nav.current == LOGIN_PATH
    assert notifier.last is not None and notifier.last.detail == MISSING_TOKEN_ERROR


def test_string_user_id_is_accepted():
    api = _LoginApi(httpx.Response(200, json={"usuario": {"id": "u-7"}, "token": "T1"}))
    page, store, storage, nav, _ = _setup(api)

    assert page.submit("a@b.com", "x") is True

    assert store.user is not None and store.user.id == "u-7"
    assert json.loads(storage.get("user"))["id"] == "u-7"
    assert nav.current == HOME_PATH


@pytest.mark.parametrize("usuario", ["texto", {"id": {"nested": 1}}, {"name": ["Ana"]}])
def test_unusable_user_record_leaves_session_empty(usuario):
    api = _LoginApi(httpx.Response(200, json={"usuario": usuario, "token": "T1"}))
    page, store, storage, nav, notifier = _setup(api)

    assert page.submit("a@b.com", "x") is False

    assert not store.is_authenticated
    assert storage.snapshot() == {}
    assert nav.current == LOGIN_PATH
    assert notifier.last is not None
    assert notifier.last.severity == "error"
    assert notifier.last.detail == INVALID_USER_ERROR
