from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from auth.guard import LOGIN_PATH, AccessGuard, Decision, Navigator, SessionExpiryHandler
from auth.storage import JsonFileStorage, SessionStorage
from auth.store import SessionStore
from common.api import ApiGateway
from common.config import Settings
from common.notifications import Notifier
from pages.activations import ActivationsPage
from pages.base import Page
from pages.clients import ClientsPage
from pages.dashboard import DashboardPage
from pages.keygen import KeyGeneratorPage
from pages.login import LoginPage
from pages.sales import SaleFormPage, SalesListPage
from pages.sellers import SellersPage
from pages.serials import SerialsPage


logger = logging.getLogger(__name__)

SALE_FORM_ROUTE = "/ventas/*"

ROUTES: Tuple[str, ...] = (
    LOGIN_PATH,
    "/dashboard",
    "/clientes",
    "/vendedores",
    "/seriales",
    "/ventas",
    SALE_FORM_ROUTE,
    "/activaciones",
    "/generar-clave",
)

# (label, path) of the main-layout menu
MENU_ITEMS: Tuple[Tuple[str, str], ...] = (
    ("Panel Principal", "/dashboard"),
    ("Activaciones", "/activaciones"),
    ("Vendedores", "/vendedores"),
    ("Clientes", "/clientes"),
    ("Seriales", "/seriales"),
    ("Ventas", "/ventas"),
    ("Generar Clave", "/generar-clave"),
)

# A guard decision never chains more than login -> dashboard
_MAX_REDIRECTS = 3


class Application:
    """
    Composition root of the console.

    Wiring: settings -> storage -> session store -> gateway (token from the
    store) -> navigator -> guard, plus the session-expiry observer installed
    on the gateway. `start()` restores the persisted session; until then the
    guard answers with a placeholder for every path.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        storage: Optional[SessionStorage] = None,
        client: Optional[httpx.Client] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.storage = storage or JsonFileStorage(self.settings.session_file, fernet_key=self.settings.fernet_key)
        self.store = SessionStore(self.storage)
        self.gateway = ApiGateway(
            self.settings.api_url,
            token_provider=lambda: self.store.token,
            timeout=self.settings.timeout,
            client=client,
        )
        self.notifier = notifier or Notifier()
        self.navigator = Navigator()
        self.guard = AccessGuard(self.store, routes=ROUTES)
        self.gateway.set_auth_failure_observer(SessionExpiryHandler(self.store, self.navigator))
        self.page: Optional[Page] = None
        self._page_path: Optional[str] = None

    @property
    def current_path(self) -> Optional[str]:
        """Path of the page currently open (None before the first navigation)."""
        return self._page_path

    def start(self) -> None:
        self.store.initialize()

    def close(self) -> None:
        if self.page is not None:
            self.page.unmount()
            self.page = None
        self.gateway.close()

    def __enter__(self) -> "Application":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------- Routing --------
    def resolve(self, path: str) -> Decision:
        """Follow guard redirects until a render or placeholder decision."""
        decision = self.guard.resolve(path)
        for _ in range(_MAX_REDIRECTS):
            if not decision.is_redirect:
                break
            decision = self.guard.resolve(decision.target)
        if decision.is_redirect:
            raise RuntimeError(f"Redirect loop resolving {path}")
        return decision

    def navigate(self, path: str) -> Optional[Page]:
        """Open `path` (or where the guard sends it). None while the session is pending."""
        decision = self.resolve(path)
        if decision.kind == "placeholder":
            logger.debug("Session not restored yet; placeholder for %s", path)
            return None
        if decision.target != path:
            logger.info("Redirected %s -> %s", path, decision.target)
        if self.navigator.current != decision.target:
            self.navigator.go(decision.target)
        return self._open(decision.target)

    def follow(self) -> Optional[Page]:
        """Open the navigator's location if a page or the expiry observer moved it."""
        if self.navigator.current == self._page_path and self.page is not None:
            return self.page
        return self.navigate(self.navigator.current)

    def _open(self, path: str) -> Page:
        if self.page is not None:
            self.page.unmount()
        page = self.build_page(path)
        self.page, self._page_path = page, path
        page.mount()
        if self.navigator.current != path:
            # Session expired while the page was loading
            return self.navigate(self.navigator.current)
        return page

    def build_page(self, path: str) -> Page:
        factories: Dict[str, Callable[[], Page]] = {
            LOGIN_PATH: lambda: LoginPage(self.gateway, self.notifier, self.store, navigate=self.navigator.go),
            "/dashboard": lambda: DashboardPage(self.gateway, self.notifier),
            "/clientes": lambda: ClientsPage(self.gateway, self.notifier),
            "/vendedores": lambda: SellersPage(self.gateway, self.notifier),
            "/seriales": lambda: SerialsPage(self.gateway, self.notifier),
            "/ventas": lambda: SalesListPage(self.gateway, self.notifier),
            "/activaciones": lambda: ActivationsPage(self.gateway, self.notifier),
            "/generar-clave": lambda: KeyGeneratorPage(self.gateway, self.notifier),
        }
        factory = factories.get(path)
        if factory is not None:
            return factory()
        prefix = SALE_FORM_ROUTE[:-1]
        if path.startswith(prefix):
            return SaleFormPage(
                self.gateway,
                self.notifier,
                path[len(prefix):],
                navigate=self.navigator.go,
            )
        raise KeyError(f"No page for {path}")

    # -------- Layout --------
    def menu(self) -> List[Tuple[str, str]]:
        return list(MENU_ITEMS) if self.store.is_authenticated else []

    def logout(self) -> None:
        self.store.logout()
        self.navigator.go(LOGIN_PATH)
        self.follow()


__all__ = ["Application", "MENU_ITEMS", "ROUTES"]
