from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence, cast

from auth.guard import LOGIN_PATH
from common.config import Settings
from common.logging_config import setup_logging
from common.notifications import Notification, Notifier
from pages.base import EntityPage, FormValidationError, Page
from pages.keygen import KeyGeneratorPage
from pages.login import LoginPage
from pages.sales import NEW_SALE, SaleFormPage, SalesListPage

from .app import Application


logger = logging.getLogger(__name__)

ENTITY_PATHS = {
    "clientes": "/clientes",
    "vendedores": "/vendedores",
    "seriales": "/seriales",
    "activaciones": "/activaciones",
}
EDITABLE = ("clientes", "vendedores", "seriales")
_YES = ("s", "si", "sí", "y", "yes")


class CommandError(Exception):
    """A command could not run; the message is shown to the user."""


def _print_notification(note: Notification) -> None:
    print(note.format(), file=sys.stderr)


def _parse_assignments(items: Optional[Sequence[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for item in items or ():
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise CommandError(f"Asignación inválida: {item!r} (use campo=valor)")
        out[name.strip()] = value
    return out


def _confirm(assume_yes: bool) -> Any:
    if assume_yes:
        return lambda _message: True

    def _ask(message: str) -> bool:
        return input(f"{message} [s/N] ").strip().lower() in _YES

    return _ask


def _open(app: Application, path: str) -> Page:
    page = app.navigate(path)
    if page is None:
        raise CommandError("La sesión aún no está lista")
    if app.current_path == LOGIN_PATH and path != LOGIN_PATH:
        raise CommandError("Sesión no iniciada o expirada. Ejecute: exogena login")
    return page


# -------- Commands --------
def cmd_login(app: Application, args: argparse.Namespace) -> None:
    page = app.navigate(LOGIN_PATH)
    if not isinstance(page, LoginPage):
        user = app.store.user
        print(f"Ya hay una sesión activa ({user.email if user else ''})")
        return
    email = args.email or input("Email: ").strip()
    password = args.password or getpass.getpass("Contraseña: ")
    if not page.submit(email, password):
        raise CommandError("No se pudo iniciar sesión")
    app.follow()


def cmd_logout(app: Application, args: argparse.Namespace) -> None:
    app.logout()
    print("Sesión cerrada")


def cmd_whoami(app: Application, args: argparse.Namespace) -> None:
    user = app.store.user
    if user is None:
        raise CommandError("No hay sesión activa")
    print(f"{user.display_name} <{user.email or ''}>")
    for label, path in app.menu():
        print(f"  {label:<16} {path}")


def cmd_dashboard(app: Application, args: argparse.Namespace) -> None:
    print(_open(app, "/dashboard").render())


def cmd_entity(app: Application, args: argparse.Namespace) -> None:
    page = cast(EntityPage, _open(app, ENTITY_PATHS[args.entity]))

    if args.action == "list":
        if args.buscar:
            page.search(args.buscar)
        print(page.render())
    elif args.action == "delete":
        page.delete(args.id, confirm=_confirm(args.yes))
    elif args.action == "save":
        _save_entity(page, args)


def _save_entity(page: EntityPage, args: argparse.Namespace) -> None:
    changes = _parse_assignments(args.set)
    if args.id is not None:
        record = next((r for r in page.rows if r.get("id") == args.id), None)
        if record is None:
            raise CommandError(f"Registro {args.id} no encontrado")
        if page.edit(record) is None:
            raise CommandError(f"Registro {args.id} no se puede editar")
    else:
        page.new()
    try:
        page.update_form(**changes)
    except FormValidationError as ve:
        raise CommandError(ve.message) from ve
    if not page.save():
        raise CommandError("No se guardaron los cambios")


def cmd_sales(app: Application, args: argparse.Namespace) -> None:
    if args.action == "list":
        page = cast(SalesListPage, _open(app, "/ventas"))
        if args.ano is not None and args.ano != page.year:
            page.set_year(args.ano)
        if args.buscar:
            page.search(args.buscar)
        print(page.render())
    elif args.action == "show":
        print(_open(app, f"/ventas/{args.id}").render())
    elif args.action == "save":
        page = cast(SaleFormPage, _open(app, f"/ventas/{args.id if args.id is not None else NEW_SALE}"))
        if not page.is_new and page.record is None:
            raise CommandError(f"Venta {args.id} no disponible")
        try:
            page.update_form(**_parse_assignments(args.set))
        except FormValidationError as ve:
            raise CommandError(ve.message) from ve
        if not page.save():
            raise CommandError("No se guardaron los cambios")
        app.follow()


def cmd_payments(app: Application, args: argparse.Namespace) -> None:
    page = cast(SaleFormPage, _open(app, f"/ventas/{args.venta}"))
    if args.action == "add" and not page.payments.register(args.monto, fecha_pago=args.fecha, metodo_pago=args.metodo):
        raise CommandError("No se registró el pago")
    print(page.payments.render())


def cmd_keygen(app: Application, args: argparse.Namespace) -> None:
    page = cast(KeyGeneratorPage, _open(app, "/generar-clave"))
    if page.generate(args.serial) is None:
        raise CommandError("No se generó la clave")
    print(page.render())


# -------- Parser --------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="exogena", description="Consola administrativa Exógena 2025")
    parser.add_argument("--log-file", default=None, help="Archivo de log adicional")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("login", help="Iniciar sesión")
    p.add_argument("--email", default=None)
    p.add_argument("--password", default=None)
    p.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Cerrar sesión").set_defaults(func=cmd_logout)
    sub.add_parser("whoami", help="Usuario de la sesión actual").set_defaults(func=cmd_whoami)
    sub.add_parser("dashboard", help="Panel principal").set_defaults(func=cmd_dashboard)

    for entity in ENTITY_PATHS:
        ep = sub.add_parser(entity, help=f"Gestión de {entity}")
        actions = ep.add_subparsers(dest="action", required=True)
        lp = actions.add_parser("list")
        lp.add_argument("--buscar", default="", help="Filtro global")
        dp = actions.add_parser("delete")
        dp.add_argument("id", type=int)
        dp.add_argument("--yes", action="store_true", help="No pedir confirmación")
        if entity in EDITABLE:
            sp = actions.add_parser("save")
            sp.add_argument("--id", type=int, default=None, help="Registro a editar; sin --id crea uno nuevo")
            sp.add_argument("--set", action="append", metavar="CAMPO=VALOR")
        ep.set_defaults(func=cmd_entity, entity=entity)

    vp = sub.add_parser("ventas", help="Registro de ventas")
    va = vp.add_subparsers(dest="action", required=True)
    vl = va.add_parser("list")
    vl.add_argument("--ano", type=int, default=None)
    vl.add_argument("--buscar", default="")
    vs = va.add_parser("show")
    vs.add_argument("id", type=int)
    vv = va.add_parser("save")
    vv.add_argument("--id", type=int, default=None)
    vv.add_argument("--set", action="append", metavar="CAMPO=VALOR")
    vp.set_defaults(func=cmd_sales)

    pp = sub.add_parser("pagos", help="Pagos de una venta")
    pa = pp.add_subparsers(dest="action", required=True)
    pl = pa.add_parser("list")
    pl.add_argument("venta", type=int)
    padd = pa.add_parser("add")
    padd.add_argument("venta", type=int)
    padd.add_argument("monto")
    padd.add_argument("--fecha", default=None, help="AAAA-MM-DD; por defecto hoy")
    padd.add_argument("--metodo", default="transferencia")
    pp.set_defaults(func=cmd_payments)

    kp = sub.add_parser("generar-clave", help="Generar clave de activación")
    kp.add_argument("serial")
    kp.set_defaults(func=cmd_keygen)

    return parser


def main(argv: Optional[List[str]] = None, app: Optional[Application] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if app is None:
        try:
            settings = Settings.from_env()
        except RuntimeError as ex:
            print(str(ex), file=sys.stderr)
            return 2
        setup_logging(settings.log_level, args.log_file)
        app = Application(settings, notifier=Notifier(listener=_print_notification))

    with app:
        app.start()
        try:
            args.func(app, args)
        except CommandError as ex:
            logger.info("Command %s failed: %s", args.command, ex)
            print(str(ex), file=sys.stderr)
            return 1
        if app.notifier.has_errors():
            return 1
        # Session expired during the command
        if app.navigator.current == LOGIN_PATH and args.command not in ("login", "logout", "whoami"):
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
