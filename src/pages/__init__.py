"""
Screens of the admin console as page objects.

Modules:
- base: EntityPage (list + dialog form) and shared form helpers
- login, dashboard, keygen: single-purpose screens
- clients, sellers, serials, activations: CRUD screens
- sales, payments: sales list, sale form and its embedded payments section
"""

__all__ = [
    "base",
    "login",
    "dashboard",
    "clients",
    "sellers",
    "serials",
    "sales",
    "payments",
    "activations",
    "keygen",
]
