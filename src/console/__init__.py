"""
Command-line front end of the admin console.

Modules:
- app: composition root (settings, session store, gateway, guard, routes)
- cli: `exogena` argparse entry point
"""

__all__ = [
    "app",
    "cli",
]
