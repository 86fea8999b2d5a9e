"""
Common utilities for the Exógena admin console.

Modules:
- api: HTTP gateway with bearer auth and typed errors
- config: environment-driven settings
- formatting: COP amounts, dates and text tables
- notifications: user-facing messages emitted by pages
"""

__all__ = [
    "api",
    "config",
    "formatting",
    "notifications",
]
