"""Shared API dependencies — single import point for all routers.

Re-exports the database session and clock dependencies so that router
modules can import everything they need from one place::

    from visitgate.api.deps import get_clock, get_db
"""

from visitgate.clock import get_clock
from visitgate.database import get_db

__all__ = [
    "get_clock",
    "get_db",
]
