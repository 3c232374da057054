"""Database bootstrap utilities for the enquiry service.

Exposes engine construction, the unit-of-work transaction helper and the
SQL migrations runner. ORM models are not used; repositories issue SQL text.
"""

from enquiries.db.base import get_engine, reset_engine, unit_of_work
from enquiries.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "unit_of_work",
    "apply_migrations",
]
