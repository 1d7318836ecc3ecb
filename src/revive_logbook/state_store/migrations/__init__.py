"""
Database migrations module.

Versioned, ordered, additive migrations for the SQLite record store.
Applied migrations are tracked in a ``migrations`` table.
"""

from .runner import Migration, MigrationRunner, get_all_migrations

__all__ = ["Migration", "MigrationRunner", "get_all_migrations"]
