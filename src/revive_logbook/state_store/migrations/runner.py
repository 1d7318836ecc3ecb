"""
Migration runner for versioned database schema changes.

Migration modules live next to this file and are named
``{version:03d}_{name}.py`` (001_initial_layout.py, 002_mode_scoped_records.py).
Each one defines:

- VERSION: int, matching the file prefix
- NAME: str
- upgrade(conn: Connection) -> None

Migrations only ever move the schema forward. A store opened at an older
``target_version`` is upgraded the next time it is opened without one.
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

_PACKAGE = __name__.rsplit(".", 1)[0]


@dataclass(frozen=True)
class Migration:
    """One forward-only schema step."""

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]


def get_all_migrations() -> list[Migration]:
    """Load every migration module in this package, sorted by version.

    Raises:
        ValueError: if a module's VERSION disagrees with its file prefix
    """
    migrations = []
    for py_file in sorted(Path(__file__).parent.glob("[0-9][0-9][0-9]_*.py")):
        module = importlib.import_module(f"{_PACKAGE}.{py_file.stem}")
        prefix = int(py_file.stem[:3])
        if module.VERSION != prefix:
            raise ValueError(
                f"Migration {py_file.name} declares VERSION {module.VERSION}, expected {prefix}"
            )
        migrations.append(Migration(module.VERSION, module.NAME, module.upgrade))

    return sorted(migrations, key=lambda m: m.version)


class MigrationRunner:
    """
    Applies pending migrations to an open connection.

    Applied versions are recorded in a ``migrations`` table, one row per
    version, in the same commit as the schema change itself.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        rows = self.conn.execute("SELECT version FROM migrations").fetchall()
        return {row[0] for row in rows}

    def get_current_version(self) -> int:
        """Highest applied version (0 for a fresh database)."""
        return max(self.get_applied_versions(), default=0)

    def apply_migration(self, migration: Migration) -> None:
        logger.info("Applying migration %03d: %s", migration.version, migration.name)
        try:
            migration.upgrade(self.conn)
            self.conn.execute(
                "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (
                    migration.version,
                    migration.name,
                    datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error("Migration %03d failed: %s", migration.version, e)
            raise

    def run_pending(self, target_version: int | None = None) -> list[int]:
        """
        Apply pending migrations in order.

        Args:
            target_version: Stop after this version (None: apply everything)

        Returns:
            Versions applied by this call
        """
        applied = self.get_applied_versions()
        pending = [
            m
            for m in get_all_migrations()
            if m.version not in applied and (target_version is None or m.version <= target_version)
        ]

        for migration in pending:
            self.apply_migration(migration)

        versions = [m.version for m in pending]
        if versions:
            logger.info("Schema now at version %d", self.get_current_version())
        else:
            logger.debug("No pending migrations")
        return versions
