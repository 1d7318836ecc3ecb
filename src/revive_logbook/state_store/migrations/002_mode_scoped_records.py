"""
Migration 002: Mode-scoped interaction records.

Moves the unversioned revives table into interaction_records keyed by
(mode, id). Legacy rows were always the player's own revives, so they land
in the individual mode. Rows whose payload cannot be read are skipped and
left behind in revives_legacy, which is kept rather than dropped.
"""

import json
import logging
import sqlite3

VERSION = 2
NAME = "mode_scoped_records"

logger = logging.getLogger(__name__)


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone()
    return row is not None


def upgrade(conn: sqlite3.Connection) -> None:
    """Create interaction_records and carry legacy revives over."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS interaction_records (
            mode TEXT NOT NULL,
            id INTEGER NOT NULL,
            timestamp INTEGER NOT NULL,
            payload TEXT NOT NULL,  -- JSON revive object
            PRIMARY KEY (mode, id)
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_interaction_records_mode_ts "
        "ON interaction_records(mode, timestamp)"
    )

    if not _table_exists(conn, "revives"):
        return

    copied = 0
    skipped = 0
    for row in conn.execute("SELECT id, timestamp, payload FROM revives").fetchall():
        try:
            payload = json.loads(row[2])
        except (TypeError, ValueError):
            payload = None
        if (
            not isinstance(payload, dict)
            or not isinstance(payload.get("id"), int)
            or not isinstance(payload.get("timestamp"), int)
        ):
            logger.warning("Skipping legacy revive %s with unexpected shape", row[0])
            skipped += 1
            continue

        conn.execute(
            """
            INSERT INTO interaction_records (mode, id, timestamp, payload)
            VALUES ('individual', ?, ?, ?)
            ON CONFLICT(mode, id) DO NOTHING
        """,
            (payload["id"], payload["timestamp"], row[2]),
        )
        copied += 1

    conn.execute("DROP INDEX IF EXISTS idx_revives_timestamp")
    conn.execute("ALTER TABLE revives RENAME TO revives_legacy")
    logger.info("Moved %d legacy revives to individual mode (%d skipped)", copied, skipped)
