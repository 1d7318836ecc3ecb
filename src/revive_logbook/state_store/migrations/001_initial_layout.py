"""
Migration 001: Initial layout.

Settings, a single unversioned revives table and the payment ledger.
The revives table predates mode-scoped records; 002 splits it.
"""

import sqlite3

VERSION = 1
NAME = "initial_layout"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create settings, revives and payment_status tables."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL  -- JSON
        )
    """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS revives (
            id INTEGER PRIMARY KEY,
            timestamp INTEGER NOT NULL,
            payload TEXT NOT NULL  -- JSON revive object
        )
    """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_revives_timestamp ON revives(timestamp)")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS payment_status (
            id TEXT PRIMARY KEY,  -- "{timestamp}_{target_id}"
            timestamp INTEGER,
            target_id INTEGER,
            is_paid INTEGER NOT NULL DEFAULT 0
        )
    """
    )
