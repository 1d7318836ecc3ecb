"""
Migration 003: Track when records and payments were last written.
"""

import sqlite3

VERSION = 3
NAME = "updated_at"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add updated_at columns."""
    conn.execute("ALTER TABLE interaction_records ADD COLUMN updated_at TEXT DEFAULT NULL")
    conn.execute("ALTER TABLE payment_status ADD COLUMN updated_at TEXT DEFAULT NULL")
