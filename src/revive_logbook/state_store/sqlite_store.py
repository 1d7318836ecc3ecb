"""
SQLite-based record store implementation.

Tables:
- settings: JSON values under a fixed set of keys
- interaction_records: raw revive payloads keyed by (mode, id)
- payment_status: paid flag per "{timestamp}_{target_id}"
- revives_legacy: the pre-mode revives table, kept after migration

Derived fields (category, likelihood, skill gain) are never stored; they
are recomputed from the raw payloads on every load.
"""

import json
import logging
import re
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import MalformedRecord, StorageUnavailable
from ..schemas import ExclusionSet, InteractionRecord, Mode, ReceiptSettings

logger = logging.getLogger(__name__)

_PAYMENT_KEY_RE = re.compile(r"^(\d+)_(\d+)$")


class SettingKey(str, Enum):
    """The only keys the settings collection accepts."""

    API_KEY = "api_key"
    API_MODE = "api_mode"
    EXCLUDED_FILTERS = "excluded_filters"
    RECEIPT_SETTINGS = "receipt_settings"


def payment_key(timestamp: int, target_id: int) -> str:
    """Build the payment ledger key for a revive."""
    return f"{timestamp}_{target_id}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class RecordStore:
    """
    SQLite-backed store for settings, raw revives and the payment ledger.

    The store is an explicit resource: construct it, call ``init()`` once,
    and ``close()`` it at shutdown (or use it as a context manager). Every
    public method runs in its own transaction, so a batch write is either
    fully visible to the next read or not applied at all.
    """

    def __init__(self, db_path: Path | str):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> "RecordStore":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # === Lifecycle ===

    def init(self, schema_version: int | None = None) -> "RecordStore":
        """
        Open the database and apply pending migrations.

        Args:
            schema_version: Migrate up to this version (default: latest)

        Raises:
            StorageUnavailable: if the file cannot be opened or migrated
        """
        from .migrations import MigrationRunner

        if self._conn is not None:
            return self

        conn = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            MigrationRunner(conn).run_pending(target_version=schema_version)
        except (OSError, sqlite3.Error) as e:
            if conn is not None:
                conn.close()
            raise StorageUnavailable(f"Cannot open record store at {self.db_path}: {e}") from e

        self._conn = conn
        logger.debug("Record store opened at %s", self.db_path)
        return self

    def close(self) -> None:
        """Close the underlying connection. Safe to call twice."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Record store closed")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        if self._conn is None:
            raise StorageUnavailable("Record store is not initialized")
        conn = self._conn
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageUnavailable(f"Record store operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise

    def get_schema_version(self) -> int:
        """Highest applied migration version."""
        with self._transaction() as conn:
            row = conn.execute("SELECT MAX(version) FROM migrations").fetchone()
            return row[0] or 0

    # === Interaction records ===

    def put_records(
        self, mode: Mode | str, records: Iterable[dict[str, Any] | InteractionRecord]
    ) -> int:
        """
        Upsert raw revives for a mode. The last write for a given id wins.

        Every record is validated before anything is written, so a malformed
        record rejects the whole call.

        Returns:
            Number of ids that were not cached before this call

        Raises:
            MalformedRecord: if any record lacks an id or timestamp
        """
        mode = Mode.parse(mode)
        rows = []
        for record in records:
            if isinstance(record, InteractionRecord):
                parsed = record
                payload = record.to_dict()
            else:
                parsed = InteractionRecord.from_api_response(record, mode)
                payload = record
            rows.append((mode.value, parsed.id, parsed.timestamp, json.dumps(payload), _now()))

        if not rows:
            return 0

        with self._transaction() as conn:
            existing = {
                row["id"]
                for row in conn.execute(
                    "SELECT id FROM interaction_records WHERE mode = ?", (mode.value,)
                ).fetchall()
            }
            conn.executemany(
                """
                INSERT INTO interaction_records (mode, id, timestamp, payload, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(mode, id) DO UPDATE SET
                    timestamp = excluded.timestamp,
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
            """,
                rows,
            )

        new_ids = {row[1] for row in rows} - existing
        logger.debug("Stored %d %s revives (%d new)", len(rows), mode.value, len(new_ids))
        return len(new_ids)

    def get_all(self, mode: Mode | str) -> list[dict[str, Any]]:
        """Get every cached raw revive for a mode, ordered by id."""
        mode = Mode.parse(mode)
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT payload FROM interaction_records WHERE mode = ? ORDER BY id",
                (mode.value,),
            ).fetchall()

        records = []
        for row in rows:
            try:
                records.append(json.loads(row["payload"]))
            except ValueError:
                logger.warning("Skipping unreadable cached %s revive payload", mode.value)
        return records

    def count_records(self, mode: Mode | str) -> int:
        mode = Mode.parse(mode)
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM interaction_records WHERE mode = ?", (mode.value,)
            ).fetchone()
            return row[0]

    def get_oldest_timestamp(self, mode: Mode | str) -> int | None:
        """Minimum cached timestamp for a mode (None when nothing is cached)."""
        mode = Mode.parse(mode)
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT MIN(timestamp) FROM interaction_records WHERE mode = ?", (mode.value,)
            ).fetchone()
            return row[0]

    def get_newest_timestamp(self, mode: Mode | str) -> int | None:
        mode = Mode.parse(mode)
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT MAX(timestamp) FROM interaction_records WHERE mode = ?", (mode.value,)
            ).fetchone()
            return row[0]

    # === Settings ===

    def get_setting(self, key: SettingKey | str) -> Any:
        """Get a setting value, or None if it was never saved."""
        key = SettingKey(key)
        with self._transaction() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key.value,)).fetchone()
        return json.loads(row["value"]) if row else None

    def put_setting(self, key: SettingKey | str, value: Any) -> None:
        key = SettingKey(key)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
                (key.value, json.dumps(value)),
            )

    def delete_setting(self, key: SettingKey | str) -> bool:
        key = SettingKey(key)
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM settings WHERE key = ?", (key.value,))
            return cursor.rowcount > 0

    def get_api_key(self) -> str | None:
        return self.get_setting(SettingKey.API_KEY) or None

    def save_api_key(self, api_key: str) -> None:
        self.put_setting(SettingKey.API_KEY, api_key)

    def clear_api_key(self) -> None:
        self.delete_setting(SettingKey.API_KEY)

    def get_api_mode(self, default: Mode | str = Mode.INDIVIDUAL) -> Mode:
        value = self.get_setting(SettingKey.API_MODE)
        try:
            return Mode.parse(value) if value else Mode.parse(default)
        except ValueError:
            logger.warning("Ignoring unknown saved mode %r", value)
            return Mode.parse(default)

    def save_api_mode(self, mode: Mode | str) -> None:
        self.put_setting(SettingKey.API_MODE, Mode.parse(mode).value)

    def get_exclusions(self) -> ExclusionSet:
        return ExclusionSet.from_dict(self.get_setting(SettingKey.EXCLUDED_FILTERS))

    def save_exclusions(self, exclusions: ExclusionSet) -> None:
        self.put_setting(SettingKey.EXCLUDED_FILTERS, exclusions.to_dict())

    def get_receipt_settings(self) -> ReceiptSettings:
        return ReceiptSettings.from_dict(self.get_setting(SettingKey.RECEIPT_SETTINGS))

    def save_receipt_settings(self, settings: ReceiptSettings) -> None:
        self.put_setting(SettingKey.RECEIPT_SETTINGS, settings.to_dict())

    # === Payment ledger ===

    def get_payment(self, key: str) -> bool | None:
        """Paid flag for a ledger key, or None if it was never toggled."""
        with self._transaction() as conn:
            row = conn.execute("SELECT is_paid FROM payment_status WHERE id = ?", (key,)).fetchone()
            return bool(row["is_paid"]) if row else None

    def put_payment(self, key: str, paid: bool) -> None:
        match = _PAYMENT_KEY_RE.match(key)
        timestamp, target_id = (int(match.group(1)), int(match.group(2))) if match else (None, None)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO payment_status (id, timestamp, target_id, is_paid, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    is_paid = excluded.is_paid,
                    updated_at = excluded.updated_at
            """,
                (key, timestamp, target_id, int(bool(paid)), _now()),
            )

    def get_all_payments(self) -> dict[str, bool]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT id, is_paid FROM payment_status").fetchall()
            return {row["id"]: bool(row["is_paid"]) for row in rows}

    def toggle_payment(self, timestamp: int, target_id: int) -> bool:
        """Flip the paid flag of a revive. Returns the new value."""
        key = payment_key(timestamp, target_id)
        paid = not (self.get_payment(key) or False)
        self.put_payment(key, paid)
        return paid

    # === Maintenance ===

    def clear_all(self) -> None:
        """Wipe settings, cached revives and payments in one transaction."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM settings")
            conn.execute("DELETE FROM interaction_records")
            conn.execute("DELETE FROM payment_status")
        logger.info("Cleared all cached data")

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        with self._transaction() as conn:
            per_mode = {
                row["mode"]: row["count"]
                for row in conn.execute(
                    "SELECT mode, COUNT(*) as count FROM interaction_records GROUP BY mode"
                ).fetchall()
            }
            paid = conn.execute(
                "SELECT COUNT(*) FROM payment_status WHERE is_paid = 1"
            ).fetchone()[0]
            unpaid = conn.execute(
                "SELECT COUNT(*) FROM payment_status WHERE is_paid = 0"
            ).fetchone()[0]
            version = conn.execute("SELECT MAX(version) FROM migrations").fetchone()[0] or 0

        return {
            "records_individual": per_mode.get(Mode.INDIVIDUAL.value, 0),
            "records_group": per_mode.get(Mode.GROUP.value, 0),
            "payments_paid": paid,
            "payments_unpaid": unpaid,
            "schema_version": version,
        }
