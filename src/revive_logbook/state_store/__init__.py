"""
Record store (SQLite-based).

Persistent local cache for:
- Settings (API key, mode, exclusions, receipt prices)
- Raw revives per mode, with the oldest timestamp driving backfill
- The payment ledger

Enforces uniqueness on (mode, id).
"""

from .sqlite_store import RecordStore, SettingKey, payment_key

__all__ = [
    "RecordStore",
    "SettingKey",
    "payment_key",
]
