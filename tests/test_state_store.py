"""Tests for the record store."""

import json
import sqlite3

import pytest

from revive_logbook.errors import MalformedRecord, StorageUnavailable
from revive_logbook.schemas import ExclusionSet, InteractionRecord, Mode, ReceiptSettings
from revive_logbook.state_store import RecordStore, SettingKey, payment_key
from revive_logbook.state_store.migrations import MigrationRunner, get_all_migrations


class TestRecordStoreLifecycle:
    """Tests for opening, closing and migrating the store."""

    def test_init_creates_db(self, temp_db):
        """Initializing creates the database file."""
        store = RecordStore(temp_db).init()
        try:
            assert temp_db.exists()
        finally:
            store.close()

    def test_init_creates_tables(self, store):
        """All collections are created."""
        with store._transaction() as conn:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        table_names = [t[0] for t in tables]

        assert "settings" in table_names
        assert "interaction_records" in table_names
        assert "payment_status" in table_names
        assert "migrations" in table_names

    def test_schema_version_is_latest(self, store):
        assert store.get_schema_version() == 3

    def test_init_is_idempotent(self, store):
        assert store.init() is store
        assert store.is_open

    def test_context_manager_closes(self, temp_db):
        with RecordStore(temp_db) as store:
            assert store.is_open
        assert not store.is_open

    def test_use_before_init_raises(self, temp_db):
        store = RecordStore(temp_db)
        with pytest.raises(StorageUnavailable):
            store.get_all(Mode.INDIVIDUAL)

    def test_use_after_close_raises_and_reinit_recovers(self, temp_db, make_revive):
        store = RecordStore(temp_db).init()
        store.put_records(Mode.INDIVIDUAL, [make_revive(1, 100)])
        store.close()

        with pytest.raises(StorageUnavailable):
            store.count_records(Mode.INDIVIDUAL)

        store.init()
        try:
            assert store.count_records(Mode.INDIVIDUAL) == 1
        finally:
            store.close()

    def test_unopenable_path_raises(self, tmp_path):
        """A directory in place of the database file is unusable."""
        db_dir = tmp_path / "not_a_file.db"
        db_dir.mkdir()
        with pytest.raises(StorageUnavailable):
            RecordStore(db_dir).init()


class TestInteractionRecords:
    """Tests for per-mode raw revive storage."""

    def test_put_and_get_all(self, store, sample_page):
        new = store.put_records(Mode.INDIVIDUAL, sample_page)

        assert new == 5
        records = store.get_all(Mode.INDIVIDUAL)
        assert [r["id"] for r in records] == [101, 102, 103, 104, 105]
        assert records[0]["target"]["name"] == "Ann"

    def test_modes_are_isolated(self, store, make_revive):
        store.put_records(Mode.INDIVIDUAL, [make_revive(1, 100)])
        store.put_records(Mode.GROUP, [make_revive(1, 50), make_revive(2, 60)])

        assert store.count_records(Mode.INDIVIDUAL) == 1
        assert store.count_records(Mode.GROUP) == 2
        assert store.get_oldest_timestamp(Mode.INDIVIDUAL) == 100
        assert store.get_oldest_timestamp(Mode.GROUP) == 50

    def test_mode_accepts_strings(self, store, make_revive):
        store.put_records("group", [make_revive(1, 100)])
        assert store.count_records("faction") == 1

    def test_upsert_last_write_wins(self, store, make_revive):
        store.put_records(Mode.INDIVIDUAL, [make_revive(1, 100, target_name="Old")])
        new = store.put_records(Mode.INDIVIDUAL, [make_revive(1, 100, target_name="New")])

        assert new == 0
        records = store.get_all(Mode.INDIVIDUAL)
        assert len(records) == 1
        assert records[0]["target"]["name"] == "New"

    def test_duplicate_ids_within_one_batch(self, store, make_revive):
        store.put_records(
            Mode.INDIVIDUAL,
            [make_revive(1, 100, chance=10.0), make_revive(1, 100, chance=90.0)],
        )
        records = store.get_all(Mode.INDIVIDUAL)
        assert len(records) == 1
        assert records[0]["success_chance"] == 90.0

    def test_overlapping_batches_count_unique_ids(self, store, make_revive):
        store.put_records(Mode.INDIVIDUAL, [make_revive(i, 100 + i) for i in range(1, 6)])
        new = store.put_records(Mode.INDIVIDUAL, [make_revive(i, 100 + i) for i in range(4, 9)])

        assert new == 3
        assert len(store.get_all(Mode.INDIVIDUAL)) == 8

    def test_malformed_record_rejects_whole_batch(self, store, make_revive):
        bad = make_revive(2, 200)
        del bad["timestamp"]

        with pytest.raises(MalformedRecord):
            store.put_records(Mode.INDIVIDUAL, [make_revive(1, 100), bad])

        assert store.count_records(Mode.INDIVIDUAL) == 0

    def test_put_parsed_records(self, store, make_revive):
        record = InteractionRecord.from_api_response(make_revive(7, 700))
        store.put_records(Mode.INDIVIDUAL, [record])

        assert store.get_all(Mode.INDIVIDUAL)[0]["id"] == 7

    def test_oldest_and_newest_timestamp(self, store, sample_page):
        assert store.get_oldest_timestamp(Mode.INDIVIDUAL) is None
        store.put_records(Mode.INDIVIDUAL, sample_page)

        assert store.get_oldest_timestamp(Mode.INDIVIDUAL) == 1_700_000_100
        assert store.get_newest_timestamp(Mode.INDIVIDUAL) == 1_700_000_500

    def test_empty_batch_is_noop(self, store):
        assert store.put_records(Mode.INDIVIDUAL, []) == 0


class TestSettings:
    """Tests for fixed-key settings."""

    def test_missing_setting_is_none(self, store):
        assert store.get_setting(SettingKey.API_KEY) is None

    def test_put_and_get_scalar(self, store):
        store.put_setting("api_key", "abc123")
        assert store.get_setting(SettingKey.API_KEY) == "abc123"

    def test_unknown_key_rejected(self, store):
        with pytest.raises(ValueError):
            store.put_setting("favourite_colour", "green")

    def test_api_key_helpers(self, store):
        store.save_api_key("secret")
        assert store.get_api_key() == "secret"

        store.clear_api_key()
        assert store.get_api_key() is None

    def test_api_mode_defaults_and_persists(self, store):
        assert store.get_api_mode() is Mode.INDIVIDUAL

        store.save_api_mode("group")
        assert store.get_api_mode() is Mode.GROUP

    def test_unknown_saved_mode_falls_back(self, store):
        store.put_setting(SettingKey.API_MODE, "guild")
        assert store.get_api_mode() is Mode.INDIVIDUAL

    def test_exclusions_round_trip(self, store):
        store.save_exclusions(ExclusionSet(players={"Bob"}, factions={"Bad Guys"}))

        exclusions = store.get_exclusions()
        assert exclusions.players == {"Bob"}
        assert exclusions.factions == {"Bad Guys"}

    def test_receipt_settings_defaults(self, store):
        settings = store.get_receipt_settings()
        assert settings == ReceiptSettings()

    def test_receipt_settings_saved(self, store):
        store.save_receipt_settings(ReceiptSettings(xanax_per_revive=2, money_per_revive=0))
        settings = store.get_receipt_settings()
        assert settings.xanax_per_revive == 2
        assert settings.money_per_revive == 0


class TestPaymentLedger:
    """Tests for payment status tracking."""

    def test_payment_key_format(self):
        assert payment_key(1700000000, 42) == "1700000000_42"

    def test_unknown_payment_is_none(self, store):
        assert store.get_payment("1_2") is None

    def test_put_and_get_payment(self, store):
        store.put_payment("100_5", True)
        assert store.get_payment("100_5") is True

        store.put_payment("100_5", False)
        assert store.get_payment("100_5") is False

    def test_toggle_payment(self, store):
        assert store.toggle_payment(100, 5) is True
        assert store.toggle_payment(100, 5) is False
        assert store.get_all_payments() == {"100_5": False}

    def test_payment_row_keeps_components(self, store):
        store.put_payment("1700000000_42", True)
        with store._transaction() as conn:
            row = conn.execute("SELECT timestamp, target_id FROM payment_status").fetchone()
        assert (row["timestamp"], row["target_id"]) == (1700000000, 42)

    def test_payments_survive_reload(self, temp_db):
        with RecordStore(temp_db) as store:
            store.put_payment("100_5", True)
        with RecordStore(temp_db) as store:
            assert store.get_all_payments() == {"100_5": True}


class TestClearAll:
    def test_clear_all_wipes_every_collection(self, store, sample_page):
        store.put_records(Mode.INDIVIDUAL, sample_page)
        store.put_records(Mode.GROUP, sample_page)
        store.save_api_key("secret")
        store.put_payment("1_2", True)

        store.clear_all()

        assert store.get_all(Mode.INDIVIDUAL) == []
        assert store.get_all(Mode.GROUP) == []
        assert store.get_api_key() is None
        assert store.get_all_payments() == {}

    def test_stats(self, store, sample_page):
        store.put_records(Mode.GROUP, sample_page)
        store.put_payment("1_2", True)
        store.put_payment("3_4", False)

        stats = store.get_stats()
        assert stats["records_individual"] == 0
        assert stats["records_group"] == 5
        assert stats["payments_paid"] == 1
        assert stats["payments_unpaid"] == 1
        assert stats["schema_version"] == 3


class TestLegacyMigration:
    """Upgrading a database created before records were mode-scoped."""

    def _seed_legacy(self, temp_db, rows):
        store = RecordStore(temp_db).init(schema_version=1)
        with store._transaction() as conn:
            conn.executemany(
                "INSERT INTO revives (id, timestamp, payload) VALUES (?, ?, ?)", rows
            )
        store.close()

    def test_legacy_revives_move_to_individual(self, temp_db, make_revive):
        self._seed_legacy(
            temp_db,
            [
                (1, 100, json.dumps(make_revive(1, 100))),
                (2, 200, json.dumps(make_revive(2, 200))),
            ],
        )

        with RecordStore(temp_db) as store:
            assert store.get_schema_version() == 3
            assert [r["id"] for r in store.get_all(Mode.INDIVIDUAL)] == [1, 2]
            assert store.get_all(Mode.GROUP) == []
            assert store.get_oldest_timestamp(Mode.INDIVIDUAL) == 100

    def test_malformed_legacy_rows_skipped_not_dropped(self, temp_db, make_revive):
        self._seed_legacy(
            temp_db,
            [
                (1, 100, json.dumps(make_revive(1, 100))),
                (2, 200, "not json"),
                (3, 300, json.dumps({"id": "three"})),
            ],
        )

        with RecordStore(temp_db) as store:
            assert [r["id"] for r in store.get_all(Mode.INDIVIDUAL)] == [1]
            with store._transaction() as conn:
                legacy = conn.execute("SELECT COUNT(*) FROM revives_legacy").fetchone()[0]
            assert legacy == 3

    def test_legacy_settings_and_payments_kept(self, temp_db):
        store = RecordStore(temp_db).init(schema_version=1)
        with store._transaction() as conn:
            conn.execute("INSERT INTO settings (key, value) VALUES ('api_key', '\"k\"')")
            conn.execute("INSERT INTO payment_status (id, is_paid) VALUES ('100_5', 1)")
        store.close()

        with RecordStore(temp_db) as store:
            assert store.get_api_key() == "k"
            assert store.get_payment("100_5") is True

    def test_upgrade_from_version_2(self, temp_db, make_revive):
        store = RecordStore(temp_db).init(schema_version=2)
        with store._transaction() as conn:
            columns = [r[1] for r in conn.execute("PRAGMA table_info(interaction_records)")]
        store.close()
        assert "updated_at" not in columns

        with RecordStore(temp_db) as store:
            store.put_records(Mode.INDIVIDUAL, [make_revive(1, 100)])
            with store._transaction() as conn:
                row = conn.execute("SELECT updated_at FROM interaction_records").fetchone()
            assert row["updated_at"] is not None


class TestMigrationRunner:
    def test_migrations_discovered_in_order(self):
        assert [m.version for m in get_all_migrations()] == [1, 2, 3]

    def test_rerun_applies_nothing(self, store):
        runner = MigrationRunner(store._conn)
        assert runner.run_pending() == []
        assert runner.get_current_version() == 3

    def test_partial_then_full(self, tmp_path):
        conn = sqlite3.connect(str(tmp_path / "partial.db"))
        try:
            runner = MigrationRunner(conn)
            assert runner.run_pending(target_version=2) == [1, 2]
            assert runner.run_pending() == [3]
        finally:
            conn.close()
