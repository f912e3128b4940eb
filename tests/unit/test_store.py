"""Unit tests for certledger.services.store module."""

import gc
import threading

import pytest

from certledger.services.store import SQLiteStore
from certledger.services.store_errors import StoreConstraintError, StoreError


class TestSchema:
    """Tests for SQLiteStore schema creation."""

    def test_creates_tables(self, store):
        """Should create the devices and certs tables."""
        rows = store.fetch_all("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = [row[0] for row in rows]

        assert "certs" in tables
        assert "devices" in tables

    def test_sets_schema_version(self, store):
        """Should record the schema version in user_version."""
        assert store.schema_version == 1

    def test_create_schema_is_repeatable(self, store):
        """Creating the schema twice should not fail or drop data."""
        with store.transaction() as session:
            session.execute("INSERT INTO devices (id, registered) VALUES (?, ?)", ("dev-1", 0))

        store.create_schema()

        assert store.fetch_one("SELECT COUNT(*) FROM devices") == (1,)

    def test_without_schema(self):
        """Should leave the database empty when asked to."""
        store = SQLiteStore(create_schema=False)

        assert store.schema_version == 0
        with pytest.raises(StoreError, match="no such table"):
            store.fetch_one("SELECT COUNT(*) FROM certs")

        store.close()

    def test_memory_stores_are_isolated(self):
        """Two in-memory stores should not share rows."""
        first = SQLiteStore()
        second = SQLiteStore()

        with first.transaction() as session:
            session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))

        assert second.fetch_one("SELECT COUNT(*) FROM devices") == (0,)

        first.close()
        second.close()


class TestTransactions:
    """Tests for SQLiteStore.transaction."""

    def test_commit_on_success(self, store):
        """Writes should be visible once the block exits."""
        with store.transaction() as session:
            session.execute("INSERT INTO devices (id, registered) VALUES (?, ?)", ("dev-1", 0))

        assert store.fetch_one("SELECT id FROM devices") == ("dev-1",)

    def test_rollback_on_exception(self, store):
        """Every statement in the block should be undone when it raises."""
        with pytest.raises(RuntimeError):
            with store.transaction() as session:
                session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))
                session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-2",))
                raise RuntimeError("boom")

        assert store.fetch_one("SELECT COUNT(*) FROM devices") == (0,)

    def test_execute_returns_matched_rows(self, store):
        """execute() should report how many rows a statement matched."""
        with store.transaction() as session:
            session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))
            matched = session.execute("UPDATE devices SET registered = 1 WHERE id = ?", ("dev-1",))
            missing = session.execute("UPDATE devices SET registered = 1 WHERE id = ?", ("nope",))

        assert matched == 1
        assert missing == 0

    def test_store_usable_after_rollback(self, store):
        """A failed transaction should not leave the connection mid-transaction."""
        with pytest.raises(StoreError):
            with store.transaction() as session:
                session.execute("INSERT INTO nowhere VALUES (1)")

        with store.transaction() as session:
            session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))

        assert store.fetch_one("SELECT COUNT(*) FROM devices") == (1,)


class TestErrorTranslation:
    """Tests for mapping sqlite3 errors onto store errors."""

    def test_unique_serial_violation(self, store):
        """A duplicate serial should name the certs.serial constraint."""
        with store.transaction() as session:
            session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))
            session.execute("INSERT INTO certs (id, serial) VALUES (?, ?)", ("dev-1", "42"))

        with pytest.raises(StoreConstraintError) as exc_info:
            with store.transaction() as session:
                session.execute("INSERT INTO certs (id, serial) VALUES (?, ?)", ("dev-1", "42"))

        assert exc_info.value.constraint == "certs.serial"

    def test_foreign_key_violation(self, store):
        """A certificate for a missing device should be refused."""
        with pytest.raises(StoreConstraintError) as exc_info:
            with store.transaction() as session:
                session.execute("INSERT INTO certs (id, serial) VALUES (?, ?)", ("ghost", "1"))

        assert exc_info.value.constraint is None

    def test_syntax_error(self, store):
        """Malformed SQL should surface as a plain StoreError."""
        with pytest.raises(StoreError) as exc_info:
            store.fetch_all("SELEKT 1")

        assert not isinstance(exc_info.value, StoreConstraintError)


class TestExport:
    """Tests for dump and restore."""

    def test_export_database(self, store):
        """Should export the database as SQL text."""
        exported = store.export_database()

        assert isinstance(exported, bytes)
        assert b"CREATE TABLE" in exported

    def test_from_dump_restores_rows(self, store):
        """A restored store should hold the same rows and constraints, straight from the export bytes."""
        with store.transaction() as session:
            session.execute("INSERT INTO devices (id, registered) VALUES (?, ?)", ("dev-1", 1))
            session.execute("INSERT INTO certs (id, serial, keyid) VALUES (?, ?, ?)", ("dev-1", "7", b"\x00\xff"))

        restored = SQLiteStore.from_dump(store.export_database())

        assert restored.fetch_one("SELECT id, registered FROM devices") == ("dev-1", 1)
        assert restored.fetch_one("SELECT serial, keyid FROM certs") == ("7", b"\x00\xff")
        assert restored.fetch_one("PRAGMA foreign_keys") == (1,)
        assert restored.schema_version == 1

        with pytest.raises(StoreConstraintError):
            with restored.transaction() as session:
                session.execute("INSERT INTO certs (id, serial) VALUES (?, ?)", ("dev-1", "7"))

        restored.close()

    def test_from_dump_with_children_before_parents(self):
        """Certificates dumped ahead of their devices should still load."""
        dump = (
            "BEGIN TRANSACTION;\n"
            "CREATE TABLE certs (id TEXT NOT NULL REFERENCES devices (id), "
            "serial TEXT NOT NULL UNIQUE, valid INTEGER NOT NULL DEFAULT 1);\n"
            "INSERT INTO certs VALUES('dev-1','7',1);\n"
            "CREATE TABLE devices (id TEXT PRIMARY KEY, registered INTEGER NOT NULL DEFAULT 0);\n"
            "INSERT INTO devices VALUES('dev-1',0);\n"
            "COMMIT;\n"
        )

        restored = SQLiteStore.from_dump(dump)

        assert restored.fetch_one("SELECT id, serial FROM certs") == ("dev-1", "7")
        assert restored.fetch_one("SELECT id FROM devices") == ("dev-1",)
        assert restored.fetch_one("PRAGMA foreign_keys") == (1,)

        restored.close()

    def test_from_dump_rejects_bad_sql(self):
        """A malformed dump should raise a StoreError."""
        with pytest.raises(StoreError):
            SQLiteStore.from_dump(b"INSERT INTO nowhere VALUES (1);")


class TestConnections:
    """Tests for per-thread connection lifetime."""

    def test_release_closes_thread_connection(self, file_store):
        """Workers that call release() should leave no connection behind."""
        def worker():
            file_store.fetch_one("SELECT COUNT(*) FROM devices")
            file_store.release()

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for thread in threads:
            thread.start()
            thread.join()

        # Only the connection that created the schema is left
        assert file_store.open_connections == 1

    def test_finished_threads_release_connections(self, file_store):
        """Connections of threads that have exited should be closed."""
        def worker():
            file_store.fetch_one("SELECT COUNT(*) FROM devices")

        for _ in range(50):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()
        del thread
        gc.collect()

        assert file_store.open_connections == 1

    def test_release_keeps_store_usable(self, store):
        """An in-memory store should keep its rows after a thread releases."""
        with store.transaction() as session:
            session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))

        store.release()

        assert store.fetch_one("SELECT COUNT(*) FROM devices") == (1,)

    def test_memory_store_survives_worker_exit(self, store):
        """Rows written by a finished worker should stay in an in-memory store."""
        def worker():
            with store.transaction() as session:
                session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))
            store.release()

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert store.fetch_one("SELECT id FROM devices") == ("dev-1",)

    def test_close_closes_everything(self, store):
        """close() should drop every connection, including the anchor."""
        store.close()

        assert store.open_connections == 0


class TestFileStore:
    """Tests for file backed stores."""

    def test_rows_persist_across_stores(self, tmp_path):
        """A second store on the same file should see committed rows."""
        path = str(tmp_path / "ledger.db")
        first = SQLiteStore(path)

        with first.transaction() as session:
            session.execute("INSERT INTO devices (id) VALUES (?)", ("dev-1",))
        first.close()

        second = SQLiteStore(path)
        assert second.fetch_one("SELECT id FROM devices") == ("dev-1",)
        second.close()

    def test_threads_get_their_own_connections(self, file_store):
        """Concurrent writers should all commit."""
        def writer(n):
            for i in range(20):
                with file_store.transaction() as session:
                    session.execute("INSERT INTO devices (id) VALUES (?)", (f"dev-{n}-{i}",))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert file_store.fetch_one("SELECT COUNT(*) FROM devices") == (80,)
