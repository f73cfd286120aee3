"""Unit tests for the SQLite database wrapper."""

import sqlite3
from pathlib import Path

import pytest

from tokenvault.exceptions import StoreError
from tokenvault.services.database import CURRENT_SCHEMA_VERSION, Database
from tokenvault.services.token import TokenService


class TestDatabase:
    """Tests for Database."""

    def test_open_creates_file_and_parents(self, tmp_path: Path) -> None:
        """open should create the database file and missing directories."""
        path = tmp_path / "nested" / "dir" / "tokenvault.db"
        db = Database.open(path)
        try:
            assert path.exists()
            assert db.is_connected
        finally:
            db.close()

    def test_schema_version(self, database: Database) -> None:
        """init_schema should record the schema version once."""
        database.init_schema()
        assert database.schema_version == CURRENT_SCHEMA_VERSION
        rows = database.fetchall("SELECT version FROM schema_version")
        assert len(rows) == 1

    def test_foreign_keys_enabled(self, database: Database) -> None:
        """Foreign keys should be enforced on the connection."""
        row = database.fetchone("PRAGMA foreign_keys")
        assert row is not None
        assert row[0] == 1

    def test_in_memory(self) -> None:
        """':memory:' should give a private, working database."""
        db = Database.open(":memory:")
        try:
            assert db.schema_version == CURRENT_SCHEMA_VERSION
        finally:
            db.close()

    def test_transaction_rolls_back(self, database: Database) -> None:
        """An exception inside transaction() should undo every statement."""
        with pytest.raises(RuntimeError):
            with database.transaction() as conn:
                conn.execute(
                    "INSERT INTO projects (name, port, created_at, updated_at) "
                    "VALUES ('a', 0, 'now', 'now')"
                )
                raise RuntimeError("boom")

        assert database.fetchall("SELECT * FROM projects") == []

    def test_sqlite_errors_become_store_errors(self, database: Database) -> None:
        """sqlite failures should surface as StoreError."""
        with pytest.raises(StoreError):
            database.execute("INSERT INTO missing_table VALUES (1)")

    def test_orphan_token_rejected(self, database: Database) -> None:
        """Tokens must reference an existing project."""
        with pytest.raises(StoreError):
            database.execute(
                "INSERT INTO tokens (project_id, token_value, created_at, updated_at) "
                "VALUES (999, 'x', 'now', 'now')"
            )

    def test_use_after_close_raises(self, tmp_path: Path) -> None:
        """Operations on a closed database should raise StoreError."""
        db = Database.open(tmp_path / "tokenvault.db")
        db.close()

        assert not db.is_connected
        with pytest.raises(StoreError):
            db.fetchall("SELECT * FROM projects")

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        """close should be safe to call twice."""
        db = Database.open(tmp_path / "tokenvault.db")
        db.close()
        db.close()


class TestTransactionFailures:
    """Tests for transactions that fail at commit or rollback time."""

    def test_failed_commit_rolls_back(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A COMMIT blocked by another reader should leave no trace and no open transaction."""
        monkeypatch.setattr(Database, "BUSY_TIMEOUT", 0.1)
        path = tmp_path / "tokenvault.db"
        db = Database.open(path)
        token_service = TokenService(db)

        # A second connection holding a read lock blocks the writer's COMMIT
        reader = sqlite3.connect(str(path), isolation_level=None)
        try:
            reader.execute("BEGIN")
            reader.execute("SELECT * FROM projects").fetchall()

            with pytest.raises(StoreError):
                token_service.upsert_token("orders-api", "failed-write")

            assert not db.conn.in_transaction
            assert token_service.latest_token("orders-api") is None
        finally:
            reader.execute("ROLLBACK")
            reader.close()

        try:
            token_service.upsert_token("orders-api", "second-write")
            token = token_service.latest_token("orders-api")
            assert token is not None
            assert token.token_value == "second-write"
        finally:
            db.close()

    def test_original_error_kept_when_rollback_not_possible(self, database: Database) -> None:
        """The block's own exception should propagate, not a rollback failure."""
        with pytest.raises(RuntimeError, match="boom"):
            with database.transaction() as conn:
                conn.execute("ROLLBACK")
                raise RuntimeError("boom")

        assert not database.conn.in_transaction
        # The connection is still usable afterwards
        assert database.execute(
            "INSERT INTO projects (name, port, created_at, updated_at) "
            "VALUES ('a', 0, 'now', 'now')"
        ) == 1
