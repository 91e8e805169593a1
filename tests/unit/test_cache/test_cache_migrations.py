"""Unit tests for cache schema versioning."""

import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from metricfeed.cache.errors import CacheMigrationError
from metricfeed.cache.migrations import (
    SCHEMA_STEPS,
    SCHEMA_VERSION,
    SchemaStep,
    migrate,
    pending_steps,
    schema_version,
)


class TestSchemaSteps:
    """Tests for the step table."""

    def test_steps_in_order(self) -> None:
        """Test steps are in ascending version order."""
        versions = [step.version for step in SCHEMA_STEPS]
        assert versions == sorted(versions)

    def test_schema_version_matches_latest_step(self) -> None:
        """Test the schema version is the last step's version."""
        assert SCHEMA_STEPS[-1].version == SCHEMA_VERSION

    def test_pending_from_zero_and_current(self) -> None:
        """Test pending step selection."""
        assert pending_steps(0) == list(SCHEMA_STEPS)
        assert pending_steps(SCHEMA_VERSION) == []


class TestMigrate:
    """Tests for migrate()."""

    @pytest.fixture
    def conn(self) -> Generator[sqlite3.Connection]:
        """In-memory database."""
        conn = sqlite3.connect(":memory:")
        yield conn
        conn.close()

    def test_new_database_version_zero(self, conn: sqlite3.Connection) -> None:
        """Test that an empty database reports version 0."""
        assert schema_version(conn) == 0

    def test_creates_kv_table(self, conn: sqlite3.Connection) -> None:
        """Test that migrating creates the kv table and sets the version."""
        applied = migrate(conn)

        assert applied == [step.version for step in SCHEMA_STEPS]
        assert schema_version(conn) == SCHEMA_VERSION
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert "kv" in tables
        assert not conn.in_transaction

    def test_second_run_is_noop(self, conn: sqlite3.Connection) -> None:
        """Test that a migrated database needs nothing more."""
        migrate(conn)

        assert migrate(conn) == []

    def test_failing_step_rolls_back(
        self, conn: sqlite3.Connection, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that invalid SQL raises CacheMigrationError and leaves version 0."""
        broken = (
            SchemaStep(
                version=1,
                summary="broken",
                statements=("CREATE TABLE ok (x INTEGER)", "NOT SQL"),
            ),
        )
        monkeypatch.setattr("metricfeed.cache.migrations.SCHEMA_STEPS", broken)

        with pytest.raises(CacheMigrationError) as exc_info:
            migrate(conn)

        assert exc_info.value.version == 1
        assert schema_version(conn) == 0
        assert not conn.in_transaction
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert "ok" not in tables


class TestConcurrentOpeners:
    """Tests for two connections migrating the same file."""

    def test_step_applied_by_other_connection_is_skipped(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a stale version read does not re-apply a committed step."""
        db_path = tmp_path / "cache.db"
        first = sqlite3.connect(db_path)
        second = sqlite3.connect(db_path)
        try:
            assert migrate(first) == [SCHEMA_VERSION]
            # Simulate `second` having read version 0 before `first` committed.
            monkeypatch.setattr(
                "metricfeed.cache.migrations.pending_steps",
                lambda version: list(SCHEMA_STEPS),
            )

            assert migrate(second) == []
            assert schema_version(second) == SCHEMA_VERSION
        finally:
            first.close()
            second.close()
