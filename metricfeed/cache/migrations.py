"""Schema versioning for the cache database.

The version lives in `PRAGMA user_version`. Each step runs in its own
`BEGIN IMMEDIATE` transaction and re-reads the version under the write
lock, so two processes opening a fresh file apply every step once.
"""

import sqlite3
from dataclasses import dataclass

import structlog

from metricfeed.cache.errors import CacheMigrationError


logger = structlog.get_logger()

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class SchemaStep:
    """One schema upgrade.

    Attributes:
        version: `user_version` after the step commits.
        summary: Short description for logs.
        statements: DDL executed in order inside the step's transaction.
    """

    version: int
    summary: str
    statements: tuple[str, ...]


SCHEMA_STEPS: tuple[SchemaStep, ...] = (
    SchemaStep(
        version=1,
        summary="kv table for cached series and write timestamps",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
        ),
    ),
)


def schema_version(conn: sqlite3.Connection) -> int:
    """Read the schema version; 0 for a new database."""
    return int(conn.execute("PRAGMA user_version").fetchone()[0])


def pending_steps(version: int) -> list[SchemaStep]:
    """Get the steps a database at `version` still needs, oldest first."""
    return [step for step in SCHEMA_STEPS if step.version > version]


def _apply_step(conn: sqlite3.Connection, step: SchemaStep) -> bool:
    conn.execute("BEGIN IMMEDIATE")
    try:
        if schema_version(conn) >= step.version:
            conn.rollback()
            return False
        for statement in step.statements:
            conn.execute(statement)
        # PRAGMA does not accept bound parameters
        conn.execute(f"PRAGMA user_version = {int(step.version)}")
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    return True


def migrate(conn: sqlite3.Connection) -> list[int]:
    """Bring a cache database up to SCHEMA_VERSION.

    Args:
        conn: Open connection with no transaction in progress.

    Returns:
        Versions this call applied. Steps another process applied first
        are skipped and not listed.

    Raises:
        CacheMigrationError: If a step's SQL fails. The step is rolled back.
    """
    log = logger.bind(component="cache", operation="migrate")
    applied: list[int] = []

    for step in pending_steps(schema_version(conn)):
        try:
            done = _apply_step(conn, step)
        except sqlite3.Error as e:
            log.error("schema_step_failed", version=step.version, error=str(e))
            raise CacheMigrationError(step.version, str(e)) from e
        if done:
            log.info(
                "schema_step_applied", version=step.version, summary=step.summary
            )
            applied.append(step.version)
        else:
            log.debug("schema_step_skipped", version=step.version)

    return applied
