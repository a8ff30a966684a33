"""
Database connection management for SQLite.
Provides connection handling, schema initialization, and context managers.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import structlog

from soulcrush.config.settings import settings

logger = structlog.get_logger()

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
TRIGGERS_PATH = Path(__file__).parent / "triggers.sql"
CASCADE_TRIGGER = "delete_company_after_application"


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """
    Create a new database connection.

    Args:
        db_path: Optional path to database file. Uses settings default if not provided.

    Returns:
        SQLite connection with row factory enabled.
    """
    path = Path(db_path or settings.database_path)

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        str(path),
        timeout=settings.database_timeout_seconds,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA foreign_keys = ON")

    # WAL lets list reads proceed while a writer holds its transaction
    conn.execute("PRAGMA journal_mode = WAL")

    return conn


@contextmanager
def get_db_connection(db_path: Optional[Path] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    Every statement inside the block belongs to one transaction:
    commits on success, rolls back on error.

    Usage:
        with get_db_connection() as conn:
            conn.execute("INSERT INTO ...")
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error("Database error, rolling back", error=str(e))
        raise
    finally:
        conn.close()


def ensure_schema(db_path: Optional[Path] = None) -> None:
    """
    Create any missing tables. Leaves the cascade trigger as it is.
    """
    if not SCHEMA_PATH.exists():
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_PATH}")

    with get_db_connection(db_path) as conn:
        conn.executescript(SCHEMA_PATH.read_text())


def init_database(db_path: Optional[Path] = None, cascade_company_delete: Optional[bool] = None) -> None:
    """
    Initialize the database with the schema.
    Safe to call multiple times (uses IF NOT EXISTS).

    Args:
        db_path: Optional path to database file.
        cascade_company_delete: Install the trigger that removes a company
            together with its application. Uses settings default if not provided.
    """
    path = Path(db_path or settings.database_path)
    if cascade_company_delete is None:
        cascade_company_delete = settings.cascade_company_delete

    logger.info("Initializing database", path=str(path), cascade_company_delete=cascade_company_delete)

    ensure_schema(path)
    with get_db_connection(path) as conn:
        if cascade_company_delete:
            conn.executescript(TRIGGERS_PATH.read_text())
        else:
            conn.execute(f"DROP TRIGGER IF EXISTS {CASCADE_TRIGGER}")

    logger.info("Database initialized successfully", path=str(path))


def reset_database(db_path: Optional[Path] = None, cascade_company_delete: Optional[bool] = None) -> None:
    """
    Drop all tables and reinitialize the database.
    WARNING: This deletes all data!

    Args:
        db_path: Optional path to database file.
        cascade_company_delete: Passed through to init_database.
    """
    path = Path(db_path or settings.database_path)
    logger.warning("Resetting database - all data will be lost!", path=str(path))

    with get_db_connection(path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
        tables = [row[0] for row in cursor.fetchall()]

        conn.execute("PRAGMA foreign_keys = OFF")

        for table in tables:
            conn.execute(f"DROP TABLE IF EXISTS {table}")
            logger.info("Dropped table", table=table)

        conn.execute("PRAGMA foreign_keys = ON")

    init_database(path, cascade_company_delete=cascade_company_delete)
    logger.info("Database reset complete")


def check_database_health(db_path: Optional[Path] = None) -> dict:
    """
    Check database health and return statistics.

    Returns:
        Dictionary with table counts and database info.
    """
    path = Path(db_path or settings.database_path)

    if not path.exists():
        return {"exists": False, "error": "Database file does not exist"}

    stats = {"exists": True, "path": str(path), "tables": {}}

    try:
        with get_db_connection(path) as conn:
            cursor = conn.cursor()

            cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
            tables = [row[0] for row in cursor.fetchall()]

            for table in tables:
                cursor.execute(f"SELECT COUNT(*) FROM {table}")
                stats["tables"][table] = cursor.fetchone()[0]

            cursor.execute(
                "SELECT COUNT(*) FROM sqlite_master WHERE type='trigger' AND name = ?",
                (CASCADE_TRIGGER,),
            )
            stats["cascade_company_delete"] = cursor.fetchone()[0] == 1

            cursor.execute("PRAGMA page_count")
            page_count = cursor.fetchone()[0]
            cursor.execute("PRAGMA page_size")
            page_size = cursor.fetchone()[0]
            stats["size_bytes"] = page_count * page_size
            stats["size_mb"] = round(stats["size_bytes"] / (1024 * 1024), 2)

    except sqlite3.Error as e:
        stats["error"] = str(e)

    return stats


def row_to_dict(row: sqlite3.Row) -> dict:
    """Convert a sqlite3.Row to a dictionary."""
    return dict(zip(row.keys(), row))
