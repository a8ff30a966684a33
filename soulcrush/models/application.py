"""
Application model and database operations.

Creation timestamps are stored as ISO-8601 UTC strings with a fixed
microsecond width and ``+00:00`` offset, so ``ORDER BY date`` is
chronological.
"""

import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from soulcrush.database.connection import get_db_connection
from soulcrush.models.company import Company
from soulcrush.models.status import DEFAULT_STATUS, Status


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Serialize a timestamp in the sortable storage format."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


@dataclass
class Application:
    """A tracked job application, owned by exactly one company."""

    company_id: uuid.UUID
    status: Status = DEFAULT_STATUS
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def new(cls, company: Company, status: Status = DEFAULT_STATUS) -> "Application":
        """Create an application for a company with server-side id and timestamp."""
        return cls(company_id=company.id, status=status)

    @property
    def date(self) -> str:
        return format_timestamp(self.created_at)


# Database operations

def insert_application(conn: sqlite3.Connection, application: Application) -> None:
    """
    Insert an application using the caller's connection.

    The owning company must already be inserted on the same connection.
    """
    conn.execute(
        "INSERT INTO applications (id, company_id, status, date) VALUES (?, ?, ?, ?)",
        (
            str(application.id),
            str(application.company_id),
            application.status.token,
            application.date,
        ),
    )


def update_status(conn: sqlite3.Connection, application_id: uuid.UUID, status: Status) -> int:
    """
    Set the status of an application.

    Returns:
        Number of rows affected (0 if the id does not exist).
    """
    cursor = conn.execute(
        "UPDATE applications SET status = ? WHERE id = ?",
        (status.token, str(application_id)),
    )
    return cursor.rowcount


def delete_application_row(conn: sqlite3.Connection, application_id: uuid.UUID) -> int:
    """
    Delete an application by ID.

    Returns:
        Number of rows affected (0 if the id does not exist).
    """
    cursor = conn.execute("DELETE FROM applications WHERE id = ?", (str(application_id),))
    return cursor.rowcount


def get_application_status(application_id: uuid.UUID, db_path: Optional[Path] = None) -> Optional[str]:
    """Get the stored status token of an application, or None if absent."""
    with get_db_connection(db_path) as conn:
        row = conn.execute(
            "SELECT status FROM applications WHERE id = ?", (str(application_id),)
        ).fetchone()
        return row["status"] if row else None


def count_applications(db_path: Optional[Path] = None) -> int:
    """Count total applications."""
    with get_db_connection(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM applications").fetchone()[0]
