"""
Read side: every application joined with its company, newest first.

A row that cannot be decoded fails the whole listing. Partial results are
never returned.
"""

import sqlite3
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import structlog

from soulcrush.database.connection import get_db_connection
from soulcrush.models.company import Company
from soulcrush.models.errors import DecodeError, InvalidStatusError, create_store_error
from soulcrush.models.status import Status, parse_status

logger = structlog.get_logger()

LIST_APPLICATIONS_SQL = """
    SELECT a.id, a.status, a.date,
           c.id AS company_id, c.name, c.website, c.ceo, c.industry
    FROM applications a
    JOIN companies c ON a.company_id = c.id
    ORDER BY a.date DESC, a.rowid DESC
"""


@dataclass(frozen=True)
class ApplicationResponse:
    """One row of the application list."""

    id: uuid.UUID
    company: Company
    status: Status
    created_at: str

    def with_status(self, status: Status) -> "ApplicationResponse":
        return replace(self, status=status)

    def to_dict(self) -> dict:
        return {
            'id': str(self.id),
            'company': self.company.to_dict(),
            'status': self.status.token,
            'created_at': self.created_at,
        }


def _parse_uuid(value: str, field_name: str, row_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except (ValueError, TypeError, AttributeError) as e:
        raise DecodeError(
            f"Application row {row_id!r}: invalid {field_name} {value!r}",
            original_error=e,
        ) from e


def decode_row(row: sqlite3.Row) -> ApplicationResponse:
    """
    Decode a joined row into an ApplicationResponse.

    Raises:
        DecodeError: If an id is not a UUID or the status token is unknown.
    """
    row_id = row["id"]
    application_id = _parse_uuid(row_id, "id", row_id)
    company_id = _parse_uuid(row["company_id"], "company_id", row_id)

    try:
        status = parse_status(row["status"])
    except InvalidStatusError as e:
        raise DecodeError(f"Application row {row_id!r}: {e.message}", original_error=e) from e

    return ApplicationResponse(
        id=application_id,
        company=Company(
            id=company_id,
            name=row["name"],
            website=row["website"],
            ceo=row["ceo"],
            industry=row["industry"],
        ),
        status=status,
        created_at=row["date"],
    )


def list_applications(db_path: Optional[Path] = None) -> list[ApplicationResponse]:
    """
    List all applications with their company, ordered newest first.

    Raises:
        StoreError: If the query fails.
        DecodeError: If any row is malformed.
    """
    try:
        with get_db_connection(db_path) as conn:
            rows = conn.execute(LIST_APPLICATIONS_SQL).fetchall()
    except (sqlite3.Error, OSError) as e:
        raise create_store_error("fetch applications", e) from e

    applications = [decode_row(row) for row in rows]
    logger.debug("Listed applications", count=len(applications))
    return applications
