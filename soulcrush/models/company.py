"""
Company model and database operations.
"""

import sqlite3
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from soulcrush.database.connection import get_db_connection, row_to_dict


@dataclass
class Company:
    """Employer metadata referenced by one or more applications."""

    name: str
    website: str
    ceo: str
    industry: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @classmethod
    def new(cls, name: str, website: str, ceo: str, industry: str) -> "Company":
        """Create a company with a freshly generated id."""
        return cls(name=name, website=website, ceo=ceo, industry=industry)

    @classmethod
    def from_row(cls, row) -> "Company":
        """
        Create a Company from a database row.

        Raises:
            ValueError: If the stored id is not a valid UUID.
        """
        data = row_to_dict(row) if isinstance(row, sqlite3.Row) else dict(row)
        return cls(
            id=uuid.UUID(data['id']),
            name=data['name'],
            website=data['website'],
            ceo=data['ceo'],
            industry=data['industry'],
        )

    def to_dict(self) -> dict:
        """Convert Company to a dictionary."""
        return {
            'id': str(self.id),
            'name': self.name,
            'website': self.website,
            'ceo': self.ceo,
            'industry': self.industry,
        }


# Database operations

def insert_company(conn: sqlite3.Connection, company: Company) -> None:
    """
    Insert a company using the caller's connection.

    The caller owns the transaction, so nothing is committed here.
    """
    conn.execute(
        "INSERT INTO companies (id, name, website, ceo, industry) VALUES (?, ?, ?, ?, ?)",
        (
            str(company.id),
            company.name,
            company.website,
            company.ceo,
            company.industry,
        ),
    )


def get_company_by_id(company_id: uuid.UUID, db_path: Optional[Path] = None) -> Optional[Company]:
    """Get a company by ID."""
    with get_db_connection(db_path) as conn:
        row = conn.execute("SELECT * FROM companies WHERE id = ?", (str(company_id),)).fetchone()
        return Company.from_row(row) if row else None


def count_companies(db_path: Optional[Path] = None) -> int:
    """Count total companies."""
    with get_db_connection(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM companies").fetchone()[0]
