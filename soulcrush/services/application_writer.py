"""
Transactional writes for applications.

create_application inserts the company and its application inside one
transaction: both rows exist afterwards or neither does. Delete and status
update touch a single application row and treat a missing id as a no-op.
None of these functions retry; store failures surface as StoreError.
"""

import sqlite3
import uuid
from pathlib import Path
from typing import Optional

import structlog

from soulcrush.database.connection import get_db_connection
from soulcrush.models.application import (
    Application,
    delete_application_row,
    insert_application,
    update_status,
)
from soulcrush.models.company import Company, insert_company
from soulcrush.models.errors import create_store_error
from soulcrush.models.status import Status
from soulcrush.schemas import CreateApplicationRequest

logger = structlog.get_logger()


def create_application(request: CreateApplicationRequest, db_path: Optional[Path] = None) -> Application:
    """
    Create a company and an application for it in a single transaction.

    Args:
        request: Validated create request.
        db_path: Optional path to database file.

    Returns:
        The committed Application.

    Raises:
        StoreError: If either insert or the commit fails. Nothing is persisted.
    """
    company = Company.new(
        name=request.company.name,
        website=request.company.website,
        ceo=request.company.ceo,
        industry=request.company.industry,
    )
    application = Application.new(company, status=request.status)
    log = logger.bind(company=company.name, application_id=str(application.id))

    log.info("Creating application")
    try:
        with get_db_connection(db_path) as conn:
            # Company first so the application's company_id resolves
            insert_company(conn, company)
            insert_application(conn, application)
    except (sqlite3.Error, OSError) as e:
        raise create_store_error("create application", e) from e

    log.info("Application created", status=application.status.token)
    return application


def delete_application(application_id: uuid.UUID, db_path: Optional[Path] = None) -> int:
    """
    Delete an application by ID.

    Returns:
        Rows affected. 0 means the id did not exist, which is not an error.
    """
    log = logger.bind(application_id=str(application_id))
    log.info("Deleting application")
    try:
        with get_db_connection(db_path) as conn:
            deleted = delete_application_row(conn, application_id)
    except (sqlite3.Error, OSError) as e:
        raise create_store_error("delete application", e) from e

    if deleted:
        log.info("Application deleted")
    else:
        log.info("Delete matched no application")
    return deleted


def update_application_status(
    application_id: uuid.UUID,
    status: Status,
    db_path: Optional[Path] = None,
) -> int:
    """
    Persist a new status for an application. Last write wins.

    Returns:
        Rows affected. 0 means the id did not exist, which is not an error.
    """
    log = logger.bind(application_id=str(application_id), status=status.token)
    log.info("Updating application status")
    try:
        with get_db_connection(db_path) as conn:
            updated = update_status(conn, application_id, status)
    except (sqlite3.Error, OSError) as e:
        raise create_store_error("update application status", e) from e

    if not updated:
        log.info("Status update matched no application")
    return updated
