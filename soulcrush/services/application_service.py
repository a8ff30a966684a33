"""
Async operation surface for the application tracker.

Each operation runs its store work in a worker thread so mutations and list
fetches proceed independently. A mutation bumps its version counter only
after it has committed; a failed mutation leaves the versions, and so the
list, untouched.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Optional, Union

from soulcrush.config.settings import settings
from soulcrush.models.errors import ValidationError
from soulcrush.models.status import Status, parse_status
from soulcrush.schemas import CreateApplicationRequest, parse_create_request
from soulcrush.services import application_query, application_writer
from soulcrush.services.application_query import ApplicationResponse
from soulcrush.services.refresh import MutationKind, MutationVersions, RefreshController


def parse_application_id(value: Union[uuid.UUID, str]) -> uuid.UUID:
    """
    Parse an application id.

    Raises:
        ValidationError: If value is not a UUID.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(value)
    except (ValueError, TypeError, AttributeError) as e:
        raise ValidationError(f"Invalid application id: {value!r}", original_error=e) from e


class ApplicationService:
    """
    Create, list, delete and update applications.

    The service owns the MutationVersions shared with every RefreshController
    it hands out.
    """

    def __init__(self, db_path: Optional[Path] = None, versions: Optional[MutationVersions] = None):
        self.db_path = Path(db_path or settings.database_path)
        self.versions = versions or MutationVersions()

    def refresh_controller(self) -> RefreshController:
        """Build a controller that re-fetches this service's list on every mutation."""
        return RefreshController(self.list_applications, self.versions)

    async def list_applications(self) -> list[ApplicationResponse]:
        """
        All applications with their company, newest first.

        Raises:
            StoreError: If the query fails.
            DecodeError: If any stored row is malformed.
        """
        return await asyncio.to_thread(application_query.list_applications, self.db_path)

    async def create_application(self, request: Union[CreateApplicationRequest, dict]) -> uuid.UUID:
        """
        Create an application and its company atomically.

        Args:
            request: CreateApplicationRequest or an equivalent dict. A missing
                status defaults to ToDo.

        Returns:
            The new application id.

        Raises:
            ValidationError: Before any write, on invalid input.
            StoreError: If the transaction fails.
        """
        validated = parse_create_request(request)
        application = await asyncio.to_thread(
            application_writer.create_application, validated, self.db_path
        )
        self.versions.bump(MutationKind.CREATE)
        return application.id

    async def delete_application(self, application_id: Union[uuid.UUID, str]) -> int:
        """
        Delete an application. A missing id is a successful no-op.

        Returns:
            Rows affected (0 or 1).
        """
        parsed_id = parse_application_id(application_id)
        deleted = await asyncio.to_thread(
            application_writer.delete_application, parsed_id, self.db_path
        )
        self.versions.bump(MutationKind.DELETE)
        return deleted

    async def update_application_status(
        self,
        application_id: Union[uuid.UUID, str],
        status: Union[Status, str],
        refresh: Optional[RefreshController] = None,
    ) -> int:
        """
        Persist a new status. A missing id is a successful no-op.

        Args:
            application_id: Application to update.
            status: Status or wire token.
            refresh: If given, the new status is shown on this controller's
                list immediately and reverted if the write fails.

        Returns:
            Rows affected (0 or 1).
        """
        parsed_id = parse_application_id(application_id)
        parsed_status = parse_status(status)

        if refresh is not None:
            refresh.apply_optimistic_status(parsed_id, parsed_status)
        try:
            updated = await asyncio.to_thread(
                application_writer.update_application_status, parsed_id, parsed_status, self.db_path
            )
        except Exception:
            if refresh is not None:
                refresh.revert_optimistic_status(parsed_id, parsed_status)
            raise

        self.versions.bump(MutationKind.UPDATE)
        return updated
