"""
Services for the soulcrush application tracker.
"""

from soulcrush.services.application_service import ApplicationService
from soulcrush.services.refresh import (
    ListState,
    ListStatus,
    MutationKind,
    MutationVersions,
    RefreshController,
    VersionKey,
)

__all__ = [
    "ApplicationService",
    "ListState",
    "ListStatus",
    "MutationKind",
    "MutationVersions",
    "RefreshController",
    "VersionKey",
]
