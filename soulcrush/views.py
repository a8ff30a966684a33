"""
Plain-text rendering of the application list.
"""

from soulcrush.services.application_query import ApplicationResponse
from soulcrush.services.refresh import ListState, ListStatus

LOADING_TEXT = "Loading..."
ERROR_TEXT = "Error loading applications"
EMPTY_TEXT = "No applications found"

HEADER = ("Company", "Industry", "Link", "Status", "ID")


def render_card(application: ApplicationResponse) -> str:
    """One tab-separated row for an application."""
    return "\t".join((
        application.company.name,
        application.company.industry,
        application.company.website,
        application.status.label,
        str(application.id),
    ))


def render_list(state: ListState) -> str:
    """
    Render every list state.

    Loading, error and an empty list each produce distinct text, so a failed
    load never reads as "no applications".
    """
    if state.status is ListStatus.LOADING:
        return LOADING_TEXT
    if state.status is ListStatus.ERROR:
        detail = state.error.message if state.error else "unknown error"
        return f"{ERROR_TEXT}: {detail}"
    if not state.applications:
        return EMPTY_TEXT
    lines = ["\t".join(HEADER)]
    lines.extend(render_card(application) for application in state.applications)
    return "\n".join(lines)
