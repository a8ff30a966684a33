"""
Application status lifecycle.

Statuses form a cycle, each one advancing to the next:

    ToDo -> Solicitated -> Pending -> Accepted -> Rejected -> ToDo

The enum value is the wire token, stored verbatim in the ``applications``
table and accepted by ``parse_status``. ``Solicitated`` is displayed as
"Applied" wherever a label is shown.
"""

from enum import Enum
from typing import NamedTuple

from soulcrush.models.errors import InvalidStatusError


class Status(str, Enum):
    """Pipeline stage of an application."""

    TODO = "ToDo"
    SOLICITATED = "Solicitated"
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"

    @property
    def token(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def css_class(self) -> str:
        return f"status-{self.value.lower()}"

    def next(self) -> "Status":
        return _SUCCESSORS[self]


DEFAULT_STATUS = Status.TODO

_LABELS = {
    Status.TODO: "To Do",
    Status.SOLICITATED: "Applied",
    Status.PENDING: "Pending",
    Status.ACCEPTED: "Accepted",
    Status.REJECTED: "Rejected",
}

_SUCCESSORS = {
    Status.TODO: Status.SOLICITATED,
    Status.SOLICITATED: Status.PENDING,
    Status.PENDING: Status.ACCEPTED,
    Status.ACCEPTED: Status.REJECTED,
    Status.REJECTED: Status.TODO,
}

_BY_TOKEN = {status.value: status for status in Status}


class StatusDisplay(NamedTuple):
    label: str
    css_class: str


def advance(status: Status) -> Status:
    """Return the status that follows ``status`` in the cycle."""
    return status.next()


def parse_status(token: object) -> Status:
    """
    Parse a wire token into a Status.

    Matching is exact: case-sensitive and without trimming.

    Raises:
        InvalidStatusError: If token is not one of the five wire tokens.
    """
    if isinstance(token, Status):
        return token
    if not isinstance(token, str) or token not in _BY_TOKEN:
        raise InvalidStatusError(token)
    return _BY_TOKEN[token]


def render_status(status: Status) -> StatusDisplay:
    """Human label and presentation class for a status."""
    return StatusDisplay(label=status.label, css_class=status.css_class)
