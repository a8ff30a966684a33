"""Pydantic request schemas and the mapping of their errors to ValidationError."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from soulcrush.models.errors import ValidationError
from soulcrush.models.status import DEFAULT_STATUS, Status, parse_status


class StrictRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class CreateCompanyRequest(StrictRequest):
    """Company fields supplied when creating an application."""

    name: str = Field(min_length=1)
    website: str = Field(min_length=1)
    ceo: str = Field(min_length=1)
    industry: str = Field(min_length=1)

    @field_validator("name", "ceo", "industry")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("website")
    @classmethod
    def _is_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("must be an absolute URL")
        return value


class CreateApplicationRequest(StrictRequest):
    """Request schema for creating an application and its company."""

    company: CreateCompanyRequest
    status: Status = DEFAULT_STATUS

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> Status:
        # InvalidStatusError is not a ValueError, so it escapes pydantic as-is
        if value is None:
            return DEFAULT_STATUS
        return parse_status(value)


def _loc_to_field(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc if part != "__root__")


def _clean_pydantic_message(message: str) -> str:
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    return message


def map_pydantic_validation_error(error: PydanticValidationError) -> ValidationError:
    """Map a pydantic ValidationError to the tracker ValidationError."""
    issues = error.errors()
    if not issues:
        return ValidationError("Invalid input", original_error=error)

    first = issues[0]
    field = _loc_to_field(first.get("loc", ()))
    message = _clean_pydantic_message(first.get("msg", "Invalid input"))
    if field:
        return ValidationError(f"Invalid {field}: {message}", original_error=error)
    return ValidationError(message, original_error=error)


def parse_create_request(data: CreateApplicationRequest | dict) -> CreateApplicationRequest:
    """
    Validate create-application input.

    Raises:
        ValidationError: On a missing or empty field, a malformed website or
            an unknown status token.
    """
    if isinstance(data, CreateApplicationRequest):
        return data
    try:
        return CreateApplicationRequest.model_validate(data)
    except PydanticValidationError as e:
        raise map_pydantic_validation_error(e) from e
