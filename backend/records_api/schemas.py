from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

import email_validator
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from records_api.errors import RecordValidationError

# Special-use domains such as .local or .test are syntactically valid addresses
email_validator.SPECIAL_USE_DOMAIN_NAMES.clear()


class RecordCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(min_length=5, max_length=255)
    email: str = Field(max_length=255)
    message: str = Field(min_length=3)

    @field_validator("email")
    def validate_email_syntax(cls, v):
        try:
            email_validator.validate_email(v, check_deliverability=False)
        except email_validator.EmailNotValidError as e:
            raise ValueError(f"Email must be valid: {e}")
        # Stored exactly as submitted, without domain normalisation
        return v


class RecordUpdate(BaseModel):
    """Partial update: only the fields present in the request are applied."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None


class RecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    message: str
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class RecordPage(BaseModel):
    """Model for a page of records plus the paging totals."""

    data: List[RecordOut]
    total: int
    page: int
    limit: int
    total_pages: int = Field(serialization_alias="totalPages")


class RecordCount(BaseModel):
    total: int


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Model for standardized error response structure."""

    detail: str
    errors: List[FieldError] = []


def format_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs."""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": ".".join(loc) or "body", "message": message})
    return formatted


def validate_record(data: Union[RecordCreate, Mapping[str, Any]]) -> RecordCreate:
    """Validate raw input against the record rules.

    Raises:
        RecordValidationError: with one entry per offending field
    """
    if isinstance(data, RecordCreate):
        return data
    try:
        return RecordCreate.model_validate(dict(data))
    except ValidationError as e:
        raise RecordValidationError(
            "Validation failed", errors=format_errors(e.errors()), original_exception=e
        )
