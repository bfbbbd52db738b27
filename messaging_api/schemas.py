"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming payload validation
- Response models for API responses
- The queue event emitted after a contact message is stored

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, StrictBool
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Pydantic Request Models
# =============================================================================

class ContactMessageCreate(CamelModel):
    """
    Public contact form submission.

    Validates:
    - name: 1-255 characters
    - email: valid email address
    - subject: 1-500 characters
    - message: 1-10000 characters
    - website: honeypot field, left empty by humans, never persisted
    """
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=500)
    message: str = Field(..., min_length=1, max_length=10000)
    honeypot: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("website", "honeypot"),
        description="Hidden form field; any value marks the submission as spam",
    )

    def is_spam(self) -> bool:
        return bool(self.honeypot)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "John Doe",
                    "email": "john@example.com",
                    "subject": "Test",
                    "message": "Hello world",
                }
            ]
        }
    )


class RecipientCreate(CamelModel):
    """Admin request to add a notification recipient."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    is_active: Optional[StrictBool] = None


class RecipientUpdate(CamelModel):
    """
    Partial recipient update.

    Only fields present in the request body are applied. Whether a field
    was sent is read from model_fields_set, so an empty string counts as
    present and is rejected when the merged record is validated.
    """
    email: Optional[str] = None
    name: Optional[str] = None
    is_active: Optional[StrictBool] = None


class RecipientFields(CamelModel):
    """Complete set of writable recipient fields, used to check merged updates."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    is_active: StrictBool


# =============================================================================
# Pydantic Response Models
# =============================================================================

class AckResponse(BaseModel):
    """Acknowledgment returned for every accepted contact submission."""
    message: str = Field(default="Thank you for your message")


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class ContactMessageResponse(CamelModel):
    """Full contact message record as seen by admins."""
    id: int
    name: str
    email: str
    subject: str
    message: str
    status: str
    last_error: Optional[str] = None
    attempts: int = 0
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RecipientResponse(CamelModel):
    """Recipient record."""
    id: int
    email: str
    name: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Why the service is not ready")


# =============================================================================
# Queue Events
# =============================================================================

class ContactMessageEvent(CamelModel):
    """Published after a contact message is stored; consumers send the emails."""
    message_id: int
