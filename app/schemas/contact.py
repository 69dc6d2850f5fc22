"""Pydantic schemas for contact form submissions and rate limit status."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ContactRequest(BaseModel):
    """Contact form payload."""

    name: str = Field(..., min_length=2, max_length=100, description="Sender's name.")
    email: str = Field(
        ...,
        max_length=254,
        pattern=_EMAIL_PATTERN,
        description="Reply-to email address.",
    )
    company: str | None = Field(
        default=None, max_length=100, description="Sender's company (optional)."
    )
    message: str = Field(
        ..., min_length=10, max_length=5000, description="Free-text message."
    )

    @field_validator("name", "message", "company", mode="before")
    @classmethod
    def _strip_whitespace(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class ContactSubmissionData(BaseModel):
    submission_id: str = Field(..., description="Identifier of the accepted submission.")


class ContactResponse(BaseModel):
    """Response returned when a submission is accepted."""

    message: str = Field(..., description="Human-readable confirmation.")
    data: ContactSubmissionData


class RateLimitStatusResponse(BaseModel):
    """Current submission budget for the calling client."""

    limited: bool = Field(..., description="Whether further submissions are rejected.")
    remaining: int = Field(..., ge=0, description="Submissions left in the current window.")
    limit: int = Field(..., description="Maximum submissions per window.")
    reset_time: str = Field(..., description="ISO-8601 UTC time when the budget frees up.")
