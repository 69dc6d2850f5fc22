from __future__ import annotations

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.core.rate_limit import (
    build_rate_limit_headers,
    client_key,
    enforce_contact_rate_limit,
    format_reset_time,
    get_rate_limiter,
)
from app.schemas.contact import (
    ContactRequest,
    ContactResponse,
    ContactSubmissionData,
    RateLimitStatusResponse,
)
from app.utils.client_ip import anonymize_ip

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Contact"])


@router.post("/contact", response_model=ContactResponse)
def submit_contact(
    payload: ContactRequest,
    request: Request,
    response: Response,
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
) -> ContactResponse:
    """Accept a contact form submission.

    The submission is admitted only if the client IP is within its hourly
    budget; otherwise a 429 error with a retry hint is returned.
    Notification delivery is handled outside this service.

    Args:
        payload: Validated contact form fields.
        request: Incoming request (used for the client IP).
        response: Outgoing response (receives X-RateLimit-* headers).
        limiter: Limiter from application state.

    Returns:
        ContactResponse with the generated submission id.

    Raises:
        RateLimitedAppError: When the client exhausted its budget.
    """
    rate_limit = enforce_contact_rate_limit(request, limiter)
    submission_id = str(uuid.uuid4())

    if rate_limit is not None:
        response.headers.update(build_rate_limit_headers(limiter, rate_limit))

    logger.info(
        "contact.submitted",
        extra={
            "submission_id": submission_id,
            "client_ip_anon": anonymize_ip(client_key(request)),
            "email_domain": payload.email.rsplit("@", 1)[-1].lower(),
            "has_company": bool(payload.company),
            "message_chars": len(payload.message),
            "remaining": rate_limit.remaining if rate_limit else None,
        },
    )

    return ContactResponse(
        message="Form submitted successfully",
        data=ContactSubmissionData(submission_id=submission_id),
    )


@router.get("/contact/rate-limit", response_model=RateLimitStatusResponse)
def contact_rate_limit_status(
    request: Request,
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
) -> RateLimitStatusResponse:
    """Report the caller's remaining submission budget without consuming it."""

    result = limiter.status(client_key(request))
    return RateLimitStatusResponse(
        limited=result.limited,
        remaining=result.remaining,
        limit=limiter.limit,
        reset_time=format_reset_time(result.reset_time),
    )
