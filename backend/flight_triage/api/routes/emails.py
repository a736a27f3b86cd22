"""Review queue routes: next batch, decisions, undo, search and ingestion."""

import logging
import re
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from flight_triage.api.deps import get_review_service
from flight_triage.core.errors import (
    FlightTriageError,
    InvalidInputError,
    NotFoundError,
    StorageFailureError,
)
from flight_triage.services.ingestion import IngestionReport
from flight_triage.services.review_service import CandidateView, ReviewService

logger = logging.getLogger(__name__)

emails_router = APIRouter(prefix="/emails", tags=["emails"])


class NextBatchResponse(BaseModel):
    """Response model for the next review batch."""
    candidates: list[CandidateView]
    total_remaining: int
    message: str | None = None


class ReviewRequest(BaseModel):
    """Request model for submitting a decision.

    ``email_id`` and ``is_flight_confirmation`` are left untyped so wrongly typed
    values reach the service and are reported as invalid input (400) rather
    than coerced or rejected by request validation.
    """
    email_id: Any = Field(None, description="Message identifier of the reviewed email")
    is_flight_confirmation: Any = Field(None, description="True if the email is a flight confirmation")
    notes: str | None = Field(None, description="Optional reviewer note")


class ReviewResponse(BaseModel):
    status: str = "success"
    remaining_unreviewed: int


class UndoResponse(BaseModel):
    status: str = "success"
    undone_message_id: str


class SearchResponse(BaseModel):
    results: list[CandidateView]
    count: int


class IngestRequest(BaseModel):
    """Raw records from the mailbox component.

    ``emails`` holds flat records (message_id, subject, from_email, date,
    html, plain_text); ``gmail_messages`` holds full Gmail API messages.
    """
    emails: list[Any] = Field(default_factory=list)
    gmail_messages: list[Any] = Field(default_factory=list)


def raise_http_error(e: FlightTriageError, operation: str) -> NoReturn:
    """Log a service error at the right level and re-raise it as HTTPException."""
    if isinstance(e, StorageFailureError):
        logger.error(
            "Storage failure",
            extra={"operation": operation, "error_code": e.error_code, "error": e.message}
        )
    elif isinstance(e, (NotFoundError, InvalidInputError)):
        logger.warning(
            "Rejected request",
            extra={"operation": operation, "error_code": e.error_code, "error": e.message}
        )
    else:
        logger.error(
            "Review service error",
            extra={"operation": operation, "error_code": e.error_code, "error": e.message}
        )
    raise HTTPException(status_code=e.status_code, detail=e.message)


def raise_unexpected_error(e: Exception, operation: str) -> NoReturn:
    logger.exception(
        "Unexpected error in review endpoint",
        extra={"operation": operation, "error_type": type(e).__name__}
    )
    raise HTTPException(status_code=500, detail="Internal server error")


def parse_batch_size(value: str | None) -> int | None:
    """Leading integer of the query value, or None when there is none."""
    if value is None:
        return None
    match = re.match(r"\s*([+-]?\d+)", value)
    return int(match.group(1)) if match else None


def parse_reviewed_filter(reviewed: str | None) -> bool | None:
    if reviewed == "true":
        return True
    if reviewed == "false":
        return False
    return None


@emails_router.get("/next-batch", response_model=NextBatchResponse)
async def get_next_batch(
    batch_size: str | None = Query(None, description="Number of cards to return (default 20, max 100)"),
    service: ReviewService = Depends(get_review_service),
) -> NextBatchResponse:
    """
    Get the next batch of unreviewed candidates.

    Cards are ordered by confidence score (highest first), then by message
    date (newest first). Out-of-range batch sizes are clamped.
    """
    try:
        batch = service.fetch_next_batch(parse_batch_size(batch_size))
    except FlightTriageError as e:
        raise_http_error(e, "next_batch")
    except Exception as e:
        raise_unexpected_error(e, "next_batch")

    return NextBatchResponse(
        candidates=batch.candidates,
        total_remaining=batch.total_remaining,
        message=None if batch.candidates else "No more emails to review",
    )


@emails_router.post("/review", response_model=ReviewResponse)
async def submit_review(
    request_body: ReviewRequest,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Record a decision for one candidate.

    Errors:
    - 400: missing or non-string email_id, or non-boolean is_flight_confirmation
    - 404: unknown email_id
    - 409: email already reviewed (undo first)
    - 503: storage failure, nothing was written
    """
    try:
        remaining = service.submit_decision(
            request_body.email_id,
            request_body.is_flight_confirmation,
            request_body.notes,
        )
    except FlightTriageError as e:
        raise_http_error(e, "review")
    except Exception as e:
        raise_unexpected_error(e, "review")

    return ReviewResponse(remaining_unreviewed=remaining)


@emails_router.post("/undo", response_model=UndoResponse)
async def undo_last_review(
    service: ReviewService = Depends(get_review_service),
) -> UndoResponse:
    """Undo the most recent decision; 404 when there is nothing to undo."""
    try:
        message_id = service.undo_last()
    except FlightTriageError as e:
        raise_http_error(e, "undo")
    except Exception as e:
        raise_unexpected_error(e, "undo")

    return UndoResponse(undone_message_id=message_id)


@emails_router.get("/search", response_model=SearchResponse)
async def search_emails(
    q: str | None = Query(None, description="Substring of subject, sender or message id"),
    reviewed: str | None = Query(None, description="'true' or 'false' to filter by review state"),
    service: ReviewService = Depends(get_review_service),
) -> SearchResponse:
    """Search candidates (max 100 results, newest first)."""
    try:
        results = service.search(q, parse_reviewed_filter(reviewed))
    except FlightTriageError as e:
        raise_http_error(e, "search")
    except Exception as e:
        raise_unexpected_error(e, "search")

    return SearchResponse(results=results, count=len(results))


@emails_router.post("/ingest", response_model=IngestionReport)
async def ingest_emails(
    request_body: IngestRequest,
    service: ReviewService = Depends(get_review_service),
) -> IngestionReport:
    """
    Score and store emails pushed by the mailbox component.

    Malformed records are skipped and counted; emails below the confidence
    threshold are discarded; already-known message ids are ignored.
    """
    try:
        report = service.ingest(request_body.emails, request_body.gmail_messages)
    except FlightTriageError as e:
        raise_http_error(e, "ingest")
    except Exception as e:
        raise_unexpected_error(e, "ingest")

    return report
