"""Statistics and confirmed-flight queue routes."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from flight_triage.api.deps import get_review_service
from flight_triage.api.routes.emails import raise_http_error, raise_unexpected_error
from flight_triage.core.errors import FlightTriageError
from flight_triage.services.review_service import ReviewService, ReviewStats

logger = logging.getLogger(__name__)

stats_router = APIRouter(tags=["stats"])


class ConfirmedFlightResponse(BaseModel):
    message_id: str
    gmail_uid: str | None = None
    subject: str
    forward_status: str
    forwarded_at: datetime | None = None
    tripit_trip_id: str | None = None
    created_at: datetime


class ConfirmedListResponse(BaseModel):
    confirmed: list[ConfirmedFlightResponse]
    count: int


@stats_router.get("/stats", response_model=ReviewStats)
async def get_stats(
    service: ReviewService = Depends(get_review_service),
) -> ReviewStats:
    """
    Aggregate review progress.

    Example Response:
    {
      "total_candidates": 3,
      "reviewed": 2,
      "unreviewed": 1,
      "confirmed_count": 1,
      "rejected_count": 1,
      "review_rate_percent": 67
    }
    """
    try:
        return service.get_stats()
    except FlightTriageError as e:
        raise_http_error(e, "stats")
    except Exception as e:
        raise_unexpected_error(e, "stats")


@stats_router.get("/confirmed", response_model=ConfirmedListResponse)
async def list_confirmed_flights(
    status: str | None = Query(None, description="Filter by forward status: pending, success or failed"),
    service: ReviewService = Depends(get_review_service),
) -> ConfirmedListResponse:
    """Confirmed flight emails queued for downstream forwarding."""
    try:
        entries = service.list_confirmed(status)
    except FlightTriageError as e:
        raise_http_error(e, "confirmed")
    except Exception as e:
        raise_unexpected_error(e, "confirmed")

    confirmed = [
        ConfirmedFlightResponse(
            message_id=entry.message_id,
            gmail_uid=entry.gmail_uid,
            subject=entry.subject,
            forward_status=entry.forward_status,
            forwarded_at=entry.forwarded_at,
            tripit_trip_id=entry.tripit_trip_id,
            created_at=entry.created_at,
        )
        for entry in entries
    ]
    return ConfirmedListResponse(confirmed=confirmed, count=len(confirmed))
