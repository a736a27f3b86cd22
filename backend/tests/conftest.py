"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing app
os.environ.update({
    "DATABASE_URL": "sqlite://",
    "LOG_LEVEL": "WARNING",
    "OTEL_TRACES_EXPORTER": "none",
    "DEFAULT_BATCH_SIZE": "20",
    "MAX_BATCH_SIZE": "100",
})

from flight_triage.core.db import create_store  # noqa: E402
from flight_triage.models import EmailCandidate  # noqa: E402
from flight_triage.services.candidate_store import CandidateStore  # noqa: E402
from flight_triage.services.review_service import ReviewService  # noqa: E402


BASE_DATE = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_candidate(
    message_id: str,
    score: int = 50,
    days_ago: int = 0,
    subject: str | None = None,
    from_email: str = "noreply@united.com",
    **overrides: Any,
) -> EmailCandidate:
    """Build a candidate row with sensible defaults."""
    return EmailCandidate(
        message_id=message_id,
        gmail_uid=f"gmail-{message_id}",
        subject=subject if subject is not None else f"Flight confirmation {message_id}",
        from_email=from_email,
        msg_date=BASE_DATE - timedelta(days=days_ago),
        preview_text="Your flight is confirmed",
        html_content="<p>Your flight is confirmed</p>",
        plain_text="Your flight is confirmed",
        confidence_score=score,
        detection_reasons=["Known airline/OTA sender"],
        **overrides,
    )


@pytest.fixture
def store() -> Generator[CandidateStore, None, None]:
    """Fresh in-memory store per test."""
    candidate_store = create_store("sqlite://")
    yield candidate_store
    candidate_store.close()


@pytest.fixture
def review_service(store: CandidateStore) -> ReviewService:
    return ReviewService(store, default_batch_size=20, max_batch_size=100, search_limit=100)


@pytest.fixture
def seeded_store(store: CandidateStore) -> CandidateStore:
    """Store holding three candidates: A (95), B (80, newer), C (80, older)."""
    store.insert_candidates([
        make_candidate("A", score=95, days_ago=3),
        make_candidate("B", score=80, days_ago=1),
        make_candidate("C", score=80, days_ago=2),
    ])
    return store


@pytest.fixture
def united_email() -> dict[str, Any]:
    """Airline confirmation that trips every rule."""
    return {
        "message_id": "<united-1@united.com>",
        "subject": "Your flight confirmation - Itinerary ABC123",
        "from_email": "United Airlines <noreply@united.com>",
        "date": "Fri, 01 Mar 2024 12:00:00 +0000",
        "html": '<div itemtype="http://schema.org/FlightReservation">UA123</div>',
        "plain_text": "Confirmation ABC123. Flight UA123 from SFO to JFK.",
    }


@pytest.fixture
def marketing_email() -> dict[str, Any]:
    """Newsletter with no flight signal."""
    return {
        "message_id": "<promo-1@shop.example.com>",
        "subject": "Spring sale: 20% off everything",
        "from_email": "deals@shop.example.com",
        "date": "Thu, 29 Feb 2024 09:00:00 +0000",
        "html": "<p>Big savings</p>",
        "plain_text": "Big savings this week only.",
    }


@pytest.fixture
def client(store: CandidateStore) -> TestClient:
    """Create FastAPI test client bound to the in-memory store."""
    from flight_triage.main import create_app

    return TestClient(create_app(store=store))


@pytest.fixture
def candidate_factory():
    """Expose ``make_candidate`` to test modules."""
    return make_candidate
