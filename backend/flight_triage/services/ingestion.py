"""
Candidate ingestion.

Turns raw email records from the mailbox component into scored candidate
rows. Records that fail validation are skipped and counted; one bad record
never aborts the batch. Only emails that meet the confidence threshold are
persisted.
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError
from opentelemetry.trace import Status, StatusCode

from flight_triage.core.errors import InvalidInputError
from flight_triage.core.tracing import get_tracer, safe_span_attributes
from flight_triage.integrations.gmail_messages import extract_email_data
from flight_triage.models import EmailCandidate
from flight_triage.scoring import CandidateAssessment, EmailData, is_candidate_for_review
from flight_triage.services.candidate_store import CandidateStore

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

PREVIEW_LENGTH = 200


class IngestionReport(BaseModel):
    """Outcome counts for one ingestion batch."""
    received: int = 0
    candidates: int = 0  # passed the threshold
    inserted: int = 0
    duplicates: int = 0
    discarded: int = 0  # below the threshold
    skipped: int = 0  # failed validation
    errors: list[str] = []


def parse_message_date(value: str | None) -> datetime | None:
    """Parse an RFC 2822 or ISO 8601 date into UTC; None when unparseable."""
    if not value:
        return None

    parsed: datetime | None = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Valid local time whose UTC equivalent falls outside datetime's range
        return None


def build_preview_text(plain_text: str | None, html: str | None) -> str:
    """First 200 characters of the plain text, else of the tag-broken HTML.

    The HTML variant only breaks tags apart for a readable snippet; it is not
    sanitisation.
    """
    preview = (plain_text or "")[:PREVIEW_LENGTH]
    if not preview and html:
        text = html.replace("<", " ").replace(">", " ")
        preview = re.sub(r"\s+", " ", text).strip()[:PREVIEW_LENGTH]
    return preview


def build_candidate(email: EmailData, assessment: CandidateAssessment) -> EmailCandidate:
    return EmailCandidate(
        message_id=email.message_id,
        gmail_uid=email.gmail_uid,
        subject=email.subject,
        from_email=email.from_email,
        msg_date=parse_message_date(email.date),
        preview_text=build_preview_text(email.plain_text, email.html),
        html_content=email.html or None,
        plain_text=email.plain_text or None,
        confidence_score=assessment.score,
        detection_reasons=list(assessment.reasons),
    )


def ingest_emails(
    store: CandidateStore,
    emails: Iterable[EmailData | dict[str, Any]],
) -> IngestionReport:
    """
    Score raw emails and persist the candidates.

    Args:
        store: Candidate store to insert into
        emails: Raw email records (EmailData or plain dicts)

    Returns:
        IngestionReport with per-outcome counts
    """
    with tracer.start_as_current_span("ingestion.ingest_emails") as span:
        report = IngestionReport()
        rows: list[EmailCandidate] = []
        seen: set[str] = set()

        for index, raw in enumerate(emails):
            report.received += 1
            try:
                email = raw if isinstance(raw, EmailData) else EmailData.model_validate(raw)
            except ValidationError as e:
                report.skipped += 1
                report.errors.append(f"Record {index}: {e.error_count()} validation error(s)")
                logger.warning(
                    "Skipping malformed email record",
                    extra={"index": index, "error_count": e.error_count()}
                )
                continue

            assessment = is_candidate_for_review(email)
            if not assessment.is_candidate:
                report.discarded += 1
                continue

            report.candidates += 1
            if email.message_id in seen:
                continue
            seen.add(email.message_id)
            rows.append(build_candidate(email, assessment))

        report.inserted = store.insert_candidates(rows)
        report.duplicates = report.candidates - report.inserted

        span.set_attributes(safe_span_attributes(
            received=report.received,
            candidates=report.candidates,
            inserted=report.inserted,
            skipped=report.skipped,
        ))
        span.set_status(Status(StatusCode.OK))

        logger.info(
            "Ingestion batch complete",
            extra={
                "received": report.received,
                "candidates": report.candidates,
                "inserted": report.inserted,
                "duplicates": report.duplicates,
                "discarded": report.discarded,
                "skipped": report.skipped,
            }
        )
        return report


def convert_gmail_messages(
    messages: Iterable[Any],
) -> tuple[list[EmailData], list[str]]:
    """Convert full Gmail API messages to EmailData.

    Returns:
        The converted records and one error string per unreadable message
    """
    records: list[EmailData] = []
    errors: list[str] = []

    for index, message in enumerate(messages):
        try:
            records.append(extract_email_data(message))
        except InvalidInputError as e:
            errors.append(f"Message {index}: {e.message}")
            logger.warning(
                "Skipping unreadable Gmail message",
                extra={"index": index, "error": e.message}
            )

    return records, errors


def ingest_batch(
    store: CandidateStore,
    emails: Iterable[EmailData | dict[str, Any]] = (),
    gmail_messages: Iterable[Any] = (),
) -> IngestionReport:
    """Ingest flat records and full Gmail messages as one batch.

    Gmail messages are converted first; every readable record is then scored
    and inserted through a single ``insert_candidates`` call, so the batch is
    written all-or-nothing. Unreadable messages are skipped and counted like
    any other malformed record.
    """
    converted, gmail_errors = convert_gmail_messages(gmail_messages)

    report = ingest_emails(store, [*emails, *converted])
    report.received += len(gmail_errors)
    report.skipped += len(gmail_errors)
    report.errors = report.errors + gmail_errors
    return report


def ingest_gmail_messages(
    store: CandidateStore,
    messages: Iterable[Any],
) -> IngestionReport:
    """Convert full Gmail API messages to EmailData, then ingest them."""
    return ingest_batch(store, gmail_messages=messages)
