"""
Review Service - the reviewer's state machine.

Per candidate: Unseen -> Reviewed(confirmed | rejected) on decision, and
Reviewed -> Unseen only by undoing the decision that caused it.

Multi-step mutations (submit, undo) run inside one store transaction, so a
failure leaves candidates, decisions and confirmed flights exactly as they
were before the call.
"""

import logging
from datetime import datetime
from typing import Any, Iterable

from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, Field

from flight_triage.core.config import settings
from flight_triage.core.errors import (
    AlreadyReviewedError,
    CandidateNotFoundError,
    DecisionNotFoundError,
    FlightTriageError,
    InvalidInputError,
)
from flight_triage.core.tracing import get_tracer, safe_span_attributes
from flight_triage.models import ConfirmedFlight, EmailCandidate, ForwardStatus
from flight_triage.scoring import EmailData
from flight_triage.services.candidate_store import CandidateStore
from flight_triage.services.ingestion import (
    IngestionReport,
    ingest_batch,
)

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class CandidateView(BaseModel):
    """Card shown to the reviewer."""
    id: str = Field(..., description="Stable message identifier")
    subject: str
    sender: str
    date: datetime | None = None
    preview_text: str
    body_html: str | None = None
    score: int
    reasons: list[str] = Field(default_factory=list)

    @classmethod
    def from_candidate(cls, candidate: EmailCandidate) -> "CandidateView":
        return cls(
            id=candidate.message_id,
            subject=candidate.subject,
            sender=candidate.from_email,
            date=candidate.msg_date,
            preview_text=candidate.preview_text,
            body_html=candidate.html_content,
            score=candidate.confidence_score,
            reasons=list(candidate.detection_reasons or []),
        )


class BatchResult(BaseModel):
    candidates: list[CandidateView]
    total_remaining: int


class ReviewStats(BaseModel):
    total_candidates: int
    reviewed: int
    unreviewed: int
    confirmed_count: int
    rejected_count: int
    review_rate_percent: int


def calculate_review_rate(reviewed: int, total: int) -> int:
    """Reviewed share of total as a whole percentage, rounding halves up.

    Integer arithmetic keeps e.g. 2/3 at exactly 67 and 1/8 at 13.
    """
    if total <= 0:
        return 0
    return (200 * reviewed + total) // (2 * total)


class ReviewService:
    """Orchestrates batch fetch, decisions, undo, search and statistics."""

    def __init__(
        self,
        store: CandidateStore,
        default_batch_size: int = settings.DEFAULT_BATCH_SIZE,
        max_batch_size: int = settings.MAX_BATCH_SIZE,
        search_limit: int = settings.SEARCH_RESULT_LIMIT,
    ):
        self.store = store
        self.default_batch_size = default_batch_size
        self.max_batch_size = max_batch_size
        self.search_limit = search_limit

    def clamp_batch_size(self, batch_size: int | None) -> int:
        """Missing or non-positive sizes fall back to the default; large ones are capped."""
        if batch_size is None or batch_size <= 0:
            return self.default_batch_size
        return min(batch_size, self.max_batch_size)

    def fetch_next_batch(self, batch_size: int | None = None) -> BatchResult:
        """Next unreviewed cards, highest score first, newest first on ties."""
        limit = self.clamp_batch_size(batch_size)
        with tracer.start_as_current_span("review.fetch_next_batch") as span:
            with self.store.transaction():
                candidates = self.store.get_unreviewed_candidates(limit)
                total_remaining = self.store.count_unreviewed()

            span.set_attributes(safe_span_attributes(
                batch_size=limit,
                returned=len(candidates),
                total_remaining=total_remaining,
            ))

            return BatchResult(
                candidates=[CandidateView.from_candidate(c) for c in candidates],
                total_remaining=total_remaining,
            )

    def submit_decision(
        self,
        message_id: Any,
        is_flight_confirmation: Any,
        notes: str | None = None,
    ) -> int:
        """
        Record the reviewer's verdict on one candidate.

        Inserts the decision, marks the candidate reviewed and, for a positive
        verdict, queues a confirmed flight, all in one transaction.

        Args:
            message_id: Candidate's message identifier
            is_flight_confirmation: Verdict; must be a real bool
            notes: Optional reviewer note

        Returns:
            Number of candidates still unreviewed

        Raises:
            InvalidInputError: Missing or non-string message id, or non-boolean verdict
            CandidateNotFoundError: Unknown message id
            AlreadyReviewedError: Candidate already has an active decision
            StorageFailureError: The transaction could not be committed
        """
        with tracer.start_as_current_span("review.submit_decision") as span:
            span.set_attributes(safe_span_attributes(
                message_id=message_id,
                is_flight_confirmation=is_flight_confirmation if isinstance(is_flight_confirmation, bool) else None,
                notes=notes,
            ))

            if not isinstance(message_id, str) or not message_id:
                raise InvalidInputError("email_id is required and must be a string")

            try:
                with self.store.transaction():
                    candidate = self.store.get_candidate_by_message_id(message_id)
                    if candidate is None:
                        raise CandidateNotFoundError(f"Email {message_id} not found")

                    if not isinstance(is_flight_confirmation, bool):
                        raise InvalidInputError("is_flight_confirmation must be a boolean")

                    if candidate.reviewed:
                        raise AlreadyReviewedError(
                            f"Email {message_id} has already been reviewed; undo the previous decision first"
                        )

                    self.store.insert_review_decision(
                        candidate.id, message_id, is_flight_confirmation, notes
                    )
                    self.store.mark_as_reviewed(candidate.id)

                    if is_flight_confirmation:
                        self.store.insert_confirmed_flight(
                            message_id, candidate.gmail_uid, candidate.subject
                        )

                    remaining = self.store.count_unreviewed()

            except FlightTriageError as e:
                span.set_status(Status(StatusCode.ERROR, e.error_code))
                raise

            logger.info(
                "Review decision recorded",
                extra={
                    "message_id": message_id,
                    "is_flight_confirmation": is_flight_confirmation,
                    "remaining": remaining,
                }
            )
            span.set_status(Status(StatusCode.OK))
            return remaining

    def undo_last(self) -> str:
        """
        Revert the most recent decision.

        Deletes the decision, flips its candidate back to unreviewed and, if
        the verdict was positive, removes the confirmed flight. Only the latest
        submitted decision can be undone, so two undos in a row fail the second
        time.

        Returns:
            Message id of the candidate whose decision was undone

        Raises:
            DecisionNotFoundError: Nothing to undo
            StorageFailureError: The transaction could not be committed
        """
        with tracer.start_as_current_span("review.undo_last") as span:
            try:
                with self.store.transaction():
                    decision = self.store.get_last_decision(undoable_only=True)
                    if decision is None:
                        raise DecisionNotFoundError("No decisions to undo")

                    self.store.delete_decision(decision.id)
                    self.store.mark_as_unreviewed(decision.email_candidate_id)
                    if decision.is_flight_confirmation:
                        self.store.delete_confirmed_flight(decision.message_id)

            except FlightTriageError as e:
                span.set_status(Status(StatusCode.ERROR, e.error_code))
                raise

            logger.info(
                "Review decision undone",
                extra={
                    "message_id": decision.message_id,
                    "was_flight_confirmation": decision.is_flight_confirmation,
                }
            )
            span.set_attributes(safe_span_attributes(message_id=decision.message_id))
            span.set_status(Status(StatusCode.OK))
            return decision.message_id

    def get_stats(self) -> ReviewStats:
        with self.store.transaction():
            total = self.store.count_total()
            reviewed = self.store.count_reviewed()
            unreviewed = self.store.count_unreviewed()
            confirmed = self.store.count_confirmed()
            rejected = self.store.count_rejected()

        return ReviewStats(
            total_candidates=total,
            reviewed=reviewed,
            unreviewed=unreviewed,
            confirmed_count=confirmed,
            rejected_count=rejected,
            review_rate_percent=calculate_review_rate(reviewed, total),
        )

    def search(self, query: str | None, reviewed: bool | None = None) -> list[CandidateView]:
        """Search candidates by subject, sender or message id."""
        if query is None or not query.strip():
            raise InvalidInputError('Query parameter "q" is required')

        with tracer.start_as_current_span("review.search") as span:
            results = self.store.search_candidates(query, reviewed, limit=self.search_limit)
            span.set_attributes(safe_span_attributes(
                query=query,
                reviewed=reviewed,
                count=len(results),
            ))
            return [CandidateView.from_candidate(c) for c in results]

    def ingest(
        self,
        emails: Iterable[EmailData | dict[str, Any]] = (),
        gmail_messages: Iterable[Any] = (),
    ) -> IngestionReport:
        """Score and store flat records and Gmail messages as one atomic batch."""
        return ingest_batch(self.store, emails, gmail_messages)

    def list_confirmed(self, status: ForwardStatus | str | None = None) -> list[ConfirmedFlight]:
        if status is not None:
            try:
                status = ForwardStatus(status)
            except ValueError:
                raise InvalidInputError(f"Unknown forward status: {status}")
        return self.store.list_confirmed_flights(status)
