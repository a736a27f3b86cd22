"""
Persistence for the review queue.

One ``CandidateStore`` owns one engine and covers three tables:
- email_candidates: scored emails and their reviewed flag
- review_decisions: the append-only decision log used for undo
- confirmed_flights: emails queued for downstream forwarding

Every operation is serialized through a re-entrant lock and runs inside a
session transaction. ``transaction()`` lets callers group several operations
into one atomic unit; operations called inside it join the outer session.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, func, or_, select

from flight_triage.core.errors import (
    CandidateNotFoundError,
    DecisionNotFoundError,
    StorageFailureError,
)
from flight_triage.models import ConfirmedFlight, EmailCandidate, ForwardStatus, ReviewDecision

logger = logging.getLogger(__name__)

# Keeps IN (...) lists under SQLite's bound-parameter limit
_LOOKUP_CHUNK_SIZE = 500


class CandidateStore:
    """Single-writer store for candidates, decisions and confirmed flights."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._lock = threading.RLock()
        self._session: Session | None = None

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run the enclosed operations atomically.

        Commits on success, rolls back everything on any exception.
        Database errors surface as ``StorageFailureError``.
        """
        with self._lock:
            if self._session is not None:
                yield self._session
                return

            with Session(self.engine, expire_on_commit=False) as session:
                self._session = session
                try:
                    yield session
                    session.commit()
                except SQLAlchemyError as e:
                    session.rollback()
                    logger.error(
                        "Store transaction aborted",
                        extra={"error_type": type(e).__name__, "error": str(e)}
                    )
                    raise StorageFailureError(f"Storage failure: {type(e).__name__}") from e
                except BaseException:
                    session.rollback()
                    raise
                finally:
                    self._session = None

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def insert_candidates(self, rows: Iterable[EmailCandidate | dict[str, Any]]) -> int:
        """Insert candidates, ignoring message ids that already exist.

        Duplicates, both against stored rows and within ``rows``, are skipped
        without touching the stored content.

        Returns:
            Number of rows actually inserted
        """
        candidates = [
            row if isinstance(row, EmailCandidate) else EmailCandidate.model_validate(row)
            for row in rows
        ]
        if not candidates:
            return 0

        with self.transaction() as session:
            message_ids = list({c.message_id for c in candidates})
            existing: set[str] = set()
            for start in range(0, len(message_ids), _LOOKUP_CHUNK_SIZE):
                chunk = message_ids[start:start + _LOOKUP_CHUNK_SIZE]
                existing.update(
                    session.exec(
                        select(EmailCandidate.message_id).where(
                            col(EmailCandidate.message_id).in_(chunk)
                        )
                    ).all()
                )

            inserted = 0
            for candidate in candidates:
                if candidate.message_id in existing:
                    continue
                existing.add(candidate.message_id)
                session.add(candidate)
                inserted += 1

            session.flush()

        logger.info(
            "Candidates inserted",
            extra={"attempted": len(candidates), "inserted": inserted}
        )
        return inserted

    def get_unreviewed_candidates(self, limit: int = 20) -> list[EmailCandidate]:
        """Unreviewed candidates, highest score first, newest first on ties."""
        with self.transaction() as session:
            statement = (
                select(EmailCandidate)
                .where(EmailCandidate.reviewed == False)  # noqa: E712
                .order_by(
                    col(EmailCandidate.confidence_score).desc(),
                    col(EmailCandidate.msg_date).desc(),
                    col(EmailCandidate.id).asc(),
                )
                .limit(limit)
            )
            return list(session.exec(statement).all())

    def get_candidate(self, candidate_id: int) -> EmailCandidate | None:
        with self.transaction() as session:
            return session.get(EmailCandidate, candidate_id)

    def get_candidate_by_message_id(self, message_id: str) -> EmailCandidate | None:
        with self.transaction() as session:
            return session.exec(
                select(EmailCandidate).where(EmailCandidate.message_id == message_id)
            ).first()

    def mark_as_reviewed(self, candidate_id: int) -> None:
        self._set_reviewed(candidate_id, True)

    def mark_as_unreviewed(self, candidate_id: int) -> None:
        self._set_reviewed(candidate_id, False)

    def _set_reviewed(self, candidate_id: int, reviewed: bool) -> None:
        with self.transaction() as session:
            candidate = session.get(EmailCandidate, candidate_id)
            if candidate is None:
                raise CandidateNotFoundError(f"Candidate {candidate_id} not found")
            candidate.reviewed = reviewed
            session.add(candidate)

    def search_candidates(
        self,
        query: str,
        reviewed: bool | None = None,
        limit: int = 100,
    ) -> list[EmailCandidate]:
        """Case-insensitive substring search over subject, sender and message id."""
        with self.transaction() as session:
            statement = select(EmailCandidate).where(
                or_(
                    col(EmailCandidate.subject).icontains(query, autoescape=True),
                    col(EmailCandidate.from_email).icontains(query, autoescape=True),
                    col(EmailCandidate.message_id).icontains(query, autoescape=True),
                )
            )
            if reviewed is not None:
                statement = statement.where(EmailCandidate.reviewed == reviewed)

            statement = statement.order_by(
                col(EmailCandidate.msg_date).desc(),
                col(EmailCandidate.id).asc(),
            ).limit(limit)
            return list(session.exec(statement).all())

    def count_total(self) -> int:
        with self.transaction() as session:
            return session.exec(select(func.count()).select_from(EmailCandidate)).one()

    def count_reviewed(self) -> int:
        return self._count_candidates(reviewed=True)

    def count_unreviewed(self) -> int:
        return self._count_candidates(reviewed=False)

    def _count_candidates(self, reviewed: bool) -> int:
        with self.transaction() as session:
            return session.exec(
                select(func.count())
                .select_from(EmailCandidate)
                .where(EmailCandidate.reviewed == reviewed)
            ).one()

    # ------------------------------------------------------------------
    # Decision log
    # ------------------------------------------------------------------

    def insert_review_decision(
        self,
        candidate_id: int,
        message_id: str,
        is_flight_confirmation: bool,
        notes: str | None = None,
    ) -> ReviewDecision:
        """Append a decision; it becomes the only undoable one."""
        with self.transaction() as session:
            previous = session.exec(
                select(ReviewDecision).where(ReviewDecision.undoable == True)  # noqa: E712
            ).all()
            for decision in previous:
                decision.undoable = False
                session.add(decision)

            decision = ReviewDecision(
                email_candidate_id=candidate_id,
                message_id=message_id,
                is_flight_confirmation=is_flight_confirmation,
                notes=notes,
            )
            session.add(decision)
            session.flush()
            return decision

    def get_last_decision(self, undoable_only: bool = False) -> ReviewDecision | None:
        """Most recent decision by timestamp, latest id on ties."""
        with self.transaction() as session:
            statement = select(ReviewDecision)
            if undoable_only:
                statement = statement.where(ReviewDecision.undoable == True)  # noqa: E712
            statement = statement.order_by(
                col(ReviewDecision.reviewed_at).desc(),
                col(ReviewDecision.id).desc(),
            )
            return session.exec(statement).first()

    def get_decision_for_candidate(self, candidate_id: int) -> ReviewDecision | None:
        with self.transaction() as session:
            return session.exec(
                select(ReviewDecision)
                .where(ReviewDecision.email_candidate_id == candidate_id)
                .order_by(
                    col(ReviewDecision.reviewed_at).desc(),
                    col(ReviewDecision.id).desc(),
                )
            ).first()

    def delete_decision(self, decision_id: int) -> None:
        with self.transaction() as session:
            decision = session.get(ReviewDecision, decision_id)
            if decision is None:
                raise DecisionNotFoundError(f"Decision {decision_id} not found")
            session.delete(decision)

    def count_confirmed(self) -> int:
        return self._count_decisions(is_flight_confirmation=True)

    def count_rejected(self) -> int:
        return self._count_decisions(is_flight_confirmation=False)

    def _count_decisions(self, is_flight_confirmation: bool) -> int:
        with self.transaction() as session:
            return session.exec(
                select(func.count())
                .select_from(ReviewDecision)
                .where(ReviewDecision.is_flight_confirmation == is_flight_confirmation)
            ).one()

    # ------------------------------------------------------------------
    # Confirmed flights
    # ------------------------------------------------------------------

    def insert_confirmed_flight(
        self,
        message_id: str,
        gmail_uid: str | None,
        subject: str,
    ) -> bool:
        """Queue a confirmed flight; returns False if it was already queued."""
        with self.transaction() as session:
            existing = session.exec(
                select(ConfirmedFlight).where(ConfirmedFlight.message_id == message_id)
            ).first()
            if existing is not None:
                return False

            session.add(ConfirmedFlight(message_id=message_id, gmail_uid=gmail_uid, subject=subject))
            session.flush()
            return True

    def delete_confirmed_flight(self, message_id: str) -> bool:
        with self.transaction() as session:
            entry = session.exec(
                select(ConfirmedFlight).where(ConfirmedFlight.message_id == message_id)
            ).first()
            if entry is None:
                return False
            session.delete(entry)
            return True

    def get_confirmed_flight(self, message_id: str) -> ConfirmedFlight | None:
        with self.transaction() as session:
            return session.exec(
                select(ConfirmedFlight).where(ConfirmedFlight.message_id == message_id)
            ).first()

    def list_confirmed_flights(
        self,
        status: ForwardStatus | str | None = None,
    ) -> list[ConfirmedFlight]:
        with self.transaction() as session:
            statement = select(ConfirmedFlight)
            if status is not None:
                statement = statement.where(
                    ConfirmedFlight.forward_status == ForwardStatus(status).value
                )
            statement = statement.order_by(
                col(ConfirmedFlight.created_at).asc(),
                col(ConfirmedFlight.id).asc(),
            )
            return list(session.exec(statement).all())

    def count_confirmed_flights(self) -> int:
        with self.transaction() as session:
            return session.exec(select(func.count()).select_from(ConfirmedFlight)).one()
