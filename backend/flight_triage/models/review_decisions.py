"""Database model for reviewer decisions."""

from datetime import datetime, timezone
from sqlmodel import Field, SQLModel


class ReviewDecision(SQLModel, table=True):
    """One reviewer verdict on one candidate.

    The log is append-only; undo deletes the most recent row instead of
    mutating it. Only the latest submitted decision is ``undoable``.
    """

    __tablename__ = "review_decisions"

    id: int | None = Field(default=None, primary_key=True)

    email_candidate_id: int = Field(foreign_key="email_candidates.id", index=True)
    message_id: str  # Redundant copy of the candidate's message id

    is_flight_confirmation: bool = Field(index=True)
    notes: str | None = None

    reviewed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )
    undoable: bool = Field(default=True)

    def __repr__(self):
        return (
            f"<ReviewDecision(id={self.id}, message_id='{self.message_id}', "
            f"is_flight_confirmation={self.is_flight_confirmation})>"
        )
