"""Database model for scored email candidates awaiting review."""

from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Column, JSON


class EmailCandidate(SQLModel, table=True):
    """An email that passed the confidence threshold.

    Rows are created once by ingestion and keyed by the message's stable
    ``message_id``; re-ingesting the same id never overwrites content.
    ``reviewed`` is flipped by the review service only.
    """

    __tablename__ = "email_candidates"

    id: int | None = Field(default=None, primary_key=True)

    # Stable external identifier (Message-ID header)
    message_id: str = Field(index=True, unique=True)
    gmail_uid: str | None = None

    # Message metadata
    subject: str = ""
    from_email: str = ""
    msg_date: datetime | None = Field(default=None, index=True)  # UTC
    preview_text: str = ""

    # Bodies, passed through unmodified
    html_content: str | None = None
    plain_text: str | None = None

    # Scoring
    confidence_score: int = Field(default=0, index=True)
    detection_reasons: list[str] = Field(default_factory=list, sa_column=Column(JSON))

    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed: bool = Field(default=False, index=True)

    def __repr__(self):
        return f"<EmailCandidate(id={self.id}, message_id='{self.message_id}', score={self.confidence_score})>"
