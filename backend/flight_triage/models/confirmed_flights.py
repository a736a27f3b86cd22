"""Database model for emails the reviewer confirmed as flight confirmations."""

import enum
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Column, String


class ForwardStatus(str, enum.Enum):
    """Downstream forwarding state, updated by the forwarder."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ConfirmedFlight(SQLModel, table=True):
    """Queue entry for a confirmed flight email.

    Exists exactly while the candidate's latest decision is positive.
    """

    __tablename__ = "confirmed_flights"

    id: int | None = Field(default=None, primary_key=True)

    message_id: str = Field(index=True, unique=True)
    gmail_uid: str | None = None
    subject: str = ""

    # Forwarding state
    forward_status: str = Field(
        default=ForwardStatus.PENDING.value, sa_column=Column(String, index=True)
    )
    forwarded_at: datetime | None = None
    tripit_trip_id: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
