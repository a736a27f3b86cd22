"""Pydantic models for scoring operations."""
from pydantic import BaseModel, Field, field_validator


class EmailData(BaseModel):
    """Raw email record as supplied by the mailbox retrieval component."""
    message_id: str = Field(..., min_length=1)
    subject: str = ""
    from_email: str = ""
    date: str = ""
    html: str = ""
    plain_text: str = ""
    gmail_uid: str | None = None

    @field_validator("subject", "from_email", "date", "html", "plain_text", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class ConfidenceResult(BaseModel):
    """Score and the reasons of every rule that fired, in rule order."""
    score: int = Field(default=0, ge=0)
    reasons: list[str] = Field(default_factory=list)


class CandidateAssessment(ConfidenceResult):
    """Confidence result plus the threshold verdict."""
    is_candidate: bool
