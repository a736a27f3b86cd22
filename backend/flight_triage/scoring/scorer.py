"""
Flight confirmation confidence scoring.

Each rule inspects one signal and adds a fixed weight plus a reason when it
fires. Rules are independent, so evaluation order only affects the order of
the reasons list, never the score.
"""

import logging

from .models import CandidateAssessment, ConfidenceResult, EmailData
from .rules import (
    CONFIDENCE_THRESHOLD,
    CONFIRMATION_KEYWORD_REASON,
    CONFIRMATION_KEYWORD_SCORE,
    CONFIRMATION_KEYWORDS,
    FLIGHT_KEYWORD_REASON,
    FLIGHT_KEYWORD_SCORE,
    FLIGHT_KEYWORDS,
    FLIGHT_MARKER_PATTERNS,
    FLIGHT_MARKERS_REASON_PREFIX,
    FLIGHT_MARKERS_SCORE,
    KNOWN_AIRLINE_SENDERS,
    KNOWN_OTA_SENDERS,
    KNOWN_SENDER_REASON,
    KNOWN_SENDER_SCORE,
    MIN_FLIGHT_MARKERS,
    SCHEMA_MARKUP_REASON,
    SCHEMA_MARKUP_SCORE,
    SCHEMA_MARKUP_TOKEN,
    SEARCH_QUERY_AFTER,
    SEARCH_QUERY_KEYWORDS,
    SEARCH_QUERY_SENDERS,
)

logger = logging.getLogger(__name__)


def has_flight_reservation_schema(html: str) -> bool:
    return SCHEMA_MARKUP_TOKEN in (html or "").lower()


def is_known_sender(from_email: str) -> bool:
    lowered = (from_email or "").lower()
    return any(domain in lowered for domain in KNOWN_AIRLINE_SENDERS + KNOWN_OTA_SENDERS)


def has_confirmation_keywords(subject: str) -> bool:
    lowered = (subject or "").lower()
    return any(keyword in lowered for keyword in CONFIRMATION_KEYWORDS)


def has_flight_keywords(subject: str) -> bool:
    lowered = (subject or "").lower()
    return any(keyword in lowered for keyword in FLIGHT_KEYWORDS)


def detect_flight_markers(text: str) -> list[str]:
    """
    Find which flight marker shapes appear in the text.

    Args:
        text: Plain-text body

    Returns:
        Marker names in fixed order: confirmation code, flight number, airport code
    """
    if not text:
        return []
    return [name for name, pattern in FLIGHT_MARKER_PATTERNS if pattern.search(text)]


def calculate_confidence_score(email: EmailData) -> ConfidenceResult:
    """
    Score an email against every rule.

    Never raises for missing content: an email with no signal scores 0 with
    no reasons.

    Args:
        email: Raw email record

    Returns:
        ConfidenceResult with the summed score and the reasons of fired rules
    """
    score = 0
    reasons: list[str] = []

    if has_flight_reservation_schema(email.html):
        score += SCHEMA_MARKUP_SCORE
        reasons.append(SCHEMA_MARKUP_REASON)

    if is_known_sender(email.from_email):
        score += KNOWN_SENDER_SCORE
        reasons.append(KNOWN_SENDER_REASON)

    if has_confirmation_keywords(email.subject):
        score += CONFIRMATION_KEYWORD_SCORE
        reasons.append(CONFIRMATION_KEYWORD_REASON)

    if has_flight_keywords(email.subject):
        score += FLIGHT_KEYWORD_SCORE
        reasons.append(FLIGHT_KEYWORD_REASON)

    markers = detect_flight_markers(email.plain_text)
    if len(markers) >= MIN_FLIGHT_MARKERS:
        score += FLIGHT_MARKERS_SCORE
        reasons.append(f"{FLIGHT_MARKERS_REASON_PREFIX}{', '.join(markers)}")

    return ConfidenceResult(score=score, reasons=reasons)


def meets_threshold(score: int) -> bool:
    return score >= CONFIDENCE_THRESHOLD


def is_candidate_for_review(email: EmailData) -> CandidateAssessment:
    """Score an email and apply the candidate threshold."""
    result = calculate_confidence_score(email)
    is_candidate = meets_threshold(result.score)

    logger.debug(
        "Email scored",
        extra={
            "message_id": email.message_id,
            "score": result.score,
            "is_candidate": is_candidate,
        }
    )

    return CandidateAssessment(
        is_candidate=is_candidate,
        score=result.score,
        reasons=result.reasons,
    )


def generate_gmail_search_query() -> str:
    """Mailbox query the retrieval component uses to pre-filter messages."""
    keywords = " OR ".join(SEARCH_QUERY_KEYWORDS)
    senders = " OR ".join(SEARCH_QUERY_SENDERS)
    return f"({keywords}) OR from:({senders}) after:{SEARCH_QUERY_AFTER}"
