"""
Heuristic scoring of emails as flight-confirmation candidates.

Provides:
- Fixed, independently additive rules with human-readable reasons
- The candidate threshold policy
- The mailbox pre-filter search query
"""
from .models import CandidateAssessment, ConfidenceResult, EmailData
from .scorer import (
    calculate_confidence_score,
    detect_flight_markers,
    generate_gmail_search_query,
    is_candidate_for_review,
    meets_threshold,
)
from .rules import CONFIDENCE_THRESHOLD, CONFIDENCE_THRESHOLD_CEILING

__all__ = [
    "CandidateAssessment",
    "ConfidenceResult",
    "EmailData",
    "calculate_confidence_score",
    "detect_flight_markers",
    "generate_gmail_search_query",
    "is_candidate_for_review",
    "meets_threshold",
    "CONFIDENCE_THRESHOLD",
    "CONFIDENCE_THRESHOLD_CEILING",
]
