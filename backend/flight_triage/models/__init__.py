from .email_candidates import EmailCandidate
from .review_decisions import ReviewDecision
from .confirmed_flights import ConfirmedFlight, ForwardStatus

__all__ = ["EmailCandidate", "ReviewDecision", "ConfirmedFlight", "ForwardStatus"]
