from fastapi import Depends

from flight_triage.core.db import get_store
from flight_triage.services.candidate_store import CandidateStore
from flight_triage.services.review_service import ReviewService


def get_review_service(store: CandidateStore = Depends(get_store)) -> ReviewService:
    """FastAPI dependency building a review service over the app's store."""
    return ReviewService(store)
