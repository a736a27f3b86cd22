from fastapi import APIRouter
from flight_triage.api.routes.emails import emails_router
from flight_triage.api.routes.stats import stats_router

api_router = APIRouter()

api_router.include_router(emails_router)
api_router.include_router(stats_router)
