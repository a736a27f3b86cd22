import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware

from flight_triage.api.api_router import api_router
from flight_triage.core.config import settings
from flight_triage.core.db import create_store
from flight_triage.core.tracing import setup_tracing
from flight_triage.services.candidate_store import CandidateStore

logger = logging.getLogger(__name__)


def create_app(store: CandidateStore | None = None) -> FastAPI:
    """
    Build the API application.

    When no store is given, one is opened from DATABASE_URL at startup and
    closed on shutdown. A provided store is owned by the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_tracing()
        owns_store = getattr(app.state, "store", None) is None
        if owns_store:
            app.state.store = create_store(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
        logger.info(
            "Flight triage API started",
            extra={"database_url": settings.DATABASE_URL, "version": settings.APP_VERSION}
        )

        yield

        # Shutdown
        if owns_store:
            app.state.store.close()
            app.state.store = None

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    if store is not None:
        app.state.store = store

    # Set all CORS enabled origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALL_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request handled",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        )
        return response

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get(f"{settings.API_PREFIX}/health")
    async def health_check():
        """Liveness probe."""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    async def index():
        prefix = settings.API_PREFIX
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "endpoints": {
                "next_batch": f"GET {prefix}/emails/next-batch",
                "review": f"POST {prefix}/emails/review",
                "undo": f"POST {prefix}/emails/undo",
                "search": f"GET {prefix}/emails/search?q=",
                "ingest": f"POST {prefix}/emails/ingest",
                "stats": f"GET {prefix}/stats",
                "confirmed": f"GET {prefix}/confirmed",
                "health": f"GET {prefix}/health",
            },
        }

    return app


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = create_app()
