from pathlib import Path

from fastapi import Request
from sqlalchemy import Engine, event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from flight_triage import models  # noqa: F401  registers tables on SQLModel.metadata
from flight_triage.services.candidate_store import CandidateStore


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo)

    connect_args = {"check_same_thread": False}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            database_url, echo=echo, connect_args=connect_args, poolclass=StaticPool
        )
    else:
        db_path = database_url.removeprefix("sqlite:///")
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(database_url, echo=echo, connect_args=connect_args)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def create_store(database_url: str, echo: bool = False) -> CandidateStore:
    engine = create_db_engine(database_url, echo=echo)
    init_db(engine)
    return CandidateStore(engine)


def get_store(request: Request) -> CandidateStore:
    """FastAPI dependency returning the store bound to the running app."""
    return request.app.state.store
