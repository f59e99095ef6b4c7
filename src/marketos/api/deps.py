"""Shared FastAPI dependencies."""
from typing import Generator

from fastapi import Request
from sqlmodel import Session

from marketos.sync.scheduler import SyncScheduler


def get_scheduler(request: Request) -> SyncScheduler:
    """The process-wide scheduler, set on app.state by the lifespan."""
    return request.app.state.scheduler


def get_session(request: Request) -> Generator[Session, None, None]:
    """DB session on the engine the app (and its scheduler) was built with."""
    with Session(request.app.state.engine) as session:
        yield session
