"""
FastAPI Dependencies

Provides dependency injection for database sessions, blob storage and the
job dispatcher.
"""
from functools import lru_cache
from typing import Generator

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from src.leadintake.db.session import get_session_factory
from src.leadintake.jobs.dispatch import InlineDispatcher, JobDispatcher, build_dispatcher
from src.leadintake.jobs.lifecycle import PROCESS
from src.leadintake.storage.blob import BlobStorage, build_storage


class BackgroundDispatcher(JobDispatcher):
    """Runs the wrapped dispatcher after the response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks, inner: JobDispatcher):
        self.background_tasks = background_tasks
        self.inner = inner

    def dispatch(self, job_id: int, action: str = PROCESS):
        self.background_tasks.add_task(self.inner.dispatch, job_id, action)


def get_session_factory_dependency() -> sessionmaker:
    return get_session_factory()


def get_db(
    session_factory: sessionmaker = Depends(get_session_factory_dependency),
) -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields:
        SQLAlchemy database session
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def get_storage() -> BlobStorage:
    """
    Blob storage dependency.

    Returns:
        The configured storage backend (built once per process)
    """
    return build_storage()


def get_worker_dispatcher(
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory_dependency),
    storage: BlobStorage = Depends(get_storage),
) -> JobDispatcher:
    """Runs handed-off jobs in this process once the response is out."""
    return BackgroundDispatcher(background_tasks, InlineDispatcher(session_factory, storage))


def get_dispatcher(
    session_factory: sessionmaker = Depends(get_session_factory_dependency),
    storage: BlobStorage = Depends(get_storage),
    worker: JobDispatcher = Depends(get_worker_dispatcher),
) -> JobDispatcher:
    """
    Job dispatcher dependency.

    In ``background`` mode jobs run in-process once the response is out.
    """
    if settings.job_dispatch_mode == "background":
        return worker
    return build_dispatcher(session_factory=session_factory, storage=storage)
