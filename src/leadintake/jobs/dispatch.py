"""
Job Dispatchers

Hand a QUEUED job to whatever runs it. The inline dispatcher runs the job
in-process with its own session; the HTTP dispatcher posts to the API's
process/split entrypoints so the work happens in another worker.
"""
from abc import ABC, abstractmethod
from typing import Optional

import requests
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from src.leadintake.db.session import get_db_session, get_session_factory
from src.leadintake.exceptions import (
    DispatchError,
    InvalidTransitionError,
    JobNotFoundError,
    JobProcessingError,
)
from src.leadintake.ingestion.pipeline import UploadProcessor
from src.leadintake.ingestion.uploads import UploadService
from src.leadintake.jobs.lifecycle import PROCESS, SPLIT
from src.leadintake.storage.blob import BlobStorage, build_storage
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

ACTIONS = (PROCESS, SPLIT)


class JobDispatcher(ABC):
    """Starts the ingestion or split of a job."""

    @abstractmethod
    def dispatch(self, job_id: int, action: str = PROCESS):
        """
        Start ``action`` for ``job_id``.

        Raises:
            DispatchError: The job could not be handed off
        """


class InlineDispatcher(JobDispatcher):
    """
    Runs jobs synchronously in the calling process.

    Job failures are already recorded on the job (status FAILED), so they
    are logged here and not re-raised.
    """

    def __init__(self, session_factory: sessionmaker, storage: BlobStorage):
        self.session_factory = session_factory
        self.storage = storage

    def dispatch(self, job_id: int, action: str = PROCESS):
        if action not in ACTIONS:
            raise DispatchError(f"Unknown job action: {action}")

        logger.info("job_dispatched_inline", job_id=job_id, action=action)
        with get_db_session(self.session_factory) as session:
            try:
                if action == SPLIT:
                    UploadService(session, self.storage, dispatcher=self).split_job(job_id)
                else:
                    UploadProcessor(session, self.storage).process(job_id)
            except JobProcessingError as e:
                logger.warning("inline_job_failed", job_id=job_id, action=action, error=str(e))
            except (JobNotFoundError, InvalidTransitionError) as e:
                logger.warning("inline_job_skipped", job_id=job_id, action=action, reason=str(e))


class HttpDispatcher(JobDispatcher):
    """
    Posts to ``/api/v1/uploads/{id}/{action}?defer=true`` on the API service.

    With ``defer`` the API queues the work and answers 202 straight away, so
    the request timeout bounds the hand-off and not the ingestion itself.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.session = http_session or requests.Session()
        self.timeout = timeout or settings.api_timeout_seconds

    def dispatch(self, job_id: int, action: str = PROCESS):
        if action not in ACTIONS:
            raise DispatchError(f"Unknown job action: {action}")

        url = f"{self.base_url}/api/v1/uploads/{job_id}/{action}"
        try:
            response = self.session.post(url, params={"defer": "true"}, timeout=self.timeout)
            response.raise_for_status()
        except requests.ReadTimeout as e:
            # The request was delivered; a job that never starts is picked up by the monitor
            logger.warning("job_dispatch_response_timeout", job_id=job_id, action=action, url=url, error=str(e))
            return
        except requests.RequestException as e:
            logger.error("job_dispatch_request_failed", job_id=job_id, action=action, url=url, error=str(e))
            raise DispatchError(str(e)) from e

        logger.info("job_dispatched_http", job_id=job_id, action=action, status_code=response.status_code)


def build_dispatcher(
    mode: Optional[str] = None,
    session_factory: Optional[sessionmaker] = None,
    storage: Optional[BlobStorage] = None,
) -> JobDispatcher:
    """
    Construct the configured dispatcher.

    Args:
        mode: ``inline``, ``background`` or ``http``; defaults to
            settings.job_dispatch_mode. Outside the API there is no
            response to run after, so ``background`` runs inline.
        session_factory: Session factory for inline runs
        storage: Blob storage for inline runs
    """
    mode = mode or settings.job_dispatch_mode
    if mode == "http":
        return HttpDispatcher()
    if mode in ("inline", "background"):
        return InlineDispatcher(session_factory or get_session_factory(), storage or build_storage())
    raise DispatchError(f"Unknown dispatch mode: {mode}")
