"""
Job Monitor

Periodic sweep that recovers upload jobs whose worker died:

- stuck: in a running phase with ``started_at`` older than the stuck
  threshold; reset and dispatched again, or FAILED when the source CSV
  is gone
- orphaned: QUEUED, never started, older than the orphan threshold;
  dispatched again

Running the monitor twice in a row is harmless: a reset always clears what
the earlier attempt left behind before the job restarts.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from src.leadintake.db.models import UploadJob
from src.leadintake.db.repository import UploadJobRepository
from src.leadintake.db.session import with_retry
from src.leadintake.exceptions import SourceFileMissingError
from src.leadintake.jobs.lifecycle import PROCESS, JobLifecycle
from src.leadintake.jobs.state import JobStatus, transition
from src.leadintake.storage.blob import BlobStorage
from src.leadintake.utils.logger import get_logger
from src.leadintake.utils.timeutils import seconds_since, utcnow

logger = get_logger(__name__)


def is_stuck(job: UploadJob, threshold_seconds: Optional[int] = None, now: Optional[datetime] = None) -> bool:
    """
    True when a job sits in a running phase longer than the threshold.

    Defaults to the admin threshold used for job listings.
    """
    if threshold_seconds is None:
        threshold_seconds = settings.admin_stuck_threshold_seconds
    if not JobStatus(job.status).is_running:
        return False
    elapsed = seconds_since(job.started_at, now)
    return elapsed is not None and elapsed > threshold_seconds


@dataclass
class MonitorResult:
    stuck_found: int = 0
    orphaned_found: int = 0
    restarted: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    redispatched: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'stuck_found': self.stuck_found,
            'orphaned_found': self.orphaned_found,
            'restarted': self.restarted,
            'failed': self.failed,
            'redispatched': self.redispatched,
            'errors': self.errors,
        }


class JobMonitor:
    """Finds and recovers stuck and orphaned upload jobs."""

    def __init__(
        self,
        session: Session,
        storage: BlobStorage,
        dispatcher,
        stuck_threshold_seconds: Optional[int] = None,
        orphaned_threshold_seconds: Optional[int] = None,
    ):
        self.session = session
        self.storage = storage
        self.lifecycle = JobLifecycle(session, storage, dispatcher)
        self.jobs = UploadJobRepository()
        self.stuck_threshold_seconds = stuck_threshold_seconds or settings.stuck_job_threshold_seconds
        self.orphaned_threshold_seconds = orphaned_threshold_seconds or settings.orphaned_job_threshold_seconds

    @with_retry(max_retries=3)
    def find_stuck_jobs(self, now: datetime) -> List[int]:
        cutoff = now - timedelta(seconds=self.stuck_threshold_seconds)
        return [job.id for job in self.jobs.find_stuck_jobs(self.session, cutoff)]

    @with_retry(max_retries=3)
    def find_orphaned_jobs(self, now: datetime) -> List[int]:
        cutoff = now - timedelta(seconds=self.orphaned_threshold_seconds)
        return [job.id for job in self.jobs.find_orphaned_queued_jobs(self.session, cutoff)]

    def run(self, now: Optional[datetime] = None) -> MonitorResult:
        """
        Run one sweep.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            MonitorResult listing what was done to which job
        """
        now = now or utcnow()
        result = MonitorResult()

        stuck_ids = self.find_stuck_jobs(now)
        orphaned_ids = self.find_orphaned_jobs(now)
        result.stuck_found = len(stuck_ids)
        result.orphaned_found = len(orphaned_ids)
        logger.info("job_monitor_scan_complete", stuck=len(stuck_ids), orphaned=len(orphaned_ids))

        for job_id in stuck_ids:
            try:
                self._recover_stuck(job_id, result)
            except Exception as e:
                self.session.rollback()
                result.errors.append(f"Job {job_id}: {e}")
                logger.error("stuck_job_recovery_failed", job_id=job_id, error=str(e), error_type=type(e).__name__)

        for job_id in orphaned_ids:
            try:
                job = self.lifecycle.get_job(job_id)
                self.lifecycle.dispatch(job, PROCESS)
                result.redispatched.append(job_id)
                logger.info("orphaned_job_redispatched", job_id=job_id)
            except Exception as e:
                self.session.rollback()
                result.errors.append(f"Job {job_id}: {e}")
                logger.error("orphaned_job_dispatch_failed", job_id=job_id, error=str(e), error_type=type(e).__name__)

        logger.info(
            "job_monitor_run_complete",
            restarted=len(result.restarted),
            failed=len(result.failed),
            redispatched=len(result.redispatched),
            errors=len(result.errors),
        )
        return result

    def _recover_stuck(self, job_id: int, result: MonitorResult):
        job = self.lifecycle.get_job(job_id)
        logger.warning(
            "stuck_job_detected",
            job_id=job_id,
            status=job.status,
            started_at=job.started_at.isoformat() if job.started_at else None,
        )

        try:
            self.lifecycle.reprocess(job_id)
        except SourceFileMissingError as e:
            job = self.lifecycle.get_job(job_id)
            transition(job, JobStatus.FAILED, error_message=str(e))
            self.session.commit()
            result.failed.append(job_id)
            logger.warning("stuck_job_failed_source_missing", job_id=job_id, storage_path=e.path)
            return

        result.restarted.append(job_id)
        logger.info("stuck_job_restarted", job_id=job_id)
