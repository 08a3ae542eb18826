"""
Upload Job Lifecycle

Operations on existing jobs outside the ingestion run itself: resetting,
reprocessing from the stored CSV, handing a job to a worker, and deleting
a job with everything it produced.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from src.leadintake.db.models import UploadJob
from src.leadintake.db.repository import (
    UploadJobRepository,
    UploadStagingRepository,
    ViolationRepository,
)
from src.leadintake.exceptions import (
    DispatchError,
    JobNotFoundError,
    SourceFileMissingError,
    StorageError,
)
from src.leadintake.jobs.state import JobStatus, reset_job, transition
from src.leadintake.pipelines.aggregation import AggregationService
from src.leadintake.storage.blob import BlobStorage
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

PROCESS = "process"
SPLIT = "split"


@dataclass
class DeleteResult:
    job_id: int
    violations_deleted: int = 0
    staging_rows_deleted: int = 0
    properties_refreshed: int = 0
    blob_removed: bool = False
    errors: List[str] = field(default_factory=list)


class JobLifecycle:
    """
    Reset, reprocess, dispatch and delete upload jobs.

    Every public method commits its own changes.
    """

    def __init__(
        self,
        session: Session,
        storage: BlobStorage,
        dispatcher=None,
        aggregation: Optional[AggregationService] = None,
    ):
        self.session = session
        self.storage = storage
        self.dispatcher = dispatcher
        self.aggregation = aggregation or AggregationService()

        self.jobs = UploadJobRepository()
        self.staging = UploadStagingRepository()
        self.violations = ViolationRepository()

    def get_job(self, job_id: int) -> UploadJob:
        job = self.jobs.get_by_id(self.session, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def reset(self, job: UploadJob) -> UploadJob:
        """
        Return a job to QUEUED with nothing left from earlier attempts.

        Violations the job created and its staging rows are deleted, and the
        rollups of the properties they touched are recomputed, so running the
        job again yields the same end state as running it once.
        """
        touched = set(self.violations.property_ids_for_job(self.session, job.id))
        touched.update(self.staging.linked_property_ids(self.session, job.id))

        violations_deleted = self.violations.delete_for_job(self.session, job.id)
        staging_deleted = self.staging.delete_for_job(self.session, job.id)
        reset_job(job)
        self.aggregation.refresh(self.session, touched)
        self.session.commit()

        logger.info(
            "upload_job_reset_complete",
            job_id=job.id,
            violations_deleted=violations_deleted,
            staging_rows_deleted=staging_deleted,
            properties_refreshed=len(touched),
        )
        return job

    def reprocess(self, job_id: int) -> UploadJob:
        """
        Re-run a job from its stored CSV.

        The blob is checked before anything is touched; a job whose file is
        gone keeps its status and counters.

        Raises:
            JobNotFoundError: No such job
            SourceFileMissingError: The stored CSV no longer exists
        """
        job = self.get_job(job_id)
        if not self.storage.exists(job.storage_path):
            logger.warning("reprocess_source_missing", job_id=job_id, storage_path=job.storage_path)
            raise SourceFileMissingError(job_id, job.storage_path)

        self.reset(job)
        return self.dispatch(job, PROCESS)

    def dispatch(self, job: UploadJob, action: str = PROCESS) -> UploadJob:
        """
        Hand a QUEUED job to the configured worker.

        A job that cannot be started is marked FAILED rather than left
        QUEUED forever.
        """
        if self.dispatcher is None:
            raise DispatchError("No job dispatcher configured")

        job_id = job.id
        try:
            self.dispatcher.dispatch(job_id, action)
        except DispatchError as e:
            self.session.rollback()
            job = self.get_job(job_id)
            # A worker that already picked the job up owns its status
            if JobStatus(job.status) is JobStatus.QUEUED:
                transition(job, JobStatus.FAILED, error_message=f"Failed to start processing: {e}")
                self.session.commit()
            logger.error("upload_job_dispatch_failed", job_id=job_id, action=action, error=str(e))
            return job

        # Inline workers commit through their own session
        self.session.expire_all()
        return self.get_job(job_id)

    def delete(self, job_id: int) -> DeleteResult:
        """
        Delete a job and everything derived from it.

        Order: violations of properties linked from the job's staging rows,
        then the staging rows, then the blob, then the job record. A failing
        step is logged and recorded; the job record is always removed.

        Raises:
            JobNotFoundError: No such job
        """
        job = self.get_job(job_id)
        storage_path = job.storage_path
        result = DeleteResult(job_id=job_id)

        property_ids = self.staging.linked_property_ids(self.session, job_id)
        try:
            result.violations_deleted = self.violations.delete_for_properties(self.session, property_ids)
            result.properties_refreshed = self.aggregation.refresh(self.session, property_ids)
            self.session.commit()
        except Exception as e:
            self._record_failure(result, "violations", e)

        try:
            result.staging_rows_deleted = self.staging.delete_for_job(self.session, job_id)
            self.session.commit()
        except Exception as e:
            self._record_failure(result, "staging_rows", e)

        try:
            result.blob_removed = self.storage.remove(storage_path)
        except StorageError as e:
            self._record_failure(result, "blob", e)

        self.session.expire_all()
        self.jobs.delete(self.session, job_id)
        self.session.commit()

        logger.info(
            "upload_job_deleted",
            job_id=job_id,
            violations_deleted=result.violations_deleted,
            staging_rows_deleted=result.staging_rows_deleted,
            blob_removed=result.blob_removed,
            errors=len(result.errors),
        )
        return result

    def _record_failure(self, result: DeleteResult, step: str, error: Exception):
        self.session.rollback()
        result.errors.append(f"{step}: {error}")
        logger.warning(
            "upload_job_delete_step_failed",
            job_id=result.job_id,
            step=step,
            error=str(error),
            error_type=type(error).__name__,
        )
