"""
Upload Ingestion Pipeline

Drives one upload job from its stored CSV to COMPLETE:

    PARSING              download and parse the blob
    PROCESSING           stage rows in batches, committing progress
    DEDUPING             resolve address keys, create missing properties
    CREATING_VIOLATIONS  attach violations to resolved properties
    FINALIZING           recompute rollups of every touched property

Any unexpected error leaves the job FAILED with its message; counters
persisted up to the failing batch stay in place.
"""
from __future__ import annotations

import argparse
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from src.leadintake.db.models import UploadJob, UploadStaging
from src.leadintake.db.repository import (
    UploadJobRepository,
    UploadStagingRepository,
    ViolationRepository,
    chunked,
)
from src.leadintake.db.utils import parse_date_string, truncate
from src.leadintake.exceptions import (
    IngestionError,
    InvalidTransitionError,
    JobNotFoundError,
    JobProcessingError,
)
from src.leadintake.jobs.state import JobStatus, transition
from src.leadintake.parsing.location import parse_csv
from src.leadintake.parsing.rows import ParsedRow
from src.leadintake.pipelines.aggregation import AggregationService
from src.leadintake.pipelines.deduplication import PropertyDeduplicator, ResolutionResult
from src.leadintake.storage.blob import BlobStorage
from src.leadintake.utils.logger import bind_job_context, clear_job_context, get_logger

logger = get_logger(__name__)

EMPTY_FILE_MESSAGE = "CSV file is empty or has no data rows"
NO_VALID_ROWS_MESSAGE = "CSV file has no rows with a valid address and city/state"

ProgressListener = Callable[[UploadJob], None]


def staging_values(row: ParsedRow) -> Dict[str, object]:
    """Column values for one staging row, cut to column widths."""
    return {
        'row_num': row.row_num,
        'case_id': truncate(row.case_id, 100) or None,
        'address': truncate(row.address, 255),
        'city': truncate(row.city, 100),
        'state': truncate(row.state, 2),
        'zip': truncate(row.zip, 10),
        'violation': truncate(row.violation, 255) or None,
        'description': row.description or None,
        'status': truncate(row.status, 50) or 'Open',
        'opened_date': truncate(row.opened_date, 50) or None,
        'last_updated': truncate(row.last_updated, 50) or None,
    }


class UploadProcessor:
    """
    Runs the ingestion state machine for one job at a time.

    The session, storage backend and collaborators are passed in; nothing
    here reaches for process-wide clients.
    """

    def __init__(
        self,
        session: Session,
        storage: BlobStorage,
        deduplicator: Optional[PropertyDeduplicator] = None,
        aggregation: Optional[AggregationService] = None,
        staging_batch_size: Optional[int] = None,
        violation_batch_size: Optional[int] = None,
        max_warnings: Optional[int] = None,
        progress_listener: Optional[ProgressListener] = None,
    ):
        self.session = session
        self.storage = storage
        self.deduplicator = deduplicator or PropertyDeduplicator()
        self.aggregation = aggregation or AggregationService()
        self.staging_batch_size = staging_batch_size or settings.staging_batch_size
        self.violation_batch_size = violation_batch_size or settings.violation_batch_size
        self.max_warnings = max_warnings or settings.max_job_warnings
        self.progress_listener = progress_listener

        self.jobs = UploadJobRepository()
        self.staging = UploadStagingRepository()
        self.violations = ViolationRepository()

    def _commit(self, job: UploadJob):
        self.session.commit()
        if self.progress_listener:
            self.progress_listener(job)

    def _advance(self, job: UploadJob, status: JobStatus):
        transition(job, status)
        self._commit(job)

    def _warn(self, job: UploadJob, messages: List[str]):
        if not messages:
            return
        current = len(job.warnings or [])
        room = self.max_warnings - current
        if room <= 0:
            return
        if len(messages) > room:
            overflow = len(messages) - (room - 1)
            messages = messages[:room - 1] + [f"{overflow} more rows skipped"]
        self.jobs.add_warnings(self.session, job, messages, self.max_warnings)

    def process(self, job_id: int) -> UploadJob:
        """
        Ingest one QUEUED job.

        Args:
            job_id: Upload job id

        Returns:
            The COMPLETE job

        Raises:
            JobNotFoundError: No such job
            InvalidTransitionError: Job is not QUEUED (already running or done)
            JobProcessingError: Ingestion failed; the job is now FAILED
        """
        job = self.jobs.get_by_id(self.session, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if JobStatus(job.status) is not JobStatus.QUEUED:
            raise InvalidTransitionError(job.status, JobStatus.PARSING.value)

        bind_job_context(job_id)
        try:
            self._run(job)
            return job
        except Exception as e:
            self.session.rollback()
            self._fail(job_id, str(e) or type(e).__name__)
            raise JobProcessingError(job_id, str(e)) from e
        finally:
            clear_job_context()

    def _fail(self, job_id: int, message: str):
        job = self.jobs.get_by_id(self.session, job_id)
        if job is None or JobStatus(job.status).is_terminal:
            return
        transition(job, JobStatus.FAILED, error_message=message)
        self._commit(job)
        logger.error(
            "upload_job_failed",
            job_id=job_id,
            error=message,
            processed_rows=job.processed_rows,
            total_rows=job.total_rows,
        )

    def _run(self, job: UploadJob):
        logger.info("upload_job_started", job_id=job.id, storage_path=job.storage_path)

        self._advance(job, JobStatus.PARSING)
        text = self.storage.download_text(job.storage_path)
        result = parse_csv(text, fallback_city=job.city, fallback_state=job.state)
        if result.total_rows == 0:
            raise IngestionError(EMPTY_FILE_MESSAGE)

        job.total_rows = result.total_rows
        self._warn(job, result.warnings())
        if not result.rows:
            raise IngestionError(NO_VALID_ROWS_MESSAGE)

        self._advance(job, JobStatus.PROCESSING)
        self._stage_rows(job, result.rows)

        self._advance(job, JobStatus.DEDUPING)
        staged = self.staging.get_rows(self.session, job.id)
        resolution = self._resolve_properties(job, staged)

        self._advance(job, JobStatus.CREATING_VIOLATIONS)
        touched = self._create_violations(job, staged, resolution)

        self._advance(job, JobStatus.FINALIZING)
        self.aggregation.refresh(self.session, touched)

        self._advance(job, JobStatus.COMPLETE)
        logger.info(
            "upload_job_complete",
            job_id=job.id,
            total_rows=job.total_rows,
            processed_rows=job.processed_rows,
            properties_created=job.properties_created,
            violations_created=job.violations_created,
            warnings=len(job.warnings or []),
        )

    def _stage_rows(self, job: UploadJob, rows: List[ParsedRow]):
        for batch in chunked(rows, self.staging_batch_size):
            self.staging.bulk_insert(self.session, job.id, [staging_values(row) for row in batch])
            job.processed_rows = (job.processed_rows or 0) + len(batch)
            self._commit(job)
            logger.debug("staging_batch_committed", processed_rows=job.processed_rows, total_rows=job.total_rows)

    def _resolve_properties(self, job: UploadJob, staged: List[UploadStaging]) -> ResolutionResult:
        def record_progress(created: int):
            job.properties_created = created
            self._commit(job)

        resolution = self.deduplicator.resolve(
            self.session,
            staged,
            county=job.county,
            jurisdiction_id=job.jurisdiction_id,
            on_batch=record_progress,
        )
        job.properties_created = resolution.created
        self._commit(job)
        return resolution

    def _create_violations(
        self,
        job: UploadJob,
        staged: List[UploadStaging],
        resolution: ResolutionResult,
    ) -> set:
        touched = set()
        unresolved: List[str] = []

        for batch in chunked(staged, self.violation_batch_size):
            values = []
            links = {}
            for row in batch:
                property_id = resolution.property_id_for(row)
                if property_id is None:
                    logger.warning("staging_row_unresolved", row_num=row.row_num, address=row.address)
                    unresolved.append(f"Row {row.row_num} skipped: no property for address {row.address!r}")
                    continue

                values.append({
                    'property_id': property_id,
                    'upload_job_id': job.id,
                    'case_id': row.case_id,
                    'violation_type': row.violation,
                    'description': row.description,
                    'status': row.status,
                    'opened_date': parse_date_string(row.opened_date),
                    'last_updated': parse_date_string(row.last_updated),
                })
                links[row.id] = property_id
                touched.add(property_id)

            created = self.violations.bulk_create(self.session, values)
            self.staging.link_properties(self.session, links)
            job.violations_created = (job.violations_created or 0) + created
            self._commit(job)

        self._warn(job, unresolved)
        return touched


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Process a queued upload job")
    parser.add_argument("job_id", type=int, help="Upload job id")
    return parser.parse_args()


if __name__ == "__main__":
    from src.leadintake.db.session import get_db_session
    from src.leadintake.storage.blob import build_storage
    from src.leadintake.utils.logger import setup_logging

    setup_logging()
    args = parse_args()
    with get_db_session() as session:
        UploadProcessor(session, build_storage()).process(args.job_id)
