"""
Upload Service

Turns an uploaded CSV into a stored blob plus a QUEUED job, and fans a
multi-city upload out into one child job per locality.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from src.leadintake.db.models import UploadJob
from src.leadintake.db.repository import JurisdictionRepository, UploadJobRepository
from src.leadintake.exceptions import (
    CsvValidationError,
    IngestionError,
    InvalidTransitionError,
    JobProcessingError,
    StorageError,
)
from src.leadintake.jobs.lifecycle import PROCESS, SPLIT, JobLifecycle
from src.leadintake.jobs.state import JobStatus, transition
from src.leadintake.parsing.csv_reader import to_comma_delimited
from src.leadintake.parsing.location import detect_locations, normalize_state, parse_csv
from src.leadintake.parsing.rows import DetectionResult
from src.leadintake.parsing.splitter import split_by_locality
from src.leadintake.parsing.validation import validate_csv_text
from src.leadintake.storage.blob import BlobStorage
from src.leadintake.utils.logger import get_logger
from src.leadintake.utils.sanitizer import build_split_path, build_storage_path
from src.leadintake.utils.timeutils import utcnow

logger = get_logger(__name__)


def timestamp_ms() -> int:
    return int(utcnow().timestamp() * 1000)


@dataclass
class UploadResult:
    job: UploadJob
    detection: DetectionResult
    action: str


@dataclass
class SplitResult:
    parent_job_id: int
    cities_detected: int = 0
    jobs_created: int = 0
    jobs: List[UploadJob] = field(default_factory=list)


class UploadService:
    """
    Upload entrypoints in front of the ingestion pipeline.

    Args:
        session: Database session (committed by the service)
        storage: Blob storage backend
        dispatcher: Worker dispatcher handed to JobLifecycle
    """

    def __init__(self, session: Session, storage: BlobStorage, dispatcher=None):
        self.session = session
        self.storage = storage
        self.lifecycle = JobLifecycle(session, storage, dispatcher)
        self.jobs = UploadJobRepository()
        self.jurisdictions = JurisdictionRepository()

    def _jurisdiction_id(self, city: Optional[str], state: Optional[str]) -> Optional[int]:
        if not city or not state:
            return None
        jurisdiction = self.jurisdictions.get_by_name(self.session, city, state)
        return jurisdiction.id if jurisdiction else None

    def create_upload_job(
        self,
        user_id: str,
        filename: str,
        content: bytes,
        city: Optional[str] = None,
        state: Optional[str] = None,
        county: Optional[str] = None,
        jurisdiction_id: Optional[int] = None,
        auto_split: bool = True,
    ) -> UploadResult:
        """
        Validate, store and enqueue an uploaded CSV.

        Tab and pipe delimited files are rewritten as comma CSV before they
        are stored. When more than one locality is detected and
        ``auto_split`` is set, the job is dispatched to the splitter instead
        of the ingestion pipeline.

        Args:
            user_id: Uploading user
            filename: Original filename
            content: Raw file bytes
            city: Declared city, used as fallback for rows missing one
            state: Declared state
            county: County stamped on created properties
            jurisdiction_id: Jurisdiction reference
            auto_split: Split multi-city files into per-city jobs

        Returns:
            UploadResult with the created job and locality detection

        Raises:
            CsvValidationError: The file cannot be ingested as given
            StorageError: The file could not be stored
        """
        city = (city or '').strip() or None
        state = normalize_state(state) if state else None
        text = content.decode('utf-8-sig', errors='replace')

        messages = validate_csv_text(text, fallback_city=city, fallback_state=state)
        if messages:
            logger.warning("upload_validation_failed", user_id=user_id, filename=filename, errors=messages)
            raise CsvValidationError(messages)

        text = to_comma_delimited(text)
        payload = text.encode('utf-8')
        storage_path = build_storage_path(user_id, filename, timestamp_ms())
        self.storage.upload(storage_path, payload)

        detection = detect_locations(text, city, state)
        primary = detection.primary_location()
        if not city and primary and not detection.needs_split:
            city, state = primary.city, primary.state

        job = self.jobs.create_job(
            self.session,
            user_id=user_id,
            storage_path=storage_path,
            filename=filename[:255],
            file_size=len(payload),
            city=city,
            county=county,
            state=state,
            jurisdiction_id=jurisdiction_id or self._jurisdiction_id(city, state),
        )
        self.session.commit()

        action = SPLIT if detection.needs_split and auto_split else PROCESS
        logger.info(
            "upload_job_enqueued",
            job_id=job.id,
            action=action,
            localities=len(detection.locations),
            total_rows=detection.total_rows,
        )
        job = self.lifecycle.dispatch(job, action)
        return UploadResult(job=job, detection=detection, action=action)

    def split_job(self, job_id: int) -> SplitResult:
        """
        Fan a multi-city job out into one child job per locality.

        Each child gets its own CSV (original header, only its rows) and is
        dispatched independently. The parent ends COMPLETE with zero counts.
        A locality whose file cannot be stored is logged and skipped.

        Raises:
            JobNotFoundError: No such job
            InvalidTransitionError: Job is not QUEUED
            JobProcessingError: Split failed; the parent is now FAILED
        """
        parent = self.lifecycle.get_job(job_id)
        if JobStatus(parent.status) is not JobStatus.QUEUED:
            raise InvalidTransitionError(parent.status, JobStatus.PARSING.value)

        transition(parent, JobStatus.PARSING)
        self.session.commit()

        try:
            children, cities_detected = self._create_children(parent)
            parent.total_rows = 0
            transition(parent, JobStatus.COMPLETE)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            parent = self.lifecycle.get_job(job_id)
            if not parent.is_terminal:
                transition(parent, JobStatus.FAILED, error_message=str(e))
                self.session.commit()
            logger.error("upload_split_failed", job_id=job_id, error=str(e))
            raise JobProcessingError(job_id, str(e)) from e

        result = SplitResult(parent_job_id=job_id, cities_detected=cities_detected)
        for child in children:
            result.jobs.append(self.lifecycle.dispatch(child, PROCESS))
        result.jobs_created = len(result.jobs)

        logger.info(
            "upload_split_complete",
            job_id=job_id,
            cities_detected=result.cities_detected,
            jobs_created=result.jobs_created,
        )
        return result

    def _create_children(self, parent: UploadJob) -> Tuple[List[UploadJob], int]:
        text = self.storage.download_text(parent.storage_path)
        groups = split_by_locality(parse_csv(text, parent.city, parent.state))
        if not groups:
            raise IngestionError("CSV file has no rows with a valid address and city/state")

        children = []
        stamp = timestamp_ms()
        for group in groups.values():
            path = build_split_path(parent.user_id, group.city, group.state, stamp)
            payload = group.csv_text.encode('utf-8')
            try:
                self.storage.upload(path, payload)
            except StorageError as e:
                logger.warning(
                    "split_upload_failed",
                    job_id=parent.id,
                    city=group.city,
                    state=group.state,
                    error=str(e),
                )
                continue

            children.append(self.jobs.create_job(
                self.session,
                user_id=parent.user_id,
                storage_path=path,
                filename=path.rsplit('/', 1)[-1],
                file_size=len(payload),
                city=group.city,
                county=parent.county,
                state=group.state,
                jurisdiction_id=self._jurisdiction_id(group.city, group.state),
                parent_job_id=parent.id,
            ))
            logger.info(
                "split_child_created",
                job_id=parent.id,
                city=group.city,
                state=group.state,
                rows=group.row_count,
            )
        return children, len(groups)
