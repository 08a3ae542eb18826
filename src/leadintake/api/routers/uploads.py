"""
Uploads Router

Endpoints for CSV upload, job progress, and job lifecycle actions.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.settings import settings
from src.leadintake.api.dependencies import get_db, get_dispatcher, get_storage, get_worker_dispatcher
from src.leadintake.api.schemas import (
    DeleteResponse,
    DetectionResponse,
    SplitResponse,
    UploadCreatedResponse,
    UploadJobResponse,
    ValidateRequest,
    ValidateResponse,
)
from src.leadintake.db.models import UploadJob
from src.leadintake.db.repository import UploadJobRepository
from src.leadintake.exceptions import (
    CsvValidationError,
    InvalidTransitionError,
    JobNotFoundError,
    JobProcessingError,
    SourceFileMissingError,
    StorageError,
)
from src.leadintake.ingestion.pipeline import UploadProcessor
from src.leadintake.ingestion.uploads import UploadService
from src.leadintake.jobs.dispatch import JobDispatcher
from src.leadintake.jobs.lifecycle import PROCESS, SPLIT, JobLifecycle
from src.leadintake.jobs.monitor import is_stuck
from src.leadintake.jobs.state import JobStatus
from src.leadintake.parsing.location import detect_locations
from src.leadintake.parsing.rows import DetectionResult
from src.leadintake.parsing.validation import validate_csv_text
from src.leadintake.storage.blob import BlobStorage
from src.leadintake.utils.timeutils import utcnow

router = APIRouter(prefix="/api/v1/uploads", tags=["uploads"])


def job_response(job: UploadJob, now=None) -> UploadJobResponse:
    response = UploadJobResponse.model_validate(job)
    response.is_stuck = is_stuck(job, now=now)
    return response


def detection_response(detection: DetectionResult) -> DetectionResponse:
    return DetectionResponse.model_validate(detection)


@router.post("/validate", response_model=ValidateResponse)
def validate_upload(request: ValidateRequest):
    """
    Check pasted CSV text without creating a job.

    Returns:
        Validation messages and, when valid, the detected localities
    """
    errors = validate_csv_text(request.csv_text, request.city, request.state)
    if errors:
        return ValidateResponse(valid=False, errors=errors)

    detection = detect_locations(request.csv_text, request.city, request.state)
    return ValidateResponse(valid=True, detection=detection_response(detection))


@router.post("", response_model=UploadCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_upload(
    file: UploadFile = File(...),
    user_id: str = Form(...),
    city: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    county: Optional[str] = Form(None),
    jurisdiction_id: Optional[int] = Form(None),
    auto_split: bool = Form(True),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """
    Upload a violation CSV and start ingestion.

    Raises:
        HTTPException: 422 with every validation message, 502 if the file
            could not be stored
    """
    content = file.file.read()
    service = UploadService(db, storage, dispatcher)
    try:
        result = service.create_upload_job(
            user_id=user_id,
            filename=file.filename or "upload.csv",
            content=content,
            city=city,
            state=state,
            county=county,
            jurisdiction_id=jurisdiction_id,
            auto_split=auto_split,
        )
    except CsvValidationError as e:
        raise HTTPException(status_code=422, detail=e.messages)
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return UploadCreatedResponse(
        job=job_response(result.job),
        action=result.action,
        detection=detection_response(result.detection),
    )


@router.get("", response_model=List[UploadJobResponse])
def list_uploads(
    user_id: Optional[str] = Query(None, description="Filter by owning user"),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Recent upload jobs, newest first, with the admin stuck flag."""
    now = utcnow()
    jobs = UploadJobRepository().get_recent_jobs(db, user_id=user_id, limit=limit)
    return [job_response(job, now) for job in jobs]


@router.get("/{job_id}", response_model=UploadJobResponse)
def get_upload(job_id: int, db: Session = Depends(get_db)):
    """
    Get one upload job.

    This is the record the client poller reads until the job is terminal.
    """
    job = UploadJobRepository().get_by_id(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Upload job not found: {job_id}")
    return job_response(job)


def _hand_off(db: Session, job_id: int, action: str, worker: JobDispatcher) -> JSONResponse:
    job = UploadJobRepository().get_by_id(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Upload job not found: {job_id}")
    if JobStatus(job.status) is not JobStatus.QUEUED:
        raise HTTPException(status_code=409, detail=str(InvalidTransitionError(job.status, JobStatus.PARSING.value)))

    worker.dispatch(job_id, action)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=job_response(job).model_dump(mode="json"),
    )


@router.post("/{job_id}/process", response_model=UploadJobResponse)
def process_upload(
    job_id: int,
    defer: bool = Query(False, description="Queue the job and answer 202 instead of waiting"),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    worker: JobDispatcher = Depends(get_worker_dispatcher),
):
    """
    Ingestion entrypoint.

    Queues the job to run after the response when deferred or in background
    mode (202); otherwise runs it to completion before answering.

    Raises:
        HTTPException: 404 unknown job, 409 job not QUEUED, 500 ingestion failed
    """
    if defer or settings.job_dispatch_mode == "background":
        return _hand_off(db, job_id, PROCESS, worker)

    job = UploadJobRepository().get_by_id(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Upload job not found: {job_id}")

    try:
        job = UploadProcessor(db, storage).process(job_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except JobProcessingError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return job_response(job)


@router.post("/{job_id}/split", response_model=SplitResponse)
def split_upload(
    job_id: int,
    defer: bool = Query(False, description="Queue the split and answer 202 instead of waiting"),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    worker: JobDispatcher = Depends(get_worker_dispatcher),
):
    """
    Split entrypoint: one child job per detected city.

    Raises:
        HTTPException: 404 unknown job, 409 job not QUEUED, 500 split failed
    """
    if defer:
        return _hand_off(db, job_id, SPLIT, worker)

    try:
        result = UploadService(db, storage, dispatcher).split_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except JobProcessingError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return SplitResponse(
        parent_job_id=result.parent_job_id,
        cities_detected=result.cities_detected,
        jobs_created=result.jobs_created,
        jobs=[job_response(job) for job in result.jobs],
    )


@router.post("/{job_id}/reprocess", response_model=UploadJobResponse)
def reprocess_upload(
    job_id: int,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """
    Re-run a job from its stored CSV.

    Raises:
        HTTPException: 404 unknown job, 409 source CSV no longer stored
    """
    try:
        job = JobLifecycle(db, storage, dispatcher).reprocess(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SourceFileMissingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return job_response(job)


@router.delete("/{job_id}", response_model=DeleteResponse)
def delete_upload(
    job_id: int,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
):
    """Delete a job, its staging rows, the violations it linked, and its blob."""
    try:
        result = JobLifecycle(db, storage).delete(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DeleteResponse.model_validate(result)
