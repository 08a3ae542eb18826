"""
Ingestion Exceptions

Error types raised by the upload pipeline, storage backends and job lifecycle.
"""
from typing import List


class IngestionError(Exception):
    """Base error for the upload ingestion service."""


class StorageError(IngestionError):
    """Blob storage transport failure."""


class BlobNotFoundError(StorageError):
    """Requested blob does not exist in the bucket."""

    def __init__(self, path: str):
        super().__init__(f"Blob not found: {path}")
        self.path = path


class SourceFileMissingError(IngestionError):
    """The stored CSV behind a job is gone, so the job cannot be reprocessed."""

    def __init__(self, job_id: int, path: str):
        super().__init__("CSV file no longer exists in storage")
        self.job_id = job_id
        self.path = path


class JobNotFoundError(IngestionError):
    """No upload job exists with the given id."""

    def __init__(self, job_id: int):
        super().__init__(f"Upload job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(IngestionError):
    """Attempted status change violates the job state machine."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid job status transition: {current} -> {target}")
        self.current = current
        self.target = target


class CsvValidationError(IngestionError):
    """
    Upload rejected before a job was created.

    Carries every human-readable validation message so the caller can
    show them all at once.
    """

    def __init__(self, messages: List[str]):
        super().__init__("; ".join(messages))
        self.messages = list(messages)


class JobProcessingError(IngestionError):
    """Ingestion of a job failed; the job has been marked FAILED."""

    def __init__(self, job_id: int, message: str):
        super().__init__(message)
        self.job_id = job_id


class DispatchError(IngestionError):
    """A job could not be handed to a worker."""
