"""
Tests for Upload Job Lifecycle

Tests reset, reprocess, dispatch and delete of existing jobs.
"""
from unittest.mock import MagicMock

import pytest
import requests

from src.leadintake.db import (
    Base,
    build_engine,
    build_session_factory,
    Property,
    UploadJob,
    UploadStaging,
    Violation,
    UploadJobRepository,
)
from src.leadintake.exceptions import (
    DispatchError,
    JobNotFoundError,
    SourceFileMissingError,
    StorageError,
)
from src.leadintake.jobs.dispatch import HttpDispatcher, InlineDispatcher, JobDispatcher
from src.leadintake.jobs.lifecycle import PROCESS, JobLifecycle
from src.leadintake.jobs.state import JobStatus, transition
from src.leadintake.ingestion.pipeline import UploadProcessor
from src.leadintake.storage.blob import LocalBlobStorage

PHOENIX_CSV = (
    'address,city,state,zip,violation,status,opened_date\n'
    '"123 Main St",Phoenix,AZ,85001,Exterior,Open,2024-01-15\n'
    '"123 Main St",Phoenix,AZ,85001,Structural,Closed,2024-02-01\n'
)


class RecordingDispatcher(JobDispatcher):
    def __init__(self):
        self.calls = []

    def dispatch(self, job_id, action=PROCESS):
        self.calls.append((job_id, action))


class BrokenDispatcher(JobDispatcher):
    def dispatch(self, job_id, action=PROCESS):
        raise DispatchError('connection refused')


class UnremovableStorage(LocalBlobStorage):
    def remove(self, path):
        raise StorageError('bucket is read-only')


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    yield build_session_factory(engine)

    Base.metadata.drop_all(engine)


@pytest.fixture
def test_db(session_factory):
    """Session on the shared in-memory database."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(str(tmp_path))


def completed_job(session, storage, path='user-1/1-data.csv', csv_text=PHOENIX_CSV) -> UploadJob:
    storage.upload(path, csv_text.encode('utf-8'))
    job = UploadJobRepository().create_job(
        session, user_id='user-1', storage_path=path, filename='data.csv', file_size=len(csv_text)
    )
    session.commit()
    UploadProcessor(session, storage).process(job.id)
    return job


class TestReprocess:
    """Tests for JobLifecycle.reprocess and reset."""

    def test_missing_blob_leaves_job_untouched(self, test_db, storage):
        job = completed_job(test_db, storage)
        storage.remove(job.storage_path)
        lifecycle = JobLifecycle(test_db, storage, RecordingDispatcher())

        with pytest.raises(SourceFileMissingError) as exc_info:
            lifecycle.reprocess(job.id)

        assert str(exc_info.value) == 'CSV file no longer exists in storage'
        test_db.refresh(job)
        assert job.status == JobStatus.COMPLETE.value
        assert job.total_rows == 2
        assert job.processed_rows == 2
        assert job.violations_created == 2
        assert test_db.query(Violation).count() == 2
        assert test_db.query(UploadStaging).count() == 2
        assert lifecycle.dispatcher.calls == []

    def test_reset_clears_job_output(self, test_db, storage):
        job = completed_job(test_db, storage)

        JobLifecycle(test_db, storage).reset(job)

        assert job.status == JobStatus.QUEUED.value
        assert job.total_rows is None
        assert job.processed_rows == 0
        assert job.violations_created == 0
        assert job.started_at is None
        assert test_db.query(Violation).count() == 0
        assert test_db.query(UploadStaging).count() == 0
        prop = test_db.query(Property).one()
        assert prop.total_violations == 0
        assert prop.violation_types == []

    def test_reprocess_is_idempotent(self, test_db, session_factory, storage):
        job = completed_job(test_db, storage)
        lifecycle = JobLifecycle(test_db, storage, InlineDispatcher(session_factory, storage))

        job = lifecycle.reprocess(job.id)

        assert job.status == JobStatus.COMPLETE.value
        assert job.violations_created == 2
        assert job.properties_created == 0
        assert test_db.query(Property).count() == 1
        assert test_db.query(Violation).count() == 2
        prop = test_db.query(Property).one()
        assert prop.total_violations == 2
        assert prop.open_violations == 1

    def test_reprocess_failed_job(self, test_db, storage):
        storage.upload('user-1/1-data.csv', b'address,city,state\n')
        job = UploadJobRepository().create_job(
            test_db, user_id='user-1', storage_path='user-1/1-data.csv', filename='data.csv'
        )
        test_db.commit()
        with pytest.raises(Exception):
            UploadProcessor(test_db, storage).process(job.id)
        dispatcher = RecordingDispatcher()

        job = JobLifecycle(test_db, storage, dispatcher).reprocess(job.id)

        assert job.status == JobStatus.QUEUED.value
        assert job.error_message is None
        assert dispatcher.calls == [(job.id, PROCESS)]

    def test_unknown_job(self, test_db, storage):
        with pytest.raises(JobNotFoundError):
            JobLifecycle(test_db, storage, RecordingDispatcher()).reprocess(404)


class TestDispatch:
    """Tests for JobLifecycle.dispatch."""

    def test_requires_dispatcher(self, test_db, storage):
        job = completed_job(test_db, storage)

        with pytest.raises(DispatchError):
            JobLifecycle(test_db, storage).dispatch(job)

    def test_failure_marks_job_failed(self, test_db, storage):
        job = UploadJobRepository().create_job(test_db, user_id='u', storage_path='u/x.csv', filename='x.csv')
        test_db.commit()

        job = JobLifecycle(test_db, storage, BrokenDispatcher()).dispatch(job)

        assert job.status == JobStatus.FAILED.value
        assert job.error_message == 'Failed to start processing: connection refused'

    def test_failure_leaves_started_job_alone(self, test_db, storage):
        job = UploadJobRepository().create_job(test_db, user_id='u', storage_path='u/x.csv', filename='x.csv')
        transition(job, JobStatus.PARSING)
        test_db.commit()

        job = JobLifecycle(test_db, storage, BrokenDispatcher()).dispatch(job)

        assert job.status == JobStatus.PARSING.value
        assert job.error_message is None

    def test_http_response_timeout_is_a_hand_off(self, test_db, storage):
        """A slow answer from the API does not fail a job it may already be running."""
        job = UploadJobRepository().create_job(test_db, user_id='u', storage_path='u/x.csv', filename='x.csv')
        test_db.commit()
        http = MagicMock()
        http.post.side_effect = requests.ReadTimeout('read timed out')

        job = JobLifecycle(test_db, storage, HttpDispatcher('http://api.local', http_session=http)).dispatch(job)

        assert job.status == JobStatus.QUEUED.value
        assert job.error_message is None
        http.post.assert_called_once()

    def test_http_connection_failure_marks_job_failed(self, test_db, storage):
        job = UploadJobRepository().create_job(test_db, user_id='u', storage_path='u/x.csv', filename='x.csv')
        test_db.commit()
        http = MagicMock()
        http.post.side_effect = requests.ConnectTimeout('connect timed out')

        job = JobLifecycle(test_db, storage, HttpDispatcher('http://api.local', http_session=http)).dispatch(job)

        assert job.status == JobStatus.FAILED.value
        assert job.error_message.startswith('Failed to start processing:')


class TestDelete:
    """Tests for JobLifecycle.delete."""

    def test_delete_removes_everything(self, test_db, storage):
        job = completed_job(test_db, storage)
        path = job.storage_path
        job_id = job.id

        result = JobLifecycle(test_db, storage).delete(job_id)

        assert result.violations_deleted == 2
        assert result.staging_rows_deleted == 2
        assert result.properties_refreshed == 1
        assert result.blob_removed is True
        assert result.errors == []
        assert test_db.get(UploadJob, job_id) is None
        assert not storage.exists(path)
        prop = test_db.query(Property).one()
        assert prop.total_violations == 0

    def test_delete_clears_all_violations_of_linked_properties(self, test_db, storage):
        first = completed_job(test_db, storage)
        completed_job(test_db, storage, path='user-1/2-data.csv')

        result = JobLifecycle(test_db, storage).delete(first.id)

        assert result.violations_deleted == 4
        assert test_db.query(Violation).count() == 0

    def test_delete_with_blob_already_gone(self, test_db, storage):
        job = completed_job(test_db, storage)
        storage.remove(job.storage_path)

        result = JobLifecycle(test_db, storage).delete(job.id)

        assert result.blob_removed is False
        assert result.errors == []

    def test_blob_failure_still_deletes_job(self, test_db, tmp_path):
        storage = UnremovableStorage(str(tmp_path))
        job = completed_job(test_db, storage)
        job_id = job.id

        result = JobLifecycle(test_db, storage).delete(job_id)

        assert result.errors == ['blob: bucket is read-only']
        assert test_db.get(UploadJob, job_id) is None

    def test_delete_unknown_job(self, test_db, storage):
        with pytest.raises(JobNotFoundError):
            JobLifecycle(test_db, storage).delete(404)
