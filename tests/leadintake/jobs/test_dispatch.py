"""
Tests for Job Dispatchers

Tests inline execution, HTTP hand-off and dispatcher selection.
"""
from unittest.mock import MagicMock

import pytest
import requests

from src.leadintake.db import Base, build_engine, build_session_factory, UploadJob, UploadJobRepository
from src.leadintake.exceptions import DispatchError
from src.leadintake.jobs.dispatch import HttpDispatcher, InlineDispatcher, build_dispatcher
from src.leadintake.jobs.lifecycle import PROCESS, SPLIT
from src.leadintake.jobs.state import JobStatus
from src.leadintake.storage.blob import LocalBlobStorage


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


def queue_job(session, storage, csv_text, path='user-1/1-data.csv'):
    storage.upload(path, csv_text.encode('utf-8'))
    job = UploadJobRepository().create_job(session, user_id='user-1', storage_path=path, filename='data.csv')
    session.commit()
    return job.id


class TestInlineDispatcher:
    """Tests for InlineDispatcher."""

    def test_process_runs_job(self, test_db, session_factory, storage):
        job_id = queue_job(test_db, storage, 'address,city,state\n1 Main St,Mesa,AZ\n')

        InlineDispatcher(session_factory, storage).dispatch(job_id, PROCESS)

        test_db.expire_all()
        assert test_db.get(UploadJob, job_id).status == JobStatus.COMPLETE.value

    def test_split_runs_children(self, test_db, session_factory, storage):
        job_id = queue_job(test_db, storage, 'address,city,state\n1 Main St,Mesa,AZ\n2 Main St,Tempe,AZ\n')

        InlineDispatcher(session_factory, storage).dispatch(job_id, SPLIT)

        children = UploadJobRepository().get_children(test_db, job_id)
        assert len(children) == 2
        assert all(child.status == JobStatus.COMPLETE.value for child in children)

    def test_job_failure_not_raised(self, test_db, session_factory, storage):
        job_id = queue_job(test_db, storage, 'address,city,state\n')

        InlineDispatcher(session_factory, storage).dispatch(job_id)

        test_db.expire_all()
        assert test_db.get(UploadJob, job_id).status == JobStatus.FAILED.value

    def test_missing_job_skipped(self, session_factory, storage):
        InlineDispatcher(session_factory, storage).dispatch(999)

    def test_unknown_action(self, session_factory, storage):
        with pytest.raises(DispatchError):
            InlineDispatcher(session_factory, storage).dispatch(1, 'explode')


class TestHttpDispatcher:
    """Tests for HttpDispatcher."""

    def test_posts_to_action_endpoint(self):
        http = MagicMock()
        http.post.return_value.status_code = 202

        HttpDispatcher('http://api.local/', http_session=http, timeout=5).dispatch(7, SPLIT)

        http.post.assert_called_once_with(
            'http://api.local/api/v1/uploads/7/split', params={'defer': 'true'}, timeout=5
        )
        http.post.return_value.raise_for_status.assert_called_once()

    def test_request_failure_raises_dispatch_error(self):
        http = MagicMock()
        http.post.side_effect = requests.ConnectionError('refused')

        with pytest.raises(DispatchError):
            HttpDispatcher('http://api.local', http_session=http).dispatch(7)

    def test_response_timeout_is_not_an_error(self):
        http = MagicMock()
        http.post.side_effect = requests.ReadTimeout('read timed out')

        HttpDispatcher('http://api.local', http_session=http).dispatch(7)

        http.post.assert_called_once()

    def test_connect_timeout_raises_dispatch_error(self):
        http = MagicMock()
        http.post.side_effect = requests.ConnectTimeout('connect timed out')

        with pytest.raises(DispatchError):
            HttpDispatcher('http://api.local', http_session=http).dispatch(7)

    def test_http_error_status_raises_dispatch_error(self):
        http = MagicMock()
        http.post.return_value.raise_for_status.side_effect = requests.HTTPError('500 Server Error')

        with pytest.raises(DispatchError):
            HttpDispatcher('http://api.local', http_session=http).dispatch(7)


class TestBuildDispatcher:
    """Tests for build_dispatcher."""

    def test_http(self):
        assert isinstance(build_dispatcher('http'), HttpDispatcher)

    @pytest.mark.parametrize('mode', ['inline', 'background'])
    def test_inline_modes(self, mode, session_factory, storage):
        dispatcher = build_dispatcher(mode, session_factory=session_factory, storage=storage)

        assert isinstance(dispatcher, InlineDispatcher)
        assert dispatcher.session_factory is session_factory

    def test_unknown_mode(self):
        with pytest.raises(DispatchError):
            build_dispatcher('carrier-pigeon')
