"""
Tests for Uploads API Client

Tests request construction against a mocked HTTP session.
"""
from unittest.mock import MagicMock

import pytest
import requests

from src.leadintake.client.api_client import UploadsAPIClient


@pytest.fixture
def client():
    api = UploadsAPIClient('http://api.local/', timeout=7)
    api.session = MagicMock()
    api.session.request.return_value.json.return_value = {'ok': True}
    return api


class TestUploadsAPIClient:
    """Tests for UploadsAPIClient."""

    def test_get_job(self, client):
        assert client.get_job(5) == {'ok': True}
        client.session.request.assert_called_once_with('GET', 'http://api.local/api/v1/uploads/5', timeout=7)

    def test_create_upload_multipart(self, client):
        client.create_upload('user-1', 'data.csv', b'address\n', city='Phoenix', auto_split=False)

        args, kwargs = client.session.request.call_args
        assert args == ('POST', 'http://api.local/api/v1/uploads')
        assert kwargs['data'] == {'user_id': 'user-1', 'auto_split': 'false', 'city': 'Phoenix'}
        assert kwargs['files'] == {'file': ('data.csv', b'address\n', 'text/csv')}

    def test_list_jobs_params(self, client):
        client.list_jobs(user_id='user-1', limit=5)

        _, kwargs = client.session.request.call_args
        assert kwargs['params'] == {'limit': 5, 'user_id': 'user-1'}

    def test_backfill_payload_uses_camel_case(self, client):
        client.backfill(batch_size=50, start_offset=100, city_filter='Tempe', dry_run=True)

        args, kwargs = client.session.request.call_args
        assert args[1] == 'http://api.local/api/v1/maintenance/backfill-aggregates'
        assert kwargs['json'] == {'batchSize': 50, 'startOffset': 100, 'dryRun': True, 'cityFilter': 'Tempe'}

    def test_reprocess_and_delete(self, client):
        client.reprocess(3)
        client.delete(3)

        calls = [c.args for c in client.session.request.call_args_list]
        assert calls == [
            ('POST', 'http://api.local/api/v1/uploads/3/reprocess'),
            ('DELETE', 'http://api.local/api/v1/uploads/3'),
        ]

    def test_http_errors_raised(self, client):
        client.session.request.return_value.raise_for_status.side_effect = requests.HTTPError('404')

        with pytest.raises(requests.HTTPError):
            client.get_job(99)

    def test_wait_for_job_returns_terminal_record(self, client):
        client.get_job = MagicMock(return_value={'id': 3, 'status': 'COMPLETE'})

        assert client.wait_for_job(3, timeout=1)['status'] == 'COMPLETE'
        client.get_job.assert_called_once_with(3)
