"""
Tests for Structured Logging

Tests service fields and job context binding.
"""
import structlog

from src.leadintake.utils.logger import (
    SERVICE_NAME,
    add_service_fields,
    bind_job_context,
    clear_job_context,
)


class TestServiceFields:
    """Tests for the add_service_fields processor."""

    def test_adds_service_and_environment(self):
        event = add_service_fields(None, 'info', {'event': 'upload_job_started'})

        assert event['service'] == SERVICE_NAME
        assert 'environment' in event
        assert event['event'] == 'upload_job_started'


class TestJobContext:
    """Tests for job context binding."""

    def test_bind_and_clear(self):
        bind_job_context(42, action='process')
        try:
            assert structlog.contextvars.get_contextvars() == {'job_id': 42, 'action': 'process'}
        finally:
            clear_job_context()

        assert structlog.contextvars.get_contextvars() == {}
