"""
Job Progress Poller

One cancellable polling loop per job. An optional push notification (for
example a realtime row-change event) only wakes the loop early; whether the
job is finished is always decided from the polled record.
"""
import threading
import time
from typing import Any, Callable, Dict, Optional

from config.settings import settings
from src.leadintake.jobs.state import JobStatus
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

MIN_INTERVAL_SECONDS = 0.5
MAX_INTERVAL_SECONDS = 2.5

JobRecord = Dict[str, Any]


class PollTimeout(Exception):
    """The job did not reach a terminal status within the timeout."""


class PollCancelled(Exception):
    """``cancel()`` was called before the job finished."""


def clamp_interval(interval: float) -> float:
    return min(max(interval, MIN_INTERVAL_SECONDS), MAX_INTERVAL_SECONDS)


def is_terminal_record(record: JobRecord) -> bool:
    status = record.get("status")
    return status in (JobStatus.COMPLETE.value, JobStatus.FAILED.value)


class JobPoller:
    """
    Poll a job record until it is COMPLETE or FAILED.

    Args:
        fetch: Returns the current job record (dict with at least ``status``)
        interval: Seconds between polls, clamped to 0.5-2.5
        timeout: Give up after this many seconds (None waits forever)
        on_update: Called with every polled record
        clock: Monotonic clock used for the timeout
    """

    def __init__(
        self,
        fetch: Callable[[], JobRecord],
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        on_update: Optional[Callable[[JobRecord], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetch = fetch
        self.interval = clamp_interval(interval if interval is not None else settings.poll_interval_seconds)
        self.timeout = timeout
        self.on_update = on_update
        self.clock = clock
        self._wake = threading.Event()
        self._cancelled = threading.Event()

    def notify(self):
        """Wake the loop now instead of at the next interval."""
        self._wake.set()

    def cancel(self):
        self._cancelled.set()
        self._wake.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> JobRecord:
        """
        Poll until the job is terminal.

        Returns:
            The terminal job record

        Raises:
            PollCancelled: ``cancel()`` was called
            PollTimeout: The timeout elapsed first
        """
        deadline = self.clock() + self.timeout if self.timeout is not None else None
        polls = 0

        while not self.cancelled:
            self._wake.clear()
            record = self.fetch()
            polls += 1
            if self.on_update:
                self.on_update(record)

            if is_terminal_record(record):
                logger.info("job_poll_finished", job_id=record.get("id"), status=record.get("status"), polls=polls)
                return record

            wait = self.interval
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    raise PollTimeout(f"Job {record.get('id')} still {record.get('status')} after {self.timeout}s")
                wait = min(wait, remaining)
            self._wake.wait(wait)

        logger.info("job_poll_cancelled", polls=polls)
        raise PollCancelled("Polling cancelled")
